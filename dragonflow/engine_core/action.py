"""
Action System - Actions, payloads, results and rejection codes.

Actions represent:
1. Turn actions (summon, attack, draw, gain ore, spend ore, end turn)
2. Lifecycle actions (choose starter)
3. Cascade responses (accept / skip a pending harmonization)

All state changes flow through actions.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .state import DragonType, PlayerSide


class ActionType(Enum):
    """Types of actions in the system."""
    # Turn actions
    SUMMON = "summon"
    ATTACK = "attack"
    DRAW = "draw"
    GAIN_ORE = "gain_ore"
    SPEND_ORE = "spend_ore"
    END_TURN = "end_turn"

    # Lifecycle
    CHOOSE_STARTER = "choose_starter"

    # Cascade responses
    ACCEPT_HARMONIZATION = "accept_harmonization"
    SKIP_HARMONIZATION = "skip_harmonization"


class OreAbility(Enum):
    """Sub-abilities bought with ore."""
    MOVE = "move"
    RETURN = "return"
    CONFLICT = "conflict"
    REHARMONIZE = "reharmonize"
    SEARCH = "search"


class ErrorCode(Enum):
    """Typed rejection reasons."""
    BUDGET_EXHAUSTED = "BUDGET_EXHAUSTED"
    INSUFFICIENT_RESOURCE = "INSUFFICIENT_RESOURCE"
    ILLEGAL_TARGET = "ILLEGAL_TARGET"
    SPACE_OCCUPIED_OR_BLOCKED = "SPACE_OCCUPIED_OR_BLOCKED"
    INVALID_SEARCH = "INVALID_SEARCH"
    DECK_EMPTY = "DECK_EMPTY"
    CASCADE_INVARIANT_VIOLATION = "CASCADE_INVARIANT_VIOLATION"
    WRONG_PHASE = "WRONG_PHASE"
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    HARMONIZATION_PENDING = "HARMONIZATION_PENDING"
    NO_HARMONIZATION_PENDING = "NO_HARMONIZATION_PENDING"
    INVALID_ACTION = "INVALID_ACTION"
    NO_HANDLER = "NO_HANDLER"


class RuleViolation(Exception):
    """Raised inside handlers; the reducer turns it into a failed ActionResult."""

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class CascadeInvariantViolation(RuleViolation):
    """A card that already harmonized this turn tried to resolve again."""

    def __init__(self, card_id: str):
        super().__init__(
            ErrorCode.CASCADE_INVARIANT_VIOLATION,
            f"Card {card_id} already harmonized this turn",
        )
        self.card_id = card_id


@dataclass
class ActionPayload:
    """
    Payload for an action - contains the action parameters.

    Different action types use different fields.
    Validation happens in the reducer.
    """
    player: PlayerSide | None = None

    # Summon
    card_id: str | None = None

    # Column arguments. `column` is the primary own-flow column,
    # `target_column` a column on the target flow.
    column: int | None = None
    target_column: int | None = None

    # Water harmony: move/swap between any two positions
    source_side: PlayerSide | None = None
    source_column: int | None = None
    target_side: PlayerSide | None = None

    # Spend ore
    ore_ability: OreAbility | None = None
    dragon_type: DragonType | None = None  # search

    # Choose starter
    go_first: bool | None = None


@dataclass
class Action:
    """A complete action to be applied to the game state."""
    action_type: ActionType
    payload: ActionPayload

    @classmethod
    def summon(cls, player: PlayerSide, card_id: str, column: int) -> Action:
        return cls(
            action_type=ActionType.SUMMON,
            payload=ActionPayload(player=player, card_id=card_id, column=column),
        )

    @classmethod
    def attack(cls, player: PlayerSide, column: int) -> Action:
        return cls(
            action_type=ActionType.ATTACK,
            payload=ActionPayload(player=player, column=column),
        )

    @classmethod
    def draw(cls, player: PlayerSide) -> Action:
        return cls(action_type=ActionType.DRAW, payload=ActionPayload(player=player))

    @classmethod
    def gain_ore(cls, player: PlayerSide) -> Action:
        return cls(action_type=ActionType.GAIN_ORE, payload=ActionPayload(player=player))

    @classmethod
    def move(cls, player: PlayerSide, from_column: int, to_column: int) -> Action:
        """Ore: move own dragon to another own column."""
        return cls(
            action_type=ActionType.SPEND_ORE,
            payload=ActionPayload(
                player=player,
                ore_ability=OreAbility.MOVE,
                column=from_column,
                target_column=to_column,
            ),
        )

    @classmethod
    def return_to_hand(cls, player: PlayerSide, column: int) -> Action:
        """Ore: return own dragon to hand."""
        return cls(
            action_type=ActionType.SPEND_ORE,
            payload=ActionPayload(player=player, ore_ability=OreAbility.RETURN, column=column),
        )

    @classmethod
    def conflict(cls, player: PlayerSide, from_column: int, target_column: int) -> Action:
        """Ore: attack any enemy column."""
        return cls(
            action_type=ActionType.SPEND_ORE,
            payload=ActionPayload(
                player=player,
                ore_ability=OreAbility.CONFLICT,
                column=from_column,
                target_column=target_column,
            ),
        )

    @classmethod
    def reharmonize(cls, player: PlayerSide, column: int) -> Action:
        """Ore: harmonize an own dragon again."""
        return cls(
            action_type=ActionType.SPEND_ORE,
            payload=ActionPayload(player=player, ore_ability=OreAbility.REHARMONIZE, column=column),
        )

    @classmethod
    def search(
        cls, player: PlayerSide, dragon_type: DragonType, column: int | None = None
    ) -> Action:
        """Ore: search the deck. column=None sends the card to hand."""
        return cls(
            action_type=ActionType.SPEND_ORE,
            payload=ActionPayload(
                player=player,
                ore_ability=OreAbility.SEARCH,
                dragon_type=dragon_type,
                column=column,
            ),
        )

    @classmethod
    def end_turn(cls, player: PlayerSide) -> Action:
        return cls(action_type=ActionType.END_TURN, payload=ActionPayload(player=player))

    @classmethod
    def choose_starter(cls, player: PlayerSide, go_first: bool) -> Action:
        return cls(
            action_type=ActionType.CHOOSE_STARTER,
            payload=ActionPayload(player=player, go_first=go_first),
        )

    @classmethod
    def accept_harmonization(
        cls,
        player: PlayerSide,
        target_column: int | None = None,
        source_side: PlayerSide | None = None,
        source_column: int | None = None,
        target_side: PlayerSide | None = None,
    ) -> Action:
        """
        Factory for accepting the pending harmonization.

        Fire and Earth take `target_column` on the opponent's flow.
        Water takes a source position and a target position.
        Wood and Metal take nothing.
        """
        return cls(
            action_type=ActionType.ACCEPT_HARMONIZATION,
            payload=ActionPayload(
                player=player,
                target_column=target_column,
                source_side=source_side,
                source_column=source_column,
                target_side=target_side,
            ),
        )

    @classmethod
    def skip_harmonization(cls, player: PlayerSide) -> Action:
        return cls(
            action_type=ActionType.SKIP_HARMONIZATION,
            payload=ActionPayload(player=player),
        )

    def to_dict(self) -> dict[str, Any]:
        p = self.payload
        data: dict[str, Any] = {"type": self.action_type.value}
        fields = {
            "player": p.player.value if p.player else None,
            "card_id": p.card_id,
            "column": p.column,
            "target_column": p.target_column,
            "source_side": p.source_side.value if p.source_side else None,
            "source_column": p.source_column,
            "target_side": p.target_side.value if p.target_side else None,
            "ore_ability": p.ore_ability.value if p.ore_ability else None,
            "dragon_type": p.dragon_type.value if p.dragon_type else None,
            "go_first": p.go_first,
        }
        data.update({k: v for k, v in fields.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Action:
        """Parse the dict form. Raises ValueError/KeyError on bad input."""

        def side(key: str) -> PlayerSide | None:
            return PlayerSide(data[key]) if data.get(key) else None

        payload = ActionPayload(
            player=side("player"),
            card_id=data.get("card_id"),
            column=data.get("column"),
            target_column=data.get("target_column"),
            source_side=side("source_side"),
            source_column=data.get("source_column"),
            target_side=side("target_side"),
            ore_ability=OreAbility(data["ore_ability"]) if data.get("ore_ability") else None,
            dragon_type=DragonType(data["dragon_type"]) if data.get("dragon_type") else None,
            go_first=data.get("go_first"),
        )
        return cls(action_type=ActionType(data["type"]), payload=payload)


@dataclass
class ActionResult:
    """
    Result of applying an action.

    Contains:
    - Whether action succeeded
    - New state (if succeeded, or for a void search)
    - Error and code (if failed or voided)
    - Human-readable change log for the UI
    """
    success: bool
    new_state: Any | None = None  # GameState
    error: str | None = None
    error_code: ErrorCode | None = None

    # A voided action returns a new state (e.g. a reshuffled deck)
    # but spends nothing.
    voided: bool = False

    state_changes: list[str] = field(default_factory=list)

    @classmethod
    def failure(cls, error: str, error_code: ErrorCode | None = None) -> ActionResult:
        """Create a failure result."""
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def success_with_state(
        cls,
        state: Any,
        changes: list[str] | None = None,
    ) -> ActionResult:
        """Create a success result with new state."""
        return cls(success=True, new_state=state, state_changes=changes or [])

    @classmethod
    def void(cls, state: Any, error: str, error_code: ErrorCode) -> ActionResult:
        """An outcome that changed the table but spent no budget or ore."""
        return cls(
            success=False,
            new_state=state,
            error=error,
            error_code=error_code,
            voided=True,
        )
