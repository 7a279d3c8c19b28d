"""
Game State - The authoritative Dragonflow state model.

Design principles:
- Immutable-friendly: the reducer clones before mutating, callers never
  see a half-applied state
- Serializable: flat value with no cycles (see snapshot.py)
- Structural queries only: rules live in rules.py / harmonization.py
"""

from __future__ import annotations
from dataclasses import dataclass, field
from copy import deepcopy
from enum import Enum

from .rules import (
    FLOW_LENGTH,
    ACTIONS_PER_TURN,
    CATEGORY_CAP,
)


class DragonType(Enum):
    """The five elemental dragon types."""
    FIRE = "fire"
    WATER = "water"
    EARTH = "earth"
    WOOD = "wood"
    METAL = "metal"


class PlayerSide(Enum):
    """The two seats at the table."""
    PLAYER1 = "player1"
    PLAYER2 = "player2"

    @property
    def opponent(self) -> PlayerSide:
        return PlayerSide.PLAYER2 if self is PlayerSide.PLAYER1 else PlayerSide.PLAYER1


class GamePhase(Enum):
    """High-level game phases."""
    CHOOSE_STARTER = "choose-starter"
    PLAYING = "playing"
    GAME_OVER = "game-over"


class ActionCategory(Enum):
    """Budgeted action categories (each capped per turn)."""
    SUMMON = "summon"
    ATTACK = "attack"
    DRAW = "draw"
    GAIN_ORE = "gain_ore"
    SPEND_ORE = "spend_ore"


@dataclass
class Card:
    """
    A dragon card.

    Owner is only set while the card sits on a flow; in the deck,
    a hand or the discard pile it is None.
    """
    card_id: str
    dragon_type: DragonType
    owner: PlayerSide | None = None

    def __hash__(self):
        return hash(self.card_id)

    def __eq__(self, other):
        if not isinstance(other, Card):
            return False
        return self.card_id == other.card_id


@dataclass
class FlowPosition:
    """One slot of a flow. A blocked slot never holds a card."""
    column_index: int
    card: Card | None = None
    is_blocked: bool = False
    blocked_by: str | None = None  # card_id of the Earth dragon

    @property
    def is_empty(self) -> bool:
        return self.card is None

    @property
    def is_open(self) -> bool:
        """Empty and unblocked, i.e. a legal placement target."""
        return self.card is None and not self.is_blocked

    def clear_block(self) -> None:
        self.is_blocked = False
        self.blocked_by = None


def _empty_positions() -> list[FlowPosition]:
    return [FlowPosition(column_index=i) for i in range(FLOW_LENGTH)]


@dataclass
class Flow:
    """A side's row of five positions."""
    positions: list[FlowPosition] = field(default_factory=_empty_positions)

    def __getitem__(self, column: int) -> FlowPosition:
        return self.positions[column]

    def __iter__(self):
        return iter(self.positions)

    def card_at(self, column: int) -> Card | None:
        if not 0 <= column < len(self.positions):
            return None
        return self.positions[column].card

    def find_card(self, card_id: str) -> int | None:
        """Column of a card on this flow, or None."""
        for pos in self.positions:
            if pos.card and pos.card.card_id == card_id:
                return pos.column_index
        return None

    @property
    def cards(self) -> list[Card]:
        return [pos.card for pos in self.positions if pos.card]

    @property
    def dragon_types(self) -> set[DragonType]:
        return {card.dragon_type for card in self.cards}


@dataclass
class Board:
    """
    Everything on the table.

    Flows, hands and ore are keyed by PlayerSide.
    """
    flows: dict[PlayerSide, Flow] = field(
        default_factory=lambda: {side: Flow() for side in PlayerSide}
    )
    hands: dict[PlayerSide, list[Card]] = field(
        default_factory=lambda: {side: [] for side in PlayerSide}
    )
    deck: list[Card] = field(default_factory=list)  # index 0 is the top
    discard_pile: list[Card] = field(default_factory=list)
    ore: dict[PlayerSide, int] = field(
        default_factory=lambda: {side: 0 for side in PlayerSide}
    )

    def flow(self, side: PlayerSide) -> Flow:
        return self.flows[side]

    def hand(self, side: PlayerSide) -> list[Card]:
        return self.hands[side]

    def find_in_hand(self, side: PlayerSide, card_id: str) -> Card | None:
        for card in self.hands[side]:
            if card.card_id == card_id:
                return card
        return None

    def locate_on_flows(self, card_id: str) -> tuple[PlayerSide, int] | None:
        """Find which flow/column holds a card."""
        for side in PlayerSide:
            column = self.flows[side].find_card(card_id)
            if column is not None:
                return side, column
        return None

    def all_cards(self) -> list[Card]:
        """Every card in every zone (used for conservation checks)."""
        cards = list(self.deck) + list(self.discard_pile)
        for side in PlayerSide:
            cards.extend(self.hands[side])
            cards.extend(self.flows[side].cards)
        return cards

    def discard(self, card: Card) -> None:
        card.owner = None
        self.discard_pile.append(card)


@dataclass
class ActionBudget:
    """Per-turn action accounting."""
    used: dict[ActionCategory, int] = field(
        default_factory=lambda: {category: 0 for category in ActionCategory}
    )
    actions_remaining: int = ACTIONS_PER_TURN

    def can_use(self, category: ActionCategory) -> bool:
        return self.actions_remaining > 0 and self.used[category] < CATEGORY_CAP

    def spend(self, category: ActionCategory) -> None:
        self.used[category] += 1
        self.actions_remaining -= 1

    @property
    def exhausted(self) -> bool:
        return self.actions_remaining <= 0 or not any(
            self.can_use(category) for category in ActionCategory
        )


@dataclass
class HarmonizationEvent:
    """A harmonization trigger awaiting (or in) resolution."""
    card_id: str
    dragon_type: DragonType
    owner: PlayerSide
    column_index: int
    reharmonize: bool = False  # set only by the Reharmonize ore ability


@dataclass
class GameState:
    """
    Complete game state at a point in time.

    This is the canonical value the engine operates on and the
    transport ships between peers. All state changes go through
    the reducer.
    """
    game_id: str

    phase: GamePhase = GamePhase.CHOOSE_STARTER
    current_turn: PlayerSide = PlayerSide.PLAYER1
    choosing_player: PlayerSide | None = None
    turn_number: int = 0

    board: Board = field(default_factory=Board)
    budget: ActionBudget = field(default_factory=ActionBudget)

    # Cascade state
    pending_harmonization: HarmonizationEvent | None = None
    harmonization_queue: list[HarmonizationEvent] = field(default_factory=list)
    harmonized_this_turn: list[str] = field(default_factory=list)

    winner: PlayerSide | None = None

    @property
    def is_over(self) -> bool:
        return self.phase == GamePhase.GAME_OVER

    @property
    def awaiting_harmonization(self) -> bool:
        return self.pending_harmonization is not None

    def has_harmonized(self, card_id: str) -> bool:
        return card_id in self.harmonized_this_turn

    def mark_harmonized(self, card_id: str) -> None:
        if card_id not in self.harmonized_this_turn:
            self.harmonized_this_turn.append(card_id)

    def clone(self) -> GameState:
        """Deep copy the state."""
        return deepcopy(self)
