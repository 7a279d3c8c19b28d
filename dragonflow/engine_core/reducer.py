"""
Reducer - Applies actions to game state.

The reducer is the single point of state mutation.
All state changes must go through apply_action().

Design principles:
- Pure function: (state, action) -> ActionResult with a new state
- Validates before applying; a rejected action leaves no trace
- Handlers mutate a private clone and raise RuleViolation to reject
- Delegates the harmonization cascade to HarmonizationResolver
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import random

from .action import (
    Action,
    ActionPayload,
    ActionResult,
    ActionType,
    ErrorCode,
    OreAbility,
    RuleViolation,
)
from .deck import draw_top, reshuffle_discard
from .harmonization import (
    HarmonizationResolver,
    clear_blocks_for,
    destroy_card,
    is_harmonized,
    require_column,
    validate_blocks,
)
from .lifecycle import check_victory, enforce_hand_limit, next_turn, start_playing
from .rules import GAIN_ORE_AMOUNT, ORE_COSTS, defeats
from .state import (
    ActionCategory,
    GamePhase,
    GameState,
    HarmonizationEvent,
    PlayerSide,
)

logger = logging.getLogger(__name__)


TURN_ACTIONS = {
    ActionType.SUMMON,
    ActionType.ATTACK,
    ActionType.DRAW,
    ActionType.GAIN_ORE,
    ActionType.SPEND_ORE,
    ActionType.END_TURN,
}

CASCADE_ACTIONS = {
    ActionType.ACCEPT_HARMONIZATION,
    ActionType.SKIP_HARMONIZATION,
}

ACTION_CATEGORIES = {
    ActionType.SUMMON: ActionCategory.SUMMON,
    ActionType.ATTACK: ActionCategory.ATTACK,
    ActionType.DRAW: ActionCategory.DRAW,
    ActionType.GAIN_ORE: ActionCategory.GAIN_ORE,
    ActionType.SPEND_ORE: ActionCategory.SPEND_ORE,
}


@dataclass
class Reducer:
    """
    Reducer applies actions to game state.

    Stateless - all state is in GameState. The random source is only
    used for reshuffles.
    """
    rng: random.Random = field(default_factory=random.Random)

    def __post_init__(self):
        self.resolver = HarmonizationResolver(rng=self.rng)

    def apply(self, state: GameState, action: Action) -> ActionResult:
        """
        Apply an action to the game state.

        Returns ActionResult with new state or error. The input state
        is never modified.
        """
        validation_error = self._validate_action(state, action)
        if validation_error:
            code, message = validation_error
            return ActionResult.failure(message, error_code=code)

        handler = self._get_handler(action.action_type)
        if not handler:
            return ActionResult.failure(
                f"No handler for action type: {action.action_type}",
                error_code=ErrorCode.NO_HANDLER,
            )

        working = state.clone()
        try:
            result = handler(working, action.payload)
        except RuleViolation as e:
            logger.debug("Rejected %s: %s", action.action_type.value, e.message)
            return ActionResult.failure(e.message, error_code=e.code)

        if result.success:
            logger.debug(
                "Applied %s for %s (actions remaining %d)",
                action.action_type.value,
                action.payload.player.value if action.payload.player else "-",
                result.new_state.budget.actions_remaining,
            )
        return result

    def _validate_action(
        self, state: GameState, action: Action
    ) -> tuple[ErrorCode, str] | None:
        """
        Validate phase, turn ownership and cascade blocking.

        Returns (code, message) if invalid, None if valid.
        """
        player = action.payload.player
        if player is None:
            return ErrorCode.INVALID_ACTION, "Action has no player"

        if state.phase == GamePhase.GAME_OVER:
            return ErrorCode.WRONG_PHASE, "Game is over - no actions allowed"

        if state.phase == GamePhase.CHOOSE_STARTER:
            if action.action_type != ActionType.CHOOSE_STARTER:
                return ErrorCode.WRONG_PHASE, "Turn order not chosen yet"
            if player != state.choosing_player:
                return ErrorCode.NOT_YOUR_TURN, f"{player.value} is not choosing turn order"
            return None

        if action.action_type == ActionType.CHOOSE_STARTER:
            return ErrorCode.WRONG_PHASE, "Turn order already chosen"

        if action.action_type in CASCADE_ACTIONS:
            pending = state.pending_harmonization
            if pending is None:
                return ErrorCode.NO_HARMONIZATION_PENDING, "No harmonization pending"
            if player != pending.owner:
                return ErrorCode.NOT_YOUR_TURN, f"Harmonization belongs to {pending.owner.value}"
            return None

        if action.action_type in TURN_ACTIONS:
            if player != state.current_turn:
                return ErrorCode.NOT_YOUR_TURN, f"Not {player.value}'s turn"
            if state.awaiting_harmonization:
                return ErrorCode.HARMONIZATION_PENDING, "Resolve the pending harmonization first"

            category = ACTION_CATEGORIES.get(action.action_type)
            if category and not state.budget.can_use(category):
                return ErrorCode.BUDGET_EXHAUSTED, f"No {category.value} actions left this turn"

        return None

    def _get_handler(self, action_type: ActionType):
        """Get the handler function for an action type."""
        handlers = {
            ActionType.SUMMON: self._handle_summon,
            ActionType.ATTACK: self._handle_attack,
            ActionType.DRAW: self._handle_draw,
            ActionType.GAIN_ORE: self._handle_gain_ore,
            ActionType.SPEND_ORE: self._handle_spend_ore,
            ActionType.END_TURN: self._handle_end_turn,
            ActionType.CHOOSE_STARTER: self._handle_choose_starter,
            ActionType.ACCEPT_HARMONIZATION: self._handle_accept,
            ActionType.SKIP_HARMONIZATION: self._handle_skip,
        }
        return handlers.get(action_type)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _handle_choose_starter(self, state: GameState, payload: ActionPayload) -> ActionResult:
        if payload.go_first is None:
            raise RuleViolation(ErrorCode.INVALID_ACTION, "go_first is required")
        first = payload.player if payload.go_first else payload.player.opponent
        start_playing(state, first)
        return ActionResult.success_with_state(state, changes=[f"{first.value} goes first"])

    def _handle_end_turn(self, state: GameState, payload: ActionPayload) -> ActionResult:
        """Hand limit, block sweep, win check, then rollover."""
        side = payload.player
        changes = []

        discarded = enforce_hand_limit(state.board, side)
        if discarded:
            changes.append(f"{side.value} discarded {len(discarded)} card(s) over the hand limit")

        validate_blocks(state.board)

        if check_victory(state):
            changes.append(f"{state.winner.value} wins")
            return ActionResult.success_with_state(state, changes=changes)

        next_turn(state)
        changes.append(f"Turn ended. Next player: {state.current_turn.value}")
        return ActionResult.success_with_state(state, changes=changes)

    # =========================================================================
    # Turn actions
    # =========================================================================

    def _handle_summon(self, state: GameState, payload: ActionPayload) -> ActionResult:
        side = payload.player
        column = require_column(payload.column)
        card = state.board.find_in_hand(side, payload.card_id)
        if card is None:
            raise RuleViolation(ErrorCode.ILLEGAL_TARGET, f"Card {payload.card_id} not in hand")

        pos = state.board.flow(side)[column]
        if not pos.is_open:
            raise RuleViolation(
                ErrorCode.SPACE_OCCUPIED_OR_BLOCKED, f"Column {column} is occupied or blocked"
            )

        state.board.hands[side].remove(card)
        card.owner = side
        pos.card = card
        state.budget.spend(ActionCategory.SUMMON)

        changes = [f"{side.value} summoned a {card.dragon_type.value} dragon to column {column}"]
        return self._finish(state, changes, side, [column])

    def _handle_attack(self, state: GameState, payload: ActionPayload) -> ActionResult:
        side = payload.player
        column = require_column(payload.column)
        changes = self._resolve_combat(state, side, column, column)
        state.budget.spend(ActionCategory.ATTACK)
        return self._finish(state, changes)

    def _handle_draw(self, state: GameState, payload: ActionPayload) -> ActionResult:
        side = payload.player
        card = draw_top(state.board, self.rng)
        if card is None:
            raise RuleViolation(ErrorCode.DECK_EMPTY, "Deck and discard pile are empty")

        state.board.hands[side].append(card)
        state.budget.spend(ActionCategory.DRAW)
        return self._finish(state, [f"{side.value} drew a card"])

    def _handle_gain_ore(self, state: GameState, payload: ActionPayload) -> ActionResult:
        side = payload.player
        state.board.ore[side] += GAIN_ORE_AMOUNT
        state.budget.spend(ActionCategory.GAIN_ORE)
        return self._finish(state, [f"{side.value} gained {GAIN_ORE_AMOUNT} ore"])

    # =========================================================================
    # Spend ore
    # =========================================================================

    def _handle_spend_ore(self, state: GameState, payload: ActionPayload) -> ActionResult:
        ability = payload.ore_ability
        if ability is None:
            raise RuleViolation(ErrorCode.INVALID_ACTION, "No ore ability chosen")

        cost = ORE_COSTS[ability.value]
        if state.board.ore[payload.player] < cost:
            raise RuleViolation(
                ErrorCode.INSUFFICIENT_RESOURCE,
                f"{ability.value} costs {cost} ore, have {state.board.ore[payload.player]}",
            )

        handlers = {
            OreAbility.MOVE: self._ore_move,
            OreAbility.RETURN: self._ore_return,
            OreAbility.CONFLICT: self._ore_conflict,
            OreAbility.REHARMONIZE: self._ore_reharmonize,
            OreAbility.SEARCH: self._ore_search,
        }
        return handlers[ability](state, payload, cost)

    def _pay(self, state: GameState, side: PlayerSide, cost: int) -> None:
        state.board.ore[side] -= cost
        state.budget.spend(ActionCategory.SPEND_ORE)

    def _ore_move(self, state: GameState, payload: ActionPayload, cost: int) -> ActionResult:
        side = payload.player
        from_col = require_column(payload.column)
        to_col = require_column(payload.target_column)
        flow = state.board.flow(side)

        card = flow.card_at(from_col)
        if card is None:
            raise RuleViolation(ErrorCode.ILLEGAL_TARGET, f"No own dragon at column {from_col}")
        if from_col == to_col or not flow[to_col].is_open:
            raise RuleViolation(
                ErrorCode.SPACE_OCCUPIED_OR_BLOCKED, f"Column {to_col} is occupied or blocked"
            )

        flow[from_col].card = None
        flow[to_col].card = card
        self._pay(state, side, cost)
        validate_blocks(state.board)

        changes = [f"{side.value} moved a {card.dragon_type.value} dragon to column {to_col}"]
        return self._finish(state, changes, side, [to_col])

    def _ore_return(self, state: GameState, payload: ActionPayload, cost: int) -> ActionResult:
        side = payload.player
        column = require_column(payload.column)
        pos = state.board.flow(side)[column]
        card = pos.card
        if card is None:
            raise RuleViolation(ErrorCode.ILLEGAL_TARGET, f"No own dragon at column {column}")

        pos.card = None
        card.owner = None
        state.board.hands[side].append(card)
        clear_blocks_for(state.board, card.card_id)
        validate_blocks(state.board)
        self._pay(state, side, cost)

        return self._finish(state, [f"{side.value} returned a {card.dragon_type.value} dragon to hand"])

    def _ore_conflict(self, state: GameState, payload: ActionPayload, cost: int) -> ActionResult:
        side = payload.player
        from_col = require_column(payload.column)
        target_col = require_column(payload.target_column)
        changes = self._resolve_combat(state, side, from_col, target_col)
        self._pay(state, side, cost)
        return self._finish(state, changes)

    def _ore_reharmonize(self, state: GameState, payload: ActionPayload, cost: int) -> ActionResult:
        side = payload.player
        column = require_column(payload.column)
        flow = state.board.flow(side)
        card = flow.card_at(column)
        if card is None:
            raise RuleViolation(ErrorCode.ILLEGAL_TARGET, f"No own dragon at column {column}")
        if not is_harmonized(flow, column):
            raise RuleViolation(
                ErrorCode.ILLEGAL_TARGET, f"The dragon at column {column} is not harmonized"
            )

        self._pay(state, side, cost)
        state.harmonization_queue.insert(
            0,
            HarmonizationEvent(
                card_id=card.card_id,
                dragon_type=card.dragon_type,
                owner=side,
                column_index=column,
                reharmonize=True,
            ),
        )
        self.resolver.advance(state)

        changes = [f"{side.value} reharmonized the {card.dragon_type.value} dragon at column {column}"]
        return self._finish(state, changes)

    def _ore_search(self, state: GameState, payload: ActionPayload, cost: int) -> ActionResult:
        """
        Search the deck for a type.

        A miss reshuffles discard into the deck and voids the action:
        no ore and no budget are spent.
        """
        side = payload.player
        wanted = payload.dragon_type
        if wanted is None:
            raise RuleViolation(ErrorCode.INVALID_ACTION, "Search needs a dragon type")

        to_flow = payload.column is not None
        if to_flow:
            column = require_column(payload.column)
            if not state.board.flow(side)[column].is_open:
                raise RuleViolation(
                    ErrorCode.SPACE_OCCUPIED_OR_BLOCKED, f"Column {column} is occupied or blocked"
                )

        board = state.board
        match_index = next(
            (i for i, card in enumerate(board.deck) if card.dragon_type == wanted), None
        )
        if match_index is None:
            reshuffle_discard(board, self.rng)
            logger.debug("Search for %s missed, discard reshuffled", wanted.value)
            return ActionResult.void(
                state,
                f"No {wanted.value} dragon in the deck",
                ErrorCode.INVALID_SEARCH,
            )

        revealed = board.deck[:match_index]
        found = board.deck[match_index]
        board.deck = board.deck[match_index + 1:]
        for card in revealed:
            board.discard(card)
        self._pay(state, side, cost)

        changes = [f"{side.value} searched out a {wanted.value} dragon ({len(revealed)} discarded)"]
        if to_flow:
            found.owner = side
            board.flow(side)[column].card = found
            return self._finish(state, changes, side, [column])

        board.hands[side].append(found)
        return self._finish(state, changes)

    # =========================================================================
    # Cascade responses
    # =========================================================================

    def _handle_accept(self, state: GameState, payload: ActionPayload) -> ActionResult:
        changes = self.resolver.accept(state, payload)
        return ActionResult.success_with_state(state, changes=changes)

    def _handle_skip(self, state: GameState, payload: ActionPayload) -> ActionResult:
        changes = self.resolver.skip(state)
        return ActionResult.success_with_state(state, changes=changes)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve_combat(
        self, state: GameState, side: PlayerSide, from_col: int, target_col: int
    ) -> list[str]:
        """Destroy the defender if the combat wheel allows it."""
        enemy = side.opponent
        attacker = state.board.flow(side).card_at(from_col)
        defender = state.board.flow(enemy).card_at(target_col)
        if attacker is None:
            raise RuleViolation(ErrorCode.ILLEGAL_TARGET, f"No own dragon at column {from_col}")
        if defender is None:
            raise RuleViolation(ErrorCode.ILLEGAL_TARGET, f"No enemy dragon at column {target_col}")
        if not defeats(attacker.dragon_type, defender.dragon_type):
            raise RuleViolation(
                ErrorCode.ILLEGAL_TARGET,
                f"{attacker.dragon_type.value} cannot defeat {defender.dragon_type.value}",
            )

        destroy_card(state.board, enemy, target_col)
        return [
            f"{attacker.dragon_type.value} dragon destroyed "
            f"{defender.dragon_type.value} dragon at column {target_col}"
        ]

    def _finish(
        self,
        state: GameState,
        changes: list[str],
        side: PlayerSide | None = None,
        landed: list[int] | None = None,
    ) -> ActionResult:
        """Win check, then queue harmonizations for cards that landed."""
        if check_victory(state):
            changes.append(f"{state.winner.value} wins")
            return ActionResult.success_with_state(state, changes=changes)
        if side is not None and landed:
            changes.extend(self.resolver.trigger(state, side, landed))
        return ActionResult.success_with_state(state, changes=changes)


def apply_action(state: GameState, action: Action, rng: random.Random | None = None) -> ActionResult:
    """
    Convenience function to apply an action.

    Creates a Reducer and applies the action.
    """
    reducer = Reducer(rng=rng or random.Random())
    return reducer.apply(state, action)
