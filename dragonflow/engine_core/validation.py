"""
State Validation - Invariant checks for a whole GameState.

Used for optional peer-side revalidation of incoming snapshots.
Validates that:
1. All 30 cards are present exactly once across the zones
2. Flows have five positions and blocks sit on empty spaces
3. Owners match the flow a card is on (None elsewhere)
4. Budget counters and ore are within bounds
5. Phase-dependent fields are consistent
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass

from .rules import ACTIONS_PER_TURN, CARDS_PER_TYPE, CATEGORY_CAP, FLOW_LENGTH
from .state import DragonType, GamePhase, GameState, PlayerSide


class StateValidationError(Exception):
    """Raised when a snapshot breaks the rule invariants."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"State validation failed with {len(errors)} error(s)")


@dataclass
class ValidationResult:
    """Result of validation, with errors."""
    valid: bool
    errors: list[str]


def validate_state(state: GameState, raise_on_error: bool = False) -> ValidationResult:
    """
    Validate a complete game state.

    Returns ValidationResult with errors.
    Raises StateValidationError if raise_on_error=True and errors exist.
    """
    errors: list[str] = []
    board = state.board

    # Card conservation
    all_cards = board.all_cards()
    expected_total = CARDS_PER_TYPE * len(DragonType)
    if len(all_cards) != expected_total:
        errors.append(f"expected {expected_total} cards, found {len(all_cards)}")
    duplicates = [cid for cid, n in Counter(c.card_id for c in all_cards).items() if n > 1]
    if duplicates:
        errors.append(f"duplicated card ids: {sorted(duplicates)}")
    type_counts = Counter(c.dragon_type for c in all_cards)
    for dragon_type in DragonType:
        if type_counts[dragon_type] != CARDS_PER_TYPE:
            errors.append(
                f"expected {CARDS_PER_TYPE} {dragon_type.value} cards, "
                f"found {type_counts[dragon_type]}"
            )

    # Flows
    for side in PlayerSide:
        flow = board.flow(side)
        if len(flow.positions) != FLOW_LENGTH:
            errors.append(f"{side.value} flow has {len(flow.positions)} positions")
        for index, pos in enumerate(flow):
            if pos.column_index != index:
                errors.append(f"{side.value} position {index} has column_index {pos.column_index}")
            if pos.is_blocked and pos.card is not None:
                errors.append(f"{side.value} column {index} is blocked but occupied")
            if pos.is_blocked != (pos.blocked_by is not None):
                errors.append(f"{side.value} column {index} block flag and source disagree")
            if pos.card and pos.card.owner != side:
                errors.append(f"card {pos.card.card_id} on {side.value} flow has wrong owner")

    # Off-board cards have no owner
    off_board = list(board.deck) + list(board.discard_pile)
    for side in PlayerSide:
        off_board.extend(board.hand(side))
    for card in off_board:
        if card.owner is not None:
            errors.append(f"card {card.card_id} off the flows has an owner")

    # Resources and budget
    for side in PlayerSide:
        if board.ore[side] < 0:
            errors.append(f"{side.value} ore is negative")
    if not 0 <= state.budget.actions_remaining <= ACTIONS_PER_TURN:
        errors.append(f"actions_remaining out of range: {state.budget.actions_remaining}")
    for category, used in state.budget.used.items():
        if not 0 <= used <= CATEGORY_CAP:
            errors.append(f"{category.value} used {used} times")

    # Phase consistency
    if state.phase == GamePhase.GAME_OVER and state.winner is None:
        errors.append("game over without a winner")
    if state.phase != GamePhase.GAME_OVER and state.winner is not None:
        errors.append("winner set before game over")
    if state.phase == GamePhase.CHOOSE_STARTER and state.choosing_player is None:
        errors.append("choose-starter phase without a chooser")
    if state.harmonization_queue and state.pending_harmonization is None:
        errors.append("harmonizations queued with nothing pending")

    result = ValidationResult(valid=not errors, errors=errors)
    if raise_on_error and errors:
        raise StateValidationError(errors)
    return result
