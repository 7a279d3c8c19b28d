"""
Harmonization Resolver - Adjacency-triggered ability cascade.

This module handles:
- Detecting harmonization triggers after a card lands in a flow
- Filtering cards that already harmonized this turn
- Ordering simultaneous triggers (fire, earth, metal, water, wood,
  then column, then side)
- Resolving the pending event when its owner accepts or skips
- Earth block bookkeeping

The resolver keeps a FIFO queue on the GameState and promotes its
head into `pending_harmonization`, pausing until the owner answers.
It mutates the state it is given; the reducer hands it a working copy.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import random
from typing import Callable

from .action import ActionPayload, CascadeInvariantViolation, ErrorCode, RuleViolation
from .deck import draw_top
from .lifecycle import check_victory
from .rules import FLOW_LENGTH, METAL_ORE_GAIN, harmonizes, priority_of
from .state import (
    Board,
    DragonType,
    Flow,
    GameState,
    HarmonizationEvent,
    PlayerSide,
)

logger = logging.getLogger(__name__)


_SIDE_ORDER = {PlayerSide.PLAYER1: 0, PlayerSide.PLAYER2: 1}


def is_harmonized(flow: Flow, column: int) -> bool:
    """True if the card at `column` is harmonized by its left neighbour."""
    card = flow.card_at(column)
    if card is None or column == 0:
        return False
    left = flow.card_at(column - 1)
    return harmonizes(left.dragon_type if left else None, card.dragon_type)


def trigger_order(event: HarmonizationEvent) -> tuple[int, int, int]:
    return (priority_of(event.dragon_type), event.column_index, _SIDE_ORDER[event.owner])


def clear_blocks_for(board: Board, card_id: str) -> int:
    """Remove every block sourced by a card. Returns how many were cleared."""
    cleared = 0
    for side in PlayerSide:
        for pos in board.flow(side):
            if pos.blocked_by == card_id:
                pos.clear_block()
                cleared += 1
    return cleared


def validate_blocks(board: Board) -> list[str]:
    """
    Sweep both flows and drop blocks whose Earth source stopped harmonizing.

    Returns the card ids whose blocks were cleared.
    """
    invalid: list[str] = []
    for side in PlayerSide:
        for pos in board.flow(side):
            if not pos.is_blocked:
                continue
            source = pos.blocked_by
            location = board.locate_on_flows(source) if source else None
            valid = False
            if location is not None:
                source_side, column = location
                source_card = board.flow(source_side).card_at(column)
                valid = (
                    source_card.dragon_type == DragonType.EARTH
                    and is_harmonized(board.flow(source_side), column)
                )
            if not valid:
                pos.clear_block()
                if source not in invalid:
                    invalid.append(source)
    if invalid:
        logger.debug("Cleared blocks sourced by %s", invalid)
    return invalid


def detect_triggers(board: Board, side: PlayerSide, column: int) -> list[HarmonizationEvent]:
    """
    Triggers created by a card entering `column` of a side's flow.

    At most two: the card itself (if its left neighbour qualifies)
    and its right neighbour (if the new card qualifies it).
    """
    flow = board.flow(side)
    events = []
    for col in (column, column + 1):
        if col >= FLOW_LENGTH:
            continue
        if is_harmonized(flow, col):
            card = flow.card_at(col)
            events.append(
                HarmonizationEvent(
                    card_id=card.card_id,
                    dragon_type=card.dragon_type,
                    owner=side,
                    column_index=col,
                )
            )
    return events


@dataclass
class HarmonizationResolver:
    """
    Resolves harmonization events step by step.

    Stateless apart from the randomness source used when a Wood draw
    has to reshuffle the discard pile.
    """
    rng: random.Random = field(default_factory=random.Random)

    # =========================================================================
    # Queueing
    # =========================================================================

    def trigger(self, state: GameState, side: PlayerSide, columns: list[int]) -> list[str]:
        """Detect, filter, sort and queue triggers for the given landing columns."""
        found: list[HarmonizationEvent] = []
        for column in columns:
            found.extend(detect_triggers(state.board, side, column))
        return self.enqueue(state, found)

    def enqueue(self, state: GameState, events: list[HarmonizationEvent]) -> list[str]:
        """Append new events to the queue tail and promote the head if idle."""
        if state.is_over:
            return []

        seen = {e.card_id for e in state.harmonization_queue}
        if state.pending_harmonization:
            seen.add(state.pending_harmonization.card_id)

        fresh = []
        for event in events:
            if state.has_harmonized(event.card_id) or event.card_id in seen:
                continue
            seen.add(event.card_id)
            fresh.append(event)

        fresh.sort(key=trigger_order)
        state.harmonization_queue.extend(fresh)

        changes = [
            f"{e.dragon_type.value} dragon at column {e.column_index} harmonized"
            for e in fresh
        ]
        if fresh:
            logger.debug(
                "Queued harmonizations: %s",
                [(e.dragon_type.value, e.owner.value, e.column_index) for e in fresh],
            )
        if state.pending_harmonization is None:
            self.advance(state)
        return changes

    def advance(self, state: GameState) -> HarmonizationEvent | None:
        """Pop the next live event into pending."""
        state.pending_harmonization = None
        while state.harmonization_queue:
            event = state.harmonization_queue.pop(0)
            column = state.board.flow(event.owner).find_card(event.card_id)
            if column is None:
                logger.debug("Dropping stale harmonization for %s", event.card_id)
                continue
            event.column_index = column
            state.pending_harmonization = event
            return event
        return None

    # =========================================================================
    # Responses
    # =========================================================================

    def skip(self, state: GameState) -> list[str]:
        event = state.pending_harmonization
        logger.debug("Skipped %s harmonization of %s", event.dragon_type.value, event.card_id)
        self.advance(state)
        return [f"Skipped {event.dragon_type.value} harmonization"]

    def accept(self, state: GameState, payload: ActionPayload) -> list[str]:
        """
        Resolve the pending event.

        The card is marked before the ability runs so a Water move
        cannot re-queue the dragon that is resolving.
        """
        event = state.pending_harmonization
        if state.has_harmonized(event.card_id) and not event.reharmonize:
            logger.error("Cascade invariant broken for card %s", event.card_id)
            raise CascadeInvariantViolation(event.card_id)

        state.mark_harmonized(event.card_id)
        state.pending_harmonization = None

        handler = self._get_handler(event.dragon_type)
        changes = handler(state, event, payload)
        logger.debug("Resolved %s harmonization of %s", event.dragon_type.value, event.card_id)

        if check_victory(state):
            return changes
        if state.pending_harmonization is None:
            self.advance(state)
        return changes

    def _get_handler(
        self, dragon_type: DragonType
    ) -> Callable[[GameState, HarmonizationEvent, ActionPayload], list[str]]:
        handlers = {
            DragonType.FIRE: self._ability_fire,
            DragonType.WATER: self._ability_water,
            DragonType.EARTH: self._ability_earth,
            DragonType.WOOD: self._ability_wood,
            DragonType.METAL: self._ability_metal,
        }
        return handlers[dragon_type]

    # =========================================================================
    # Abilities
    # =========================================================================

    def _ability_wood(self, state, event, payload) -> list[str]:
        card = draw_top(state.board, self.rng)
        if card is None:
            return ["Wood harmony: nothing left to draw"]
        state.board.hands[event.owner].append(card)
        return [f"Wood harmony: {event.owner.value} drew a card"]

    def _ability_metal(self, state, event, payload) -> list[str]:
        state.board.ore[event.owner] += METAL_ORE_GAIN
        return [f"Metal harmony: {event.owner.value} gained {METAL_ORE_GAIN} ore"]

    def _ability_fire(self, state, event, payload) -> list[str]:
        enemy = event.owner.opponent
        column = require_column(payload.target_column)
        target = state.board.flow(enemy).card_at(column)
        if target is None:
            raise RuleViolation(ErrorCode.ILLEGAL_TARGET, f"No enemy dragon at column {column}")

        destroy_card(state.board, enemy, column)
        return [f"Fire harmony: destroyed {target.dragon_type.value} dragon at column {column}"]

    def _ability_earth(self, state, event, payload) -> list[str]:
        enemy = event.owner.opponent
        column = require_column(payload.target_column)
        pos = state.board.flow(enemy)[column]
        if not pos.is_open:
            raise RuleViolation(
                ErrorCode.SPACE_OCCUPIED_OR_BLOCKED,
                f"Enemy column {column} is occupied or already blocked",
            )
        pos.is_blocked = True
        pos.blocked_by = event.card_id
        validate_blocks(state.board)
        return [f"Earth harmony: blocked {enemy.value} column {column}"]

    def _ability_water(self, state, event, payload) -> list[str]:
        if payload.source_side is None or payload.target_side is None:
            raise RuleViolation(ErrorCode.ILLEGAL_TARGET, "Water harmony needs two positions")
        src_side, src_col = payload.source_side, require_column(payload.source_column)
        dst_side, dst_col = payload.target_side, require_column(payload.target_column)
        if (src_side, src_col) == (dst_side, dst_col):
            raise RuleViolation(ErrorCode.ILLEGAL_TARGET, "Pick two different positions")

        board = state.board
        src = board.flow(src_side)[src_col]
        dst = board.flow(dst_side)[dst_col]
        if src.card is None:
            raise RuleViolation(ErrorCode.ILLEGAL_TARGET, "No dragon at the source position")
        if dst.card is None and dst.is_blocked:
            raise RuleViolation(ErrorCode.SPACE_OCCUPIED_OR_BLOCKED, "Destination is blocked")

        swapped = dst.card is not None
        src.card, dst.card = dst.card, src.card
        dst.card.owner = dst_side
        if src.card is not None:
            src.card.owner = src_side

        validate_blocks(board)
        if check_victory(state):
            return ["Water harmony: the move completed a flow"]

        landed = [(dst_side, dst_col)]
        if swapped:
            landed.append((src_side, src_col))
        found: list[HarmonizationEvent] = []
        for side, column in landed:
            found.extend(detect_triggers(board, side, column))
        changes = ["Water harmony: swapped two dragons" if swapped else "Water harmony: moved a dragon"]
        changes.extend(self.enqueue(state, found))
        return changes


def destroy_card(board: Board, side: PlayerSide, column: int) -> None:
    """Send a flow card to discard and drop anything that depended on it."""
    pos = board.flow(side)[column]
    card = pos.card
    pos.card = None
    board.discard(card)
    clear_blocks_for(board, card.card_id)
    validate_blocks(board)


def require_column(column: int | None) -> int:
    if column is None or not 0 <= column < FLOW_LENGTH:
        raise RuleViolation(ErrorCode.ILLEGAL_TARGET, f"Column out of range: {column}")
    return column
