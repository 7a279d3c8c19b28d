"""
Lifecycle - Game creation, turn rollover and the win condition.

Phase machine: choose-starter -> playing -> game-over (terminal).
"""

from __future__ import annotations
import logging
import random

from .deck import build_deck, shuffle_cards
from .rules import HAND_LIMIT, OPENING_HAND_SIZE
from .state import (
    ActionBudget,
    Board,
    Card,
    DragonType,
    GamePhase,
    GameState,
    PlayerSide,
)

logger = logging.getLogger(__name__)


def create_game(rng: random.Random | None = None, game_id: str | None = None) -> GameState:
    """
    Build a fresh game in the choose-starter phase.

    Shuffles the deck, deals opening hands and picks the side that
    chooses turn order.
    """
    rng = rng or random.Random()
    deck = shuffle_cards(build_deck(rng), rng)

    board = Board(deck=deck)
    for side in PlayerSide:
        board.hands[side] = [board.deck.pop(0) for _ in range(OPENING_HAND_SIZE)]

    chooser = rng.choice(list(PlayerSide))
    state = GameState(
        game_id=game_id or f"{rng.getrandbits(128):032x}",
        phase=GamePhase.CHOOSE_STARTER,
        choosing_player=chooser,
        board=board,
    )
    logger.info("Created game %s, %s chooses turn order", state.game_id, chooser.value)
    return state


def start_playing(state: GameState, first: PlayerSide) -> None:
    """Leave choose-starter with `first` to act."""
    state.phase = GamePhase.PLAYING
    state.current_turn = first
    state.choosing_player = None
    state.turn_number = 1
    state.budget = ActionBudget()
    state.harmonized_this_turn = []
    logger.info("Game %s started, %s goes first", state.game_id, first.value)


def next_turn(state: GameState) -> None:
    """Hand the turn to the other side with a fresh budget."""
    state.current_turn = state.current_turn.opponent
    state.budget = ActionBudget()
    state.harmonized_this_turn = []
    state.turn_number += 1


def enforce_hand_limit(board: Board, side: PlayerSide) -> list[Card]:
    """Discard everything beyond the hand limit, left to right."""
    hand = board.hands[side]
    overflow = hand[HAND_LIMIT:]
    board.hands[side] = hand[:HAND_LIMIT]
    for card in overflow:
        board.discard(card)
    return overflow


def has_all_types(board: Board, side: PlayerSide) -> bool:
    return board.flow(side).dragon_types == set(DragonType)


def find_winner(board: Board, acting: PlayerSide) -> PlayerSide | None:
    """
    Side holding all five types on its flow.

    The acting side is checked first so a move that completes both
    flows at once goes to the player who made it.
    """
    for side in (acting, acting.opponent):
        if has_all_types(board, side):
            return side
    return None


def check_victory(state: GameState) -> bool:
    """
    Apply the win condition. Called after every mutation.

    On a win the game ends immediately and any pending or queued
    harmonizations are discarded.
    """
    if state.is_over:
        return True
    winner = find_winner(state.board, state.current_turn)
    if winner is None:
        return False

    state.phase = GamePhase.GAME_OVER
    state.winner = winner
    state.pending_harmonization = None
    state.harmonization_queue = []
    logger.info("Game %s over, winner %s", state.game_id, winner.value)
    return True
