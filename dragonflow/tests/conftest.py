"""
Pytest fixtures for Dragonflow tests.
"""

import random
from typing import Callable, Optional, Sequence

import pytest

from ..engine_core.deck import build_deck
from ..engine_core.lifecycle import create_game
from ..engine_core.reducer import Reducer
from ..engine_core.state import Board, Card, DragonType, GamePhase, GameState, PlayerSide


P1 = PlayerSide.PLAYER1
P2 = PlayerSide.PLAYER2


def _take(pool: list[Card], dragon_type: DragonType) -> Card:
    for index, card in enumerate(pool):
        if card.dragon_type == dragon_type:
            return pool.pop(index)
    raise ValueError(f"No {dragon_type.value} card left to place")


def build_state(
    p1_flow: Sequence[Optional[DragonType]] = (),
    p2_flow: Sequence[Optional[DragonType]] = (),
    p1_hand: Sequence[DragonType] = (),
    p2_hand: Sequence[DragonType] = (),
    deck_top: Sequence[DragonType] = (),
    discard: Sequence[DragonType] = (),
    ore: Optional[dict[PlayerSide, int]] = None,
    current: PlayerSide = P1,
) -> GameState:
    """
    Build a playing-phase state with a hand-placed table.

    All 30 cards are always present: whatever is not placed on a flow,
    in a hand or in the discard pile ends up in the deck, with
    `deck_top` cards on top in the given order.
    """
    pool = build_deck(random.Random(0))
    board = Board()

    for side, layout in ((P1, p1_flow), (P2, p2_flow)):
        for column, dragon_type in enumerate(layout):
            if dragon_type is None:
                continue
            card = _take(pool, dragon_type)
            card.owner = side
            board.flow(side)[column].card = card

    board.hands[P1] = [_take(pool, t) for t in p1_hand]
    board.hands[P2] = [_take(pool, t) for t in p2_hand]
    board.discard_pile = [_take(pool, t) for t in discard]
    top = [_take(pool, t) for t in deck_top]
    board.deck = top + pool

    if ore:
        board.ore.update(ore)

    return GameState(
        game_id="test_game",
        phase=GamePhase.PLAYING,
        current_turn=current,
        turn_number=1,
        board=board,
    )


@pytest.fixture
def make_state() -> Callable[..., GameState]:
    """Factory for hand-placed playing states."""
    return build_state


@pytest.fixture
def reducer() -> Reducer:
    """Reducer with a fixed random source."""
    return Reducer(rng=random.Random(1234))


@pytest.fixture
def new_game() -> GameState:
    """A freshly dealt game in the choose-starter phase."""
    return create_game(rng=random.Random(42), game_id="seeded_game")


@pytest.fixture
def playing_state(new_game: GameState, reducer: Reducer) -> GameState:
    """The seeded game after its chooser elected to go first."""
    from ..engine_core.action import Action

    result = reducer.apply(new_game, Action.choose_starter(new_game.choosing_player, True))
    assert result.success
    return result.new_state
