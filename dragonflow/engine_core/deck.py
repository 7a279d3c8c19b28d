"""
Deck - Deck construction and shuffling.
"""

from __future__ import annotations
import random

from .rules import CARDS_PER_TYPE
from .state import Board, Card, DragonType


def build_deck(rng: random.Random) -> list[Card]:
    """
    Create the 30-card deck, 6 of each type, unshuffled.

    Id suffixes come from `rng` so a seeded game deals the same ids.
    """
    deck = []
    for dragon_type in DragonType:
        for i in range(CARDS_PER_TYPE):
            deck.append(
                Card(
                    card_id=f"{dragon_type.value}-{i}-{rng.getrandbits(32):08x}",
                    dragon_type=dragon_type,
                )
            )
    return deck


def shuffle_cards(cards: list[Card], rng: random.Random) -> list[Card]:
    """Fisher-Yates shuffle. Returns a new list."""
    shuffled = list(cards)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def reshuffle_discard(board: Board, rng: random.Random) -> None:
    """Move the discard pile under the deck and shuffle everything."""
    board.deck = shuffle_cards(board.deck + board.discard_pile, rng)
    board.discard_pile = []


def draw_top(board: Board, rng: random.Random) -> Card | None:
    """
    Take the top deck card, reshuffling discard first if the deck is empty.

    Returns None when both deck and discard are empty.
    """
    if not board.deck and board.discard_pile:
        reshuffle_discard(board, rng)
    if not board.deck:
        return None
    return board.deck.pop(0)
