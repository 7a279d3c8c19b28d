"""
Rule Tables - Fixed Dragonflow rule data.

Tables are keyed by DragonType *values* so this module has no
imports from state.py (state.py imports the numeric constants).
Use the helpers at the bottom for typed lookups.
"""

from __future__ import annotations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .state import DragonType


FLOW_LENGTH = 5
ACTIONS_PER_TURN = 3
CATEGORY_CAP = 2
HAND_LIMIT = 5
OPENING_HAND_SIZE = 4
CARDS_PER_TYPE = 6

METAL_ORE_GAIN = 2
GAIN_ORE_AMOUNT = 1

# What each dragon defeats in combat
COMBAT_RULES: dict[str, str] = {
    "fire": "metal",
    "metal": "wood",
    "wood": "earth",
    "earth": "water",
    "water": "fire",
}

# Type that must sit immediately to the left for a dragon to harmonize
HARMONIZED_BY: dict[str, str] = {
    "fire": "wood",
    "earth": "fire",
    "metal": "earth",
    "water": "metal",
    "wood": "water",
}

# Resolution order for simultaneous harmonizations
HARMONIZATION_PRIORITY: list[str] = ["fire", "earth", "metal", "water", "wood"]

# Ore ability costs
ORE_COSTS: dict[str, int] = {
    "move": 1,
    "return": 1,
    "conflict": 2,
    "reharmonize": 3,
    "search": 4,
}


def defeats(attacker: DragonType, defender: DragonType) -> bool:
    """Combat wheel lookup."""
    return COMBAT_RULES[attacker.value] == defender.value


def harmonizes(left: DragonType | None, card: DragonType) -> bool:
    """True if a dragon of type `left` harmonizes `card` from the left."""
    if left is None:
        return False
    return HARMONIZED_BY[card.value] == left.value


def priority_of(dragon_type: DragonType) -> int:
    return HARMONIZATION_PRIORITY.index(dragon_type.value)
