"""
Engine Core - Deterministic Dragonflow state management and rule resolution.

The engine:
1. Creates a GameState (choose-starter phase)
2. Applies actions via the reducer
3. Resolves harmonization cascades step-by-step
4. Checks the win condition after every mutation
5. Generates legal actions
"""

from .state import (
    ActionBudget,
    ActionCategory,
    Board,
    Card,
    DragonType,
    Flow,
    FlowPosition,
    GamePhase,
    GameState,
    HarmonizationEvent,
    PlayerSide,
)
from .action import (
    Action,
    ActionPayload,
    ActionResult,
    ActionType,
    CascadeInvariantViolation,
    ErrorCode,
    OreAbility,
    RuleViolation,
)
from .reducer import Reducer, apply_action
from .harmonization import HarmonizationResolver
from .lifecycle import create_game
from .action_generator import ActionGenerator, legal_actions
from .snapshot import state_from_dict, state_to_dict
from .validation import StateValidationError, validate_state

__all__ = [
    "ActionBudget",
    "ActionCategory",
    "Board",
    "Card",
    "DragonType",
    "Flow",
    "FlowPosition",
    "GamePhase",
    "GameState",
    "HarmonizationEvent",
    "PlayerSide",
    "Action",
    "ActionPayload",
    "ActionResult",
    "ActionType",
    "CascadeInvariantViolation",
    "ErrorCode",
    "OreAbility",
    "RuleViolation",
    "Reducer",
    "apply_action",
    "HarmonizationResolver",
    "create_game",
    "ActionGenerator",
    "legal_actions",
    "state_from_dict",
    "state_to_dict",
    "StateValidationError",
    "validate_state",
]
