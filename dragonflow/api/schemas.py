"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the exact contract between peers/clients and the
engine. The snapshot models mirror engine_core.snapshot one-to-one so a
snapshot can be validated structurally before it is adopted.

Error Codes:
- Engine rejections (BUDGET_EXHAUSTED, ILLEGAL_TARGET, ...) pass through
- SESSION_NOT_FOUND: Session does not exist or has ended
- VALIDATION_ERROR: Request body could not be parsed
- INVALID_SNAPSHOT: Snapshot failed rule validation
"""

from enum import Enum
from typing import Literal, Optional
from pydantic import BaseModel, Field


DragonTypeName = Literal["fire", "water", "earth", "wood", "metal"]
PlayerSideName = Literal["player1", "player2"]
GamePhaseName = Literal["choose-starter", "playing", "game-over"]
ActionTypeName = Literal[
    "summon",
    "attack",
    "draw",
    "gain_ore",
    "spend_ore",
    "end_turn",
    "choose_starter",
    "accept_harmonization",
    "skip_harmonization",
]
OreAbilityName = Literal["move", "return", "conflict", "reharmonize", "search"]


# =============================================================================
# Enums
# =============================================================================

class SessionStatus(str, Enum):
    """Session status values."""
    CREATED = "created"
    ACTIVE = "active"
    GAME_OVER = "game_over"
    ABANDONED = "abandoned"


class ErrorCode(str, Enum):
    """Structured error codes."""
    # Engine rejections
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
    # API level
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_SNAPSHOT = "INVALID_SNAPSHOT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Snapshot Models
# =============================================================================

class CardModel(BaseModel):
    """A dragon card."""
    card_id: str
    dragon_type: DragonTypeName
    owner: Optional[PlayerSideName] = None


class FlowPositionModel(BaseModel):
    """One flow slot."""
    column_index: int = Field(ge=0, le=4)
    card: Optional[CardModel] = None
    is_blocked: bool = False
    blocked_by: Optional[str] = None


class FlowsModel(BaseModel):
    player1: list[FlowPositionModel] = Field(min_length=5, max_length=5)
    player2: list[FlowPositionModel] = Field(min_length=5, max_length=5)


class HandsModel(BaseModel):
    player1: list[CardModel] = Field(default_factory=list)
    player2: list[CardModel] = Field(default_factory=list)


class OreModel(BaseModel):
    player1: int = Field(0, ge=0)
    player2: int = Field(0, ge=0)


class BoardModel(BaseModel):
    """Everything on the table."""
    flows: FlowsModel
    hands: HandsModel
    deck: list[CardModel] = Field(default_factory=list)
    discard_pile: list[CardModel] = Field(default_factory=list)
    ore: OreModel


class BudgetUsedModel(BaseModel):
    summon: int = Field(0, ge=0, le=2)
    attack: int = Field(0, ge=0, le=2)
    draw: int = Field(0, ge=0, le=2)
    gain_ore: int = Field(0, ge=0, le=2)
    spend_ore: int = Field(0, ge=0, le=2)


class BudgetModel(BaseModel):
    """Per-turn action budget."""
    used: BudgetUsedModel = Field(default_factory=BudgetUsedModel)
    actions_remaining: int = Field(3, ge=0, le=3)


class HarmonizationEventModel(BaseModel):
    """A queued or pending harmonization."""
    card_id: str
    dragon_type: DragonTypeName
    owner: PlayerSideName
    column_index: int = Field(ge=0, le=4)
    reharmonize: bool = False


class GameStateSnapshot(BaseModel):
    """
    The full, flat game state as shipped between peers.

    Mirrors engine_core.snapshot.state_to_dict.
    """
    game_id: str
    phase: GamePhaseName
    current_turn: PlayerSideName
    choosing_player: Optional[PlayerSideName] = None
    turn_number: int = Field(0, ge=0)
    winner: Optional[PlayerSideName] = None
    board: BoardModel
    budget: BudgetModel
    pending_harmonization: Optional[HarmonizationEventModel] = None
    harmonization_queue: list[HarmonizationEventModel] = Field(default_factory=list)
    harmonized_this_turn: list[str] = Field(default_factory=list)


# =============================================================================
# Request Models
# =============================================================================

class CreateSessionRequest(BaseModel):
    """Request to start a new game."""
    seed: Optional[int] = Field(None, description="Shuffle seed (tests, replays)")
    verify_snapshots: Optional[bool] = Field(
        None, description="Revalidate peer snapshots before adopting them"
    )


class ActionRequest(BaseModel):
    """
    One player action.

    Mirrors Action.to_dict: only the fields the action type needs
    are required by the engine.
    """
    type: ActionTypeName
    player: PlayerSideName
    card_id: Optional[str] = None
    column: Optional[int] = Field(None, ge=0, le=4)
    target_column: Optional[int] = Field(None, ge=0, le=4)
    source_side: Optional[PlayerSideName] = None
    source_column: Optional[int] = Field(None, ge=0, le=4)
    target_side: Optional[PlayerSideName] = None
    ore_ability: Optional[OreAbilityName] = None
    dragon_type: Optional[DragonTypeName] = None
    go_first: Optional[bool] = None


# =============================================================================
# Response Models
# =============================================================================

class SessionResponse(BaseModel):
    """Session summary."""
    session_id: str
    status: SessionStatus
    phase: GamePhaseName
    current_turn: PlayerSideName
    choosing_player: Optional[PlayerSideName] = None
    winner: Optional[PlayerSideName] = None
    turn_number: int = 0
    created_at: float


class GameStateResponse(BaseModel):
    """Current snapshot of a session."""
    session_id: str
    status: SessionStatus
    state: GameStateSnapshot


class ActionResponse(BaseModel):
    """Outcome of a submitted action or adopted snapshot."""
    success: bool
    voided: bool = False
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    changes: list[str] = Field(default_factory=list)
    winner: Optional[PlayerSideName] = None
    state: Optional[GameStateSnapshot] = None


class LegalActionsResponse(BaseModel):
    """Every action currently legal for a side."""
    session_id: str
    player: PlayerSideName
    actions: list[ActionRequest] = Field(default_factory=list)


class SessionListResponse(BaseModel):
    sessions: list[str] = Field(default_factory=list)
    count: int = 0


class EndSessionResponse(BaseModel):
    success: bool
    session_id: str


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


class ErrorResponse(BaseModel):
    """Standard error body."""
    error: str
    error_code: ErrorCode
    details: Optional[dict] = None
