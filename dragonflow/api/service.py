"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to engine calls
2. Manages sessions and their game loops
3. Formats snapshots and outcomes for clients

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
"""

from __future__ import annotations
from dataclasses import dataclass, field

from pydantic import ValidationError

from .schemas import (
    ActionRequest,
    ActionResponse,
    CreateSessionRequest,
    EndSessionResponse,
    ErrorCode,
    ErrorResponse,
    GameStateResponse,
    GameStateSnapshot,
    LegalActionsResponse,
    SessionListResponse,
    SessionResponse,
    SessionStatus,
)
from ..engine_core.action import Action
from ..engine_core.state import PlayerSide
from ..session import GameLoop, Session, SessionManager, TurnResult


@dataclass
class APIService:
    """
    Main API service.

    Usage:
        service = APIService()

        session = service.create_session(CreateSessionRequest(seed=7))
        service.submit_action(session.session_id, ActionRequest(...))
        state = service.get_game_state(session.session_id)
    """
    session_manager: SessionManager = field(default_factory=SessionManager)

    # Game loops per session
    _game_loops: dict[str, GameLoop] = field(default_factory=dict)

    def create_session(self, request: CreateSessionRequest) -> SessionResponse:
        """Create a new game session."""
        session = self.session_manager.create_session(
            seed=request.seed,
            verify_snapshots=request.verify_snapshots,
        )
        self._game_loops[session.session_id] = GameLoop(session)
        return self._session_response(session)

    def get_session(self, session_id: str) -> SessionResponse | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        return self._session_response(session)

    def end_session(self, session_id: str) -> EndSessionResponse:
        self._game_loops.pop(session_id, None)
        success = self.session_manager.end_session(session_id)
        return EndSessionResponse(success=success, session_id=session_id)

    def list_sessions(self) -> SessionListResponse:
        sessions = self.session_manager.list_active_sessions()
        return SessionListResponse(sessions=sessions, count=len(sessions))

    def get_game_state(self, session_id: str) -> GameStateResponse | ErrorResponse:
        loop = self._loop(session_id)
        if not loop:
            return self._not_found(session_id)
        return GameStateResponse(
            session_id=session_id,
            status=SessionStatus(loop.session.state.value),
            state=GameStateSnapshot.model_validate(loop.snapshot()),
        )

    def legal_actions(self, session_id: str, player: str) -> LegalActionsResponse | ErrorResponse:
        loop = self._loop(session_id)
        if not loop:
            return self._not_found(session_id)
        actions = loop.legal_actions(PlayerSide(player))
        return LegalActionsResponse(
            session_id=session_id,
            player=player,
            actions=[ActionRequest.model_validate(a.to_dict()) for a in actions],
        )

    def submit_action(
        self, session_id: str, request: ActionRequest
    ) -> ActionResponse | ErrorResponse:
        """Apply a player action and return the outcome."""
        loop = self._loop(session_id)
        if not loop:
            return self._not_found(session_id)

        try:
            action = Action.from_dict(request.model_dump(exclude_none=True))
        except (KeyError, ValueError) as e:
            return ErrorResponse(error=str(e), error_code=ErrorCode.VALIDATION_ERROR)

        return self._action_response(loop.submit(action))

    def replace_state(self, session_id: str, snapshot: dict) -> ActionResponse | ErrorResponse:
        """
        Adopt a full snapshot from the remote peer.

        The body is checked against GameStateSnapshot first; rule-level
        validation only runs when the session has verify_snapshots set.
        """
        loop = self._loop(session_id)
        if not loop:
            return self._not_found(session_id)

        try:
            model = GameStateSnapshot.model_validate(snapshot)
        except ValidationError as e:
            return ErrorResponse(
                error="Snapshot does not match the state schema",
                error_code=ErrorCode.VALIDATION_ERROR,
                details={"errors": e.errors(include_url=False)},
            )

        result = loop.receive_snapshot(model.model_dump())
        if not result.success:
            return ErrorResponse(
                error=result.error or "Snapshot rejected",
                error_code=ErrorCode.INVALID_SNAPSHOT,
            )
        return self._action_response(result)

    def cleanup_stale_sessions(self, max_age_seconds: int = 3600) -> list[str]:
        """Drop finished sessions older than max_age along with their game loops."""
        removed = self.session_manager.cleanup_stale_sessions(max_age_seconds)
        for session_id in removed:
            self._game_loops.pop(session_id, None)
        return removed

    def subscribe(self, session_id: str, listener) -> bool:
        """Register a transport listener for state-changed notifications."""
        session = self.session_manager.get_session(session_id)
        if not session:
            return False
        session.subscribe(listener)
        return True

    # =========================================================================
    # Helpers
    # =========================================================================

    def _loop(self, session_id: str) -> GameLoop | None:
        """Game loop for a live session; loops of sessions the manager dropped are pruned."""
        loop = self._game_loops.get(session_id)
        if loop is not None and self.session_manager.get_session(session_id) is None:
            del self._game_loops[session_id]
            return None
        return loop

    def _session_response(self, session: Session) -> SessionResponse:
        state = session.game_state
        return SessionResponse(
            session_id=session.session_id,
            status=SessionStatus(session.state.value),
            phase=state.phase.value,
            current_turn=state.current_turn.value,
            choosing_player=state.choosing_player.value if state.choosing_player else None,
            winner=state.winner.value if state.winner else None,
            turn_number=state.turn_number,
            created_at=session.created_at,
        )

    def _action_response(self, result: TurnResult) -> ActionResponse:
        return ActionResponse(
            success=result.success,
            voided=result.voided,
            error=result.error,
            error_code=ErrorCode(result.error_code) if result.error_code else None,
            changes=result.changes,
            winner=result.winner,
            state=GameStateSnapshot.model_validate(result.snapshot) if result.snapshot else None,
        )

    def _not_found(self, session_id: str) -> ErrorResponse:
        return ErrorResponse(
            error=f"Session {session_id} not found",
            error_code=ErrorCode.SESSION_NOT_FOUND,
        )
