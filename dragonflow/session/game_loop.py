"""
Game Loop - Drives one session: apply, then broadcast.

The loop:
1. A peer submits an action
2. The reducer computes the next state (whole cascade included)
3. The session adopts the new state
4. Listeners receive the full snapshot for the remote peer
5. The remote peer calls receive_snapshot() and adopts it verbatim
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING
import logging

from ..engine_core.action import Action, ErrorCode
from ..engine_core.action_generator import legal_actions
from ..engine_core.snapshot import state_from_dict, state_to_dict
from ..engine_core.state import PlayerSide
from ..engine_core.validation import validate_state

if TYPE_CHECKING:
    from .manager import Session

logger = logging.getLogger(__name__)


@dataclass
class TurnResult:
    """
    Result of processing one submission.

    Carries the snapshot the transport should relay.
    """
    success: bool
    snapshot: dict[str, Any] | None = None
    error: str | None = None
    error_code: str | None = None
    voided: bool = False
    changes: list[str] = field(default_factory=list)
    winner: str | None = None


class GameLoop:
    """
    The session driver.

    Usage:
        loop = GameLoop(session)
        result = loop.submit(Action.draw(PlayerSide.PLAYER1))
        if result.success:
            ...  # listeners already got result.snapshot
    """

    def __init__(self, session: Session):
        self.session = session

    def snapshot(self) -> dict[str, Any]:
        return state_to_dict(self.session.game_state)

    def legal_actions(self, side: PlayerSide) -> list[Action]:
        return legal_actions(self.session.game_state, side)

    def submit(self, action: Action) -> TurnResult:
        """Apply an action and broadcast the resulting state."""
        session = self.session
        with session.lock:
            if session.ended:
                return TurnResult(success=False, error="Session has ended")

            result = session.reducer.apply(session.game_state, action)
            if result.new_state is None:
                return TurnResult(
                    success=False,
                    error=result.error,
                    error_code=result.error_code.value if result.error_code else None,
                )

            session.game_state = result.new_state
            snapshot = state_to_dict(result.new_state)

        self._broadcast(snapshot)
        winner = result.new_state.winner
        return TurnResult(
            success=result.success,
            snapshot=snapshot,
            error=result.error,
            error_code=result.error_code.value if result.error_code else None,
            voided=result.voided,
            changes=result.state_changes,
            winner=winner.value if winner else None,
        )

    def receive_snapshot(self, data: dict[str, Any]) -> TurnResult:
        """
        Adopt a snapshot sent by the remote peer.

        Trusted verbatim unless the session has verify_snapshots set,
        in which case the snapshot must pass validate_state.
        """
        try:
            state = state_from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Rejected malformed snapshot for %s: %s", self.session.session_id, e)
            return TurnResult(
                success=False,
                error=f"Malformed snapshot: {e}",
                error_code=ErrorCode.INVALID_ACTION.value,
            )

        if self.session.verify_snapshots:
            validation = validate_state(state)
            if not validation.valid:
                logger.warning(
                    "Rejected invalid snapshot for %s: %s",
                    self.session.session_id,
                    validation.errors,
                )
                return TurnResult(
                    success=False,
                    error="; ".join(validation.errors),
                    error_code=ErrorCode.INVALID_ACTION.value,
                )

        with self.session.lock:
            self.session.game_state = state
        return TurnResult(
            success=True,
            snapshot=data,
            winner=state.winner.value if state.winner else None,
        )

    def _broadcast(self, snapshot: dict[str, Any]) -> None:
        for listener in list(self.session.listeners):
            listener(self.session.session_id, snapshot)
