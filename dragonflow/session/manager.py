"""
Session Manager - Creates and manages game sessions.

LIFECYCLE:
1. A session is created with a fresh game (choose-starter phase)
2. During the game:
   - The acting peer submits actions through its GameLoop
   - The engine computes the whole next state
   - Listeners (the transport) receive the full snapshot
   - The remote peer adopts the snapshot verbatim
3. Game ends -> session can be ended, ALL state deleted

PERSISTENCE RULES:
- No database, no game history
- The snapshot is the only thing that travels
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable
import logging
import random
import threading
import time
import uuid

from ..engine_core.lifecycle import create_game
from ..engine_core.reducer import Reducer
from ..engine_core.state import GamePhase, GameState

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[str, dict[str, Any]], None]


class SessionState(Enum):
    """State of a game session."""
    CREATED = "created"  # Waiting for the starter choice
    ACTIVE = "active"  # Game in progress
    GAME_OVER = "game_over"  # Game completed
    ABANDONED = "abandoned"  # Ended before completion


@dataclass
class Session:
    """
    An ephemeral game session.

    Contains:
    - The current canonical game state
    - The reducer (with its random source)
    - Snapshot listeners (the transport collaborator)

    Operations on a session are serialised by its lock.
    """
    session_id: str
    game_state: GameState
    created_at: float
    reducer: Reducer = field(default_factory=Reducer)

    # Peer-side revalidation of incoming snapshots (off by default)
    verify_snapshots: bool = False

    listeners: list[SnapshotListener] = field(default_factory=list)
    ended: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def state(self) -> SessionState:
        if self.ended and self.game_state.phase != GamePhase.GAME_OVER:
            return SessionState.ABANDONED
        if self.game_state.phase == GamePhase.GAME_OVER:
            return SessionState.GAME_OVER
        if self.game_state.phase == GamePhase.CHOOSE_STARTER:
            return SessionState.CREATED
        return SessionState.ACTIVE

    def is_active(self) -> bool:
        """Check if session is still active."""
        return self.state in {SessionState.CREATED, SessionState.ACTIVE}

    def subscribe(self, listener: SnapshotListener) -> None:
        self.listeners.append(listener)

    def unsubscribe(self, listener: SnapshotListener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)


class SessionManager:
    """
    Manages game sessions.

    Responsibilities:
    - Create sessions with a fresh game
    - Track active sessions
    - Clean up completed sessions

    No persistence - sessions are in-memory only.
    """

    def __init__(self, verify_snapshots: bool = False):
        self._sessions: dict[str, Session] = {}
        self.verify_snapshots = verify_snapshots

    def create_session(
        self,
        seed: int | None = None,
        verify_snapshots: bool | None = None,
    ) -> Session:
        """
        Create a new game session.

        Args:
            seed: Optional seed for the shuffle (tests, replays)
            verify_snapshots: Override the manager default

        Returns:
            New Session in the choose-starter phase
        """
        rng = random.Random(seed)
        session_id = str(uuid.uuid4())
        session = Session(
            session_id=session_id,
            game_state=create_game(rng=rng, game_id=session_id),
            created_at=time.time(),
            reducer=Reducer(rng=rng),
            verify_snapshots=(
                self.verify_snapshots if verify_snapshots is None else verify_snapshots
            ),
        )
        self._sessions[session_id] = session
        logger.info("Created session %s", session_id)
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        return self._sessions.get(session_id)

    def end_session(self, session_id: str) -> bool:
        """End a session and drop it from memory."""
        session = self._sessions.pop(session_id, None)
        if not session:
            return False
        session.ended = True
        session.listeners.clear()
        logger.info("Ended session %s (%s)", session_id, session.state.value)
        return True

    def list_active_sessions(self) -> list[str]:
        """List IDs of active sessions."""
        return [
            sid for sid, session in self._sessions.items()
            if session.is_active()
        ]

    def cleanup_stale_sessions(self, max_age_seconds: int = 3600) -> list[str]:
        """
        Drop finished sessions older than max_age.

        Called periodically to free memory.
        """
        current_time = time.time()
        to_remove = [
            session_id
            for session_id, session in self._sessions.items()
            if current_time - session.created_at > max_age_seconds and not session.is_active()
        ]
        for session_id in to_remove:
            self.end_session(session_id)
        return to_remove
