"""
Session Module - Manages ephemeral game sessions.

A session represents one play-through of a game:
- Created with a freshly shuffled game
- Holds the current canonical GameState
- Relays full snapshots to the transport after every change
- Destroyed when the game ends

Sessions are EPHEMERAL: no persistence, no game history.
"""

from .manager import SessionManager, Session, SessionState
from .game_loop import GameLoop, TurnResult

__all__ = [
    "SessionManager",
    "Session",
    "SessionState",
    "GameLoop",
    "TurnResult",
]
