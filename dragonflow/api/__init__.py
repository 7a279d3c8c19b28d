"""
API Module - Peer/client interface.

Exposes the engine via REST and WebSocket. A peer:
1. Creates a game session
2. Submits actions for its side
3. Receives full snapshots after every change
4. Adopts snapshots sent by the remote peer

All state is session-scoped. No persistent user accounts required.
"""

from .schemas import (
    # Requests
    ActionRequest,
    CreateSessionRequest,
    # Responses
    ActionResponse,
    SessionResponse,
    GameStateResponse,
    LegalActionsResponse,
    ErrorResponse,
    # Snapshot
    GameStateSnapshot,
    ErrorCode,
)
from .service import APIService
from .app import create_app

__all__ = [
    # Requests
    "ActionRequest",
    "CreateSessionRequest",
    # Responses
    "ActionResponse",
    "SessionResponse",
    "GameStateResponse",
    "LegalActionsResponse",
    "ErrorResponse",
    # Snapshot
    "GameStateSnapshot",
    "ErrorCode",
    # Service
    "APIService",
    "create_app",
]
