"""
FastAPI Application - REST/WebSocket API for Dragonflow peers.

Endpoints:
    POST   /api/v1/sessions                     Create game session
    GET    /api/v1/sessions                     List active sessions
    GET    /api/v1/sessions/{id}                Get session status
    DELETE /api/v1/sessions/{id}                End session
    GET    /api/v1/sessions/{id}/state          Get full snapshot
    PUT    /api/v1/sessions/{id}/state          Adopt a peer snapshot
    GET    /api/v1/sessions/{id}/legal-actions  Legal actions for a player
    POST   /api/v1/sessions/{id}/actions        Submit an action
    WS     /api/v1/sessions/{id}/ws             WebSocket for state updates

Relay Flow:
    1. The acting peer POSTs an action
    2. The engine resolves it (cascade included) into a new state
    3. Every WebSocket on the session receives a state_update with the
       full snapshot
    4. The remote peer adopts that snapshot verbatim

All responses are JSON with explicit Pydantic schemas.
"""

from typing import Annotated, Any, Optional, Union
import json
import logging
import os

# Environment configuration
DRAGONFLOW_ENV = os.getenv("DRAGONFLOW_ENV", "development")
DRAGONFLOW_LOG_LEVEL = os.getenv("DRAGONFLOW_LOG_LEVEL", "INFO")
DRAGONFLOW_VERIFY_SNAPSHOTS = os.getenv("DRAGONFLOW_VERIFY_SNAPSHOTS", "").lower() in {"1", "true", "yes"}
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

logger = logging.getLogger(__name__)


def configure_logging(level: str = DRAGONFLOW_LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import FastAPI, Body, Query, WebSocket, WebSocketDisconnect
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI not installed. Install with: pip install fastapi uvicorn"
        )

    from .service import APIService
    from .schemas import (
        # Request models
        ActionRequest,
        CreateSessionRequest,
        # Response models
        ActionResponse,
        EndSessionResponse,
        ErrorResponse,
        GameStateResponse,
        HealthResponse,
        LegalActionsResponse,
        SessionListResponse,
        SessionResponse,
        # Enums
        ErrorCode,
        PlayerSideName,
    )
    from ..session import SessionManager

    app = FastAPI(
        title="Dragonflow Engine API",
        description="""
Dragonflow rule engine - two-player elemental dragon card game.

## Relay Flow

The engine is authoritative for the acting peer. After every accepted
action the full snapshot is pushed to `WS /ws` subscribers, and the
remote peer adopts it with `PUT /state`.

## Error Codes

| Code | Description |
|------|-------------|
| `BUDGET_EXHAUSTED` | No actions left, or category used twice |
| `INSUFFICIENT_RESOURCE` | Not enough ore |
| `ILLEGAL_TARGET` | Target card/column not allowed |
| `SPACE_OCCUPIED_OR_BLOCKED` | Destination not free |
| `INVALID_SEARCH` | Search missed; the action was voided |
| `NOT_YOUR_TURN` | Acting out of turn |
| `HARMONIZATION_PENDING` | Resolve the pending harmonization first |
| `SESSION_NOT_FOUND` | Session does not exist |
        """,
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Service instance
    api_service = service or APIService(
        session_manager=SessionManager(verify_snapshots=DRAGONFLOW_VERIFY_SNAPSHOTS)
    )

    # WebSocket connections
    ws_connections: dict[str, list[WebSocket]] = {}

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: dict | None = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def from_error(response: ErrorResponse) -> JSONResponse:
        status_code = 404 if response.error_code == ErrorCode.SESSION_NOT_FOUND else 400
        return make_error_response(
            response.error_code,
            response.error,
            status_code=status_code,
            details=response.details,
        )

    async def broadcast_to_session(session_id: str, message: dict):
        """Broadcast a message to all WebSocket connections for a session."""
        if session_id in ws_connections:
            dead_connections = []
            for ws in ws_connections[session_id]:
                try:
                    await ws.send_json(message)
                except (RuntimeError, WebSocketDisconnect):
                    dead_connections.append(ws)
            for ws in dead_connections:
                ws_connections[session_id].remove(ws)

    async def relay_outcome(session_id: str, response: ActionResponse) -> None:
        if response.state is None:
            return
        await broadcast_to_session(session_id, {
            "type": "state_update",
            "payload": response.state.model_dump(mode="json"),
        })
        if response.winner:
            await broadcast_to_session(session_id, {
                "type": "game_over",
                "payload": {"winner": response.winner},
            })

    def handle_action(session_id: str, request: ActionRequest) -> Union[ActionResponse, ErrorResponse]:
        response = api_service.submit_action(session_id, request)
        if isinstance(response, ActionResponse) and not response.success and not response.voided:
            return ErrorResponse(
                error=response.error or "Action rejected",
                error_code=response.error_code or ErrorCode.INVALID_ACTION,
            )
        return response

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SessionResponse,
        tags=["Sessions"],
        summary="Create a new game session",
    )
    async def create_session(
        request: Optional[CreateSessionRequest] = None,
    ) -> SessionResponse:
        """
        Create a new game session.

        The game starts in the choose-starter phase with a freshly
        shuffled deck and two dealt hands. Finished sessions older than
        an hour are swept first.
        """
        api_service.cleanup_stale_sessions()
        return api_service.create_session(request or CreateSessionRequest())

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List active sessions",
    )
    async def list_sessions() -> SessionListResponse:
        """List all active session IDs."""
        return api_service.list_sessions()

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Get session status",
    )
    async def get_session(session_id: str) -> Union[SessionResponse, JSONResponse]:
        """Get the current status of a game session."""
        response = api_service.get_session(session_id)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    @app.delete(
        "/api/v1/sessions/{session_id}",
        response_model=EndSessionResponse,
        tags=["Sessions"],
        summary="End a game session",
    )
    async def end_session(session_id: str) -> EndSessionResponse:
        """End a game session and release resources."""
        response = api_service.end_session(session_id)
        for ws in ws_connections.pop(session_id, []):
            try:
                await ws.close()
            except RuntimeError:
                logger.debug("WebSocket already closed for session %s", session_id)
        return response

    # =========================================================================
    # Game Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/sessions/{session_id}/state",
        response_model=GameStateResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game"],
        summary="Get the full game snapshot",
    )
    async def get_game_state(session_id: str) -> Union[GameStateResponse, JSONResponse]:
        response = api_service.get_game_state(session_id)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    @app.put(
        "/api/v1/sessions/{session_id}/state",
        response_model=ActionResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Snapshot rejected"},
            404: {"model": ErrorResponse, "description": "Session not found"},
        },
        tags=["Game"],
        summary="Adopt a snapshot sent by the remote peer",
    )
    async def replace_state(
        session_id: str,
        snapshot: Annotated[dict[str, Any], Body(description="Full game snapshot")],
    ) -> Union[ActionResponse, JSONResponse]:
        """
        Replace the session state with a peer snapshot.

        The snapshot is adopted verbatim unless the server runs with
        `DRAGONFLOW_VERIFY_SNAPSHOTS`, in which case it must also pass
        rule validation.
        """
        response = api_service.replace_state(session_id, snapshot)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        await relay_outcome(session_id, response)
        return response

    @app.get(
        "/api/v1/sessions/{session_id}/legal-actions",
        response_model=LegalActionsResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game"],
        summary="List legal actions for a player",
    )
    async def get_legal_actions(
        session_id: str,
        player: Annotated[PlayerSideName, Query(description="player1 or player2")],
    ) -> Union[LegalActionsResponse, JSONResponse]:
        response = api_service.legal_actions(session_id, player)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        return response

    @app.post(
        "/api/v1/sessions/{session_id}/actions",
        response_model=ActionResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Action rejected"},
            404: {"model": ErrorResponse, "description": "Session not found"},
        },
        tags=["Game"],
        summary="Submit a player action",
    )
    async def submit_action(
        session_id: str,
        request: ActionRequest,
    ) -> Union[ActionResponse, JSONResponse]:
        """
        Submit an action for the acting player.

        A rejected action returns 400 with the engine's error code and
        leaves the state untouched. A voided action (missed search)
        returns 200 with `voided=true` and the reshuffled state; no ore or
        actions are spent.
        """
        response = handle_action(session_id, request)
        if isinstance(response, ErrorResponse):
            return from_error(response)
        await relay_outcome(session_id, response)
        return response

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/sessions/{session_id}/ws")
    async def websocket_endpoint(websocket: WebSocket, session_id: str):
        """
        WebSocket for real-time updates.

        Messages from server:
        - state_update: Full snapshot after every change
        - action_result: Outcome of an action sent over this socket
        - game_over: A winner was decided
        - error: Error occurred

        Messages from client:
        - ping: Keep-alive
        - action: Same body as POST /actions
        """
        await websocket.accept()

        if session_id not in ws_connections:
            ws_connections[session_id] = []
        ws_connections[session_id].append(websocket)

        try:
            # Send initial state
            response = api_service.get_game_state(session_id)
            if isinstance(response, ErrorResponse):
                await websocket.send_json({
                    "type": "error",
                    "payload": response.model_dump(mode="json"),
                })
            else:
                await websocket.send_json({
                    "type": "state_update",
                    "payload": response.state.model_dump(mode="json"),
                })

            # Listen for messages
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    await websocket.send_json({
                        "type": "error",
                        "payload": {"message": "Invalid JSON"},
                    })
                    continue

                if message.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})
                elif message.get("type") == "action":
                    try:
                        request = ActionRequest.model_validate(message.get("payload", {}))
                    except ValueError as e:
                        await websocket.send_json({
                            "type": "error",
                            "payload": {"message": str(e)},
                        })
                        continue
                    outcome = handle_action(session_id, request)
                    await websocket.send_json({
                        "type": "action_result" if isinstance(outcome, ActionResponse) else "error",
                        "payload": outcome.model_dump(mode="json", exclude={"state"}),
                    })
                    if isinstance(outcome, ActionResponse):
                        await relay_outcome(session_id, outcome)

        except WebSocketDisconnect:
            logger.debug("WebSocket closed for session %s", session_id)
        finally:
            if session_id in ws_connections:
                if websocket in ws_connections[session_id]:
                    ws_connections[session_id].remove(websocket)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="dragonflow-engine",
            version="1.0.0",
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Dragonflow Engine API",
            "version": "1.0.0",
            "environment": DRAGONFLOW_ENV,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# For running directly: uvicorn dragonflow.api.app:app
app = None
try:
    configure_logging()
    app = create_app()
except ImportError:
    # FastAPI not installed
    pass
