"""
FastAPI Application - REST API for the card battle.

Endpoints:
    GET    /api/v1/cards                              Card catalog
    POST   /api/v1/sessions                           Create game session
    GET    /api/v1/sessions                           List active sessions
    GET    /api/v1/sessions/{id}                      Get session status
    DELETE /api/v1/sessions/{id}                      End session
    GET    /api/v1/sessions/{id}/state                Get game state
    POST   /api/v1/sessions/{id}/play                 Play a card from hand
    POST   /api/v1/sessions/{id}/attack               Attack with a creature
    POST   /api/v1/sessions/{id}/creature-action      Let a creature decide
    POST   /api/v1/sessions/{id}/combat               Batched combat
    POST   /api/v1/sessions/{id}/end-turn             End turn (opponent plays)
    POST   /api/v1/sessions/{id}/restart              Deal a new game
    POST   /api/v1/sessions/{id}/narration/toggle     Narration on/off
    POST   /api/v1/sessions/{id}/narration/skip       Skip current line
    WS     /api/v1/sessions/{id}/ws                   Presentation events

Every action response carries the narratives and presentation events it
produced, and the resulting game state. Ending the human's turn returns
only after the opponent's turn has been played out.
"""

from typing import Annotated, Optional, Union
import asyncio
import json
import logging
import os

from fastapi import FastAPI, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .service import APIService
from .schemas import (
    # Request models
    AttackRequest,
    CreateSessionRequest,
    CreatureActionRequest,
    PlayCardRequest,
    # Response models
    CardListResponse,
    EndSessionResponse,
    ErrorResponse,
    GameStateResponse,
    HealthResponse,
    NarrationInfo,
    SessionListResponse,
    SessionResponse,
    TurnResponse,
    # Enums
    ErrorCode,
)
from ..engine_core.config import RulesConfig
from ..proposer import ActionProposer, AnthropicProposer, FirstLegalProposer
from ..session import SessionManager

logger = logging.getLogger(__name__)

# Environment configuration
FIZZLE_ENV = os.getenv("FIZZLE_ENV", "development")
FIZZLE_ECONOMY = os.getenv("FIZZLE_ECONOMY", "mana")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

_STATUS_CODES = {
    ErrorCode.SESSION_NOT_FOUND: 404,
    ErrorCode.ILLEGAL_ACTION: 400,
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.GAME_OVER: 409,
    ErrorCode.INTERNAL_ERROR: 500,
}


def default_proposer() -> ActionProposer:
    """The language-model proposer when a key is configured, else the offline one."""
    proposer = AnthropicProposer.from_env()
    if proposer is None:
        logger.info("ANTHROPIC_API_KEY not set, opponent uses %s", FirstLegalProposer.__name__)
        return FirstLegalProposer()
    return proposer


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    app = FastAPI(
        title="Fizzle Engine API",
        description="""
LLM-narrated card battle engine.

## Flow

1. `POST /sessions` deals a game; the human plays the `player` role
2. Play cards, attack, or let creatures decide
3. `POST /end-turn` hands over; the opponent's whole turn is played out
   before the response returns
4. Connect to `/ws` to receive each step as it is presented

## Error Codes

| Code | Description |
|------|-------------|
| `SESSION_NOT_FOUND` | Session does not exist |
| `ILLEGAL_ACTION` | The engine rejected the action |
| `VALIDATION_ERROR` | Malformed request |
| `GAME_OVER` | The game has already been decided |
        """,
        version="0.1.0",
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
        session_manager=SessionManager(proposer_factory=default_proposer),
        default_config=RulesConfig.from_name(FIZZLE_ECONOMY),
    )
    app.state.service = api_service

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code or _STATUS_CODES[error_code],
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def respond(response):
        if isinstance(response, ErrorResponse):
            return make_error_response(response.error_code, response.error, details=response.details)
        return response

    # =========================================================================
    # Catalog
    # =========================================================================

    @app.get(
        "/api/v1/cards",
        response_model=CardListResponse,
        tags=["Catalog"],
        summary="List playable cards and tokens",
    )
    async def list_cards() -> CardListResponse:
        return api_service.list_cards()

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SessionResponse,
        responses={422: {"model": ErrorResponse, "description": "Unknown economy"}},
        tags=["Sessions"],
        summary="Create a new game session",
    )
    async def create_session(body: Optional[CreateSessionRequest] = None) -> Union[SessionResponse, JSONResponse]:
        """
        Create a new game session with a freshly shuffled deck.

        `economy` is `mana` (default) or `single_play`; `seed` makes the
        shuffle reproducible.
        """
        try:
            return api_service.create_session(body or CreateSessionRequest())
        except ValueError as e:
            return make_error_response(ErrorCode.VALIDATION_ERROR, str(e))

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List active sessions",
    )
    async def list_sessions() -> SessionListResponse:
        sessions = api_service.list_sessions()
        return SessionListResponse(sessions=sessions, count=len(sessions))

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Get session status",
    )
    async def get_session(session_id: str) -> Union[SessionResponse, JSONResponse]:
        return respond(api_service.get_session(session_id))

    @app.delete(
        "/api/v1/sessions/{session_id}",
        response_model=EndSessionResponse,
        tags=["Sessions"],
        summary="End a game session",
    )
    async def end_session(
        session_id: str,
        reason: Annotated[str, Query(description="Reason for ending")] = "user_ended",
    ) -> EndSessionResponse:
        """End a game session and release its state."""
        success = api_service.end_session(session_id, reason)
        return EndSessionResponse(success=success, session_id=session_id)

    @app.get(
        "/api/v1/sessions/{session_id}/state",
        response_model=GameStateResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game Loop"],
        summary="Get current game state",
    )
    async def get_game_state(session_id: str) -> Union[GameStateResponse, JSONResponse]:
        return respond(api_service.get_game_state(session_id))

    # =========================================================================
    # Game Loop Endpoints
    # =========================================================================

    action_responses = {
        400: {"model": ErrorResponse, "description": "Illegal action"},
        404: {"model": ErrorResponse, "description": "Session not found"},
        409: {"model": ErrorResponse, "description": "Game over"},
    }

    @app.post(
        "/api/v1/sessions/{session_id}/play",
        response_model=TurnResponse,
        responses=action_responses,
        tags=["Game Loop"],
        summary="Play a card from hand",
    )
    async def play_card(session_id: str, body: PlayCardRequest) -> Union[TurnResponse, JSONResponse]:
        """
        Play the card at `hand_index`. The proposer decides what it does;
        the response carries the resolution narrative and applied changes.
        """
        return respond(await api_service.play_card(session_id, body))

    @app.post(
        "/api/v1/sessions/{session_id}/attack",
        response_model=TurnResponse,
        responses=action_responses,
        tags=["Game Loop"],
        summary="Attack with a creature",
    )
    async def attack(session_id: str, body: AttackRequest) -> Union[TurnResponse, JSONResponse]:
        """Attack the enemy hero (`target="hero"`) or an enemy creature by instance id."""
        return respond(await api_service.attack(session_id, body))

    @app.post(
        "/api/v1/sessions/{session_id}/creature-action",
        response_model=TurnResponse,
        responses=action_responses,
        tags=["Game Loop"],
        summary="Let a creature decide its action",
    )
    async def creature_action(session_id: str, body: CreatureActionRequest) -> Union[TurnResponse, JSONResponse]:
        return respond(await api_service.creature_action(session_id, body))

    @app.post(
        "/api/v1/sessions/{session_id}/combat",
        response_model=TurnResponse,
        responses=action_responses,
        tags=["Game Loop"],
        summary="Resolve a batched combat",
    )
    async def combat(session_id: str) -> Union[TurnResponse, JSONResponse]:
        return respond(await api_service.combat(session_id))

    @app.post(
        "/api/v1/sessions/{session_id}/end-turn",
        response_model=TurnResponse,
        responses=action_responses,
        tags=["Game Loop"],
        summary="End the turn",
    )
    async def end_turn(session_id: str) -> Union[TurnResponse, JSONResponse]:
        """End the human's turn. The opponent's turn is included in the response."""
        return respond(await api_service.end_turn(session_id))

    @app.post(
        "/api/v1/sessions/{session_id}/restart",
        response_model=TurnResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game Loop"],
        summary="Discard the game and deal a new one",
    )
    async def restart(session_id: str) -> Union[TurnResponse, JSONResponse]:
        return respond(await api_service.restart(session_id))

    # =========================================================================
    # Narration Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions/{session_id}/narration/toggle",
        response_model=NarrationInfo,
        responses={404: {"model": ErrorResponse}},
        tags=["Narration"],
        summary="Switch narration on or off",
    )
    async def toggle_narration(session_id: str) -> Union[NarrationInfo, JSONResponse]:
        return respond(api_service.toggle_narration(session_id))

    @app.post(
        "/api/v1/sessions/{session_id}/narration/skip",
        response_model=NarrationInfo,
        responses={404: {"model": ErrorResponse}},
        tags=["Narration"],
        summary="Skip the line being narrated",
    )
    async def skip_narration(session_id: str) -> Union[NarrationInfo, JSONResponse]:
        return respond(api_service.skip_narration(session_id))

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/sessions/{session_id}/ws")
    async def websocket_endpoint(websocket: WebSocket, session_id: str, replay: bool = False):
        """
        WebSocket for real-time presentation.

        Messages from server:
        - state_update: Current game state (sent on connect)
        - event: One presentation step (narrative, changes, cues); with
          ?replay=true the recent history is sent first
        - error: Error occurred

        Messages from client:
        - ping: Keep-alive
        """
        await websocket.accept()

        state = api_service.get_game_state(session_id)
        if isinstance(state, ErrorResponse):
            await websocket.send_json({"type": "error", "payload": state.model_dump(mode="json")})
            await websocket.close()
            return

        outbox: asyncio.Queue = asyncio.Queue()
        unsubscribe = api_service.subscribe(
            session_id,
            lambda event: outbox.put_nowait({"type": "event", "payload": event.to_dict()}),
            replay=replay,
        )
        await websocket.send_json({"type": "state_update", "payload": state.model_dump(mode="json")})

        async def send_events():
            while True:
                await websocket.send_json(await outbox.get())

        async def receive_messages():
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    await websocket.send_json({"type": "error", "payload": {"message": "Invalid JSON"}})
                    continue
                if isinstance(message, dict) and message.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})

        tasks = [asyncio.create_task(send_events()), asyncio.create_task(receive_messages())]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                task.result()
        except WebSocketDisconnect:
            logger.debug("WebSocket for session %s disconnected", session_id)
        finally:
            for task in tasks:
                task.cancel()
            if unsubscribe:
                unsubscribe()

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
        return HealthResponse()

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Fizzle Engine API",
            "version": "0.1.0",
            "environment": FIZZLE_ENV,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# For running directly: uvicorn fizzle.api.app:app
app = create_app()
