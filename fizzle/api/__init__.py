"""
API Module - HTTP interface to game sessions.

Exposes the engine via REST API plus a WebSocket for presentation events.
A client:
1. Creates a game session
2. Plays cards, attacks, or lets creatures decide
3. Ends its turn and receives the opponent's turn
4. Renders narratives, applied changes and sound cues

All state is session-scoped. Nothing is persisted.
"""

from .schemas import (
    # Requests
    CreateSessionRequest,
    PlayCardRequest,
    AttackRequest,
    CreatureActionRequest,
    # Responses
    SessionResponse,
    GameStateResponse,
    TurnResponse,
    CardListResponse,
    ErrorResponse,
    # Shared
    PlayerInfo,
    CreatureInfo,
    CardInfo,
    EventInfo,
    # Enums
    ErrorCode,
    SessionStatus,
)
from .service import APIService
from .app import create_app

__all__ = [
    # Requests
    "CreateSessionRequest",
    "PlayCardRequest",
    "AttackRequest",
    "CreatureActionRequest",
    # Responses
    "SessionResponse",
    "GameStateResponse",
    "TurnResponse",
    "CardListResponse",
    "ErrorResponse",
    # Shared
    "PlayerInfo",
    "CreatureInfo",
    "CardInfo",
    "EventInfo",
    # Enums
    "ErrorCode",
    "SessionStatus",
    # Service
    "APIService",
    "create_app",
]
