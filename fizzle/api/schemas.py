"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between a client and the engine. The
human always plays the `player` role; the opponent's hand is never
exposed, only its size.

Error Codes:
- SESSION_NOT_FOUND: Session does not exist or has been ended
- ILLEGAL_ACTION: The engine rejected the action (see details.reason)
- VALIDATION_ERROR: The request body or an argument is malformed
- GAME_OVER: The game has already been decided
- INTERNAL_ERROR: Unexpected server failure
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class SessionStatus(str, Enum):
    """Session status values."""
    YOUR_TURN = "your_turn"
    OPPONENT_TURN = "opponent_turn"
    GAME_OVER = "game_over"


class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    ILLEGAL_ACTION = "ILLEGAL_ACTION"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    GAME_OVER = "GAME_OVER"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class CardInfo(BaseModel):
    """Card information for display."""
    card_id: str
    name: str
    cost: int
    kind: str = Field(description="creature or spell")
    attack: Optional[int] = None
    health: Optional[int] = None
    target_type: str = "none"
    flavor: str = ""
    special_effect: Optional[str] = None
    is_token: bool = False
    effective_cost: Optional[int] = Field(None, description="Cost after modifiers, for cards in hand")

    model_config = {"from_attributes": True}


class CreatureInfo(BaseModel):
    """A creature on the field."""
    instance_id: str
    card_id: str
    name: str
    attack: int
    health: int
    can_attack: bool
    shield: int = 0
    statuses: list[str] = Field(default_factory=list)
    is_token: bool = False


class PlayerInfo(BaseModel):
    """One side of the table."""
    role: str
    health: int
    mana: int
    max_mana: int
    hand: list[CardInfo] = Field(default_factory=list)
    hand_count: int = 0
    deck_count: int = 0
    field: list[CreatureInfo] = Field(default_factory=list)


class LogEntry(BaseModel):
    """A narrated line of the game log."""
    turn: int
    actor: str
    narrative: str
    timestamp: float


class EventInfo(BaseModel):
    """One presentation step: narrative plus the changes actually applied."""
    kind: str
    actor: str
    narrative: str = ""
    changes: list[dict[str, Any]] = Field(default_factory=list)
    cues: list[str] = Field(default_factory=list)
    card: Optional[dict[str, Any]] = None
    timestamp: float


class NarrationInfo(BaseModel):
    """Narration queue snapshot."""
    enabled: bool
    speaking: Optional[str] = None
    queue: list[str] = Field(default_factory=list)


# =============================================================================
# Request Models
# =============================================================================

class CreateSessionRequest(BaseModel):
    """Create a new game session."""
    economy: Optional[str] = Field(None, description="mana or single_play (defaults to FIZZLE_ECONOMY)")
    seed: Optional[int] = Field(None, description="Seed for reproducible shuffles")
    narration: bool = False


class PlayCardRequest(BaseModel):
    """Play a card from the human's hand."""
    hand_index: int


class AttackRequest(BaseModel):
    """Attack with a creature at a chosen target."""
    attacker_id: str
    target: str = Field("hero", description="'hero' or an enemy creature instance id")


class CreatureActionRequest(BaseModel):
    """Let a creature act on the proposer's decision."""
    instance_id: str


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    error_code: ErrorCode
    details: Optional[dict[str, Any]] = None


class SessionResponse(BaseModel):
    """Session summary."""
    session_id: str
    status: SessionStatus
    economy: str
    human_role: str
    turn: int
    current_player: str
    winner: Optional[str] = None
    games_played: int = 1
    narration_enabled: bool = False
    created_at: float


class GameStateResponse(BaseModel):
    """Complete game state from the human's point of view."""
    session_id: str
    status: SessionStatus
    economy: str
    turn: int
    current_player: str
    phase: str
    player: PlayerInfo
    opponent: PlayerInfo
    log: list[LogEntry] = Field(default_factory=list)
    active_effects: list[dict[str, Any]] = Field(default_factory=list)
    has_played_card: Optional[bool] = None
    winner: Optional[str] = None


class TurnResponse(BaseModel):
    """Outcome of an action, with every step that followed from it."""
    session_id: str
    success: bool
    status: SessionStatus
    narratives: list[str] = Field(default_factory=list)
    events: list[EventInfo] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    error_code: Optional[str] = None
    winner: Optional[str] = None
    game_state: Optional[GameStateResponse] = None


class CardListResponse(BaseModel):
    """The card catalog."""
    cards: list[CardInfo]
    tokens: list[CardInfo]


class SessionListResponse(BaseModel):
    """List of active sessions."""
    sessions: list[str]
    count: int


class EndSessionResponse(BaseModel):
    """Response after ending a session."""
    success: bool
    session_id: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    service: str = "fizzle-engine"
    version: str = "0.1.0"
