"""
Session Manager - Creates and manages game sessions.

LIFECYCLE:
1. A client starts a session -> fresh shuffled GameState (in memory only)
2. During the game:
   - The human acts through the GameLoop (play, attack, creature action)
   - The opponent's turn is driven by the action proposer
   - Every step is validated, applied, invariant-checked and published
3. Restart discards the GameState and deals a new one
4. Ending the session removes it and ALL its state

PERSISTENCE RULES:
- NO database
- Game state is session-scoped and ephemeral
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable
import logging
import random
import time
import uuid

from ..engine_core.config import RulesConfig, DEFAULT_RULES
from ..engine_core.state import GameState, Role
from ..catalog import create_initial_state
from ..proposer import ActionProposer, FirstLegalProposer, ProposalValidator
from .presentation import NarrationService, PresentationHub

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """State of a game session."""
    ACTIVE = "active"  # Game in progress
    GAME_OVER = "game_over"  # A winner has been decided
    ABANDONED = "abandoned"  # Ended before a winner


@dataclass
class Session:
    """
    An ephemeral game session.

    Contains:
    - The rules and the current canonical game state
    - The action proposer and its validator
    - Presentation services (hub + narration)
    - A random source shared by shuffling and discard

    The session is destroyed when it ends. State is NOT persisted.
    """
    session_id: str
    created_at: float
    config: RulesConfig = DEFAULT_RULES

    state: SessionState = SessionState.ACTIVE
    game_state: GameState | None = None

    proposer: ActionProposer = field(default_factory=FirstLegalProposer)
    validator: ProposalValidator = field(default_factory=ProposalValidator)
    rng: random.Random = field(default_factory=random.Random)
    presentation: PresentationHub = field(default_factory=PresentationHub)

    human_role: Role = Role.PLAYER
    games_played: int = 0

    @property
    def narration(self) -> NarrationService:
        return self.presentation.narration

    def is_active(self) -> bool:
        """Check if session is still active."""
        return self.state == SessionState.ACTIVE

    def is_human_turn(self) -> bool:
        """Check if it's the human player's turn."""
        if not self.game_state:
            return False
        return self.game_state.current_player == self.human_role

    def restart(self) -> GameState:
        """Discard the current game and deal a fresh one."""
        self.game_state = create_initial_state(self.config, self.rng)
        self.state = SessionState.ACTIVE
        self.games_played += 1
        logger.info("Session %s dealt game %d", self.session_id, self.games_played)
        return self.game_state


class SessionManager:
    """
    Manages game sessions.

    Responsibilities:
    - Create sessions with their proposer
    - Track active sessions
    - Clean up finished sessions

    No persistence - sessions are in-memory only.
    """

    def __init__(self, proposer_factory: Callable[[], ActionProposer] | None = None):
        self._sessions: dict[str, Session] = {}
        self.proposer_factory = proposer_factory or FirstLegalProposer

    def create_session(
        self,
        config: RulesConfig | None = None,
        random_seed: int | None = None,
        proposer: ActionProposer | None = None,
        narration_enabled: bool = False,
    ) -> Session:
        """
        Create a new game session with a freshly dealt game.

        Args:
            config: Rules for the game (defaults to the mana economy)
            random_seed: Seed for reproducible shuffles and discards
            proposer: Decision source for the opponent (defaults to the factory)
            narration_enabled: Whether narration starts switched on

        Returns:
            New Session, player to act
        """
        session = Session(
            session_id=str(uuid.uuid4()),
            created_at=time.time(),
            config=config or DEFAULT_RULES,
            proposer=proposer or self.proposer_factory(),
            rng=random.Random(random_seed),
            presentation=PresentationHub(NarrationService(enabled=narration_enabled)),
        )
        session.restart()
        self._sessions[session.session_id] = session
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        return self._sessions.get(session_id)

    def end_session(self, session_id: str, reason: str = "completed"):
        """
        End a session and clean up.

        The session is removed from memory.
        """
        session = self._sessions.pop(session_id, None)
        if session:
            if reason == "completed":
                session.state = SessionState.GAME_OVER
            else:
                session.state = SessionState.ABANDONED
            session.game_state = None
            session.narration.clear()

    def list_active_sessions(self) -> list[str]:
        """List IDs of active sessions."""
        return [
            sid for sid, session in self._sessions.items()
            if session.is_active()
        ]

    def cleanup_stale_sessions(self, max_age_seconds: int = 3600) -> int:
        """
        Remove sessions older than max_age that are no longer active.

        Returns how many were removed.
        """
        current_time = time.time()
        stale = [
            sid for sid, session in self._sessions.items()
            if current_time - session.created_at > max_age_seconds and not session.is_active()
        ]
        for session_id in stale:
            self.end_session(session_id, reason="stale")
        return len(stale)
