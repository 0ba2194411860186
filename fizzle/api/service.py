"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to game loop calls
2. Manages sessions and their game loops
3. Serializes one request at a time per session (the loop lock)
4. Formats responses for clients

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Optional
import logging

from .schemas import (
    # Requests
    AttackRequest,
    CreateSessionRequest,
    CreatureActionRequest,
    PlayCardRequest,
    # Responses
    CardListResponse,
    ErrorResponse,
    GameStateResponse,
    SessionResponse,
    TurnResponse,
    # Shared
    CardInfo,
    CreatureInfo,
    EventInfo,
    LogEntry,
    NarrationInfo,
    PlayerInfo,
    # Enums
    ErrorCode,
    SessionStatus,
)
from ..engine_core.config import RulesConfig
from ..engine_core.state import Card, Creature, GameState, Role
from ..engine_core.effects import get_effective_cost
from ..engine_core.action import ActionError
from ..catalog import list_playable_cards, list_tokens
from ..session import GameLoop, LoopState, PresentationEvent, Session, SessionManager, TurnResult
from ..proposer.proposal import HERO_TARGET

logger = logging.getLogger(__name__)


def card_info(card: Card, effective_cost: Optional[int] = None) -> CardInfo:
    return CardInfo(
        card_id=card.id,
        name=card.name,
        cost=card.cost,
        kind=card.kind.value,
        attack=card.attack,
        health=card.health,
        target_type=card.target_type.value,
        flavor=card.flavor,
        special_effect=card.special_effect,
        is_token=card.is_token,
        effective_cost=effective_cost,
    )


def creature_info(creature: Creature) -> CreatureInfo:
    return CreatureInfo(
        instance_id=creature.instance_id,
        card_id=creature.card_id,
        name=creature.name,
        attack=creature.current_attack,
        health=creature.current_health,
        can_attack=creature.can_attack,
        shield=creature.shield,
        statuses=[s.value for s in creature.statuses],
        is_token=creature.is_token,
    )


def event_info(event: PresentationEvent) -> EventInfo:
    return EventInfo(**event.to_dict())


@dataclass
class APIService:
    """
    Main API service.

    Usage:
        service = APIService()

        # Create session
        session_response = service.create_session(CreateSessionRequest())

        # Act
        turn = await service.play_card(session_id, PlayCardRequest(hand_index=0))
        turn = await service.end_turn(session_id)
    """
    session_manager: SessionManager = field(default_factory=SessionManager)
    default_config: RulesConfig = field(default_factory=RulesConfig)

    # Game loops per session
    _game_loops: dict[str, GameLoop] = field(default_factory=dict)

    # =========================================================================
    # Catalog
    # =========================================================================

    def list_cards(self) -> CardListResponse:
        return CardListResponse(
            cards=[card_info(c) for c in list_playable_cards()],
            tokens=[card_info(c) for c in list_tokens()],
        )

    # =========================================================================
    # Sessions
    # =========================================================================

    def create_session(self, request: CreateSessionRequest) -> SessionResponse:
        """
        Create a new game session.

        Raises:
            ValueError: if the economy name is unknown
        """
        config = RulesConfig.from_name(request.economy) if request.economy else self.default_config
        session = self.session_manager.create_session(
            config=config,
            random_seed=request.seed,
            narration_enabled=request.narration,
        )
        self._game_loops[session.session_id] = GameLoop(session)
        logger.info(
            "Created session %s (%s, proposer %s)",
            session.session_id, config.economy.value, session.proposer.get_name(),
        )
        return self._session_response(session)

    def get_session(self, session_id: str) -> SessionResponse | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        return self._session_response(session)

    def get_game_state(self, session_id: str) -> GameStateResponse | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        return self._game_state_response(session)

    def list_sessions(self) -> list[str]:
        return self.session_manager.list_active_sessions()

    def end_session(self, session_id: str, reason: str = "user_ended") -> bool:
        """End a session and release its loop."""
        if not self.session_manager.get_session(session_id):
            return False
        self.session_manager.end_session(session_id, reason)
        self._game_loops.pop(session_id, None)
        return True

    def get_game_loop(self, session_id: str) -> GameLoop | None:
        return self._game_loops.get(session_id)

    # =========================================================================
    # Game Loop
    # =========================================================================

    async def play_card(self, session_id: str, request: PlayCardRequest) -> TurnResponse | ErrorResponse:
        return await self._run(session_id, lambda loop: loop.play_card(request.hand_index))

    async def attack(self, session_id: str, request: AttackRequest) -> TurnResponse | ErrorResponse:
        def target_for(loop: GameLoop):
            if request.target == HERO_TARGET:
                return loop.human_role.other
            return request.target

        return await self._run(session_id, lambda loop: loop.attack(request.attacker_id, target_for(loop)))

    async def creature_action(self, session_id: str, request: CreatureActionRequest) -> TurnResponse | ErrorResponse:
        return await self._run(session_id, lambda loop: loop.creature_action(request.instance_id))

    async def combat(self, session_id: str) -> TurnResponse | ErrorResponse:
        return await self._run(session_id, lambda loop: loop.combat())

    async def end_turn(self, session_id: str) -> TurnResponse | ErrorResponse:
        """End the human's turn; the opponent's turn runs before this returns."""
        return await self._run(session_id, lambda loop: loop.end_turn(role=loop.human_role))

    async def restart(self, session_id: str) -> TurnResponse | ErrorResponse:
        return await self._run(session_id, lambda loop: loop.restart())

    async def _run(self, session_id: str, step: Callable) -> TurnResponse | ErrorResponse:
        loop = self._game_loops.get(session_id)
        if loop is None or not self.session_manager.get_session(session_id):
            return self._not_found(session_id)

        async with loop.lock:
            result = await step(loop)
        return self._turn_response(loop.session, result)

    # =========================================================================
    # Narration
    # =========================================================================

    def toggle_narration(self, session_id: str) -> NarrationInfo | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        session.narration.toggle()
        return NarrationInfo(**session.narration.snapshot())

    def skip_narration(self, session_id: str) -> NarrationInfo | ErrorResponse:
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        session.narration.skip()
        return NarrationInfo(**session.narration.snapshot())

    def subscribe(
        self,
        session_id: str,
        sink: Callable[[PresentationEvent], None],
        replay: bool = False,
    ) -> Callable[[], None] | None:
        """
        Attach a presentation sink. Returns the unsubscribe function, or None.

        With replay, the session's recent events are delivered to the sink first.
        """
        session = self.session_manager.get_session(session_id)
        if not session:
            return None
        return session.presentation.subscribe(sink, replay=replay)

    # =========================================================================
    # Conversion Helpers
    # =========================================================================

    def _not_found(self, session_id: str) -> ErrorResponse:
        return ErrorResponse(
            error=f"Session {session_id} not found",
            error_code=ErrorCode.SESSION_NOT_FOUND,
        )

    def _status(self, session: Session) -> SessionStatus:
        state = session.game_state
        if state is None or state.is_over:
            return SessionStatus.GAME_OVER
        if state.current_player == session.human_role:
            return SessionStatus.YOUR_TURN
        return SessionStatus.OPPONENT_TURN

    def _session_response(self, session: Session) -> SessionResponse:
        state = session.game_state
        return SessionResponse(
            session_id=session.session_id,
            status=self._status(session),
            economy=session.config.economy.value,
            human_role=session.human_role.value,
            turn=state.turn,
            current_player=state.current_player.value,
            winner=state.winner.value if state.winner else None,
            games_played=session.games_played,
            narration_enabled=session.narration.enabled,
            created_at=session.created_at,
        )

    def _player_info(self, state: GameState, role: Role, reveal_hand: bool) -> PlayerInfo:
        player = state.get_player(role)
        return PlayerInfo(
            role=role.value,
            health=player.health,
            mana=player.mana,
            max_mana=player.max_mana,
            hand=[card_info(c, get_effective_cost(state, role, c)) for c in player.hand] if reveal_hand else [],
            hand_count=len(player.hand),
            deck_count=len(player.deck),
            field=[creature_info(c) for c in player.field],
        )

    def _game_state_response(self, session: Session) -> GameStateResponse:
        state = session.game_state
        human = session.human_role
        return GameStateResponse(
            session_id=session.session_id,
            status=self._status(session),
            economy=state.config.economy.value,
            turn=state.turn,
            current_player=state.current_player.value,
            phase=state.phase.value,
            player=self._player_info(state, human, reveal_hand=True),
            opponent=self._player_info(state, human.other, reveal_hand=False),
            log=[LogEntry(**e.to_dict()) for e in state.log],
            active_effects=[e.to_dict() for e in state.active_effects],
            has_played_card=None if state.config.uses_mana else state.has_played_card,
            winner=state.winner.value if state.winner else None,
        )

    def _turn_response(self, session: Session, result: TurnResult) -> TurnResponse | ErrorResponse:
        if not result.success:
            game_over = result.error_code == ActionError.GAME_OVER.value or result.loop_state == LoopState.GAME_OVER
            return ErrorResponse(
                error="; ".join(result.errors) or "Action rejected",
                error_code=ErrorCode.GAME_OVER if game_over else ErrorCode.ILLEGAL_ACTION,
                details={"reason": result.error_code},
            )

        return TurnResponse(
            session_id=session.session_id,
            success=result.success,
            status=self._status(session),
            narratives=list(result.narratives),
            events=[event_info(e) for e in result.events],
            errors=list(result.errors),
            error_code=result.error_code,
            winner=result.winner,
            game_state=self._game_state_response(session),
        )
