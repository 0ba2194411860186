"""
Tests for session lifecycle.
"""

from ..engine_core.config import EconomyMode
from ..engine_core.state import Role
from ..proposer import NullProposer
from ..session import SessionManager, SessionState
from .conftest import SINGLE_PLAY


class TestSessionManager:

    def test_create_session(self):
        manager = SessionManager(proposer_factory=NullProposer)
        session = manager.create_session(config=SINGLE_PLAY, random_seed=1, narration_enabled=True)

        assert session.is_active()
        assert session.is_human_turn()
        assert session.config.economy == EconomyMode.SINGLE_PLAY
        assert isinstance(session.proposer, NullProposer)
        assert session.narration.enabled
        assert session.games_played == 1
        assert manager.get_session(session.session_id) is session

    def test_same_seed_same_deal(self):
        manager = SessionManager()
        first = manager.create_session(random_seed=21).game_state
        second = manager.create_session(random_seed=21).game_state

        assert first.player.hand == second.player.hand
        assert first.opponent.deck == second.opponent.deck

    def test_not_human_turn(self):
        session = SessionManager().create_session()
        session.game_state = session.game_state._copy_with(current_player=Role.OPPONENT)

        assert not session.is_human_turn()

    def test_end_session(self):
        manager = SessionManager()
        session = manager.create_session()

        manager.end_session(session.session_id, reason="user_ended")

        assert manager.get_session(session.session_id) is None
        assert session.state == SessionState.ABANDONED
        assert session.game_state is None
        assert not session.is_human_turn()

    def test_cleanup_only_finished_stale_sessions(self):
        manager = SessionManager()
        finished = manager.create_session()
        running = manager.create_session()
        finished.state = SessionState.GAME_OVER
        finished.created_at -= 7200
        running.created_at -= 7200

        assert manager.cleanup_stale_sessions(max_age_seconds=3600) == 1
        assert manager.get_session(finished.session_id) is None
        assert manager.list_active_sessions() == [running.session_id]
