"""
Tests for API layer.

Tests:
- API service methods
- Session lifecycle via HTTP
- Error handling and status codes
- WebSocket presentation stream
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from ..api.schemas import (
    AttackRequest,
    CreateSessionRequest,
    CreatureActionRequest,
    ErrorCode,
    ErrorResponse,
    GameStateResponse,
    PlayCardRequest,
    SessionStatus,
    TurnResponse,
)
from ..api.service import APIService
from ..api.app import create_app
from ..catalog import OPENING_LINE
from ..engine_core.state import Phase, Role
from ..proposer import FirstLegalProposer
from ..session import SessionManager


def offline_service() -> APIService:
    return APIService(session_manager=SessionManager(proposer_factory=FirstLegalProposer))


class TestAPIService:
    """Tests for APIService."""

    @pytest.fixture
    def service(self):
        """Create a fresh API service."""
        return offline_service()

    def test_create_session(self, service):
        """Can create a session via API."""
        response = service.create_session(CreateSessionRequest(seed=4))

        assert response.session_id is not None
        assert response.status == SessionStatus.YOUR_TURN
        assert response.economy == "mana"
        assert response.human_role == "player"
        assert response.turn == 1
        assert response.games_played == 1
        assert service.get_game_loop(response.session_id) is not None

    def test_create_single_play_session(self, service):
        response = service.create_session(CreateSessionRequest(economy="single_play"))

        assert response.economy == "single_play"

    def test_unknown_economy(self, service):
        with pytest.raises(ValueError):
            service.create_session(CreateSessionRequest(economy="barter"))

    def test_get_nonexistent_session(self, service):
        """Getting nonexistent session returns error."""
        response = service.get_session("nonexistent-id")

        assert isinstance(response, ErrorResponse)
        assert response.error_code == ErrorCode.SESSION_NOT_FOUND

    def test_end_session(self, service):
        """Can end a session."""
        session_id = service.create_session(CreateSessionRequest()).session_id

        assert service.end_session(session_id)
        assert service.get_game_loop(session_id) is None
        assert isinstance(service.get_game_state(session_id), ErrorResponse)
        assert not service.end_session(session_id)

    def test_list_sessions(self, service):
        first = service.create_session(CreateSessionRequest()).session_id
        second = service.create_session(CreateSessionRequest()).session_id

        assert set(service.list_sessions()) == {first, second}

    def test_game_state_hides_opponent_hand(self, service):
        session_id = service.create_session(CreateSessionRequest(seed=2)).session_id
        state = service.get_game_state(session_id)

        assert isinstance(state, GameStateResponse)
        assert state.phase == Phase.PLAYING.value
        assert len(state.player.hand) == 4
        assert all(card.effective_cost is not None for card in state.player.hand)
        assert state.opponent.hand == []
        assert state.opponent.hand_count == 4
        assert state.player.deck_count == 14
        assert state.has_played_card is None
        assert len(state.log) == 1

    def test_play_card(self, service):
        session_id = service.create_session(CreateSessionRequest(economy="single_play", seed=5)).session_id

        turn = asyncio.run(service.play_card(session_id, PlayCardRequest(hand_index=0)))

        assert isinstance(turn, TurnResponse)
        assert turn.success
        assert turn.events[0].kind == "card_played"
        assert turn.events[0].card is not None
        assert turn.game_state.has_played_card is True
        assert len(turn.game_state.player.hand) == 3

    def test_illegal_action(self, service):
        session_id = service.create_session(CreateSessionRequest(economy="single_play")).session_id
        asyncio.run(service.play_card(session_id, PlayCardRequest(hand_index=0)))

        response = asyncio.run(service.play_card(session_id, PlayCardRequest(hand_index=0)))

        assert isinstance(response, ErrorResponse)
        assert response.error_code == ErrorCode.ILLEGAL_ACTION
        assert response.details == {"reason": "ALREADY_PLAYED"}

    def test_unknown_attacker(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id

        response = asyncio.run(service.attack(session_id, AttackRequest(attacker_id="ghost-1")))

        assert response.error_code == ErrorCode.ILLEGAL_ACTION
        assert response.details["reason"] == "ATTACKER_NOT_FOUND"

    def test_creature_action_without_creature(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id

        response = asyncio.run(service.creature_action(session_id, CreatureActionRequest(instance_id="ghost-1")))

        assert response.error_code == ErrorCode.ILLEGAL_ACTION

    def test_end_turn_plays_opponent(self, service):
        session_id = service.create_session(CreateSessionRequest(seed=8)).session_id

        turn = asyncio.run(service.end_turn(session_id))

        assert turn.success
        assert turn.game_state.turn == 2
        assert turn.status in (SessionStatus.YOUR_TURN, SessionStatus.GAME_OVER)
        actors = {e.actor for e in turn.events}
        assert "opponent" in actors

    def test_game_over_is_reported(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id
        session = service.session_manager.get_session(session_id)
        session.game_state = session.game_state._copy_with(phase=Phase.ENDED, winner=Role.OPPONENT)

        response = asyncio.run(service.end_turn(session_id))

        assert response.error_code == ErrorCode.GAME_OVER
        assert service.get_session(session_id).status == SessionStatus.GAME_OVER

    def test_restart(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id

        turn = asyncio.run(service.restart(session_id))

        assert turn.success
        assert service.get_session(session_id).games_played == 2

    def test_actions_on_missing_session(self, service):
        response = asyncio.run(service.combat("nonexistent-id"))

        assert response.error_code == ErrorCode.SESSION_NOT_FOUND

    def test_narration_controls(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id

        info = service.toggle_narration(session_id)
        assert info.enabled
        asyncio.run(service.play_card(session_id, PlayCardRequest(hand_index=0)))

        assert service.skip_narration(session_id).enabled
        assert not service.toggle_narration(session_id).enabled
        assert service.toggle_narration("nonexistent-id").error_code == ErrorCode.SESSION_NOT_FOUND

    def test_subscribe_receives_events(self, service):
        session_id = service.create_session(CreateSessionRequest()).session_id
        received = []
        unsubscribe = service.subscribe(session_id, received.append)

        asyncio.run(service.restart(session_id))
        unsubscribe()
        asyncio.run(service.restart(session_id))

        assert len(received) == 1
        assert service.subscribe("nonexistent-id", received.append) is None


    def test_narration_queue_stays_bounded(self, service):
        session_id = service.create_session(CreateSessionRequest(narration=True, seed=6)).session_id
        narration = service.session_manager.get_session(session_id).narration

        for _ in range(12):
            asyncio.run(service.end_turn(session_id))
            if service.get_session(session_id).status == SessionStatus.GAME_OVER:
                break

        assert len(narration.queue) <= narration.max_queue


class TestMultipleSessions:
    """Sessions do not share state."""

    def test_sessions_are_independent(self):
        service = offline_service()
        first = service.create_session(CreateSessionRequest(economy="single_play")).session_id
        second = service.create_session(CreateSessionRequest(economy="single_play")).session_id

        asyncio.run(service.play_card(first, PlayCardRequest(hand_index=0)))

        assert service.get_game_state(first).has_played_card is True
        assert service.get_game_state(second).has_played_card is False


class TestHTTP:
    """Endpoints through the FastAPI test client."""

    @pytest.fixture
    def client(self):
        return TestClient(create_app(offline_service()))

    def _create(self, client, **body):
        response = client.post("/api/v1/sessions", json=body)
        assert response.status_code == 200
        return response.json()["session_id"]

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_cards(self, client):
        data = client.get("/api/v1/cards").json()

        assert len(data["cards"]) == 18
        assert len(data["tokens"]) == 5

    def test_create_without_body(self, client):
        response = client.post("/api/v1/sessions")

        assert response.status_code == 200
        assert response.json()["status"] == "your_turn"

    def test_bad_economy(self, client):
        response = client.post("/api/v1/sessions", json={"economy": "barter"})

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_state_and_play(self, client):
        session_id = self._create(client, economy="single_play", seed=9)

        state = client.get(f"/api/v1/sessions/{session_id}/state").json()
        assert state["turn"] == 1
        assert state["opponent"]["hand"] == []

        played = client.post(f"/api/v1/sessions/{session_id}/play", json={"hand_index": 0})
        assert played.status_code == 200
        assert played.json()["success"]

        again = client.post(f"/api/v1/sessions/{session_id}/play", json={"hand_index": 0})
        assert again.status_code == 400
        assert again.json()["details"]["reason"] == "ALREADY_PLAYED"

    def test_malformed_request(self, client):
        session_id = self._create(client)

        response = client.post(f"/api/v1/sessions/{session_id}/play", json={"hand_index": "first"})

        assert response.status_code == 422

    def test_unknown_session(self, client):
        assert client.get("/api/v1/sessions/nope").status_code == 404
        assert client.post("/api/v1/sessions/nope/end-turn").status_code == 404

    def test_end_turn(self, client):
        session_id = self._create(client, seed=12)

        response = client.post(f"/api/v1/sessions/{session_id}/end-turn")

        assert response.status_code == 200
        assert response.json()["game_state"]["turn"] == 2

    def test_delete_session(self, client):
        session_id = self._create(client)

        response = client.delete(f"/api/v1/sessions/{session_id}")
        assert response.json() == {"success": True, "session_id": session_id}
        assert client.get(f"/api/v1/sessions/{session_id}/state").status_code == 404

    def test_list_sessions(self, client):
        session_id = self._create(client)

        data = client.get("/api/v1/sessions").json()

        assert data["sessions"] == [session_id]
        assert data["count"] == 1

    def test_narration_toggle(self, client):
        session_id = self._create(client)

        response = client.post(f"/api/v1/sessions/{session_id}/narration/toggle")

        assert response.json() == {"enabled": True, "speaking": None, "queue": []}

    def test_websocket(self, client):
        session_id = self._create(client)

        with client.websocket_connect(f"/api/v1/sessions/{session_id}/ws") as websocket:
            first = websocket.receive_json()
            assert first["type"] == "state_update"
            assert first["payload"]["session_id"] == session_id

            websocket.send_json({"type": "ping"})
            assert websocket.receive_json() == {"type": "pong"}

    def test_websocket_replays_history(self, client):
        session_id = self._create(client)
        client.post(f"/api/v1/sessions/{session_id}/restart")

        with client.websocket_connect(f"/api/v1/sessions/{session_id}/ws?replay=true") as websocket:
            assert websocket.receive_json()["type"] == "state_update"
            replayed = websocket.receive_json()

        assert replayed["type"] == "event"
        assert replayed["payload"]["narrative"] == OPENING_LINE

    def test_websocket_unknown_session(self, client):
        with client.websocket_connect("/api/v1/sessions/nope/ws") as websocket:
            message = websocket.receive_json()

        assert message["type"] == "error"
        assert message["payload"]["error_code"] == "SESSION_NOT_FOUND"

    def test_openapi_schema_generates(self, client):
        schema = client.get("/openapi.json").json()

        for name in ("SessionResponse", "GameStateResponse", "TurnResponse", "ErrorResponse"):
            assert name in schema["components"]["schemas"]
