"""
Tests for proposal parsing and the built-in proposers.
"""

import asyncio

from ..engine_core.state import Role, StatusEffect
from ..proposer import (
    AnthropicProposer,
    BatchCombatDecision,
    CardPlayAction,
    CardPlayDecision,
    CreatureActionType,
    CreatureDecision,
    FirstLegalProposer,
    NullProposer,
    ResolutionProposal,
    ScriptedProposer,
    extract_json_object,
    parse_proposal,
)
from ..proposer.prompts import ProposerPrompts
from .conftest import SINGLE_PLAY, creature, make_state


class TestExtractJson:
    """Tests for extract_json_object."""

    def test_bare_object(self):
        assert extract_json_object('{"narrative": "Boom"}') == {"narrative": "Boom"}

    def test_code_fence(self):
        text = '```json\n{"action": "pass"}\n```'

        assert extract_json_object(text) == {"action": "pass"}

    def test_surrounded_by_prose(self):
        text = 'Sure! Here is my move: {"action": "play", "cardIndex": 1} Good luck.'

        assert extract_json_object(text) == {"action": "play", "cardIndex": 1}

    def test_rejects_non_objects(self):
        assert extract_json_object("[1, 2, 3]") is None
        assert extract_json_object("no json here") is None
        assert extract_json_object("{broken json") is None
        assert extract_json_object("") is None
        assert extract_json_object(None) is None


class TestParseProposal:
    """Tests for parse_proposal."""

    def test_card_play_camel_case(self):
        decision = parse_proposal('{"action": "play", "cardIndex": 2, "narrative": "Go!"}', CardPlayDecision)

        assert decision.action == CardPlayAction.PLAY
        assert decision.card_index == 2
        assert decision.wants_to_play

    def test_accepts_dict(self):
        decision = parse_proposal({"action": "attack_creature", "targetId": "dust-bunny-4"}, CreatureDecision)

        assert decision.action == CreatureActionType.ATTACK_CREATURE
        assert decision.target_id == "dust-bunny-4"
        assert decision.changes == []

    def test_unknown_action_is_none(self):
        assert parse_proposal({"action": "dance"}, CardPlayDecision) is None

    def test_unparseable_is_none(self):
        assert parse_proposal("I think I'll pass.", ResolutionProposal) is None

    def test_batch_targets_default_to_hero(self):
        decision = parse_proposal({"attacks": [{"attackerId": "angry-squirrel-1"}]}, BatchCombatDecision)

        assert decision.attacks[0].targets_hero
        assert decision.narrative == ""


class TestScriptedProposer:

    def test_replays_in_order_then_none(self):
        proposer = ScriptedProposer(card_plays=["first", {"action": "pass"}])

        async def run():
            return [await proposer.propose_card_play({}, "opponent") for _ in range(3)]

        assert asyncio.run(run()) == ["first", {"action": "pass"}, None]
        assert proposer.calls == [("card_play", "opponent")] * 3

    def test_null_proposer(self):
        assert asyncio.run(NullProposer().propose_batch_combat({}, "player")) is None


class TestFirstLegalProposer:
    """The offline proposer only ever suggests sensible moves."""

    def test_plays_first_affordable(self):
        snapshot = make_state(opponent_hand=["ancient-dragon", "angry-squirrel"], mana=2).to_dict()
        proposal = asyncio.run(FirstLegalProposer().propose_card_play(snapshot, "opponent"))

        assert proposal["action"] == "play"
        assert proposal["cardIndex"] == 1

    def test_single_play_after_playing_ends_turn(self):
        snapshot = make_state(player_hand=["ancient-dragon"], config=SINGLE_PLAY, has_played_card=True).to_dict()
        proposal = asyncio.run(FirstLegalProposer().propose_card_play(snapshot, "player"))

        assert proposal["action"] == "end_turn"

    def test_spell_deals_its_cost(self):
        card = {"id": "minor-inconvenience", "name": "Minor Inconvenience", "cost": 1, "type": "spell"}
        proposal = asyncio.run(FirstLegalProposer().propose_resolution({}, card, "opponent"))

        assert proposal["changes"] == [{"type": "damage", "target": "player", "value": 1}]

    def test_attacks_taunt_first(self):
        state = make_state(
            player_field=[creature("philosophical-crab", 2, statuses=(StatusEffect.TAUNT,))],
            opponent_field=[creature("angry-squirrel", 1)],
        )
        snapshot = state.to_dict()
        attacker = snapshot["opponent"]["field"][0]
        proposal = asyncio.run(FirstLegalProposer().propose_creature_action(snapshot, attacker, "opponent"))

        assert proposal["action"] == "attack_creature"
        assert proposal["targetId"] == "philosophical-crab-2"


class TestAnthropicProposer:

    def test_from_env_without_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        assert AnthropicProposer.from_env() is None

    def test_from_env_reads_settings(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
        monkeypatch.setenv("FIZZLE_MODEL", "some-model")
        monkeypatch.setenv("FIZZLE_PROPOSER_TIMEOUT", "5")
        proposer = AnthropicProposer.from_env()

        assert proposer.is_available
        assert proposer.model == "some-model"
        assert proposer.timeout == 5.0


class TestPrompts:

    def test_prompts_mention_the_board(self, board_state):
        snapshot = board_state.to_dict()
        card = board_state.player.hand[2].to_dict()

        assert "Ancient Dragon" in ProposerPrompts.card_play_prompt(snapshot, Role.PLAYER.value)
        assert "Minor Inconvenience" in ProposerPrompts.resolve_prompt(snapshot, card, Role.PLAYER.value)
        assert "angry-squirrel-3" in ProposerPrompts.batch_combat_prompt(snapshot, Role.PLAYER.value)
