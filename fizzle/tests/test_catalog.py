"""
Tests for the card catalog and game setup.
"""

import random

from ..engine_core.config import DEFAULT_RULES
from ..engine_core.state import CardKind, Phase, Role
from ..catalog import (
    OPENING_LINE,
    create_initial_state,
    draw_random_token,
    find_card,
    get_card,
    get_token,
    list_playable_cards,
    list_tokens,
    shuffle_deck,
)
from .conftest import SINGLE_PLAY


class TestCards:
    """Catalog contents and lookups."""

    def test_catalog_sizes(self):
        cards = list_playable_cards()

        assert len(cards) == 18
        assert len(list_tokens()) == 5
        assert len({c.id for c in cards}) == 18
        assert not any(c.is_token for c in cards)
        assert all(t.is_token and t.kind == CardKind.CREATURE for t in list_tokens())

    def test_creatures_have_stats(self):
        for card in list_playable_cards():
            if card.kind == CardKind.CREATURE:
                assert card.attack is not None and card.health > 0
            else:
                assert card.attack is None

    def test_lookups(self):
        assert get_card("ancient-dragon").cost == 7
        assert get_card("dust-bunny") is None
        assert get_token("dust-bunny").health == 2
        assert get_token("ancient-dragon") is None
        assert find_card("dust-bunny").is_token
        assert find_card("ancient-dragon").name == "Ancient Dragon"
        assert find_card("no-such-card") is None

    def test_random_token_uses_rng(self):
        first = [draw_random_token(random.Random(3)).id for _ in range(3)]

        assert len(set(first)) == 1
        assert first[0] in {t.id for t in list_tokens()}


class TestSetup:
    """Shuffling and initial state."""

    def test_shuffle_is_permutation(self):
        cards = list_playable_cards()
        shuffled = shuffle_deck(cards, random.Random(1))

        assert sorted(c.id for c in shuffled) == sorted(c.id for c in cards)
        assert [c.id for c in cards] == [c.id for c in list_playable_cards()]

    def test_seeded_setup_is_deterministic(self):
        first = create_initial_state(random_seed=42)
        second = create_initial_state(random_seed=42)

        assert first.player == second.player
        assert first.opponent == second.opponent

    def test_initial_state(self):
        state = create_initial_state(DEFAULT_RULES, rng=random.Random(5))

        assert state.turn == 1
        assert state.current_player == Role.PLAYER
        assert state.phase == Phase.PLAYING
        assert state.winner is None
        for role in (Role.PLAYER, Role.OPPONENT):
            player_state = state.get_player(role)
            assert player_state.health == 30
            assert (player_state.mana, player_state.max_mana) == (1, 1)
            assert len(player_state.hand) == 4
            assert len(player_state.deck) == 14
            assert player_state.field == ()
        assert [e.narrative for e in state.log] == [OPENING_LINE]
        assert state.log[0].actor == "system"

    def test_single_play_has_no_mana(self):
        state = create_initial_state(SINGLE_PLAY, random_seed=1)

        assert (state.player.mana, state.opponent.max_mana) == (0, 0)
        assert not state.has_played_card
