"""
Tests for the change applicator.

Tests:
- Health floor/cap and the win check
- Shield, death and no-op handling
- Every change type
- Mid-batch game end
"""

import random

import pytest

from ..engine_core.state import EffectTarget, EffectType, Phase, Role, StatusEffect
from ..engine_core.changes import CreatureRef, RoleTarget, StateChange
from ..engine_core.applicator import ChangeApplicator, apply_changes, check_win_condition
from .conftest import card, creature, effect, make_state, with_effects


@pytest.fixture
def applicator():
    return ChangeApplicator(rng=random.Random(3))


class TestRoleHealth:
    """Damage and heal on roles."""

    def test_damage_is_floored_at_zero(self, applicator):
        state = make_state(opponent_health=4)
        outcome = applicator.apply(state, [StateChange.damage(RoleTarget(Role.OPPONENT), 9)])

        assert outcome.state.opponent.health == 0

    def test_repeated_damage_sums(self):
        state = make_state()
        changes = [StateChange.damage(RoleTarget(Role.PLAYER), v) for v in (3, 4, 5)]

        assert apply_changes(state, changes).player.health == 18

    def test_heal_is_capped(self, applicator):
        state = make_state(player_health=27)
        outcome = applicator.apply(state, [StateChange.heal(Role.PLAYER, 10)])

        assert outcome.state.player.health == 30

    def test_lethal_damage_ends_game(self, applicator):
        state = make_state(opponent_health=3)
        outcome = applicator.apply(state, [StateChange.damage(RoleTarget(Role.OPPONENT), 3)])

        assert outcome.state.phase == Phase.ENDED
        assert outcome.state.winner == Role.PLAYER

    def test_lethal_damage_stops_the_batch(self, applicator):
        """Nothing after the lethal change is applied."""
        state = make_state(opponent_health=2)
        changes = [
            StateChange.damage(RoleTarget(Role.OPPONENT), 5),
            StateChange.heal(Role.OPPONENT, 10),
            StateChange.damage(RoleTarget(Role.PLAYER), 5),
        ]
        outcome = applicator.apply(state, changes)

        assert outcome.state.opponent.health == 0
        assert outcome.state.player.health == 30
        assert outcome.applied == changes[:1]
        assert outcome.skipped == changes[1:]

    def test_apply_on_ended_state_is_noop(self, applicator):
        state = make_state(opponent_health=0, phase=Phase.ENDED, winner=Role.PLAYER)
        change = StateChange.heal(Role.OPPONENT, 5)
        outcome = applicator.apply(state, [change])

        assert outcome.state is state
        assert outcome.skipped == [change]

    def test_tie_goes_to_opponent(self):
        """Player is checked first, so both at zero means the player lost."""
        state = make_state(player_health=0, opponent_health=0)
        ended = check_win_condition(state)

        assert ended.phase == Phase.ENDED
        assert ended.winner == Role.OPPONENT


class TestCreatureDamage:
    """Shield, death and missing creatures."""

    def test_shield_absorbs_first(self, applicator):
        state = make_state(player_field=[creature("angry-squirrel", 1, health=2, shield=1)])
        outcome = applicator.apply(state, [StateChange.damage(CreatureRef("angry-squirrel-1"), 3)])

        survivor = outcome.state.player.find_creature("angry-squirrel-1")
        assert survivor.shield == 0
        assert survivor.current_health == 1

    def test_shield_larger_than_damage_keeps_health(self, applicator):
        state = make_state(player_field=[creature("angry-squirrel", 1, health=2, shield=5)])
        outcome = applicator.apply(state, [StateChange.damage(CreatureRef("angry-squirrel-1"), 3)])

        survivor = outcome.state.player.find_creature("angry-squirrel-1")
        assert survivor.shield == 2
        assert survivor.current_health == 2

    def test_creature_at_zero_is_removed(self, applicator):
        state = make_state(player_field=[creature("angry-squirrel", 1, health=2)])
        changes = [
            StateChange.damage(CreatureRef("angry-squirrel-1"), 2),
            StateChange.destroy("angry-squirrel-1"),
        ]
        outcome = applicator.apply(state, changes)

        assert outcome.state.player.field == ()
        # The destroy found nothing to do
        assert outcome.skipped == changes[1:]

    def test_missing_creature_is_silent_noop(self, applicator):
        state = make_state()
        change = StateChange.damage(CreatureRef("ghost-1"), 3)
        outcome = applicator.apply(state, [change])

        assert outcome.state == state
        assert outcome.skipped == [change]


class TestStatChanges:
    """Buff and debuff."""

    def test_buff_single_value_hits_both_stats(self, applicator):
        state = make_state(player_field=[creature("angry-squirrel", 1)])
        outcome = applicator.apply(state, [StateChange.buff("angry-squirrel-1", value=2)])

        buffed = outcome.state.player.find_creature("angry-squirrel-1")
        assert (buffed.current_attack, buffed.current_health) == (4, 3)

    def test_buff_split_deltas(self, applicator):
        state = make_state(player_field=[creature("angry-squirrel", 1)])
        outcome = applicator.apply(state, [StateChange.buff("angry-squirrel-1", attack=3)])

        buffed = outcome.state.player.find_creature("angry-squirrel-1")
        assert (buffed.current_attack, buffed.current_health) == (5, 1)

    def test_debuff_floors_attack(self, applicator):
        state = make_state(opponent_field=[creature("philosophical-crab", 1)])
        outcome = applicator.apply(state, [StateChange.debuff("philosophical-crab-1", attack=5, health=1)])

        crab = outcome.state.opponent.find_creature("philosophical-crab-1")
        assert crab.current_attack == 0
        assert crab.current_health == 3

    def test_debuff_to_zero_health_removes(self, applicator):
        state = make_state(opponent_field=[creature("angry-squirrel", 1)])
        outcome = applicator.apply(state, [StateChange.debuff("angry-squirrel-1", value=1)])

        assert outcome.state.opponent.field == ()


class TestCards:
    """Draw, discard and mill."""

    def test_draw_moves_front_of_deck(self, applicator):
        state = make_state(player_deck=["angry-squirrel", "ancient-dragon", "sleepy-giant"])
        outcome = applicator.apply(state, [StateChange.draw(Role.PLAYER, 2)])

        assert [c.id for c in outcome.state.player.hand] == ["angry-squirrel", "ancient-dragon"]
        assert [c.id for c in outcome.state.player.deck] == ["sleepy-giant"]

    def test_draw_from_empty_deck_is_noop(self, applicator):
        state = make_state(player_hand=["angry-squirrel"])
        outcome = applicator.apply(state, [StateChange.draw(Role.PLAYER, 3)])

        assert outcome.state.player.hand == state.player.hand

    def test_discard_removes_random_cards(self, applicator):
        state = make_state(player_hand=["angry-squirrel", "ancient-dragon", "sleepy-giant"])
        outcome = applicator.apply(state, [StateChange.discard(Role.PLAYER, 2)])

        hand = outcome.state.player.hand
        assert len(hand) == 1
        assert hand[0] in state.player.hand

    def test_discard_more_than_hand(self, applicator):
        state = make_state(player_hand=["angry-squirrel"])
        outcome = applicator.apply(state, [StateChange.discard(Role.PLAYER, 4)])

        assert outcome.state.player.hand == ()

    def test_mill_removes_from_deck(self, applicator):
        state = make_state(opponent_deck=["angry-squirrel", "ancient-dragon", "sleepy-giant"])
        outcome = applicator.apply(state, [StateChange.mill(Role.OPPONENT, 2)])

        assert [c.id for c in outcome.state.opponent.deck] == ["sleepy-giant"]
        assert outcome.state.opponent.hand == ()


class TestStatuses:
    """Status and shield changes."""

    def test_status_is_not_duplicated(self, applicator):
        state = make_state(player_field=[creature("philosophical-crab", 1)])
        changes = [StateChange.apply_status("philosophical-crab-1", StatusEffect.TAUNT)] * 2
        outcome = applicator.apply(state, changes)

        assert outcome.state.player.find_creature("philosophical-crab-1").statuses == (StatusEffect.TAUNT,)

    def test_remove_status(self, applicator):
        state = make_state(player_field=[creature("angry-squirrel", 1, statuses=(StatusEffect.FROZEN,))])
        outcome = applicator.apply(state, [StateChange.remove_status("angry-squirrel-1", StatusEffect.FROZEN)])

        assert outcome.state.player.find_creature("angry-squirrel-1").statuses == ()

    def test_add_shield_accumulates(self, applicator):
        state = make_state(player_field=[creature("angry-squirrel", 1, shield=1)])
        outcome = applicator.apply(state, [StateChange.add_shield("angry-squirrel-1", 2)])

        assert outcome.state.player.find_creature("angry-squirrel-1").shield == 3


class TestFieldChanges:
    """Summon, steal, transform, copy and bounce."""

    def test_summon_places_token_that_cannot_attack(self, applicator):
        state = make_state()
        outcome = applicator.apply(state, [StateChange.summon(Role.PLAYER, card("squirrel-reinforcement"))])

        (token,) = outcome.state.player.field
        assert token.instance_id == "squirrel-reinforcement-100"
        assert token.is_token
        assert not token.can_attack
        assert outcome.state.next_instance_seq == 101

    def test_steal_moves_creature(self, applicator):
        state = make_state(opponent_field=[creature("ancient-dragon", 1)])
        outcome = applicator.apply(state, [StateChange.steal("ancient-dragon-1")])

        assert outcome.state.opponent.field == ()
        stolen = outcome.state.player.find_creature("ancient-dragon-1")
        assert stolen.original_owner == Role.OPPONENT
        assert not stolen.can_attack

    def test_transform_regenerates_identity(self, applicator):
        target = EffectTarget.creature("ancient-dragon-1")
        state = with_effects(
            make_state(opponent_field=[creature("ancient-dragon", 1, attack=9)]),
            effect(EffectType.DAMAGE, target),
        )
        outcome = applicator.apply(state, [StateChange.transform("ancient-dragon-1", card("dust-bunny"))])

        (bunny,) = outcome.state.opponent.field
        assert bunny.instance_id == "dust-bunny-100"
        assert (bunny.current_attack, bunny.current_health) == (0, 2)
        assert not bunny.can_attack
        assert outcome.state.active_effects == ()

    def test_copy_uses_current_stats(self, applicator):
        state = make_state(player_field=[creature("angry-squirrel", 1, attack=5, health=3)])
        outcome = applicator.apply(state, [StateChange.copy("angry-squirrel-1")])

        original, copy = outcome.state.player.field
        assert copy.instance_id == "angry-squirrel-100"
        assert (copy.current_attack, copy.current_health) == (5, 3)
        assert copy.is_token
        assert not copy.can_attack

    def test_copy_to_other_side(self, applicator):
        state = make_state(opponent_field=[creature("ancient-dragon", 1)])
        outcome = applicator.apply(state, [StateChange.copy("ancient-dragon-1", owner=Role.PLAYER)])

        assert [c.card_id for c in outcome.state.player.field] == ["ancient-dragon"]
        assert len(outcome.state.opponent.field) == 1

    def test_bounce_returns_card_to_hand(self, applicator):
        state = make_state(opponent_field=[creature("ancient-dragon", 1)])
        outcome = applicator.apply(state, [StateChange.bounce("ancient-dragon-1")])

        assert outcome.state.opponent.field == ()
        assert [c.id for c in outcome.state.opponent.hand] == ["ancient-dragon"]

    def test_bounce_stolen_goes_to_original_owner(self, applicator):
        state = make_state(player_field=[creature("ancient-dragon", 1, original_owner=Role.OPPONENT)])
        outcome = applicator.apply(state, [StateChange.bounce("ancient-dragon-1")])

        assert outcome.state.player.hand == ()
        assert [c.id for c in outcome.state.opponent.hand] == ["ancient-dragon"]

    def test_bounced_token_vanishes(self, applicator):
        state = make_state(player_field=[creature("tiny-dragon", 1)])
        outcome = applicator.apply(state, [StateChange.bounce("tiny-dragon-1")])

        assert outcome.state.player.field == ()
        assert outcome.state.player.hand == ()


class TestEffectChanges:
    """apply_effect and remove_effect."""

    def test_apply_effect_assigns_id_and_links(self, applicator):
        state = make_state(player_field=[creature("angry-squirrel", 1)], turn=4)
        template = effect(EffectType.BUFF, EffectTarget.creature("angry-squirrel-1"), turns_remaining=2)
        outcome = applicator.apply(state, [StateChange.apply_effect(template)])

        (installed,) = outcome.state.active_effects
        assert installed.effect_id == "effect-1"
        assert installed.created_turn == 4
        assert outcome.state.player.find_creature("angry-squirrel-1").applied_effects == ("effect-1",)

    def test_apply_effect_on_missing_creature_is_noop(self, applicator):
        state = make_state()
        template = effect(EffectType.BUFF, EffectTarget.creature("ghost-1"))
        outcome = applicator.apply(state, [StateChange.apply_effect(template)])

        assert outcome.state.active_effects == ()
        assert len(outcome.skipped) == 1

    def test_remove_effect_unlinks(self, applicator):
        state = make_state(player_field=[creature("angry-squirrel", 1)])
        template = effect(EffectType.BUFF, EffectTarget.creature("angry-squirrel-1"))
        state = applicator.apply(state, [StateChange.apply_effect(template)]).state
        outcome = applicator.apply(state, [StateChange.remove_effect("effect-1")])

        assert outcome.state.active_effects == ()
        assert outcome.state.player.find_creature("angry-squirrel-1").applied_effects == ()

    def test_destroy_purges_effects_on_creature(self, applicator):
        state = with_effects(
            make_state(player_field=[creature("angry-squirrel", 1)]),
            effect(EffectType.BUFF, EffectTarget.creature("angry-squirrel-1")),
            effect(EffectType.DAMAGE, EffectTarget.player(Role.OPPONENT)),
        )
        outcome = applicator.apply(state, [StateChange.destroy("angry-squirrel-1")])

        assert [e.effect_id for e in outcome.state.active_effects] == ["effect-2"]
