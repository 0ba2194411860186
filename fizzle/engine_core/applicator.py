"""
Change Applicator - Applies ordered StateChange lists to game state.

The applicator is the single point where proposed changes touch state,
and it owns invariant enforcement:
- Role health is floored at 0 and capped at the configured maximum
- Shield absorbs damage before health
- A creature reaching 0 health leaves its field in the same change
- The win condition is checked after every change; once the game has
  ended the rest of the batch is not applied

Design principles:
- Pure function: (state, changes) -> new state
- Changes referencing missing creatures are silent no-ops
- Unknown change types are skipped, never raised
"""

from __future__ import annotations
import logging
import random
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable

from .state import (
    ActiveEffect,
    Card,
    Creature,
    EffectTargetKind,
    GameState,
    Phase,
    Role,
    ROLE_ORDER,
)
from .changes import ChangeType, StateChange

logger = logging.getLogger(__name__)


# =============================================================================
# Win condition
# =============================================================================

def check_win_condition(state: GameState) -> GameState:
    """
    End the game if either role has no health left.

    Roles are checked in fixed order: player first. When both are at 0,
    the player's check fires first, so the opponent wins the tie.
    """
    if state.is_over:
        return state
    for role in ROLE_ORDER:
        if state.get_player(role).health <= 0:
            return state._copy_with(phase=Phase.ENDED, winner=role.other)
    return state


# =============================================================================
# Primitive state operations (shared with the sequencer and effects)
# =============================================================================

def update_creature(
    state: GameState,
    instance_id: str,
    fn: Callable[[Creature], Creature | None],
) -> GameState | None:
    """
    Replace a creature in place via fn.

    fn returning None removes the creature. Returns None if the instance
    is not on either field.
    """
    found = state.find_creature(instance_id)
    if found is None:
        return None
    role, creature = found
    updated = fn(creature)
    if updated is None:
        return remove_creature(state, instance_id)
    player_state = state.get_player(role)
    new_field = tuple(updated if c.instance_id == instance_id else c for c in player_state.field)
    return state.with_player(role, player_state._copy_with(field=new_field))


def remove_creature(state: GameState, instance_id: str) -> GameState | None:
    """
    Remove a creature from whichever field holds it.

    Effects that target the creature are removed with it.
    Returns None if the instance is not on either field.
    """
    found = state.find_creature(instance_id)
    if found is None:
        return None
    role, _ = found
    player_state = state.get_player(role)
    new_field = tuple(c for c in player_state.field if c.instance_id != instance_id)
    new_state = state.with_player(role, player_state._copy_with(field=new_field))

    remaining = tuple(
        e for e in new_state.active_effects
        if not (e.target.kind == EffectTargetKind.CREATURE and e.target.instance_id == instance_id)
    )
    if len(remaining) != len(new_state.active_effects):
        new_state = new_state._copy_with(active_effects=remaining)
    return new_state


def damage_creature(state: GameState, instance_id: str, amount: int) -> GameState | None:
    """
    Deal damage to a creature, shield first.

    The creature is removed if its health drops to 0 or below.
    Returns None if the instance is not on either field.
    """
    amount = max(0, amount)

    def hit(creature: Creature) -> Creature | None:
        absorbed = min(creature.shield, amount)
        remaining = amount - absorbed
        new_health = creature.current_health - remaining
        if new_health <= 0:
            return None
        return replace(creature, shield=creature.shield - absorbed, current_health=new_health)

    return update_creature(state, instance_id, hit)


def damage_role(state: GameState, role: Role, amount: int) -> GameState:
    """Subtract health from a role, floored at 0."""
    player_state = state.get_player(role)
    new_health = max(0, player_state.health - max(0, amount))
    return state.with_player(role, player_state._copy_with(health=new_health))


def heal_role(state: GameState, role: Role, amount: int) -> GameState:
    """Add health to a role, capped at the configured maximum."""
    player_state = state.get_player(role)
    new_health = min(state.config.max_health, player_state.health + max(0, amount))
    return state.with_player(role, player_state._copy_with(health=new_health))


def draw_cards(state: GameState, role: Role, count: int = 1) -> GameState:
    """Move cards from the front of the deck to the back of the hand. Empty deck is a no-op."""
    player_state = state.get_player(role)
    count = max(0, min(count, len(player_state.deck)))
    if count == 0:
        return state
    drawn = player_state.deck[:count]
    return state.with_player(role, player_state._copy_with(
        deck=player_state.deck[count:],
        hand=player_state.hand + drawn,
    ))


def instantiate_creature(
    state: GameState,
    card: Card,
    role: Role,
    *,
    is_token: bool = False,
    attack: int | None = None,
    health: int | None = None,
) -> tuple[GameState, Creature]:
    """
    Place a new creature instance from a template onto a role's field.

    New instances always start unable to attack.
    """
    instance_id, state = state.new_instance_id(card.id)
    creature = Creature(
        instance_id=instance_id,
        card=card,
        current_attack=max(0, attack if attack is not None else (card.attack or 0)),
        current_health=max(1, health if health is not None else (card.health or 1)),
        can_attack=False,
        is_token=is_token or card.is_token,
    )
    player_state = state.get_player(role)
    state = state.with_player(role, player_state._copy_with(field=player_state.field + (creature,)))
    return state, creature


def add_active_effect(state: GameState, effect: ActiveEffect) -> GameState | None:
    """
    Register an ActiveEffect, assigning its id and creation turn.

    A creature-targeted effect is linked from the creature's applied
    effects. Returns None if the targeted creature does not exist.
    """
    effect_id, state = state.new_effect_id()
    effect = replace(effect, effect_id=effect_id, created_turn=state.turn)

    if effect.target.kind == EffectTargetKind.CREATURE:
        instance_id = effect.target.instance_id or ""
        state = update_creature(
            state,
            instance_id,
            lambda c: replace(c, applied_effects=c.applied_effects + (effect_id,)),
        )
        if state is None:
            return None

    return state._copy_with(active_effects=state.active_effects + (effect,))


def remove_active_effect(state: GameState, effect_id: str) -> GameState | None:
    """Remove an ActiveEffect and unlink it from its creature. None if unknown."""
    effect = state.get_effect(effect_id)
    if effect is None:
        return None
    state = state._copy_with(
        active_effects=tuple(e for e in state.active_effects if e.effect_id != effect_id)
    )
    if effect.target.kind == EffectTargetKind.CREATURE and effect.target.instance_id:
        unlinked = update_creature(
            state,
            effect.target.instance_id,
            lambda c: replace(c, applied_effects=tuple(i for i in c.applied_effects if i != effect_id)),
        )
        if unlinked is not None:
            state = unlinked
    return state


# =============================================================================
# Applicator
# =============================================================================

@dataclass
class ApplyOutcome:
    """
    Result of applying a batch of changes.

    applied lists the changes that took effect, in order, so that a
    presentation sink can replay them alongside the narration.
    """
    state: GameState
    applied: list[StateChange] = field(default_factory=list)
    skipped: list[StateChange] = field(default_factory=list)


@dataclass
class ChangeApplicator:
    """
    Applies StateChange lists to game state.

    Stateless apart from the random source used by discard.
    """
    rng: random.Random = field(default_factory=random.Random)

    def apply(self, state: GameState, changes: Iterable[StateChange]) -> ApplyOutcome:
        """
        Apply changes in the order given.

        Returns ApplyOutcome with the new state and which changes took effect.
        """
        changes = list(changes)
        outcome = ApplyOutcome(state=state)

        if state.is_over:
            outcome.skipped.extend(changes)
            return outcome

        for index, change in enumerate(changes):
            handler = self._get_handler(change.change_type)
            new_state = handler(outcome.state, change) if handler else None

            if new_state is None:
                logger.debug("Change had no effect: %s", change.to_dict())
                outcome.skipped.append(change)
                continue

            outcome.applied.append(change)
            outcome.state = check_win_condition(new_state)

            if outcome.state.is_over:
                outcome.skipped.extend(changes[index + 1:])
                break

        return outcome

    def _get_handler(self, change_type: ChangeType):
        """Get the handler function for a change type."""
        handlers = {
            ChangeType.DAMAGE: self._apply_damage,
            ChangeType.HEAL: self._apply_heal,
            ChangeType.DESTROY: self._apply_destroy,
            ChangeType.BUFF: self._apply_buff,
            ChangeType.DEBUFF: self._apply_debuff,
            ChangeType.DRAW: self._apply_draw,
            ChangeType.DISCARD: self._apply_discard,
            ChangeType.MILL: self._apply_mill,
            ChangeType.APPLY_STATUS: self._apply_status,
            ChangeType.REMOVE_STATUS: self._remove_status,
            ChangeType.ADD_SHIELD: self._apply_add_shield,
            ChangeType.SUMMON: self._apply_summon,
            ChangeType.STEAL_CREATURE: self._apply_steal,
            ChangeType.TRANSFORM: self._apply_transform,
            ChangeType.COPY_CREATURE: self._apply_copy,
            ChangeType.BOUNCE: self._apply_bounce,
            ChangeType.APPLY_EFFECT: self._apply_effect,
            ChangeType.REMOVE_EFFECT: self._remove_effect,
        }
        return handlers.get(change_type)

    def _apply_damage(self, state: GameState, change: StateChange) -> GameState | None:
        amount = change.value or 0
        if change.target_role is not None:
            return damage_role(state, change.target_role, amount)
        if change.target_instance is not None:
            return damage_creature(state, change.target_instance, amount)
        return None

    def _apply_heal(self, state: GameState, change: StateChange) -> GameState | None:
        if change.target_role is None:
            return None
        return heal_role(state, change.target_role, change.value or 0)

    def _apply_destroy(self, state: GameState, change: StateChange) -> GameState | None:
        if change.target_instance is None:
            return None
        return remove_creature(state, change.target_instance)

    def _adjust_stats(self, state: GameState, change: StateChange, sign: int) -> GameState | None:
        """Shared by buff/debuff: split deltas if either is given, else value on both."""
        if change.target_instance is None:
            return None
        if change.attack is not None or change.health is not None:
            attack_delta = change.attack or 0
            health_delta = change.health or 0
        else:
            attack_delta = health_delta = change.value or 0

        def adjust(creature: Creature) -> Creature | None:
            new_health = creature.current_health + sign * health_delta
            if new_health <= 0:
                return None
            return replace(
                creature,
                current_attack=max(0, creature.current_attack + sign * attack_delta),
                current_health=new_health,
            )

        return update_creature(state, change.target_instance, adjust)

    def _apply_buff(self, state: GameState, change: StateChange) -> GameState | None:
        return self._adjust_stats(state, change, 1)

    def _apply_debuff(self, state: GameState, change: StateChange) -> GameState | None:
        return self._adjust_stats(state, change, -1)

    def _apply_draw(self, state: GameState, change: StateChange) -> GameState | None:
        if change.target_role is None:
            return None
        count = change.value if change.value is not None else 1
        return draw_cards(state, change.target_role, count)

    def _apply_discard(self, state: GameState, change: StateChange) -> GameState | None:
        """Discard cards chosen uniformly at random from the hand."""
        if change.target_role is None:
            return None
        player_state = state.get_player(change.target_role)
        count = change.value if change.value is not None else 1
        count = max(0, min(count, len(player_state.hand)))
        discarded = set(self.rng.sample(range(len(player_state.hand)), count))
        new_hand = tuple(c for i, c in enumerate(player_state.hand) if i not in discarded)
        return state.with_player(change.target_role, player_state._copy_with(hand=new_hand))

    def _apply_mill(self, state: GameState, change: StateChange) -> GameState | None:
        if change.target_role is None:
            return None
        player_state = state.get_player(change.target_role)
        count = max(0, change.value if change.value is not None else 1)
        return state.with_player(change.target_role, player_state._copy_with(deck=player_state.deck[count:]))

    def _apply_status(self, state: GameState, change: StateChange) -> GameState | None:
        if change.target_instance is None or change.status is None:
            return None
        status = change.status
        return update_creature(state, change.target_instance, lambda c: c.with_status(status))

    def _remove_status(self, state: GameState, change: StateChange) -> GameState | None:
        if change.target_instance is None or change.status is None:
            return None
        status = change.status
        return update_creature(state, change.target_instance, lambda c: c.without_status(status))

    def _apply_add_shield(self, state: GameState, change: StateChange) -> GameState | None:
        if change.target_instance is None:
            return None
        amount = max(0, change.value or 0)
        return update_creature(state, change.target_instance, lambda c: replace(c, shield=c.shield + amount))

    def _apply_summon(self, state: GameState, change: StateChange) -> GameState | None:
        if change.target_role is None or change.card is None:
            return None
        new_state, _ = instantiate_creature(state, change.card, change.target_role, is_token=True)
        return new_state

    def _apply_steal(self, state: GameState, change: StateChange) -> GameState | None:
        if change.target_instance is None:
            return None
        found = state.find_creature(change.target_instance)
        if found is None:
            return None
        from_role, creature = found
        stolen = replace(
            creature,
            can_attack=False,
            original_owner=creature.original_owner or from_role,
        )
        # Removal keeps linked effects only if we restore them, so move by hand
        from_state = state.get_player(from_role)
        to_role = from_role.other
        to_state = state.get_player(to_role)
        state = state.with_player(from_role, from_state._copy_with(
            field=tuple(c for c in from_state.field if c.instance_id != creature.instance_id)
        ))
        return state.with_player(to_role, to_state._copy_with(field=to_state.field + (stolen,)))

    def _apply_transform(self, state: GameState, change: StateChange) -> GameState | None:
        """Replace a creature in place with a fresh instance of another template."""
        if change.target_instance is None or change.card is None:
            return None
        found = state.find_creature(change.target_instance)
        if found is None:
            return None
        role, old = found
        card = change.card
        instance_id, state = state.new_instance_id(card.id)
        new_creature = Creature(
            instance_id=instance_id,
            card=card,
            current_attack=max(0, card.attack or 0),
            current_health=max(1, card.health or 1),
            can_attack=False,
            original_owner=old.original_owner,
            is_token=old.is_token,
        )
        player_state = state.get_player(role)
        new_field = tuple(new_creature if c.instance_id == old.instance_id else c for c in player_state.field)
        state = state.with_player(role, player_state._copy_with(field=new_field))
        # The old identity is gone, so are effects aimed at it
        return state._copy_with(active_effects=tuple(
            e for e in state.active_effects
            if not (e.target.kind == EffectTargetKind.CREATURE and e.target.instance_id == old.instance_id)
        ))

    def _apply_copy(self, state: GameState, change: StateChange) -> GameState | None:
        if change.target_instance is None:
            return None
        found = state.find_creature(change.target_instance)
        if found is None:
            return None
        side, original = found
        new_state, _ = instantiate_creature(
            state,
            original.card,
            change.owner or side,
            is_token=True,
            attack=original.current_attack,
            health=original.current_health,
        )
        return new_state

    def _apply_bounce(self, state: GameState, change: StateChange) -> GameState | None:
        """Return a creature to its owner's hand as a plain card; tokens vanish."""
        if change.target_instance is None:
            return None
        found = state.find_creature(change.target_instance)
        if found is None:
            return None
        side, creature = found
        state = remove_creature(state, creature.instance_id)
        if creature.is_token or creature.card.is_token:
            return state
        owner = creature.original_owner or side
        owner_state = state.get_player(owner)
        return state.with_player(owner, owner_state._copy_with(hand=owner_state.hand + (creature.card,)))

    def _apply_effect(self, state: GameState, change: StateChange) -> GameState | None:
        if change.effect is None:
            return None
        return add_active_effect(state, change.effect)

    def _remove_effect(self, state: GameState, change: StateChange) -> GameState | None:
        if change.effect_id is None:
            return None
        return remove_active_effect(state, change.effect_id)


def apply_changes(
    state: GameState,
    changes: Iterable[StateChange],
    rng: random.Random | None = None,
) -> GameState:
    """
    Convenience function to apply changes.

    Creates a ChangeApplicator and returns only the new state.
    """
    applicator = ChangeApplicator(rng=rng or random.Random())
    return applicator.apply(state, changes).state
