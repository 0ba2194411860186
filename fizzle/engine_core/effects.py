"""
Effect Lifecycle - Delayed and persistent effects.

ActiveEffects are created by apply_effect changes and live on GameState
until their counter runs out or their target creature leaves play.
When a trigger fires for a role, each matching effect is translated into
ordinary StateChanges and fed through the ChangeApplicator, so effects
obey exactly the same invariants as proposer-supplied changes.

prevent_attack and modify_cost effects never produce changes; they are
layered over the base rules by can_creature_attack and get_effective_cost.
"""

from __future__ import annotations
import logging
import random
from dataclasses import dataclass, field, replace

from .state import (
    ActiveEffect,
    Card,
    EffectTargetKind,
    EffectTrigger,
    EffectType,
    GameState,
    Role,
    ROLE_ORDER,
    StatusEffect,
)
from .changes import CreatureRef, RoleTarget, StateChange, Target, parse_changes
from .applicator import ChangeApplicator, remove_active_effect

logger = logging.getLogger(__name__)


@dataclass
class EffectResult:
    """What one effect did when its trigger fired."""
    effect_id: str
    name: str
    applied: list[StateChange] = field(default_factory=list)
    expired: bool = False

    def to_dict(self) -> dict:
        return {
            "effectId": self.effect_id,
            "name": self.name,
            "changes": [c.to_dict() for c in self.applied],
            "expired": self.expired,
        }


def _resolve_targets(state: GameState, effect: ActiveEffect) -> list[Target]:
    """Expand an effect's target descriptor into concrete change targets."""
    target = effect.target
    if target.kind == EffectTargetKind.PLAYER:
        return [RoleTarget(target.role or effect.owner)]
    if target.kind == EffectTargetKind.CREATURE:
        return [CreatureRef(target.instance_id)] if target.instance_id else []

    sides = [target.role] if target.kind == EffectTargetKind.ALL_CREATURES and target.role else list(ROLE_ORDER)
    targets: list[Target] = []
    if target.kind == EffectTargetKind.GLOBAL:
        targets.extend(RoleTarget(role) for role in ROLE_ORDER)
    for side in sides:
        targets.extend(CreatureRef(c.instance_id) for c in state.get_player(side).field)
    return targets


def effect_to_changes(state: GameState, effect: ActiveEffect) -> list[StateChange]:
    """
    Translate one firing of an effect into StateChanges.

    Creature targets are resolved against the state at the moment the
    trigger fires; creatures that die mid-batch become no-ops.
    """
    etype = effect.effect_type
    magnitude = effect.magnitude

    if etype in (EffectType.PREVENT_ATTACK, EffectType.MODIFY_COST):
        return []

    if etype == EffectType.DRAW:
        return [StateChange.draw(effect.owner, magnitude or 1)]

    if etype == EffectType.CUSTOM:
        from ..catalog import find_card
        return parse_changes(effect.payload.get("changes"), default_role=effect.owner, card_lookup=find_card)

    changes: list[StateChange] = []
    for target in _resolve_targets(state, effect):
        if etype == EffectType.DAMAGE:
            changes.append(StateChange.damage(target, magnitude))
        elif etype == EffectType.HEAL:
            if isinstance(target, RoleTarget):
                changes.append(StateChange.heal(target.role, magnitude))
            else:
                changes.append(StateChange.buff(target.instance_id, attack=0, health=magnitude))
        elif etype in (EffectType.BUFF, EffectType.DEBUFF) and isinstance(target, CreatureRef):
            attack = effect.payload.get("attack")
            health = effect.payload.get("health")
            factory = StateChange.buff if etype == EffectType.BUFF else StateChange.debuff
            if attack is None and health is None:
                changes.append(factory(target.instance_id, value=magnitude))
            else:
                changes.append(factory(target.instance_id, attack=attack, health=health))
    return changes


def _decrement(state: GameState, effect: ActiveEffect) -> tuple[GameState, bool]:
    """Count one firing against an effect. Returns (state, expired)."""
    if effect.turns_remaining is None:
        return state, False
    remaining = effect.turns_remaining - 1
    if remaining <= 0:
        return remove_active_effect(state, effect.effect_id) or state, True
    updated = replace(effect, turns_remaining=remaining)
    return state._copy_with(active_effects=tuple(
        updated if e.effect_id == effect.effect_id else e for e in state.active_effects
    )), False


def process_effect_trigger(
    state: GameState,
    trigger: EffectTrigger,
    role: Role,
    rng: random.Random | None = None,
) -> tuple[GameState, list[EffectResult]]:
    """
    Fire every effect owned by role with the given trigger.

    Effects fire in creation order. Each firing is applied through the
    ChangeApplicator, then the effect's counter is decremented and the
    effect removed when it reaches zero. Stops as soon as the game ends.
    """
    applicator = ChangeApplicator(rng=rng or random.Random())
    results: list[EffectResult] = []

    matching = [e.effect_id for e in state.active_effects if e.trigger == trigger and e.owner == role]
    for effect_id in matching:
        if state.is_over:
            break
        # An earlier effect may have removed this one (e.g. its creature died)
        effect = state.get_effect(effect_id)
        if effect is None:
            continue

        outcome = applicator.apply(state, effect_to_changes(state, effect))
        state = outcome.state
        result = EffectResult(effect_id=effect.effect_id, name=effect.name, applied=outcome.applied)

        current = state.get_effect(effect_id)
        if current is not None:
            state, result.expired = _decrement(state, current)
        else:
            result.expired = True

        logger.debug("Effect %s (%s) fired: %d changes", effect.name, trigger.value, len(outcome.applied))
        results.append(result)

    return state, results


def tick_passive_effects(state: GameState, role: Role) -> GameState:
    """Count down passive effects owned by role; permanent ones are untouched."""
    for effect in list(state.active_effects):
        if effect.trigger == EffectTrigger.PASSIVE and effect.owner == role:
            state, _ = _decrement(state, effect)
    return state


def _effect_covers_creature(state: GameState, effect: ActiveEffect, instance_id: str) -> bool:
    target = effect.target
    if target.kind == EffectTargetKind.GLOBAL:
        return True
    if target.kind == EffectTargetKind.CREATURE:
        return target.instance_id == instance_id
    if target.kind == EffectTargetKind.ALL_CREATURES:
        if target.role is None:
            return True
        return state.get_player(target.role).find_creature(instance_id) is not None
    return False


def can_creature_attack(state: GameState, instance_id: str) -> bool:
    """
    Whether a creature may attack right now.

    Combines the base flags (can_attack, not frozen) with any
    prevent_attack effects covering the creature.
    """
    found = state.find_creature(instance_id)
    if found is None:
        return False
    _, creature = found
    if not creature.can_attack or creature.has_status(StatusEffect.FROZEN):
        return False
    for effect in state.active_effects:
        if effect.effect_type == EffectType.PREVENT_ATTACK and _effect_covers_creature(state, effect, instance_id):
            return False
    return True


def get_effective_cost(state: GameState, role: Role, card: Card) -> int:
    """
    A card's cost for role after modify_cost effects, floored at 0.

    An effect applies when it targets the role (or is global). A
    payload "cardType" restricts it to creatures or spells.
    """
    cost = card.cost
    for effect in state.active_effects:
        if effect.effect_type != EffectType.MODIFY_COST:
            continue
        target = effect.target
        applies = target.kind == EffectTargetKind.GLOBAL or (
            target.kind == EffectTargetKind.PLAYER and (target.role or effect.owner) == role
        )
        card_type = effect.payload.get("cardType")
        if card_type and card_type != card.kind.value:
            applies = False
        if applies:
            cost += effect.magnitude
    return max(0, cost)
