"""
State Changes - The atomic vocabulary through which proposals mutate state.

A StateChange is a tagged record: change_type selects the operation and
target is resolved once, at construction, to either a role or a creature
instance. Raw proposer output (dicts decoded from JSON) is converted with
parse_changes(), which drops anything it cannot understand.

Change Types:
- damage, heal, destroy, buff, debuff
- draw, discard, mill
- apply_status, remove_status, add_shield
- summon, steal_creature, transform, copy_creature, bounce
- apply_effect, remove_effect
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Union

from .state import (
    ActiveEffect,
    Card,
    CardKind,
    EffectTarget,
    EffectTargetKind,
    EffectTrigger,
    EffectType,
    Role,
    StatusEffect,
)

logger = logging.getLogger(__name__)


class ChangeType(Enum):
    DAMAGE = "damage"
    HEAL = "heal"
    DESTROY = "destroy"
    BUFF = "buff"
    DEBUFF = "debuff"
    DRAW = "draw"
    DISCARD = "discard"
    MILL = "mill"
    APPLY_STATUS = "apply_status"
    REMOVE_STATUS = "remove_status"
    ADD_SHIELD = "add_shield"
    SUMMON = "summon"
    STEAL_CREATURE = "steal_creature"
    TRANSFORM = "transform"
    COPY_CREATURE = "copy_creature"
    BOUNCE = "bounce"
    APPLY_EFFECT = "apply_effect"
    REMOVE_EFFECT = "remove_effect"


@dataclass(frozen=True)
class RoleTarget:
    """A change aimed at a role (its health, hand, deck or field)."""
    role: Role

    def to_dict(self) -> dict[str, Any]:
        return {"target": self.role.value}


@dataclass(frozen=True)
class CreatureRef:
    """A change aimed at one creature instance, wherever it stands."""
    instance_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"target": "creature", "targetId": self.instance_id}


Target = Union[RoleTarget, CreatureRef]


@dataclass(frozen=True)
class StateChange:
    """
    One atomic instruction for the applicator.

    Only the fields relevant to change_type are set.

    Examples:
        StateChange.damage(RoleTarget(Role.OPPONENT), 3)
        StateChange.buff(CreatureRef("angry-squirrel-4"), attack=2, health=1)
        StateChange.summon(Role.PLAYER, squirrel_token)
    """
    change_type: ChangeType
    target: Target | None = None
    value: int | None = None
    attack: int | None = None  # Split buff/debuff deltas
    health: int | None = None
    status: StatusEffect | None = None
    card: Card | None = None  # Template for summon/transform
    owner: Role | None = None  # Destination field for copy_creature
    effect: ActiveEffect | None = None  # For apply_effect; id assigned on apply
    effect_id: str | None = None  # For remove_effect

    @property
    def target_role(self) -> Role | None:
        return self.target.role if isinstance(self.target, RoleTarget) else None

    @property
    def target_instance(self) -> str | None:
        return self.target.instance_id if isinstance(self.target, CreatureRef) else None

    @classmethod
    def damage(cls, target: Target, value: int) -> StateChange:
        return cls(change_type=ChangeType.DAMAGE, target=target, value=value)

    @classmethod
    def heal(cls, role: Role, value: int) -> StateChange:
        return cls(change_type=ChangeType.HEAL, target=RoleTarget(role), value=value)

    @classmethod
    def destroy(cls, instance_id: str) -> StateChange:
        return cls(change_type=ChangeType.DESTROY, target=CreatureRef(instance_id))

    @classmethod
    def buff(
        cls,
        instance_id: str,
        value: int | None = None,
        attack: int | None = None,
        health: int | None = None,
    ) -> StateChange:
        return cls(
            change_type=ChangeType.BUFF,
            target=CreatureRef(instance_id),
            value=value,
            attack=attack,
            health=health,
        )

    @classmethod
    def debuff(
        cls,
        instance_id: str,
        value: int | None = None,
        attack: int | None = None,
        health: int | None = None,
    ) -> StateChange:
        return cls(
            change_type=ChangeType.DEBUFF,
            target=CreatureRef(instance_id),
            value=value,
            attack=attack,
            health=health,
        )

    @classmethod
    def draw(cls, role: Role, count: int = 1) -> StateChange:
        return cls(change_type=ChangeType.DRAW, target=RoleTarget(role), value=count)

    @classmethod
    def discard(cls, role: Role, count: int = 1) -> StateChange:
        return cls(change_type=ChangeType.DISCARD, target=RoleTarget(role), value=count)

    @classmethod
    def mill(cls, role: Role, count: int = 1) -> StateChange:
        return cls(change_type=ChangeType.MILL, target=RoleTarget(role), value=count)

    @classmethod
    def apply_status(cls, instance_id: str, status: StatusEffect) -> StateChange:
        return cls(change_type=ChangeType.APPLY_STATUS, target=CreatureRef(instance_id), status=status)

    @classmethod
    def remove_status(cls, instance_id: str, status: StatusEffect) -> StateChange:
        return cls(change_type=ChangeType.REMOVE_STATUS, target=CreatureRef(instance_id), status=status)

    @classmethod
    def add_shield(cls, instance_id: str, value: int) -> StateChange:
        return cls(change_type=ChangeType.ADD_SHIELD, target=CreatureRef(instance_id), value=value)

    @classmethod
    def summon(cls, role: Role, card: Card) -> StateChange:
        return cls(change_type=ChangeType.SUMMON, target=RoleTarget(role), card=card)

    @classmethod
    def steal(cls, instance_id: str) -> StateChange:
        return cls(change_type=ChangeType.STEAL_CREATURE, target=CreatureRef(instance_id))

    @classmethod
    def transform(cls, instance_id: str, card: Card) -> StateChange:
        return cls(change_type=ChangeType.TRANSFORM, target=CreatureRef(instance_id), card=card)

    @classmethod
    def copy(cls, instance_id: str, owner: Role | None = None) -> StateChange:
        return cls(change_type=ChangeType.COPY_CREATURE, target=CreatureRef(instance_id), owner=owner)

    @classmethod
    def bounce(cls, instance_id: str) -> StateChange:
        return cls(change_type=ChangeType.BOUNCE, target=CreatureRef(instance_id))

    @classmethod
    def apply_effect(cls, effect: ActiveEffect) -> StateChange:
        target: Target | None = None
        if effect.target.kind == EffectTargetKind.CREATURE and effect.target.instance_id:
            target = CreatureRef(effect.target.instance_id)
        elif effect.target.kind == EffectTargetKind.PLAYER and effect.target.role:
            target = RoleTarget(effect.target.role)
        return cls(change_type=ChangeType.APPLY_EFFECT, target=target, effect=effect)

    @classmethod
    def remove_effect(cls, effect_id: str) -> StateChange:
        return cls(change_type=ChangeType.REMOVE_EFFECT, effect_id=effect_id)

    def to_dict(self) -> dict[str, Any]:
        """Wire form, as consumed by presentation sinks."""
        data: dict[str, Any] = {"type": self.change_type.value}
        if self.target is not None:
            data.update(self.target.to_dict())
        if self.value is not None:
            data["value"] = self.value
        if self.attack is not None:
            data["attack"] = self.attack
        if self.health is not None:
            data["health"] = self.health
        if self.status is not None:
            data["status"] = self.status.value
        if self.card is not None:
            data["card"] = self.card.to_dict()
        if self.owner is not None:
            data["owner"] = self.owner.value
        if self.effect is not None:
            data["effect"] = self.effect.to_dict()
        if self.effect_id is not None:
            data["effectId"] = self.effect_id
        return data


CardLookup = Callable[[str], Union[Card, None]]

# Changes that need a creature instance as target
_CREATURE_TARGETED = {
    ChangeType.DESTROY,
    ChangeType.BUFF,
    ChangeType.DEBUFF,
    ChangeType.APPLY_STATUS,
    ChangeType.REMOVE_STATUS,
    ChangeType.ADD_SHIELD,
    ChangeType.STEAL_CREATURE,
    ChangeType.TRANSFORM,
    ChangeType.COPY_CREATURE,
    ChangeType.BOUNCE,
}

# Changes that need a role as target
_ROLE_TARGETED = {
    ChangeType.HEAL,
    ChangeType.DRAW,
    ChangeType.DISCARD,
    ChangeType.MILL,
    ChangeType.SUMMON,
}


def parse_role(value: Any) -> Role | None:
    """Parse a role name; returns None for anything else."""
    if isinstance(value, Role):
        return value
    if isinstance(value, str):
        try:
            return Role(value.strip().lower())
        except ValueError:
            return None
    return None


def _parse_int(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got {value!r}")
    return int(value)


def _parse_target(data: dict[str, Any], default_role: Role | None) -> Target | None:
    """
    Resolve the wire target fields into a Target.

    Accepts {"target": "player"|"opponent"} or
    {"target": "creature", "targetId": "..."}; a bare targetId also counts
    as a creature reference.
    """
    raw_target = data.get("target")
    target_id = data.get("targetId") or data.get("target_id")

    role = parse_role(raw_target)
    if role is not None:
        return RoleTarget(role)
    if target_id:
        return CreatureRef(str(target_id))
    if default_role is not None:
        return RoleTarget(default_role)
    return None


def card_from_payload(raw: Any, card_lookup: CardLookup | None = None) -> Card | None:
    """
    Build a card template from a proposer payload.

    A string is looked up by id. A dict is looked up by its "id" first and
    otherwise becomes an ad hoc token creature from its name and stats.
    """
    if raw is None:
        return None
    if isinstance(raw, Card):
        return raw
    if isinstance(raw, str):
        return card_lookup(raw) if card_lookup else None
    if not isinstance(raw, dict):
        raise ValueError(f"Unsupported card payload: {raw!r}")

    card_id = raw.get("id")
    if card_id and card_lookup:
        known = card_lookup(str(card_id))
        if known is not None:
            return known

    stats = raw.get("baseStats")
    if not isinstance(stats, dict):
        stats = {}
    attack = _parse_int(stats.get("attack", raw.get("attack", 1)))
    health = _parse_int(stats.get("health", raw.get("health", 1)))
    name = str(raw.get("name") or card_id or "Mysterious Token")
    return Card(
        id=str(card_id or name.lower().replace(" ", "-")),
        name=name,
        flavor=str(raw.get("flavor", "")),
        cost=_parse_int(raw.get("cost", 0)) or 0,
        kind=CardKind.CREATURE,
        attack=max(0, attack or 0),
        health=max(1, health or 1),
        is_token=True,
    )


def _effect_payload(raw: Any) -> dict[str, Any]:
    """Copy an effect payload, coercing stat deltas to ints and checking nested changes is a list."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Unsupported effect payload: {raw!r}")
    payload = dict(raw)
    for key in ("attack", "health"):
        if key in payload:
            payload[key] = _parse_int(payload[key])
    if payload.get("changes") is not None and not isinstance(payload["changes"], list):
        raise ValueError("Effect payload changes must be a list")
    return payload


def effect_from_payload(raw: dict[str, Any], default_role: Role | None) -> ActiveEffect:
    """
    Build an ActiveEffect (without a real id) from a proposer payload.

    The applicator assigns effect_id and created_turn when it is applied.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Unsupported effect payload: {raw!r}")

    owner = parse_role(raw.get("owner")) or default_role
    if owner is None:
        raise ValueError("Effect has no owner")

    target_data = raw.get("target") or {}
    if isinstance(target_data, str):
        target_data = {"type": target_data}
    if not isinstance(target_data, dict):
        raise ValueError(f"Unsupported effect target: {target_data!r}")
    kind = EffectTargetKind(target_data.get("type", "player"))
    target_role = parse_role(target_data.get("role") or target_data.get("side"))
    if kind == EffectTargetKind.PLAYER:
        target = EffectTarget.player(target_role or owner)
    elif kind == EffectTargetKind.CREATURE:
        instance_id = target_data.get("instanceId") or target_data.get("targetId")
        if not instance_id:
            raise ValueError("Creature effect target missing instanceId")
        target = EffectTarget.creature(str(instance_id))
    elif kind == EffectTargetKind.ALL_CREATURES:
        target = EffectTarget.all_creatures(target_role)
    else:
        target = EffectTarget.everything()

    turns = raw.get("turnsRemaining", raw.get("duration"))
    return ActiveEffect(
        effect_id="",
        name=str(raw.get("name", "Lingering Effect")),
        description=str(raw.get("description", "")),
        source_card=str(raw["sourceCard"]) if raw.get("sourceCard") else None,
        owner=owner,
        target=target,
        trigger=EffectTrigger(raw.get("trigger", "start_of_turn")),
        effect_type=EffectType(raw.get("effectType", "custom")),
        magnitude=_parse_int(raw.get("value", 0)) or 0,
        turns_remaining=_parse_int(turns),
        payload=_effect_payload(raw.get("payload")),
    )


def parse_change(
    data: dict[str, Any],
    default_role: Role | None = None,
    card_lookup: CardLookup | None = None,
) -> StateChange:
    """
    Parse a state change from a dictionary.

    Args:
        data: Dictionary with "type" key and change-specific fields
        default_role: Role used when a role is needed but not given
            (usually the acting role)
        card_lookup: Resolves card ids for summon/transform templates

    Returns:
        Typed StateChange

    Raises:
        ValueError: If type is unknown or required fields are missing
    """
    if not isinstance(data, dict):
        raise ValueError(f"Change must be an object, got {type(data).__name__}")

    raw_type = data.get("type")
    if not raw_type:
        raise ValueError("Change missing 'type' field")

    try:
        ctype = ChangeType(str(raw_type).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown change type: {raw_type}")

    value = _parse_int(data.get("value"))

    if ctype == ChangeType.REMOVE_EFFECT:
        effect_id = data.get("effectId") or data.get("effect_id") or data.get("targetId")
        if not effect_id:
            raise ValueError("remove_effect requires effectId")
        return StateChange.remove_effect(str(effect_id))

    if ctype == ChangeType.APPLY_EFFECT:
        effect_data = data.get("effect") or data
        return StateChange.apply_effect(effect_from_payload(effect_data, default_role))

    target = _parse_target(data, default_role if ctype in _ROLE_TARGETED else None)
    if target is None:
        raise ValueError(f"{ctype.value} change has no usable target")

    if ctype in _CREATURE_TARGETED and not isinstance(target, CreatureRef):
        raise ValueError(f"{ctype.value} requires a creature target")
    if ctype in _ROLE_TARGETED and not isinstance(target, RoleTarget):
        raise ValueError(f"{ctype.value} requires a role target")

    if ctype in {ChangeType.APPLY_STATUS, ChangeType.REMOVE_STATUS}:
        return StateChange(
            change_type=ctype,
            target=target,
            status=StatusEffect(str(data.get("status", "")).strip().lower()),
        )

    if ctype in {ChangeType.SUMMON, ChangeType.TRANSFORM}:
        card = card_from_payload(data.get("card"), card_lookup)
        if card is None:
            raise ValueError(f"{ctype.value} requires a card template")
        return StateChange(change_type=ctype, target=target, card=card)

    if ctype == ChangeType.COPY_CREATURE:
        owner = parse_role(data.get("owner") or data.get("role")) or default_role
        return StateChange(change_type=ctype, target=target, owner=owner)

    return StateChange(
        change_type=ctype,
        target=target,
        value=value,
        attack=_parse_int(data.get("attack")),
        health=_parse_int(data.get("health")),
    )


def parse_changes(
    data: list[Any] | None,
    default_role: Role | None = None,
    card_lookup: CardLookup | None = None,
) -> list[StateChange]:
    """
    Parse a list of changes, skipping any that are malformed or unknown.

    Order is preserved for the changes that survive.
    """
    if not isinstance(data, list):
        if data is not None:
            logger.debug("Skipping non-list changes %r", data)
        return []

    changes: list[StateChange] = []
    for raw in data:
        try:
            changes.append(parse_change(raw, default_role, card_lookup))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.debug("Skipping unparseable change %r: %s", raw, e)
    return changes
