"""
Game State - Canonical data structures for a game in progress.

Design principles:
- Immutable-friendly: all mutations return new state
- Serializable: snapshots are handed to the action proposer as plain dicts
- Roles are fixed slots ("player"/"opponent"), never swapped
- Card templates and creature instances are distinct types
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar

from .config import RulesConfig, DEFAULT_RULES


class Role(Enum):
    """The two fixed participant slots."""
    PLAYER = "player"
    OPPONENT = "opponent"

    @property
    def other(self) -> Role:
        return Role.OPPONENT if self == Role.PLAYER else Role.PLAYER


# Fixed evaluation order for win checks and "both sides" iteration
ROLE_ORDER: tuple[Role, Role] = (Role.PLAYER, Role.OPPONENT)


class Phase(Enum):
    """Game phases. ENDED is terminal."""
    PLAYING = "playing"
    RESOLVING = "resolving"
    COMBAT = "combat"
    ENDED = "ended"


class CardKind(Enum):
    CREATURE = "creature"
    SPELL = "spell"


class TargetType(Enum):
    """What a card may target when it resolves."""
    NONE = "none"
    ENEMY_CREATURE = "enemy_creature"
    FRIENDLY_CREATURE = "friendly_creature"
    ANY_CREATURE = "any_creature"


class StatusEffect(Enum):
    FROZEN = "frozen"  # Cannot attack; thaws at owner's start of turn
    POISONED = "poisoned"  # 1 damage at owner's start of turn
    TAUNT = "taunt"  # Must be attacked first
    STEALTH = "stealth"  # Cannot be targeted by attacks
    SILENCED = "silenced"  # Taunt and stealth are ignored
    DOOMED = "doomed"  # Destroyed at owner's end of turn


class EffectTrigger(Enum):
    START_OF_TURN = "start_of_turn"
    END_OF_TURN = "end_of_turn"
    ON_DAMAGE = "on_damage"
    ON_PLAY = "on_play"
    PASSIVE = "passive"


class EffectType(Enum):
    DAMAGE = "damage"
    HEAL = "heal"
    BUFF = "buff"
    DEBUFF = "debuff"
    DRAW = "draw"
    PREVENT_ATTACK = "prevent_attack"
    MODIFY_COST = "modify_cost"
    CUSTOM = "custom"


class EffectTargetKind(Enum):
    PLAYER = "player"  # A role
    CREATURE = "creature"  # A specific instance
    ALL_CREATURES = "all_creatures"  # Every creature of one side, or both
    GLOBAL = "global"


@dataclass(frozen=True)
class Card:
    """
    A card template (catalog definition).

    Lives in hands and decks. Creatures on a field are Creature instances
    that reference their template.
    """
    variant: ClassVar[str] = "template"

    id: str
    name: str
    flavor: str
    cost: int
    kind: CardKind
    attack: int | None = None  # Base stats, creatures only
    health: int | None = None
    target_type: TargetType = TargetType.NONE
    special_effect: str | None = None  # Tag that hints at the card's behavior
    is_token: bool = False

    @property
    def is_creature(self) -> bool:
        return self.kind == CardKind.CREATURE

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "flavor": self.flavor,
            "cost": self.cost,
            "type": self.kind.value,
            "targetType": self.target_type.value,
        }
        if self.is_creature:
            data["baseStats"] = {"attack": self.attack or 0, "health": self.health or 0}
        if self.special_effect:
            data["specialEffect"] = self.special_effect
        if self.is_token:
            data["isToken"] = True
        return data


@dataclass(frozen=True)
class Creature:
    """
    A creature instance on a field.

    Invariant: current_health > 0 while present on a field.
    """
    variant: ClassVar[str] = "instance"

    instance_id: str
    card: Card
    current_health: int
    current_attack: int
    can_attack: bool = False
    shield: int = 0
    statuses: tuple[StatusEffect, ...] = ()  # Ordered, no duplicates
    applied_effects: tuple[str, ...] = ()  # ActiveEffect ids targeting this instance
    original_owner: Role | None = None  # Set when stolen
    is_token: bool = False

    @property
    def name(self) -> str:
        return self.card.name

    @property
    def card_id(self) -> str:
        return self.card.id

    def has_status(self, status: StatusEffect) -> bool:
        return status in self.statuses

    @property
    def has_taunt(self) -> bool:
        """Taunt that is in force (silence suppresses it)."""
        return self.has_status(StatusEffect.TAUNT) and not self.has_status(StatusEffect.SILENCED)

    @property
    def has_stealth(self) -> bool:
        """Stealth that is in force (silence suppresses it)."""
        return self.has_status(StatusEffect.STEALTH) and not self.has_status(StatusEffect.SILENCED)

    def with_status(self, status: StatusEffect) -> Creature:
        if status in self.statuses:
            return self
        return replace(self, statuses=self.statuses + (status,))

    def without_status(self, status: StatusEffect) -> Creature:
        if status not in self.statuses:
            return self
        return replace(self, statuses=tuple(s for s in self.statuses if s != status))

    def to_dict(self) -> dict[str, Any]:
        data = self.card.to_dict()
        data.update({
            "instanceId": self.instance_id,
            "currentHealth": self.current_health,
            "currentAttack": self.current_attack,
            "canAttack": self.can_attack,
        })
        if self.shield:
            data["shield"] = self.shield
        if self.statuses:
            data["statusEffects"] = [s.value for s in self.statuses]
        if self.applied_effects:
            data["appliedEffects"] = list(self.applied_effects)
        if self.original_owner:
            data["originalOwner"] = self.original_owner.value
        if self.is_token:
            data["isToken"] = True
        return data


@dataclass(frozen=True)
class EffectTarget:
    """
    What an ActiveEffect applies to.

    Examples:
        EffectTarget.player(Role.OPPONENT)
        EffectTarget.creature("angry-squirrel-3")
        EffectTarget.all_creatures(Role.PLAYER)
        EffectTarget.all_creatures(None)  # both sides
        EffectTarget.everything()
    """
    kind: EffectTargetKind
    role: Role | None = None  # PLAYER target, or side for ALL_CREATURES (None = both)
    instance_id: str | None = None

    @classmethod
    def player(cls, role: Role) -> EffectTarget:
        return cls(kind=EffectTargetKind.PLAYER, role=role)

    @classmethod
    def creature(cls, instance_id: str) -> EffectTarget:
        return cls(kind=EffectTargetKind.CREATURE, instance_id=instance_id)

    @classmethod
    def all_creatures(cls, side: Role | None = None) -> EffectTarget:
        return cls(kind=EffectTargetKind.ALL_CREATURES, role=side)

    @classmethod
    def everything(cls) -> EffectTarget:
        return cls(kind=EffectTargetKind.GLOBAL)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind.value}
        if self.role:
            data["role"] = self.role.value
        if self.instance_id:
            data["instanceId"] = self.instance_id
        return data


@dataclass(frozen=True)
class ActiveEffect:
    """
    A delayed or persistent effect.

    turns_remaining is decremented once per matching trigger firing;
    None means permanent.
    """
    effect_id: str
    name: str
    owner: Role
    target: EffectTarget
    trigger: EffectTrigger
    effect_type: EffectType
    magnitude: int = 0
    turns_remaining: int | None = None
    created_turn: int = 0
    description: str = ""
    source_card: str | None = None
    payload: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.effect_id,
            "name": self.name,
            "description": self.description,
            "sourceCard": self.source_card,
            "owner": self.owner.value,
            "target": self.target.to_dict(),
            "trigger": self.trigger.value,
            "effectType": self.effect_type.value,
            "value": self.magnitude,
            "turnsRemaining": self.turns_remaining,
            "createdTurn": self.created_turn,
            "payload": dict(self.payload),
        }


@dataclass(frozen=True)
class PlayerState:
    """
    State for one role.

    In the single-play economy mana and max_mana stay at 0.
    """
    health: int
    mana: int = 0
    max_mana: int = 0
    hand: tuple[Card, ...] = ()  # Order matters: cards are referenced by index
    deck: tuple[Card, ...] = ()  # Draw from the front
    field: tuple[Creature, ...] = ()

    def find_creature(self, instance_id: str) -> Creature | None:
        for creature in self.field:
            if creature.instance_id == instance_id:
                return creature
        return None

    def _copy_with(self, **kwargs) -> PlayerState:
        return replace(self, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "health": self.health,
            "mana": self.mana,
            "maxMana": self.max_mana,
            "hand": [c.to_dict() for c in self.hand],
            "deckSize": len(self.deck),
            "field": [c.to_dict() for c in self.field],
        }


@dataclass(frozen=True)
class GameEvent:
    """One narrated entry in the game log."""
    turn: int
    actor: str  # "player", "opponent" or "system"
    narrative: str
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "turn": self.turn,
            "actor": self.actor,
            "narrative": self.narrative,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class GameState:
    """
    Complete game state at a point in time.

    This is the canonical state that the engine operates on.
    All changes go through the applicator or the sequencer.
    """
    player: PlayerState
    opponent: PlayerState
    turn: int = 1
    current_player: Role = Role.PLAYER
    phase: Phase = Phase.PLAYING
    winner: Role | None = None
    log: tuple[GameEvent, ...] = ()
    active_effects: tuple[ActiveEffect, ...] = ()
    has_played_card: bool = False  # Single-play economy only
    config: RulesConfig = DEFAULT_RULES

    # Monotonic counters so ids are deterministic and never reused
    next_instance_seq: int = 1
    next_effect_seq: int = 1

    @property
    def is_over(self) -> bool:
        return self.phase == Phase.ENDED

    def get_player(self, role: Role) -> PlayerState:
        return self.player if role == Role.PLAYER else self.opponent

    def with_player(self, role: Role, player_state: PlayerState) -> GameState:
        """Return new state with one role's PlayerState replaced."""
        if role == Role.PLAYER:
            return self._copy_with(player=player_state)
        return self._copy_with(opponent=player_state)

    def find_creature(self, instance_id: str) -> tuple[Role, Creature] | None:
        """Locate a creature on either field."""
        for role in ROLE_ORDER:
            creature = self.get_player(role).find_creature(instance_id)
            if creature is not None:
                return role, creature
        return None

    def get_effect(self, effect_id: str) -> ActiveEffect | None:
        for effect in self.active_effects:
            if effect.effect_id == effect_id:
                return effect
        return None

    def new_instance_id(self, card_id: str) -> tuple[str, GameState]:
        """Allocate an instance id. Returns (id, state with advanced counter)."""
        instance_id = f"{card_id}-{self.next_instance_seq}"
        return instance_id, self._copy_with(next_instance_seq=self.next_instance_seq + 1)

    def new_effect_id(self) -> tuple[str, GameState]:
        effect_id = f"effect-{self.next_effect_seq}"
        return effect_id, self._copy_with(next_effect_seq=self.next_effect_seq + 1)

    def _copy_with(self, **kwargs) -> GameState:
        """Create a copy with some fields replaced."""
        return replace(self, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the snapshot shape handed to the action proposer."""
        data: dict[str, Any] = {
            "turn": self.turn,
            "currentPlayer": self.current_player.value,
            "phase": self.phase.value,
            "player": self.player.to_dict(),
            "opponent": self.opponent.to_dict(),
            "log": [event.to_dict() for event in self.log],
            "economy": self.config.economy.value,
        }
        if self.winner:
            data["winner"] = self.winner.value
        if self.active_effects:
            data["activeEffects"] = [e.to_dict() for e in self.active_effects]
        if not self.config.uses_mana:
            data["hasPlayedCard"] = self.has_played_card
        return data
