"""
Engine Core - Deterministic game state and state-change application.

The engine is the runtime that:
1. Defines the canonical GameState
2. Applies proposed StateChanges while enforcing invariants
3. Sequences card play, combat and turn bookkeeping
4. Runs the delayed-effect lifecycle
5. Enumerates legal plays and attacks
"""

from .config import EconomyMode, RulesConfig, DEFAULT_RULES
from .state import (
    ActiveEffect,
    Card,
    CardKind,
    Creature,
    EffectTarget,
    EffectTargetKind,
    EffectTrigger,
    EffectType,
    GameEvent,
    GameState,
    Phase,
    PlayerState,
    Role,
    StatusEffect,
    TargetType,
)
from .changes import ChangeType, CreatureRef, RoleTarget, StateChange, parse_change, parse_changes
from .applicator import ApplyOutcome, ChangeApplicator, apply_changes, check_win_condition
from .action import ActionError, ActionResult
from .effects import EffectResult, can_creature_attack, get_effective_cost, process_effect_trigger
from .sequencer import (
    add_log_entry,
    creature_attack,
    draw_card,
    end_turn,
    execute_batch_combat,
    exhaust_creature,
    perform_attack,
    play_card,
    resolve_card,
    validate_attack,
)
from .action_generator import eligible_attackers, has_any_action, legal_attack_targets, legal_plays
from .invariants import InvariantViolation, check_invariants

__all__ = [
    "EconomyMode",
    "RulesConfig",
    "DEFAULT_RULES",
    "ActiveEffect",
    "Card",
    "CardKind",
    "Creature",
    "EffectTarget",
    "EffectTargetKind",
    "EffectTrigger",
    "EffectType",
    "GameEvent",
    "GameState",
    "Phase",
    "PlayerState",
    "Role",
    "StatusEffect",
    "TargetType",
    "ChangeType",
    "CreatureRef",
    "RoleTarget",
    "StateChange",
    "parse_change",
    "parse_changes",
    "ApplyOutcome",
    "ChangeApplicator",
    "apply_changes",
    "check_win_condition",
    "ActionError",
    "ActionResult",
    "EffectResult",
    "can_creature_attack",
    "get_effective_cost",
    "process_effect_trigger",
    "add_log_entry",
    "creature_attack",
    "draw_card",
    "end_turn",
    "execute_batch_combat",
    "exhaust_creature",
    "perform_attack",
    "play_card",
    "resolve_card",
    "validate_attack",
    "eligible_attackers",
    "has_any_action",
    "legal_attack_targets",
    "legal_plays",
    "InvariantViolation",
    "check_invariants",
]
