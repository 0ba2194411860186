"""
Action Generator - Enumerates legal plays and attacks from a game state.

Used by:
1. The opponent driver to skip the proposer when nothing is possible
2. The proposal validator to reject impossible indices and targets
3. The API and CLI to show available actions

Everything here is read-only and agrees with the sequencer's checks.
"""

from __future__ import annotations

from .state import Creature, GameState, Phase, Role
from .changes import CreatureRef, RoleTarget, Target
from .effects import can_creature_attack, get_effective_cost
from .sequencer import validate_attack


def legal_plays(state: GameState, role: Role) -> list[int]:
    """Hand indices role could play right now."""
    if state.is_over or state.phase != Phase.PLAYING or role != state.current_player:
        return []
    player_state = state.get_player(role)
    if not state.config.uses_mana:
        return [] if state.has_played_card else list(range(len(player_state.hand)))
    return [
        index for index, card in enumerate(player_state.hand)
        if get_effective_cost(state, role, card) <= player_state.mana
    ]


def eligible_attackers(state: GameState, role: Role) -> list[Creature]:
    """Creatures on role's field that may attack now, in field order."""
    if state.is_over or role != state.current_player:
        return []
    return [c for c in state.get_player(role).field if can_creature_attack(state, c.instance_id)]


def legal_attack_targets(state: GameState, attacker_id: str) -> list[Target]:
    """
    Every target the attacker may legally hit.

    The enemy hero comes first, followed by enemy creatures in field order.
    """
    found = state.find_creature(attacker_id)
    if found is None:
        return []
    side, _ = found
    defending = side.other
    candidates: list[Target] = [RoleTarget(defending)]
    candidates.extend(CreatureRef(c.instance_id) for c in state.get_player(defending).field)
    return [t for t in candidates if validate_attack(state, attacker_id, t) is None]


def has_any_action(state: GameState, role: Role) -> bool:
    """Whether role has any affordable card or any creature able to attack."""
    return bool(legal_plays(state, role)) or bool(eligible_attackers(state, role))
