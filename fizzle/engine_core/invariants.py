"""
Invariant checks for GameState.

A violation means the engine itself is broken, not that a player or
proposer did something illegal, so it is raised rather than returned.
"""

from __future__ import annotations

from .state import GameState, ROLE_ORDER


class InvariantViolation(Exception):
    """Raised when a GameState breaks an engine invariant."""

    def __init__(self, message: str, violations: list[str] | None = None):
        super().__init__(message)
        self.violations = violations or [message]


def find_violations(state: GameState) -> list[str]:
    """Collect every invariant the state breaks. Empty list means healthy."""
    problems: list[str] = []
    seen_ids: set[str] = set()

    for role in ROLE_ORDER:
        player_state = state.get_player(role)
        if player_state.health < 0:
            problems.append(f"{role.value} health is negative ({player_state.health})")
        if player_state.health > state.config.max_health:
            problems.append(f"{role.value} health {player_state.health} exceeds cap {state.config.max_health}")
        if player_state.mana < 0:
            problems.append(f"{role.value} mana is negative ({player_state.mana})")

        for creature in player_state.field:
            if creature.current_health <= 0:
                problems.append(f"{creature.instance_id} is on the field with {creature.current_health} health")
            if creature.current_attack < 0:
                problems.append(f"{creature.instance_id} has negative attack")
            if creature.shield < 0:
                problems.append(f"{creature.instance_id} has negative shield")
            if len(set(creature.statuses)) != len(creature.statuses):
                problems.append(f"{creature.instance_id} has duplicate statuses")
            if creature.instance_id in seen_ids:
                problems.append(f"instance id {creature.instance_id} appears twice")
            seen_ids.add(creature.instance_id)

    if state.is_over and state.winner is None:
        problems.append("game ended without a winner")
    if not state.is_over and state.winner is not None:
        problems.append("winner set while the game is still running")

    return problems


def check_invariants(state: GameState, previous: GameState | None = None) -> GameState:
    """
    Raise InvariantViolation if state is corrupt.

    When previous is given and had already ended, state must be identical
    to it: nothing may change after the game is over.
    """
    problems = find_violations(state)
    if previous is not None and previous.is_over and state != previous:
        problems.append("state changed after the game ended")
    if problems:
        raise InvariantViolation("; ".join(problems), problems)
    return state
