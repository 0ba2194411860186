"""
Action Results - What the sequencer hands back to its caller.

Illegal actions are never raised: they come back as a failed
ActionResult carrying a machine-readable error code, so the caller
can pick a fallback and keep the game moving.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .changes import StateChange


class ActionError(Enum):
    """Reasons a play or attack is rejected."""
    GAME_OVER = "GAME_OVER"
    WRONG_PHASE = "WRONG_PHASE"
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    INVALID_INDEX = "INVALID_INDEX"
    INSUFFICIENT_MANA = "INSUFFICIENT_MANA"
    ALREADY_PLAYED = "ALREADY_PLAYED"
    ATTACKER_NOT_FOUND = "ATTACKER_NOT_FOUND"
    CANNOT_ATTACK = "CANNOT_ATTACK"
    INVALID_TARGET = "INVALID_TARGET"
    TAUNT_BLOCKS = "TAUNT_BLOCKS"
    TARGET_STEALTHED = "TARGET_STEALTHED"


@dataclass
class ActionResult:
    """
    Result of applying an action.

    Contains:
    - Whether the action succeeded
    - New state (if succeeded)
    - Error and error code (if failed)
    - The played card and applied changes, for narration and presentation
    """
    success: bool
    new_state: Any | None = None  # GameState
    error: str | None = None
    error_code: str | None = None

    card: Any | None = None  # Card played, for play_card
    instance_id: str | None = None  # Creature placed on the field, if any
    applied_changes: list[StateChange] = field(default_factory=list)
    narrative: str | None = None

    @classmethod
    def failure(cls, error: str, error_code: ActionError | str | None = None) -> ActionResult:
        """Create a failure result."""
        if isinstance(error_code, ActionError):
            error_code = error_code.value
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def success_with_state(
        cls,
        state: Any,
        card: Any | None = None,
        changes: list[StateChange] | None = None,
        narrative: str | None = None,
        instance_id: str | None = None,
    ) -> ActionResult:
        """Create a success result with new state."""
        return cls(
            success=True,
            new_state=state,
            card=card,
            instance_id=instance_id,
            applied_changes=changes or [],
            narrative=narrative,
        )
