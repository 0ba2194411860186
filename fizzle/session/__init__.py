"""
Session - Ephemeral game sessions and the loop that drives them.
"""

from .manager import Session, SessionManager, SessionState
from .game_loop import GameLoop, LoopState, TurnResult
from .presentation import (
    EventKind,
    NarrationService,
    PresentationEvent,
    PresentationHub,
    SoundCue,
    clean_narration_text,
    cue_for_change,
)

__all__ = [
    "Session",
    "SessionManager",
    "SessionState",
    "GameLoop",
    "LoopState",
    "TurnResult",
    "EventKind",
    "NarrationService",
    "PresentationEvent",
    "PresentationHub",
    "SoundCue",
    "clean_narration_text",
    "cue_for_change",
]
