"""
Presentation - Sinks that observe the game without steering it.

Every resolution step produces a PresentationEvent: the narrative and
the StateChanges that were actually applied, published together. Sinks
subscribe to the PresentationHub; they can map changes to sound cues or
queue narration, but nothing they do flows back into the engine.

The NarrationService is owned by one session. It queues narrative text
for whatever speech backend a client uses; synthesis itself is not
modeled here.
"""

from __future__ import annotations
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from ..engine_core.changes import ChangeType, StateChange

logger = logging.getLogger(__name__)


class SoundCue(str, Enum):
    """Audio cues a client may play."""
    CARD_PLAY = "cardPlay"
    CREATURE_SUMMON = "creatureSummon"
    SPELL_CAST = "spellCast"
    ATTACK = "attack"
    DAMAGE = "damage"
    HEAL = "heal"
    DESTROY = "destroy"
    BUFF = "buff"
    TURN_START = "turnStart"
    TURN_END = "turnEnd"
    VICTORY = "victory"
    DEFEAT = "defeat"
    DRAW = "draw"


_CHANGE_CUES = {
    ChangeType.DAMAGE: SoundCue.DAMAGE,
    ChangeType.HEAL: SoundCue.HEAL,
    ChangeType.DESTROY: SoundCue.DESTROY,
    ChangeType.BUFF: SoundCue.BUFF,
    ChangeType.DRAW: SoundCue.DRAW,
    ChangeType.SUMMON: SoundCue.CREATURE_SUMMON,
}


def cue_for_change(change: StateChange) -> SoundCue | None:
    """The cue for an applied change, or None if it has no sound."""
    return _CHANGE_CUES.get(change.change_type)


class EventKind(str, Enum):
    CARD_PLAYED = "card_played"
    RESOLUTION = "resolution"
    CREATURE_ACTION = "creature_action"
    ATTACK = "attack"
    COMBAT = "combat"
    TURN = "turn"
    GAME_OVER = "game_over"
    SYSTEM = "system"


@dataclass
class PresentationEvent:
    """
    One atomic step as a client should present it.

    cues holds the step's own cues followed by one per applied change
    that has a sound.
    """
    kind: EventKind
    actor: str
    narrative: str = ""
    changes: list[StateChange] = field(default_factory=list)
    cues: list[SoundCue] = field(default_factory=list)
    card: dict[str, Any] | None = None  # Card played, if any
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        for change in self.changes:
            cue = cue_for_change(change)
            if cue is not None:
                self.cues.append(cue)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "actor": self.actor,
            "narrative": self.narrative,
            "changes": [c.to_dict() for c in self.changes],
            "cues": [c.value for c in self.cues],
            "card": self.card,
            "timestamp": self.timestamp,
        }


# Leftovers from a model that wrapped its narrative in JSON
_JSON_PREFIX = re.compile(r'^\s*\{[\s\S]*?"narrative"\s*:\s*"?')
_JSON_SUFFIX = re.compile(r'"?\s*,?\s*"changes"[\s\S]*$')
_QUOTES = re.compile(r"^[\"']|[\"']$")


def clean_narration_text(text: str) -> str:
    """Strip JSON artifacts and surrounding quotes from narrative text."""
    text = _JSON_PREFIX.sub("", text)
    text = _JSON_SUFFIX.sub("", text)
    text = _QUOTES.sub("", text)
    return text.strip()


class NarrationService:
    """
    Queue of narrative lines waiting to be spoken.

    Disabled by default. Disabling clears the queue and the current line.
    The queue holds at most max_queue lines; when it is full the oldest
    waiting line is dropped.
    Listeners are called with no arguments after every change and read
    `snapshot()` for the new state.

    Usage:
        narration = NarrationService(enabled=True)
        unsubscribe = narration.subscribe(on_change)
        narration.enqueue("The squirrel attacks!")
        line = narration.next()    # now speaking
        narration.skip()           # stop it, move on
    """

    def __init__(self, enabled: bool = False, max_queue: int = 20):
        self.enabled = enabled
        self.max_queue = max_queue
        self.queue: list[str] = []
        self.current: str | None = None
        self._listeners: list[Callable[[], None]] = []

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Register a listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener()

    def set_enabled(self, enabled: bool):
        self.enabled = enabled
        if not enabled:
            self.queue = []
            self.current = None
        self._notify()

    def toggle(self) -> bool:
        """Flip narration on or off. Returns the new setting."""
        self.set_enabled(not self.enabled)
        return self.enabled

    def enqueue(self, text: str | None) -> bool:
        """Queue a line. Ignored (returns False) when disabled or blank."""
        if not self.enabled or not text or not text.strip():
            return False
        cleaned = clean_narration_text(text)
        if not cleaned:
            return False
        self.queue.append(cleaned)
        if len(self.queue) > self.max_queue:
            self.queue = self.queue[-self.max_queue:]
        self._notify()
        return True

    def next(self) -> str | None:
        """Start speaking the next queued line, if nothing is being spoken."""
        if not self.enabled or self.current is not None or not self.queue:
            return None
        self.current = self.queue.pop(0)
        self._notify()
        return self.current

    def finish(self):
        """Mark the current line as spoken."""
        self.current = None
        self._notify()

    def skip(self) -> str | None:
        """Abandon the current line and start the next one."""
        self.current = None
        return self.next()

    def clear(self):
        self.queue = []
        self.current = None
        self._notify()

    def snapshot(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "speaking": self.current,
            "queue": list(self.queue),
        }


PresentationSink = Callable[[PresentationEvent], None]


class PresentationHub:
    """
    Fans PresentationEvents out to subscribed sinks.

    Keeps a bounded history that a subscriber can ask to have replayed
    (a reconnecting websocket catching up). A failing sink is logged and
    skipped.
    """

    def __init__(self, narration: NarrationService | None = None, history_size: int = 200):
        self.narration = narration or NarrationService()
        self.history: list[PresentationEvent] = []
        self.history_size = history_size
        self._sinks: list[PresentationSink] = []

    def subscribe(self, sink: PresentationSink, replay: bool = False) -> Callable[[], None]:
        if replay:
            for event in list(self.history):
                sink(event)
        self._sinks.append(sink)

        def unsubscribe():
            if sink in self._sinks:
                self._sinks.remove(sink)

        return unsubscribe

    def publish(self, event: PresentationEvent):
        self.history.append(event)
        if len(self.history) > self.history_size:
            self.history = self.history[-self.history_size:]

        self.narration.enqueue(event.narrative)
        for sink in list(self._sinks):
            try:
                sink(event)
            except Exception:
                logger.exception("Presentation sink %r failed", sink)
