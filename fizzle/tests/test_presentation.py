"""
Tests for presentation events, the hub and narration.
"""

import logging

from ..engine_core.state import Role
from ..engine_core.changes import CreatureRef, StateChange
from ..session.presentation import (
    EventKind,
    NarrationService,
    PresentationEvent,
    PresentationHub,
    SoundCue,
    clean_narration_text,
    cue_for_change,
)


class TestCues:

    def test_change_cues(self):
        assert cue_for_change(StateChange.damage(CreatureRef("dust-bunny-1"), 1)) == SoundCue.DAMAGE
        assert cue_for_change(StateChange.heal(Role.PLAYER, 1)) == SoundCue.HEAL
        assert cue_for_change(StateChange.mill(Role.PLAYER, 1)) is None

    def test_event_appends_change_cues(self):
        event = PresentationEvent(
            kind=EventKind.ATTACK,
            actor="player",
            narrative="Bonk.",
            changes=[StateChange.damage(CreatureRef("dust-bunny-1"), 1), StateChange.mill(Role.OPPONENT, 1)],
            cues=[SoundCue.ATTACK],
        )

        assert event.cues == [SoundCue.ATTACK, SoundCue.DAMAGE]
        data = event.to_dict()
        assert data["kind"] == "attack"
        assert data["cues"] == ["attack", "damage"]
        assert data["changes"][0]["targetId"] == "dust-bunny-1"


class TestNarration:

    def test_disabled_ignores_lines(self):
        narration = NarrationService()

        assert not narration.enqueue("Hello")
        assert narration.queue == []

    def test_queue_and_speak(self):
        narration = NarrationService(enabled=True)
        narration.enqueue("First")
        narration.enqueue("Second")

        assert narration.next() == "First"
        assert narration.next() is None  # still speaking
        narration.finish()
        assert narration.next() == "Second"

    def test_skip_moves_on(self):
        narration = NarrationService(enabled=True)
        for line in ("One", "Two"):
            narration.enqueue(line)
        narration.next()

        assert narration.skip() == "Two"
        assert narration.skip() is None
        assert narration.snapshot() == {"enabled": True, "speaking": None, "queue": []}

    def test_disable_clears(self):
        narration = NarrationService(enabled=True)
        narration.enqueue("One")
        narration.next()
        narration.enqueue("Two")

        assert narration.toggle() is False
        assert narration.snapshot() == {"enabled": False, "speaking": None, "queue": []}

    def test_listeners(self):
        narration = NarrationService(enabled=True)
        seen = []
        unsubscribe = narration.subscribe(lambda: seen.append(narration.snapshot()["queue"]))

        narration.enqueue("One")
        unsubscribe()
        narration.enqueue("Two")

        assert seen == [["One"]]

    def test_blank_lines_ignored(self):
        narration = NarrationService(enabled=True)

        assert not narration.enqueue("   ")
        assert not narration.enqueue(None)

    def test_queue_drops_oldest_when_full(self):
        narration = NarrationService(enabled=True, max_queue=3)
        for i in range(10):
            narration.enqueue(f"Line {i}")

        assert narration.queue == ["Line 7", "Line 8", "Line 9"]
        assert narration.next() == "Line 7"

    def test_cleans_json_leftovers(self):
        assert clean_narration_text('{"narrative": "The crab ponders.", "changes": []}') == "The crab ponders."
        assert clean_narration_text('"Quoted line"') == "Quoted line"


class TestHub:

    def _event(self, text="Something happens."):
        return PresentationEvent(kind=EventKind.SYSTEM, actor="system", narrative=text)

    def test_fans_out_and_narrates(self):
        hub = PresentationHub(NarrationService(enabled=True))
        received = []
        hub.subscribe(received.append)

        event = self._event()
        hub.publish(event)

        assert received == [event]
        assert hub.narration.queue == ["Something happens."]

    def test_failing_sink_is_logged(self, caplog):
        hub = PresentationHub()
        received = []

        def broken(event):
            raise RuntimeError("speaker on fire")

        hub.subscribe(broken)
        hub.subscribe(received.append)
        with caplog.at_level(logging.ERROR):
            hub.publish(self._event())

        assert len(received) == 1
        assert "failed" in caplog.text

    def test_unsubscribe(self):
        hub = PresentationHub()
        received = []
        unsubscribe = hub.subscribe(received.append)
        unsubscribe()
        hub.publish(self._event())

        assert received == []

    def test_history_is_bounded(self):
        hub = PresentationHub(history_size=3)
        for i in range(5):
            hub.publish(self._event(f"line {i}"))

        assert [e.narrative for e in hub.history] == ["line 2", "line 3", "line 4"]

    def test_replay_delivers_history_first(self):
        hub = PresentationHub(history_size=2)
        for i in range(3):
            hub.publish(self._event(f"line {i}"))
        received = []

        hub.subscribe(received.append, replay=True)
        hub.publish(self._event("line 3"))

        assert [e.narrative for e in received] == ["line 1", "line 2", "line 3"]

    def test_many_turns_keep_narration_bounded(self):
        hub = PresentationHub(NarrationService(enabled=True))
        for i in range(200):
            hub.publish(self._event(f"line {i}"))

        assert len(hub.narration.queue) == hub.narration.max_queue
        assert hub.narration.queue[-1] == "line 199"
