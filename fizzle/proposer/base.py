"""
Action Proposer - Interface for the external decision source.

An ActionProposer receives a serialized GameState snapshot (the dict from
GameState.to_dict()) plus the decision context, and returns its raw
output: text expected to contain one JSON object, an already-decoded
dict, or None when it has nothing to offer. The output is untrusted;
callers parse it with parse_proposal() and validate it with the
ProposalValidator before touching the engine.

Implementations:
- AnthropicProposer: asks a language model (see llm.py)
- ScriptedProposer: replays queued responses, for tests
- NullProposer: never answers, so every decision falls back
- FirstLegalProposer: simple deterministic play, for offline games
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Iterable, Union

RawProposal = Union[str, dict[str, Any], None]


class ActionProposer(ABC):
    """
    Abstract base class for action proposers.

    One call is outstanding per decision point; the caller awaits it
    before invoking the engine.
    """

    @abstractmethod
    async def propose_card_play(self, snapshot: dict[str, Any], role: str) -> RawProposal:
        """Which card role should play next, or whether to end the turn."""
        pass

    @abstractmethod
    async def propose_resolution(
        self,
        snapshot: dict[str, Any],
        card: dict[str, Any],
        role: str,
    ) -> RawProposal:
        """Narrative and state changes for a card role just played."""
        pass

    @abstractmethod
    async def propose_creature_action(
        self,
        snapshot: dict[str, Any],
        creature: dict[str, Any],
        owner: str,
    ) -> RawProposal:
        """What a single creature does when it acts."""
        pass

    @abstractmethod
    async def propose_batch_combat(self, snapshot: dict[str, Any], role: str) -> RawProposal:
        """Ordered attacks for every creature of role."""
        pass

    def get_name(self) -> str:
        """Get the proposer's name/identifier."""
        return self.__class__.__name__


class NullProposer(ActionProposer):
    """Never proposes anything."""

    async def propose_card_play(self, snapshot, role):
        return None

    async def propose_resolution(self, snapshot, card, role):
        return None

    async def propose_creature_action(self, snapshot, creature, owner):
        return None

    async def propose_batch_combat(self, snapshot, role):
        return None


class ScriptedProposer(ActionProposer):
    """
    Replays queued responses in order, one queue per decision kind.

    An empty queue answers None. A queued exception is raised instead of
    returned, to exercise the caller's failure handling. Every call is
    recorded in `calls` as (kind, context).
    """

    def __init__(
        self,
        card_plays: Iterable[Any] = (),
        resolutions: Iterable[Any] = (),
        creature_actions: Iterable[Any] = (),
        combats: Iterable[Any] = (),
    ):
        self.queues: dict[str, deque] = {
            "card_play": deque(card_plays),
            "resolution": deque(resolutions),
            "creature_action": deque(creature_actions),
            "batch_combat": deque(combats),
        }
        self.calls: list[tuple[str, Any]] = []

    def _next(self, kind: str, context: Any) -> RawProposal:
        self.calls.append((kind, context))
        queue = self.queues[kind]
        if not queue:
            return None
        item = queue.popleft()
        if isinstance(item, BaseException):
            raise item
        return item

    async def propose_card_play(self, snapshot, role):
        return self._next("card_play", role)

    async def propose_resolution(self, snapshot, card, role):
        return self._next("resolution", card.get("id"))

    async def propose_creature_action(self, snapshot, creature, owner):
        return self._next("creature_action", creature.get("instanceId"))

    async def propose_batch_combat(self, snapshot, role):
        return self._next("batch_combat", role)


def _pick_target(snapshot: dict[str, Any], owner: str) -> str | None:
    """First taunt creature that can be attacked, or None for the hero."""
    enemy = "opponent" if owner == "player" else "player"
    for creature in snapshot[enemy]["field"]:
        statuses = creature.get("statusEffects", [])
        if "silenced" in statuses or "stealth" in statuses:
            continue
        if "taunt" in statuses:
            return creature["instanceId"]
    return None


class FirstLegalProposer(ActionProposer):
    """
    Deterministic proposer that needs no network.

    Plays the first affordable card, resolves spells as direct damage
    equal to their cost, and attacks the hero unless a taunt creature
    is in the way.
    """

    async def propose_card_play(self, snapshot, role):
        me = snapshot[role]
        if snapshot.get("hasPlayedCard"):
            return {"action": "end_turn", "narrative": "That will do for now."}
        uses_mana = snapshot.get("economy", "mana") == "mana"
        for index, card in enumerate(me["hand"]):
            if not uses_mana or card["cost"] <= me["mana"]:
                return {"action": "play", "cardIndex": index, "narrative": f"Behold, {card['name']}!"}
        return {"action": "end_turn", "narrative": "Nothing more to do this turn..."}

    async def propose_resolution(self, snapshot, card, role):
        if card.get("type") == "creature":
            return {"narrative": f"{card['name']} takes its place on the field.", "changes": []}
        enemy = "opponent" if role == "player" else "player"
        return {
            "narrative": f"{card['name']} strikes the enemy for {card['cost']} damage!",
            "changes": [{"type": "damage", "target": enemy, "value": card["cost"]}],
        }

    async def propose_creature_action(self, snapshot, creature, owner):
        target = _pick_target(snapshot, owner)
        if target:
            return {
                "action": "attack_creature",
                "targetId": target,
                "narrative": f"{creature['name']} charges the defender!",
            }
        return {"action": "attack_hero", "narrative": f"{creature['name']} goes straight for the hero!"}

    async def propose_batch_combat(self, snapshot, role):
        target = _pick_target(snapshot, role) or "hero"
        attacks = [
            {"attackerId": c["instanceId"], "targetId": target}
            for c in snapshot[role]["field"]
            if c.get("canAttack")
        ]
        return {"narrative": "The whole line surges forward!", "attacks": attacks}
