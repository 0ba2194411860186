"""
Game Loop - Drives one game through the engine and the action proposer.

The loop:
1. The human plays a card, attacks, orders a creature, or ends the turn
2. Decisions the engine cannot make (how a card resolves, what a
   creature does, the opponent's whole turn) are requested from the
   action proposer, one outstanding request at a time
3. Every proposal is validated; unusable ones become fixed fallbacks
4. The engine applies the result; invariants are checked on every commit
5. The narrative and applied changes are published together
6. Ending the human's turn runs the opponent's turn to completion

The engine stays synchronous; only proposer calls are awaited.
"""

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TYPE_CHECKING

from ..engine_core.state import GameState, Role
from ..engine_core.changes import CreatureRef, RoleTarget, StateChange
from ..engine_core.action import ActionError
from ..engine_core.effects import can_creature_attack
from ..engine_core.sequencer import (
    AttackTarget,
    add_log_entry,
    end_turn,
    execute_batch_combat,
    exhaust_creature,
    perform_attack,
    play_card,
    resolve_card,
)
from ..engine_core.action_generator import eligible_attackers, has_any_action, legal_attack_targets, legal_plays
from ..engine_core.invariants import check_invariants
from ..catalog import OPENING_LINE
from ..proposer import CreatureActionType, RawProposal
from ..proposer.validation import NOTHING_TO_DO
from .presentation import EventKind, PresentationEvent, SoundCue

if TYPE_CHECKING:
    from .manager import Session

logger = logging.getLogger(__name__)

FIZZLE = "{name} fizzles mysteriously..."
HESITATES = "{name} hesitates, unsure what to do..."
WILD_CHARGE = "The creature charges forward with wild abandon!"
TURN_START_LINES = {
    Role.PLAYER: "Your turn begins.",
    Role.OPPONENT: "Opponent's turn begins.",
}
VICTORY_LINE = "Victory! The enemy champion has fallen."
DEFEAT_LINE = "Defeat... the enemy champion stands victorious."


def _target_name(state: GameState, target: AttackTarget) -> str:
    if isinstance(target, (Role, RoleTarget)):
        return "the enemy hero"
    instance_id = target.instance_id if isinstance(target, CreatureRef) else target
    found = state.find_creature(instance_id)
    return found[1].name if found else instance_id


class LoopState(Enum):
    """State of the game loop."""
    WAITING_PLAYER = "waiting_player"
    OPPONENT_TURN = "opponent_turn"
    GAME_OVER = "game_over"


@dataclass
class TurnResult:
    """
    Result of one loop operation.

    Contains the narratives and presentation events produced, in order,
    and the errors if the operation was rejected.
    """
    success: bool
    loop_state: LoopState

    narratives: list[str] = field(default_factory=list)
    events: list[PresentationEvent] = field(default_factory=list)

    # Errors
    errors: list[str] = field(default_factory=list)
    error_code: str | None = None

    # Game over info
    winner: str | None = None

    @property
    def applied_changes(self) -> list[StateChange]:
        return [change for event in self.events for change in event.changes]

    def merge(self, other: TurnResult) -> TurnResult:
        """Fold a later step into this result."""
        self.success = self.success and other.success
        self.loop_state = other.loop_state
        self.narratives.extend(other.narratives)
        self.events.extend(other.events)
        self.errors.extend(other.errors)
        self.error_code = other.error_code or self.error_code
        self.winner = other.winner or self.winner
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "loopState": self.loop_state.value,
            "narratives": list(self.narratives),
            "events": [e.to_dict() for e in self.events],
            "errors": list(self.errors),
            "errorCode": self.error_code,
            "winner": self.winner,
        }


class GameLoop:
    """
    The main game loop driver for one session.

    Usage:
        loop = GameLoop(session)

        result = await loop.play_card(0)           # human plays first card
        result = await loop.attack("angry-squirrel-3", Role.OPPONENT)
        result = await loop.end_turn()             # opponent turn runs too

        if result.loop_state == LoopState.GAME_OVER:
            print(result.winner)
    """

    def __init__(self, session: Session):
        self.session = session
        self.lock = asyncio.Lock()
        self._game_over_announced = False

    @property
    def game_state(self) -> GameState:
        return self.session.game_state

    @property
    def human_role(self) -> Role:
        return self.session.human_role

    @property
    def loop_state(self) -> LoopState:
        state = self.game_state
        if state is None or state.is_over:
            return LoopState.GAME_OVER
        if state.current_player == self.human_role:
            return LoopState.WAITING_PLAYER
        return LoopState.OPPONENT_TURN

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _new_result(self) -> TurnResult:
        return TurnResult(success=True, loop_state=self.loop_state)

    def _commit(self, new_state: GameState):
        """Install a new state after checking it against the engine invariants."""
        check_invariants(new_state, self.session.game_state)
        self.session.game_state = new_state

    def _publish(
        self,
        result: TurnResult,
        kind: EventKind,
        actor: str,
        narrative: str = "",
        changes: list[StateChange] | None = None,
        cues: list[SoundCue] | None = None,
        card: dict[str, Any] | None = None,
    ):
        event = PresentationEvent(
            kind=kind,
            actor=actor,
            narrative=narrative,
            changes=list(changes or []),
            cues=list(cues or []),
            card=card,
        )
        self.session.presentation.publish(event)
        result.events.append(event)
        if narrative:
            result.narratives.append(narrative)

    def _finish(self, result: TurnResult) -> TurnResult:
        from .manager import SessionState

        state = self.game_state
        if state is not None and state.is_over and not self._game_over_announced:
            self._game_over_announced = True
            self.session.state = SessionState.GAME_OVER
            won = state.winner == self.human_role
            self._publish(
                result,
                EventKind.GAME_OVER,
                "system",
                VICTORY_LINE if won else DEFEAT_LINE,
                cues=[SoundCue.VICTORY if won else SoundCue.DEFEAT],
            )
            logger.info("Session %s: %s wins", self.session.session_id, state.winner.value)

        result.loop_state = self.loop_state
        if state is not None and state.winner is not None:
            result.winner = state.winner.value
        return result

    def _fail(self, result: TurnResult, error: str, error_code: ActionError | str | None) -> TurnResult:
        result.success = False
        result.errors.append(error)
        result.error_code = error_code.value if isinstance(error_code, ActionError) else error_code
        logger.debug("Rejected: %s (%s)", error, result.error_code)
        return self._finish(result)

    async def _ask(self, method, *args) -> tuple[RawProposal, bool]:
        """Await one proposer call. Returns (raw output, whether the call failed)."""
        try:
            return await method(*args), False
        except Exception:
            logger.warning("Proposer %s failed", method.__name__, exc_info=True)
            return None, True

    # -------------------------------------------------------------------------
    # Card play
    # -------------------------------------------------------------------------

    async def play_card(self, hand_index: int, role: Role | None = None) -> TurnResult:
        """Play a card from hand and resolve it through the proposer."""
        role = role or self.human_role
        result = self._new_result()

        played = play_card(self.game_state, role, hand_index)
        if not played.success:
            return self._fail(result, played.error, played.error_code)

        card = played.card
        self._commit(played.new_state)
        self._publish(
            result,
            EventKind.CARD_PLAYED,
            role.value,
            cues=[SoundCue.CARD_PLAY, SoundCue.CREATURE_SUMMON if card.is_creature else SoundCue.SPELL_CAST],
            card=card.to_dict(),
        )

        await self._resolve(result, role, card)
        return self._finish(result)

    async def _resolve(self, result: TurnResult, role: Role, card):
        state = self.game_state
        raw, failed = await self._ask(
            self.session.proposer.propose_resolution, state.to_dict(), card.to_dict(), role.value,
        )

        if failed:
            resolved = resolve_card(
                state, role, card, FIZZLE.format(name=card.name), [], self.session.rng, actor="system",
            )
            kind, actor = EventKind.SYSTEM, "system"
        else:
            validated = self.session.validator.resolution(state, role, card, raw)
            resolved = resolve_card(state, role, card, validated.narrative, validated.changes, self.session.rng)
            kind, actor = EventKind.RESOLUTION, role.value

        self._commit(resolved.new_state)
        self._publish(result, kind, actor, resolved.narrative, resolved.applied_changes, card=card.to_dict())

    # -------------------------------------------------------------------------
    # Creatures and combat
    # -------------------------------------------------------------------------

    async def creature_action(self, instance_id: str, role: Role | None = None) -> TurnResult:
        """
        Let one creature act on the proposer's decision.

        attack_creature and attack_hero become attacks (falling back to
        the first legal target if the chosen one is blocked); special
        applies the proposed changes. The creature has acted either way.
        """
        role = role or self.human_role
        result = self._new_result()
        state = self.game_state

        if state.is_over:
            return self._fail(result, "Game is over", ActionError.GAME_OVER)
        found = state.find_creature(instance_id)
        if found is None or found[0] != role:
            return self._fail(result, f"{role.value} has no creature {instance_id}", ActionError.ATTACKER_NOT_FOUND)
        if role != state.current_player:
            return self._fail(result, f"It is not {role.value}'s turn", ActionError.NOT_YOUR_TURN)
        if not can_creature_attack(state, instance_id):
            return self._fail(result, f"{found[1].name} cannot act right now", ActionError.CANNOT_ATTACK)

        creature = found[1]
        raw, failed = await self._ask(
            self.session.proposer.propose_creature_action, state.to_dict(), creature.to_dict(), role.value,
        )
        validated = self.session.validator.creature_action(state, instance_id, raw)
        narrative = WILD_CHARGE if failed else validated.narrative

        if validated.action == CreatureActionType.SPECIAL:
            resolved = resolve_card(
                exhaust_creature(state, instance_id), role, None, narrative, validated.changes, self.session.rng,
            )
            self._commit(resolved.new_state)
            self._publish(result, EventKind.CREATURE_ACTION, role.value, narrative, resolved.applied_changes)
        else:
            self._attack_with_fallback(result, role, instance_id, validated.target, narrative)

        return self._finish(result)

    def _attack_with_fallback(
        self,
        result: TurnResult,
        role: Role,
        attacker_id: str,
        target: AttackTarget | None,
        narrative: str,
    ):
        state = self.game_state
        attempt = perform_attack(state, attacker_id, target or role.other, self.session.rng)
        if not attempt.success:
            targets = legal_attack_targets(state, attacker_id)
            if targets:
                attempt = perform_attack(state, attacker_id, targets[0], self.session.rng)

        if attempt.success:
            new_state = add_log_entry(attempt.new_state, role, narrative) if narrative else attempt.new_state
            self._commit(new_state)
            self._publish(result, EventKind.ATTACK, role.value, narrative, attempt.applied_changes, [SoundCue.ATTACK])
            return

        _, creature = state.find_creature(attacker_id)
        line = HESITATES.format(name=creature.name)
        self._commit(add_log_entry(exhaust_creature(state, attacker_id), role, line))
        self._publish(result, EventKind.CREATURE_ACTION, role.value, line)

    async def attack(self, attacker_id: str, target: AttackTarget, role: Role | None = None) -> TurnResult:
        """Attack with a creature at a chosen target. No proposer involved."""
        role = role or self.human_role
        result = self._new_result()
        state = self.game_state

        if role != state.current_player:
            return self._fail(result, f"It is not {role.value}'s turn", ActionError.NOT_YOUR_TURN)

        attempt = perform_attack(state, attacker_id, target, self.session.rng)
        if not attempt.success:
            return self._fail(result, attempt.error, attempt.error_code)

        _, attacker = state.find_creature(attacker_id)
        line = f"{attacker.name} attacks {_target_name(state, target)}!"

        self._commit(add_log_entry(attempt.new_state, role, line))
        self._publish(result, EventKind.ATTACK, role.value, line, attempt.applied_changes, [SoundCue.ATTACK])
        return self._finish(result)

    async def combat(self, role: Role | None = None) -> TurnResult:
        """Run one batched combat for role using the proposer's attack orders."""
        role = role or self.human_role
        result = self._new_result()
        state = self.game_state

        raw, _ = await self._ask(self.session.proposer.propose_batch_combat, state.to_dict(), role.value)
        validated = self.session.validator.batch_combat(state, role, raw)

        batch = execute_batch_combat(state, role, validated.attacks, self.session.rng)
        if not batch.success:
            return self._fail(result, batch.error, batch.error_code)

        self._commit(add_log_entry(batch.new_state, role, validated.narrative))
        cues = [SoundCue.ATTACK] if batch.applied_changes else []
        self._publish(result, EventKind.COMBAT, role.value, validated.narrative, batch.applied_changes, cues)
        return self._finish(result)

    # -------------------------------------------------------------------------
    # Turns
    # -------------------------------------------------------------------------

    async def end_turn(self, role: Role | None = None, run_opponent: bool = True) -> TurnResult:
        """
        End the current turn.

        When role is given it must be the current player. If play passes
        to the opponent and run_opponent is set, the opponent's turn runs
        before this returns.
        """
        result = self._new_result()
        state = self.game_state

        if state.is_over:
            return self._fail(result, "Game is over", ActionError.GAME_OVER)
        if role is not None and role != state.current_player:
            return self._fail(result, f"It is not {role.value}'s turn", ActionError.NOT_YOUR_TURN)

        outgoing = state.current_player
        new_state = end_turn(state, self.session.rng)
        line = ""
        if not new_state.is_over:
            line = TURN_START_LINES[new_state.current_player]
            new_state = add_log_entry(new_state, "system", line)

        self._commit(new_state)
        self._publish(result, EventKind.TURN, outgoing.value, line, cues=[SoundCue.TURN_END, SoundCue.TURN_START])
        self._finish(result)

        if run_opponent and not self.game_state.is_over and self.game_state.current_player != self.human_role:
            result.merge(await self.run_opponent_turn())
        return self._finish(result)

    async def run_opponent_turn(self) -> TurnResult:
        """
        Drive the non-human role through a whole turn.

        Plays cards while the proposer wants to and a legal play exists
        (bounded by max_plays_per_turn), then fights, then ends the turn.
        With nothing to do, the proposer is not consulted at all.
        """
        role = self.human_role.other
        result = self._new_result()
        state = self.game_state

        if state.is_over:
            return self._fail(result, "Game is over", ActionError.GAME_OVER)
        if state.current_player != role:
            return self._fail(result, f"It is not {role.value}'s turn", ActionError.NOT_YOUR_TURN)

        if not has_any_action(state, role):
            self._commit(add_log_entry(state, role, NOTHING_TO_DO))
            self._publish(result, EventKind.SYSTEM, role.value, NOTHING_TO_DO)
            return self._finish(result.merge(await self.end_turn(run_opponent=False)))

        plays = 0
        while plays < self.session.config.max_plays_per_turn and legal_plays(self.game_state, role):
            state = self.game_state
            raw, failed = await self._ask(self.session.proposer.propose_card_play, state.to_dict(), role.value)
            decision = self.session.validator.card_play(state, role, None if failed else raw)

            if not decision.wants_to_play:
                self._commit(add_log_entry(state, role, decision.narrative))
                self._publish(result, EventKind.SYSTEM, role.value, decision.narrative)
                break

            if decision.narrative:
                self._commit(add_log_entry(state, role, decision.narrative))
                self._publish(result, EventKind.SYSTEM, role.value, decision.narrative)

            step = await self.play_card(decision.card_index, role)
            result.merge(step)
            plays += 1
            if not step.success or self.game_state.is_over:
                break

        if not self.game_state.is_over:
            if self.session.config.uses_mana:
                for creature in eligible_attackers(self.game_state, role):
                    if self.game_state.is_over:
                        break
                    if can_creature_attack(self.game_state, creature.instance_id):
                        result.merge(await self.creature_action(creature.instance_id, role))
            elif eligible_attackers(self.game_state, role):
                result.merge(await self.combat(role))

        if not self.game_state.is_over:
            result.merge(await self.end_turn(run_opponent=False))
        return self._finish(result)

    async def restart(self) -> TurnResult:
        """Discard the game and deal a new one."""
        self.session.restart()
        self._game_over_announced = False
        result = self._new_result()
        self._publish(result, EventKind.SYSTEM, "system", OPENING_LINE)
        return self._finish(result)
