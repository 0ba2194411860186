"""
Turn/Combat Sequencer - Card play, combat and turn bookkeeping.

Phase machine:
    playing -> resolving -> playing     (play_card, then resolve_card)
    playing -> combat -> playing        (execute_batch_combat)
    playing -> playing, roles swapped   (end_turn)
    any -> ended                        (win condition only)

Every function here is pure: it takes a GameState and returns a new one
(or an ActionResult wrapping one). Illegal input is rejected with a
failed ActionResult or an unchanged state, never an exception.
"""

from __future__ import annotations
import logging
import random
import time
from dataclasses import replace
from typing import Iterable, Union

from .state import (
    Card,
    Creature,
    EffectTrigger,
    GameEvent,
    GameState,
    Phase,
    Role,
    StatusEffect,
)
from .changes import ChangeType, CreatureRef, RoleTarget, StateChange, Target
from .action import ActionError, ActionResult
from .applicator import (
    ChangeApplicator,
    check_win_condition,
    draw_cards,
    instantiate_creature,
    update_creature,
)
from .effects import can_creature_attack, get_effective_cost, process_effect_trigger, tick_passive_effects

logger = logging.getLogger(__name__)

# Anything an attack can be aimed at: a role, a resolved Target, or a bare instance id
AttackTarget = Union[Role, RoleTarget, CreatureRef, str]


# =============================================================================
# Log and draw
# =============================================================================

def add_log_entry(
    state: GameState,
    actor: Role | str,
    narrative: str,
    timestamp: float | None = None,
) -> GameState:
    """Append a GameEvent to the log. The log is append-only."""
    event = GameEvent(
        turn=state.turn,
        actor=actor.value if isinstance(actor, Role) else actor,
        narrative=narrative,
        timestamp=timestamp if timestamp is not None else time.time(),
    )
    return state._copy_with(log=state.log + (event,))


def draw_card(state: GameState, role: Role) -> GameState:
    """Draw one card for role. Drawing from an empty deck is a no-op."""
    return draw_cards(state, role, 1)


# =============================================================================
# Card play
# =============================================================================

def play_card(state: GameState, role: Role, hand_index: int) -> ActionResult:
    """
    Play the card at hand_index for role.

    On success the card leaves the hand, a creature card is placed on the
    field unable to attack, the cost (mana) or the per-turn play (single
    play) is spent, and the phase moves to resolving. The caller then
    obtains a resolution and passes it to resolve_card.
    """
    if state.is_over:
        return ActionResult.failure("Game is over", ActionError.GAME_OVER)
    if state.phase != Phase.PLAYING:
        return ActionResult.failure(f"Cannot play a card during {state.phase.value}", ActionError.WRONG_PHASE)
    if role != state.current_player:
        return ActionResult.failure(f"It is not {role.value}'s turn", ActionError.NOT_YOUR_TURN)

    player_state = state.get_player(role)
    if not isinstance(hand_index, int) or isinstance(hand_index, bool) \
            or hand_index < 0 or hand_index >= len(player_state.hand):
        return ActionResult.failure(f"No card at hand index {hand_index}", ActionError.INVALID_INDEX)

    card = player_state.hand[hand_index]
    cost = get_effective_cost(state, role, card)

    if state.config.uses_mana:
        if cost > player_state.mana:
            return ActionResult.failure(
                f"{card.name} costs {cost} but only {player_state.mana} mana is available",
                ActionError.INSUFFICIENT_MANA,
            )
        player_state = player_state._copy_with(mana=player_state.mana - cost)
    elif state.has_played_card:
        return ActionResult.failure("A card has already been played this turn", ActionError.ALREADY_PLAYED)

    hand = player_state.hand[:hand_index] + player_state.hand[hand_index + 1:]
    new_state = state.with_player(role, player_state._copy_with(hand=hand))
    if not state.config.uses_mana:
        new_state = new_state._copy_with(has_played_card=True)

    instance_id = None
    if card.is_creature:
        new_state, creature = instantiate_creature(new_state, card, role)
        instance_id = creature.instance_id

    new_state = new_state._copy_with(phase=Phase.RESOLVING)
    return ActionResult.success_with_state(new_state, card=card, instance_id=instance_id)


def resolve_card(
    state: GameState,
    role: Role,
    card: Card | None,
    narrative: str,
    changes: Iterable[StateChange],
    rng: random.Random | None = None,
    actor: Role | str | None = None,
) -> ActionResult:
    """
    Apply the resolution of a played card or creature ability.

    The changes go through the ChangeApplicator and the narrative is
    logged (for role unless another actor is given). When a card was
    played, on_play effects owned by role fire. The phase returns to
    playing unless the game ended.
    """
    if state.is_over:
        return ActionResult.failure("Game is over", ActionError.GAME_OVER)

    outcome = ChangeApplicator(rng=rng or random.Random()).apply(state, changes)
    new_state = add_log_entry(outcome.state, actor or role, narrative)
    applied = list(outcome.applied)

    if card is not None and not new_state.is_over:
        new_state, results = process_effect_trigger(new_state, EffectTrigger.ON_PLAY, role, rng)
        for result in results:
            applied.extend(result.applied)

    if not new_state.is_over:
        new_state = new_state._copy_with(phase=Phase.PLAYING)

    return ActionResult.success_with_state(new_state, card=card, changes=applied, narrative=narrative)


def exhaust_creature(state: GameState, instance_id: str) -> GameState:
    """Mark a creature as having acted this turn. Unknown ids leave state unchanged."""
    return update_creature(state, instance_id, lambda c: replace(c, can_attack=False)) or state


# =============================================================================
# Combat
# =============================================================================

def _coerce_target(target: AttackTarget) -> Target:
    if isinstance(target, Role):
        return RoleTarget(target)
    if isinstance(target, str):
        return CreatureRef(target)
    return target


def validate_attack(state: GameState, attacker_id: str, target: AttackTarget) -> ActionError | None:
    """
    Check an attack against the rules. Returns None if legal.

    Taunt: while the defending field holds a creature with taunt in force
    that is not stealthed, only such creatures may be attacked.
    Stealth: a stealthed creature can never be the target.
    """
    if state.is_over:
        return ActionError.GAME_OVER
    if state.phase not in (Phase.PLAYING, Phase.COMBAT):
        return ActionError.WRONG_PHASE

    found = state.find_creature(attacker_id)
    if found is None:
        return ActionError.ATTACKER_NOT_FOUND
    side, _ = found
    if side != state.current_player:
        return ActionError.NOT_YOUR_TURN
    if not can_creature_attack(state, attacker_id):
        return ActionError.CANNOT_ATTACK

    defending = side.other
    defenders = state.get_player(defending).field
    target = _coerce_target(target)

    if isinstance(target, RoleTarget):
        if target.role != defending:
            return ActionError.INVALID_TARGET
        defender = None
    else:
        defender = state.get_player(defending).find_creature(target.instance_id)
        if defender is None:
            return ActionError.INVALID_TARGET
        if defender.has_stealth:
            return ActionError.TARGET_STEALTHED

    taunts = [c for c in defenders if c.has_taunt and not c.has_stealth]
    if taunts and (defender is None or defender not in taunts):
        return ActionError.TAUNT_BLOCKS

    return None


def perform_attack(
    state: GameState,
    attacker_id: str,
    target: AttackTarget,
    rng: random.Random | None = None,
) -> ActionResult:
    """
    Resolve one attack and report the damage changes it produced.

    The attacker is exhausted and loses stealth. A hero takes the
    attacker's attack; two creatures exchange their attack values
    simultaneously. on_damage effects of the defending role fire if it
    took any damage.
    """
    error = validate_attack(state, attacker_id, target)
    if error is not None:
        logger.debug("Attack by %s rejected: %s", attacker_id, error.value)
        return ActionResult.failure(f"Attack rejected: {error.value}", error)

    target = _coerce_target(target)
    side, attacker = state.find_creature(attacker_id)
    defending = side.other

    state = update_creature(
        state,
        attacker_id,
        lambda c: replace(c, can_attack=False).without_status(StatusEffect.STEALTH),
    )

    if isinstance(target, RoleTarget):
        changes = [StateChange.damage(target, attacker.current_attack)]
    else:
        defender = state.get_player(defending).find_creature(target.instance_id)
        # Both values are read before either lands
        changes = [
            StateChange.damage(target, attacker.current_attack),
            StateChange.damage(CreatureRef(attacker_id), defender.current_attack),
        ]

    outcome = ChangeApplicator(rng=rng or random.Random()).apply(state, changes)
    new_state = outcome.state
    applied = list(outcome.applied)

    defender_hit = any(
        c.change_type == ChangeType.DAMAGE and (c.value or 0) > 0 and c.target == target
        for c in outcome.applied
    )
    if defender_hit and not new_state.is_over:
        new_state, results = process_effect_trigger(new_state, EffectTrigger.ON_DAMAGE, defending, rng)
        for result in results:
            applied.extend(result.applied)

    return ActionResult.success_with_state(check_win_condition(new_state), changes=applied)


def creature_attack(
    state: GameState,
    attacker_id: str,
    target: AttackTarget,
    rng: random.Random | None = None,
) -> GameState:
    """Resolve one attack. Returns the state unchanged if the attack is illegal."""
    result = perform_attack(state, attacker_id, target, rng)
    return result.new_state if result.success else state


def execute_batch_combat(
    state: GameState,
    role: Role,
    attacks: Iterable[tuple[str, AttackTarget]],
    rng: random.Random | None = None,
) -> ActionResult:
    """
    Resolve an ordered list of (attacker_id, target) pairs for role.

    Each attack is checked when its turn comes, so attackers that died or
    already attacked earlier in the batch are skipped. Stops the moment
    the game ends.
    """
    if state.is_over:
        return ActionResult.failure("Game is over", ActionError.GAME_OVER)
    if role != state.current_player:
        return ActionResult.failure(f"It is not {role.value}'s turn", ActionError.NOT_YOUR_TURN)
    if state.phase != Phase.PLAYING:
        return ActionResult.failure(f"Cannot start combat during {state.phase.value}", ActionError.WRONG_PHASE)

    state = state._copy_with(phase=Phase.COMBAT)
    applied: list[StateChange] = []

    for attacker_id, target in attacks:
        if state.is_over:
            break
        result = perform_attack(state, attacker_id, target, rng)
        if not result.success:
            continue
        state = result.new_state
        applied.extend(result.applied_changes)

    if not state.is_over:
        state = state._copy_with(phase=Phase.PLAYING)
    return ActionResult.success_with_state(state, changes=applied)


# =============================================================================
# Turn bookkeeping
# =============================================================================

def _start_of_turn_creature(creature: Creature) -> Creature:
    """Thaw or ready a creature at its owner's start of turn."""
    if creature.has_status(StatusEffect.FROZEN):
        return replace(creature.without_status(StatusEffect.FROZEN), can_attack=False)
    return replace(creature, can_attack=True)


def end_turn(state: GameState, rng: random.Random | None = None) -> GameState:
    """
    End the current role's turn and start the other's.

    Outgoing role: doomed creatures are destroyed, end_of_turn effects
    fire, passive effects count down.
    Incoming role: turn counter advances when play returns to the
    player, mana refills to the raised maximum (or the play flag
    clears), poison ticks, frozen creatures thaw without readying,
    everything else readies, start_of_turn effects fire, one card is
    drawn.
    """
    if state.is_over:
        return state

    rng = rng or random.Random()
    applicator = ChangeApplicator(rng=rng)
    outgoing = state.current_player
    incoming = outgoing.other

    # Outgoing role's end of turn
    doomed = [
        StateChange.destroy(c.instance_id)
        for c in state.get_player(outgoing).field
        if c.has_status(StatusEffect.DOOMED)
    ]
    state = applicator.apply(state, doomed).state
    state, _ = process_effect_trigger(state, EffectTrigger.END_OF_TURN, outgoing, rng)
    state = tick_passive_effects(state, outgoing)
    if state.is_over:
        return state

    # Hand over
    state = state._copy_with(
        current_player=incoming,
        turn=state.turn + 1 if incoming == Role.PLAYER else state.turn,
        phase=Phase.PLAYING,
    )
    player_state = state.get_player(incoming)
    if state.config.uses_mana:
        new_max = min(state.config.max_mana, player_state.max_mana + 1)
        state = state.with_player(incoming, player_state._copy_with(mana=new_max, max_mana=new_max))
    else:
        state = state._copy_with(has_played_card=False)

    # Incoming role's start of turn
    poison = [
        StateChange.damage(CreatureRef(c.instance_id), 1)
        for c in state.get_player(incoming).field
        if c.has_status(StatusEffect.POISONED)
    ]
    state = applicator.apply(state, poison).state

    player_state = state.get_player(incoming)
    state = state.with_player(incoming, player_state._copy_with(
        field=tuple(_start_of_turn_creature(c) for c in player_state.field)
    ))

    state, _ = process_effect_trigger(state, EffectTrigger.START_OF_TURN, incoming, rng)
    if state.is_over:
        return state

    state = draw_card(state, incoming)
    return check_win_condition(state)
