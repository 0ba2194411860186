"""
Proposal Validation - Turns untrusted proposer output into legal actions.

Validation never fails outright. Whatever the proposer returned (nothing,
prose, malformed JSON, impossible indices, unknown targets), the
validator produces a usable decision, substituting a fixed fallback so
the game always progresses:

- Card play: unparseable -> end turn; impossible play -> end turn
- Resolution: unparseable -> a shimmer of uncertain energy, no changes
- Creature action: unparseable -> attack the hero; unknown creature
  target -> attack the hero instead
- Batched combat: unparseable -> every ready creature attacks its first
  legal target; unknown attackers/targets are dropped
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field

from ..engine_core.state import Card, GameState, Role, TargetType
from ..engine_core.changes import CreatureRef, RoleTarget, StateChange, Target, parse_changes
from ..engine_core.action_generator import eligible_attackers, legal_attack_targets, legal_plays
from ..catalog import find_card
from .base import RawProposal
from .proposal import (
    BatchCombatDecision,
    CardPlayAction,
    CardPlayDecision,
    CreatureActionType,
    CreatureDecision,
    ResolutionProposal,
    parse_proposal,
)

logger = logging.getLogger(__name__)

# Fallback narratives
UNPARSEABLE_PLAY = "The opponent contemplates deeply, then passes."
IMPOSSIBLE_PLAY = "Hmm, that won't work. I end my turn."
NOTHING_TO_DO = "Nothing more to do this turn..."
UNCERTAIN_RESOLUTION = "The card shimmers with uncertain energy..."
CREATURE_CHARGES = "The creature charges forward!"
MISSING_TARGET = "{name} lunges forward, finding no creature to attack, and strikes the enemy hero instead!"
COMBAT_FALLBACK = "The creatures charge forward!"


@dataclass
class ValidatedResolution:
    narrative: str
    changes: list[StateChange] = field(default_factory=list)
    fallback: bool = False


@dataclass
class ValidatedCreatureAction:
    action: CreatureActionType
    narrative: str
    target: Target | None = None
    changes: list[StateChange] = field(default_factory=list)
    fallback: bool = False


@dataclass
class ValidatedCombat:
    narrative: str
    attacks: list[tuple[str, Target]] = field(default_factory=list)
    fallback: bool = False


def _allowed_sides(target_type: TargetType, role: Role) -> set[Role] | None:
    """Fields a card may reach into; None means unconstrained."""
    if target_type == TargetType.ENEMY_CREATURE:
        return {role.other}
    if target_type == TargetType.FRIENDLY_CREATURE:
        return {role}
    if target_type == TargetType.ANY_CREATURE:
        return {role, role.other}
    return None


@dataclass
class ProposalValidator:
    """
    Validates proposals against the current state.

    Reads the state only through the action generator, so its notion of
    legality always matches the sequencer's.
    """

    def card_play(self, state: GameState, role: Role, raw: RawProposal) -> CardPlayDecision:
        """A play decision whose index (if any) is legal right now."""
        decision = parse_proposal(raw, CardPlayDecision)
        if decision is None:
            return CardPlayDecision(action=CardPlayAction.END_TURN, narrative=UNPARSEABLE_PLAY)

        if decision.action != CardPlayAction.PLAY:
            return CardPlayDecision(action=CardPlayAction.END_TURN, narrative=decision.narrative or NOTHING_TO_DO)

        if decision.card_index not in legal_plays(state, role):
            logger.info("Rejected play of index %s for %s", decision.card_index, role.value)
            return CardPlayDecision(action=CardPlayAction.END_TURN, narrative=IMPOSSIBLE_PLAY)

        return decision

    def resolution(self, state: GameState, role: Role, card: Card | None, raw: RawProposal) -> ValidatedResolution:
        """
        Narrative plus parsed changes for a resolution.

        Role-targeted changes without a target default to the caster.
        Creature-targeted changes that reach outside the card's target
        type are dropped.
        """
        proposal = parse_proposal(raw, ResolutionProposal)
        if proposal is None:
            return ValidatedResolution(narrative=UNCERTAIN_RESOLUTION, fallback=True)

        changes = parse_changes(proposal.changes, default_role=role, card_lookup=find_card)
        allowed = _allowed_sides(card.target_type, role) if card else None
        if allowed is not None:
            kept = []
            for change in changes:
                instance_id = change.target_instance
                found = state.find_creature(instance_id) if instance_id else None
                if found is not None and found[0] not in allowed:
                    logger.info("Dropped %s on %s: outside %s", change.change_type.value, instance_id, card.target_type.value)
                    continue
                kept.append(change)
            changes = kept

        return ValidatedResolution(narrative=proposal.narrative or UNCERTAIN_RESOLUTION, changes=changes)

    def creature_action(self, state: GameState, instance_id: str, raw: RawProposal) -> ValidatedCreatureAction:
        """A creature decision whose creature target (if any) exists on the enemy field."""
        found = state.find_creature(instance_id)
        if found is None:
            return ValidatedCreatureAction(action=CreatureActionType.ATTACK_HERO, narrative=CREATURE_CHARGES, fallback=True)
        owner, creature = found
        enemy = owner.other
        hero = RoleTarget(enemy)

        decision = parse_proposal(raw, CreatureDecision)
        if decision is None:
            return ValidatedCreatureAction(
                action=CreatureActionType.ATTACK_HERO, narrative=CREATURE_CHARGES, target=hero, fallback=True,
            )

        if decision.action == CreatureActionType.ATTACK_CREATURE:
            if not decision.target_id or state.get_player(enemy).find_creature(decision.target_id) is None:
                return ValidatedCreatureAction(
                    action=CreatureActionType.ATTACK_HERO,
                    narrative=MISSING_TARGET.format(name=creature.name),
                    target=hero,
                    fallback=True,
                )
            return ValidatedCreatureAction(
                action=decision.action,
                narrative=decision.narrative,
                target=CreatureRef(decision.target_id),
            )

        if decision.action == CreatureActionType.SPECIAL:
            return ValidatedCreatureAction(
                action=decision.action,
                narrative=decision.narrative,
                changes=parse_changes(decision.changes, default_role=owner, card_lookup=find_card),
            )

        return ValidatedCreatureAction(action=CreatureActionType.ATTACK_HERO, narrative=decision.narrative, target=hero)

    def batch_combat(self, state: GameState, role: Role, raw: RawProposal) -> ValidatedCombat:
        """Ordered attacks restricted to role's creatures and real enemy targets."""
        decision = parse_proposal(raw, BatchCombatDecision)
        if decision is None:
            return ValidatedCombat(narrative=COMBAT_FALLBACK, attacks=self.default_attacks(state, role), fallback=True)

        own = state.get_player(role)
        enemy = state.get_player(role.other)
        seen: set[str] = set()
        attacks: list[tuple[str, Target]] = []
        for order in decision.attacks:
            if order.attacker_id in seen or own.find_creature(order.attacker_id) is None:
                continue
            if order.targets_hero:
                target: Target = RoleTarget(role.other)
            elif enemy.find_creature(order.target_id) is not None:
                target = CreatureRef(order.target_id)
            else:
                continue
            seen.add(order.attacker_id)
            attacks.append((order.attacker_id, target))

        return ValidatedCombat(narrative=decision.narrative or COMBAT_FALLBACK, attacks=attacks)

    def default_attacks(self, state: GameState, role: Role) -> list[tuple[str, Target]]:
        """Every ready creature against its first legal target, hero preferred."""
        attacks = []
        for creature in eligible_attackers(state, role):
            targets = legal_attack_targets(state, creature.instance_id)
            if targets:
                attacks.append((creature.instance_id, targets[0]))
        return attacks
