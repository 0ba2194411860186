"""
Proposer Prompts - Prompt text for the language-model proposer.

Each decision point has a system prompt stating the JSON shape to return,
and a builder that renders the relevant slice of the state snapshot.
The output is parsed by parse_proposal(); anything that does not fit the
shape falls back, so the prompts only need to make good answers likely.
"""

from dataclasses import dataclass
from typing import Any


def _enemy(role: str) -> str:
    return "opponent" if role == "player" else "player"


def _creature_list(field: list[dict[str, Any]], with_stats: bool = True) -> str:
    if not field:
        return "none"
    parts = []
    for c in field:
        label = f"{c['name']}[{c['instanceId']}]"
        if with_stats:
            label += f"({c['currentAttack']}/{c['currentHealth']})"
        statuses = c.get("statusEffects")
        if statuses:
            label += "{" + ",".join(statuses) + "}"
        parts.append(label)
    return ",".join(parts)


CHANGE_VOCABULARY = (
    "damage|heal|destroy|buff|debuff|draw|discard|mill|apply_status|remove_status|"
    "add_shield|summon|steal_creature|transform|copy_creature|bounce|apply_effect|remove_effect"
)


@dataclass
class ProposerPrompts:
    """
    Collection of prompts for the four decision points.

    System prompts are fixed; user prompts are rendered from a snapshot.
    """

    @staticmethod
    def resolve_system() -> str:
        """How a played card resolves."""
        return (
            "Narrate card effects in a whimsical card game. Be creative but brief (1-2 sentences).\n\n"
            "Respond with JSON only:\n"
            '{"narrative": "What happens", "changes": [{"type": "' + CHANGE_VOCABULARY + '", '
            '"target": "player|opponent|creature", "targetId": "id-if-creature", "value": number}]}\n\n'
            "Effect scale: 1-cost = 1-2 damage/+1 buff. 5-cost = 4-5 damage or multiple effects. "
            "Creatures already summoned - describe entry effects only."
        )

    @staticmethod
    def resolve_prompt(snapshot: dict[str, Any], card: dict[str, Any], role: str) -> str:
        enemy = snapshot[_enemy(role)]
        lines = [
            f"{card['name']} ({card['type']}, {card['cost']} mana): \"{card['flavor']}\"",
            f"Enemy: {enemy['health']}hp, creatures: {_creature_list(enemy['field'])}",
            f"Yours: {_creature_list(snapshot[role]['field'])}",
        ]
        if card.get("targetType", "none") != "none":
            lines.append(f"Target must be: {card['targetType']}")
        lines.append(
            "Creature summoned - describe entry effect." if card["type"] == "creature" else "Cast spell effect."
        )
        return "\n".join(lines)

    @staticmethod
    def card_play_system() -> str:
        """Which card the opponent plays."""
        return (
            "AI opponent in card game. Pick ONE action. JSON only:\n"
            '{"action": "play|end_turn", "cardIndex": 0, "narrative": "brief quip"}\n'
            "Priority: play affordable cards > end turn."
        )

    @staticmethod
    def card_play_prompt(snapshot: dict[str, Any], role: str) -> str:
        me = snapshot[role]
        hand = " ".join(f"{i}:{c['name']}({c['cost']})" for i, c in enumerate(me["hand"]))
        if snapshot.get("economy") == "single_play":
            return f"Hand:[{hand}] You may play one card this turn. Pick card index to play or end_turn."
        return f"Mana:{me['mana']} Hand:[{hand}] Pick card index to play or end_turn."

    @staticmethod
    def creature_action_system() -> str:
        """What one creature does."""
        return (
            "Creature acts based on personality. JSON only:\n"
            '{"action": "attack_creature|attack_hero|special", "targetId": "id", '
            '"narrative": "1 sentence", "changes": []}\n\n'
            "70% attack, 30% personality-based. Special changes: {type,target,targetId,value}"
        )

    @staticmethod
    def creature_action_prompt(snapshot: dict[str, Any], creature: dict[str, Any], owner: str) -> str:
        enemy = snapshot[_enemy(owner)]
        return (
            f"{creature['name']}({creature['currentAttack']}/{creature['currentHealth']}): "
            f"\"{creature['flavor']}\"\n"
            f"Enemy: {enemy['health']}hp, creatures: {_creature_list(enemy['field'], with_stats=False)}"
        )

    @staticmethod
    def batch_combat_system() -> str:
        """Ordered attacks for a whole side."""
        return (
            "Command every ready creature in a card game battle. JSON only:\n"
            '{"narrative": "1-2 sentences", "attacks": [{"attackerId": "id", "targetId": "id|hero"}]}\n'
            "Creatures with taunt must be attacked first. Stealthed creatures cannot be attacked."
        )

    @staticmethod
    def batch_combat_prompt(snapshot: dict[str, Any], role: str) -> str:
        ready = [c for c in snapshot[role]["field"] if c.get("canAttack")]
        enemy = snapshot[_enemy(role)]
        return (
            f"Your ready creatures: {_creature_list(ready)}\n"
            f"Enemy: {enemy['health']}hp, creatures: {_creature_list(enemy['field'])}"
        )
