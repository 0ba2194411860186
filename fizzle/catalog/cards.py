"""
Card Catalog - Static card and token definitions.

Playable cards make up every starter deck (one copy of each). Tokens
never appear in a deck or hand; they only enter play through summon,
copy or transform changes.

Card structure:
- Cost (mana)
- Kind (creature or spell)
- Base attack/health (creatures)
- Target type and special-effect tag (hints for the action proposer)
"""

from __future__ import annotations
import random

from ..engine_core.state import Card, CardKind, TargetType


def _creature(card_id: str, name: str, flavor: str, cost: int, attack: int, health: int,
              special_effect: str | None = None) -> Card:
    return Card(
        id=card_id,
        name=name,
        flavor=flavor,
        cost=cost,
        kind=CardKind.CREATURE,
        attack=attack,
        health=health,
        special_effect=special_effect,
    )


def _spell(card_id: str, name: str, flavor: str, cost: int,
           target_type: TargetType = TargetType.NONE, special_effect: str | None = None) -> Card:
    return Card(
        id=card_id,
        name=name,
        flavor=flavor,
        cost=cost,
        kind=CardKind.SPELL,
        target_type=target_type,
        special_effect=special_effect,
    )


def _token(card_id: str, name: str, flavor: str, attack: int, health: int) -> Card:
    return Card(
        id=card_id,
        name=name,
        flavor=flavor,
        cost=0,
        kind=CardKind.CREATURE,
        attack=attack,
        health=health,
        is_token=True,
    )


# =============================================================================
# Playable cards
# =============================================================================

PLAYABLE_CARDS: tuple[Card, ...] = (
    # Creatures
    _creature(
        "slightly-damp-towel", "Slightly Damp Towel",
        "It's not much, but it's honest work. Surprisingly effective against fire-based threats.",
        1, 1, 2,
    ),
    _creature(
        "ancient-dragon", "Ancient Dragon",
        "Has seen civilizations rise and fall. Mostly just wants a nap these days.",
        7, 7, 7,
    ),
    _creature(
        "confused-wizard", "Confused Wizard",
        'Wait, was it "fireball" or "furball"? The results vary dramatically.',
        3, 2, 4, special_effect="unpredictable",
    ),
    _creature(
        "angry-squirrel", "Angry Squirrel",
        "You ate the last acorn. You will pay.",
        1, 2, 1,
    ),
    _creature(
        "time-lost-knight", "Time-Lost Knight",
        "Arrived late to every battle in history. Still somehow wins.",
        4, 4, 4,
    ),
    _creature(
        "philosophical-crab", "Philosophical Crab",
        "Ponders the meaning of sideways movement. Very hard to argue with.",
        2, 1, 4, special_effect="taunt",
    ),
    _creature(
        "enthusiastic-goblin", "Enthusiastic Goblin",
        "Doesn't know what's happening but is VERY excited about it.",
        2, 3, 2,
    ),
    _creature(
        "sleepy-giant", "Sleepy Giant",
        "Hits hard when awake. Rarely awake.",
        5, 8, 4, special_effect="drowsy",
    ),
    _creature(
        "mirror-mimic", "Mirror Mimic",
        "Copies whatever it sees. Currently very confused by itself.",
        3, 2, 2, special_effect="copy",
    ),
    _creature(
        "cursed-accountant", "Cursed Accountant",
        "Deals in debts of the soul. Also regular debts.",
        4, 3, 5, special_effect="curse",
    ),

    # Spells
    _spell(
        "suspicious-fog", "Suspicious Fog",
        "It's definitely hiding something. What, exactly, remains unclear.",
        2, TargetType.FRIENDLY_CREATURE, "stealth",
    ),
    _spell(
        "definitely-not-a-trap", "Definitely Not a Trap",
        "Trust us. Would this card lie to you?",
        3, TargetType.NONE, "delayed",
    ),
    _spell(
        "minor-inconvenience", "Minor Inconvenience",
        "Their shoelace is untied. Their coffee is cold. Their day is ruined.",
        1, TargetType.ENEMY_CREATURE, "debuff",
    ),
    _spell(
        "chaos-ensues", "Chaos Ensues",
        "Something happens. No one knows what. Results may vary.",
        4, TargetType.NONE, "chaos",
    ),
    _spell(
        "aggressive-negotiations", "Aggressive Negotiations",
        "Diplomacy, but louder and with more fire.",
        3, TargetType.ENEMY_CREATURE, "damage",
    ),
    _spell(
        "reality-hiccup", "Reality Hiccup",
        "The universe blinks. Things are different now.",
        5, TargetType.ANY_CREATURE, "transform",
    ),
    _spell(
        "sudden-inspiration", "Sudden Inspiration",
        "A brilliant idea strikes! Literally. It hurts a bit.",
        2, TargetType.NONE, "draw",
    ),
    _spell(
        "borrowed-time", "Borrowed Time",
        "Take now, pay later. Interest rates are cosmic.",
        3, TargetType.NONE, "delayed",
    ),
)


# =============================================================================
# Tokens
# =============================================================================

TOKENS: tuple[Card, ...] = (
    _token("squirrel-reinforcement", "Squirrel Reinforcement", "The acorn debt is collected in person.", 1, 1),
    _token("dust-bunny", "Dust Bunny", "Lives under the battlefield. Mostly harmless.", 0, 2),
    _token("paperwork-golem", "Paperwork Golem", "Forms, in triplicate, that punch back.", 2, 3),
    _token("tiny-dragon", "Tiny Dragon", "Breathes a very small amount of fire.", 2, 1),
    _token("confetti-elemental", "Confetti Elemental", "Celebrates every hit, including the ones it takes.", 1, 2),
)

_CARDS_BY_ID = {card.id: card for card in PLAYABLE_CARDS}
_TOKENS_BY_ID = {card.id: card for card in TOKENS}


def list_playable_cards() -> list[Card]:
    """All cards that can appear in a deck, in catalog order."""
    return list(PLAYABLE_CARDS)


def list_tokens() -> list[Card]:
    """All token definitions, in catalog order."""
    return list(TOKENS)


def get_card(card_id: str) -> Card | None:
    """Look up a playable card by id."""
    return _CARDS_BY_ID.get(card_id)


def get_token(token_id: str) -> Card | None:
    """Look up a token by id."""
    return _TOKENS_BY_ID.get(token_id)


def find_card(card_id: str) -> Card | None:
    """Look up any card, token or playable, by id."""
    return _TOKENS_BY_ID.get(card_id) or _CARDS_BY_ID.get(card_id)


def draw_random_token(rng: random.Random | None = None) -> Card:
    """Pick a token uniformly at random."""
    return (rng or random.Random()).choice(TOKENS)
