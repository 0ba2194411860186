"""
Game Setup - Creates initial game state.

This module handles:
- Shuffling decks (Fisher-Yates, with an injectable RNG)
- Building each role's starter deck from the full catalog
- Drawing the opening hands
- Writing the opening line of the game log

Pass a seeded random.Random for reproducible games.
"""

from __future__ import annotations
import random
from typing import Sequence

from ..engine_core.config import RulesConfig, DEFAULT_RULES
from ..engine_core.state import Card, GameState, PlayerState, Role, ROLE_ORDER
from ..engine_core.applicator import draw_cards
from ..engine_core.sequencer import add_log_entry
from .cards import list_playable_cards

OPENING_LINE = "The battle begins! Two champions face off in a contest of wit and whimsy."


def shuffle_deck(cards: Sequence[Card], rng: random.Random | None = None) -> list[Card]:
    """Return a uniformly shuffled copy of cards (Fisher-Yates)."""
    rng = rng or random.Random()
    shuffled = list(cards)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def shuffled_starter_deck(rng: random.Random | None = None) -> list[Card]:
    """One copy of every playable card, shuffled."""
    return shuffle_deck(list_playable_cards(), rng)


def create_initial_state(
    config: RulesConfig = DEFAULT_RULES,
    rng: random.Random | None = None,
    random_seed: int | None = None,
) -> GameState:
    """
    Set up a new game.

    Args:
        config: Rules for this game
        rng: Random source for shuffling (takes precedence over random_seed)
        random_seed: Seed for deterministic shuffling

    Returns:
        Initial GameState with the player to act, turn 1
    """
    rng = rng or random.Random(random_seed)
    starting_mana = config.starting_mana if config.uses_mana else 0

    state = GameState(
        player=PlayerState(health=config.max_health, mana=starting_mana, max_mana=starting_mana),
        opponent=PlayerState(health=config.max_health, mana=starting_mana, max_mana=starting_mana),
        current_player=Role.PLAYER,
        config=config,
    )

    for role in ROLE_ORDER:
        deck = tuple(shuffled_starter_deck(rng))
        state = state.with_player(role, state.get_player(role)._copy_with(deck=deck))
        state = draw_cards(state, role, config.starting_hand_size)

    return add_log_entry(state, "system", OPENING_LINE)
