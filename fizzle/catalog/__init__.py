"""
Catalog - Card definitions and game setup.

This module contains:
- The playable card list and the token list
- Lookup helpers for the action proposer's card references
- Deck shuffling and initial state creation
"""

from .cards import (
    PLAYABLE_CARDS,
    TOKENS,
    draw_random_token,
    find_card,
    get_card,
    get_token,
    list_playable_cards,
    list_tokens,
)
from .setup import OPENING_LINE, create_initial_state, shuffle_deck, shuffled_starter_deck

__all__ = [
    "PLAYABLE_CARDS",
    "TOKENS",
    "draw_random_token",
    "find_card",
    "get_card",
    "get_token",
    "list_playable_cards",
    "list_tokens",
    "OPENING_LINE",
    "create_initial_state",
    "shuffle_deck",
    "shuffled_starter_deck",
]
