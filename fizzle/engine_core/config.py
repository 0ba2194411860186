"""
Rules Configuration - Tunable constants for one ruleset.

The two economies are alternative rulesets, not layers:
- MANA: cards cost mana, mana ramps by one each turn, creatures act one
  decision at a time
- SINGLE_PLAY: one card per turn regardless of cost, combat is batched
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class EconomyMode(Enum):
    """How card play is gated."""
    MANA = "mana"
    SINGLE_PLAY = "single_play"


@dataclass(frozen=True)
class RulesConfig:
    """
    Constants for a game.

    Stored on GameState so every pure function sees the same rules.
    """
    economy: EconomyMode = EconomyMode.MANA
    max_health: int = 30  # Starting health and heal cap
    max_mana: int = 10
    starting_mana: int = 1
    starting_hand_size: int = 4
    max_plays_per_turn: int = 10  # Safety bound for the opponent driver

    @property
    def uses_mana(self) -> bool:
        return self.economy == EconomyMode.MANA

    @classmethod
    def from_name(cls, economy: str | None) -> RulesConfig:
        """Build a config from an economy name ("mana" or "single_play")."""
        if not economy:
            return cls()
        return cls(economy=EconomyMode(economy.lower().replace("-", "_")))


DEFAULT_RULES = RulesConfig()
