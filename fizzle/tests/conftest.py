"""
Pytest fixtures for Fizzle tests.

States are built by hand (no shuffling) so every test is deterministic.
Creature instance ids follow the engine's "<card id>-<n>" scheme with
small n; the state's counter starts at 100 so engine-made ids never clash.
"""

import random
from dataclasses import replace

import pytest

from ..engine_core.config import DEFAULT_RULES, EconomyMode, RulesConfig
from ..engine_core.state import (
    ActiveEffect,
    Card,
    Creature,
    EffectTarget,
    EffectTrigger,
    EffectType,
    GameState,
    PlayerState,
    Role,
    StatusEffect,
)
from ..catalog import find_card


SINGLE_PLAY = RulesConfig(economy=EconomyMode.SINGLE_PLAY)


def card(card_id: str) -> Card:
    """A catalog card or token by id."""
    found = find_card(card_id)
    assert found is not None, card_id
    return found


def creature(
    card_id: str,
    n: int = 1,
    *,
    attack: int | None = None,
    health: int | None = None,
    can_attack: bool = True,
    shield: int = 0,
    statuses: tuple[StatusEffect, ...] = (),
    is_token: bool = False,
    original_owner: Role | None = None,
) -> Creature:
    """A creature instance "<card_id>-<n>" with the template's stats unless overridden."""
    template = card(card_id)
    return Creature(
        instance_id=f"{card_id}-{n}",
        card=template,
        current_attack=template.attack if attack is None else attack,
        current_health=template.health if health is None else health,
        can_attack=can_attack,
        shield=shield,
        statuses=statuses,
        is_token=is_token or template.is_token,
        original_owner=original_owner,
    )


def make_state(
    player_field=(),
    opponent_field=(),
    player_hand=(),
    opponent_hand=(),
    player_deck=(),
    opponent_deck=(),
    player_health: int = 30,
    opponent_health: int = 30,
    mana: int = 10,
    config: RulesConfig = DEFAULT_RULES,
    **kwargs,
) -> GameState:
    """A game state with explicit hands, decks and fields. Card arguments are ids."""
    if not config.uses_mana:
        mana = 0
    return GameState(
        player=PlayerState(
            health=player_health,
            mana=mana,
            max_mana=mana,
            hand=tuple(card(c) for c in player_hand),
            deck=tuple(card(c) for c in player_deck),
            field=tuple(player_field),
        ),
        opponent=PlayerState(
            health=opponent_health,
            mana=mana,
            max_mana=mana,
            hand=tuple(card(c) for c in opponent_hand),
            deck=tuple(card(c) for c in opponent_deck),
            field=tuple(opponent_field),
        ),
        config=config,
        next_instance_seq=100,
        **kwargs,
    )


def effect(
    effect_type: EffectType,
    target: EffectTarget,
    owner: Role = Role.PLAYER,
    trigger: EffectTrigger = EffectTrigger.START_OF_TURN,
    magnitude: int = 1,
    turns_remaining: int | None = None,
    **kwargs,
) -> ActiveEffect:
    """An ActiveEffect template (no id yet; apply it with an apply_effect change)."""
    return ActiveEffect(
        effect_id="",
        name=f"{effect_type.value} effect",
        owner=owner,
        target=target,
        trigger=trigger,
        effect_type=effect_type,
        magnitude=magnitude,
        turns_remaining=turns_remaining,
        **kwargs,
    )


def with_effects(state: GameState, *effects: ActiveEffect) -> GameState:
    """Install effects directly, numbering them effect-1, effect-2, ..."""
    installed = tuple(replace(e, effect_id=f"effect-{i}") for i, e in enumerate(effects, start=1))
    return state._copy_with(active_effects=installed, next_effect_seq=len(installed) + 1)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(7)


@pytest.fixture
def board_state() -> GameState:
    """Player to act with a ready goblin; opponent has a crab and a squirrel."""
    return make_state(
        player_field=[creature("enthusiastic-goblin", 1)],
        opponent_field=[creature("philosophical-crab", 2), creature("angry-squirrel", 3)],
        player_hand=["angry-squirrel", "ancient-dragon", "minor-inconvenience"],
        player_deck=["slightly-damp-towel", "time-lost-knight"],
        opponent_deck=["mirror-mimic", "sleepy-giant"],
        mana=3,
    )
