"""
Proposal Models - Structured decisions returned by the action proposer.

The proposer's raw output is arbitrary text expected to contain exactly
one JSON object. extract_json_object() locates and decodes it, and
parse_proposal() validates it against one of the models below. Any
failure yields None; the ProposalValidator then substitutes the fixed
fallback for that decision point.

Decision shapes (wire names are camelCase):
- Card play:      {"action": "play|pass|end_turn", "cardIndex": 0, "narrative": "..."}
- Creature:       {"action": "attack_creature|attack_hero|special", "targetId": "...",
                   "narrative": "...", "changes": [...]}
- Batched combat: {"narrative": "...", "attacks": [{"attackerId": "...", "targetId": "...|hero"}]}
- Resolution:     {"narrative": "...", "changes": [...]}
"""

import json
import logging
import re
from enum import Enum
from typing import Any, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

HERO_TARGET = "hero"


class CardPlayAction(str, Enum):
    PLAY = "play"
    PASS = "pass"
    END_TURN = "end_turn"


class CreatureActionType(str, Enum):
    ATTACK_CREATURE = "attack_creature"
    ATTACK_HERO = "attack_hero"
    SPECIAL = "special"


class CardPlayDecision(BaseModel):
    """Which card (if any) to play next."""
    action: CardPlayAction
    card_index: Optional[int] = Field(default=None, alias="cardIndex")
    narrative: str = ""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @property
    def wants_to_play(self) -> bool:
        return self.action == CardPlayAction.PLAY


class CreatureDecision(BaseModel):
    """What one creature does when it acts."""
    action: CreatureActionType
    target_id: Optional[str] = Field(default=None, alias="targetId")
    narrative: str = ""
    changes: list[dict[str, Any]] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "ignore"}


class AttackOrder(BaseModel):
    """One attacker/target pair in a batched combat."""
    attacker_id: str = Field(alias="attackerId")
    target_id: str = Field(default=HERO_TARGET, alias="targetId")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @property
    def targets_hero(self) -> bool:
        return self.target_id == HERO_TARGET


class BatchCombatDecision(BaseModel):
    """Ordered attacks for a whole side."""
    narrative: str = ""
    attacks: list[AttackOrder] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "ignore"}


class ResolutionProposal(BaseModel):
    """Narrative and changes for a played card or creature entry."""
    narrative: str = ""
    changes: list[dict[str, Any]] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "ignore"}


ProposalT = TypeVar("ProposalT", bound=BaseModel)

_FENCE_START = re.compile(r"^```(?:json)?\s*")
_FENCE_END = re.compile(r"\s*```$")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: Optional[str]) -> Optional[dict[str, Any]]:
    """
    Find and decode the JSON object in raw proposer output.

    Handles bare JSON, markdown code fences, and JSON surrounded by prose.
    Returns None if no object can be decoded.
    """
    if not text:
        return None
    content = text.strip()

    # Remove markdown code blocks
    if content.startswith("```"):
        content = _FENCE_START.sub("", content)
        content = _FENCE_END.sub("", content)

    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        data = None

    if data is None:
        match = _JSON_OBJECT.search(content)
        if not match:
            return None
        try:
            data = json.loads(match.group())
        except json.JSONDecodeError:
            return None

    return data if isinstance(data, dict) else None


def parse_proposal(
    raw: Union[str, dict[str, Any], None],
    model: Type[ProposalT],
) -> Optional[ProposalT]:
    """
    Validate raw proposer output against a proposal model.

    Accepts either the raw text or an already-decoded dict.
    Returns None (and logs a warning) if it does not fit.
    """
    data = raw if isinstance(raw, dict) else extract_json_object(raw)
    if data is None:
        logger.warning("No JSON object found in %s proposal", model.__name__)
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning("Malformed %s proposal: %s", model.__name__, e.errors())
        return None
