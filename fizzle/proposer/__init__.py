"""
Proposer - The external decision source and everything that guards it.

The proposer is untrusted. Its raw output is parsed into pydantic
models and validated against the current state; anything unusable maps
to a fixed fallback so the game never stalls.
"""

from .base import ActionProposer, FirstLegalProposer, NullProposer, RawProposal, ScriptedProposer
from .proposal import (
    AttackOrder,
    BatchCombatDecision,
    CardPlayAction,
    CardPlayDecision,
    CreatureActionType,
    CreatureDecision,
    ResolutionProposal,
    extract_json_object,
    parse_proposal,
)
from .validation import ProposalValidator, ValidatedCombat, ValidatedCreatureAction, ValidatedResolution
from .llm import AnthropicProposer

__all__ = [
    "ActionProposer",
    "FirstLegalProposer",
    "NullProposer",
    "RawProposal",
    "ScriptedProposer",
    "AttackOrder",
    "BatchCombatDecision",
    "CardPlayAction",
    "CardPlayDecision",
    "CreatureActionType",
    "CreatureDecision",
    "ResolutionProposal",
    "extract_json_object",
    "parse_proposal",
    "ProposalValidator",
    "ValidatedCombat",
    "ValidatedCreatureAction",
    "ValidatedResolution",
    "AnthropicProposer",
]
