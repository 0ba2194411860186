"""
Anthropic Proposer - Action proposals from the Anthropic Messages API.

Each decision is one POST to /v1/messages. Network errors, non-200
responses and timeouts are logged and turned into None, so the caller's
fallback takes over; retries are not attempted.

Requires ANTHROPIC_API_KEY environment variable.
"""

from __future__ import annotations
import asyncio
import logging
import os
from typing import Any

import aiohttp

from .base import ActionProposer, RawProposal
from .prompts import ProposerPrompts

logger = logging.getLogger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-3-5-haiku-latest"


class AnthropicProposer(ActionProposer):
    """
    ActionProposer backed by an Anthropic model.

    Returns the model's text; the caller extracts and validates the JSON.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = 30.0,
        max_tokens: int = 400,
        temperature: float = 0.8,
    ):
        """
        Initialize the proposer.

        Args:
            api_key: Anthropic API key
            model: Model name
            timeout: Request timeout in seconds
            max_tokens: Response length cap per decision
            temperature: Sampling temperature
        """
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature

    @classmethod
    def from_env(cls) -> AnthropicProposer | None:
        """Build from ANTHROPIC_API_KEY / FIZZLE_MODEL / FIZZLE_PROPOSER_TIMEOUT, or None without a key."""
        api_key = os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            return None
        return cls(
            api_key=api_key,
            model=os.getenv("FIZZLE_MODEL", DEFAULT_MODEL),
            timeout=float(os.getenv("FIZZLE_PROPOSER_TIMEOUT", "30")),
        )

    @property
    def is_available(self) -> bool:
        """Check if API key is set."""
        return bool(self.api_key)

    async def complete(self, prompt: str, system: str) -> str | None:
        """Send one message and return the concatenated text blocks, or None on failure."""
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "system": system,
            "messages": [{"role": "user", "content": prompt}],
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    ANTHROPIC_URL,
                    headers={
                        "x-api-key": self.api_key,
                        "anthropic-version": ANTHROPIC_VERSION,
                        "Content-Type": "application/json",
                    },
                    json=payload,
                ) as resp:
                    if resp.status != 200:
                        error_text = await resp.text()
                        logger.warning("Anthropic error %s: %s", resp.status, error_text[:500])
                        return None
                    data: dict[str, Any] = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Anthropic request failed: %s", e)
            return None

        content = ""
        for block in data.get("content", []):
            if block.get("type") == "text":
                content += block.get("text", "")
        return content or None

    async def propose_card_play(self, snapshot, role) -> RawProposal:
        return await self.complete(
            ProposerPrompts.card_play_prompt(snapshot, role),
            ProposerPrompts.card_play_system(),
        )

    async def propose_resolution(self, snapshot, card, role) -> RawProposal:
        return await self.complete(
            ProposerPrompts.resolve_prompt(snapshot, card, role),
            ProposerPrompts.resolve_system(),
        )

    async def propose_creature_action(self, snapshot, creature, owner) -> RawProposal:
        return await self.complete(
            ProposerPrompts.creature_action_prompt(snapshot, creature, owner),
            ProposerPrompts.creature_action_system(),
        )

    async def propose_batch_combat(self, snapshot, role) -> RawProposal:
        return await self.complete(
            ProposerPrompts.batch_combat_prompt(snapshot, role),
            ProposerPrompts.batch_combat_system(),
        )
