"""Rewrite provider over the Anthropic Messages API."""

from __future__ import annotations

import logging
from typing import Optional

import anthropic
from anthropic import AsyncAnthropic

from ..core.errors import RewriteError
from .base import DEFAULT_REWRITE_TIMEOUT_S, RewriteProvider

logger = logging.getLogger(__name__)


class AnthropicRewriter(RewriteProvider):
    name = "anthropic"
    default_model = "claude-3-haiku-20240307"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        timeout_s: float = DEFAULT_REWRITE_TIMEOUT_S,
        max_tokens: int = 4096,
        client: Optional[AsyncAnthropic] = None,
    ):
        self.model = model or self.default_model
        self.max_tokens = max_tokens
        self.client = client or AsyncAnthropic(api_key=api_key, timeout=timeout_s, max_retries=0)

    async def complete(self, system_prompt: str, user_message: str) -> str:
        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}],
            )
        except anthropic.AnthropicError as e:
            raise RewriteError(f"{self.name} completion failed: {e}") from e

        texts = [
            block.text for block in getattr(message, "content", None) or []
            if getattr(block, "type", None) == "text"
        ]
        if not texts:
            raise RewriteError(f"{self.name} response has no text content")
        return "".join(texts)
