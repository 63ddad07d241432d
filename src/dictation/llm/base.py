"""Rewrite (text completion) provider interface and configuration."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from .prompts import PromptSections

DEFAULT_REWRITE_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class RewriteConfig:
    enabled: bool = False
    provider: str = "openai"
    api_key: str = ""
    model: Optional[str] = None
    base_url: Optional[str] = None
    timeout_s: float = DEFAULT_REWRITE_TIMEOUT_S
    prompts: PromptSections = field(default_factory=PromptSections)


class RewriteProvider(ABC):
    """A text-completion service used to clean up raw transcripts."""

    name: str = "unknown"
    model: str = ""

    @abstractmethod
    async def complete(self, system_prompt: str, user_message: str) -> str:
        """
        Raises:
            RewriteError: on any failure.
        """
