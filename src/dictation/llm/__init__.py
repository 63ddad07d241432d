"""Optional transcript rewriting through a text-completion service."""

from __future__ import annotations

import logging
from typing import Optional

from .base import RewriteConfig, RewriteProvider
from .prompts import PromptSections, combine_prompt_sections, format_text

logger = logging.getLogger(__name__)


def create_rewrite_provider(config: RewriteConfig) -> Optional[RewriteProvider]:
    """Provider for `config`, or None when rewriting is off or a hosted provider has no key."""
    if not config.enabled:
        return None

    if config.provider == "ollama":
        from .openai import OllamaRewriter
        logger.info("Rewrite enabled with local Ollama")
        return OllamaRewriter(base_url=config.base_url, model=config.model, timeout_s=config.timeout_s)

    if not config.api_key:
        logger.warning(f"Rewrite provider '{config.provider}' requires an API key; rewriting disabled")
        return None

    if config.provider == "anthropic":
        from .anthropic import AnthropicRewriter
        provider: RewriteProvider = AnthropicRewriter(config.api_key, config.model, config.timeout_s)
    else:
        from .openai import OpenAIRewriter
        provider = OpenAIRewriter(config.api_key, config.model, config.base_url, config.timeout_s)

    logger.info(f"Rewrite enabled with provider: {provider.name}")
    return provider


__all__ = [
    "PromptSections",
    "RewriteConfig",
    "RewriteProvider",
    "combine_prompt_sections",
    "create_rewrite_provider",
    "format_text",
]
