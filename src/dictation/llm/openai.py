"""Rewrite providers over OpenAI-compatible chat completions (OpenAI, Ollama)."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from ..core.errors import RewriteError
from .base import DEFAULT_REWRITE_TIMEOUT_S, RewriteProvider

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"

_STRUCTURED_OUTPUT_INSTRUCTION = (
    "Return a JSON object with a single field `rewritten_text` containing the final text."
)

_REWRITE_RESPONSE_FORMAT: dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "rewrite_response",
        "strict": True,
        "description": "Structured output for a dictation transcript rewrite.",
        "schema": {
            "type": "object",
            "properties": {
                "rewritten_text": {
                    "type": "string",
                    "description": (
                        "The final rewritten transcript text, used directly as output. "
                        "No markdown wrapping or commentary."
                    ),
                }
            },
            "required": ["rewritten_text"],
            "additionalProperties": False,
        },
    },
}


class OpenAIRewriter(RewriteProvider):
    name = "openai"
    default_model = "gpt-4o-mini"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = DEFAULT_REWRITE_TIMEOUT_S,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or self.default_model
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_s,
            max_retries=0,
        )

    def supports_structured_outputs(self) -> bool:
        return self.model.startswith("gpt-4.1")

    async def complete(self, system_prompt: str, user_message: str) -> str:
        structured = self.supports_structured_outputs()
        if structured:
            system_prompt = f"{system_prompt}\n\n{_STRUCTURED_OUTPUT_INSTRUCTION}"

        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "temperature": 0.2,
        }
        if structured:
            kwargs["response_format"] = _REWRITE_RESPONSE_FORMAT

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            raise RewriteError(f"{self.name} completion failed: {e}") from e

        try:
            content = response.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            raise RewriteError(f"{self.name} response malformed: {e}") from e

        if not structured:
            return content
        try:
            return str(json.loads(content)["rewritten_text"])
        except (ValueError, KeyError, TypeError) as e:
            raise RewriteError(f"{self.name} structured output malformed: {e}") from e


class OllamaRewriter(OpenAIRewriter):
    """Local Ollama daemon through its OpenAI-compatible `/v1` endpoint. No key needed."""

    name = "ollama"
    default_model = "llama3.2"

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout_s: float = DEFAULT_REWRITE_TIMEOUT_S,
        client: Optional[AsyncOpenAI] = None,
    ):
        root = (base_url or DEFAULT_OLLAMA_URL).rstrip("/")
        super().__init__(
            api_key="ollama",
            model=model,
            base_url=f"{root}/v1",
            timeout_s=timeout_s,
            client=client,
        )

    def supports_structured_outputs(self) -> bool:
        return False
