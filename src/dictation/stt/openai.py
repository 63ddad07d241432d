"""Hosted transcription over OpenAI-compatible APIs (OpenAI, Groq)."""

from __future__ import annotations

import base64
import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from ..core.errors import (
    MalformedResponseError,
    MissingCredentialError,
    ProviderApiError,
    ProviderError,
    ProviderNetworkError,
    ProviderTimeoutError,
)
from .base import AudioFormat, TranscriptionProvider

logger = logging.getLogger(__name__)

_TRANSCRIBE_INSTRUCTION = "Transcribe this audio. Output only the transcribed text, nothing else."


def translate_openai_error(error: openai.OpenAIError, provider: str) -> ProviderError:
    """Map SDK exceptions onto the provider error taxonomy."""
    if isinstance(error, openai.APITimeoutError):
        return ProviderTimeoutError(f"{provider} request timed out")
    if isinstance(error, openai.APIConnectionError):
        return ProviderNetworkError(f"{provider} connection error: {error}")
    if isinstance(error, openai.APIStatusError):
        return ProviderApiError(
            f"{provider} API error ({error.status_code}): {error.message}",
            status_code=error.status_code,
        )
    return ProviderApiError(f"{provider} error: {error}")


class OpenAITranscriber(TranscriptionProvider):
    """
    OpenAI transcription.

    Whisper-style models go through the multipart transcription endpoint;
    `gpt-4o*audio*` models go through chat completions with the WAV embedded
    as base64 input audio.
    """

    name = "openai"
    default_model = "gpt-4o-audio-preview"
    base_url: Optional[str] = None

    def __init__(self, api_key: str, model: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        if not api_key:
            raise MissingCredentialError(f"{self.name} transcription requires an API key")
        self.api_key = api_key
        self.model = model or self.default_model
        # Retries are handled by the pipeline, not the SDK
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=self.base_url, max_retries=0)

    def is_gpt4o_audio(self) -> bool:
        return "gpt-4o" in self.model and "audio" in self.model

    async def transcribe(self, audio: bytes, fmt: AudioFormat) -> str:
        try:
            if self.is_gpt4o_audio():
                return await self._transcribe_chat(audio, fmt)
            return await self._transcribe_file(audio, fmt)
        except openai.OpenAIError as e:
            raise translate_openai_error(e, self.name) from e

    async def _transcribe_file(self, audio: bytes, fmt: AudioFormat) -> str:
        result = await self.client.audio.transcriptions.create(
            model=self.model,
            file=(fmt.file_name, audio, fmt.mime_type),
        )
        text = getattr(result, "text", None)
        if not isinstance(text, str):
            raise MalformedResponseError(f"{self.name} response has no text field")
        return text.strip()

    async def _transcribe_chat(self, audio: bytes, fmt: AudioFormat) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            modalities=["text"],
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "input_audio",
                            "input_audio": {
                                "data": base64.b64encode(audio).decode("ascii"),
                                "format": fmt.extension,
                            },
                        },
                        {"type": "text", "text": _TRANSCRIBE_INSTRUCTION},
                    ],
                }
            ],
        )
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise MalformedResponseError(f"{self.name} chat response malformed: {e}") from e
        return (content or "").strip()


class GroqTranscriber(OpenAITranscriber):
    """Groq's Whisper endpoint speaks the OpenAI transcription API."""

    name = "groq"
    default_model = "whisper-large-v3"
    base_url = "https://api.groq.com/openai/v1"

    def is_gpt4o_audio(self) -> bool:
        return False
