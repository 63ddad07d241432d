"""Hosted transcription via Deepgram's pre-recorded audio endpoint."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..core.errors import (
    MalformedResponseError,
    MissingCredentialError,
    ProviderApiError,
    ProviderNetworkError,
    ProviderTimeoutError,
)
from .base import AudioFormat, TranscriptionProvider

logger = logging.getLogger(__name__)

DEEPGRAM_LISTEN_URL = "https://api.deepgram.com/v1/listen"


class DeepgramTranscriber(TranscriptionProvider):
    name = "deepgram"
    default_model = "nova-2"

    def __init__(self, api_key: str, model: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        if not api_key:
            raise MissingCredentialError("deepgram transcription requires an API key")
        self.api_key = api_key
        self.model = model or self.default_model
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(120.0))

    async def transcribe(self, audio: bytes, fmt: AudioFormat) -> str:
        try:
            response = await self.client.post(
                DEEPGRAM_LISTEN_URL,
                params={"model": self.model, "smart_format": "true"},
                headers={
                    "Authorization": f"Token {self.api_key}",
                    "Content-Type": fmt.mime_type,
                },
                content=audio,
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError("deepgram request timed out") from e
        except httpx.RequestError as e:
            raise ProviderNetworkError(f"deepgram connection error: {e}") from e

        if response.status_code >= 400:
            raise ProviderApiError(
                f"Deepgram API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
            transcript = payload["results"]["channels"][0]["alternatives"][0]["transcript"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError(f"Deepgram response malformed: {e}") from e
        return str(transcript).strip()
