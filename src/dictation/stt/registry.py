"""Provider registry and construction from configuration."""

from __future__ import annotations

import logging
from typing import Optional

from ..core.errors import DictationError, ProviderConfigError
from .base import TranscriptionProvider

logger = logging.getLogger(__name__)

HOSTED_PROVIDERS = ("openai", "groq", "deepgram")
LOCAL_PROVIDERS = ("local-whisper",)


class TranscriptionRegistry:
    """Named transcription providers with one selected as current."""

    def __init__(self):
        self._providers: dict[str, TranscriptionProvider] = {}
        self._current: str = ""

    def register(self, name: str, provider: TranscriptionProvider) -> None:
        self._providers[name] = provider
        if not self._current:
            self._current = name

    def set_current(self, name: str) -> bool:
        """Select a registered provider. Returns False if `name` is unknown."""
        if name not in self._providers:
            return False
        self._current = name
        return True

    def get_current(self) -> Optional[TranscriptionProvider]:
        return self._providers.get(self._current)

    def current_name(self) -> str:
        return self._current if self._current in self._providers else ""

    def names(self) -> list[str]:
        return list(self._providers)


def create_transcription_provider(
    provider: str,
    api_key: str = "",
    model: Optional[str] = None,
    whisper_model_path: Optional[str] = None,
) -> TranscriptionProvider:
    """
    Build a provider by name.

    Raises:
        ProviderConfigError / MissingCredentialError: unknown name, missing key or model.
    """
    if provider == "openai":
        from .openai import OpenAITranscriber
        return OpenAITranscriber(api_key, model)
    if provider == "groq":
        from .openai import GroqTranscriber
        return GroqTranscriber(api_key, model)
    if provider == "deepgram":
        from .deepgram import DeepgramTranscriber
        return DeepgramTranscriber(api_key, model)
    if provider == "local-whisper":
        if not whisper_model_path:
            raise ProviderConfigError("Local Whisper selected but no model path configured")
        from .whisper import LocalWhisperTranscriber
        return LocalWhisperTranscriber(whisper_model_path)
    raise ProviderConfigError(f"Unknown transcription provider: {provider}")


def create_transcription_registry(
    provider: str,
    api_key: str = "",
    model: Optional[str] = None,
    whisper_model_path: Optional[str] = None,
) -> TranscriptionRegistry:
    """Registry holding the configured provider, or empty if it cannot be built."""
    registry = TranscriptionRegistry()
    try:
        registry.register(
            provider,
            create_transcription_provider(provider, api_key, model, whisper_model_path),
        )
        logger.info(f"Transcription provider initialized: {provider}")
    except DictationError as e:
        logger.warning(f"Transcription provider '{provider}' unavailable: {e}")
    return registry
