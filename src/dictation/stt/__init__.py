"""Speech-to-text providers and retry policy."""

from .base import AudioFormat, TranscriptionProvider
from .registry import TranscriptionRegistry, create_transcription_provider, create_transcription_registry
from .retry import RetryConfig, is_retryable_error, with_retry

__all__ = [
    "AudioFormat",
    "RetryConfig",
    "TranscriptionProvider",
    "TranscriptionRegistry",
    "create_transcription_provider",
    "create_transcription_registry",
    "is_retryable_error",
    "with_retry",
]
