"""Transcription provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class AudioFormat:
    """Describes the audio payload handed to a provider."""
    mime_type: str = "audio/wav"
    file_name: str = "audio.wav"
    extension: str = "wav"


class TranscriptionProvider(ABC):
    """Anything that can turn WAV bytes into text."""

    name: str = "unknown"

    @abstractmethod
    async def transcribe(self, audio: bytes, fmt: AudioFormat) -> str:
        """
        Transcribe one recording.

        Raises:
            ProviderError: (or a subclass) on any failure.
        """
