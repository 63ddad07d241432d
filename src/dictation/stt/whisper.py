"""Local transcription with faster-whisper."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Optional

import numpy as np
from faster_whisper import WhisperModel

from ..audio.buffer import decode_wav
from ..audio.resampler import resample
from ..core.errors import AudioFormatError, EncodingError, InferenceError, ProviderConfigError
from .base import AudioFormat, TranscriptionProvider

logger = logging.getLogger(__name__)

WHISPER_SAMPLE_RATE = 16000

# Common Whisper hallucination phrases to strip from transcript start/end (case-insensitive)
_HALLUCINATION_PHRASES = (
    "thank you",
    "thanks for watching",
    "thanks for listening",
)
_HALLUCINATION_LEAD_PATTERNS = tuple(
    re.compile(r"^\s*[.,!?]*\s*" + re.escape(p) + r"[.,!?\s]*", re.IGNORECASE)
    for p in _HALLUCINATION_PHRASES
)
_HALLUCINATION_TRAIL_PATTERNS = tuple(
    re.compile(r"[.,!?\s]*" + re.escape(p) + r"\s*[.,!?]*\s*$", re.IGNORECASE)
    for p in _HALLUCINATION_PHRASES
)


def strip_hallucination_phrases(text: str) -> str:
    """Remove common Whisper hallucination phrases from the start and end of text."""
    t = text.strip()
    while True:
        changed = False
        for lead_re, trail_re in zip(_HALLUCINATION_LEAD_PATTERNS, _HALLUCINATION_TRAIL_PATTERNS):
            t_new = lead_re.sub("", t).strip()
            t_new = trail_re.sub("", t_new).strip()
            if t_new != t:
                t = t_new
                changed = True
                break
        if not changed:
            break
    return t


def wav_to_whisper_input(audio: bytes) -> np.ndarray:
    """Decode WAV bytes to mono float32 at 16 kHz."""
    try:
        samples, sample_rate, channels = decode_wav(audio)
    except EncodingError as e:
        raise AudioFormatError(str(e)) from e
    if channels > 1:
        usable = samples.size - samples.size % channels
        samples = samples[:usable].reshape(-1, channels).mean(axis=1)
    return resample(samples, sample_rate, WHISPER_SAMPLE_RATE)


class LocalWhisperTranscriber(TranscriptionProvider):
    """
    On-device transcription. Inference is blocking, so it runs in a worker
    thread to keep the event loop responsive.
    """

    name = "local-whisper"

    def __init__(
        self,
        model_path: str,
        device: str = "cpu",
        compute_type: str = "default",
        language: Optional[str] = "en",
        model: Optional[WhisperModel] = None,
    ):
        self.model_path = model_path
        self.language = language
        if model is not None:
            self._model = model
            return
        logger.info(f"Loading Whisper model: {model_path} (device={device})")
        try:
            self._model = WhisperModel(model_path, device=device, compute_type=compute_type)
        except Exception as e:
            raise ProviderConfigError(f"Failed to load Whisper model {model_path!r}: {e}") from e

    async def transcribe(self, audio: bytes, fmt: AudioFormat) -> str:
        return await asyncio.to_thread(self._transcribe_sync, audio)

    def _transcribe_sync(self, audio: bytes) -> str:
        pcm = wav_to_whisper_input(audio)
        if pcm.size == 0:
            return ""

        started_at = time.time()
        try:
            segments, _info = self._model.transcribe(
                pcm,
                language=self.language,
                vad_filter=False,
            )
            # segments is lazy; decoding happens while joining
            text = " ".join(s.text.strip() for s in segments).strip()
        except Exception as e:
            raise InferenceError(f"Local Whisper inference failed: {e}") from e
        logger.info(f"Local transcription took {time.time() - started_at:.3f}s")
        return strip_hallucination_phrases(text)
