"""Rolling capture buffer and 16-bit PCM WAV encoding."""

from __future__ import annotations

import io
import logging
import wave

import numpy as np

from ..core.errors import EncodingError

logger = logging.getLogger(__name__)

I16_SCALE = 32767.0


def f32_to_i16(samples: np.ndarray) -> np.ndarray:
    """Clamp to [-1, 1] and scale to int16, truncating toward zero."""
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    return (clipped * I16_SCALE).astype(np.int16)


def i16_to_f32(samples: np.ndarray) -> np.ndarray:
    return np.asarray(samples, dtype=np.int16).astype(np.float32) / I16_SCALE


def encode_wav(samples: np.ndarray, sample_rate: int, channels: int) -> bytes:
    """Encode interleaved float samples as a 16-bit PCM WAV file."""
    try:
        pcm = f32_to_i16(samples)
        out = io.BytesIO()
        with wave.open(out, "wb") as wf:
            wf.setnchannels(channels)
            wf.setsampwidth(2)
            wf.setframerate(sample_rate)
            wf.writeframes(pcm.astype("<i2").tobytes())
        return out.getvalue()
    except (wave.Error, ValueError) as e:
        raise EncodingError(f"Failed to encode audio: {e}") from e


def decode_wav(data: bytes) -> tuple[np.ndarray, int, int]:
    """
    Decode a 16-bit PCM WAV file.

    Returns:
        (interleaved float32 samples, sample_rate, channels)
    """
    try:
        with wave.open(io.BytesIO(data), "rb") as wf:
            if wf.getsampwidth() != 2:
                raise EncodingError(f"Unsupported sample width: {wf.getsampwidth() * 8} bits")
            sample_rate = wf.getframerate()
            channels = wf.getnchannels()
            raw = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError) as e:
        raise EncodingError(f"Failed to decode audio: {e}") from e
    return i16_to_f32(np.frombuffer(raw, dtype="<i2")), sample_rate, channels


class AudioBuffer:
    """
    Bounded FIFO of interleaved float samples.

    Storage is a preallocated ring of `int(sample_rate * max_duration_secs)` whole
    frames, so `append` never grows memory; once full, the oldest samples are
    overwritten.
    """

    def __init__(self, sample_rate: int, channels: int, max_duration_secs: float):
        self.sample_rate = sample_rate
        self.channels = channels
        self.max_duration_secs = max_duration_secs
        # whole frames only, so wraparound never splits a frame
        self.max_samples = int(sample_rate * max_duration_secs) * channels
        self._ring = np.zeros(self.max_samples, dtype=np.float32)
        self._start = 0
        self._len = 0

    def append(self, new_samples: np.ndarray) -> None:
        data = np.asarray(new_samples, dtype=np.float32).reshape(-1)
        cap = self.max_samples
        if cap == 0 or data.size == 0:
            return
        if data.size >= cap:
            self._ring[:] = data[-cap:]
            self._start = 0
            self._len = cap
            return

        end = (self._start + self._len) % cap
        first = min(data.size, cap - end)
        self._ring[end:end + first] = data[:first]
        self._ring[:data.size - first] = data[first:]

        overflow = self._len + data.size - cap
        if overflow > 0:
            self._start = (self._start + overflow) % cap
            self._len = cap
        else:
            self._len += data.size

    def samples(self) -> np.ndarray:
        """Ordered copy of the buffered samples, oldest first."""
        if self._len == 0:
            return np.zeros(0, dtype=np.float32)
        idx = (self._start + np.arange(self._len)) % self.max_samples
        return self._ring[idx]

    def clear(self) -> None:
        self._start = 0
        self._len = 0

    def __len__(self) -> int:
        return self._len

    def is_empty(self) -> bool:
        return self._len == 0

    def duration_secs(self) -> float:
        return self._len / float(self.sample_rate * self.channels)

    def to_wav_bytes(self) -> bytes:
        return encode_wav(self.samples(), self.sample_rate, self.channels)
