"""Adapt arbitrary-rate capture audio into fixed-size detector frames."""

from __future__ import annotations

import logging
import math
from math import gcd

import numpy as np
from scipy.signal import resample_poly

from .buffer import f32_to_i16

logger = logging.getLogger(__name__)


def resample(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """Polyphase (windowed-sinc FIR) resampling of mono float samples."""
    samples = np.asarray(samples, dtype=np.float32)
    if source_rate == target_rate or samples.size == 0:
        return samples
    g = gcd(source_rate, target_rate)
    up, down = target_rate // g, source_rate // g
    return resample_poly(samples, up, down, window=("kaiser", 5.0)).astype(np.float32)


class FrameResampler:
    """
    Accumulates mono source-rate samples across calls and yields int16 frames of
    exactly `frame_size` samples at `target_rate`.

    Source audio is consumed in slices just large enough to produce one frame,
    so the detector sees frames as soon as enough input has arrived.
    """

    def __init__(self, source_rate: int, target_rate: int, frame_size: int):
        if source_rate <= 0 or target_rate <= 0 or frame_size <= 0:
            raise ValueError("rates and frame_size must be positive")
        self.source_rate = source_rate
        self.target_rate = target_rate
        self.frame_size = frame_size
        self.source_frame_size = math.ceil(frame_size * source_rate / target_rate)
        self._pending = np.zeros(0, dtype=np.float32)
        self._resampled = np.zeros(0, dtype=np.float32)

    def push(self, samples: np.ndarray) -> list[np.ndarray]:
        """Add mono float samples; return any complete int16 frames."""
        self._pending = np.concatenate([self._pending, np.asarray(samples, dtype=np.float32).reshape(-1)])

        frames: list[np.ndarray] = []
        while self._pending.size >= self.source_frame_size:
            chunk = self._pending[:self.source_frame_size]
            self._pending = self._pending[self.source_frame_size:]
            self._resampled = np.concatenate(
                [self._resampled, resample(chunk, self.source_rate, self.target_rate)]
            )

            while self._resampled.size >= self.frame_size:
                frames.append(f32_to_i16(self._resampled[:self.frame_size]))
                self._resampled = self._resampled[self.frame_size:]
        return frames

    def reset(self) -> None:
        self._pending = np.zeros(0, dtype=np.float32)
        self._resampled = np.zeros(0, dtype=np.float32)
