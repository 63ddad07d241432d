"""Tests for source-rate to detector-rate frame adaptation."""

import numpy as np
import pytest

from dictation.audio.resampler import FrameResampler, resample


def _tone(sample_rate: int, seconds: float, freq: float = 440.0) -> np.ndarray:
    t = np.arange(int(sample_rate * seconds)) / sample_rate
    return (0.5 * np.sin(2 * np.pi * freq * t)).astype(np.float32)


class TestResample:
    def test_identity_when_rates_match(self):
        samples = _tone(16000, 0.01)
        np.testing.assert_array_equal(resample(samples, 16000, 16000), samples)

    def test_downsample_length(self):
        out = resample(_tone(48000, 0.1), 48000, 16000)
        assert out.size == 1600
        assert out.dtype == np.float32


class TestFrameResampler:
    @pytest.mark.parametrize("source_rate", [44100, 48000, 16000, 8000])
    def test_every_frame_has_exact_size(self, source_rate):
        resampler = FrameResampler(source_rate=source_rate, target_rate=16000, frame_size=160)
        audio = _tone(source_rate, 0.5)

        frames = []
        for start in range(0, audio.size, 512):
            frames.extend(resampler.push(audio[start:start + 512]))

        assert len(frames) >= 45
        assert all(frame.size == 160 for frame in frames)
        assert all(frame.dtype == np.int16 for frame in frames)

    def test_accumulates_across_small_pushes(self):
        resampler = FrameResampler(source_rate=48000, target_rate=16000, frame_size=160)
        assert resampler.source_frame_size == 480

        assert resampler.push(np.zeros(300, dtype=np.float32)) == []
        frames = resampler.push(np.zeros(300, dtype=np.float32))
        assert len(frames) == 1

    def test_reset_discards_partial_input(self):
        resampler = FrameResampler(source_rate=48000, target_rate=16000, frame_size=160)
        resampler.push(np.zeros(400, dtype=np.float32))
        resampler.reset()
        assert resampler.push(np.zeros(100, dtype=np.float32)) == []

    def test_rejects_non_positive_rates(self):
        with pytest.raises(ValueError):
            FrameResampler(source_rate=0, target_rate=16000, frame_size=160)
