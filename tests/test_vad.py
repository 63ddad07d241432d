"""Tests for voice activity detection: debounce, hangover and pre-roll."""

import numpy as np
import pytest

from dictation.audio.types import VadAggressiveness, VadConfig
from dictation.audio.vad import VadEventType, VadFrameProcessor, VoiceActivityDetector
from tests.fakes import ScriptedClassifier


def _frame(value: int = 0, size: int = 160) -> np.ndarray:
    return np.full(size, value, dtype=np.int16)


def _detector(decisions, **overrides) -> VoiceActivityDetector:
    config = VadConfig(**overrides)
    return VoiceActivityDetector(config, classifier=ScriptedClassifier(decisions))


class TestVadConfig:
    def test_defaults(self):
        config = VadConfig()
        assert config.aggressiveness is VadAggressiveness.AGGRESSIVE
        assert config.speech_frames_threshold == 3
        assert config.hangover_frames == 30
        assert config.pre_roll_ms == 300
        assert config.frame_size == 160
        assert config.pre_roll_frames == 30

    @pytest.mark.parametrize("frame_ms, size", [(10, 160), (20, 320), (30, 480)])
    def test_frame_size_follows_duration(self, frame_ms, size):
        assert VadConfig(frame_duration_ms=frame_ms).frame_size == size

    @pytest.mark.parametrize("overrides", [
        {"frame_duration_ms": 15},
        {"sample_rate": 44100},
        {"speech_frames_threshold": 0},
        {"hangover_frames": 0},
        {"pre_roll_ms": -10},
    ])
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValueError):
            VadConfig(**overrides)

    @pytest.mark.parametrize("text, expected", [
        ("quality", VadAggressiveness.QUALITY),
        ("Low_Bitrate", VadAggressiveness.LOW_BITRATE),
        ("very-aggressive", VadAggressiveness.VERY_AGGRESSIVE),
        ("2", VadAggressiveness.AGGRESSIVE),
        (3, VadAggressiveness.VERY_AGGRESSIVE),
    ])
    def test_aggressiveness_parse(self, text, expected):
        assert VadAggressiveness.parse(text) is expected

    def test_aggressiveness_parse_unknown(self):
        with pytest.raises(ValueError):
            VadAggressiveness.parse("loud")


class TestVoiceActivityDetector:
    def test_silence_never_starts_speech(self):
        vad = _detector([False])
        events = [vad.process_frame(_frame()) for _ in range(200)]

        assert all(event.is_none for event in events)
        assert not vad.is_speaking

    def test_speech_start_after_threshold(self):
        vad = _detector([True], speech_frames_threshold=3)
        events = [vad.process_frame(_frame()) for _ in range(10)]

        starts = [i for i, e in enumerate(events) if e.type is VadEventType.SPEECH_START]
        assert starts == [2]
        assert vad.is_speaking

    def test_speech_end_after_hangover(self):
        vad = _detector([True] * 3 + [False], speech_frames_threshold=3, hangover_frames=5)
        events = [vad.process_frame(_frame()) for _ in range(20)]

        types = [e.type for e in events]
        assert types.count(VadEventType.SPEECH_START) == 1
        assert types.count(VadEventType.SPEECH_END) == 1
        assert types.index(VadEventType.SPEECH_END) == 3 + 5 - 1
        assert not vad.is_speaking

    def test_intermittent_speech_below_threshold_is_ignored(self):
        vad = _detector([True, True, False] * 20, speech_frames_threshold=3)
        events = [vad.process_frame(_frame()) for _ in range(60)]

        assert all(event.is_none for event in events)

    def test_short_pause_does_not_end_speech(self):
        decisions = [True] * 3 + [False] * 4 + [True] + [False] * 4
        vad = _detector(decisions, speech_frames_threshold=3, hangover_frames=5)
        events = [vad.process_frame(_frame()) for _ in range(len(decisions))]

        assert VadEventType.SPEECH_END not in [e.type for e in events]
        assert vad.is_speaking

    def test_pre_roll_contains_frames_before_confirmation(self):
        vad = _detector([False] * 5 + [True] * 3, speech_frames_threshold=3, pre_roll_ms=50)
        start = None
        for i in range(8):
            event = vad.process_frame(_frame(i))
            if event.type is VadEventType.SPEECH_START:
                start = event

        assert start is not None
        # 50ms of 10ms frames: the last five frames, including the confirming one
        assert start.pre_roll.size == 5 * 160
        assert start.pre_roll[0] == 3
        assert start.pre_roll[-1] == 7

    def test_classifier_failure_counts_as_silence(self):
        vad = _detector([True, True, RuntimeError("boom"), True, True], speech_frames_threshold=3)
        events = [vad.process_frame(_frame()) for _ in range(5)]

        assert all(event.is_none for event in events)

    def test_wrong_frame_size_rejected(self):
        vad = _detector([False])
        with pytest.raises(ValueError):
            vad.process_frame(_frame(size=100))

    def test_reset_clears_counters(self):
        vad = _detector([True], speech_frames_threshold=3)
        for _ in range(5):
            vad.process_frame(_frame())
        assert vad.is_speaking

        vad.reset()

        assert not vad.is_speaking
        assert vad.process_frame(_frame()).is_none


class TestVadFrameProcessor:
    def test_native_rate_chunks_produce_events(self):
        processor = VadFrameProcessor(
            VadConfig(speech_frames_threshold=2, hangover_frames=3),
            source_sample_rate=48000,
            classifier=ScriptedClassifier([True, True, False]),
        )
        events = processor.process(np.zeros(480 * 6, dtype=np.float32))

        assert [e.type for e in events] == [VadEventType.SPEECH_START, VadEventType.SPEECH_END]
        assert not processor.is_speaking

    def test_stereo_input_is_downmixed(self):
        classifier = ScriptedClassifier([False])
        processor = VadFrameProcessor(VadConfig(), source_sample_rate=16000, channels=2, classifier=classifier)

        processor.process(np.zeros((320, 2), dtype=np.float32))
        processor.process(np.zeros(640, dtype=np.float32))

        assert classifier.calls == 4
