"""Tests for microphone capture with sounddevice patched out."""

import queue
import time

import numpy as np
import pytest
from unittest.mock import MagicMock, patch

import sounddevice as sd

from dictation.audio.capture import AudioCaptureEngine, default_input_device_info, list_input_devices
from dictation.audio.types import CaptureEvent, VadAutoStopConfig, VadConfig
from dictation.audio.vad_worker import VadWorker
from dictation.core.errors import (
    CaptureNotActiveError,
    DeviceConfigError,
    NoInputDeviceError,
    StreamBuildError,
    StreamStartError,
)
from dictation.audio.buffer import decode_wav
from dictation.core.shutdown import GracefulShutdown
from tests.fakes import ScriptedClassifier

DEVICE_INFO = {"name": "Test Mic", "default_samplerate": 16000.0, "max_input_channels": 1}


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestDeviceQueries:
    def test_default_input_device_info(self):
        with patch("dictation.audio.capture.sd.query_devices", return_value=DEVICE_INFO):
            assert default_input_device_info() == ("Test Mic", 16000, 1)

    def test_no_device(self):
        with patch("dictation.audio.capture.sd.query_devices", side_effect=sd.PortAudioError("no device")):
            with pytest.raises(NoInputDeviceError):
                default_input_device_info()

    def test_zero_input_channels(self):
        info = dict(DEVICE_INFO, max_input_channels=0)
        with patch("dictation.audio.capture.sd.query_devices", return_value=info):
            with pytest.raises(NoInputDeviceError):
                default_input_device_info()

    def test_missing_fields(self):
        with patch("dictation.audio.capture.sd.query_devices", return_value={"name": "Broken"}):
            with pytest.raises(DeviceConfigError):
                default_input_device_info()

    def test_list_input_devices_skips_outputs(self):
        devices = [
            {"name": "Speakers", "max_input_channels": 0, "default_samplerate": 48000.0},
            {"name": "USB Mic", "max_input_channels": 2, "default_samplerate": 44100.0},
        ]
        with patch("dictation.audio.capture.sd.query_devices", return_value=devices):
            result = list_input_devices()

        assert result == [{"id": 1, "name": "USB Mic", "channels": 2, "sample_rate": 44100.0}]


class TestAudioCaptureEngine:
    @pytest.fixture
    def stream_factory(self):
        """Patch sd.InputStream, exposing the audio callback it was given."""
        captured = {}

        def factory(*args, **kwargs):
            captured["callback"] = kwargs["callback"]
            captured["kwargs"] = kwargs
            stream = MagicMock()
            captured["stream"] = stream
            return stream

        with patch("dictation.audio.capture.sd.query_devices", return_value=DEVICE_INFO), \
                patch("dictation.audio.capture.sd.InputStream", side_effect=factory):
            yield captured

    def test_callback_audio_is_encoded_on_stop(self, stream_factory):
        engine = AudioCaptureEngine()
        engine.start(max_duration_secs=1.0)
        assert engine.is_recording()
        assert stream_factory["kwargs"]["samplerate"] == 16000
        assert stream_factory["kwargs"]["channels"] == 1

        callback = stream_factory["callback"]
        callback(np.full((1600, 1), 0.5, dtype=np.float32), 1600, None, None)
        callback(np.full((1600, 1), -0.5, dtype=np.float32), 1600, None, None)

        wav = engine.stop_and_encode()
        samples, sample_rate, channels = decode_wav(wav)

        assert not engine.is_recording()
        assert (sample_rate, channels) == (16000, 1)
        assert samples.size == 3200
        stream_factory["stream"].start.assert_called_once()
        stream_factory["stream"].close.assert_called()

    def test_buffer_is_capped_at_max_duration(self, stream_factory):
        engine = AudioCaptureEngine()
        engine.start(max_duration_secs=0.1)

        for _ in range(10):
            stream_factory["callback"](np.zeros((1600, 1), dtype=np.float32), 1600, None, None)

        samples, _, _ = decode_wav(engine.stop_and_encode())
        assert samples.size == 1600

    def test_stop_is_idempotent(self, stream_factory):
        engine = AudioCaptureEngine()
        engine.start(max_duration_secs=1.0)
        engine.stop()
        engine.stop()
        assert not engine.is_recording()

    def test_stop_and_encode_without_session(self):
        with pytest.raises(CaptureNotActiveError):
            AudioCaptureEngine().stop_and_encode()

    def test_stream_build_failure(self):
        with patch("dictation.audio.capture.sd.query_devices", return_value=DEVICE_INFO), \
                patch("dictation.audio.capture.sd.InputStream", side_effect=sd.PortAudioError("busy")):
            engine = AudioCaptureEngine()
            with pytest.raises(StreamBuildError):
                engine.start(max_duration_secs=1.0)
        assert not engine.is_recording()

    def test_stream_start_failure(self):
        stream = MagicMock()
        stream.start.side_effect = sd.PortAudioError("device lost")
        with patch("dictation.audio.capture.sd.query_devices", return_value=DEVICE_INFO), \
                patch("dictation.audio.capture.sd.InputStream", return_value=stream):
            engine = AudioCaptureEngine()
            with pytest.raises(StreamStartError):
                engine.start(max_duration_secs=1.0)
        stream.close.assert_called_once()
        assert not engine.is_recording()

    def test_vad_events_are_polled(self, stream_factory):
        vad = VadAutoStopConfig(
            enabled=True,
            auto_stop=True,
            vad=VadConfig(speech_frames_threshold=2, hangover_frames=2),
        )
        engine = AudioCaptureEngine(
            vad_config=vad,
            classifier_factory=lambda cfg: ScriptedClassifier([True, True, False]),
        )
        engine.start(max_duration_secs=1.0)
        assert engine.is_vad_auto_stop_enabled()

        stream_factory["callback"](np.zeros((160 * 4, 1), dtype=np.float32), 640, None, None)

        events = []
        assert _wait_for(lambda: events.append(engine.poll_vad_event()) or CaptureEvent.SPEECH_END in events)
        assert [e for e in events if e is not None] == [CaptureEvent.SPEECH_START, CaptureEvent.SPEECH_END]
        engine.stop()

    def test_unread_vad_events_are_dropped_on_stop(self, stream_factory):
        engine = AudioCaptureEngine(
            vad_config=VadAutoStopConfig(
                enabled=True,
                auto_stop=True,
                vad=VadConfig(speech_frames_threshold=2, hangover_frames=2),
            ),
            classifier_factory=lambda cfg: ScriptedClassifier([True, True, False]),
        )
        engine.start(max_duration_secs=1.0)
        events_queue = engine._events_queue
        stream_factory["callback"](np.zeros((160 * 4, 1), dtype=np.float32), 640, None, None)
        assert _wait_for(lambda: events_queue.qsize() >= 2)

        engine.stop()

        assert engine.poll_vad_event() is None

    def test_poll_without_vad_returns_none(self, stream_factory):
        engine = AudioCaptureEngine()
        engine.start(max_duration_secs=1.0)
        assert engine.poll_vad_event() is None
        assert not engine.is_vad_auto_stop_enabled()
        engine.stop()

    def test_vad_config_applies_to_next_session(self, stream_factory):
        engine = AudioCaptureEngine()
        engine.set_vad_config(VadAutoStopConfig(enabled=True, auto_stop=True))
        assert engine.vad_config.enabled
        assert engine.is_vad_auto_stop_enabled()

    def test_full_vad_queue_never_blocks_callback(self, stream_factory):
        engine = AudioCaptureEngine(
            vad_config=VadAutoStopConfig(enabled=True),
            classifier_factory=lambda cfg: ScriptedClassifier([False]),
        )
        engine.start(max_duration_secs=1.0)

        started = time.time()
        for _ in range(1000):
            stream_factory["callback"](np.zeros((16, 1), dtype=np.float32), 16, None, None)
        assert time.time() - started < 2.0
        engine.stop()


class TestVadWorker:
    def test_handle_before_run_raises(self):
        worker = VadWorker(
            stop_signal=GracefulShutdown(),
            cfg=VadConfig(),
            sample_rate=16000,
            channels=1,
            samples_queue=queue.Queue(),
            events_queue=queue.Queue(),
        )
        with pytest.raises(RuntimeError):
            worker.handle(np.zeros(160, dtype=np.float32))
