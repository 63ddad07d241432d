"""Microphone capture into a bounded rolling buffer, with optional VAD feed."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Optional, Union

import numpy as np
import sounddevice as sd

from ..core.errors import (
    CaptureNotActiveError,
    DeviceConfigError,
    NoInputDeviceError,
    StreamBuildError,
    StreamStartError,
)
from ..core.shutdown import GracefulShutdown
from .buffer import AudioBuffer
from .types import CaptureEvent, VadAutoStopConfig
from .vad_worker import ClassifierFactory, VadWorker

logger = logging.getLogger(__name__)

DeviceSpec = Optional[Union[int, str]]

# Queue sizes bound memory if a consumer stalls; overflow is dropped, never waited on.
VAD_SAMPLES_QUEUE_SIZE = 256
VAD_EVENTS_QUEUE_SIZE = 64
STARTUP_TIMEOUT_S = 5.0
JOIN_TIMEOUT_S = 5.0


def list_input_devices() -> list[dict]:
    """List available audio input devices."""
    devices = []
    for i, device in enumerate(sd.query_devices()):
        if device["max_input_channels"] > 0:
            devices.append({
                "id": i,
                "name": device["name"],
                "channels": device["max_input_channels"],
                "sample_rate": device["default_samplerate"],
            })
    return devices


def default_input_device_info(device: DeviceSpec = None) -> tuple[str, int, int]:
    """
    Return (name, native sample rate, channel count) of the input device.

    Raises:
        NoInputDeviceError: no usable input device.
        DeviceConfigError: the device reports an unusable configuration.
    """
    try:
        info = sd.query_devices(device, kind="input")
    except (sd.PortAudioError, ValueError) as e:
        raise NoInputDeviceError(f"No input device available: {e}") from e

    try:
        sample_rate = int(info["default_samplerate"])
        channels = int(info["max_input_channels"])
    except (KeyError, TypeError, ValueError) as e:
        raise DeviceConfigError(f"Failed to get device config: {e}") from e

    if channels < 1:
        raise NoInputDeviceError(f"Device {info.get('name')!r} has no input channels")
    if sample_rate <= 0:
        raise DeviceConfigError(f"Device {info.get('name')!r} reports sample rate {sample_rate}")
    return info.get("name", "unknown"), sample_rate, channels


class CaptureWorker(threading.Thread):
    """
    Owns the input stream for one session.

    The stream is opened, run and closed on this thread only. The callback
    appends to the shared buffer under a short lock and forwards a copy of the
    chunk to the VAD queue without blocking.
    """

    def __init__(
        self,
        *,
        stop_signal: GracefulShutdown,
        device: DeviceSpec,
        sample_rate: int,
        channels: int,
        buffer: AudioBuffer,
        buffer_lock: threading.Lock,
        ready_queue: "queue.Queue[Optional[Exception]]",
        vad_queue: "Optional[queue.Queue[np.ndarray]]" = None,
    ):
        super().__init__(name="CaptureThread", daemon=True)
        self._stop_signal = stop_signal
        self._device = device
        self._sample_rate = sample_rate
        self._channels = channels
        self._buffer = buffer
        self._buffer_lock = buffer_lock
        self._ready_queue = ready_queue
        self._vad_queue = vad_queue

    def _audio_callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.warning(f"Audio callback status: {status}")

        with self._buffer_lock:
            self._buffer.append(indata)

        if self._vad_queue is not None:
            try:
                self._vad_queue.put_nowait(indata.copy())
            except queue.Full:
                pass

    def run(self) -> None:
        try:
            stream = sd.InputStream(
                device=self._device,
                samplerate=self._sample_rate,
                channels=self._channels,
                dtype="float32",
                callback=self._audio_callback,
            )
        except Exception as e:
            self._ready_queue.put(StreamBuildError(f"Failed to build audio stream: {e}"))
            return

        try:
            stream.start()
        except Exception as e:
            stream.close()
            self._ready_queue.put(StreamStartError(f"Failed to start audio stream: {e}"))
            return

        self._ready_queue.put(None)
        try:
            while not self._stop_signal.is_set():
                self._stop_signal.stop_event.wait(0.1)
        finally:
            try:
                stream.stop()
                stream.close()
            except Exception as e:
                logger.warning(f"Error closing audio stream: {e}")
            logger.info("Microphone capture stopped")


class AudioCaptureEngine:
    """
    Session-scoped microphone capture.

    `start()` opens the default (or configured) input device at its native rate
    and channel count; `stop()` ends the session and waits for its threads;
    `stop_and_encode()` additionally returns the buffered audio as WAV.
    Guarding against concurrent sessions is the caller's job.
    """

    def __init__(
        self,
        vad_config: Optional[VadAutoStopConfig] = None,
        device: DeviceSpec = None,
        classifier_factory: Optional[ClassifierFactory] = None,
    ):
        self._vad_config = vad_config or VadAutoStopConfig()
        self._device = device
        self._classifier_factory = classifier_factory

        self.sample_rate = 0
        self.channels = 0
        self._buffer: Optional[AudioBuffer] = None
        self._buffer_lock = threading.Lock()
        self._stop_signal: Optional[GracefulShutdown] = None
        self._capture_worker: Optional[CaptureWorker] = None
        self._vad_worker: Optional[VadWorker] = None
        self._events_queue: Optional[queue.Queue[CaptureEvent]] = None

    @property
    def vad_config(self) -> VadAutoStopConfig:
        return self._vad_config

    def set_vad_config(self, config: VadAutoStopConfig) -> None:
        """Takes effect at the next `start()`."""
        self._vad_config = config

    def start(self, max_duration_secs: float) -> None:
        self.stop()

        name, sample_rate, channels = default_input_device_info(self._device)
        logger.info(f"Audio config: {name}, {sample_rate} Hz, {channels} channels")

        self.sample_rate = sample_rate
        self.channels = channels
        self._buffer = AudioBuffer(sample_rate, channels, max_duration_secs)
        stop_signal = GracefulShutdown()

        vad_queue: Optional[queue.Queue[np.ndarray]] = None
        vad_worker: Optional[VadWorker] = None
        events_queue: queue.Queue[CaptureEvent] = queue.Queue(maxsize=VAD_EVENTS_QUEUE_SIZE)
        if self._vad_config.enabled:
            vad_queue = queue.Queue(maxsize=VAD_SAMPLES_QUEUE_SIZE)
            vad_worker = VadWorker(
                stop_signal=stop_signal,
                cfg=self._vad_config.vad,
                sample_rate=sample_rate,
                channels=channels,
                samples_queue=vad_queue,
                events_queue=events_queue,
                classifier_factory=self._classifier_factory,
            )

        ready_queue: queue.Queue[Optional[Exception]] = queue.Queue(maxsize=1)
        capture_worker = CaptureWorker(
            stop_signal=stop_signal,
            device=self._device,
            sample_rate=sample_rate,
            channels=channels,
            buffer=self._buffer,
            buffer_lock=self._buffer_lock,
            ready_queue=ready_queue,
            vad_queue=vad_queue,
        )

        if vad_worker is not None:
            vad_worker.start()
        capture_worker.start()

        try:
            error = ready_queue.get(timeout=STARTUP_TIMEOUT_S)
        except queue.Empty:
            error = StreamStartError(f"Audio stream did not start within {STARTUP_TIMEOUT_S:g}s")

        if error is not None:
            stop_signal.stop()
            capture_worker.join(timeout=JOIN_TIMEOUT_S)
            if vad_worker is not None:
                vad_worker.join(timeout=JOIN_TIMEOUT_S)
            raise error

        self._stop_signal = stop_signal
        self._capture_worker = capture_worker
        self._vad_worker = vad_worker
        self._events_queue = events_queue
        logger.info("Audio capture started")

    def stop(self) -> None:
        """Stop the session if one is running. Safe to call repeatedly."""
        if self._stop_signal is None:
            return

        logger.info("Stopping audio capture")
        self._stop_signal.stop()
        if self._capture_worker is not None:
            self._capture_worker.join(timeout=JOIN_TIMEOUT_S)
        if self._vad_worker is not None:
            self._vad_worker.join(timeout=JOIN_TIMEOUT_S)

        self._stop_signal = None
        self._capture_worker = None
        self._vad_worker = None
        self._events_queue = None

    def stop_and_encode(self) -> bytes:
        """Stop capture and return the buffered audio as 16-bit PCM WAV."""
        self.stop()
        if self._buffer is None:
            raise CaptureNotActiveError()

        with self._buffer_lock:
            wav_bytes = self._buffer.to_wav_bytes()
        logger.info(f"Audio capture stopped, {len(wav_bytes)} bytes captured")
        return wav_bytes

    def is_recording(self) -> bool:
        return self._stop_signal is not None

    def poll_vad_event(self) -> Optional[CaptureEvent]:
        """Next pending speech event, or None. Never blocks."""
        if self._events_queue is None:
            return None
        try:
            return self._events_queue.get_nowait()
        except queue.Empty:
            return None

    def is_vad_auto_stop_enabled(self) -> bool:
        return self._vad_config.enabled and self._vad_config.auto_stop

    def duration_secs(self) -> float:
        if self._buffer is None:
            return 0.0
        with self._buffer_lock:
            return self._buffer.duration_secs()
