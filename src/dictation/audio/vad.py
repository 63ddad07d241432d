"""webrtc-based voice activity detection with debounce, hangover and pre-roll."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Protocol

import numpy as np
import webrtcvad

from .resampler import FrameResampler
from .types import VadAggressiveness, VadConfig

logger = logging.getLogger(__name__)


class VadEventType(Enum):
    NONE = auto()
    SPEECH_START = auto()
    SPEECH_END = auto()


@dataclass(frozen=True)
class VadEvent:
    """Result of one processed frame. SPEECH_START carries the pre-roll audio."""
    type: VadEventType
    pre_roll: Optional[np.ndarray] = None

    @property
    def is_none(self) -> bool:
        return self.type is VadEventType.NONE


NO_EVENT = VadEvent(VadEventType.NONE)
SPEECH_END = VadEvent(VadEventType.SPEECH_END)


class VoiceClassifier(Protocol):
    def is_speech(self, frame: np.ndarray, sample_rate: int) -> bool: ...


class WebRtcClassifier:
    """Thin wrapper over `webrtcvad.Vad` taking int16 numpy frames."""

    def __init__(self, aggressiveness: VadAggressiveness = VadAggressiveness.AGGRESSIVE):
        self._vad = webrtcvad.Vad(aggressiveness.value)

    def is_speech(self, frame: np.ndarray, sample_rate: int) -> bool:
        return self._vad.is_speech(frame.astype("<i2").tobytes(), sample_rate)


class VoiceActivityDetector:
    """
    Frame-by-frame speech detector.

    Speech start is confirmed after `speech_frames_threshold` consecutive speech
    frames, speech end after `hangover_frames` consecutive silence frames. The
    last `pre_roll_ms` of frames are kept so the start of an utterance can be
    recovered once it is confirmed.
    """

    def __init__(self, config: Optional[VadConfig] = None, classifier: Optional[VoiceClassifier] = None):
        self.config = config or VadConfig()
        self._classifier = classifier or WebRtcClassifier(self.config.aggressiveness)

        self._is_speaking = False
        self._speech_frames = 0
        self._silence_frames = 0
        self._pre_roll: deque[np.ndarray] = deque(maxlen=self.config.pre_roll_frames)

    @property
    def frame_size(self) -> int:
        return self.config.frame_size

    @property
    def is_speaking(self) -> bool:
        return self._is_speaking

    def _classify(self, frame: np.ndarray) -> bool:
        try:
            return bool(self._classifier.is_speech(frame, self.config.sample_rate))
        except Exception as e:
            logger.debug(f"VAD classifier failed on frame, treating as silence: {e}")
            return False

    def process_frame(self, frame: np.ndarray) -> VadEvent:
        """
        Classify one int16 frame of exactly `frame_size` samples.

        Raises:
            ValueError: if the frame has the wrong length.
        """
        frame = np.asarray(frame, dtype=np.int16)
        if frame.size != self.frame_size:
            raise ValueError(f"VAD frame must have {self.frame_size} samples, got {frame.size}")

        if self._pre_roll.maxlen:
            self._pre_roll.append(frame.copy())

        if self._classify(frame):
            self._speech_frames += 1
            self._silence_frames = 0

            if not self._is_speaking and self._speech_frames >= self.config.speech_frames_threshold:
                self._is_speaking = True
                pre_roll = (
                    np.concatenate(list(self._pre_roll))
                    if self._pre_roll else np.zeros(0, dtype=np.int16)
                )
                logger.debug(f"VAD: speech started (pre-roll: {pre_roll.size} samples, {len(self._pre_roll)} frames)")
                return VadEvent(VadEventType.SPEECH_START, pre_roll=pre_roll)
        else:
            self._silence_frames += 1
            self._speech_frames = 0

            if self._is_speaking and self._silence_frames >= self.config.hangover_frames:
                self._is_speaking = False
                logger.debug(f"VAD: speech ended (after {self._silence_frames} silence frames)")
                return SPEECH_END

        return NO_EVENT

    def reset(self) -> None:
        self._is_speaking = False
        self._speech_frames = 0
        self._silence_frames = 0
        self._pre_roll.clear()


class VadFrameProcessor:
    """
    Feeds raw capture audio (device rate, interleaved channels) through a
    FrameResampler into a VoiceActivityDetector.
    """

    def __init__(
        self,
        config: VadConfig,
        source_sample_rate: int,
        channels: int = 1,
        classifier: Optional[VoiceClassifier] = None,
    ):
        self._vad = VoiceActivityDetector(config, classifier=classifier)
        self._channels = max(1, channels)
        self._resampler = FrameResampler(
            source_rate=source_sample_rate,
            target_rate=config.sample_rate,
            frame_size=self._vad.frame_size,
        )

    def _to_mono(self, samples: np.ndarray) -> np.ndarray:
        data = np.asarray(samples, dtype=np.float32)
        if data.ndim == 2:
            return data.mean(axis=1)
        if self._channels == 1:
            return data
        usable = data.size - data.size % self._channels
        return data[:usable].reshape(-1, self._channels).mean(axis=1)

    def process(self, samples: np.ndarray) -> list[VadEvent]:
        """Return the non-empty events produced by these samples, in order."""
        events = []
        for frame in self._resampler.push(self._to_mono(samples)):
            event = self._vad.process_frame(frame)
            if not event.is_none:
                events.append(event)
        return events

    def reset(self) -> None:
        self._vad.reset()
        self._resampler.reset()

    @property
    def is_speaking(self) -> bool:
        return self._vad.is_speaking
