"""Audio subsystem data types and configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Union

SUPPORTED_VAD_FRAME_MS = (10, 20, 30)
SUPPORTED_VAD_SAMPLE_RATES = (8000, 16000, 32000, 48000)


class VadAggressiveness(Enum):
    """webrtc VAD operating modes, least to most aggressive at filtering non-speech."""
    QUALITY = 0
    LOW_BITRATE = 1
    AGGRESSIVE = 2
    VERY_AGGRESSIVE = 3

    @classmethod
    def parse(cls, value: Union[str, int, "VadAggressiveness"]) -> "VadAggressiveness":
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        try:
            return cls[text.upper().replace("-", "_")]
        except KeyError:
            raise ValueError(f"Unknown VAD aggressiveness: {value!r}") from None


@dataclass(frozen=True)
class VadConfig:
    """Voice activity detector settings. Immutable for a detector's lifetime."""
    aggressiveness: VadAggressiveness = VadAggressiveness.AGGRESSIVE
    speech_frames_threshold: int = 3
    hangover_frames: int = 30  # ~300ms at 10ms frames
    pre_roll_ms: int = 300
    frame_duration_ms: int = 10
    sample_rate: int = 16000

    def __post_init__(self):
        if self.frame_duration_ms not in SUPPORTED_VAD_FRAME_MS:
            raise ValueError(f"frame_duration_ms must be one of {SUPPORTED_VAD_FRAME_MS}")
        if self.sample_rate not in SUPPORTED_VAD_SAMPLE_RATES:
            raise ValueError(f"sample_rate must be one of {SUPPORTED_VAD_SAMPLE_RATES}")
        if self.speech_frames_threshold < 1 or self.hangover_frames < 1:
            raise ValueError("speech_frames_threshold and hangover_frames must be >= 1")
        if self.pre_roll_ms < 0:
            raise ValueError("pre_roll_ms must be >= 0")

    @property
    def frame_size(self) -> int:
        """Samples per detector frame."""
        return self.sample_rate * self.frame_duration_ms // 1000

    @property
    def pre_roll_frames(self) -> int:
        return self.pre_roll_ms // self.frame_duration_ms


@dataclass(frozen=True)
class VadAutoStopConfig:
    """Whether capture feeds the detector, and whether the host should auto-stop on SpeechEnd."""
    enabled: bool = False
    auto_stop: bool = False
    vad: VadConfig = field(default_factory=VadConfig)


class CaptureEvent(Enum):
    """Speech boundary notifications surfaced to the host."""
    SPEECH_START = auto()
    SPEECH_END = auto()
