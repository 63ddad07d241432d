"""Audio subsystem: capture, rolling buffer, resampling and voice activity detection."""

from .buffer import AudioBuffer, decode_wav, encode_wav, f32_to_i16, i16_to_f32
from .capture import AudioCaptureEngine, default_input_device_info, list_input_devices
from .resampler import FrameResampler
from .types import CaptureEvent, VadAggressiveness, VadAutoStopConfig, VadConfig
from .vad import VadEvent, VadEventType, VadFrameProcessor, VoiceActivityDetector

__all__ = [
    "AudioBuffer",
    "AudioCaptureEngine",
    "CaptureEvent",
    "FrameResampler",
    "VadAggressiveness",
    "VadAutoStopConfig",
    "VadConfig",
    "VadEvent",
    "VadEventType",
    "VadFrameProcessor",
    "VoiceActivityDetector",
    "decode_wav",
    "default_input_device_info",
    "encode_wav",
    "f32_to_i16",
    "i16_to_f32",
    "list_input_devices",
]
