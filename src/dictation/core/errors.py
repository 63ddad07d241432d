"""Exception hierarchy for capture, providers and the pipeline."""

from __future__ import annotations

from typing import Optional


class DictationError(Exception):
    """Base class for every expected failure in the dictation pipeline."""


# Capture

class CaptureError(DictationError):
    """Audio capture failed."""


class NoInputDeviceError(CaptureError):
    def __init__(self, message: str = "No input device available"):
        super().__init__(message)


class DeviceConfigError(CaptureError):
    pass


class StreamBuildError(CaptureError):
    pass


class StreamStartError(CaptureError):
    pass


class EncodingError(CaptureError):
    pass


class CaptureNotActiveError(CaptureError):
    def __init__(self, message: str = "Audio capture not active"):
        super().__init__(message)


# Transcription providers

class ProviderError(DictationError):
    """A transcription provider call failed."""


class ProviderNetworkError(ProviderError):
    pass


class ProviderTimeoutError(ProviderError):
    def __init__(self, message: str = "Provider request timed out"):
        super().__init__(message)


class ProviderApiError(ProviderError):
    """The provider rejected the request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(ProviderError):
    pass


class MissingCredentialError(ProviderError):
    pass


class AudioFormatError(ProviderError):
    pass


class ProviderConfigError(ProviderError):
    pass


class InferenceError(ProviderError):
    """Local model inference failed."""


class RewriteError(DictationError):
    """A rewrite provider call failed. Never escapes the orchestrator."""


# Pipeline

class PipelineError(DictationError):
    pass


class AlreadyRecordingError(PipelineError):
    def __init__(self, message: str = "Pipeline is already recording"):
        super().__init__(message)


class NotRecordingError(PipelineError):
    def __init__(self, message: str = "Pipeline is not recording"):
        super().__init__(message)


class NoProviderError(PipelineError):
    def __init__(self, message: str = "No transcription provider configured"):
        super().__init__(message)


class RecordingTooLargeError(PipelineError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"Recording too large: {size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class PipelineLockError(PipelineError):
    pass


class OperationCancelledError(PipelineError):
    def __init__(self, message: str = "Operation cancelled"):
        super().__init__(message)


class PhaseTimeoutError(PipelineError):
    def __init__(self, timeout_s: float, phase: str = "transcription"):
        super().__init__(f"{phase.capitalize()} timeout after {timeout_s:g}s")
        self.timeout_s = timeout_s
        self.phase = phase
