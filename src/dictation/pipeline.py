"""
Recording pipeline: capture → transcription → optional rewrite.

One orchestrator owns one session at a time. Every state change happens in a
short critical section under a single lock, and the lock is never held across
an `await`. Transcription and rewrite each race their own deadline and the
session's cancellation handle, with cancellation taking priority.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Iterator, Optional

from .audio.capture import AudioCaptureEngine
from .audio.types import CaptureEvent, VadAutoStopConfig
from .core.cancellation import CancellationHandle
from .core.errors import (
    AlreadyRecordingError,
    CaptureError,
    NoProviderError,
    NotRecordingError,
    OperationCancelledError,
    PhaseTimeoutError,
    PipelineLockError,
    RecordingTooLargeError,
)
from .llm import RewriteConfig, RewriteProvider, create_rewrite_provider, format_text
from .llm.prompts import PromptSections
from .stt import AudioFormat, RetryConfig, TranscriptionProvider, TranscriptionRegistry, with_retry
from .stt.registry import create_transcription_registry

logger = logging.getLogger(__name__)

DEFAULT_TRANSCRIPTION_TIMEOUT_S = 60.0
MAX_WAV_SIZE_BYTES = 50 * 1024 * 1024
DEFAULT_LOCK_TIMEOUT_S = 5.0


class PipelineState(Enum):
    IDLE = auto()
    RECORDING = auto()
    TRANSCRIBING = auto()
    ERROR = auto()  # recoverable: a new recording may start

    def can_start(self) -> bool:
        return self in (PipelineState.IDLE, PipelineState.ERROR)

    def can_stop(self) -> bool:
        return self is PipelineState.RECORDING

    def can_cancel(self) -> bool:
        return self in (PipelineState.RECORDING, PipelineState.TRANSCRIBING)


@dataclass(frozen=True)
class PipelineConfig:
    max_duration_secs: float = 300.0
    stt_provider: str = "groq"
    stt_api_key: str = ""
    stt_model: Optional[str] = None
    whisper_model_path: Optional[str] = None
    retry: RetryConfig = field(default_factory=RetryConfig)
    vad: VadAutoStopConfig = field(default_factory=VadAutoStopConfig)
    transcription_timeout_s: float = DEFAULT_TRANSCRIPTION_TIMEOUT_S
    max_recording_bytes: int = MAX_WAV_SIZE_BYTES  # 0 disables the limit
    rewrite: RewriteConfig = field(default_factory=RewriteConfig)
    lock_timeout_s: float = DEFAULT_LOCK_TIMEOUT_S


class RaceOutcome(Enum):
    CANCELLED = auto()
    TIMED_OUT = auto()
    COMPLETED = auto()


def _consume_result(task: asyncio.Future) -> None:
    if not task.cancelled():
        task.exception()


async def race(
    handle: CancellationHandle,
    timeout_s: float,
    operation: Awaitable[Any],
) -> tuple[RaceOutcome, Optional[asyncio.Future]]:
    """
    Run `operation` against a deadline and a cancellation handle.

    Priority when several are ready at once: cancellation, then the deadline,
    then the operation. On COMPLETED the finished task is returned so the
    caller can take its result or exception.
    """
    work = asyncio.ensure_future(operation)
    if handle.is_cancelled():
        work.cancel()
        work.add_done_callback(_consume_result)
        return RaceOutcome.CANCELLED, None

    cancelled = asyncio.ensure_future(handle.wait())
    timer = asyncio.ensure_future(asyncio.sleep(timeout_s))
    try:
        await asyncio.wait({cancelled, timer, work}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        for task in (cancelled, timer, work):
            task.cancel()
        raise

    if handle.is_cancelled():
        outcome = RaceOutcome.CANCELLED
    elif timer.done():
        outcome = RaceOutcome.TIMED_OUT
    else:
        outcome = RaceOutcome.COMPLETED

    cancelled.cancel()
    timer.cancel()
    if outcome is not RaceOutcome.COMPLETED:
        work.cancel()
        work.add_done_callback(_consume_result)
        return outcome, None
    return outcome, work


@dataclass
class _Session:
    """Settings one session runs with, fixed when it starts."""
    handle: CancellationHandle
    config: PipelineConfig
    registry: TranscriptionRegistry
    rewrite_provider: Optional[RewriteProvider]


@dataclass
class _TranscriptionJob:
    """Everything phase two needs, copied out from under the lock."""
    wav_bytes: bytes
    provider: TranscriptionProvider
    rewrite_provider: Optional[RewriteProvider]
    prompts: PromptSections
    retry: RetryConfig
    timeout_s: float
    rewrite_timeout_s: float
    handle: CancellationHandle


class TranscriptionOrchestrator:
    """
    Session state machine for dictation.

    Idle/Error → Recording (start_recording) → Transcribing (stop_and_transcribe)
    → Idle on success or cancel, Error on failure. `cancel()` works from
    Recording or Transcribing; `force_reset()` works from anywhere.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        *,
        capture: Optional[AudioCaptureEngine] = None,
        registry: Optional[TranscriptionRegistry] = None,
        rewrite_provider: Optional[RewriteProvider] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._config = config or PipelineConfig()
        self._capture = capture or AudioCaptureEngine(vad_config=self._config.vad)
        self._registry = registry or self._build_registry(self._config)
        self._rewrite_provider = rewrite_provider or create_rewrite_provider(self._config.rewrite)
        self._sleep = sleep

        self._lock = threading.Lock()
        self._state = PipelineState.IDLE
        self._session: Optional[_Session] = None

    @staticmethod
    def _build_registry(config: PipelineConfig) -> TranscriptionRegistry:
        return create_transcription_registry(
            config.stt_provider,
            api_key=config.stt_api_key,
            model=config.stt_model,
            whisper_model_path=config.whisper_model_path,
        )

    @contextmanager
    def _locked(self) -> Iterator[None]:
        timeout = self._config.lock_timeout_s
        if not self._lock.acquire(timeout=timeout):
            raise PipelineLockError(f"Could not acquire pipeline lock within {timeout:g}s")
        try:
            yield
        finally:
            self._lock.release()

    def _reset_to_idle(self) -> None:
        self._state = PipelineState.IDLE
        self._session = None

    def _set_error(self, message: str) -> None:
        logger.error(f"Pipeline error: {message}")
        self._state = PipelineState.ERROR
        self._session = None

    def _is_current(self, handle: CancellationHandle) -> bool:
        """False once cancel/force_reset (or a newer session) has taken over."""
        return self._session is not None and self._session.handle is handle

    def _finish(self, handle: CancellationHandle, error: Optional[BaseException] = None) -> None:
        with self._locked():
            if not self._is_current(handle):
                return
            if error is None:
                self._reset_to_idle()
            else:
                self._set_error(str(error))

    # Session control

    def start_recording(self) -> None:
        """
        Raises:
            AlreadyRecordingError: a session is recording or transcribing.
            CaptureError: the device could not be opened (state becomes Error).
        """
        with self._locked():
            if not self._state.can_start():
                raise AlreadyRecordingError()

            session = _Session(
                handle=CancellationHandle(),
                config=self._config,
                registry=self._registry,
                rewrite_provider=self._rewrite_provider,
            )
            self._session = session
            try:
                self._capture.start(session.config.max_duration_secs)
            except CaptureError as e:
                self._set_error(f"Failed to start recording: {e}")
                raise

            self._state = PipelineState.RECORDING
            logger.info("Pipeline: recording started")

    def _stop_capture_checked(self, session: _Session) -> bytes:
        """Stop capture and enforce the size limit. Caller holds the lock."""
        try:
            wav_bytes = self._capture.stop_and_encode()
        except CaptureError as e:
            self._set_error(f"Failed to stop recording: {e}")
            raise

        limit = session.config.max_recording_bytes
        if limit > 0 and len(wav_bytes) > limit:
            self._set_error(f"Recording too large: {len(wav_bytes)} bytes")
            raise RecordingTooLargeError(len(wav_bytes), limit)
        return wav_bytes

    def _recording_session(self) -> _Session:
        if not self._state.can_stop() or self._session is None:
            raise NotRecordingError()
        return self._session

    def stop_recording(self) -> bytes:
        """Stop recording and return the WAV bytes without transcribing."""
        with self._locked():
            session = self._recording_session()
            wav_bytes = self._stop_capture_checked(session)
            self._reset_to_idle()
            logger.info(f"Pipeline: recording stopped, {len(wav_bytes)} bytes captured")
            return wav_bytes

    def _begin_transcription(self) -> _TranscriptionJob:
        with self._locked():
            session = self._recording_session()
            wav_bytes = self._stop_capture_checked(session)

            provider = session.registry.get_current()
            if provider is None:
                self._set_error("No transcription provider configured")
                raise NoProviderError()

            config = session.config
            self._state = PipelineState.TRANSCRIBING
            return _TranscriptionJob(
                wav_bytes=wav_bytes,
                provider=provider,
                rewrite_provider=session.rewrite_provider,
                prompts=config.rewrite.prompts,
                retry=config.retry,
                timeout_s=config.transcription_timeout_s,
                rewrite_timeout_s=config.rewrite.timeout_s,
                handle=session.handle,
            )

    async def stop_and_transcribe(self) -> str:
        """
        Stop recording, transcribe with retries, optionally rewrite, and return the text.

        Raises:
            NotRecordingError, RecordingTooLargeError, NoProviderError, CaptureError:
                from the synchronous stop phase.
            OperationCancelledError: the session was cancelled (state is Idle).
            PhaseTimeoutError: transcription missed its deadline (state is Error).
            ProviderError: transcription failed after retries (state is Error).
        """
        job = self._begin_transcription()
        try:
            return await self._run_job(job)
        except asyncio.CancelledError:
            # Caller cancelled the await itself; release the session.
            self._finish(job.handle)
            raise

    async def _run_job(self, job: _TranscriptionJob) -> str:
        handle = job.handle

        logger.info(
            f"Pipeline: starting transcription ({len(job.wav_bytes)} bytes, timeout {job.timeout_s:g}s)"
        )
        fmt = AudioFormat()
        outcome, task = await race(
            handle,
            job.timeout_s,
            with_retry(job.retry, lambda: job.provider.transcribe(job.wav_bytes, fmt), sleep=self._sleep),
        )

        if outcome is RaceOutcome.CANCELLED:
            logger.info("Pipeline: transcription cancelled")
            self._finish(handle)
            raise OperationCancelledError()
        if outcome is RaceOutcome.TIMED_OUT:
            error = PhaseTimeoutError(job.timeout_s)
            logger.warning(f"Pipeline: transcription timed out after {job.timeout_s:g}s")
            self._finish(handle, error)
            raise error

        try:
            transcript = task.result()
        except Exception as e:
            self._finish(handle, e)
            raise
        logger.info(f"Pipeline: transcription complete, {len(transcript)} chars")

        final_text = transcript
        if job.rewrite_provider is not None:
            final_text = await self._rewrite(job, transcript)

        self._finish(handle)
        logger.info(f"Pipeline: complete, {len(final_text)} chars output")
        return final_text

    async def _rewrite(self, job: _TranscriptionJob, transcript: str) -> str:
        """Rewrite failures and timeouts fall back to the raw transcript."""
        logger.info("Pipeline: applying rewrite")
        outcome, task = await race(
            job.handle,
            job.rewrite_timeout_s,
            format_text(job.rewrite_provider, transcript, job.prompts),
        )

        if outcome is RaceOutcome.CANCELLED:
            logger.info("Pipeline: rewrite cancelled")
            self._finish(job.handle)
            raise OperationCancelledError()
        if outcome is RaceOutcome.TIMED_OUT:
            logger.warning("Pipeline: rewrite timed out, using raw transcript")
            return transcript

        try:
            rewritten = task.result()
        except Exception as e:
            logger.warning(f"Pipeline: rewrite failed ({e}), using raw transcript")
            return transcript
        logger.info(f"Pipeline: rewrite {len(transcript)} -> {len(rewritten)} chars")
        return rewritten

    def cancel(self) -> None:
        """
        Abort the current session and return to Idle.

        Raises:
            NotRecordingError: nothing to cancel (Idle or Error).
        """
        with self._locked():
            if not self._state.can_cancel():
                logger.debug(f"Pipeline: cancel requested but nothing to cancel (state: {self._state.name})")
                raise NotRecordingError("Nothing to cancel")

            if self._session is not None:
                self._session.handle.cancel()
            if self._state is PipelineState.RECORDING:
                self._capture.stop()

            self._reset_to_idle()
            logger.info("Pipeline: cancelled and reset to idle")

    def force_reset(self) -> None:
        """Unconditionally cancel everything and return to Idle."""
        with self._locked():
            if self._session is not None:
                self._session.handle.cancel()
            self._capture.stop()
            self._reset_to_idle()
            logger.warning("Pipeline: force reset to idle")

    def update_config(self, config: PipelineConfig) -> None:
        """Replace configuration. An in-flight session keeps the settings it started with."""
        registry = self._build_registry(config)
        rewrite_provider = create_rewrite_provider(config.rewrite)

        with self._locked():
            if self._state in (PipelineState.RECORDING, PipelineState.TRANSCRIBING):
                logger.warning("Pipeline: config updated mid-session, takes effect next session")
            self._config = config
            self._registry = registry
            self._rewrite_provider = rewrite_provider
            self._capture.set_vad_config(config.vad)
            logger.info("Pipeline configuration updated")

    # Host polling

    def _read(self, reader: Callable[[], Any], fallback: Any) -> Any:
        try:
            with self._locked():
                return reader()
        except PipelineLockError:
            return fallback

    def state(self) -> PipelineState:
        return self._read(lambda: self._state, PipelineState.ERROR)

    def is_recording(self) -> bool:
        return self._read(lambda: self._state is PipelineState.RECORDING, False)

    def is_error(self) -> bool:
        return self._read(lambda: self._state is PipelineState.ERROR, True)

    def current_provider_name(self) -> str:
        return self._read(lambda: self._registry.current_name(), "")

    def cancellation_handle(self) -> Optional[CancellationHandle]:
        return self._read(lambda: self._session.handle if self._session else None, None)

    def poll_vad_event(self) -> Optional[CaptureEvent]:
        """Next speech event from the capture session, or None. Never blocks."""
        return self._capture.poll_vad_event()

    def is_vad_auto_stop_enabled(self) -> bool:
        return self._capture.is_vad_auto_stop_enabled()

    @property
    def config(self) -> PipelineConfig:
        return self._config
