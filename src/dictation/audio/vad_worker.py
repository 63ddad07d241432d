"""Dedicated VAD thread: owns the classifier and turns raw capture audio into speech events."""

from __future__ import annotations

import logging
import queue
from typing import Callable, Optional

import numpy as np

from ..core.shutdown import StopSignal
from ..core.worker import QueueWorker
from .types import CaptureEvent, VadConfig
from .vad import VadEventType, VadFrameProcessor, VoiceClassifier

logger = logging.getLogger(__name__)

ClassifierFactory = Callable[[VadConfig], VoiceClassifier]


class VadWorker(QueueWorker[np.ndarray]):
    """
    Consumes raw sample chunks from the capture callback and publishes
    CaptureEvent items. The frame processor is created inside the thread so the
    classifier handle never leaves it.
    """

    def __init__(
        self,
        stop_signal: StopSignal,
        cfg: VadConfig,
        sample_rate: int,
        channels: int,
        samples_queue: "queue.Queue[np.ndarray]",
        events_queue: "queue.Queue[CaptureEvent]",
        classifier_factory: Optional[ClassifierFactory] = None,
    ):
        super().__init__(
            name="VadThread",
            stop_signal=stop_signal,
            input_queue=samples_queue,
            poll_interval_s=0.1,
        )
        self._cfg = cfg
        self._sample_rate = sample_rate
        self._channels = channels
        self._events_queue = events_queue
        self._classifier_factory = classifier_factory
        self._processor: Optional[VadFrameProcessor] = None

    def run(self) -> None:
        classifier = self._classifier_factory(self._cfg) if self._classifier_factory else None
        self._processor = VadFrameProcessor(
            self._cfg,
            source_sample_rate=self._sample_rate,
            channels=self._channels,
            classifier=classifier,
        )
        logger.info(f"VAD processor initialized for {self._sample_rate} Hz audio")
        super().run()

    def handle(self, item: np.ndarray) -> None:
        if self._processor is None:
            raise RuntimeError("VadWorker.handle called before run")
        for event in self._processor.process(item):
            capture_event = (
                CaptureEvent.SPEECH_START
                if event.type is VadEventType.SPEECH_START
                else CaptureEvent.SPEECH_END
            )
            try:
                self._events_queue.put_nowait(capture_event)
            except queue.Full:
                logger.warning(f"VAD events queue is full, dropping {capture_event.name}")

    def cleanup(self) -> None:
        logger.info("VAD processor stopped")
