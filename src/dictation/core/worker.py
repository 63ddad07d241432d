"""Reusable worker thread utilities."""

from __future__ import annotations

import logging
import threading
import queue
from typing import Generic, TypeVar

from .shutdown import StopSignal

T = TypeVar("T")

logger = logging.getLogger(__name__)


class QueueWorker(threading.Thread, Generic[T]):
    """
    Base class for a queue-consuming worker thread.

    This keeps lifecycle + polling logic consistent across worker threads.
    Subclasses only implement `handle(item)`; `cleanup()` runs once after the
    stop signal is observed. The bounded poll interval guarantees shutdown is
    noticed even when the input queue stays empty.
    """

    def __init__(
        self,
        *,
        name: str,
        stop_signal: StopSignal,
        input_queue: "queue.Queue[T]",
        poll_interval_s: float = 0.1,
        daemon: bool = True,
    ):
        super().__init__(name=name, daemon=daemon)
        self._stop_signal = stop_signal
        self._input_queue = input_queue
        self._poll_interval_s = poll_interval_s

    def run(self) -> None:
        try:
            while not self._stop_signal.is_set():
                try:
                    item = self._input_queue.get(timeout=self._poll_interval_s)
                except queue.Empty:
                    continue

                try:
                    self.handle(item)
                except Exception as e:
                    logger.error(f"{self.name}: error handling item: {e}", exc_info=True)
                finally:
                    self._input_queue.task_done()
        finally:
            self.cleanup()

    def handle(self, item: T) -> None:
        raise NotImplementedError

    def cleanup(self) -> None:
        """Hook called when the worker exits."""
