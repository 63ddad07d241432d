"""Cooperative cancellation shared between threads and asyncio tasks."""

from __future__ import annotations

import asyncio
import logging
import threading

logger = logging.getLogger(__name__)


def _resolve(fut: asyncio.Future) -> None:
    if not fut.done():
        fut.set_result(None)


class CancellationHandle:
    """
    One-shot cancellation signal for a single session.

    `cancel()` may be called from any thread, any number of times. Coroutines
    awaiting `wait()` on any event loop are woken when it fires. Holders share
    the same instance; there is nothing to copy.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            waiters, self._waiters = self._waiters, []

        for loop, fut in waiters:
            try:
                loop.call_soon_threadsafe(_resolve, fut)
            except RuntimeError:
                # Loop already closed; its waiter is gone with it.
                logger.debug("Cancellation waiter loop closed")

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Return once the handle has been cancelled."""
        loop = asyncio.get_running_loop()
        fut = loop.create_future()
        with self._lock:
            if self._event.is_set():
                return
            entry = (loop, fut)
            self._waiters.append(entry)
        try:
            await fut
        finally:
            with self._lock:
                if entry in self._waiters:
                    self._waiters.remove(entry)
