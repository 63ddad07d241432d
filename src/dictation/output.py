"""Text delivery contract. Clipboard and keystroke injection live outside this package."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum

logger = logging.getLogger(__name__)


class OutputMode(Enum):
    PASTE = "paste"  # paste, then restore the previous clipboard
    PASTE_AND_CLIPBOARD = "paste_and_clipboard"
    CLIPBOARD = "clipboard"
    KEYSTROKES = "keystrokes"
    KEYSTROKES_AND_CLIPBOARD = "keystrokes_and_clipboard"

    @classmethod
    def from_str(cls, value: str) -> "OutputMode":
        if value == "auto_paste":
            return cls.PASTE
        try:
            return cls(value)
        except ValueError:
            return cls.PASTE


class TextOutput(ABC):
    """Delivers final text to wherever the user is typing."""

    @abstractmethod
    def deliver(self, text: str, mode: OutputMode) -> None:
        ...


class StdoutOutput(TextOutput):
    def deliver(self, text: str, mode: OutputMode) -> None:
        print(text, flush=True)


# Clipboard and synthetic key events are process-global; one delivery at a time.
_OUTPUT_LOCK = threading.Lock()


def deliver_text(sink: TextOutput, text: str, mode: OutputMode = OutputMode.PASTE) -> bool:
    """Serialize delivery through the process-wide gate. Returns False if text was empty."""
    if not text:
        logger.debug("Nothing to deliver")
        return False
    with _OUTPUT_LOCK:
        sink.deliver(text, mode)
    logger.info(f"Delivered {len(text)} chars via {mode.value}")
    return True
