"""Tests for the text delivery gate."""

import threading
import time

import pytest

from dictation.output import OutputMode, StdoutOutput, TextOutput, deliver_text


class RecordingOutput(TextOutput):
    def __init__(self, hold_s: float = 0.0):
        self.delivered = []
        self.hold_s = hold_s
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def deliver(self, text: str, mode: OutputMode) -> None:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(self.hold_s)
        self.delivered.append((text, mode))
        with self._lock:
            self.active -= 1


class TestOutputMode:
    @pytest.mark.parametrize("value, expected", [
        ("paste", OutputMode.PASTE),
        ("paste_and_clipboard", OutputMode.PASTE_AND_CLIPBOARD),
        ("keystrokes", OutputMode.KEYSTROKES),
        ("auto_paste", OutputMode.PASTE),
        ("telepathy", OutputMode.PASTE),
    ])
    def test_from_str(self, value, expected):
        assert OutputMode.from_str(value) is expected


class TestDeliverText:
    def test_delivers_with_mode(self):
        sink = RecordingOutput()
        assert deliver_text(sink, "hello", OutputMode.CLIPBOARD)
        assert sink.delivered == [("hello", OutputMode.CLIPBOARD)]

    def test_empty_text_skipped(self):
        sink = RecordingOutput()
        assert not deliver_text(sink, "")
        assert sink.delivered == []

    def test_deliveries_are_serialized(self):
        sink = RecordingOutput(hold_s=0.02)
        threads = [threading.Thread(target=deliver_text, args=(sink, f"text {i}")) for i in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5.0)

        assert len(sink.delivered) == 5
        assert sink.max_active == 1

    def test_stdout_output(self, capsys):
        StdoutOutput().deliver("printed text", OutputMode.PASTE)
        assert capsys.readouterr().out == "printed text\n"
