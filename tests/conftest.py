import os

import pytest

from tests.fakes import FakeCapture, RecordingSleep


@pytest.fixture
def fake_capture():
    return FakeCapture()


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def clean_env():
    """Strip dictation settings from the environment for the test's duration."""
    original_env = os.environ.copy()
    for key in list(os.environ):
        if key.startswith(("STT_", "WHISPER_", "MAX_", "TRANSCRIPTION_", "RETRY_", "VAD_",
                           "REWRITE_", "PROMPT_", "OUTPUT_", "LOG_LEVEL")):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)
