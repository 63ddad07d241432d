"""Tests for transcription retry policy and backoff."""

import pytest

from dictation.core.errors import (
    AudioFormatError,
    MalformedResponseError,
    MissingCredentialError,
    ProviderApiError,
    ProviderNetworkError,
    ProviderTimeoutError,
)
from dictation.stt.retry import RetryConfig, is_retryable_error, with_retry
from tests.fakes import RecordingSleep


class TestRetryConfig:
    def test_defaults(self):
        config = RetryConfig()
        assert config.max_retries == 3
        assert config.initial_delay_s == 0.5
        assert config.max_delay_s == 10.0
        assert config.retry_on_rate_limit

    def test_exponential_delays(self):
        config = RetryConfig()
        assert [config.delay_for_attempt(n) for n in range(4)] == [0.5, 1.0, 2.0, 4.0]

    def test_delay_capped(self):
        config = RetryConfig(initial_delay_s=0.5, max_delay_s=2.0)
        assert [config.delay_for_attempt(n) for n in range(5)] == [0.5, 1.0, 2.0, 2.0, 2.0]

    def test_huge_attempt_does_not_overflow(self):
        assert RetryConfig().delay_for_attempt(10_000) == 10.0

    def test_with_max_retries(self):
        assert RetryConfig.with_max_retries(7).max_retries == 7


class TestIsRetryableError:
    @pytest.mark.parametrize("error", [
        ProviderNetworkError("connection reset"),
        ProviderTimeoutError(),
        ProviderApiError("server error", status_code=500),
        ProviderApiError("bad gateway", status_code=502),
        ProviderApiError("upstream returned 503 Service Unavailable"),
        ProviderApiError("slow down", status_code=429),
        ProviderApiError("Rate limit exceeded"),
    ])
    def test_retryable(self, error):
        assert is_retryable_error(error)

    @pytest.mark.parametrize("error", [
        ProviderApiError("unauthorized", status_code=401),
        ProviderApiError("bad request", status_code=400),
        MissingCredentialError("no key"),
        AudioFormatError("not a wav"),
        MalformedResponseError("no text"),
        ValueError("unrelated"),
    ])
    def test_terminal(self, error):
        assert not is_retryable_error(error)

    def test_rate_limit_respects_config(self):
        error = ProviderApiError("too many requests", status_code=429)
        assert not is_retryable_error(error, RetryConfig(retry_on_rate_limit=False))
        assert is_retryable_error(error, RetryConfig(retry_on_rate_limit=True))


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self):
        sleep = RecordingSleep()
        attempts = []

        async def operation():
            attempts.append(1)
            if len(attempts) < 3:
                raise ProviderNetworkError("flaky")
            return "ok"

        result = await with_retry(RetryConfig(), operation, sleep=sleep)

        assert result == "ok"
        assert len(attempts) == 3
        assert sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_terminal_error_is_not_retried(self):
        sleep = RecordingSleep()
        attempts = []

        async def operation():
            attempts.append(1)
            raise ProviderApiError("unauthorized", status_code=401)

        with pytest.raises(ProviderApiError):
            await with_retry(RetryConfig(), operation, sleep=sleep)

        assert len(attempts) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_last_error_raised_when_exhausted(self):
        sleep = RecordingSleep()
        attempts = []

        async def operation():
            attempts.append(1)
            raise ProviderTimeoutError(f"attempt {len(attempts)}")

        with pytest.raises(ProviderTimeoutError, match="attempt 3"):
            await with_retry(RetryConfig(max_retries=2), operation, sleep=sleep)

        assert len(attempts) == 3
        assert sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_zero_retries_means_one_attempt(self):
        sleep = RecordingSleep()
        attempts = []

        async def operation():
            attempts.append(1)
            raise ProviderNetworkError("down")

        with pytest.raises(ProviderNetworkError):
            await with_retry(RetryConfig(max_retries=0), operation, sleep=sleep)
        assert len(attempts) == 1
        assert sleep.delays == []
