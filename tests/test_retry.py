"""Tests for the provider retry policy."""

import pytest

from document_chat.utils.errors import FailureKind, ProviderError, classify_status
from document_chat.utils.retry import RetryPolicy, is_retryable

from fakes import embedding_error


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FlakyOperation:
    """Fails with the queued errors, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestClassification:
    """Test status code classification."""

    @pytest.mark.parametrize(
        "status_code, kind",
        [
            (429, FailureKind.RATE_LIMITED),
            (500, FailureKind.SERVER_ERROR),
            (503, FailureKind.OVERLOADED),
            (400, FailureKind.PERMANENT),
            (401, FailureKind.PERMANENT),
            (404, FailureKind.PERMANENT),
            (502, FailureKind.PERMANENT),
        ],
    )
    def test_classify_status(self, status_code, kind):
        assert classify_status(status_code) == kind

    def test_only_transient_provider_errors_are_retryable(self):
        assert is_retryable(embedding_error(FailureKind.OVERLOADED))
        assert is_retryable(embedding_error(FailureKind.RATE_LIMITED))
        assert is_retryable(embedding_error(FailureKind.SERVER_ERROR))
        assert is_retryable(embedding_error(FailureKind.NETWORK))
        assert not is_retryable(embedding_error(FailureKind.PERMANENT))
        assert not is_retryable(embedding_error(FailureKind.MALFORMED_RESPONSE))
        assert not is_retryable(ValueError("boom"))

    def test_from_status_carries_kind_and_status(self):
        error = ProviderError.from_status("Gemini", 503, "overloaded")
        assert error.kind == FailureKind.OVERLOADED
        assert error.upstream_status == 503
        assert error.is_retryable
        assert error.details["provider"] == "Gemini"


class TestRetryPolicy:
    """Test backoff behavior."""

    async def test_succeeds_after_transient_failures(self):
        sleep = SleepRecorder()
        policy = RetryPolicy(max_retries=3, base_delay=1.0, max_delay=30.0, sleep=sleep)
        operation = FlakyOperation([embedding_error(FailureKind.OVERLOADED)] * 3)

        assert await policy.run(operation) == "ok"
        assert operation.calls == 4
        assert len(sleep.delays) == 3

    async def test_delays_follow_exponential_series_within_jitter(self):
        sleep = SleepRecorder()
        policy = RetryPolicy(max_retries=3, base_delay=1.0, max_delay=30.0, sleep=sleep)
        operation = FlakyOperation([embedding_error(FailureKind.SERVER_ERROR)] * 3)

        await policy.run(operation)

        # tenacity's exponential wait starts at multiplier * 2**0 on the first retry
        for k, delay in enumerate(sleep.delays):
            expected = 1.0 * 2**k
            assert expected <= delay <= expected + 1.0
        total = sum(sleep.delays)
        assert 7.0 <= total <= 10.0

    async def test_delay_is_capped(self):
        sleep = SleepRecorder()
        policy = RetryPolicy(max_retries=5, base_delay=1.0, max_delay=2.0, sleep=sleep)
        operation = FlakyOperation([embedding_error(FailureKind.RATE_LIMITED)] * 5)

        await policy.run(operation)

        assert all(delay <= 3.0 for delay in sleep.delays)

    async def test_exhausted_retries_reraise_last_error(self):
        sleep = SleepRecorder()
        policy = RetryPolicy(max_retries=2, base_delay=0.0, sleep=sleep)
        errors = [embedding_error(FailureKind.OVERLOADED, 503) for _ in range(3)]
        operation = FlakyOperation(list(errors))

        with pytest.raises(ProviderError) as exc_info:
            await policy.run(operation)

        assert exc_info.value is errors[-1]
        assert operation.calls == 3

    async def test_permanent_error_is_not_retried(self):
        sleep = SleepRecorder()
        policy = RetryPolicy(max_retries=3, sleep=sleep)
        operation = FlakyOperation([embedding_error(FailureKind.PERMANENT, 400)])

        with pytest.raises(ProviderError):
            await policy.run(operation)

        assert operation.calls == 1
        assert sleep.delays == []

    async def test_unclassified_exception_is_not_retried(self):
        policy = RetryPolicy(max_retries=3, sleep=SleepRecorder())
        operation = FlakyOperation([RuntimeError("bug")])

        with pytest.raises(RuntimeError):
            await policy.run(operation)

        assert operation.calls == 1

    async def test_zero_retries_runs_once(self):
        policy = RetryPolicy(max_retries=0, sleep=SleepRecorder())
        operation = FlakyOperation([embedding_error(FailureKind.OVERLOADED)])

        with pytest.raises(ProviderError):
            await policy.run(operation)

        assert operation.calls == 1

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)

    def test_from_settings(self, settings):
        policy = RetryPolicy.from_settings(4, settings)
        assert policy.max_retries == 4
        assert policy.base_delay == settings.retry.base_delay
        assert policy.max_delay == settings.retry.max_delay
