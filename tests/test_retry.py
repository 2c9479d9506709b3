import asyncio

import pytest

from worker.errors import (
    ConfigurationError,
    LoginFailed,
    NavigationFailed,
    ValidationRejected,
    is_job_retryable,
    is_retryable,
)
from worker.retry import backoff_delay, with_retry


class _Flaky:
    def __init__(self, failures, error=None):
        self.failures = failures
        self.error = error or NavigationFailed("page did not load")
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


def _recording_sleep(delays):
    async def _sleep(delay):
        delays.append(delay)

    return _sleep


def test_backoff_doubles_and_caps():
    assert [backoff_delay(n, 1.0, 5.0) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_succeeds_after_transient_failures():
    delays = []
    op = _Flaky(failures=2)

    result = asyncio.run(with_retry(op, attempts=3, sleep=_recording_sleep(delays)))

    assert result == "ok"
    assert op.calls == 3
    assert delays == [1.0, 2.0]


def test_reraises_last_error_when_attempts_run_out(caplog):
    delays = []
    op = _Flaky(failures=5)

    with caplog.at_level("WARNING", logger="worker.retry"):
        with pytest.raises(NavigationFailed):
            asyncio.run(with_retry(op, attempts=3, label="goto", sleep=_recording_sleep(delays)))

    assert op.calls == 3
    assert len(delays) == 2
    assert sum("goto failed" in rec.getMessage() for rec in caplog.records) == 2


def test_non_retryable_errors_are_not_repeated():
    delays = []
    op = _Flaky(failures=5, error=ValidationRejected("Title is required"))

    with pytest.raises(ValidationRejected):
        asyncio.run(with_retry(op, attempts=3, sleep=_recording_sleep(delays)))

    assert op.calls == 1
    assert delays == []


def test_single_attempt_means_no_retry():
    op = _Flaky(failures=1)

    with pytest.raises(NavigationFailed):
        asyncio.run(with_retry(op, attempts=1, sleep=_recording_sleep([])))

    assert op.calls == 1


def test_validation_rejection_is_final_for_the_run_but_not_the_job():
    exc = ValidationRejected("Title is required")

    assert is_retryable(exc) is False
    assert is_job_retryable(exc) is True
    assert is_job_retryable(ConfigurationError("no creds")) is False
    assert is_job_retryable(LoginFailed("bad password")) is True
    assert is_job_retryable(RuntimeError("boom")) is True
