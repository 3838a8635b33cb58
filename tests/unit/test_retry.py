"""Tests for the retry coordinator and error classification."""

import errno
import socket

import pytest

from imgopt.contracts import RetryContext
from imgopt.errorlog import ErrorLogger
from imgopt.errors import ProcessingError, error_code
from imgopt.recovery import RetryCoordinator
from imgopt.utils.retry import compute_backoff, is_retryable


class FlakyOperation:
    def __init__(self, errors, result="done"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class AlwaysFails:
    def __init__(self, exc):
        self.exc = exc
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        raise self.exc


@pytest.mark.asyncio
async def test_retryable_failure_is_attempted_max_retries_times(sleep_recorder):
    coordinator = RetryCoordinator(max_retries=4, retry_delay=1000, sleep=sleep_recorder)
    operation = AlwaysFails(ProcessingError("timed out", code="ETIMEDOUT"))

    outcome = await coordinator.run(operation, RetryContext(file="a.png"))

    assert not outcome.success
    assert outcome.attempts == 4
    assert operation.calls == 4
    assert isinstance(outcome.error, ProcessingError)


@pytest.mark.asyncio
async def test_backoff_doubles(sleep_recorder):
    coordinator = RetryCoordinator(max_retries=5, retry_delay=1000, sleep=sleep_recorder)
    await coordinator.run(
        AlwaysFails(ProcessingError("busy", code="EBUSY")), RetryContext(file="a.png")
    )
    assert sleep_recorder.delays == [1.0, 2.0, 4.0, 8.0]


@pytest.mark.asyncio
async def test_flat_delay_without_exponential_backoff(sleep_recorder):
    coordinator = RetryCoordinator(
        max_retries=3, retry_delay=250, exponential_backoff=False, sleep=sleep_recorder
    )
    await coordinator.run(
        AlwaysFails(ProcessingError("busy", code="EBUSY")), RetryContext(file="a.png")
    )
    assert sleep_recorder.delays == [0.25, 0.25]


@pytest.mark.asyncio
async def test_non_retryable_failure_stops_immediately(sleep_recorder):
    coordinator = RetryCoordinator(max_retries=3, sleep=sleep_recorder)
    operation = AlwaysFails(ProcessingError("corrupt data", code="EINVALIDFORMAT"))

    outcome = await coordinator.run(operation, RetryContext(file="a.png"))

    assert outcome.attempts == 1
    assert operation.calls == 1
    assert sleep_recorder.delays == []


@pytest.mark.asyncio
async def test_success_after_transient_failures(sleep_recorder):
    coordinator = RetryCoordinator(max_retries=3, sleep=sleep_recorder)
    operation = FlakyOperation([ConnectionResetError(errno.ECONNRESET, "reset")])

    outcome = await coordinator.run(operation, RetryContext(file="a.png"))

    assert outcome.success
    assert outcome.value == "done"
    assert outcome.attempts == 2


@pytest.mark.asyncio
async def test_every_failed_attempt_is_logged(tmp_path, sleep_recorder):
    error_log = ErrorLogger(tmp_path / "errors.log")
    coordinator = RetryCoordinator(max_retries=3, error_logger=error_log, sleep=sleep_recorder)

    await coordinator.run(
        AlwaysFails(ProcessingError("Git LFS fetch failed")),
        RetryContext(file="a.png", operation="encode"),
    )

    entries = error_log.read()
    assert [e.context.attempt for e in entries] == [1, 2, 3]
    assert all(e.file == "a.png" for e in entries)
    assert entries[0].error.message == "Git LFS fetch failed"
    assert entries[0].context.operation == "encode"
    raw = (tmp_path / "errors.log").read_text().splitlines()[0]
    assert '"context":{"attempt":1,"operation":"encode"}' in raw


def test_classification():
    assert is_retryable(ProcessingError("busy", code="EBUSY"))
    assert is_retryable(FileNotFoundError(errno.ENOENT, "missing"))
    assert is_retryable(TimeoutError())
    assert is_retryable(socket.gaierror(socket.EAI_NONAME, "unknown host"))
    assert is_retryable(ProcessingError("LFS object download failed"))
    assert not is_retryable(ProcessingError("invalid format", code="EINVALIDFORMAT"))
    assert not is_retryable(ValueError("bad value"))


def test_error_code_extraction():
    assert error_code(ProcessingError("x", code="EVALIDATION")) == "EVALIDATION"
    assert error_code(PermissionError(errno.EACCES, "denied")) == "EACCES"
    assert error_code(RuntimeError("boom")) is None


def test_compute_backoff():
    assert compute_backoff(1, 1.0) == 1.0
    assert compute_backoff(3, 0.5) == 2.0
    assert compute_backoff(3, 0.5, exponential=False) == 0.5


def test_max_retries_must_be_positive():
    with pytest.raises(ValueError):
        RetryCoordinator(max_retries=0)
