"""Tests for RetryPolicy and retryability classification."""

import asyncio

import pytest
import requests

from charadex.scrapers.errors import MalformedResponseError, SourceHTTPError, WorkNotFoundError
from charadex.scrapers.retry import RetryPolicy, is_retryable
from tests.conftest import FakeClock


def _flaky(errors, result="done"):
    """Async op raising each error in turn, then returning ``result``."""
    calls = {"n": 0}
    pending = list(errors)

    async def op():
        calls["n"] += 1
        if pending:
            raise pending.pop(0)
        return result

    return op, calls


class TestIsRetryable:
    @pytest.mark.parametrize("status", [429, 500, 502, 503])
    def test_retryable_statuses(self, status):
        assert is_retryable(SourceHTTPError(status))

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors_not_retryable(self, status):
        assert not is_retryable(SourceHTTPError(status))

    def test_network_errors(self):
        assert is_retryable(ConnectionResetError())
        assert is_retryable(requests.ConnectionError())
        assert is_retryable(requests.Timeout())

    def test_domain_errors_not_retryable(self):
        assert not is_retryable(WorkNotFoundError("nope"))
        assert not is_retryable(MalformedResponseError("bad"))
        assert not is_retryable(ValueError("x"))


class TestRun:
    def test_success_first_try(self):
        clock = FakeClock()
        op, calls = _flaky([])
        assert asyncio.run(RetryPolicy(sleep=clock.sleep).run(op)) == "done"
        assert calls["n"] == 1
        assert clock.sleeps == []

    def test_non_retryable_called_once(self):
        clock = FakeClock()
        op, calls = _flaky([SourceHTTPError(404)])
        with pytest.raises(SourceHTTPError):
            asyncio.run(RetryPolicy(max_attempts=5, sleep=clock.sleep).run(op))
        assert calls["n"] == 1
        assert clock.sleeps == []

    def test_backoff_delays(self):
        clock = FakeClock()
        op, calls = _flaky([SourceHTTPError(503), SourceHTTPError(503)])
        policy = RetryPolicy(max_attempts=3, base_delay=1.0, backoff_multiplier=2.0, sleep=clock.sleep)
        assert asyncio.run(policy.run(op)) == "done"
        assert calls["n"] == 3
        assert clock.sleeps == [1.0, 2.0]

    def test_exhaustion_reraises_last_error(self):
        clock = FakeClock()
        last = SourceHTTPError(500, "final")
        op, calls = _flaky([SourceHTTPError(500), SourceHTTPError(500), last])
        policy = RetryPolicy(max_attempts=3, base_delay=0.5, sleep=clock.sleep)
        with pytest.raises(SourceHTTPError) as exc_info:
            asyncio.run(policy.run(op))
        assert exc_info.value is last
        assert calls["n"] == 3
        assert len(clock.sleeps) == 2

    def test_retry_after_extends_delay(self):
        clock = FakeClock()
        op, _ = _flaky([SourceHTTPError(429, retry_after=30)])
        asyncio.run(RetryPolicy(base_delay=1.0, sleep=clock.sleep).run(op))
        assert clock.sleeps == [30.0]

    def test_observer_called_and_errors_ignored(self):
        clock = FakeClock()
        seen = []

        def observer(error, attempt, delay):
            seen.append((attempt, delay))
            raise RuntimeError("observer broke")

        op, calls = _flaky([ConnectionResetError(), ConnectionResetError()])
        policy = RetryPolicy(max_attempts=3, base_delay=2.0, on_retry=observer, sleep=clock.sleep)
        assert asyncio.run(policy.run(op)) == "done"
        assert seen == [(1, 2.0), (2, 4.0)]
        assert calls["n"] == 3

    def test_delay_for(self):
        policy = RetryPolicy(base_delay=2.0, backoff_multiplier=3.0)
        assert [policy.delay_for(k) for k in (1, 2, 3)] == [2.0, 6.0, 18.0]
