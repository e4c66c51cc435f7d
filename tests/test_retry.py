"""
Tests for the delay, deadline and bounded-retry helpers.
"""

import pytest
from unittest.mock import Mock, patch

from mxaws.errors import MxawsError, OperationCancelledError, WaitTimeoutError
from mxaws.events import ATTEMPT_FAILED
from mxaws.wait.retry import Deadline, delay, retry_until


def exhausted(attempts, error):
    return WaitTimeoutError("probe", ["x"], "ok", f"gave up after {attempts}: {error}")


def flaky(failures, value="ok"):
    """Probe that raises ConnectionError ``failures`` times, then returns ``value``."""
    calls = {"n": 0}

    def probe():
        calls["n"] += 1
        if calls["n"] <= failures:
            raise ConnectionError(f"failure {calls['n']}")
        return value

    probe.calls = calls
    return probe


class TestRetryUntil:
    """Test retry_until."""

    def test_first_attempt_succeeds(self):
        sleep = Mock()
        result = retry_until(flaky(0), 5, 3, exhausted, sleep=sleep)

        assert result.value == "ok"
        assert result.attempts == 1
        sleep.assert_not_called()

    def test_retries_then_succeeds(self):
        sleep = Mock()
        probe = flaky(2)
        result = retry_until(probe, 5, 4, exhausted, sleep=sleep)

        assert result.attempts == 3
        assert probe.calls["n"] == 3
        assert sleep.call_count == 2
        sleep.assert_called_with(5)

    def test_exhaustion_raises_factory_error(self):
        sleep = Mock()
        probe = flaky(10)

        with pytest.raises(WaitTimeoutError, match="gave up after 3: failure 3"):
            retry_until(probe, 1, 3, exhausted, sleep=sleep)

        assert probe.calls["n"] == 3
        # no sleep after the final attempt
        assert sleep.call_count == 2

    def test_unexpected_errors_propagate(self):
        def probe():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            retry_until(probe, 1, 3, exhausted, retry_on=(ConnectionError,), sleep=Mock())

    def test_observer_receives_failed_attempts(self):
        observer = Mock()
        retry_until(flaky(1), 0, 3, exhausted, operation="login", observer=observer, sleep=Mock())

        observer.assert_called_once()
        event_type, data = observer.call_args[0]
        assert event_type == ATTEMPT_FAILED
        assert data["operation"] == "login"
        assert data["attempt"] == 1
        assert data["remaining"] == 2

    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            retry_until(flaky(0), 1, 0, exhausted)

    def test_cancelled_deadline_stops_before_probing(self):
        deadline = Deadline()
        deadline.cancel()
        probe = flaky(0)

        with pytest.raises(OperationCancelledError):
            retry_until(probe, 1, 3, exhausted, deadline=deadline)
        assert probe.calls["n"] == 0


class TestDelay:
    """Test delay and Deadline."""

    @patch("mxaws.wait.retry.time.sleep")
    def test_plain_delay_sleeps(self, mock_sleep):
        delay(2)
        mock_sleep.assert_called_once_with(2)

    def test_cancel_interrupts_delay(self):
        deadline = Deadline()
        deadline.cancel()
        with pytest.raises(OperationCancelledError, match="cancelled"):
            delay(60, deadline)

    def test_expired_deadline(self):
        deadline = Deadline(timeout_seconds=0)
        assert deadline.expired
        with pytest.raises(OperationCancelledError, match="deadline"):
            delay(60, deadline)

    def test_sleep_clipped_to_deadline(self):
        deadline = Deadline(timeout_seconds=0.01)
        with pytest.raises(OperationCancelledError):
            delay(60, deadline)

    def test_delay_within_deadline_returns(self):
        deadline = Deadline(timeout_seconds=60)
        delay(0, deadline)
        assert not deadline.cancelled
        assert deadline.remaining() > 0

    def test_no_limit(self):
        deadline = Deadline()
        assert deadline.remaining() is None
        assert not deadline.expired
        deadline.check()


def test_cancelled_error_is_mxaws_error():
    assert issubclass(OperationCancelledError, MxawsError)
