"""
Delay, deadline and bounded-retry helpers shared by every wait primitive.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type

from ..errors import MxawsError, OperationCancelledError
from ..events import ATTEMPT_FAILED, Observer, resolve

logger = logging.getLogger(__name__)


class Deadline:
    """
    Cancellation token with an optional time limit.

    One Deadline can be shared by every step of an operation (and by sibling
    operations in a batch) so that a single ``cancel()`` stops all of them at
    their next suspension point.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self._event = threading.Event()
        self._expires_at = None if timeout_seconds is None else time.monotonic() + timeout_seconds

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def remaining(self) -> Optional[float]:
        """Seconds left before expiry, or None when there is no time limit."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def check(self) -> None:
        """Raise OperationCancelledError if cancelled or expired."""
        if self.cancelled:
            raise OperationCancelledError("Operation was cancelled")
        if self.expired:
            raise OperationCancelledError("Operation deadline exceeded")

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""
        return self._event.wait(seconds)


def delay(seconds: float, deadline: Optional[Deadline] = None) -> None:
    """
    Suspend the calling thread for ``seconds``.

    With a deadline the sleep is cut short by cancellation or expiry, both of
    which raise OperationCancelledError.
    """
    if deadline is None:
        time.sleep(seconds)
        return

    deadline.check()
    remaining = deadline.remaining()
    if remaining is not None and remaining < seconds:
        deadline.wait(remaining)
        deadline.check()
        raise OperationCancelledError("Operation deadline exceeded")
    if deadline.wait(seconds):
        deadline.check()


@dataclass
class RetryResult:
    """Outcome of a successful retry_until call."""
    value: Any
    attempts: int


def retry_until(
    probe: Callable[[], Any],
    interval_seconds: float,
    max_attempts: int,
    on_exhausted: Callable[[int, Optional[BaseException]], MxawsError],
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    operation: str = "probe",
    observer: Optional[Observer] = None,
    deadline: Optional[Deadline] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> RetryResult:
    """
    Call ``probe`` until it returns without raising, or the attempts run out.

    A probe raising one of ``retry_on`` counts as a failed attempt; anything
    else propagates immediately. There is no sleep after the final attempt.

    Args:
        probe: Zero-argument callable; its return value is passed back on success
        interval_seconds: Pause between failed attempts
        max_attempts: Total number of probe calls allowed (>= 1)
        on_exhausted: Builds the error raised once every attempt failed; it
            receives the attempt count and the last probe error
        retry_on: Exception types treated as a failed attempt
        operation: Label used in logs and observer events
        observer: Receives ATTEMPT_FAILED after each failed attempt
        deadline: Optional cancellation token checked before every attempt
        sleep: Replacement for the default delay (used by tests)

    Returns:
        RetryResult with the probe's value and how many attempts were made

    Raises:
        ValueError: If max_attempts is less than 1
        OperationCancelledError: If the deadline is cancelled or expires
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    notify = resolve(observer)
    pause = sleep if sleep is not None else (lambda seconds: delay(seconds, deadline))
    last_error: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        if deadline is not None:
            deadline.check()
        try:
            value = probe()
        except retry_on as e:
            last_error = e
            remaining = max_attempts - attempt
            logger.debug(f"{operation} attempt {attempt}/{max_attempts} failed: {e}")
            notify(ATTEMPT_FAILED, {
                "operation": operation,
                "attempt": attempt,
                "remaining": remaining,
                "error": str(e),
            })
            if remaining:
                pause(interval_seconds)
            continue
        return RetryResult(value=value, attempts=attempt)

    raise on_exhausted(max_attempts, last_error) from last_error
