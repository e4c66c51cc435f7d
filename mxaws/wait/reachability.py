"""
TCP reachability wait.

An endpoint counts as reachable once it sends any data over a fresh
connection (a banner, a greeting, anything). Connections that close, are
refused or stay silent use up one retry.
"""

import logging
import socket
from typing import Any, Callable, Optional

from ..errors import ReachabilityTimeoutError
from ..events import Observer
from .retry import Deadline, RetryResult, retry_until

logger = logging.getLogger(__name__)

DEFAULT_TIME_LIMIT_MINUTES = 20
DEFAULT_RETRY_INTERVAL = 30
DEFAULT_READ_TIMEOUT = 30


class ClosedWithoutData(OSError):
    """The endpoint closed the connection before sending anything."""


def retry_budget(total_time_limit_minutes: float) -> int:
    """Number of retries allowed: two per minute of the time limit."""
    return int(2 * total_time_limit_minutes)


def wait_for_tcp_reachable(
    address: str,
    port: int,
    total_time_limit_minutes: float = DEFAULT_TIME_LIMIT_MINUTES,
    retry_interval_seconds: float = DEFAULT_RETRY_INTERVAL,
    read_timeout_seconds: float = DEFAULT_READ_TIMEOUT,
    connect: Optional[Callable[..., Any]] = None,
    observer: Optional[Observer] = None,
    deadline: Optional[Deadline] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> RetryResult:
    """
    Wait until ``address:port`` accepts a connection and sends data.

    The first connection is free; each connection that ends without data
    consumes one of ``2 * total_time_limit_minutes`` retries.

    Args:
        address: Host name or IP address
        port: TCP port
        total_time_limit_minutes: Sizes the retry budget
        retry_interval_seconds: Pause between connections
        read_timeout_seconds: Connect and first-read timeout per connection
        connect: Replacement for socket.create_connection
        observer: Receives ATTEMPT_FAILED for each unsuccessful connection
        deadline: Optional cancellation token
        sleep: Replacement sleep function

    Returns:
        RetryResult whose ``attempts`` is the number of connections opened

    Raises:
        ReachabilityTimeoutError: When the retry budget is exhausted
    """
    open_connection = connect or socket.create_connection
    budget = retry_budget(total_time_limit_minutes)

    def probe() -> bytes:
        with open_connection((address, port), timeout=read_timeout_seconds) as sock:
            data = sock.recv(1)
        if not data:
            raise ClosedWithoutData(f"{address}:{port} closed the connection without sending data")
        return data

    logger.info(f"Waiting for {address}:{port} to become reachable ({budget} retries)")
    return retry_until(
        probe,
        interval_seconds=retry_interval_seconds,
        max_attempts=budget + 1,
        on_exhausted=lambda _attempts, _error: ReachabilityTimeoutError(address, port, budget),
        retry_on=(OSError,),
        operation=f"connect {address}:{port}",
        observer=observer,
        deadline=deadline,
        sleep=sleep,
    )
