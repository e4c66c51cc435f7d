"""
Retry and poll primitives.
"""

from .retry import Deadline, RetryResult, delay, retry_until
from .provider import wait_for_compute_state, wait_for_database_state
from .login import ConnectionParams, wait_for_login_ready
from .reachability import wait_for_tcp_reachable

__all__ = [
    "Deadline",
    "RetryResult",
    "delay",
    "retry_until",
    "wait_for_compute_state",
    "wait_for_database_state",
    "ConnectionParams",
    "wait_for_login_ready",
    "wait_for_tcp_reachable",
]
