"""
Login-readiness wait for RDS databases.

RDS reports "available" before the engine accepts connections, so this probes
with a real authenticated connection until one succeeds.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type

import psycopg

from ..errors import LoginTimeoutError
from ..events import Observer
from .retry import Deadline, RetryResult, retry_until

logger = logging.getLogger(__name__)

DEFAULT_RETRY_INTERVAL = 30
DEFAULT_MAX_ATTEMPTS = 40

PROBE_ERRORS: Tuple[Type[BaseException], ...] = (psycopg.Error, OSError)


@dataclass(frozen=True)
class ConnectionParams:
    """Parameters for an authenticated database connection."""
    host: str
    user: str
    password: str
    dbname: str = "postgres"
    port: int = 5432
    connect_timeout: int = 10

    @classmethod
    def from_database_status(cls, status, user: str, password: str, dbname: str = "postgres") -> "ConnectionParams":
        """Build connection parameters from a DatabaseStatus record."""
        if not status.address:
            raise ValueError(f"Database {status.name} has no endpoint yet")
        return cls(
            host=status.address,
            port=status.port or 5432,
            user=user,
            password=password,
            dbname=dbname,
        )

    def __repr__(self) -> str:
        return (
            f"ConnectionParams(host={self.host!r}, port={self.port}, "
            f"user={self.user!r}, dbname={self.dbname!r})"
        )


def psycopg_connect(params: ConnectionParams) -> Any:
    """Open a psycopg connection from ConnectionParams."""
    return psycopg.connect(
        host=params.host,
        port=params.port,
        user=params.user,
        password=params.password,
        dbname=params.dbname,
        connect_timeout=params.connect_timeout,
    )


def _login_probe(params: ConnectionParams, connect: Callable[[ConnectionParams], Any]) -> Callable[[], None]:
    def probe() -> None:
        conn = connect(params)
        try:
            conn.execute("SELECT 1")
        finally:
            conn.close()
    return probe


def wait_for_login_ready(
    params: ConnectionParams,
    retry_interval_seconds: float = DEFAULT_RETRY_INTERVAL,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    connect: Optional[Callable[[ConnectionParams], Any]] = None,
    retry_on: Tuple[Type[BaseException], ...] = PROBE_ERRORS,
    observer: Optional[Observer] = None,
    deadline: Optional[Deadline] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> RetryResult:
    """
    Wait until the database accepts an authenticated connection.

    Each attempt opens a connection, runs ``SELECT 1`` and closes it again,
    whether or not the query succeeded.

    Args:
        params: Connection parameters
        retry_interval_seconds: Pause between failed attempts
        max_attempts: Number of login attempts before giving up
        connect: Connection factory (defaults to psycopg)
        retry_on: Errors that count as "not ready yet"
        observer: Receives ATTEMPT_FAILED after each failure
        deadline: Optional cancellation token
        sleep: Replacement sleep function

    Returns:
        RetryResult whose ``attempts`` is the number of probes made

    Raises:
        LoginTimeoutError: When every attempt failed
    """
    logger.info(f"Waiting for database at {params.host}:{params.port} to accept logins")
    result = retry_until(
        _login_probe(params, connect or psycopg_connect),
        interval_seconds=retry_interval_seconds,
        max_attempts=max_attempts,
        on_exhausted=lambda attempts, _error: LoginTimeoutError(params.host, attempts),
        retry_on=retry_on,
        operation="database login",
        observer=observer,
        deadline=deadline,
        sleep=sleep,
    )
    logger.info(f"Database at {params.host} accepted a login after {result.attempts} attempt(s)")
    return result
