"""
State-transition waits backed by the provider's own waiters.

These rely on botocore's waiter polling and back-off rather than a local retry
count. A waiter giving up (or hitting a failure state) becomes a
WaitTimeoutError; a poll the provider rejects becomes a RemoteCallError.
"""

import logging
from typing import Any, Dict, Optional, Sequence

from botocore.exceptions import WaiterError

from ..clients import ProviderClients, translate_waiter_error
from ..errors import WaitTimeoutError
from ..events import WAIT_STARTED, Observer, resolve

logger = logging.getLogger(__name__)

COMPUTE_WAITERS = {
    "stopped": "instance_stopped",
    "running": "instance_running",
    "terminated": "instance_terminated",
}

# "available" can be reported up to about a minute before the database
# accepts logins; use wait_for_login_ready when that matters.
DATABASE_WAITERS = {
    "available": "db_instance_available",
    "stopped": "db_instance_stopped",
    "deleted": "db_instance_deleted",
}


def _waiter_config(delay_seconds: Optional[int], max_attempts: Optional[int]) -> Dict[str, int]:
    config: Dict[str, int] = {}
    if delay_seconds is not None:
        config["Delay"] = delay_seconds
    if max_attempts is not None:
        config["MaxAttempts"] = max_attempts
    return config


def _run_waiter(client: Any, waiter_name: str, operation: str, kind: str, identifiers: Sequence[str],
                target_state: str, waiter_config: Dict[str, int], **params: Any) -> None:
    waiter = client.get_waiter(waiter_name)
    if waiter_config:
        params["WaiterConfig"] = waiter_config
    try:
        waiter.wait(**params)
    except WaiterError as e:
        rejected = translate_waiter_error(client, operation, e)
        if rejected is not None:
            logger.error(f"Waiter {waiter_name} stopped on a rejected {operation} call: {rejected}")
            raise rejected from e
        logger.warning(f"Waiter {waiter_name} gave up on {kind} {list(identifiers)}: {e}")
        raise WaitTimeoutError(kind, identifiers, target_state, str(e)) from e


def wait_for_compute_state(
    clients: ProviderClients,
    target_state: str,
    instance_ids: Sequence[str],
    delay_seconds: Optional[int] = None,
    max_attempts: Optional[int] = None,
    observer: Optional[Observer] = None,
) -> None:
    """
    Block until every instance in ``instance_ids`` reports ``target_state``.

    Args:
        clients: Provider clients
        target_state: "stopped", "running" or "terminated"
        instance_ids: EC2 instance ids
        delay_seconds: Override for the waiter's poll delay
        max_attempts: Override for the waiter's attempt budget
        observer: Receives WAIT_STARTED

    Raises:
        ValueError: If target_state has no waiter or instance_ids is empty
        WaitTimeoutError: If the waiter gives up
        RemoteCallError: If EC2 rejects the describe call
    """
    if target_state not in COMPUTE_WAITERS:
        raise ValueError(f"Unsupported EC2 target state: {target_state}")

    ids = list(instance_ids)
    if not ids:
        # An empty id list describes every instance in the account.
        raise ValueError("wait_for_compute_state needs at least one instance id")
    resolve(observer)(WAIT_STARTED, {"kind": "ec2", "ids": ids, "state": target_state})
    _run_waiter(
        clients.ec2,
        COMPUTE_WAITERS[target_state],
        "describe_instances",
        "ec2 instance",
        ids,
        target_state,
        _waiter_config(delay_seconds, max_attempts),
        InstanceIds=ids,
    )


def wait_for_database_state(
    clients: ProviderClients,
    target_state: str,
    identifier: str,
    delay_seconds: Optional[int] = None,
    max_attempts: Optional[int] = None,
    observer: Optional[Observer] = None,
) -> None:
    """
    Block until the RDS instance ``identifier`` reports ``target_state``.

    Raises:
        ValueError: If target_state has no waiter
        WaitTimeoutError: If the waiter gives up
        RemoteCallError: If RDS rejects the describe call
    """
    if target_state not in DATABASE_WAITERS:
        raise ValueError(f"Unsupported RDS target state: {target_state}")

    resolve(observer)(WAIT_STARTED, {"kind": "rds", "ids": [identifier], "state": target_state})
    _run_waiter(
        clients.rds,
        DATABASE_WAITERS[target_state],
        "describe_db_instances",
        "rds instance",
        [identifier],
        target_state,
        _waiter_config(delay_seconds, max_attempts),
        DBInstanceIdentifier=identifier,
    )
