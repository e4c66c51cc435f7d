"""
EC2 instance lifecycle operations.

start/stop/reboot return as soon as AWS accepts the request. resize runs the
stop -> modify -> start sequence and waits at each step.
"""

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any, Dict, List, Optional, Sequence

from ..clients import ProviderClients, call
from ..events import RESIZE_STEP, Observer, resolve
from ..status import describe_instance
from ..wait.provider import wait_for_compute_state
from ..wait.retry import Deadline

logger = logging.getLogger(__name__)


def start_instances(clients: ProviderClients, instance_ids: Sequence[str]) -> Dict[str, Any]:
    """Request that the instances start. Does not wait."""
    return call(clients.ec2, "start_instances", InstanceIds=list(instance_ids))


def stop_instances(clients: ProviderClients, instance_ids: Sequence[str]) -> Dict[str, Any]:
    """Request that the instances stop. Does not wait."""
    return call(clients.ec2, "stop_instances", InstanceIds=list(instance_ids))


def reboot_instances(clients: ProviderClients, instance_ids: Sequence[str]) -> Dict[str, Any]:
    """Request that the instances reboot. Does not wait."""
    return call(clients.ec2, "reboot_instances", InstanceIds=list(instance_ids))


def resize_instance(
    clients: ProviderClients,
    instance_id: str,
    new_size: str,
    observer: Optional[Observer] = None,
    deadline: Optional[Deadline] = None,
) -> bool:
    """
    Change an instance's type, preserving its power state.

    A running instance is stopped, resized and started again; a stopped
    instance is resized and left stopped.

    Args:
        clients: Provider clients
        instance_id: EC2 instance id
        new_size: Target instance type, e.g. "t3.large"
        observer: Receives RESIZE_STEP at each step
        deadline: Checked between steps

    Returns:
        True if the instance was running before the resize

    Raises:
        RemoteCallError: If any API call is rejected
        WaitTimeoutError: If a state transition never completes
    """
    notify = resolve(observer)

    def step(name: str) -> None:
        if deadline is not None:
            deadline.check()
        logger.info(f"Resize {instance_id} -> {new_size}: {name}")
        notify(RESIZE_STEP, {"instance_id": instance_id, "size": new_size, "step": name})

    instance = describe_instance(clients, instance_id)
    was_running = instance["State"]["Name"] == "running"

    if was_running:
        step("stopping")
        stop_instances(clients, [instance_id])

    # Also covers instances that were already stopping or stopped.
    step("waiting for stopped")
    wait_for_compute_state(clients, "stopped", [instance_id])

    step("modifying")
    call(
        clients.ec2,
        "modify_instance_attribute",
        InstanceId=instance_id,
        InstanceType={"Value": new_size},
    )

    if not was_running:
        step("done")
        return False

    step("starting")
    start_instances(clients, [instance_id])
    step("waiting for running")
    wait_for_compute_state(clients, "running", [instance_id])
    step("done")
    return True


def resize_instances(
    clients: ProviderClients,
    instance_ids: Sequence[str],
    new_size: str,
    max_workers: Optional[int] = None,
    observer: Optional[Observer] = None,
    deadline: Optional[Deadline] = None,
) -> List[bool]:
    """
    Resize several instances concurrently.

    The first failure is raised once observed. Resizes that already finished
    are not rolled back; the ones still running are left to complete.

    Returns:
        For each id, in input order, whether the instance had been running
    """
    ids = list(instance_ids)
    if not ids:
        return []

    with ThreadPoolExecutor(max_workers=max_workers or len(ids)) as executor:
        futures = [
            executor.submit(resize_instance, clients, instance_id, new_size, observer, deadline)
            for instance_id in ids
        ]
        done, _pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in futures:
            if future in done and future.exception() is not None:
                logger.error(f"Batch resize to {new_size} failed: {future.exception()}")
                raise future.exception()
        return [future.result() for future in futures]
