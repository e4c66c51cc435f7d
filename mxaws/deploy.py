"""
CodeDeploy orchestration and failure summaries.

A deployment moves Created -> InProgress -> Succeeded | Failed. Starting,
awaiting and summarizing are separate calls so that callers only pay for the
summary when they want it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from botocore.exceptions import WaiterError

from .clients import ProviderClients, call, paginate, translate_waiter_error
from .errors import DeploymentFailedError, WaitTimeoutError
from .events import DEPLOYMENT_FAILED, DEPLOYMENT_STARTED, Observer, resolve
from .status import get_compute_status, lookup_name_by_compute_id

logger = logging.getLogger(__name__)

# batch_get_deployment_instances accepts at most 25 instance ids per call.
BATCH_SIZE = 25

FAILED_STATES = {"Failed", "Stopped"}


class DeploymentOutcome(Enum):
    """Outcome returned by a completed wait; failures raise DeploymentFailedError."""
    SUCCEEDED = "Succeeded"


@dataclass(frozen=True)
class DeploymentHandle:
    """Identifies a deployment and the application/group that created it."""
    deployment_id: str
    application_name: str
    group_name: str


@dataclass
class LifecycleEventReport:
    """One non-successful lifecycle event on an instance."""
    event_name: str
    event_status: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    error_code: Optional[str] = None
    failed_script: Optional[str] = None
    fail_message: Optional[str] = None
    log_tail: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"EventName": self.event_name, "EventStatus": self.event_status}
        if self.event_status == "Failed":
            result.update({
                "StartTime": self.start_time,
                "EndTime": self.end_time,
                "ErrorCode": self.error_code,
                "FailedScript": self.failed_script,
                "FailMessage": self.fail_message,
                "LogTail": self.log_tail,
            })
        return result


@dataclass
class InstanceFailureReport:
    """Non-successful lifecycle events for one instance, keyed by its Name tag."""
    instance_name: str
    failed_events: List[LifecycleEventReport] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "InstanceName": self.instance_name,
            "FailedEvents": [event.to_dict() for event in self.failed_events],
        }


def get_deployment_group_data(clients: ProviderClients, app_name: str, group_name: str) -> Dict[str, Any]:
    return call(
        clients.codedeploy,
        "get_deployment_group",
        applicationName=app_name,
        deploymentGroupName=group_name,
    )


def update_deployment_group_filter(
    clients: ProviderClients,
    app_name: str,
    group_name: str,
    ec2_tag_filters: Sequence[Dict[str, str]],
) -> Dict[str, Any]:
    """Replace the EC2 tag filters selecting a deployment group's instances."""
    return call(
        clients.codedeploy,
        "update_deployment_group",
        applicationName=app_name,
        currentDeploymentGroupName=group_name,
        ec2TagFilters=list(ec2_tag_filters),
    )


def s3_revision(bucket: str, key: str, bundle_type: str = "zip") -> Dict[str, Any]:
    """Build a revision location for a bundle stored in S3."""
    return {
        "revisionType": "S3",
        "s3Location": {"bucket": bucket, "key": key, "bundleType": bundle_type},
    }


def start_deployment(
    clients: ProviderClients,
    app_name: str,
    group_name: str,
    revision: Dict[str, Any],
    observer: Optional[Observer] = None,
) -> DeploymentHandle:
    """
    Create a deployment and return its handle without waiting.
    """
    logger.info(f"Starting deployment of {app_name} to {group_name}...")
    response = call(
        clients.codedeploy,
        "create_deployment",
        applicationName=app_name,
        deploymentGroupName=group_name,
        revision=revision,
    )
    handle = DeploymentHandle(
        deployment_id=response["deploymentId"],
        application_name=app_name,
        group_name=group_name,
    )
    resolve(observer)(DEPLOYMENT_STARTED, {
        "deployment_id": handle.deployment_id,
        "application": app_name,
        "group": group_name,
    })
    return handle


def await_deployment_outcome(
    clients: ProviderClients,
    handle: DeploymentHandle,
    delay_seconds: Optional[int] = None,
    max_attempts: Optional[int] = None,
    observer: Optional[Observer] = None,
) -> DeploymentOutcome:
    """
    Poll until the deployment succeeds or fails.

    Returns:
        DeploymentOutcome.SUCCEEDED

    Raises:
        DeploymentFailedError: If the deployment ended Failed or Stopped
        WaitTimeoutError: If the waiter gave up while it was still running
        RemoteCallError: If CodeDeploy rejected the get_deployment call
    """
    waiter = clients.codedeploy.get_waiter("deployment_successful")
    params: Dict[str, Any] = {"deploymentId": handle.deployment_id}
    config: Dict[str, int] = {}
    if delay_seconds is not None:
        config["Delay"] = delay_seconds
    if max_attempts is not None:
        config["MaxAttempts"] = max_attempts
    if config:
        params["WaiterConfig"] = config

    try:
        waiter.wait(**params)
    except WaiterError as e:
        rejected = translate_waiter_error(clients.codedeploy, "get_deployment", e)
        if rejected is not None:
            raise rejected from e
        status = (e.last_response or {}).get("deploymentInfo", {}).get("status")
        if status in FAILED_STATES:
            logger.warning(f"Deployment {handle.deployment_id} finished with status {status}")
            resolve(observer)(DEPLOYMENT_FAILED, {"deployment_id": handle.deployment_id, "status": status})
            raise DeploymentFailedError(handle, status) from e
        raise WaitTimeoutError("deployment", [handle.deployment_id], "Succeeded", str(e)) from e

    logger.info(f"Deployment {handle.deployment_id} succeeded")
    return DeploymentOutcome.SUCCEEDED


def _instance_id_from_target(raw_id: str) -> str:
    # Summaries carry "<deployment-id>/<instance-id>"; the EC2 id is the last segment.
    return raw_id.rsplit("/", 1)[-1]


def _event_report(event: Dict[str, Any]) -> LifecycleEventReport:
    report = LifecycleEventReport(
        event_name=event.get("lifecycleEventName"),
        event_status=event.get("status"),
    )
    if report.event_status == "Failed":
        diagnostics = event.get("diagnostics") or {}
        report.start_time = event.get("startTime")
        report.end_time = event.get("endTime")
        report.error_code = diagnostics.get("errorCode")
        report.failed_script = diagnostics.get("scriptName")
        report.fail_message = diagnostics.get("message")
        report.log_tail = (diagnostics.get("logTail") or "").split("\n")
    return report


def list_deployment_instance_ids(clients: ProviderClients, handle: DeploymentHandle) -> List[str]:
    """Every instance id participating in the deployment."""
    return list(paginate(
        clients.codedeploy,
        "list_deployment_instances",
        "instancesList",
        deploymentId=handle.deployment_id,
    ))


def get_instance_summaries(
    clients: ProviderClients,
    handle: DeploymentHandle,
    instance_ids: Sequence[str],
) -> List[Dict[str, Any]]:
    """Per-instance lifecycle detail, fetched in batches."""
    summaries: List[Dict[str, Any]] = []
    ids = list(instance_ids)
    for start in range(0, len(ids), BATCH_SIZE):
        response = call(
            clients.codedeploy,
            "batch_get_deployment_instances",
            deploymentId=handle.deployment_id,
            instanceIds=ids[start:start + BATCH_SIZE],
        )
        summaries.extend(response.get("instancesSummary", []))
    return summaries


def summarize_failures(clients: ProviderClients, handle: DeploymentHandle) -> List[InstanceFailureReport]:
    """
    Build per-instance reports of what went wrong in a deployment.

    Only instances whose status is exactly "Failed" are reported. For each,
    every lifecycle event that did not succeed is listed, and events that
    failed also carry timing, diagnostics and the log tail split into lines.
    Instance ids are replaced by their Name tag from a fresh EC2 snapshot.

    Raises:
        NotFoundError: If a failed instance is not found in the EC2 snapshot
    """
    instance_ids = list_deployment_instance_ids(clients, handle)
    if not instance_ids:
        return []

    summaries = get_instance_summaries(clients, handle, instance_ids)
    failed = [summary for summary in summaries if summary.get("status") == "Failed"]
    if not failed:
        return []

    records = get_compute_status(clients)
    reports = []
    for summary in failed:
        instance_id = _instance_id_from_target(summary["instanceId"])
        events = [
            _event_report(event)
            for event in summary.get("lifecycleEvents", [])
            if event.get("status") != "Succeeded"
        ]
        reports.append(InstanceFailureReport(
            instance_name=lookup_name_by_compute_id(instance_id, records),
            failed_events=events,
        ))

    logger.info(f"Deployment {handle.deployment_id}: {len(reports)} failed instance(s)")
    return reports


def format_failure_report(reports: Sequence[InstanceFailureReport]) -> List[str]:
    """Render reports as console lines."""
    lines = ["Deployment Errors:"]
    for report in reports:
        lines.append(f"Instance: {report.instance_name}")
        lines.append("-" * 30)
        for event in report.failed_events:
            lines.append(f"  {event.event_name}: {event.event_status}")
            if event.event_status != "Failed":
                continue
            lines.append(f"    script: {event.failed_script}  error: {event.error_code}")
            if event.fail_message:
                lines.append(f"    message: {event.fail_message}")
            for log_line in event.log_tail or []:
                lines.append(f"    | {log_line}")
    return lines
