"""
Status projection: compact records derived from describe responses.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from .clients import ProviderClients, call, paginate
from .errors import MissingTagError, NotFoundError

logger = logging.getLogger(__name__)

# Instances without an Application tag are the database hosts.
DEFAULT_APPLICATION = "db"

EXCLUDED_STATES = {"terminated"}


@dataclass(frozen=True)
class ByName:
    """Select instances whose Name tag equals ``name``."""
    name: str


@dataclass(frozen=True)
class ByEnvironment:
    """Select instances whose Environment tag equals ``name``."""
    name: str


@dataclass(frozen=True)
class AllInstances:
    """Select every instance."""


LookupTarget = Union[ByName, ByEnvironment, AllInstances]


def target_from(value: Optional[Union[str, LookupTarget]], is_environment: bool = False) -> LookupTarget:
    """
    Convert a plain name (or None) into a lookup target.

    Empty values select all instances.
    """
    if isinstance(value, (ByName, ByEnvironment, AllInstances)):
        return value
    if not value:
        return AllInstances()
    return ByEnvironment(value) if is_environment else ByName(value)


@dataclass(frozen=True)
class ComputeStatus:
    """Flattened view of one EC2 instance."""
    name: str
    state: str
    application: str
    environment: Optional[str]
    address: Optional[str]
    size: str
    instance_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "InstanceName": self.name,
            "InstanceState": self.state,
            "InstanceApplication": self.application,
            "InstanceEnvironment": self.environment,
            "InstanceAddress": self.address,
            "InstanceSize": self.size,
            "InstanceId": self.instance_id,
        }


@dataclass(frozen=True)
class DatabaseStatus:
    """Flattened view of one RDS instance."""
    name: str
    state: str
    address: Optional[str]
    port: Optional[int]
    size: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "InstanceName": self.name,
            "InstanceState": self.state,
            "InstanceAddress": self.address,
            "InstancePort": self.port,
            "InstanceSize": self.size,
        }


def tag_filters(target: LookupTarget) -> List[Dict[str, Any]]:
    """Build the describe_instances filter list for a lookup target."""
    if isinstance(target, ByName):
        key = "Name"
    elif isinstance(target, ByEnvironment):
        key = "Environment"
    elif isinstance(target, AllInstances):
        return []
    else:
        raise TypeError(f"Unsupported lookup target: {target!r}")
    return [
        {"Name": "tag-key", "Values": [key]},
        {"Name": "tag-value", "Values": [target.name]},
    ]


def describe_compute(clients: ProviderClients, target: LookupTarget) -> List[Dict[str, Any]]:
    """
    Describe the EC2 instances matching ``target``.

    Returns:
        Raw instance dictionaries from every reservation
    """
    params: Dict[str, Any] = {}
    filters = tag_filters(target)
    if filters:
        params["Filters"] = filters

    instances: List[Dict[str, Any]] = []
    for reservation in paginate(clients.ec2, "describe_instances", "Reservations", **params):
        instances.extend(reservation.get("Instances", []))
    return instances


def describe_instance(clients: ProviderClients, instance_id: str) -> Dict[str, Any]:
    """Describe a single EC2 instance by id."""
    response = call(clients.ec2, "describe_instances", InstanceIds=[instance_id])
    for reservation in response.get("Reservations", []):
        for instance in reservation.get("Instances", []):
            if instance.get("InstanceId") == instance_id:
                return instance
    raise NotFoundError("ec2 instance", instance_id)


def project_instance(instance: Dict[str, Any]) -> ComputeStatus:
    """
    Project a raw EC2 instance into a ComputeStatus.

    Raises:
        MissingTagError: If the instance has no Name tag
    """
    tags = {tag["Key"]: tag["Value"] for tag in instance.get("Tags", [])}
    if "Name" not in tags:
        raise MissingTagError(instance.get("InstanceId", "<unknown>"), "Name")

    return ComputeStatus(
        name=tags["Name"],
        state=instance["State"]["Name"],
        application=tags.get("Application") or DEFAULT_APPLICATION,
        environment=tags.get("Environment"),
        address=instance.get("PublicIpAddress"),
        size=instance.get("InstanceType"),
        instance_id=instance.get("InstanceId"),
    )


def _fan_out(func, items: Sequence[Any]) -> List[Any]:
    """Run ``func`` on each item concurrently, concatenating results in input order."""
    if not items:
        return []
    with ThreadPoolExecutor(max_workers=len(items)) as executor:
        chunks = list(executor.map(func, items))
    return [record for chunk in chunks for record in chunk]


def get_compute_status(
    clients: ProviderClients,
    target: Union[None, str, LookupTarget, Sequence[Union[str, LookupTarget]]] = None,
    is_environment: bool = False,
) -> List[ComputeStatus]:
    """
    Get status records for EC2 instances.

    Args:
        clients: Provider clients
        target: A lookup target, a name, None for everything, or a list of
            these (looked up concurrently; results keep the input order)
        is_environment: Treat plain string targets as Environment tag values

    Returns:
        Records for every matching instance that is not terminated

    Raises:
        MissingTagError: If a matching instance has no Name tag
    """
    if isinstance(target, (list, tuple)):
        return _fan_out(lambda item: get_compute_status(clients, item, is_environment), list(target))

    lookup = target_from(target, is_environment)
    instances = describe_compute(clients, lookup)
    active = [inst for inst in instances if inst["State"]["Name"] not in EXCLUDED_STATES]
    logger.debug(f"{lookup}: {len(active)} active of {len(instances)} instance(s)")
    return [project_instance(inst) for inst in active]


def project_database(db: Dict[str, Any]) -> DatabaseStatus:
    """Project a raw RDS instance into a DatabaseStatus."""
    endpoint = db.get("Endpoint") or {}
    return DatabaseStatus(
        name=db["DBInstanceIdentifier"],
        state=db.get("DBInstanceStatus"),
        address=endpoint.get("Address"),
        port=endpoint.get("Port"),
        size=db.get("DBInstanceClass"),
    )


def get_database_status(
    clients: ProviderClients,
    target: Union[None, str, Sequence[str]] = None,
) -> List[DatabaseStatus]:
    """
    Get status records for RDS instances.

    Args:
        clients: Provider clients
        target: Instance identifier, None for every instance, or a list of
            identifiers (looked up concurrently, results in input order)

    Returns:
        One record per database instance
    """
    if isinstance(target, (list, tuple)):
        return _fan_out(lambda item: get_database_status(clients, item), list(target))

    if not target:
        dbs = list(paginate(clients.rds, "describe_db_instances", "DBInstances"))
    else:
        dbs = call(clients.rds, "describe_db_instances", DBInstanceIdentifier=target).get("DBInstances", [])
    return [project_database(db) for db in dbs]


def lookup_name_by_compute_id(instance_id: str, records: Sequence[ComputeStatus]) -> str:
    """
    Find the Name of the instance with ``instance_id`` in ``records``.

    Raises:
        NotFoundError: If no record has that id
    """
    for record in records:
        if record.instance_id == instance_id:
            return record.name
    raise NotFoundError("ec2 instance", instance_id)
