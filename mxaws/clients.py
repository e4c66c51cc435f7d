"""
Provider client facade.

A single immutable ``ProviderClients`` context holds the boto3 clients for the
four services mxaws talks to. It is built once and handed to every operation,
which keeps the operations testable with fake clients.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoRegionError, WaiterError

from .config import REGION_VARS, AWSConfig, load_config
from .errors import ConfigurationError, RemoteCallError
from .events import Observer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderClients:
    """boto3 clients for EC2, RDS, CodeDeploy and DynamoDB."""
    ec2: Any
    rds: Any
    codedeploy: Any
    dynamodb: Any


def create_clients(
    config: Optional[AWSConfig] = None,
    session: Optional[boto3.session.Session] = None,
    observer: Optional[Observer] = None,
) -> ProviderClients:
    """
    Build the provider clients.

    Args:
        config: Resolved credentials; loaded from the environment when omitted
        session: Existing boto3 session to use instead of creating one
        observer: Passed to load_config for the fallback notice

    Returns:
        ProviderClients sharing one session

    Raises:
        ConfigurationError: If no region can be resolved
    """
    if session is None:
        if config is None:
            config = load_config(observer=observer)
        session = boto3.session.Session(**config.session_kwargs())

    logger.debug(f"Creating AWS clients for region {session.region_name}")
    try:
        return ProviderClients(
            ec2=session.client("ec2"),
            rds=session.client("rds"),
            codedeploy=session.client("codedeploy"),
            dynamodb=session.client("dynamodb"),
        )
    except NoRegionError as e:
        raise ConfigurationError(
            f"No AWS region configured; set {REGION_VARS[0]} or {REGION_VARS[1]}"
        ) from e
    except BotoCoreError as e:
        raise ConfigurationError(f"Could not create AWS clients: {e}") from e


def _service_name(client: Any) -> str:
    try:
        return str(client.meta.service_model.service_name)
    except AttributeError:
        return type(client).__name__


def _translate(client: Any, operation: str, error: Exception) -> RemoteCallError:
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        return RemoteCallError(
            _service_name(client),
            operation,
            details.get("Message", str(error)),
            details.get("Code"),
        )
    return RemoteCallError(_service_name(client), operation, str(error))


def call(client: Any, operation: str, **params: Any) -> Any:
    """
    Invoke one API operation, converting botocore failures to RemoteCallError.

    Args:
        client: boto3 client
        operation: Snake-case operation name, e.g. "describe_instances"
        **params: Request parameters

    Returns:
        The raw response dictionary
    """
    try:
        return getattr(client, operation)(**params)
    except (ClientError, BotoCoreError) as e:
        raise _translate(client, operation, e) from e


def paginate(client: Any, operation: str, result_key: str, **params: Any) -> Iterator[Any]:
    """
    Iterate over every item of a paginated operation.

    Args:
        client: boto3 client
        operation: Paginated operation name
        result_key: Key holding the list of items in each page
        **params: Request parameters

    Yields:
        Items from each page, in order
    """
    try:
        paginator = client.get_paginator(operation)
        for page in paginator.paginate(**params):
            for item in page.get(result_key, []):
                yield item
    except (ClientError, BotoCoreError) as e:
        raise _translate(client, operation, e) from e


def translate_waiter_error(client: Any, operation: str, error: WaiterError) -> Optional[RemoteCallError]:
    """
    Recover the API error behind a waiter that stopped on a rejected request.

    botocore raises WaiterError both when the awaited state never arrives and
    when a poll comes back with an error no acceptor expects. Only the second
    case is a remote call failure.

    Returns:
        RemoteCallError for a rejected request, None for a timeout or a
        failure state
    """
    response = error.last_response or {}
    details = response.get("Error")
    reason = str(error.kwargs.get("reason", ""))
    if not isinstance(details, dict) or not reason.startswith("An error occurred"):
        return None
    return RemoteCallError(
        _service_name(client),
        operation,
        details.get("Message", reason),
        details.get("Code"),
    )
