"""
Exception hierarchy for mxaws operations.

Remote call failures, wait timeouts and lookup failures are kept distinct so a
caller can tell "AWS rejected the request" apart from "the request succeeded
but the awaited state never showed up".
"""

from typing import Optional, Sequence


class MxawsError(Exception):
    """Base class for every error raised by mxaws."""


class ConfigurationError(MxawsError):
    """Credentials or settings are missing or malformed."""


class RemoteCallError(MxawsError):
    """An AWS API call was rejected or could not be completed."""

    def __init__(self, service: str, operation: str, message: str, code: Optional[str] = None):
        self.service = service
        self.operation = operation
        self.code = code
        detail = f"{service}.{operation} failed"
        if code:
            detail += f" ({code})"
        super().__init__(f"{detail}: {message}")


class WaitTimeoutError(MxawsError):
    """A poll or wait primitive exhausted its budget before the target state appeared."""

    def __init__(self, kind: str, identifiers: Sequence[str], target_state: str, message: Optional[str] = None):
        self.kind = kind
        self.identifiers = list(identifiers)
        self.target_state = target_state
        ids = ", ".join(self.identifiers)
        super().__init__(message or f"Timed out waiting for {kind} [{ids}] to reach '{target_state}'")


class LoginTimeoutError(WaitTimeoutError):
    """The database never accepted an authenticated connection."""

    def __init__(self, host: str, attempts: int):
        self.host = host
        self.attempts = attempts
        super().__init__(
            "database",
            [host],
            "login-ready",
            f"Database at {host} did not accept logins after {attempts} attempts",
        )


class ReachabilityTimeoutError(WaitTimeoutError):
    """A TCP endpoint never sent data within the retry budget."""

    def __init__(self, address: str, port: int, attempts: int):
        self.address = address
        self.port = port
        self.attempts = attempts
        super().__init__(
            "endpoint",
            [f"{address}:{port}"],
            "reachable",
            f"{address}:{port} was not reachable after {attempts} retries",
        )


class OperationCancelledError(MxawsError):
    """A wait was cancelled or ran past its deadline."""


class DeploymentFailedError(MxawsError):
    """A CodeDeploy deployment finished in a non-successful state."""

    def __init__(self, handle, status: str):
        self.handle = handle
        self.status = status
        super().__init__(f"Deployment {handle.deployment_id} finished with status {status}")


class LookupFailedError(MxawsError):
    """Expected data (a tag or a cross-referenced record) is missing."""


class MissingTagError(LookupFailedError):
    """An instance lacks a tag the projection relies on."""

    def __init__(self, instance_id: str, tag: str):
        self.instance_id = instance_id
        self.tag = tag
        super().__init__(f"Instance {instance_id} has no '{tag}' tag")


class NotFoundError(LookupFailedError):
    """No record matched the given identifier."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"No {kind} found with identifier {identifier}")
