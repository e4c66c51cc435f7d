"""
Observer callbacks for notable transitions.

Operations accept an ``observer`` callable with the signature
``observer(event_type, data)``. The default observer is silent; pass
``logging_observer`` (or any callable) to surface progress. Events whose
emitting module already writes a log line are not logged a second time.
"""

import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

Observer = Callable[[str, Dict[str, Any]], None]

ATTEMPT_FAILED = "ATTEMPT_FAILED"
FALLBACK_CREDENTIALS = "FALLBACK_CREDENTIALS"
DEPLOYMENT_STARTED = "DEPLOYMENT_STARTED"
DEPLOYMENT_FAILED = "DEPLOYMENT_FAILED"
RESIZE_STEP = "RESIZE_STEP"
WAIT_STARTED = "WAIT_STARTED"

LOGGED_AT_SOURCE = frozenset({
    FALLBACK_CREDENTIALS,
    DEPLOYMENT_STARTED,
    DEPLOYMENT_FAILED,
    RESIZE_STEP,
})


def null_observer(event_type: str, data: Dict[str, Any]) -> None:
    """Discard the event."""


def logging_observer(event_type: str, data: Dict[str, Any]) -> None:
    """Write the event to the ``mxaws.events`` logger."""
    if event_type in LOGGED_AT_SOURCE:
        return
    if event_type == ATTEMPT_FAILED:
        logger.info(
            f"{data.get('operation', 'probe')} attempt {data.get('attempt')} failed, "
            f"{data.get('remaining')} remaining: {data.get('error')}"
        )
    else:
        logger.info(f"{event_type}: {data}")


def resolve(observer: Optional[Observer]) -> Observer:
    """Return the observer to use, defaulting to the silent one."""
    return observer if observer is not None else null_observer
