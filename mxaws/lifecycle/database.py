"""
RDS instance lifecycle operations. None of these wait for the change to finish.
"""

import logging
from typing import Any, Dict

from ..clients import ProviderClients, call

logger = logging.getLogger(__name__)


def start_db_instance(clients: ProviderClients, identifier: str) -> Dict[str, Any]:
    return call(clients.rds, "start_db_instance", DBInstanceIdentifier=identifier)


def stop_db_instance(clients: ProviderClients, identifier: str) -> Dict[str, Any]:
    return call(clients.rds, "stop_db_instance", DBInstanceIdentifier=identifier)


def reboot_db_instance(clients: ProviderClients, identifier: str) -> Dict[str, Any]:
    return call(clients.rds, "reboot_db_instance", DBInstanceIdentifier=identifier)


def resize_db_instance(clients: ProviderClients, identifier: str, new_size: str) -> Dict[str, Any]:
    """
    Change an RDS instance class immediately rather than in the maintenance window.

    The instance moves through "modifying"; poll with wait_for_database_state
    if the caller needs the change to have completed.
    """
    logger.info(f"Resizing RDS instance {identifier} to {new_size}")
    return call(
        clients.rds,
        "modify_db_instance",
        DBInstanceIdentifier=identifier,
        DBInstanceClass=new_size,
        ApplyImmediately=True,
    )
