"""
DynamoDB pass-through operations.

Items and keys use DynamoDB's attribute-value format, e.g.
``{"id": {"S": "abc"}}``; callers own their structure.
"""

import logging
from typing import Any, Dict, List, Optional

from .clients import ProviderClients, call, paginate

logger = logging.getLogger(__name__)


def list_tables(clients: ProviderClients) -> List[str]:
    """Names of every table in the region."""
    return list(paginate(clients.dynamodb, "list_tables", "TableNames"))


def put_item(clients: ProviderClients, item: Dict[str, Any], table_name: str) -> Dict[str, Any]:
    logger.debug(f"put_item into {table_name}")
    return call(clients.dynamodb, "put_item", TableName=table_name, Item=item)


def get_item(clients: ProviderClients, key: Dict[str, Any], table_name: str) -> Optional[Dict[str, Any]]:
    """Fetch one item; None when no item has that key."""
    response = call(clients.dynamodb, "get_item", TableName=table_name, Key=key)
    return response.get("Item")


def delete_item(clients: ProviderClients, key: Dict[str, Any], table_name: str) -> Dict[str, Any]:
    logger.debug(f"delete_item from {table_name}")
    return call(clients.dynamodb, "delete_item", TableName=table_name, Key=key)
