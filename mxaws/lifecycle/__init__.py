"""
Start, stop, reboot and resize operations for EC2 and RDS instances.
"""

from .compute import (
    reboot_instances,
    resize_instance,
    resize_instances,
    start_instances,
    stop_instances,
)
from .database import (
    reboot_db_instance,
    resize_db_instance,
    start_db_instance,
    stop_db_instance,
)

__all__ = [
    "start_instances",
    "stop_instances",
    "reboot_instances",
    "resize_instance",
    "resize_instances",
    "start_db_instance",
    "stop_db_instance",
    "reboot_db_instance",
    "resize_db_instance",
]
