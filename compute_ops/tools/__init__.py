"""Compute operations MCP tools."""

from .delete_operation import delete_operation
from .get_operation import get_operation
from .wait_operations import wait_operations

__all__ = [
    "delete_operation",
    "get_operation",
    "wait_operations",
]
