"""Context management for operations and resource scoping."""

from .operation_context import OperationContext, OperationHandler, operation
from .resource_context import ResourceContext, resource_aware, resource_context

__all__ = [
    "operation",
    "OperationContext",
    "OperationHandler",
    "ResourceContext",
    "resource_aware",
    "resource_context",
]
