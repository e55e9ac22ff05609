from .backend_types import OperationResource, OperationStatus
from .client import ApiError, ComputeClient, ComputeError
from .operation import Operation, OperationEvent
from .scope import Compute, Scope, ScopeKind

__all__ = [
    "ApiError",
    "Compute",
    "ComputeClient",
    "ComputeError",
    "Operation",
    "OperationEvent",
    "OperationResource",
    "OperationStatus",
    "Scope",
    "ScopeKind",
]
