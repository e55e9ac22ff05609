from dataclasses import dataclass
from enum import Enum
from typing import Any

from .backend_types import OperationResource
from .client import ComputeClient
from .operation import Operation


class ScopeKind(str, Enum):
    GLOBAL = "global"
    REGION = "region"
    ZONE = "zone"


class Compute:
    """Top-level compute context: a project on one API endpoint."""

    def __init__(self, client: ComputeClient, project: str, poll_interval: float | None = None) -> None:
        self.client = client
        self.project = project
        self.poll_interval = client.poll_interval if poll_interval is None else poll_interval

    def __repr__(self) -> str:
        return f"<Compute project={self.project!r}>"

    @property
    def path(self) -> str:
        return f"/projects/{self.project}"

    @property
    def scope(self) -> "Scope":
        return Scope(ScopeKind.GLOBAL, self)

    def region(self, name: str) -> "Scope":
        return Scope(ScopeKind.REGION, self, name)

    def zone(self, name: str) -> "Scope":
        return Scope(ScopeKind.ZONE, self, name)

    def operation(self, name: str) -> Operation:
        return self.scope.operation(name)

    def scope_for(self, kind: ScopeKind | str, location: str | None = None) -> "Scope":
        kind = ScopeKind(kind)
        if kind is ScopeKind.GLOBAL:
            if location:
                raise ValueError(f"Global scope does not take a location, got {location!r}")
            return self.scope
        if not location:
            raise ValueError(f"{kind.value.capitalize()} scope requires a location")
        return Scope(kind, self, location)


@dataclass(frozen=True)
class Scope:
    kind: ScopeKind
    compute: Compute
    location: str | None = None

    def __post_init__(self) -> None:
        if self.kind is ScopeKind.GLOBAL and self.location is not None:
            raise ValueError("Global scope does not take a location")
        if self.kind is not ScopeKind.GLOBAL and not self.location:
            raise ValueError(f"{self.kind.value} scope requires a location")

    @property
    def path(self) -> str:
        if self.kind is ScopeKind.REGION:
            return f"{self.compute.path}/regions/{self.location}"
        if self.kind is ScopeKind.ZONE:
            return f"{self.compute.path}/zones/{self.location}"
        return self.compute.path

    @property
    def operations_path(self) -> str:
        return "/global/operations" if self.kind is ScopeKind.GLOBAL else "/operations"

    @property
    def poll_interval(self) -> float:
        return self.compute.poll_interval

    @property
    def client(self) -> ComputeClient:
        return self.compute.client

    def operation(self, name: str) -> Operation:
        return Operation(self, name)

    def operation_from_response(self, body: dict[str, Any]) -> Operation:
        """Wrap the response of a mutating call into a handle for the operation it started."""
        name = body.get("name")
        if not name:
            raise ValueError("Response does not name an operation")
        operation = self.operation(name)
        operation.metadata = OperationResource.from_body(body)
        return operation
