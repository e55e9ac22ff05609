from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OperationStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"


class OperationErrorItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: Any = None
    message: Any = None
    location: Any = None
    reason: Any = None


class OperationErrorBody(BaseModel):
    """Error envelope shared by failed operations and failed API calls.

    Operations report ``{"errors": [...]}``, API errors additionally carry
    ``code`` and ``message`` at the top level. Anything else the API puts in
    an ``error`` field is kept as the message.
    """

    model_config = ConfigDict(extra="allow")

    code: Any = None
    message: Any = None
    errors: list[OperationErrorItem] = Field(default_factory=list)

    @field_validator("errors", mode="before")
    @classmethod
    def _wrap_errors(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, (list, tuple)):
            value = [value]
        return [item if isinstance(item, (Mapping, OperationErrorItem)) else {"message": str(item)} for item in value]

    def describe(self) -> str:
        if self.message:
            return str(self.message)
        messages = [str(item.message or item.code) for item in self.errors if item.message or item.code]
        return "; ".join(messages) or "Error"


class OperationResource(BaseModel):
    """Operation body. Only ``name``, ``status`` and ``error`` are interpreted,
    everything else is kept as it came from the API."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str | None = None
    status: str | None = None
    error: OperationErrorBody | None = None

    operation_type: Any = Field(default=None, alias="operationType")
    target_link: Any = Field(default=None, alias="targetLink")

    @field_validator("name", "status", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Any:
        return value if value is None or isinstance(value, str) else str(value)

    @field_validator("error", mode="before")
    @classmethod
    def _wrap_error(cls, value: Any) -> Any:
        if value is None or isinstance(value, (Mapping, OperationErrorBody)):
            return value
        if isinstance(value, (str, bool)) and not value:
            return None
        if isinstance(value, (list, tuple)):
            return {"errors": value}
        return {"message": str(value)}

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "OperationResource":
        return cls.model_validate(body)

    @property
    def is_done(self) -> bool:
        return self.status == OperationStatus.DONE.value
