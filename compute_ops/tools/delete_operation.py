from typing import Literal

from pydantic import BaseModel, Field

from compute_ops.context import CACHE, COMPUTE


class DeleteOperationOutput(BaseModel):
    deleted: bool = Field(description="Whether the operation resource was deleted")
    name: str = Field(description="Name of the deleted operation")


async def delete_operation(
    name: str,
    scope: Literal["global", "region", "zone"] = "global",
    location: str | None = None,
) -> DeleteOperationOutput:
    """
    Delete an operation resource from the provider.

    TL;DR:
    - PURPOSE: Clean up the record of an operation
    - NOTE: Does not cancel or undo the work the operation performed

    RETURNS: deleted, name
    """

    operation = COMPUTE.get().scope_for(scope, location).operation(name)
    await operation.delete()
    await CACHE.get().delete("operation", operation.url)
    return DeleteOperationOutput(deleted=True, name=name)
