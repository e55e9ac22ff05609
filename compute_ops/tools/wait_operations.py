import asyncio
from typing import Literal

from pydantic import BaseModel, Field

from compute_ops.backend_types import OperationErrorBody, OperationResource
from compute_ops.client import ApiError
from compute_ops.context import CACHE, COMPUTE
from compute_ops.operation import Operation


class OperationRef(BaseModel):
    name: str = Field(description="Operation name")
    scope: Literal["global", "region", "zone"] = Field(default="global", description="Operation scope")
    location: str | None = Field(default=None, description="Region or zone name for non-global scopes")


class WaitOperationsOutput(BaseModel):
    results: dict[str, OperationResource] = Field(description="Map of operation URL to final metadata")
    completed: list[str] = Field(description="URLs of operations that finished")
    failed: list[str] = Field(description="URLs of operations that failed or could not be polled")
    pending: list[str] = Field(description="URLs of operations still running when waiting stopped")
    timed_out: bool = Field(default=False, description="True if wait exceeded timeout")


async def wait_operations(
    operations: list[OperationRef],
    timeout: float = 300.0,
    mode: Literal["all", "any"] = "all",
) -> WaitOperationsOutput:
    """
    Wait for multiple compute operations to finish.

    TL;DR:
    - PURPOSE: Block until operations reach DONE
    - MODES: 'all' waits for all, 'any' returns on the first one that finishes

    USAGE:
    - Wait for the operations returned by create/delete/resize calls
    - Operations keep running on the provider side when waiting stops

    Results are keyed by operation URL, e.g.
    /projects/p/zones/us-central1-a/operations/operation-123

    RETURNS: results dict, completed list, failed list, pending list, timed_out bool
    """

    compute = COMPUTE.get()
    cache = CACHE.get()

    # names are only unique within a scope
    tracked: dict[str, Operation] = {}
    for ref in operations:
        operation = compute.scope_for(ref.scope, ref.location).operation(ref.name)
        tracked.setdefault(operation.url, operation)

    results: dict[str, OperationResource] = {}
    failed: list[str] = []

    async def wait_one(operation: Operation) -> None:
        key = operation.url
        try:
            metadata = await operation.wait()
        except ApiError as e:
            failed.append(key)
            if isinstance(e.response, dict) and e.response.get("name") == operation.name:
                results[key] = OperationResource.from_body(e.response)
            else:
                results[key] = OperationResource(
                    name=operation.name,
                    error=OperationErrorBody(code=e.status_code, message=e.message),
                )
            return
        except Exception as e:
            # connection errors and the like
            failed.append(key)
            results[key] = OperationResource(name=operation.name, error=OperationErrorBody(message=str(e)))
            return
        results[key] = metadata
        await cache.put("operation", key, metadata)

    tasks = [asyncio.create_task(wait_one(operation)) for operation in tracked.values()]
    if not tasks:
        return WaitOperationsOutput(results={}, completed=[], failed=[], pending=[])

    done, pending = await asyncio.wait(
        tasks,
        timeout=timeout,
        return_when=asyncio.ALL_COMPLETED if mode == "all" else asyncio.FIRST_COMPLETED,
    )

    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)

    pending_keys = [key for key in tracked if key not in results]
    completed = [key for key in results if key not in failed]
    # for mode="any" pending operations are expected
    timed_out = bool(pending_keys) and mode == "all"
    return WaitOperationsOutput(
        results=results,
        completed=completed,
        failed=failed,
        pending=pending_keys,
        timed_out=timed_out,
    )
