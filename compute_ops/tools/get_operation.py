import logging
from typing import Literal

from compute_ops.backend_types import OperationResource
from compute_ops.context import CACHE, COMPUTE

log = logging.getLogger(__name__)


async def get_operation(
    name: str,
    scope: Literal["global", "region", "zone"] = "global",
    location: str | None = None,
) -> OperationResource:
    """
    Get the current state of a compute operation.

    TL;DR:
    - PURPOSE: Check on an operation returned by a mutating call
    - PREFER: Use wait_operations to block until operations finish

    USAGE:
    - scope='global' for project-wide operations (no location)
    - scope='region' with location='us-central1'
    - scope='zone' with location='us-central1-a'

    RETURNS: name, status (PENDING/RUNNING/DONE), error, progress, targetLink
    """

    operation = COMPUTE.get().scope_for(scope, location).operation(name)
    cache = CACHE.get()

    entry = await cache.get("operation", operation.url)
    if entry:
        return OperationResource.model_validate(dict(entry.data))

    metadata = await operation.get_metadata()
    if metadata.is_done:
        # finished operations never change again
        await cache.put("operation", operation.url, metadata)
        log.debug("Cached finished operation %s", operation.url)
    return metadata
