"""
## Compute operations

Mutating calls of the compute API (create, delete, resize, reconfigure) return
an operation instead of a result. Use these tools to follow such operations.

### Scopes

| Scope | Location | Example |
|-------|----------|---------|
| `global` | none | images, firewalls, global addresses |
| `region` | region name | `us-central1` |
| `zone` | zone name | `us-central1-a` |

### Workflow
```
get_operation(name="operation-123", scope="zone", location="us-central1-a")
wait_operations(operations=[{"name": "operation-123", "scope": "zone", "location": "us-central1-a"}])
```

An operation moves from `PENDING` to `RUNNING` to `DONE`. A `DONE` operation
with an `error` failed. `delete_operation` only removes the record of an
operation; it does not undo its work.
"""

from collections.abc import Awaitable, Callable
from textwrap import dedent
from typing import Any

from mcp.server import FastMCP

from . import tools


def register_tool(mcp: FastMCP, tool_func: Callable[..., Awaitable[Any]], **kwargs: Any) -> None:
    mcp.add_tool(tool_func, description=dedent(tool_func.__doc__ or "") or "", **kwargs)


def create_mcp_app(**kwargs: Any) -> FastMCP:
    mcp = FastMCP(
        name="compute-ops",
        instructions=dedent(__doc__).strip(),
        streamable_http_path="/mcp",
        json_response=True,
        **kwargs,
    )

    register_tool(mcp, tools.get_operation)
    register_tool(mcp, tools.wait_operations)
    register_tool(mcp, tools.delete_operation)

    return mcp
