import contextvars
import logging
from contextlib import AsyncExitStack

import uvicorn

from compute_ops.app import create_mcp_app
from compute_ops.arguments import Parser, ServerMode
from compute_ops.cache import Cache
from compute_ops.client import ComputeClient
from compute_ops.context import CACHE, COMPUTE, ContextMiddleware
from compute_ops.scope import Compute

log = logging.getLogger(__name__)


async def amain(parser: Parser) -> None:
    async with AsyncExitStack() as stack:
        cache = await stack.enter_async_context(
            Cache(
                db_path=parser.cache.path.expanduser(),
                retention_days=parser.cache.prune_days,
            )
        )
        client = await stack.enter_async_context(
            ComputeClient(
                base_url=parser.url,
                token=parser.token,
                timeout=parser.timeout,
                poll_interval=parser.poll_interval,
            )
        )

        COMPUTE.set(Compute(client, project=parser.project))
        CACHE.set(cache)

        mcp = create_mcp_app()

        log.debug("MCP app initialized: %s", COMPUTE.get())

        if parser.mode == ServerMode.HTTP:
            log.info("Starting MCP server on http://%s:%d", parser.http.listen, parser.http.port)

            app = mcp.streamable_http_app()
            app.add_middleware(ContextMiddleware, ctx=contextvars.copy_context())

            config = uvicorn.Config(
                app,
                host=parser.http.listen,
                port=parser.http.port,
                log_level="info",
            )
            server = uvicorn.Server(config)
            await server.serve()
        elif parser.mode == ServerMode.STDIO:
            log.info("Starting MCP server in stdio mode")
            await mcp.run_stdio_async()
        else:
            raise ValueError(f"Unsupported server mode: {parser.mode}")
