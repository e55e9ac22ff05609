"""Test fixtures for compute-ops."""

import asyncio
import json
import re
import socket
from collections import defaultdict
from collections.abc import AsyncIterator
from dataclasses import dataclass
from http import HTTPStatus
from pathlib import Path
from typing import Any

import pytest
import uvicorn
from pydantic import BaseModel
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from compute_ops.cache import Cache
from compute_ops.client import ComputeClient
from compute_ops.context import CACHE, COMPUTE
from compute_ops.scope import Compute

PROJECT = "test-project"
API_PREFIX = "/compute/v1"

# =============================================================================
# Default test data factories
# =============================================================================


def make_operation_body(
    name: str = "operation-1",
    status: str | None = "DONE",
    error: dict[str, Any] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Create an operation resource body as the API returns it."""
    body: dict[str, Any] = {
        "kind": "compute#operation",
        "id": "1234567890",
        "name": name,
        "operationType": "insert",
        "targetLink": f"https://compute.googleapis.com/compute/v1/projects/{PROJECT}/zones/us-central1-a/instances/vm",
        "progress": 100 if status == "DONE" else 0,
        **extra,
    }
    if status is not None:
        body["status"] = status
    if error is not None:
        body["error"] = error
    return body


def make_operation_error(code: str = "QUOTA_EXCEEDED", message: str = "Quota 'CPUS' exceeded.") -> dict[str, Any]:
    return {"errors": [{"code": code, "message": message}]}


def make_api_error(code: int = 404, message: str = "The resource was not found") -> dict[str, Any]:
    return {"error": {"code": code, "message": message, "errors": [{"reason": "notFound", "message": message}]}}


# =============================================================================
# FakeResponse - HTTP-like response configuration
# =============================================================================


@dataclass
class FakeResponse:
    """HTTP-like response for fake server.

    Attributes:
        http_status: HTTP status code
        body: Response body (BaseModel, list, dict, str, or None)
        headers: Response headers as tuple of (name, value) pairs
    """

    http_status: HTTPStatus = HTTPStatus.OK
    body: BaseModel | list | dict | str | None = None
    headers: tuple[tuple[str, str], ...] = ()


# A list is served in order, its last item repeats once the list is exhausted
FakeResponses = dict[str, FakeResponse | list[FakeResponse]]


# =============================================================================
# RouteMatcher - Match URL patterns with path parameters
# =============================================================================


class RouteMatcher:
    """Match request URIs against fake_responses patterns.

    Converts patterns like "GET /projects/{project}/global/operations/{name}" to regex
    that matches "GET /projects/p/global/operations/operation-1".
    """

    _PARAM_PATTERN = re.compile(r"\{([^}]+)\}")

    def __init__(self, responses: FakeResponses):
        self._responses = responses
        self._compiled: list[tuple[re.Pattern[str], str]] = []
        self._served: dict[str, int] = defaultdict(int)
        self._compile_patterns()

    def _compile_patterns(self) -> None:
        for pattern in self._responses:
            regex = re.compile(f"^{re.escape(pattern.split()[0])} {self._path_to_regex(pattern)}$")
            self._compiled.append((regex, pattern))

    def _path_to_regex(self, pattern: str) -> str:
        parts = pattern.split(" ", 1)
        path = parts[1] if len(parts) > 1 else parts[0]
        result = ""
        last_end = 0
        for match in self._PARAM_PATTERN.finditer(path):
            result += re.escape(path[last_end : match.start()])
            result += "([^/]+)"
            last_end = match.end()
        result += re.escape(path[last_end:])
        return result

    def _next(self, pattern: str) -> FakeResponse:
        configured = self._responses[pattern]
        if isinstance(configured, FakeResponse):
            return configured
        index = min(self._served[pattern], len(configured) - 1)
        self._served[pattern] += 1
        return configured[index]

    def match(self, method: str, path: str) -> FakeResponse | None:
        uri = f"{method} {path}"

        if uri in self._responses:
            return self._next(uri)

        for regex, pattern in self._compiled:
            if regex.match(uri):
                return self._next(pattern)

        return None


# =============================================================================
# Fixtures - Real HTTP fake server
# =============================================================================


@pytest.fixture
def fake_server_socket() -> socket.socket:
    """Create a bound socket for the fake server."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind(("127.0.0.1", 0))
    return sock


@pytest.fixture
def fake_server_port(fake_server_socket: socket.socket) -> int:
    _, port = fake_server_socket.getsockname()
    return port


@pytest.fixture
def fake_server_url(fake_server_port: int) -> str:
    return f"http://127.0.0.1:{fake_server_port}"


def _serialize_body(body: Any) -> str:
    if body is None:
        return ""
    if isinstance(body, BaseModel):
        return body.model_dump_json(by_alias=True)
    if isinstance(body, (list, dict)):
        return json.dumps(body)
    return str(body)


@pytest.fixture
def request_log() -> list[str]:
    """Every request the fake server received, as "METHOD /path"."""
    return []


@pytest.fixture
async def http_fake_server(
    fake_responses: FakeResponses,
    fake_server_socket: socket.socket,
    request_log: list[str],
) -> AsyncIterator[None]:
    """Real HTTP server returning configured fake responses.

    Uses pre-bound socket so server is ready immediately after task starts.
    """
    matcher = RouteMatcher(fake_responses)

    async def handle_request(request: Request) -> Response:
        method = request.method
        path = request.url.path
        if path.startswith(API_PREFIX):
            path = path[len(API_PREFIX) :]

        request_log.append(f"{method} {path}")
        fake_response = matcher.match(method, path)

        if fake_response is None:
            return Response(
                content=json.dumps(make_api_error(404, f"No fake response for {method} {path}")),
                status_code=404,
                media_type="application/json",
            )

        headers = dict(fake_response.headers)
        if "content-type" not in {k.lower() for k in headers}:
            headers["Content-Type"] = "application/json"

        return Response(
            content=_serialize_body(fake_response.body),
            status_code=fake_response.http_status.value,
            headers=headers,
        )

    app = Starlette(
        routes=[
            Route(
                "/{path:path}",
                endpoint=handle_request,
                methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
            ),
        ],
    )

    config = uvicorn.Config(app, log_level="error")
    server = uvicorn.Server(config)
    server_task = asyncio.create_task(server.serve(sockets=[fake_server_socket]))

    yield

    server.should_exit = True
    await server_task


@pytest.fixture
async def general_cache(tmp_path: Path) -> AsyncIterator[Cache]:
    async with Cache(db_path=tmp_path / "cache.db") as cache:
        yield cache


@pytest.fixture
async def compute_client(http_fake_server: None, fake_server_url: str) -> AsyncIterator[ComputeClient]:
    """Real ComputeClient pointing to the fake HTTP server."""
    async with ComputeClient(
        base_url=f"{fake_server_url}{API_PREFIX}",
        token="test-token",
        poll_interval=0.01,
        retry_time=0.01,
    ) as client:
        yield client


@pytest.fixture
def compute(compute_client: ComputeClient) -> Compute:
    return Compute(compute_client, project=PROJECT)


@pytest.fixture
def compute_context(compute: Compute, general_cache: Cache) -> Compute:
    """Compute context with the server context variables set."""
    COMPUTE.set(compute)
    CACHE.set(general_cache)
    return compute


@pytest.fixture
def fake_responses() -> FakeResponses:
    """Default empty fake responses for tests that don't need HTTP."""
    return {}
