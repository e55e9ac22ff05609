import asyncio
import importlib.metadata
import json
import logging
import platform
import sys
from collections.abc import Mapping
from functools import cached_property
from types import MappingProxyType
from typing import Any

import httpx
from typing_extensions import Self

from .backend_types import OperationErrorBody, OperationErrorItem

log = logging.getLogger(__name__)


class ComputeError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ApiError(ComputeError):
    """Error reported by the API, either as an HTTP error or as an ``error`` field of a body.

    ``response`` keeps the parsed body so callers can tell an operation resource that
    merely *contains* an error apart from a request that failed.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: list[OperationErrorItem] | None = None,
        response: dict[str, Any] | None = None,
    ):
        super().__init__(message, status_code)
        self.errors = errors or []
        self.response = response

    @classmethod
    def from_error_body(
        cls,
        error: OperationErrorBody | Mapping[str, Any],
        status_code: int | None = None,
        response: dict[str, Any] | None = None,
    ) -> "ApiError":
        if not isinstance(error, OperationErrorBody):
            error = OperationErrorBody.model_validate(error)
        if status_code is None and isinstance(error.code, int):
            status_code = error.code
        return cls(
            error.describe(),
            status_code=status_code,
            errors=list(error.errors),
            response=response,
        )


class ComputeClient:
    PYTHON_VERSION = f"{'.'.join(map(str, sys.version_info))}"
    try:
        LIBRARY_VERSION = importlib.metadata.version("compute-ops")
    except Exception:
        LIBRARY_VERSION = "unknown"

    OS_NAME = platform.system()
    OS_VERSION = platform.release()
    DEFAULT_URL = "https://compute.googleapis.com/compute/v1"

    HEADERS = (
        ("Content-Type", "application/json"),
        (
            "User-Agent",
            " ".join(
                (
                    f"compute-ops/{LIBRARY_VERSION}",
                    f"python/{PYTHON_VERSION}",
                    f"{OS_NAME}/{OS_VERSION}",
                )
            ),
        ),
    )

    def __init__(
        self,
        base_url: str = DEFAULT_URL,
        token: str = "",
        timeout: float = 30.0,
        poll_interval: float = 0.5,
        retry_time: float = 2,
        retry_count: int = 3,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = httpx.Timeout(timeout)
        self.poll_interval = poll_interval
        self.retry_time = retry_time
        self.retry_count = retry_count

    @cached_property
    def headers(self) -> Mapping[str, str]:
        hdrs = dict(self.HEADERS)
        if self.token:
            hdrs["Authorization"] = f"Bearer {self.token}"
        return MappingProxyType(hdrs)

    @cached_property
    def session(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(headers=self.headers, timeout=self.timeout)

    async def close(self) -> None:
        if "session" in self.__dict__:
            await asyncio.gather(self.session.aclose(), return_exceptions=True)
            del self.__dict__["session"]

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Perform an HTTP request and return the parsed JSON body.
        Retries on server errors (5xx).
        Raises ApiError on client errors (4xx) and on bodies carrying an ``error`` field.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        log.debug("%s %s", method, path)

        response: httpx.Response | None = None
        for attempt in range(self.retry_count):
            response = await self.session.request(method, url, json=json, params=params)
            if response.status_code < 500:
                break
            log.debug("%s %s -> %d: server error, retrying...", method, path, response.status_code)
            if attempt + 1 < self.retry_count:
                await asyncio.sleep(self.retry_time)

        if response is None:
            raise ComputeError(f"{method} {path}: no response")

        body = self._parse_body(response)
        log.debug("%s %s -> %d", method, path, response.status_code)

        error = body.get("error") if isinstance(body, dict) else None
        if response.status_code >= 400 or error:
            raise self._make_error(response, body, error)
        return body

    @staticmethod
    def _parse_body(response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            body = json.loads(response.content)
        except ValueError:
            if response.status_code >= 400:
                return {"error": {"code": response.status_code, "message": response.text}}
            raise ComputeError(f"Invalid JSON in response: {response.text[:200]!r}", response.status_code) from None
        if not isinstance(body, dict):
            raise ComputeError(f"Unexpected response body type: {type(body).__name__}", response.status_code)
        return body

    @staticmethod
    def _make_error(response: httpx.Response, body: dict[str, Any], error: Any) -> ApiError:
        if isinstance(error, Mapping):
            return ApiError.from_error_body(error, status_code=response.status_code, response=body)
        message = str(error) if error else f"HTTP {response.status_code}"
        return ApiError(message, status_code=response.status_code, response=body)
