"""Handle for a long-running operation of the compute API.

Mutating calls (create, delete, resize...) return an operation that has to be
polled until it finishes. An :class:`Operation` fetches its metadata on demand
and, while somebody listens for ``complete``, polls it on the interval of its
scope::

    operation = compute.zone("us-central1-a").operation("operation-123")
    operation.on("running", lambda metadata: print("started"))
    operation.on("error", lambda exc: print("failed", exc))
    operation.on("complete", lambda metadata: print("done"))

    # or simply
    metadata = await operation.wait(timeout=300)

Removing every ``complete`` listener stops polling.
"""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from .backend_types import OperationResource, OperationStatus
from .client import ApiError

if TYPE_CHECKING:
    from .scope import Scope

log = logging.getLogger(__name__)

Listener = Callable[[Any], Any]


class OperationEvent(str, Enum):
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


class Operation:
    def __init__(self, scope: "Scope", name: str) -> None:
        self.scope = scope
        self.base_url = scope.operations_path
        self.poll_interval = scope.poll_interval
        self.__name = name

        self.status: str | None = None
        self.metadata: OperationResource | None = None

        self._listeners: dict[OperationEvent, list[Listener]] = {event: [] for event in OperationEvent}
        self._poll_lock = asyncio.Lock()
        self._poll_task: asyncio.Task[None] | None = None

    @property
    def name(self) -> str:
        return self.__name

    @property
    def url(self) -> str:
        return f"{self.scope.path}{self.base_url}/{self.name}"

    def __repr__(self) -> str:
        return f"<Operation {self.url} status={self.status}>"

    async def _request(self, method: str, action: str | None = None) -> dict[str, Any]:
        path = f"{self.url}/{action}" if action else self.url
        return await self.scope.client.request(method, path)

    async def _refresh(self, action: str | None = None) -> OperationResource:
        method = "POST" if action else "GET"
        try:
            body = await self._request(method, action)
        except ApiError as e:
            # The operation resource has an ``error`` field of its own, so the HTTP
            # layer reports failed operations as failed requests. A body naming this
            # operation is a real resource, not a failed request.
            if e.response is None or e.response.get("name") != self.name:
                raise
            log.debug("Operation %s reports an error, keeping it as metadata", self.name)
            body = e.response

        self.metadata = OperationResource.from_body(body)
        return self.metadata

    async def get_metadata(self) -> OperationResource:
        """Fetch the operation resource and store it as ``metadata``."""
        return await self._refresh()

    async def get(self) -> "Operation":
        await self.get_metadata()
        return self

    async def exists(self) -> bool:
        try:
            await self.get_metadata()
        except ApiError as e:
            if e.status_code == 404:
                return False
            raise
        return True

    async def delete(self) -> dict[str, Any]:
        """Delete the operation resource on the provider side.

        This does not affect polling or the state of this handle.
        """
        response = await self._request("DELETE")
        log.info("Deleted operation %s", self.url)
        return response

    async def wait_on_server(self) -> OperationResource:
        """Ask the API to block until the operation is done or its own deadline passes.

        The returned metadata may still be pending.
        """
        return await self._refresh("wait")

    async def poll_once(self) -> OperationResource | None:
        """Check the status once.

        Returns the metadata once the operation is ``DONE`` and ``None`` while it
        is still pending. Raises if the request failed or the operation did.
        """
        async with self._poll_lock:
            metadata = await self.get_metadata()

            if metadata.error:
                raise ApiError.from_error_body(metadata.error, response=metadata.model_dump(by_alias=True))

            if metadata.status == OperationStatus.RUNNING.value and not self.status:
                self.status = metadata.status
                self.emit(OperationEvent.RUNNING, metadata)

            if metadata.status != OperationStatus.DONE.value:
                return None

            self.status = metadata.status
            return metadata

    def on(self, event: OperationEvent | str, listener: Listener) -> None:
        """Register a listener. Must be called from a running event loop.

        The first ``complete`` listener starts polling.
        """
        event = OperationEvent(event)
        self._listeners[event].append(listener)
        if event is OperationEvent.COMPLETE:
            self._start_polling()

    def off(self, event: OperationEvent | str, listener: Listener) -> None:
        event = OperationEvent(event)
        listeners = self._listeners[event]
        if listener in listeners:
            listeners.remove(listener)
        if event is OperationEvent.COMPLETE and not listeners:
            self._stop_polling()

    def remove_all_listeners(self, event: OperationEvent | str | None = None) -> None:
        events = list(OperationEvent) if event is None else [OperationEvent(event)]
        for item in events:
            self._listeners[item].clear()
        if OperationEvent.COMPLETE in events:
            self._stop_polling()

    def listener_count(self, event: OperationEvent | str) -> int:
        return len(self._listeners[OperationEvent(event)])

    def emit(self, event: OperationEvent | str, payload: Any) -> bool:
        event = OperationEvent(event)
        listeners = list(self._listeners[event])
        if not listeners:
            if event is OperationEvent.ERROR:
                log.warning("Operation %s failed with no error listener: %s", self.name, payload)
            return False
        for listener in listeners:
            listener(payload)
        return True

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def _start_polling(self) -> None:
        if self.is_polling:
            return
        log.debug("Polling operation %s every %ss", self.name, self.poll_interval)
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll_until_complete(),
            name=f"poll-{self.name[:16]}",
        )
        self._poll_task.add_done_callback(self._on_poll_task_done)

    def _stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None or task.done():
            return
        log.debug("Stopped polling operation %s", self.name)
        if task is not asyncio.current_task():
            task.cancel()

    def _has_complete_listeners(self) -> bool:
        return bool(self._listeners[OperationEvent.COMPLETE])

    async def _poll_until_complete(self) -> None:
        while self._has_complete_listeners():
            # a raising `running` listener fails the tick like a request error
            try:
                metadata = await self.poll_once()
            except Exception as e:
                log.debug("Operation %s failed: %s", self.name, e)
                self.emit(OperationEvent.ERROR, e)
                return

            if metadata is not None:
                log.debug("Operation %s completed", self.name)
                self.emit(OperationEvent.COMPLETE, metadata)
                return

            log.debug("Operation %s still %s", self.name, self.status or "pending")
            await asyncio.sleep(self.poll_interval)

    def _on_poll_task_done(self, task: "asyncio.Task[None]") -> None:
        if self._poll_task is task:
            self._poll_task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("Listener of operation %s raised", self.name, exc_info=exc)

    async def wait(self, timeout: float | None = None) -> OperationResource:
        """Poll until the operation is done and return its final metadata.

        Raises the operation error if it failed and ``TimeoutError`` if
        ``timeout`` seconds pass first. Polling stops on return.
        """
        future: asyncio.Future[OperationResource] = asyncio.get_running_loop().create_future()

        def on_complete(metadata: OperationResource) -> None:
            if not future.done():
                future.set_result(metadata)

        def on_error(exc: BaseException) -> None:
            if not future.done():
                future.set_exception(exc)

        self.on(OperationEvent.ERROR, on_error)
        self.on(OperationEvent.COMPLETE, on_complete)
        try:
            return await asyncio.wait_for(future, timeout=timeout)
        finally:
            self.off(OperationEvent.COMPLETE, on_complete)
            self.off(OperationEvent.ERROR, on_error)
