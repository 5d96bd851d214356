"""Duplex transport capability and its WebSocket implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import websockets
from websockets.exceptions import ConnectionClosedError

from quickws.errors import NotConnectedError, TransportError
from quickws.types import TRANSPORT_EVENTS, CloseInfo, Listener, TransportEvent

logger = logging.getLogger("quickws.transport")

NORMAL_CLOSURE = 1000
NO_STATUS_RCVD = 1005
ABNORMAL_CLOSURE = 1006


class TransportHandle(Protocol):
    """One duplex connection attempt.

    Emits ``open``, ``error(exc)``, ``close(CloseInfo)`` and
    ``message(payload)`` to registered listeners. ``close`` is emitted exactly
    once per handle, whether or not it ever opened.
    """

    def add_listener(self, event: TransportEvent, callback: Listener) -> None: ...

    def send(self, payload: str) -> None: ...

    def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None: ...


class Transport(Protocol):
    def open(self, uri: str) -> TransportHandle: ...


class WebSocketHandle:
    """A single WebSocket connection driven by its own asyncio task."""

    def __init__(self, uri: str, connect_kwargs: dict[str, Any] | None = None) -> None:
        self.uri = uri
        self._connect_kwargs = connect_kwargs or {}
        self._listeners: dict[str, list[Listener]] = {e: [] for e in TRANSPORT_EVENTS}
        self._ws: Any = None
        self._task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[Any]] = set()
        self._close_request: tuple[int, str] | None = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None and self._close_request is None and not self._closed

    def add_listener(self, event: TransportEvent, callback: Listener) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown transport event: {event!r}")
        self._listeners[event].append(callback)

    def start(self) -> None:
        """Begin connecting. Requires a running event loop."""
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._run_done)

    def send(self, payload: str) -> None:
        if not self.is_open:
            raise NotConnectedError()
        self._spawn(self._ws.send(payload)).add_done_callback(self._send_done)

    def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        if self._close_request is not None or self._closed:
            return
        # 1005 is reserved for "no status received" and cannot go on the wire
        if code == NO_STATUS_RCVD:
            code = NORMAL_CLOSURE
        self._close_request = (code, reason)
        if self._ws is not None:
            self._spawn(self._ws.close(code, reason))
        elif self._task is not None:
            self._task.cancel()

    async def _run(self) -> None:
        try:
            self._ws = await websockets.connect(self.uri, **self._connect_kwargs)
        except Exception as exc:
            self._emit("error", TransportError(f"Failed to connect to {self.uri}", cause=exc))
            self._finish(CloseInfo(code=ABNORMAL_CLOSURE, reason=str(exc)))
            return

        if self._close_request is not None:
            await self._ws.close(*self._close_request)
            self._finish(self._close_info(clean=True))
            return

        self._emit("open")
        clean = True
        try:
            async for message in self._ws:
                self._emit("message", message)
        except ConnectionClosedError as exc:
            clean = False
            self._emit("error", TransportError("Connection closed abnormally", cause=exc))
        self._finish(self._close_info(clean=clean))

    def _run_done(self, task: asyncio.Task[None]) -> None:
        # Covers cancellation before the socket opened, possibly before _run started
        if task.cancelled():
            code, reason = self._close_request or (ABNORMAL_CLOSURE, "cancelled")
            self._finish(CloseInfo(code=code, reason=reason))
            return
        exc = task.exception()
        if exc is not None:
            logger.error("WebSocket task for %s failed: %s", self.uri, exc)
            self._emit("error", TransportError("Transport task failed", cause=exc))
            self._finish(CloseInfo(code=ABNORMAL_CLOSURE, reason=str(exc)))

    def _close_info(self, *, clean: bool) -> CloseInfo:
        return CloseInfo(
            code=self._ws.close_code,
            reason=self._ws.close_reason or "",
            was_clean=clean,
        )

    def _finish(self, info: CloseInfo) -> None:
        if self._closed:
            return
        self._closed = True
        self._emit("close", info)

    def _emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(*args)
            except Exception:
                logger.exception("Unhandled error in %s listener for %s", event, self.uri)

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def _send_done(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._emit("error", TransportError("Send failed", cause=exc))


class WebSocketTransport:
    """Transport that opens connections with ``websockets.connect``.

    Keyword arguments are passed through to ``websockets.connect``
    (``open_timeout``, ``additional_headers``, ``ssl`` ...).
    """

    def __init__(self, **connect_kwargs: Any) -> None:
        self._connect_kwargs = connect_kwargs

    def open(self, uri: str) -> WebSocketHandle:
        logger.debug("Opening WebSocket to %s", uri)
        handle = WebSocketHandle(uri, self._connect_kwargs)
        handle.start()
        return handle
