"""Shared fakes for driving ReconnectingConnection deterministically."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from quickws.types import TRANSPORT_EVENTS, CloseInfo


class FakeHandle:
    def __init__(self, uri: str) -> None:
        self.uri = uri
        self.listeners: dict[str, list[Callable[..., Any]]] = {e: [] for e in TRANSPORT_EVENTS}
        self.sent: list[str] = []
        self.closed_with: list[tuple[int, str]] = []

    def add_listener(self, event: str, callback: Callable[..., Any]) -> None:
        self.listeners[event].append(callback)

    def send(self, payload: str) -> None:
        self.sent.append(payload)

    def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with.append((code, reason))

    def emit(self, event: str, *args: Any) -> None:
        for listener in list(self.listeners[event]):
            listener(*args)

    def emit_open(self) -> None:
        self.emit("open")

    def emit_close(self, code: int | None = 1006, reason: str = "") -> None:
        self.emit("close", CloseInfo(code=code, reason=reason))

    def emit_message(self, payload: str) -> None:
        self.emit("message", payload)


class FakeTransport:
    def __init__(self) -> None:
        self.handles: list[FakeHandle] = []

    def open(self, uri: str) -> FakeHandle:
        handle = FakeHandle(uri)
        self.handles.append(handle)
        return handle

    @property
    def last(self) -> FakeHandle:
        return self.handles[-1]


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.fired = True
        self.callback(*self.args)


class FakeScheduler:
    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeTimer:
        timer = FakeTimer(delay, callback, args)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_next(self) -> None:
        self.pending[0].fire()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()
