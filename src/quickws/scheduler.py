"""Delayed-callback scheduling on the asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Protocol

logger = logging.getLogger("quickws.scheduler")


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callback once after ``delay`` seconds."""

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> TimerHandle: ...


class AsyncioScheduler:
    """Scheduler backed by ``loop.call_later``.

    The loop is resolved lazily so a connection can be constructed before
    the event loop starts running.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        logger.debug("Scheduling %s in %.1fs", getattr(callback, "__name__", callback), delay)
        return loop.call_later(delay, callback, *args)
