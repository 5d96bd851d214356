"""Self-healing WebSocket connection with bounded, jittered backoff."""

from __future__ import annotations

import logging
from typing import Any

from quickws.errors import NotConnectedError
from quickws.retry import BackoffConfig, RetryPolicy, RetryState
from quickws.scheduler import AsyncioScheduler, Scheduler, TimerHandle
from quickws.transport import Transport, TransportHandle, WebSocketTransport
from quickws.types import (
    CloseInfo,
    ConnectionState,
    LoggerCallback,
    OnConnectionBroken,
    OnConnectionEstablished,
    OnMessageReceived,
    RandomInt,
)

logger = logging.getLogger("quickws.connection")


class ReconnectingConnection:
    """Keeps one duplex connection alive, retrying up to ``max_retries`` times.

    Once the retries are exhausted the broken callback fires and the
    connection stays inert until :meth:`connect` is called again.

    Usage::

        conn = ReconnectingConnection(max_retries=5)
        conn.on_connection_established(lambda ws: ws.send("hello"))
        conn.on_message_received(lambda ws, msg: print(msg))
        conn.on_connection_broken(lambda: print("gave up"))
        conn.connect("wss://example.com/feed")

    All methods are non-blocking and must be called from the thread running
    the event loop.
    """

    def __init__(
        self,
        max_retries: int = 5,
        *,
        backoff: BackoffConfig | None = None,
        transport: Transport | None = None,
        scheduler: Scheduler | None = None,
        random_int: RandomInt | None = None,
        debug_sink: LoggerCallback | None = None,
        error_sink: LoggerCallback | None = None,
    ) -> None:
        if max_retries <= 0:
            raise ValueError("max_retries must be positive")
        self._transport = transport or WebSocketTransport()
        self._scheduler = scheduler or AsyncioScheduler()
        self._retry = RetryPolicy(
            RetryState(max_retries=max_retries, defaults=backoff or BackoffConfig()),
            random_int,
        )

        self._state = ConnectionState.IDLE
        self._socket: TransportHandle | None = None
        self._timer: TimerHandle | None = None
        self._uri: str | None = None
        self._epoch = 0
        self._attempts = 0

        self._on_connection_established: OnConnectionEstablished | None = None
        self._on_connection_broken: OnConnectionBroken | None = None
        self._on_message_received: OnMessageReceived | None = None

        self.debug_sink = debug_sink
        self.error_sink = error_sink

    @staticmethod
    def builder() -> ReconnectingConnectionBuilder:
        """Create a new connection builder."""
        return ReconnectingConnectionBuilder()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def uri(self) -> str | None:
        return self._uri

    @property
    def retry_count(self) -> int:
        return self._retry.state.current_retry_count

    @property
    def max_retries(self) -> int:
        return self._retry.state.max_retries

    @property
    def attempts(self) -> int:
        """Open attempts made since the last call to :meth:`connect`."""
        return self._attempts

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    def connect(self, uri: str) -> None:
        """(Re)start the lifecycle against ``uri`` with a fresh backoff schedule."""
        self._reset_retries()
        self._discard_socket()
        self._uri = uri
        self._attempts = 0
        self._reopen()

    def close(self, code: int = 1005, reason: str = "clean shutdown") -> None:
        """Stop the lifecycle and close the live socket, if any.

        See https://developer.mozilla.org/en-US/docs/Web/API/CloseEvent#status_codes
        for the list of codes. Calling this on an idle connection is a no-op.
        """
        self._epoch += 1
        self._reset_retries()
        if self._socket is not None:
            self._log_debug(f"closing socket: code={code} reason={reason!r}")
            self._socket.close(code, reason)
            self._socket = None
        self._state = ConnectionState.IDLE

    def send(self, payload: str) -> None:
        """Send ``payload`` on the open socket. Raises NotConnectedError otherwise."""
        if self._state is not ConnectionState.OPEN or self._socket is None:
            raise NotConnectedError()
        self._socket.send(payload)

    def on_connection_established(self, callback: OnConnectionEstablished) -> None:
        """Register the callback fired each time a socket opens."""
        self._on_connection_established = callback

    def on_connection_broken(self, callback: OnConnectionBroken) -> None:
        """Register the callback fired once retries have been exhausted.

        When this is called, the connection will not be retried again until
        :meth:`connect` is called.
        """
        self._on_connection_broken = callback

    def on_message_received(self, callback: OnMessageReceived) -> None:
        """Register the callback for messages received on the socket."""
        self._on_message_received = callback

    def _reset_retries(self) -> None:
        self._retry.reset()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _discard_socket(self) -> None:
        # Bumping the epoch first keeps the old handle's close event inert
        self._epoch += 1
        if self._socket is not None:
            self._socket.close(1000, "reconnecting")
            self._socket = None

    def _reopen(self) -> None:
        uri = self._uri
        if uri is None:
            return
        self._epoch += 1
        epoch = self._epoch
        self._attempts += 1
        self._state = ConnectionState.CONNECTING
        self._log_debug(
            f"attempt {self._attempts} (retry {self.retry_count}/{self.max_retries}) "
            f"opening socket to: {uri}"
        )
        try:
            socket = self._transport.open(uri)
        except Exception as exc:
            self._socket = None
            self._log_error(f"failed to open socket to {uri}: {exc!r}")
            self._retry_connection_logic()
            return
        self._socket = socket

        socket.add_listener("open", lambda: self._handle_open(epoch, socket))
        socket.add_listener("error", lambda err: self._handle_error(epoch, err))
        socket.add_listener("close", lambda info: self._handle_close(epoch, info))
        socket.add_listener("message", lambda msg: self._handle_message(epoch, socket, msg))

    def _handle_open(self, epoch: int, socket: TransportHandle) -> None:
        if epoch != self._epoch:
            return
        self._reset_retries()
        self._state = ConnectionState.OPEN
        self._log_debug(f"connection established to: {self._uri}")
        if self._on_connection_established is not None:
            self._on_connection_established(socket)

    def _handle_error(self, epoch: int, err: Any) -> None:
        if epoch != self._epoch:
            return
        self._log_error(f"error: {err!r}", level=logging.WARNING)

    def _handle_close(self, epoch: int, info: CloseInfo) -> None:
        if epoch != self._epoch:
            return
        # Retire this handle so a repeated close event is ignored
        self._epoch += 1
        self._socket = None
        self._log_debug(f"connection closed: {info}")
        self._retry_connection_logic()

    def _handle_message(self, epoch: int, socket: TransportHandle, msg: str) -> None:
        if epoch != self._epoch:
            return
        if self._on_message_received is not None:
            self._on_message_received(socket, msg)

    def _retry_connection_logic(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._retry.record_failure():
            self._give_up(
                f"connection retries exceeded max retry attempt of {self.max_retries}. aborting..."
            )
            return

        delay = self._retry.next_delay()
        self._log_debug(f"next connection retry in: {delay}")
        try:
            self._timer = self._scheduler.call_later(delay, self._fire_retry, self._epoch)
        except Exception as exc:
            self._give_up(f"unable to schedule connection retry: {exc!r}")
            return
        self._state = ConnectionState.RETRY_SCHEDULED

    def _give_up(self, msg: str) -> None:
        self._state = ConnectionState.BROKEN
        self._log_error(msg)
        if self._on_connection_broken is not None:
            self._on_connection_broken()

    def _fire_retry(self, epoch: int) -> None:
        if epoch != self._epoch:
            return
        self._timer = None
        self._reopen()

    def _log_debug(self, msg: str) -> None:
        logger.debug(msg)
        if self.debug_sink is not None:
            self.debug_sink(msg)

    def _log_error(self, msg: str, level: int = logging.ERROR) -> None:
        logger.log(level, msg)
        if self.error_sink is not None:
            self.error_sink(msg)


class ReconnectingConnectionBuilder:
    """Fluent builder for ReconnectingConnection."""

    def __init__(self) -> None:
        self._max_retries: int = 5
        self._backoff: BackoffConfig | None = None
        self._transport: Transport | None = None
        self._scheduler: Scheduler | None = None
        self._random_int: RandomInt | None = None
        self._debug_sink: LoggerCallback | None = None
        self._error_sink: LoggerCallback | None = None
        self._on_established: OnConnectionEstablished | None = None
        self._on_broken: OnConnectionBroken | None = None
        self._on_message: OnMessageReceived | None = None

    def max_retries(self, n: int) -> ReconnectingConnectionBuilder:
        """Set the number of consecutive failures tolerated before giving up."""
        self._max_retries = n
        return self

    def backoff(self, config: BackoffConfig) -> ReconnectingConnectionBuilder:
        """Set the backoff parameters (default: BackoffConfig())."""
        self._backoff = config
        return self

    def transport(self, transport: Transport) -> ReconnectingConnectionBuilder:
        """Set the transport used to open sockets (default: WebSocketTransport)."""
        self._transport = transport
        return self

    def scheduler(self, scheduler: Scheduler) -> ReconnectingConnectionBuilder:
        """Set the retry timer scheduler (default: AsyncioScheduler)."""
        self._scheduler = scheduler
        return self

    def random_int(self, fn: RandomInt) -> ReconnectingConnectionBuilder:
        """Set the jitter source, called as ``fn(low, high)``."""
        self._random_int = fn
        return self

    def debug_sink(self, fn: LoggerCallback) -> ReconnectingConnectionBuilder:
        """Set the consumer for debug trace lines."""
        self._debug_sink = fn
        return self

    def error_sink(self, fn: LoggerCallback) -> ReconnectingConnectionBuilder:
        """Set the consumer for error lines."""
        self._error_sink = fn
        return self

    def on_connection_established(
        self, fn: OnConnectionEstablished
    ) -> ReconnectingConnectionBuilder:
        """Set the callback fired each time a socket opens."""
        self._on_established = fn
        return self

    def on_connection_broken(self, fn: OnConnectionBroken) -> ReconnectingConnectionBuilder:
        """Set the callback fired once retries are exhausted."""
        self._on_broken = fn
        return self

    def on_message_received(self, fn: OnMessageReceived) -> ReconnectingConnectionBuilder:
        """Set the callback for received messages."""
        self._on_message = fn
        return self

    def build(self) -> ReconnectingConnection:
        """Build the connection. Raises ValueError if max_retries is not positive."""
        conn = ReconnectingConnection(
            self._max_retries,
            backoff=self._backoff,
            transport=self._transport,
            scheduler=self._scheduler,
            random_int=self._random_int,
            debug_sink=self._debug_sink,
            error_sink=self._error_sink,
        )
        if self._on_established is not None:
            conn.on_connection_established(self._on_established)
        if self._on_broken is not None:
            conn.on_connection_broken(self._on_broken)
        if self._on_message is not None:
            conn.on_message_received(self._on_message)
        return conn
