"""quickws: self-healing WebSocket connections with jittered backoff."""

from quickws.connection import ReconnectingConnection, ReconnectingConnectionBuilder
from quickws.errors import NotConnectedError, QuickWsError, TransportError
from quickws.retry import BackoffConfig, RetryPolicy, RetryState, random_int
from quickws.scheduler import AsyncioScheduler, Scheduler, TimerHandle
from quickws.transport import (
    Transport,
    TransportHandle,
    WebSocketHandle,
    WebSocketTransport,
)
from quickws.types import CloseInfo, ConnectionState

__all__ = [
    # Core classes
    "ReconnectingConnection",
    "ReconnectingConnectionBuilder",
    # Errors
    "QuickWsError",
    "NotConnectedError",
    "TransportError",
    # Backoff
    "BackoffConfig",
    "RetryPolicy",
    "RetryState",
    "random_int",
    # Capabilities
    "Transport",
    "TransportHandle",
    "WebSocketTransport",
    "WebSocketHandle",
    "Scheduler",
    "TimerHandle",
    "AsyncioScheduler",
    # Types
    "CloseInfo",
    "ConnectionState",
]
