"""quickws type definitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Callable, Literal

if TYPE_CHECKING:
    from quickws.transport import TransportHandle


class ConnectionState(IntEnum):
    """Lifecycle state of a ReconnectingConnection."""

    IDLE = 0
    CONNECTING = 1
    OPEN = 2
    RETRY_SCHEDULED = 3
    BROKEN = 4


TransportEvent = Literal["open", "error", "close", "message"]

TRANSPORT_EVENTS: tuple[TransportEvent, ...] = ("open", "error", "close", "message")


@dataclass(frozen=True)
class CloseInfo:
    """Details of a transport closure.

    ``code`` is None when the socket never opened or the peer sent no status.
    """

    code: int | None = None
    reason: str = ""
    was_clean: bool = False


Listener = Callable[..., Any]
LoggerCallback = Callable[[str], None]
OnConnectionEstablished = Callable[["TransportHandle"], None]
OnConnectionBroken = Callable[[], None]
OnMessageReceived = Callable[["TransportHandle", str], None]
RandomInt = Callable[[int, int], int]
