"""
Transport contract and status events.

The core never owns a transport's lifecycle; it is handed something that
already knows how to reach the motor driver (serial port, TCP socket,
simulator) and only calls ``send`` and ``receive`` on it.

Status notifications are typed events fanned out synchronously, in order, to
registered observers. For every transport call the order is: a BEFORE_*
event, the transport call itself, then either the SENT/RECEIVED event or an
ERROR event.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol
import logging
import threading
import time


logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Byte-stream link to the motor driver."""

    def send(self, data: bytes, timeout_ms: int) -> bool:
        """Write all bytes; return False on failure or timeout."""
        ...

    def receive(self, count: int, timeout_ms: int, blocking: bool = True) -> Optional[bytes]:
        """Read up to ``count`` bytes; return None on failure or timeout."""
        ...


class EventKind(Enum):
    STATUS = "status"
    BEFORE_SEND = "before_send"
    SENT = "sent"
    BEFORE_RECEIVE = "before_receive"
    RECEIVED = "received"
    ERROR = "error"


@dataclass(frozen=True)
class StatusEvent:
    """One notification emitted by the driver or executor."""

    kind: EventKind
    message: str = ""
    data: bytes = b""
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the event for logging/telemetry."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "data": self.data.hex(),
            "timestamp": self.timestamp,
        }


StatusCallback = Callable[[StatusEvent], Any]


class EventBus:
    """Synchronous, ordered fan-out of status events to observers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callbacks: List[StatusCallback] = []

    def subscribe(self, callback: StatusCallback) -> None:
        with self._lock:
            self._callbacks.append(callback)

    def unsubscribe(self, callback: StatusCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def emit(self, event: StatusEvent) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(event)
            except Exception:  # noqa: BLE001
                logger.exception("Status observer %r failed", callback)

    def status(self, message: str) -> None:
        """Emit a plain status-text event."""
        logger.info(message)
        self.emit(StatusEvent(EventKind.STATUS, message))
