from __future__ import annotations

import json
import os
import threading
from typing import Any, Dict, Optional, TextIO

from robot.transport import EventBus, StatusEvent


class TelemetryLogger:
    """Structured JSONL logger for motion telemetry.

    Thread-safe, append-only logging of dict records, one JSON object per line.
    Subscribed to an EventBus it records every status event; pose snapshots
    can be added with ``log_step``.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        self._lock = threading.Lock()
        self._fp: Optional[TextIO] = open(self.path, "a", encoding="utf-8")
        self._bus: Optional[EventBus] = None

    def log_step(self, record: Dict[str, Any]) -> None:
        """Append a single telemetry record to the JSONL file."""
        line = json.dumps(record, separators=(",", ":"))
        with self._lock:
            if self._fp is None:
                return
            self._fp.write(line + "\n")
            self._fp.flush()

    def log_event(self, event: StatusEvent) -> None:
        self.log_step(event.to_dict())

    def attach(self, bus: EventBus) -> None:
        """Record every event emitted on ``bus`` until closed."""
        bus.subscribe(self.log_event)
        self._bus = bus

    def close(self) -> None:
        if self._bus is not None:
            self._bus.unsubscribe(self.log_event)
            self._bus = None
        with self._lock:
            if self._fp is not None:
                self._fp.close()
                self._fp = None

    def __enter__(self) -> "TelemetryLogger":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
