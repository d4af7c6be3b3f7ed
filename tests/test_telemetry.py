from __future__ import annotations

import json

from robot.transport import EventBus, EventKind, StatusEvent
from telemetry.logger import TelemetryLogger


def test_events_are_written_as_jsonl(tmp_path) -> None:
    path = tmp_path / "logs" / "telemetry.jsonl"
    bus = EventBus()
    with TelemetryLogger(str(path)) as telemetry:
        telemetry.attach(bus)
        bus.status("Stopping robot.")
        bus.emit(StatusEvent(EventKind.SENT, data=bytes([0x00, 0x35])))
        telemetry.log_step({"kind": "final_state", "x": 1.5})

    # detached on close
    bus.status("not recorded")

    records = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [r["kind"] for r in records] == ["status", "sent", "final_state"]
    assert records[0]["message"] == "Stopping robot."
    assert records[1]["data"] == "0035"
    assert records[2]["x"] == 1.5
