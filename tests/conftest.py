from __future__ import annotations

from typing import List, Optional

import pytest

from robot.drivers.motor_driver import MotorDriver, RobotType
from robot.transport import EventBus, StatusEvent


class FakeTransport:
    """Records every send and answers receives from a scripted queue."""

    def __init__(self, responses: Optional[List[Optional[bytes]]] = None, send_ok: bool = True) -> None:
        self.sent: List[bytes] = []
        self.responses: List[Optional[bytes]] = list(responses or [])
        self.send_ok = send_ok
        self.receive_counts: List[int] = []

    def send(self, data: bytes, timeout_ms: int) -> bool:
        self.sent.append(bytes(data))
        return self.send_ok

    def receive(self, count: int, timeout_ms: int, blocking: bool = True) -> Optional[bytes]:
        self.receive_counts.append(count)
        if not self.responses:
            return None
        return self.responses.pop(0)

    @property
    def stream(self) -> bytes:
        return b"".join(self.sent)


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def tick(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def events() -> List[StatusEvent]:
    return []


@pytest.fixture
def bus(events: List[StatusEvent]) -> EventBus:
    b = EventBus()
    b.subscribe(events.append)
    return b


@pytest.fixture
def driver(transport: FakeTransport, bus: EventBus) -> MotorDriver:
    return MotorDriver(transport, robot_type=RobotType.REAL, events=bus)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
