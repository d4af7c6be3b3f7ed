from __future__ import annotations

import math
import threading
import time

import pytest

from robot.commands import Command, CommandType
from robot.drivers.motor_driver import MotorDriver
from robot.errors import InvalidParameterError, TransportError
from robot.executor import (
    ExecutorConfig,
    ExecutorState,
    MotionExecutor,
    plan_motion,
    time_for_degrees,
)
from robot.transport import EventKind


FAST = ExecutorConfig(simulation_speed=1000.0)

SAMPLES = {
    CommandType.SET_SPEED_FOR_TIME: Command.set_speed_for_time(10, 20, 30),
    CommandType.SET_SPEED_FOR_DISTANCE: Command.set_speed_for_distance(10, 20, 30),
    CommandType.SET_SPEED_FOR_DEGREES: Command.set_speed_for_degrees(10, 20, 30),
    CommandType.MOVE_FORWARD_FOR_TIME: Command.move_forward_for_time(10, 20),
    CommandType.MOVE_FORWARD_FOR_DISTANCE: Command.move_forward_for_distance(10, 20),
    CommandType.MOVE_BACKWARD_FOR_TIME: Command.move_backward_for_time(10, 20),
    CommandType.MOVE_BACKWARD_FOR_DISTANCE: Command.move_backward_for_distance(10, 20),
    CommandType.ROTATE_LEFT_FOR_TIME: Command.rotate_left_for_time(10, 20),
    CommandType.ROTATE_LEFT_FOR_DEGREES: Command.rotate_left_for_degrees(10, 20),
    CommandType.ROTATE_RIGHT_FOR_TIME: Command.rotate_right_for_time(10, 20),
    CommandType.ROTATE_RIGHT_FOR_DEGREES: Command.rotate_right_for_degrees(10, 20),
    CommandType.STOP: Command.stop(),
    CommandType.DO_NOTHING: Command.do_nothing(10),
    CommandType.SET_POSE: Command.set_pose(0, 0, 0),
    CommandType.SET_SIMULATION_SPEED: Command.set_simulation_speed(1.0),
}


def test_every_command_type_is_translated() -> None:
    assert set(SAMPLES) == set(CommandType)
    for cmd in SAMPLES.values():
        plan_motion(cmd)


def test_straight_plans() -> None:
    plan = plan_motion(Command.move_forward_for_distance(625, 40))
    assert plan.speeds == (40, 40)
    assert math.isclose(plan.duration_ms, 2500.0)

    plan = plan_motion(Command.move_backward_for_time(300, 30))
    assert plan.speeds == (-30, -30)
    assert plan.duration_ms == 300
    assert plan.description.startswith("Moving straight backward")


def test_rotation_plans() -> None:
    plan = plan_motion(Command.rotate_left_for_degrees(90, 20))
    assert plan.speeds == (-20, 20)
    # quarter turn: wheels travel 2R * pi / 2 relative to each other at 0.25 mm/ms
    assert math.isclose(plan.duration_ms, 500 * math.pi / 2 / 0.25)
    assert "counterclockwise" in plan.description

    plan = plan_motion(Command.rotate_right_for_time(100, 20))
    assert plan.speeds == (20, -20)
    assert "clockwise" in plan.description


def test_degrees_sign_only_sets_direction() -> None:
    assert math.isclose(time_for_degrees(-90, 20, -20), time_for_degrees(90, 20, -20))


def test_set_speed_plans() -> None:
    plan = plan_motion(Command.set_speed_for_distance(500, 20, 60))
    assert plan.speeds == (20, 60)
    assert math.isclose(plan.duration_ms, 2000.0)

    with pytest.raises(InvalidParameterError):
        plan_motion(Command.set_speed_for_distance(500, 20, -20))
    with pytest.raises(InvalidParameterError):
        plan_motion(Command.set_speed_for_degrees(90, 15, 15))


def test_negative_amounts_are_rejected() -> None:
    with pytest.raises(InvalidParameterError):
        plan_motion(Command.move_forward_for_time(-1, 20))
    with pytest.raises(InvalidParameterError):
        plan_motion(Command.move_backward_for_distance(-1, 20))
    with pytest.raises(InvalidParameterError):
        plan_motion(Command.do_nothing(-5))
    with pytest.raises(InvalidParameterError):
        plan_motion(Command.move_forward_for_distance(100, 0))


def test_stop_plan() -> None:
    plan = plan_motion(Command.stop())
    assert plan.reset_mode
    assert plan.duration_ms == 0.0


def test_simulation_speed_must_be_positive() -> None:
    with pytest.raises(InvalidParameterError):
        ExecutorConfig(simulation_speed=0.0)


def test_stop_before_drain_sends_nothing(driver, transport) -> None:
    executor = MotionExecutor(driver, ExecutorConfig(simulation_speed=1000.0, prepare_on_start=False))
    executor.enqueue(Command.move_forward_for_time(100, 20))
    executor.enqueue(Command.rotate_left_for_time(100, 20))
    executor.enqueue(Command.stop())
    executor.stop()

    assert len(executor.queue) == 0
    assert transport.sent == []

    executor.run()
    assert transport.sent == []
    assert executor.state is ExecutorState.IDLE


def test_drain_sends_mode0_speeds_in_order(driver, transport, events) -> None:
    executor = MotionExecutor(driver, FAST)
    executor.enqueue_many(
        [
            Command.move_forward_for_time(10, 20),
            Command.rotate_right_for_time(10, 20),
            Command.stop(),
        ]
    )
    executor.run()

    assert transport.sent == [
        bytes([0x00, 0x38]),
        bytes([0x00, 0x34, 0x00]),
        bytes([0x00, 0x31, 148, 0x00, 0x32, 148]),
        bytes([0x00, 0x31, 148, 0x00, 0x32, 108]),
        bytes([0x00, 0x34, 0x00]),
        bytes([0x00, 0x31, 128, 0x00, 0x32, 128]),
    ]
    assert len(executor.completed) == 3
    statuses = [e.message for e in events if e.kind is EventKind.STATUS]
    assert statuses[0] == "Starting execution of command queue..."
    assert statuses[-2] == "Stopping robot."
    assert statuses[-1] == "Stopped execution of command queue."


def test_invalid_command_is_skipped(driver, transport, events) -> None:
    executor = MotionExecutor(driver, ExecutorConfig(simulation_speed=1000.0, prepare_on_start=False))
    executor.enqueue(Command.set_speed_for_degrees(90, 10, 10))
    executor.enqueue(Command.move_forward_for_time(10, 10))
    executor.run()

    assert transport.sent == [bytes([0x00, 0x31, 138, 0x00, 0x32, 138])]
    assert isinstance(executor.last_error, InvalidParameterError)
    assert any(e.kind is EventKind.ERROR for e in events)


def test_transport_failure_halts_drain(transport) -> None:
    transport.send_ok = False
    driver = MotorDriver(transport)
    executor = MotionExecutor(driver, ExecutorConfig(simulation_speed=1000.0, prepare_on_start=False))
    executor.enqueue_many([Command.move_forward_for_time(10, 10), Command.stop()])
    executor.run()

    assert isinstance(executor.last_error, TransportError)
    assert len(transport.sent) == 1
    assert [c.type for c in executor.queue.snapshot()] == [CommandType.STOP]


def test_simulation_speed_command_changes_pacing(driver) -> None:
    executor = MotionExecutor(driver, ExecutorConfig(simulation_speed=1.0, prepare_on_start=False))
    executor.enqueue(Command.set_simulation_speed(500.0))
    executor.enqueue(Command.do_nothing(1000))
    started = time.monotonic()
    executor.run()
    assert executor.simulation_speed == 500.0
    assert time.monotonic() - started < 0.5


def test_background_thread_drains_queue(driver, transport) -> None:
    executor = MotionExecutor(driver, FAST)
    executor.enqueue_many([Command.do_nothing(20), Command.move_forward_for_time(20, 5)])
    executor.start()
    executor.join(timeout=5.0)

    assert not executor.is_running
    assert transport.sent[-1] == bytes([0x00, 0x31, 133, 0x00, 0x32, 133])


def test_stop_interrupts_wait_when_configured(driver) -> None:
    executor = MotionExecutor(
        driver, ExecutorConfig(simulation_speed=1.0, prepare_on_start=False, interrupt_on_stop=True)
    )
    executor.enqueue_many([Command.do_nothing(10000), Command.move_forward_for_time(10000, 10)])
    executor.start()

    deadline = time.monotonic() + 2.0
    while executor.state is not ExecutorState.WAIT and time.monotonic() < deadline:
        time.sleep(0.01)
    assert executor.state is ExecutorState.WAIT

    executor.stop()
    executor.join(timeout=2.0)
    assert not executor.is_running
    assert [c.type for c in executor.completed] == [CommandType.DO_NOTHING]


def test_command_queued_after_interrupting_stop_is_fully_held(driver, events) -> None:
    executor = MotionExecutor(
        driver, ExecutorConfig(simulation_speed=1.0, prepare_on_start=False, interrupt_on_stop=True)
    )
    first = Command.do_nothing(10000)

    def stop_and_requeue(event) -> None:
        if event.message == plan_motion(first).description:
            executor.stop()
            executor.enqueue(Command.do_nothing(500))

    executor.events.subscribe(stop_and_requeue)
    executor.enqueue(first)

    started = time.monotonic()
    executor.run()
    elapsed = time.monotonic() - started

    assert elapsed >= 0.45
    assert elapsed < 5.0
    assert [c.amount for c in executor.completed] == [10000, 500]


def test_stop_without_interrupt_lets_current_hold_finish(driver, transport) -> None:
    executor = MotionExecutor(driver, ExecutorConfig(simulation_speed=1.0, prepare_on_start=False))
    executor.enqueue_many(
        [
            Command.move_forward_for_time(400, 10),
            Command.move_forward_for_time(400, 20),
            Command.stop(),
        ]
    )
    started = time.monotonic()
    executor.start()

    deadline = time.monotonic() + 2.0
    while executor.state is not ExecutorState.WAIT and time.monotonic() < deadline:
        time.sleep(0.005)
    assert executor.state is ExecutorState.WAIT

    executor.stop()
    assert len(executor.queue) == 0
    executor.join(timeout=5.0)
    elapsed = time.monotonic() - started

    assert not executor.is_running
    assert elapsed >= 0.35
    assert [c.speed1 for c in executor.completed] == [10]
    assert transport.sent == [bytes([0x00, 0x31, 138, 0x00, 0x32, 138])]


def test_concurrent_enqueue_loses_no_commands(driver) -> None:
    executor = MotionExecutor(driver, ExecutorConfig(simulation_speed=1000.0, prepare_on_start=False))
    producers, per_producer = 4, 50

    def produce(worker: int) -> None:
        for i in range(per_producer):
            executor.enqueue(Command.do_nothing(worker * 1000 + i + 1))

    executor.enqueue(Command.do_nothing(1))
    executor.start()
    threads = [threading.Thread(target=produce, args=(w,)) for w in range(1, producers + 1)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # the drain may have emptied the queue before all producers finished
    executor.join(timeout=5.0)
    executor.start()
    executor.join(timeout=5.0)

    amounts = sorted(c.amount for c in executor.completed)
    expected = sorted(
        [1] + [w * 1000 + i + 1 for w in range(1, producers + 1) for i in range(per_producer)]
    )
    assert amounts == expected
    assert len(executor.queue) == 0
