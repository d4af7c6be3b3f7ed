from __future__ import annotations

import pytest

from robot.commands import Command, CommandType, argument_layout, parse_command, parse_commands
from robot.errors import InvalidParameterError


def test_factories_fill_fields() -> None:
    cmd = Command.set_speed_for_time(1500, 20, -10)
    assert cmd.type is CommandType.SET_SPEED_FOR_TIME
    assert (cmd.amount, cmd.speed1, cmd.speed2) == (1500, 20, -10)

    pose = Command.set_pose(100, 200, 45.0)
    assert (pose.x, pose.y, pose.amount) == (100, 200, 45.0)

    assert Command.stop().type is CommandType.STOP


def test_speed_range_is_enforced() -> None:
    with pytest.raises(InvalidParameterError):
        Command.move_forward_for_time(100, 128)
    with pytest.raises(InvalidParameterError):
        Command.set_speed_for_time(100, 0, -128)
    # InvalidParameterError is also a ValueError
    with pytest.raises(ValueError):
        Command.rotate_left_for_degrees(90, 200)


def test_parse_command_is_case_insensitive() -> None:
    cmd = parse_command("moveforwardfordistance 500, 40")
    assert cmd == Command.move_forward_for_distance(500.0, 40)

    cmd = parse_command("SetSpeedForDegrees 90 20 -20")
    assert cmd == Command.set_speed_for_degrees(90.0, 20, -20)

    assert parse_command("  Stop  ") == Command.stop()
    assert parse_command("SetPose 1000, 2000, 90") == Command.set_pose(1000, 2000, 90.0)


def test_parse_command_errors() -> None:
    with pytest.raises(ValueError, match="Unknown command"):
        parse_command("Jump 10")
    with pytest.raises(ValueError, match="exactly 2 arguments"):
        parse_command("RotateRightForTime 100")
    with pytest.raises(ValueError):
        parse_command("MoveForwardForTime 100, fast")
    with pytest.raises(InvalidParameterError):
        parse_command("MoveForwardForTime 100, 300")


def test_parse_commands_skips_comments_and_bad_lines() -> None:
    text = """
    # warm up
    MoveForwardForTime 1000, 30
    Bogus 1, 2

    RotateLeftForDegrees 90, 20  # quarter turn
    Stop
    """
    commands = parse_commands(text)
    assert [c.type for c in commands] == [
        CommandType.MOVE_FORWARD_FOR_TIME,
        CommandType.ROTATE_LEFT_FOR_DEGREES,
        CommandType.STOP,
    ]

    with pytest.raises(ValueError, match="line 4"):
        parse_commands(text, skip_errors=False)


def test_str_parses_back() -> None:
    for cmd in (
        Command.set_speed_for_distance(250.5, 30, 40),
        Command.rotate_right_for_degrees(-45, 15),
        Command.do_nothing(300),
        Command.set_simulation_speed(2.5),
        Command.set_pose(-10, 20, 180),
        Command.stop(),
    ):
        assert parse_command(str(cmd)) == cmd


def test_every_type_has_a_text_layout() -> None:
    for cmd_type in CommandType:
        assert isinstance(argument_layout(cmd_type), tuple)
    assert argument_layout(CommandType.SET_POSE) == ("x", "y", "amount")
