from __future__ import annotations

from pathlib import Path

import pytest

from robot.config import config_from_dict, load_config
from robot.errors import InvalidParameterError


def test_repository_config_loads() -> None:
    cfg = load_config(str(Path(__file__).resolve().parents[1] / "configs" / "robot.yaml"))
    assert cfg.constants.wheel_diameter == 125.0
    assert cfg.constants.radius == 250.0
    assert cfg.executor.simulation_speed == 1.0
    assert cfg.executor.constants is cfg.constants
    assert cfg.simulator.start_angle == 90.0
    assert cfg.simulator.map_file == "maps/lab.json"
    assert cfg.logging.level == "INFO"
    assert cfg.robot_type == "simulation"


def test_defaults_for_empty_config() -> None:
    cfg = config_from_dict({})
    assert cfg.constants.encoder_counts_per_turn == 980
    assert cfg.executor.prepare_on_start
    assert not cfg.executor.interrupt_on_stop
    assert cfg.simulator.map_file is None
    assert cfg.logging.telemetry_path is None


def test_sections_are_cast() -> None:
    cfg = config_from_dict(
        {
            "robot": {"radius": "200", "legacy_status_bitmask": True},
            "executor": {"simulation_speed": "2.5", "interrupt_on_stop": True},
            "logging": {"level": "debug"},
        }
    )
    assert cfg.constants.radius == 200.0
    assert cfg.constants.wheel_separation == 400.0
    assert cfg.executor.simulation_speed == 2.5
    # simulator follows the executor pacing unless set
    assert cfg.simulator.simulation_speed == 2.5
    assert cfg.legacy_status_bitmask
    assert cfg.logging.level == "DEBUG"


def test_invalid_simulation_speed() -> None:
    with pytest.raises(InvalidParameterError):
        config_from_dict({"executor": {"simulation_speed": 0}})


def test_quoted_booleans_are_parsed() -> None:
    cfg = config_from_dict(
        {
            "robot": {"zero_fill_short_reads": "false", "legacy_status_bitmask": "yes"},
            "executor": {"prepare_on_start": "False", "interrupt_on_stop": "on"},
        }
    )
    assert not cfg.zero_fill_short_reads
    assert cfg.legacy_status_bitmask
    assert not cfg.executor.prepare_on_start
    assert cfg.executor.interrupt_on_stop


@pytest.mark.parametrize("value", ["maybe", 1, None])
def test_non_boolean_flag_is_rejected(value) -> None:
    with pytest.raises(InvalidParameterError):
        config_from_dict({"executor": {"interrupt_on_stop": value}})


def test_simulator_step_is_read_and_validated() -> None:
    cfg = config_from_dict({"simulator": {"step_ms": "5"}})
    assert cfg.simulator.step_ms == 5.0
    with pytest.raises(InvalidParameterError):
        config_from_dict({"simulator": {"step_ms": 0}})
