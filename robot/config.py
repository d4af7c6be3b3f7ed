from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from .errors import InvalidParameterError
from .executor import ExecutorConfig
from .units import RobotConstants


@dataclass
class SimulatorConfig:
    simulation_speed: float = 1.0
    start_x: float = 0.0
    start_y: float = 0.0
    start_angle: float = 0.0
    ground_width: float = 5000.0
    ground_height: float = 5000.0
    map_file: Optional[str] = None
    encoder_noise_std: float = 0.0
    step_ms: float = 10.0
    seed: int = 0

    def __post_init__(self) -> None:
        if not self.step_ms > 0:
            raise InvalidParameterError(f"step_ms must be positive, got {self.step_ms}")


@dataclass
class LoggingConfig:
    level: str = "INFO"
    telemetry_path: Optional[str] = None


@dataclass
class RobotConfig:
    """Everything read from a robot YAML config file."""

    constants: RobotConstants = field(default_factory=RobotConstants)
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    simulator: SimulatorConfig = field(default_factory=SimulatorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    robot_type: str = "simulation"
    zero_fill_short_reads: bool = False
    legacy_status_bitmask: bool = False


_TRUE_STRINGS = {"true", "yes", "on", "1"}
_FALSE_STRINGS = {"false", "no", "off", "0"}


def _as_bool(value: Any, key: str) -> bool:
    """Accept YAML booleans and their common quoted spellings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise InvalidParameterError(f"{key} must be true or false, got {value!r}")


def load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def config_from_dict(cfg: Dict[str, Any]) -> RobotConfig:
    robot_cfg = cfg.get("robot", {}) or {}
    exec_cfg = cfg.get("executor", {}) or {}
    sim_cfg = cfg.get("simulator", {}) or {}
    log_cfg = cfg.get("logging", {}) or {}

    defaults = RobotConstants()
    constants = RobotConstants(
        wheel_diameter=float(robot_cfg.get("wheel_diameter", defaults.wheel_diameter)),
        radius=float(robot_cfg.get("radius", defaults.radius)),
        encoder_counts_per_turn=int(
            robot_cfg.get("encoder_counts_per_turn", defaults.encoder_counts_per_turn)
        ),
        speed_to_mm_per_s=float(robot_cfg.get("speed_to_mm_per_s", defaults.speed_to_mm_per_s)),
        motor_timeout_ms=int(robot_cfg.get("motor_timeout_ms", defaults.motor_timeout_ms)),
    )

    executor = ExecutorConfig(
        simulation_speed=float(exec_cfg.get("simulation_speed", 1.0)),
        send_timeout_ms=int(exec_cfg.get("send_timeout_ms", 1000)),
        receive_timeout_ms=int(exec_cfg.get("receive_timeout_ms", 1000)),
        prepare_on_start=_as_bool(exec_cfg.get("prepare_on_start", True), "prepare_on_start"),
        interrupt_on_stop=_as_bool(exec_cfg.get("interrupt_on_stop", False), "interrupt_on_stop"),
        constants=constants,
    )

    map_file = sim_cfg.get("map_file")
    simulator = SimulatorConfig(
        simulation_speed=float(sim_cfg.get("simulation_speed", executor.simulation_speed)),
        start_x=float(sim_cfg.get("start_x", 0.0)),
        start_y=float(sim_cfg.get("start_y", 0.0)),
        start_angle=float(sim_cfg.get("start_angle", 0.0)),
        ground_width=float(sim_cfg.get("ground_width", 5000.0)),
        ground_height=float(sim_cfg.get("ground_height", 5000.0)),
        map_file=str(map_file) if map_file else None,
        encoder_noise_std=float(sim_cfg.get("encoder_noise_std", 0.0)),
        step_ms=float(sim_cfg.get("step_ms", 10.0)),
        seed=int(cfg.get("seed", 0)),
    )

    telemetry_path = log_cfg.get("telemetry_path")
    logging_cfg = LoggingConfig(
        level=str(log_cfg.get("level", "INFO")).upper(),
        telemetry_path=str(telemetry_path) if telemetry_path else None,
    )

    return RobotConfig(
        constants=constants,
        executor=executor,
        simulator=simulator,
        logging=logging_cfg,
        robot_type=str(robot_cfg.get("type", "simulation")).lower(),
        zero_fill_short_reads=_as_bool(
            robot_cfg.get("zero_fill_short_reads", False), "zero_fill_short_reads"
        ),
        legacy_status_bitmask=_as_bool(
            robot_cfg.get("legacy_status_bitmask", False), "legacy_status_bitmask"
        ),
    )


def load_config(path: str) -> RobotConfig:
    """Read a YAML config file into typed settings."""
    return config_from_dict(load_yaml(path))
