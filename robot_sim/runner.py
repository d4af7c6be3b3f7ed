from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from robot.commands import parse_commands
from robot.config import RobotConfig, load_config
from robot.drivers.motor_driver import MotorDriver, RobotType
from robot.executor import MotionExecutor
from robot.transport import EventBus
from telemetry.logger import TelemetryLogger
from .simulator import SimulatedMotorDriver


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a motion command script against the simulated robot."
    )
    parser.add_argument(
        "--config",
        type=str,
        default="configs/robot.yaml",
        help="Path to robot YAML config.",
    )
    parser.add_argument(
        "--commands",
        type=str,
        required=True,
        help="Text file with one command per line, e.g. 'MoveForwardForDistance 500, 40'.",
    )
    parser.add_argument(
        "--map",
        type=str,
        default=None,
        help="JSON obstacle map (overrides simulator.map_file).",
    )
    parser.add_argument(
        "--simulation-speed",
        type=float,
        default=None,
        help="Pacing factor for both executor and simulator (overrides config).",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on the first malformed command line instead of skipping it.",
    )
    return parser


def run_script(cfg: RobotConfig, script: str, strict: bool = False) -> int:
    """Execute a command script on a fresh simulator and print a summary."""
    commands = parse_commands(script, skip_errors=not strict)
    sim = SimulatedMotorDriver.from_config(cfg.simulator, cfg.constants)

    events = EventBus()
    telemetry: Optional[TelemetryLogger] = None
    if cfg.logging.telemetry_path:
        telemetry = TelemetryLogger(cfg.logging.telemetry_path)
        telemetry.attach(events)

    driver = MotorDriver(
        sim,
        robot_type=RobotType.SIMULATION,
        events=events,
        send_timeout_ms=cfg.executor.send_timeout_ms,
        receive_timeout_ms=cfg.executor.receive_timeout_ms,
        zero_fill_short_reads=cfg.zero_fill_short_reads,
        legacy_status_bitmask=cfg.legacy_status_bitmask,
    )
    executor = MotionExecutor(driver, cfg.executor, events)
    executor.enqueue_many(commands)
    logger.info("Queued %d command(s)", len(commands))

    try:
        executor.start()
        while executor.is_running:
            executor.join(0.1)
    except KeyboardInterrupt:
        logger.warning("Interrupted, stopping robot")
        executor.stop()
        executor.join()
        driver.stop()

    try:
        report = executor.check_health()
        pose = sim.advance()
        if telemetry is not None:
            telemetry.log_step({"kind": "final_state", **sim.to_dict()})
    finally:
        if telemetry is not None:
            telemetry.close()

    print(f"Executed {len(executor.completed)} of {len(commands)} command(s).")
    print(f"Final pose: x={pose.x:.1f} mm, y={pose.y:.1f} mm, angle={pose.angle:.1f} deg")
    print(report.message)
    if sim.collisions:
        print(f"Collisions: {len(sim.collisions)}")
        for x, y in sim.collisions:
            print(f"  at ({x:.1f}, {y:.1f})")
    else:
        print("No collisions.")

    if executor.last_error is not None:
        print(f"Last error: {executor.last_error}")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.simulation_speed is not None and args.simulation_speed <= 0:
        parser.error("--simulation-speed must be positive")

    cfg = load_config(args.config)
    logging.basicConfig(
        level=getattr(logging, cfg.logging.level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if cfg.robot_type != "simulation":
        logger.warning("Config names a %s robot; running against the simulator", cfg.robot_type)
    if args.map:
        cfg.simulator.map_file = args.map
    if args.simulation_speed is not None:
        cfg.executor.simulation_speed = args.simulation_speed
        cfg.simulator.simulation_speed = args.simulation_speed

    with open(args.commands, "r", encoding="utf-8") as f:
        script = f.read()
    return run_script(cfg, script, strict=args.strict)


if __name__ == "__main__":
    sys.exit(main())
