"""
Motion-control core for an MD49-style differential-drive robot.

Components:
- units: physical constants and unit conversions
- protocol: register frame encoding/decoding
- transport: byte transport contract and status events
- drivers.motor_driver: register-level driver and health check
- commands: motion commands and text parsing
- executor: command queue and timed execution
- config: YAML configuration
"""
