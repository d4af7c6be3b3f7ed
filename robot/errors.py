from __future__ import annotations


class MotionError(Exception):
    """Base class for errors raised by the motion-control core."""


class TransportError(MotionError):
    """A transport send or receive failed or timed out."""


class ProtocolError(MotionError):
    """Bytes received from the motor driver do not match the register protocol."""


class IncompleteResponseError(ProtocolError):
    """Fewer bytes than a read register answers with were received."""

    def __init__(self, register: int, expected: int, received: int) -> None:
        super().__init__(
            f"Register 0x{register:02X} answered with {received} of {expected} bytes"
        )
        self.register = register
        self.expected = expected
        self.received = received


class InvalidParameterError(MotionError, ValueError):
    """A command parameter is outside its allowed range."""
