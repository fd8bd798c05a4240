"""
Error types raised by the laterem engine.

InvalidArgument is the only user error: it is detected before any
external command runs. Everything else describes how far a run got
before an external command could not be started, produced unreadable
output or exited with a failure status.
"""

from __future__ import annotations

from typing import Sequence


def _render(command: Sequence[str]) -> str:
    return " ".join(command)


class LateremError(Exception):
    """Base class for all laterem specific errors."""


class InvalidArgument(LateremError):
    """Raised when a (target, action) pair or its arguments are not usable."""


class ProcessSpawnFailure(LateremError):
    """Raised when an executable could not be started."""

    def __init__(self, command: Sequence[str], reason: str):
        self.command = tuple(command)
        self.reason = reason
        super().__init__(f"unable to start '{_render(command)}': {reason}")


class OutputDecodeFailure(LateremError):
    """Raised when captured output is not valid UTF-8 text."""

    def __init__(self, command: Sequence[str]):
        self.command = tuple(command)
        super().__init__(f"output of '{_render(command)}' is not valid UTF-8")


class PipeOverflow(LateremError):
    """Raised when a buffered pipe receives more bytes than it accepts."""

    def __init__(self, command: Sequence[str], limit: int):
        self.command = tuple(command)
        self.limit = limit
        super().__init__(
            f"output of '{_render(command)}' exceeds the {limit} byte pipe buffer"
        )


class StepFailed(LateremError):
    """A step ran but exited with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = ""):
        self.command = tuple(command)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"'{_render(command)}' exited with status {returncode}")


class ConfigError(LateremError):
    """Raised when the settings file cannot be read or is malformed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"invalid settings file {path}: {reason}")
