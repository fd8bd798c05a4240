"""Command runner abstraction for testability."""

import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from laterem.errors import OutputDecodeFailure, PipeOverflow, ProcessSpawnFailure

LOG = logging.getLogger(__name__)

# A remote description is a few hundred bytes; anything near this is not one.
DEFAULT_PIPE_LIMIT = 64 * 1024


def _decode(command: Sequence[str], data: bytes | None) -> str:
    try:
        return (data or b"").decode("utf-8")
    except UnicodeDecodeError as exc:
        raise OutputDecodeFailure(command) from exc


@dataclass
class CommandResult:
    """Result of a command execution."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Check if command succeeded."""
        return self.returncode == 0

    @classmethod
    def from_bytes(
        cls,
        command: Sequence[str],
        returncode: int,
        stdout: bytes | None,
        stderr: bytes | None,
    ) -> "CommandResult":
        """Decode captured output, rejecting anything that is not UTF-8."""
        return cls(
            returncode=returncode,
            stdout=_decode(command, stdout),
            stderr=_decode(command, stderr),
        )


class CommandRunner:
    """Encapsulates subprocess operations for testing and consistency."""

    def capture(
        self,
        cmd: Sequence[str],
        cwd: Path | None = None,
        input_bytes: bytes | None = None,
        **kwargs: Any,
    ) -> subprocess.CompletedProcess[bytes]:
        """Run a command to completion and return its raw output."""
        LOG.debug("Running command: %s", " ".join(cmd))
        try:
            return subprocess.run(
                list(cmd),
                cwd=cwd,
                input=input_bytes,
                capture_output=True,
                check=False,
                **kwargs,
            )
        except OSError as exc:
            raise ProcessSpawnFailure(cmd, exc.strerror or str(exc)) from exc

    def run(
        self,
        cmd: Sequence[str],
        cwd: Path | None = None,
        input_bytes: bytes | None = None,
        **kwargs: Any,
    ) -> CommandResult:
        """Run a command and return a normalized result."""
        completed = self.capture(cmd, cwd=cwd, input_bytes=input_bytes, **kwargs)
        return CommandResult.from_bytes(
            cmd, completed.returncode, completed.stdout, completed.stderr
        )

    def spawn(
        self, cmd: Sequence[str], cwd: Path | None = None, **kwargs: Any
    ) -> subprocess.Popen[bytes]:
        """Start a command without waiting for it."""
        LOG.debug("Spawning command: %s", " ".join(cmd))
        try:
            return subprocess.Popen(list(cmd), cwd=cwd, **kwargs)
        except OSError as exc:
            raise ProcessSpawnFailure(cmd, exc.strerror or str(exc)) from exc


class Pipe(ABC):
    """Feeds the standard output of one command into another."""

    @abstractmethod
    def run(
        self,
        runner: CommandRunner,
        first: Sequence[str],
        second: Sequence[str],
        cwd: Path | None = None,
    ) -> CommandResult:
        """Run both commands and return the result of the second."""


class BufferedPipe(Pipe):
    """Runs the first command to completion and replays its output.

    Only suitable for small payloads: the whole output sits in memory and
    anything above ``max_bytes`` is refused.
    """

    def __init__(self, max_bytes: int = DEFAULT_PIPE_LIMIT):
        self.max_bytes = max_bytes

    def run(
        self,
        runner: CommandRunner,
        first: Sequence[str],
        second: Sequence[str],
        cwd: Path | None = None,
    ) -> CommandResult:
        upstream = runner.capture(first, cwd=cwd)
        if upstream.returncode != 0:
            LOG.debug(
                "%s exited with %s: %s",
                " ".join(first),
                upstream.returncode,
                (upstream.stderr or b"").decode("utf-8", errors="replace").strip(),
            )
        buffer = upstream.stdout or b""
        if len(buffer) > self.max_bytes:
            raise PipeOverflow(first, self.max_bytes)
        return runner.run(second, cwd=cwd, input_bytes=buffer)


class StreamingPipe(Pipe):
    """Connects the two commands through an OS pipe."""

    def run(
        self,
        runner: CommandRunner,
        first: Sequence[str],
        second: Sequence[str],
        cwd: Path | None = None,
    ) -> CommandResult:
        upstream = runner.spawn(
            first, cwd=cwd, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL
        )
        try:
            downstream = runner.spawn(
                second,
                cwd=cwd,
                stdin=upstream.stdout,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except ProcessSpawnFailure:
            upstream.kill()
            upstream.wait()
            raise

        # Let the upstream process see SIGPIPE if the downstream exits early
        if upstream.stdout is not None:
            upstream.stdout.close()
        stdout, stderr = downstream.communicate()
        upstream.wait()
        return CommandResult.from_bytes(second, downstream.returncode, stdout, stderr)


# Default instance for dependency injection
_default_runner: CommandRunner | None = None


def get_runner() -> CommandRunner:
    """Get the default command runner (can be overridden in tests)."""
    global _default_runner
    if _default_runner is None:
        _default_runner = CommandRunner()
    return _default_runner


def set_runner(runner: CommandRunner) -> None:
    """Set the command runner (for testing)."""
    global _default_runner
    _default_runner = runner
