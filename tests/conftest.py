import subprocess
from pathlib import Path
from typing import Any, Sequence

import pytest

from laterem.dispatcher import CURRENT_BRANCH_QUERY
from laterem.output import OutputHandler
from laterem.runner import CommandResult, CommandRunner


class FakeRunner(CommandRunner):
    """Records every command and answers from a table of scripted outcomes.

    ``outcomes`` maps a command tuple to a CommandResult or an exception to
    raise. Unlisted commands succeed with empty output, except the queries
    for the current branch and the remote description.
    """

    def __init__(self, branch: str = "feature", default_branch: str = "main"):
        self.branch = branch
        self.default_branch = default_branch
        self.calls: list[tuple[str, ...]] = []
        self.inputs: list[bytes | None] = []
        self.outcomes: dict[tuple[str, ...], Any] = {}

    def _scripted(self, cmd: tuple[str, ...]) -> Any:
        outcome = self.outcomes.get(cmd)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def capture(
        self,
        cmd: Sequence[str],
        cwd: Path | None = None,
        input_bytes: bytes | None = None,
        **kwargs: Any,
    ) -> subprocess.CompletedProcess[bytes]:
        cmd = tuple(cmd)
        self.calls.append(cmd)
        self.inputs.append(input_bytes)
        outcome = self._scripted(cmd)
        if outcome is not None:
            return subprocess.CompletedProcess(
                cmd,
                outcome.returncode,
                outcome.stdout.encode(),
                outcome.stderr.encode(),
            )
        stdout = b""
        if cmd[:3] == ("git", "remote", "show"):
            stdout = (
                f"* remote origin\n  HEAD branch: {self.default_branch}\n".encode()
            )
        return subprocess.CompletedProcess(cmd, 0, stdout, b"")

    def run(
        self,
        cmd: Sequence[str],
        cwd: Path | None = None,
        input_bytes: bytes | None = None,
        **kwargs: Any,
    ) -> CommandResult:
        cmd = tuple(cmd)
        self.calls.append(cmd)
        self.inputs.append(input_bytes)
        outcome = self._scripted(cmd)
        if outcome is not None:
            return outcome
        if cmd == CURRENT_BRANCH_QUERY:
            return CommandResult(0, f"{self.branch}\n", "")
        if cmd[0] == "sed" and input_bytes and b"HEAD branch" in input_bytes:
            return CommandResult(0, f"{self.default_branch}\n", "")
        return CommandResult(0, "", "")


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


class RecordingOutput(OutputHandler):
    """Keeps every message with its level instead of printing it."""

    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def warning(self, message: str) -> None:
        self.messages.append(("warning", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def status(self, message: str) -> None:
        self.messages.append(("status", message))

    def of_kind(self, kind: str) -> list[str]:
        return [message for level, message in self.messages if level == kind]


@pytest.fixture
def recorded_output() -> RecordingOutput:
    return RecordingOutput()
