"""Outcome records for a run and the observer interface fed by the dispatcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from laterem.entities import Action, Step, Target
from laterem.errors import LateremError


class StepStatus(Enum):
    OK = "ok"
    EXIT = "exit"
    SPAWN = "spawn"
    DECODE = "decode"
    PLANNED = "planned"


@dataclass
class StepRecord:
    """What happened when a single step ran."""

    step: Step
    status: StepStatus
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    error: LateremError | None = None

    @property
    def ok(self) -> bool:
        return self.status in (StepStatus.OK, StepStatus.PLANNED)


@dataclass
class RunReport:
    """Partial-progress report of a run.

    ``records`` holds every step that was started, in order. When the run
    stopped early, ``error`` says why and ``pending`` lists the steps that
    never started. Completed steps are never undone.
    """

    target: Target
    action: Action
    steps: list[Step]
    records: list[StepRecord] = field(default_factory=list)
    error: LateremError | None = None
    hints: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def completed(self) -> list[StepRecord]:
        return [record for record in self.records if record.ok]

    @property
    def failed(self) -> StepRecord | None:
        if self.error is None or not self.records or self.records[-1].ok:
            return None
        return self.records[-1]

    @property
    def warnings(self) -> list[StepRecord]:
        """Steps that exited non-zero without stopping the run."""
        return [
            record
            for record in self.records
            if record.status is StepStatus.EXIT and record is not self.failed
        ]

    @property
    def pending(self) -> list[Step]:
        return self.steps[len(self.records) :]


class RunObserver(Protocol):
    """Receives dispatcher events; must not influence the run."""

    def run_started(self, report: RunReport) -> None: ...

    def step_started(self, step: Step, index: int, total: int) -> None: ...

    def step_finished(self, record: StepRecord) -> None: ...

    def run_finished(self, report: RunReport) -> None: ...


class NullObserver:
    def run_started(self, report: RunReport) -> None:
        pass

    def step_started(self, step: Step, index: int, total: int) -> None:
        pass

    def step_finished(self, record: StepRecord) -> None:
        pass

    def run_finished(self, report: RunReport) -> None:
        pass
