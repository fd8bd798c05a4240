"""
Action dispatcher.

Every supported (target, action) pair is listed in ``CATALOG`` together
with the function that expands it into an ordered list of steps. Pairs
missing from the table are rejected before anything is spawned.

Steps run one after another. Each one yields a typed outcome; a step that
cannot be started or whose output cannot be decoded always stops the run,
and under the strict policy so does a non-zero exit status. Nothing that
already ran is undone: the returned report says how far the workflow got.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from laterem.config import Settings
from laterem.entities import Action, DefaultConfig, RunRequest, Step, Target
from laterem.errors import (
    InvalidArgument,
    LateremError,
    OutputDecodeFailure,
    ProcessSpawnFailure,
    StepFailed,
)
from laterem.report import NullObserver, RunObserver, RunReport, StepRecord, StepStatus
from laterem.runner import CommandRunner, get_runner

LOG = logging.getLogger(__name__)

CURRENT_BRANCH_QUERY = ("git", "branch", "--show-current")


@dataclass
class WorkflowContext:
    """Resolved values a workflow template expands into step arguments."""

    defaults: Optional[DefaultConfig]
    branch: str
    arguments: list[str]
    remote: str
    compose_command: tuple[str, ...]
    detach_container: bool
    stash_files: bool


def _compose_down(ctx: WorkflowContext) -> list[Step]:
    return [
        Step("compose-down", "Taking the stack down", (*ctx.compose_command, "down"))
    ]


def _compose_up(ctx: WorkflowContext) -> list[Step]:
    command = (*ctx.compose_command, "up")
    if ctx.detach_container:
        command = (*command, "-d")
    return [Step("compose-up", "Launching the stack", command)]


def _compose_restart(ctx: WorkflowContext) -> list[Step]:
    return _compose_down(ctx) + _compose_up(ctx)


def _stash(ctx: WorkflowContext) -> list[Step]:
    if not ctx.stash_files:
        return []
    return [
        Step("stage", "Staging changes", ("git", "add", ".")),
        Step("stash", "Stashing staged changes", ("git", "stash")),
    ]


def _unstash(ctx: WorkflowContext) -> list[Step]:
    if not ctx.stash_files:
        return []
    return [Step("stash-pop", "Popping stash", ("git", "stash", "pop"))]


def _repository_reset(ctx: WorkflowContext) -> list[Step]:
    assert ctx.defaults is not None
    default = ctx.defaults.branch
    return [
        *_stash(ctx),
        Step(
            "checkout-default",
            f"Checking out {default}",
            ("git", "checkout", default),
        ),
        Step(
            "pull-default",
            f"Pulling changes from {default}",
            ("git", "pull", ctx.remote, default),
        ),
        Step(
            "checkout-original",
            f"Going back to {ctx.branch}",
            ("git", "checkout", ctx.branch),
        ),
        *_unstash(ctx),
    ]


def _repository_commit(ctx: WorkflowContext) -> list[Step]:
    message = " ".join(ctx.arguments)
    return [
        Step(
            "commit",
            f"Committing staged changes to {ctx.branch}",
            ("git", "commit", "-m", message),
        )
    ]


def _repository_push(ctx: WorkflowContext) -> list[Step]:
    return [
        Step(
            "push",
            f"Pushing committed changes to {ctx.branch}",
            ("git", "push", ctx.remote, ctx.branch),
        )
    ]


def _repository_pull(ctx: WorkflowContext) -> list[Step]:
    return [
        *_stash(ctx),
        Step(
            "pull",
            f"Pulling changes from {ctx.branch}",
            ("git", "pull", ctx.remote, ctx.branch),
        ),
        *_unstash(ctx),
    ]


def _require_message(request: RunRequest) -> None:
    if not request.arguments:
        raise InvalidArgument("commit needs a message, pass it with --args")


def _require_default_branch(request: RunRequest) -> None:
    if request.defaults is not None and not request.defaults.branch:
        raise InvalidArgument(
            "the default branch of the remote is unknown, set 'branch' in the settings file"
        )


@dataclass(frozen=True)
class Workflow:
    build: Callable[[WorkflowContext], list[Step]]
    check: Optional[Callable[[RunRequest], None]] = None


CATALOG: dict[tuple[Target, Action], Workflow] = {
    (Target.DOCKER, Action.DOWN): Workflow(_compose_down),
    (Target.DOCKER, Action.UP): Workflow(_compose_up),
    (Target.DOCKER, Action.RESET): Workflow(_compose_restart),
    (Target.REPOSITORY, Action.RESET): Workflow(
        _repository_reset, check=_require_default_branch
    ),
    (Target.REPOSITORY, Action.COMMIT): Workflow(
        _repository_commit, check=_require_message
    ),
    (Target.REPOSITORY, Action.PUSH): Workflow(_repository_push),
    (Target.REPOSITORY, Action.PULL): Workflow(_repository_pull),
}


class Dispatcher:
    """Expands a run request into steps and executes them in order."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        settings: Settings | None = None,
        observer: RunObserver | None = None,
        cwd: Path | None = None,
    ):
        self.runner = runner or get_runner()
        self.settings = settings or Settings()
        self.observer = observer or NullObserver()
        self.cwd = cwd

    def lookup(self, request: RunRequest) -> Workflow:
        workflow = CATALOG.get((request.target, request.action))
        if workflow is None:
            raise InvalidArgument(
                f"'{request.action}' is not available for the {request.target} target"
            )
        return workflow

    def current_branch(self) -> str:
        """Query the branch that is checked out right now."""
        result = self.runner.run(CURRENT_BRANCH_QUERY, cwd=self.cwd)
        if not result.success:
            raise StepFailed(CURRENT_BRANCH_QUERY, result.returncode, result.stderr)
        branch = result.stdout.replace("\n", "").strip()
        if not branch:
            raise InvalidArgument("no branch is checked out (detached HEAD)")
        return branch

    def validate(self, request: RunRequest) -> Workflow:
        """Reject unknown pairs and unmet preconditions without spawning anything."""
        workflow = self.lookup(request)
        if workflow.check is not None:
            workflow.check(request)
        return workflow

    def plan(self, request: RunRequest) -> list[Step]:
        """Validate the request and return the steps it expands to.

        Raises InvalidArgument before anything is spawned. For repository
        targets the current branch is queried once, which may raise any
        other LateremError.
        """
        workflow = self.validate(request)

        branch = ""
        if request.target is Target.REPOSITORY:
            if request.defaults is None:
                raise RuntimeError(
                    "defaults must be resolved before dispatching repository workflows"
                )
            branch = self.current_branch()

        defaults = request.defaults
        context = WorkflowContext(
            defaults=defaults,
            branch=branch,
            arguments=list(request.arguments),
            remote=self.settings.remote,
            compose_command=tuple(self.settings.compose_command),
            detach_container=(
                defaults.detach_container
                if defaults is not None
                else self.settings.detach_container
            ),
            stash_files=(
                defaults.stash_files
                if defaults is not None
                else self.settings.stash_files
            ),
        )
        return workflow.build(context)

    def run(self, request: RunRequest, dry_run: bool = False) -> RunReport:
        """Run the workflow and return a report of how far it got.

        InvalidArgument propagates; every other engine failure ends up in
        the report.
        """
        report = RunReport(
            target=request.target, action=request.action, steps=[], dry_run=dry_run
        )
        try:
            report.steps = self.plan(request)
        except InvalidArgument:
            raise
        except LateremError as exc:
            LOG.info("Run stopped before any step: %s", exc)
            report.error = exc
            self.observer.run_finished(report)
            return report

        self.observer.run_started(report)
        total = len(report.steps)
        for index, step in enumerate(report.steps, start=1):
            self.observer.step_started(step, index, total)
            if dry_run:
                record = StepRecord(step, StepStatus.PLANNED)
            else:
                record = self._execute(step)
            report.records.append(record)
            self.observer.step_finished(record)

            if record.ok:
                continue
            if record.status is StepStatus.EXIT and not self.settings.strict:
                LOG.warning("Continuing after failed step: %s", record.error)
                continue
            report.error = record.error
            break

        if report.error is not None:
            report.hints = self._recovery_hints(report)
        self.observer.run_finished(report)
        return report

    def _execute(self, step: Step) -> StepRecord:
        try:
            result = self.runner.run(step.command, cwd=self.cwd)
        except ProcessSpawnFailure as exc:
            LOG.info("%s: could not start (%s)", step.name, exc.reason)
            return StepRecord(step, StepStatus.SPAWN, error=exc)
        except OutputDecodeFailure as exc:
            LOG.info("%s: undecodable output", step.name)
            return StepRecord(step, StepStatus.DECODE, error=exc)

        if result.success:
            LOG.info("%s: ok", step.name)
            return StepRecord(
                step,
                StepStatus.OK,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        LOG.info("%s: exited with %s", step.name, result.returncode)
        return StepRecord(
            step,
            StepStatus.EXIT,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            error=StepFailed(step.command, result.returncode, result.stderr),
        )

    @staticmethod
    def _recovery_hints(report: RunReport) -> list[str]:
        done = {record.step.name for record in report.completed}
        hints = []
        if "checkout-default" in done and "checkout-original" not in done:
            original = next(
                step for step in report.steps if step.name == "checkout-original"
            )
            hints.append(
                f"The working tree is not on your branch; return with '{original}'."
            )
        if "stash" in done and "stash-pop" not in done:
            hints.append("Your changes are still stashed; restore them with 'git stash pop'.")
        return hints
