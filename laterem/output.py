"""Output handler abstraction for testability and flexibility."""

from abc import ABC, abstractmethod

from rich.console import Console
from rich.markup import escape

from laterem.entities import Step
from laterem.report import RunReport, StepRecord, StepStatus


class OutputHandler(ABC):
    """Abstract output handler for user messages."""

    @abstractmethod
    def info(self, message: str) -> None:
        """Print informational message."""
        pass

    @abstractmethod
    def success(self, message: str) -> None:
        """Print success message."""
        pass

    @abstractmethod
    def warning(self, message: str) -> None:
        """Print warning message."""
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        """Print error message."""
        pass

    @abstractmethod
    def status(self, message: str) -> None:
        """Print status/progress message."""
        pass


class RichOutputHandler(OutputHandler):
    """Rich console output handler."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def info(self, message: str) -> None:
        self.console.print(message)

    def success(self, message: str) -> None:
        self.console.print(f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]{message}[/yellow]")

    def error(self, message: str) -> None:
        self.console.print(f"[red]{message}[/red]")

    def status(self, message: str) -> None:
        self.console.print(f"[magenta]{message}[/magenta]")


class ConsoleReporter:
    """Turns dispatcher events into user-facing messages."""

    def __init__(self, output: OutputHandler | None = None, verbose: bool = False):
        self.output = output or get_output()
        self.verbose = verbose

    def run_started(self, report: RunReport) -> None:
        mode = " (dry run)" if report.dry_run else ""
        self.output.status(
            f"[bold]Running {report.target} {report.action}{mode}[/bold]"
        )

    def step_started(self, step: Step, index: int, total: int) -> None:
        self.output.info(
            f"[dim][{index}/{total}][/dim] {step.description}... "
            f"[dim]{escape(str(step))}[/dim]"
        )

    def step_finished(self, record: StepRecord) -> None:
        if record.status is StepStatus.OK:
            if self.verbose and record.stdout.strip():
                self.output.info(escape(record.stdout.rstrip()))
        elif record.status is StepStatus.EXIT:
            self.output.warning(
                f"{record.step.name} exited with status {record.returncode}"
            )
            detail = (record.stderr or record.stdout).strip()
            if detail:
                self.output.info(escape(detail))

    def run_finished(self, report: RunReport) -> None:
        if report.success:
            if report.dry_run:
                self.output.success(f"✓ Planned {len(report.steps)} step(s)")
            elif report.warnings:
                self.output.warning(
                    f"Finished with {len(report.warnings)} failing step(s)"
                )
            else:
                self.output.success("✓ The action ran successfully")
            return

        self.output.error(f"An error occurred: {escape(str(report.error))}")
        if report.records or report.steps:
            self.output.info(
                f"Completed {len(report.completed)} of {len(report.steps)} step(s)"
            )
        failed = report.failed
        if failed is not None:
            self.output.info(f"Failed: {escape(str(failed.step))}")
        for step in report.pending:
            self.output.info(f"[dim]Not run: {escape(str(step))}[/dim]")
        for hint in report.hints:
            self.output.warning(hint)


# Default instance for dependency injection
_default_output: OutputHandler | None = None


def get_output() -> OutputHandler:
    """Get the default output handler."""
    global _default_output
    if _default_output is None:
        _default_output = RichOutputHandler()
    return _default_output


def set_output(handler: OutputHandler) -> None:
    """Set the output handler (for testing)."""
    global _default_output
    _default_output = handler
