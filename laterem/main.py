from typing import Optional

import typer
from rich.markup import escape
from typing_extensions import Annotated

from laterem.config import DEFAULT_CONFIG_PATH, load_settings, write_example
from laterem.defaults import DefaultResolver
from laterem.dispatcher import Dispatcher
from laterem.entities import Action, RunRequest, Target
from laterem.errors import ConfigError, InvalidArgument, LateremError
from laterem.log import configure_logging
from laterem.output import ConsoleReporter, get_output
from laterem.runner import get_runner

__version__ = "0.1.0"

app = typer.Typer(add_completion=False)


def _version_callback(value: bool) -> None:
    if value:
        get_output().info(f"laterem {__version__}")
        raise typer.Exit()


def build_request(
    target: str, action: Optional[str], arguments: list[str], path: str
) -> RunRequest:
    """Translate raw CLI tokens into a run request."""
    return RunRequest(
        path=path,
        target=Target.parse(target),
        action=Action.parse(action),
        arguments=list(arguments),
    )


@app.command()
def run(
    target: Annotated[
        Optional[str],
        typer.Argument(help="The target of the action: docker (d) or repository (r)"),
    ] = None,
    action: Annotated[
        Optional[str],
        typer.Argument(help="reset, down, up, commit, push or pull (default: reset)"),
    ] = None,
    arguments: Annotated[
        Optional[list[str]],
        typer.Option("--args", "-a", help="Arguments for the action (commit message)"),
    ] = None,
    config: Annotated[
        str, typer.Option("--config", "-c", help="Path to the settings file")
    ] = DEFAULT_CONFIG_PATH,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Show command output and logs"),
    ] = 0,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Show the steps without running them")
    ] = False,
    best_effort: Annotated[
        bool,
        typer.Option("--best-effort", help="Keep going when a step exits non-zero"),
    ] = False,
    init_config: Annotated[
        bool, typer.Option("--init-config", help="Write a default settings file")
    ] = False,
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True),
    ] = False,
):
    """Run a git or docker compose workflow in one command."""
    configure_logging(verbose)
    output = get_output()

    if init_config:
        try:
            written = write_example(config)
        except ConfigError as exc:
            output.error(escape(str(exc)))
            raise typer.Exit(2)
        output.success(f"✓ Settings written to {written}")
        return

    if target is None:
        output.error("Specify a target: docker or repository")
        raise typer.Exit(2)

    try:
        settings = load_settings(config)
    except ConfigError as exc:
        output.error(escape(str(exc)))
        raise typer.Exit(2)
    if best_effort:
        settings.strict = False

    request = build_request(target, action, arguments or [], config)
    runner = get_runner()
    dispatcher = Dispatcher(
        runner=runner,
        settings=settings,
        observer=ConsoleReporter(output, verbose=verbose > 0),
    )
    try:
        dispatcher.validate(request)
        if request.target is Target.REPOSITORY:
            request.defaults = DefaultResolver(
                runner=runner, remote=settings.remote
            ).resolve(settings)
        report = dispatcher.run(request, dry_run=dry_run)
    except InvalidArgument as exc:
        output.error(f"An error occurred: {escape(str(exc))}")
        raise typer.Exit(2)
    except LateremError as exc:
        output.error(f"An error occurred: {escape(str(exc))}")
        raise typer.Exit(1)

    if not report.success:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
