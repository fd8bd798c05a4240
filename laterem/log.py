import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbosity: int, console: Console | None = None) -> None:
    """
    Configure the root logger based on a verbosity count.

    verbosity == 0 -> WARNING
    verbosity == 1 -> INFO
    verbosity >= 2 -> DEBUG
    """
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(console=console or Console(stderr=True), rich_tracebacks=True)
        ],
        force=True,
    )
