"""isolator CLI.

Built with Typer.  Global options (version, logging) are handled by the
app callback; commands live in ``cli/commands``:

    cli/
    ├── __init__.py     # app assembly
    ├── helpers.py      # logging options, -D parsing, config loading
    ├── output.py       # Rich console and tables
    └── commands/
        ├── run.py      # run command
        └── check.py    # check command
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from isolator import __version__

from . import helpers as helpers
from .commands import check, run
from .helpers import set_log_file, set_log_format, set_log_level
from .output import console

app = typer.Typer(
    name="isolator",
    help="Expose Unix domain sockets inside sandboxes by relaying them to the real service sockets",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"isolator v{__version__}")
        raise typer.Exit()


def log_level_callback(value: str | None) -> str | None:
    if value:
        set_log_level(value)
    return value


def log_file_callback(value: Path | None) -> Path | None:
    if value:
        set_log_file(value)
    return value


def log_format_callback(value: str | None) -> str | None:
    if value:
        set_log_format(value)
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=log_level_callback,
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="ISOLATOR_LOG_LEVEL",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            callback=log_file_callback,
            help="Also write JSON log lines to this file",
            envvar="ISOLATOR_LOG_FILE",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: console, json, or both (both requires --log-file)",
            envvar="ISOLATOR_LOG_FORMAT",
        ),
    ] = None,
) -> None:
    """Transparent Unix domain socket relay."""


app.command()(run)
app.command()(check)


__all__ = ["app", "console", "helpers", "main"]
