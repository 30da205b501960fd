"""``isolator run`` - start the relays and serve until signalled."""

from __future__ import annotations

import asyncio

import typer

from isolator.core.config import RelaySettings
from isolator.core.constants import DEFAULT_BUFFER_SIZE
from isolator.core.logging import get_logger
from isolator.relay.supervisor import Supervisor

from ..helpers import configure_global_logging, load_config_or_exit, parse_substitutions
from ..output import console

_logger = get_logger("cli.run")


def run(
    config: list[str] = typer.Option(
        ...,
        "--config",
        "-c",
        help="Configuration file (JSON or YAML), or '-' for stdin. Repeatable.",
    ),
    define: list[str] | None = typer.Option(
        None,
        "--define",
        "-D",
        help="Substitution NAME=VALUE, referenced in paths as $NAME. Repeatable, applied in order.",
    ),
    strict: bool = typer.Option(
        True,
        "--strict/--lenient",
        help="Abort everything when one service fails to bind (--strict), "
        "or skip that service (--lenient). Shutdown cleanup still removes the "
        "isolated path of a skipped service, even a file another process owns; "
        "combine with --no-cleanup to keep it.",
    ),
    no_cleanup: bool = typer.Option(
        False,
        "--no-cleanup",
        help="Leave isolated-side socket files in place on exit.",
    ),
    buffer_size: int = typer.Option(
        DEFAULT_BUFFER_SIZE,
        "--buffer-size",
        min=1,
        help="Bytes read per relay iteration in each direction.",
    ),
) -> None:
    """Relay each isolated socket to its raw socket until SIGINT/SIGTERM.

    Exit codes:
      0: Shut down after a signal
      1: Configuration could not be loaded
      3: A service failed to bind in strict mode
    """
    configure_global_logging(console)
    substitutions = parse_substitutions(define)
    relay_config = load_config_or_exit(config, console)

    settings = RelaySettings(
        strict=strict,
        cleanup=not no_cleanup,
        buffer_size=buffer_size,
    )
    _logger.debug(
        "cli.run_starting",
        sources=config,
        services=len(relay_config.services),
        strict=settings.strict,
        cleanup=settings.cleanup,
    )

    supervisor = Supervisor(relay_config, substitutions, settings)
    code = asyncio.run(supervisor.run())
    raise typer.Exit(code)
