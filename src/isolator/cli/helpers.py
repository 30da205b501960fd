"""Shared utilities for isolator CLI commands.

- Logging options collected by the global callback
- ``-D NAME=VALUE`` parsing
- Configuration loading with CLI-friendly failure
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console

from isolator.core.config import RelayConfig, load_config
from isolator.core.constants import EXIT_CONFIG_ERROR
from isolator.core.exceptions import ConfigError
from isolator.core.logging import LogFormat, LogLevel, configure_logging
from isolator.core.templates import Substitution, parse_substitution


# =============================================================================
# Logging configuration
# =============================================================================


@dataclass
class CliLoggingConfig:
    """Logging options gathered from global CLI flags."""

    level: LogLevel = "INFO"
    file: Path | None = None
    format: LogFormat = "console"
    configured: bool = False


_log_config = CliLoggingConfig()


def set_log_level(level: str) -> None:
    """Set the log level (DEBUG, INFO, WARNING, ERROR)."""
    _log_config.level = level.upper()  # type: ignore[assignment]


def set_log_file(path: Path | None) -> None:
    """Send JSON log lines to ``path``; console output on stderr continues."""
    _log_config.file = path
    if path is not None:
        _log_config.format = "both"


def set_log_format(fmt: str) -> None:
    """Set the log format (json, console, both)."""
    _log_config.format = fmt  # type: ignore[assignment]


def reset_logging_options() -> None:
    """Restore defaults; used between test invocations."""
    global _log_config
    _log_config = CliLoggingConfig()


def configure_global_logging(console: Console) -> None:
    """Apply the collected logging options once per process.

    Raises:
        typer.Exit: If the options are inconsistent.
    """
    if _log_config.configured:
        return
    try:
        configure_logging(
            level=_log_config.level,
            format=_log_config.format,
            file_path=_log_config.file,
        )
    except (ValueError, AttributeError, OSError) as e:
        console.print(f"[red]Invalid logging options:[/red] {e}", soft_wrap=True)
        raise typer.Exit(EXIT_CONFIG_ERROR) from None
    _log_config.configured = True


# =============================================================================
# Argument helpers
# =============================================================================


def parse_substitutions(raw_pairs: list[str] | None) -> list[Substitution]:
    """Parse repeated ``-D NAME=VALUE`` options, keeping their order.

    Raises:
        typer.BadParameter: On a malformed pair.
    """
    pairs: list[Substitution] = []
    for raw in raw_pairs or []:
        try:
            pairs.append(parse_substitution(raw))
        except ValueError as e:
            raise typer.BadParameter(str(e), param_hint="'-D'") from None
    return pairs


def load_config_or_exit(sources: list[str], console: Console) -> RelayConfig:
    """Load configuration, exiting with ``EXIT_CONFIG_ERROR`` on failure."""
    try:
        return load_config(sources)
    except ConfigError as e:
        console.print(f"[red]Failed to read the configuration:[/red] {e}", soft_wrap=True)
        raise typer.Exit(EXIT_CONFIG_ERROR) from None


__all__ = [
    "CliLoggingConfig",
    "configure_global_logging",
    "load_config_or_exit",
    "parse_substitutions",
    "reset_logging_options",
    "set_log_file",
    "set_log_format",
    "set_log_level",
]
