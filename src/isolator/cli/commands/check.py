"""``isolator check`` - resolve the configuration without binding anything."""

from __future__ import annotations

import json
import os
from collections import Counter
from pathlib import Path

import typer

from isolator.core.config import RelayConfig
from isolator.core.constants import EXIT_CONFIG_ERROR, EXIT_OK
from isolator.core.templates import Substitution

from ..helpers import configure_global_logging, load_config_or_exit, parse_substitutions
from ..output import ServiceReport, build_services_table, console, stdout_console


def build_reports(
    relay_config: RelayConfig,
    substitutions: list[Substitution],
) -> list[ServiceReport]:
    """Resolve every service and probe its paths."""
    resolved = [
        (spec, spec.raw_path_in(substitutions), spec.isolated_path_in(substitutions))
        for spec in relay_config.services
    ]
    counts = Counter(isolated for _, _, isolated in resolved)
    seen: set[Path] = set()
    reports: list[ServiceReport] = []
    for index, (spec, raw, isolated) in enumerate(resolved):
        # The first service wins a colliding path; later ones would fail to bind.
        duplicate = counts[isolated] > 1 and isolated in seen
        seen.add(isolated)
        reports.append(
            ServiceReport(
                index=index,
                name=spec.name,
                raw_path=raw,
                isolated_path=isolated,
                raw_present=raw.is_socket(),
                # lexists: a dangling symlink still makes bind() fail.
                isolated_free=not os.path.lexists(isolated) and isolated.parent.is_dir(),
                duplicate=duplicate,
            )
        )
    return reports


def check(
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
        help="Substitution NAME=VALUE, applied in order.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Print the resolved services as JSON",
    ),
) -> None:
    """Show resolved paths and whether every service could bind.

    Exit codes:
      0: Every isolated path is free and unique
      1: Configuration invalid, or an isolated path is taken or duplicated
    """
    configure_global_logging(console)
    substitutions = parse_substitutions(define)
    relay_config = load_config_or_exit(config, console)
    reports = build_reports(relay_config, substitutions)
    ok = all(report.ok for report in reports)

    if json_output:
        stdout_console.print_json(
            json.dumps({"ok": ok, "services": [r.to_dict() for r in reports]})
        )
    else:
        stdout_console.print(build_services_table(reports))
        if ok:
            stdout_console.print(f"[green]✓[/green] {len(reports)} service(s) ready to bind")
        else:
            stdout_console.print("[red]✗[/red] Some isolated paths cannot be bound")

    raise typer.Exit(EXIT_OK if ok else EXIT_CONFIG_ERROR)
