"""Rich output for the isolator CLI."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.table import Table

# Diagnostics go to stderr so stdout stays clean for --json output.
console = Console(stderr=True)
stdout_console = Console()


@dataclass(frozen=True)
class ServiceReport:
    """Resolved view of one configured service, for ``isolator check``."""

    index: int
    name: str | None
    raw_path: Path
    isolated_path: Path
    raw_present: bool
    isolated_free: bool
    duplicate: bool

    @property
    def ok(self) -> bool:
        return self.isolated_free and not self.duplicate

    def to_dict(self) -> dict[str, object]:
        return {
            "index": self.index,
            "name": self.name,
            "raw_path": str(self.raw_path),
            "isolated_path": str(self.isolated_path),
            "raw_present": self.raw_present,
            "isolated_free": self.isolated_free,
            "duplicate": self.duplicate,
        }


def _mark(value: bool, good: str = "yes", bad: str = "no") -> str:
    return f"[green]{good}[/green]" if value else f"[red]{bad}[/red]"


def build_services_table(reports: list[ServiceReport]) -> Table:
    """Table of resolved services with bind/connect readiness."""
    table = Table(title="Services", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Name")
    table.add_column("Raw path")
    table.add_column("Isolated path")
    table.add_column("Raw present", justify="center")
    table.add_column("Isolated free", justify="center")

    for report in reports:
        free = _mark(report.isolated_free)
        if report.duplicate:
            free = "[red]duplicate[/red]"
        table.add_row(
            str(report.index),
            report.name or "[dim]-[/dim]",
            str(report.raw_path),
            str(report.isolated_path),
            # A missing raw socket is fine at startup, so not red.
            "[green]yes[/green]" if report.raw_present else "[yellow]no[/yellow]",
            free,
        )
    return table


__all__ = ["ServiceReport", "build_services_table", "console", "stdout_console"]
