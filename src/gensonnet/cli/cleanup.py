"""gensonnet cleanup — evict stale lockfile entries.

Removes source records whose fingerprint was resolved, and file records whose
file was modified, more than ``--max-age`` whole hours ago. Dependencies and
run statistics are never touched.

Usage:
  gensonnet cleanup --dry-run
  gensonnet cleanup --max-age 72 --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from gensonnet.cli.context import DEFAULT_CONFIG, lockfile_path, open_config, open_store, write_store
from gensonnet.cli.errors import err_no_lockfile
from gensonnet.lockfile import SweepReport, collect_stale, sweep
from gensonnet.lockfile.models import utcnow

console = Console()


def cleanup_cmd(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help="Path to gensonnet.yaml."),
    ] = DEFAULT_CONFIG,
    lockfile: Annotated[
        Path | None,
        typer.Option("--lockfile", "-l", help="Lockfile path (default: from config)."),
    ] = None,
    max_age: Annotated[
        int | None,
        typer.Option(
            "--max-age",
            min=0,
            help="Maximum entry age in hours (default: lockfile.max_age_hours).",
        ),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show what would be removed without writing."),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove lockfile entries older than the retention window."""
    cfg = open_config(config)
    path = lockfile_path(cfg, lockfile)
    hours = max_age if max_age is not None else cfg.lockfile.max_age_hours

    if not path.exists():
        console.print(err_no_lockfile(str(path)))
        raise typer.Exit(0)

    store = open_store(path)
    now = utcnow()
    report = collect_stale(store, hours, now)

    if report.is_empty:
        console.print(f"[green]✓[/] No entries older than {hours}h. Nothing to clean up.")
        return

    _show_report(report)

    if dry_run:
        console.print("[dim]Dry run: lockfile not modified.[/]")
        return

    if not yes:
        if not typer.confirm("Remove these entries?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    if sweep(store, hours, now):
        write_store(path, store)

    console.print(
        f"[green]✓[/] Removed {len(report.stale_sources)} source(s) and "
        f"{len(report.stale_files)} file record(s) from {path}"
    )


def _show_report(report: SweepReport) -> None:
    console.print(f"\nEntries older than [bold]{report.max_age_hours}h[/]:")

    if report.stale_sources:
        table = Table(show_header=True, header_style="bold", title="Sources")
        table.add_column("Source", style="bold")
        table.add_column("Origin")
        table.add_column("Age", justify="right")
        for src in report.stale_sources:
            table.add_row(src.source_id, f"{src.url}@{src.ref}", f"{src.age_hours}h")
        console.print(table)

    if report.stale_files:
        table = Table(show_header=True, header_style="bold", title="Files")
        table.add_column("Path")
        table.add_column("Size", justify="right")
        table.add_column("Age", justify="right")
        for f in report.stale_files:
            table.add_row(f.path, _human_size(f.size), f"{f.age_hours}h")
        console.print(table)
        console.print(f"Total size of stale files: {_human_size(report.total_size_freed)}")


def _human_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KiB"
    return f"{size / (1024 * 1024):.1f} MiB"
