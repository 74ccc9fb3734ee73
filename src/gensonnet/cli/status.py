"""gensonnet status command.

Shows what the next generation run would do: changed and dependent sources,
whether incremental generation is possible, and last-run statistics.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gensonnet.cli.context import (
    DEFAULT_CONFIG,
    current_fingerprints,
    lockfile_path,
    merge_config_dependencies,
    open_config,
    open_store,
    unresolved_sources,
)
from gensonnet.lockfile import FingerprintStore, IncrementalPlan, changed_sources, plan

console = Console()


def status_cmd(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help="Path to gensonnet.yaml."),
    ] = DEFAULT_CONFIG,
    lockfile: Annotated[
        Path | None,
        typer.Option("--lockfile", "-l", help="Lockfile path (default: from config)."),
    ] = None,
    fingerprints: Annotated[
        Path | None,
        typer.Option(
            "--fingerprints",
            help="YAML map of source name → commit SHA (skips git resolution).",
        ),
    ] = None,
    detailed: Annotated[
        bool,
        typer.Option("--detailed", "-d", help="Show last-run statistics."),
    ] = False,
) -> None:
    """Show generation status and incremental generation information."""
    cfg = open_config(config)
    path = lockfile_path(cfg, lockfile)
    store = merge_config_dependencies(open_store(path), cfg)

    current = current_fingerprints(cfg, fingerprints)
    unresolved = unresolved_sources(cfg, current)
    result = plan(store, changed_sources(store, current) + unresolved)

    _show_status_panel(path, store, len(cfg.sources), result)

    if detailed:
        _show_statistics_panel(store)


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_status_panel(
    path: Path, store: FingerprintStore, configured: int, result: IncrementalPlan
) -> None:
    if path.exists() and store.sources:
        last = f"{store.generated_at:%Y-%m-%d %H:%M:%S} UTC"
    else:
        last = "[dim]never[/]"

    lines = [
        f"Last generation:     {last}",
        f"Tool version:        {store.tool_version}",
        f"Sources configured:  [bold]{configured}[/]",
    ]
    if result.changed_sources:
        lines.append(f"Changed sources:     {', '.join(result.changed_sources)}")
    else:
        lines.append("Changed sources:     [dim]none[/]")
    if result.dependent_sources:
        lines.append(f"Dependent sources:   {', '.join(result.dependent_sources)}")

    mode = "[green]possible[/]" if result.can_incremental else "[yellow]not possible[/]"
    lines.append(f"Incremental:         {mode}")
    lines.append(f"Estimated time:      {result.estimated_time_ms}ms")

    console.print(Panel("\n".join(lines), title="[bold]Generation Status[/]", expand=False))


def _show_statistics_panel(store: FingerprintStore) -> None:
    stats = store.statistics
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Total processing time", f"{stats.total_processing_time_ms}ms")
    table.add_row("Sources processed", str(stats.sources_processed))
    table.add_row("Files generated", str(stats.files_generated))
    table.add_row("Errors", str(stats.error_count))
    table.add_row("Warnings", str(stats.warning_count))
    table.add_row("Cache hit rate", f"{stats.cache_hit_rate * 100:.1f}%")
    console.print(Panel(table, title="[bold]Last Run[/]", expand=False))
