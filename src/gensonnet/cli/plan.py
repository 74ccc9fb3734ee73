"""gensonnet plan — show which sources the next run rebuilds, in generation order.

Usage:
  gensonnet plan
  gensonnet plan --force
  gensonnet plan --fingerprints fingerprints.yaml
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
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
from gensonnet.cli.errors import err_cycle, err_no_sources
from gensonnet.lockfile import (
    CycleError,
    DependencyGraph,
    cache_hit_rate,
    changed_sources,
    plan,
)
from gensonnet.logging import get_logger

console = Console()
logger = get_logger("cli.plan")


def plan_cmd(
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
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Plan a full rebuild of every source."),
    ] = False,
) -> None:
    """Show the sources and files the next generation run would rebuild."""
    cfg = open_config(config)
    if not cfg.sources:
        console.print(err_no_sources())
        raise typer.Exit(0)

    path = lockfile_path(cfg, lockfile)
    store = merge_config_dependencies(open_store(path), cfg)
    graph = DependencyGraph.from_store(store)

    current = current_fingerprints(cfg, fingerprints)
    unresolved = unresolved_sources(cfg, current)
    result = plan(store, changed_sources(store, current) + unresolved, graph)

    full = force or result.requires_full_regeneration
    if full:
        work = [s.name for s in cfg.sources]
    else:
        work = result.sources_to_rebuild

    try:
        ordered = graph.order_subset(work)
    except CycleError as exc:
        console.print(err_cycle(exc.source_id))
        raise typer.Exit(1)

    logger.debug("work list (%s): %s", "full" if full else "incremental", ordered)

    if not ordered:
        console.print("[green]✓[/] Everything is up to date. Nothing to regenerate.")
        return

    if force:
        console.print("[bold]Full regeneration[/] (--force)")
    elif full:
        console.print(
            f"[yellow]Full regeneration[/]: {len(result.dependent_sources)} dependent(s) "
            f"for {len(result.changed_sources)} changed source(s) is too wide for an "
            "incremental run."
        )
    else:
        console.print("[bold]Incremental regeneration[/]")

    changed = set(result.changed_sources)
    dependent = set(result.dependent_sources)
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Source", style="bold")
    table.add_column("Reason")
    for position, source_id in enumerate(ordered, start=1):
        if source_id in unresolved:
            reason = "[yellow]unresolved[/]"
        elif source_id in changed:
            reason = "[yellow]changed[/]"
        elif source_id in dependent:
            reason = "dependent"
        else:
            reason = "[dim]full rebuild[/]"
        table.add_row(str(position), source_id, reason)
    console.print(table)

    if result.files_to_regenerate:
        console.print(f"\nFiles to regenerate ({result.total_files}):")
        for file_path in result.files_to_regenerate:
            console.print(f"  {file_path}")

    hit_rate = 0.0 if full else cache_hit_rate(result, len(cfg.sources))
    console.print(
        f"\nEstimated time: {result.estimated_time_ms}ms  |  "
        f"Cache hit rate: {hit_rate * 100:.1f}%"
    )
