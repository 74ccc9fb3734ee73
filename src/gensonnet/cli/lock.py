"""gensonnet lock CLI commands.

Commands:
  gensonnet lock status   — show what the lockfile records
  gensonnet lock update   — resolve current fingerprints, checksum outputs, rewrite the lockfile
"""

from __future__ import annotations

import time
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
    open_config,
    open_store,
    unresolved_sources,
    write_store,
)
from gensonnet.cli.errors import err_cycle, err_no_lockfile, err_no_sources, warn_dangling
from gensonnet.fingerprints import build_source_record, scan_outputs
from gensonnet.lockfile import (
    CycleError,
    DependencyGraph,
    RunStatistics,
    apply_update,
    cache_hit_rate,
    changed_sources,
    dangling_dependencies,
    plan,
)

console = Console()

lock_app = typer.Typer(
    name="lock",
    help="Inspect and update the lockfile (status, update).",
    add_completion=False,
)


@lock_app.command("status")
def lock_status_cmd(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help="Path to gensonnet.yaml."),
    ] = DEFAULT_CONFIG,
    lockfile: Annotated[
        Path | None,
        typer.Option("--lockfile", "-l", help="Lockfile path (default: from config)."),
    ] = None,
) -> None:
    """Show the sources, files and dependencies recorded in the lockfile."""
    cfg = open_config(config)
    path = lockfile_path(cfg, lockfile)

    if not path.exists():
        console.print(err_no_lockfile(str(path)))
        raise typer.Exit(0)

    store = open_store(path)

    lines = [
        f"Lockfile:      {path}",
        f"Generated:     {store.generated_at:%Y-%m-%d %H:%M:%S} UTC",
        f"Tool version:  {store.tool_version}",
        f"Revision:      {store.revision}",
        f"Sources: [bold]{len(store.sources)}[/]  |  "
        f"Files: [bold]{len(store.files)}[/]  |  "
        f"Dependencies: [bold]{sum(len(d) for d in store.dependencies.values())}[/]",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Lockfile[/]", expand=False))

    if store.sources:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Source", style="bold")
        table.add_column("Origin")
        table.add_column("Fingerprint", style="dim")
        table.add_column("Fetched", style="dim")
        for source_id in sorted(store.sources):
            rec = store.sources[source_id]
            table.add_row(
                source_id,
                f"{rec.url}@{rec.ref}",
                rec.fingerprint[:12],
                f"{rec.fetched_at:%Y-%m-%d %H:%M}",
            )
        console.print(table)

    dangling = dangling_dependencies(store)
    if dangling:
        console.print(warn_dangling(dangling))


@lock_app.command("update")
def lock_update_cmd(
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
) -> None:
    """Record current source fingerprints and generated file checksums."""
    started = time.monotonic()
    cfg = open_config(config)
    if not cfg.sources:
        console.print(err_no_sources())
        raise typer.Exit(0)

    path = lockfile_path(cfg, lockfile)
    store = open_store(path)

    dependencies = cfg.dependencies()
    graph = DependencyGraph(dependencies, [s.name for s in cfg.sources])
    try:
        graph.generation_order()
    except CycleError as exc:
        console.print(err_cycle(exc.source_id))
        raise typer.Exit(1)

    current = current_fingerprints(cfg, fingerprints)
    unresolved = unresolved_sources(cfg, current)
    changed = changed_sources(store, current)
    result = plan(store, changed + unresolved, graph)

    resolved = [s for s in cfg.sources if s.name in current]
    records = {s.name: build_source_record(s, current[s.name]) for s in resolved}
    files = scan_outputs(resolved, config.resolve().parent)

    # Unresolved sources keep whatever the lockfile already knew about them.
    kept = [sid for sid in unresolved if sid in store.sources]
    for sid in kept:
        records[sid] = store.sources[sid]
    for file_path, rec in store.files.items():
        if rec.source_id in unresolved:
            files.setdefault(file_path, rec)

    statistics = RunStatistics(
        total_processing_time_ms=int((time.monotonic() - started) * 1000),
        sources_processed=len(resolved),
        files_generated=len(files),
        error_count=0,
        warning_count=len(unresolved),
        cache_hit_rate=cache_hit_rate(result, len(cfg.sources)),
    )

    apply_update(store, records, files, dependencies=dependencies, statistics=statistics)
    write_store(path, store)

    console.print(f"[green]✓[/] Lockfile updated: {path}")
    console.print(f"  Sources: {len(records)}  |  Files: {len(files)}")
    if changed:
        console.print("  Changed sources:")
        for source_id in changed:
            console.print(f"    {source_id}: {current[source_id][:12]}")
    else:
        console.print("  [dim]No source changes since the last update.[/]")
    if kept:
        console.print(f"  [yellow]Kept previous records for:[/] {', '.join(kept)}")
