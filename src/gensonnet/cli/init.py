"""gensonnet init — scaffold a project.

Creates:
  gensonnet.yaml   — project config with a commented source template
  gensonnet.lock   — empty lockfile (revision 1)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from gensonnet.cli.context import write_store
from gensonnet.config import PROJECT_CONFIG_NAME, default_project_config
from gensonnet.lockfile import DEFAULT_LOCKFILE, new_store

console = Console()

_DEFAULT_PROJECT_DIR = Path(".")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
) -> None:
    """Create gensonnet.yaml and an empty lockfile."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    config_path = project_dir / PROJECT_CONFIG_NAME
    write_config = True
    if config_path.exists():
        console.print(f"[yellow]⚠[/]  {config_path} already exists.")
        write_config = typer.confirm("Overwrite it?", default=False)

    if write_config:
        config_path.write_text(default_project_config(), encoding="utf-8")
        console.print(f"  [green]✓[/] {PROJECT_CONFIG_NAME}")
    else:
        console.print(f"  [dim]-[/] {PROJECT_CONFIG_NAME} (kept)")

    lock_path = project_dir / DEFAULT_LOCKFILE
    if lock_path.exists():
        console.print(f"  [dim]-[/] {DEFAULT_LOCKFILE} (kept)")
    else:
        write_store(lock_path, new_store())
        console.print(f"  [green]✓[/] {DEFAULT_LOCKFILE}")

    console.print(f"\n[bold green]✓ Project initialized in {project_dir}.[/]")
    console.print("\nNext steps:")
    console.print(f"  1. Add sources to {PROJECT_CONFIG_NAME}")
    console.print("  2. gensonnet lock update      (record current fingerprints)")
    console.print("  3. gensonnet plan             (see what needs regenerating)")
