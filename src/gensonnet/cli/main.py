"""gensonnet CLI entry point."""

from __future__ import annotations

from typing import Annotated

import typer

from gensonnet.cli.cleanup import cleanup_cmd
from gensonnet.cli.init import init_cmd
from gensonnet.cli.lock import lock_app
from gensonnet.cli.plan import plan_cmd
from gensonnet.cli.status import status_cmd
from gensonnet.lockfile.store import tool_version
from gensonnet.logging import configure_logging


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"gensonnet {tool_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="gensonnet",
    help=(
        "gensonnet — incremental build planner for schema-to-code generation.\n\n"
        "  gensonnet lock update  Record current source fingerprints and output checksums.\n"
        "  gensonnet plan         Show what the next run regenerates, in order."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging on stderr."),
    ] = False,
) -> None:
    """gensonnet — incremental build planner for schema-to-code generation."""
    configure_logging(verbose=verbose)


app.command("init")(init_cmd)
app.command("status")(status_cmd)
app.command("plan")(plan_cmd)
app.command("cleanup")(cleanup_cmd)
app.add_typer(lock_app, name="lock")


@app.command("version")
def version_cmd() -> None:
    """Show the installed gensonnet version."""
    typer.echo(f"gensonnet {tool_version()}")


if __name__ == "__main__":
    app()
