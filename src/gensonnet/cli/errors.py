"""gensonnet rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from gensonnet.cli.errors import err_cycle
    console.print(err_cycle(exc.source_id))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_lockfile(path: str) -> str:
    """No lockfile yet — first run."""
    return (
        f"[yellow]No lockfile found at '{path}'.[/]\n"
        "  Run:  gensonnet lock update"
    )


def err_lockfile_corrupt(path: str, reason: str) -> str:
    """Lockfile cannot be parsed or has an unsupported schema version."""
    return (
        f"[red]Error:[/] Lockfile '{path}' is corrupt or incompatible.\n"
        f"  Cause: {reason}\n"
        "  Restore it from version control, or delete it and run:\n"
        "    gensonnet lock update"
    )


def err_lockfile_conflict(path: str) -> str:
    """Another gensonnet run rewrote the lockfile during this one."""
    return (
        f"[red]Error:[/] Lockfile '{path}' was modified by another run.\n"
        "  Nothing was written. Re-run the command."
    )


def err_cycle(source_id: str) -> str:
    """Circular depends_on chain."""
    return (
        f"[red]Error:[/] Circular dependency involving source '{source_id}'.\n"
        "  Remove one of the depends_on entries on the cycle in gensonnet.yaml."
    )


def err_config(message: str) -> str:
    """Invalid gensonnet.yaml (message already names the fix)."""
    return f"[red]Error:[/] Invalid configuration.\n  {message}"


def err_no_sources() -> str:
    """Config has an empty sources: list."""
    return (
        "[yellow]No sources configured.[/]\n"
        "  Add at least one entry under 'sources:' in gensonnet.yaml, e.g.:\n"
        "    - type: crd\n"
        "      name: my-crds\n"
        "      git:\n"
        "        url: https://github.com/example/repo.git\n"
        "        ref: main"
    )


def err_fingerprint(message: str) -> str:
    """Source repository unreachable or ref missing."""
    return (
        f"[red]Error:[/] Cannot resolve current fingerprint: {message}\n"
        "  Check git.url and git.ref in gensonnet.yaml, or pass --fingerprints FILE."
    )


def err_fingerprints_file(path: str, message: str) -> str:
    """--fingerprints file missing or malformed."""
    return (
        f"[red]Error:[/] Cannot read fingerprints file '{path}': {message}\n"
        "  Expected a YAML mapping of source name to commit SHA."
    )


def err_save_failed(path: str, message: str) -> str:
    """Lockfile write failed."""
    return (
        f"[red]Error:[/] Could not write lockfile '{path}': {message}\n"
        "  The previous lockfile is unchanged. Check permissions and free space."
    )


def warn_dangling(edges: list[tuple[str, str]]) -> str:
    """depends_on edges pointing at sources missing from the lockfile."""
    lines = "\n".join(f"    {src} → {dep}" for src, dep in edges)
    return (
        "[yellow]⚠[/] Dependencies reference sources not in the lockfile:\n"
        f"{lines}\n"
        "  Run:  gensonnet lock update"
    )


def warn_unresolved(source_id: str, reason: str) -> str:
    """Configured source with no current fingerprint."""
    return (
        f"[yellow]⚠[/] No current fingerprint for source '{source_id}': {reason}\n"
        "  It is treated as changed; lock update keeps its previous record."
    )
