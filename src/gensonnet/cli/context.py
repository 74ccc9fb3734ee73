"""Shared command plumbing: config, lockfile and fingerprint loading.

Each helper prints an actionable message and raises typer.Exit(1) on failure,
so commands stay linear.
"""

from __future__ import annotations

from pathlib import Path

import typer
import yaml
from rich.console import Console

from gensonnet.cli.errors import (
    err_config,
    err_fingerprint,
    err_fingerprints_file,
    err_lockfile_conflict,
    err_lockfile_corrupt,
    err_save_failed,
    warn_unresolved,
)
from gensonnet.config import PROJECT_CONFIG_NAME, ConfigError, GensonnetConfig, load_config
from gensonnet.fingerprints import FingerprintError, resolve_fingerprints
from gensonnet.lockfile import (
    FingerprintStore,
    StoreConflictError,
    StoreCorruptError,
    load_or_create,
    save,
)

console = Console()

DEFAULT_CONFIG = Path(PROJECT_CONFIG_NAME)


def open_config(config: Path) -> GensonnetConfig:
    """Load gensonnet.yaml (plus global/env layers). A missing file yields defaults."""
    try:
        return load_config(config.parent, config_path=config if config.exists() else None)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)


def lockfile_path(cfg: GensonnetConfig, override: Path | None) -> Path:
    return override if override is not None else Path(cfg.lockfile.path)


def open_store(path: Path) -> FingerprintStore:
    """Load the lockfile, or an empty store on first run. Corrupt files are fatal."""
    try:
        return load_or_create(path)
    except StoreCorruptError as exc:
        console.print(err_lockfile_corrupt(str(path), exc.reason))
        raise typer.Exit(1)


def merge_config_dependencies(store: FingerprintStore, cfg: GensonnetConfig) -> FingerprintStore:
    """Add the config's depends_on edges to the in-memory *store*."""
    for source_id, deps in cfg.dependencies().items():
        for dep in deps:
            store.add_dependency(source_id, dep)
    return store


def write_store(path: Path, store: FingerprintStore) -> None:
    try:
        save(path, store)
    except StoreConflictError:
        console.print(err_lockfile_conflict(str(path)))
        raise typer.Exit(1)
    except StoreCorruptError as exc:
        console.print(err_lockfile_corrupt(str(path), exc.reason))
        raise typer.Exit(1)
    except OSError as exc:
        console.print(err_save_failed(str(path), exc.strerror or str(exc)))
        raise typer.Exit(1)


def read_fingerprints_file(path: Path) -> dict[str, str]:
    """Read a YAML ``{source: sha}`` mapping (offline / CI override)."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except OSError as exc:
        console.print(err_fingerprints_file(str(path), exc.strerror or str(exc)))
        raise typer.Exit(1)
    except yaml.YAMLError as exc:
        console.print(err_fingerprints_file(str(path), f"invalid YAML: {exc}"))
        raise typer.Exit(1)
    if not isinstance(data, dict):
        console.print(err_fingerprints_file(str(path), "not a mapping"))
        raise typer.Exit(1)
    return {str(k): str(v) for k, v in data.items()}


def current_fingerprints(
    cfg: GensonnetConfig, fingerprints_file: Path | None
) -> dict[str, str]:
    """Return source id → current fingerprint for every configured source.

    Sources that cannot be resolved (git failure, or not listed in the
    fingerprints file) are reported and left out of the map, unless
    ``generation.fail_fast`` is set, in which case a git failure exits.
    Callers pick them up again through unresolved_sources().
    """
    if fingerprints_file is not None:
        given = read_fingerprints_file(fingerprints_file)
        fingerprints = {s.name: given[s.name] for s in cfg.sources if s.name in given}
        for src in cfg.sources:
            if src.name not in given:
                console.print(warn_unresolved(src.name, f"not listed in {fingerprints_file}"))
        return fingerprints

    try:
        fingerprints, failures = resolve_fingerprints(
            cfg.sources, fail_fast=cfg.generation.fail_fast
        )
    except FingerprintError as exc:
        console.print(err_fingerprint(str(exc)))
        raise typer.Exit(1)

    for name, message in failures.items():
        console.print(warn_unresolved(name, message))
    return fingerprints


def unresolved_sources(cfg: GensonnetConfig, current: dict[str, str]) -> list[str]:
    """Configured sources missing from *current*. They must count as changed."""
    return sorted(s.name for s in cfg.sources if s.name not in current)
