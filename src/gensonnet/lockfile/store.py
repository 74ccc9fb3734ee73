"""Lockfile persistence: YAML load/save with schema-version gating.

Writes are atomic (temp file in the same directory, fsync, rename) and guarded
by a compare-and-swap on the store ``revision``: a save fails with
StoreConflictError when another process rewrote the lockfile after this store
was loaded. All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import importlib.metadata
import logging
import os
import tempfile
from dataclasses import asdict, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from gensonnet.lockfile.errors import StoreConflictError, StoreCorruptError, StoreNotFoundError
from gensonnet.lockfile.models import (
    SUPPORTED_SCHEMA_VERSIONS,
    FileRecord,
    FingerprintStore,
    RunStatistics,
    SourceRecord,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_LOCKFILE = Path("gensonnet.lock")


def tool_version() -> str:
    try:
        return importlib.metadata.version("gensonnet")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def new_store() -> FingerprintStore:
    """Return an empty store stamped with the running tool version."""
    return FingerprintStore(tool_version=tool_version())


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _ts(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def _parse_ts(value: Any) -> datetime:
    # Hand-edited files may carry unquoted timestamps that YAML already parsed.
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_document(store: FingerprintStore) -> dict[str, Any]:
    """Return the plain-dict form of *store* written to disk."""
    return {
        "schema_version": store.schema_version,
        "generated_at": _ts(store.generated_at),
        "tool_version": store.tool_version,
        "revision": store.revision,
        "sources": {
            sid: {
                "url": rec.url,
                "ref": rec.ref,
                "fingerprint": rec.fingerprint,
                "fetched_at": _ts(rec.fetched_at),
                "filters": list(rec.filters),
                "metadata": dict(rec.metadata),
            }
            for sid, rec in sorted(store.sources.items())
        },
        "files": {
            path: {
                "sha256": rec.sha256,
                "size": rec.size,
                "modified_at": _ts(rec.modified_at),
                "source_id": rec.source_id,
                "file_type": rec.file_type,
                "line_count": rec.line_count,
            }
            for path, rec in sorted(store.files.items())
        },
        "dependencies": {sid: list(deps) for sid, deps in sorted(store.dependencies.items())},
        "statistics": asdict(store.statistics),
    }


def from_document(data: Any) -> FingerprintStore:
    """Build a store from a parsed document.

    Raises:
        ValueError: If the schema version is unsupported.
        KeyError, TypeError: If the document does not have the expected shape.
    """
    if not isinstance(data, dict):
        raise TypeError("top-level value is not a mapping")

    version = str(data["schema_version"])
    if version not in SUPPORTED_SCHEMA_VERSIONS:
        raise ValueError(
            f"unsupported schema_version '{version}' "
            f"(supported: {', '.join(sorted(SUPPORTED_SCHEMA_VERSIONS))})"
        )

    sources = {
        str(sid): SourceRecord(
            url=str(raw["url"]),
            ref=str(raw["ref"]),
            fingerprint=str(raw["fingerprint"]),
            fetched_at=_parse_ts(raw["fetched_at"]),
            filters=[str(f) for f in raw.get("filters") or []],
            metadata=dict(raw.get("metadata") or {}),
        )
        for sid, raw in (data.get("sources") or {}).items()
    }
    files = {
        str(path): FileRecord(
            sha256=str(raw["sha256"]),
            size=int(raw["size"]),
            modified_at=_parse_ts(raw["modified_at"]),
            source_id=str(raw.get("source_id") or ""),
            file_type=raw.get("file_type"),
            line_count=raw.get("line_count"),
        )
        for path, raw in (data.get("files") or {}).items()
    }
    dependencies = {
        str(sid): [str(d) for d in deps or []]
        for sid, deps in (data.get("dependencies") or {}).items()
    }
    stats_raw = data.get("statistics") or {}
    statistics = RunStatistics(
        total_processing_time_ms=int(stats_raw.get("total_processing_time_ms", 0)),
        sources_processed=int(stats_raw.get("sources_processed", 0)),
        files_generated=int(stats_raw.get("files_generated", 0)),
        error_count=int(stats_raw.get("error_count", 0)),
        warning_count=int(stats_raw.get("warning_count", 0)),
        cache_hit_rate=float(stats_raw.get("cache_hit_rate", 0.0)),
    )

    return FingerprintStore(
        schema_version=version,
        generated_at=_parse_ts(data["generated_at"]),
        tool_version=str(data.get("tool_version", "")),
        revision=int(data.get("revision", 0)),
        sources=sources,
        files=files,
        dependencies=dependencies,
        statistics=statistics,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load(path: Path) -> FingerprintStore:
    """Load the lockfile at *path*.

    Raises:
        StoreNotFoundError: *path* does not exist (first run).
        StoreCorruptError: unparseable content, wrong shape or unsupported
            schema version. Never falls back to an empty store.
    """
    path = Path(path)
    if not path.exists():
        raise StoreNotFoundError(path)

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise StoreCorruptError(path, f"invalid YAML: {exc}") from exc

    try:
        store = from_document(data)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise StoreCorruptError(path, str(exc) or type(exc).__name__) from exc

    logger.debug(
        "loaded %s (revision %d, %d sources, %d files)",
        path,
        store.revision,
        len(store.sources),
        len(store.files),
    )
    return store


def load_or_create(path: Path) -> FingerprintStore:
    """Load *path*, or return a new empty store when it does not exist."""
    try:
        return load(path)
    except StoreNotFoundError:
        logger.info("no lockfile at %s, starting from an empty store", path)
        return new_store()


def _disk_revision(path: Path) -> int:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        return int(data.get("revision", 0))
    except (yaml.YAMLError, AttributeError, TypeError, ValueError) as exc:
        raise StoreCorruptError(path, "cannot read current revision") from exc


def save(path: Path, store: FingerprintStore, *, force: bool = False) -> None:
    """Atomically write *store* to *path*, replacing any existing file.

    On success ``store.revision`` is advanced to the revision written.

    The revision check and the final rename are separate steps and no lock is
    held between them, so two writers that both pass the check race and the
    later rename wins. The check catches a writer that finished before this
    save started, not one running concurrently with it.

    Args:
        path: Lockfile path. Parent directories are created if needed.
        store: Store to persist.
        force: Skip the revision check (overwrite whatever is on disk).

    Raises:
        StoreConflictError: The on-disk revision differs from ``store.revision``.
        StoreCorruptError: The existing file cannot be read to check its revision.
        OSError: The write itself failed; the previous file is left intact.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if not force and path.exists():
        found = _disk_revision(path)
        if found != store.revision:
            raise StoreConflictError(path, store.revision, found)

    written = replace(store, revision=store.revision + 1)
    content = yaml.safe_dump(to_document(written), sort_keys=False, allow_unicode=True)

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise

    store.revision = written.revision
    logger.debug("saved %s (revision %d)", path, store.revision)


def apply_update(
    store: FingerprintStore,
    sources: dict[str, SourceRecord],
    files: dict[str, FileRecord],
    *,
    dependencies: dict[str, list[str]] | None = None,
    statistics: RunStatistics | None = None,
) -> FingerprintStore:
    """Replace ``sources`` and ``files`` of *store* wholesale and stamp it.

    Ids and paths absent from the new maps disappear. ``dependencies`` and
    ``statistics`` are kept unless given.
    """
    store.sources = dict(sources)
    store.files = dict(files)
    if dependencies is not None:
        store.dependencies = {sid: list(deps) for sid, deps in dependencies.items()}
    if statistics is not None:
        store.statistics = statistics
    store.generated_at = utcnow()
    store.tool_version = tool_version()
    return store


def update(
    path: Path,
    sources: dict[str, SourceRecord],
    files: dict[str, FileRecord],
    *,
    dependencies: dict[str, list[str]] | None = None,
    statistics: RunStatistics | None = None,
) -> FingerprintStore:
    """Load-or-create *path*, apply the update and save.

    Returns:
        The store as written.
    """
    store = load_or_create(path)
    apply_update(store, sources, files, dependencies=dependencies, statistics=statistics)
    save(path, store)
    return store
