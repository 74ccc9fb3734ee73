"""Domain models for the gensonnet lockfile (fingerprint store)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

SCHEMA_VERSION = "1.0"
SUPPORTED_SCHEMA_VERSIONS: frozenset[str] = frozenset([SCHEMA_VERSION])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SourceRecord:
    """Last known state of one configured source.

    Replaced wholesale on each successful update; never partially mutated.

    Attributes:
        url: Origin locator (repository URL or local path).
        ref: Branch, tag or commit the source was resolved from.
        fingerprint: Resolved content fingerprint (e.g. commit SHA).
        fetched_at: When the fingerprint was resolved.
        filters: Filter / include expressions used to scope extraction.
        metadata: Free-form per-source counters and timings.
    """

    url: str
    ref: str
    fingerprint: str
    fetched_at: datetime = field(default_factory=utcnow)
    filters: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class FileRecord:
    """Checksum and provenance of one generated file.

    ``source_id`` names the source that generated the file. Records written by
    older tools may carry an empty owner; the planner treats those as owned by
    every source.
    """

    sha256: str
    size: int
    modified_at: datetime
    source_id: str = ""
    file_type: str | None = None
    line_count: int | None = None


@dataclass
class RunStatistics:
    """Aggregate counters from the last generation run."""

    total_processing_time_ms: int = 0
    sources_processed: int = 0
    files_generated: int = 0
    error_count: int = 0
    warning_count: int = 0
    cache_hit_rate: float = 0.0


@dataclass
class FingerprintStore:
    """Aggregate root persisted as the project lockfile.

    ``revision`` counts successful saves and lets ``save`` detect a concurrent
    writer (compare-and-swap against the on-disk revision).
    """

    schema_version: str = SCHEMA_VERSION
    generated_at: datetime = field(default_factory=utcnow)
    tool_version: str = "dev"
    revision: int = 0
    sources: dict[str, SourceRecord] = field(default_factory=dict)
    files: dict[str, FileRecord] = field(default_factory=dict)
    dependencies: dict[str, list[str]] = field(default_factory=dict)
    statistics: RunStatistics = field(default_factory=RunStatistics)

    def add_source(self, source_id: str, record: SourceRecord) -> None:
        self.sources[source_id] = record

    def add_file(self, path: str, record: FileRecord) -> None:
        self.files[path] = record

    def add_dependency(self, source_id: str, depends_on: str) -> None:
        """Record that *source_id* must be rebuilt whenever *depends_on* changes."""
        deps = self.dependencies.setdefault(source_id, [])
        if depends_on not in deps:
            deps.append(depends_on)


@dataclass
class IncrementalPlan:
    """Work plan computed from a store snapshot and a set of changed sources.

    Not persisted; recomputed on every invocation.
    """

    changed_sources: list[str]
    dependent_sources: list[str]
    files_to_regenerate: list[str]
    can_incremental: bool
    estimated_time_ms: int

    @property
    def total_sources(self) -> int:
        """Number of distinct sources to rebuild (changed ∪ dependents)."""
        return len(set(self.changed_sources) | set(self.dependent_sources))

    @property
    def total_files(self) -> int:
        return len(self.files_to_regenerate)

    @property
    def requires_full_regeneration(self) -> bool:
        return not self.can_incremental

    @property
    def sources_to_rebuild(self) -> list[str]:
        return sorted(set(self.changed_sources) | set(self.dependent_sources))
