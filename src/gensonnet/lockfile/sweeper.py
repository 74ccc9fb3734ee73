"""Retention sweeper: age-based eviction of lockfile entries.

Only ``sources`` and ``files`` are swept. ``dependencies`` and ``statistics``
are never touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from gensonnet.lockfile.models import FingerprintStore, utcnow
from gensonnet.lockfile.staleness import age_hours, is_stale

logger = logging.getLogger(__name__)


@dataclass
class StaleSource:
    source_id: str
    url: str
    ref: str
    fetched_at: datetime
    age_hours: int


@dataclass
class StaleFile:
    path: str
    size: int
    modified_at: datetime
    age_hours: int


@dataclass
class SweepReport:
    """Entries a sweep removes (or would remove, in a dry run)."""

    max_age_hours: int
    stale_sources: list[StaleSource] = field(default_factory=list)
    stale_files: list[StaleFile] = field(default_factory=list)

    @property
    def total_size_freed(self) -> int:
        return sum(f.size for f in self.stale_files)

    @property
    def is_empty(self) -> bool:
        return not self.stale_sources and not self.stale_files


def collect_stale(
    store: FingerprintStore, max_age_hours: int, now: datetime | None = None
) -> SweepReport:
    """Return the entries of *store* older than *max_age_hours* without removing them."""
    now = now if now is not None else utcnow()
    report = SweepReport(max_age_hours=max_age_hours)

    for source_id in sorted(store.sources):
        record = store.sources[source_id]
        if is_stale(record.fetched_at, max_age_hours, now):
            report.stale_sources.append(
                StaleSource(
                    source_id=source_id,
                    url=record.url,
                    ref=record.ref,
                    fetched_at=record.fetched_at,
                    age_hours=age_hours(record.fetched_at, now),
                )
            )

    for path in sorted(store.files):
        record = store.files[path]
        if is_stale(record.modified_at, max_age_hours, now):
            report.stale_files.append(
                StaleFile(
                    path=path,
                    size=record.size,
                    modified_at=record.modified_at,
                    age_hours=age_hours(record.modified_at, now),
                )
            )

    return report


def sweep(store: FingerprintStore, max_age_hours: int, now: datetime | None = None) -> bool:
    """Remove stale source and file records from *store* in place.

    Returns:
        True if anything was removed. Callers persist the store only then.
    """
    now = now if now is not None else utcnow()

    stale_sources = [
        sid for sid, rec in store.sources.items() if is_stale(rec.fetched_at, max_age_hours, now)
    ]
    stale_files = [
        path for path, rec in store.files.items() if is_stale(rec.modified_at, max_age_hours, now)
    ]

    for sid in stale_sources:
        del store.sources[sid]
    for path in stale_files:
        del store.files[path]

    if stale_sources or stale_files:
        logger.info(
            "swept %d source(s) and %d file(s) older than %dh",
            len(stale_sources),
            len(stale_files),
            max_age_hours,
        )
        return True
    return False
