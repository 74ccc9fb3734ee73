"""Staleness detection: pure comparisons against a loaded store snapshot."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from gensonnet.lockfile.models import FingerprintStore, utcnow


def source_changed(store: FingerprintStore, source_id: str, current_fingerprint: str) -> bool:
    """Return True if *source_id* is unknown or its fingerprint differs.

    Fingerprints are opaque strings; only equality is checked.
    """
    record = store.sources.get(source_id)
    if record is None:
        return True
    return record.fingerprint != current_fingerprint


def file_changed(store: FingerprintStore, path: str, current_checksum: str) -> bool:
    """Return True if *path* is unknown or its stored checksum differs."""
    record = store.files.get(path)
    if record is None:
        return True
    return record.sha256 != current_checksum


def age_hours(timestamp: datetime, now: datetime | None = None) -> int:
    """Whole hours elapsed since *timestamp*, truncated toward zero."""
    now = now if now is not None else utcnow()
    return int((now - timestamp).total_seconds() / 3600)


def is_stale(timestamp: datetime, max_age_hours: int, now: datetime | None = None) -> bool:
    """Return True if *timestamp* is more than *max_age_hours* whole hours old.

    A record exactly at the boundary is not stale.
    """
    return age_hours(timestamp, now) > max_age_hours


def changed_sources(store: FingerprintStore, current: Mapping[str, str]) -> list[str]:
    """Return the sorted ids in *current* whose fingerprint changed."""
    return sorted(
        source_id
        for source_id, fingerprint in current.items()
        if source_changed(store, source_id, fingerprint)
    )


def needs_regeneration(store: FingerprintStore, current: Mapping[str, str]) -> bool:
    """Return True if any source in *current* changed since the last run."""
    return any(
        source_changed(store, source_id, fingerprint)
        for source_id, fingerprint in current.items()
    )
