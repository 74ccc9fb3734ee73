"""Shared pytest fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from gensonnet.lockfile import FileRecord, FingerprintStore, SourceRecord

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the user's global config and GENSONNET_* env vars out of every test."""
    monkeypatch.setattr("gensonnet.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    monkeypatch.delenv("GENSONNET_LOCKFILE", raising=False)
    monkeypatch.delenv("GENSONNET_MAX_AGE_HOURS", raising=False)


def make_source(fingerprint: str = "sha-1", *, hours_ago: int = 0, url: str = "repo") -> SourceRecord:
    return SourceRecord(
        url=url,
        ref="main",
        fingerprint=fingerprint,
        fetched_at=NOW - timedelta(hours=hours_ago),
    )


def make_file(
    source_id: str = "", *, size: int = 2048, hours_ago: int = 0, sha256: str = "abc"
) -> FileRecord:
    return FileRecord(
        sha256=sha256,
        size=size,
        modified_at=NOW - timedelta(hours=hours_ago),
        source_id=source_id,
    )


@pytest.fixture
def chain_store() -> FingerprintStore:
    """A ← B ← C: B depends on A, C depends on B. One file per source."""
    store = FingerprintStore(generated_at=NOW)
    for sid in ("A", "B", "C"):
        store.add_source(sid, make_source(f"{sid}-1"))
        store.add_file(f"generated/{sid}.libsonnet", make_file(sid))
    store.add_dependency("B", "A")
    store.add_dependency("C", "B")
    return store
