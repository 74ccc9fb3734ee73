"""Tests for gensonnet.lockfile.store (persistence, CAS, atomic writes)."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from conftest import NOW, make_file, make_source

from gensonnet.lockfile import (
    FingerprintStore,
    RunStatistics,
    StoreConflictError,
    StoreCorruptError,
    StoreNotFoundError,
    apply_update,
    load,
    load_or_create,
    new_store,
    save,
    update,
)
from gensonnet.lockfile.models import SCHEMA_VERSION
from gensonnet.lockfile.store import from_document, to_document

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _populated() -> FingerprintStore:
    store = FingerprintStore(generated_at=NOW, tool_version="1.2.3")
    src = make_source("abc123", url="https://github.com/example/crds.git")
    src.filters = ["example.com/v1"]
    src.metadata = {"crd_count": 4}
    store.add_source("crds", src)
    rec = make_file("crds", size=512)
    rec.file_type = "libsonnet"
    rec.line_count = 20
    store.add_file("generated/crds/main.libsonnet", rec)
    store.add_dependency("app", "crds")
    store.statistics = RunStatistics(
        total_processing_time_ms=1500,
        sources_processed=1,
        files_generated=1,
        cache_hit_rate=0.5,
    )
    return store


# ---------------------------------------------------------------------------
# Round-trip
# ---------------------------------------------------------------------------


def test_save_then_load_round_trips(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    store = _populated()
    save(path, store)

    loaded = load(path)
    assert loaded == store


def test_document_round_trip_in_memory() -> None:
    store = _populated()
    assert from_document(to_document(store)) == store


def test_timestamps_are_utc_strings(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    save(path, _populated())
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data["schema_version"] == SCHEMA_VERSION
    assert data["generated_at"] == "2024-06-01T12:00:00+00:00"
    assert data["sources"]["crds"]["fetched_at"].endswith("+00:00")


def test_naive_timestamps_read_as_utc() -> None:
    doc = to_document(_populated())
    doc["generated_at"] = "2024-06-01T12:00:00"
    assert from_document(doc).generated_at == datetime(2024, 6, 1, 12, tzinfo=timezone.utc)


def test_zulu_timestamps_read_as_utc(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    path.write_text(
        "schema_version: '1.0'\ngenerated_at: '2024-06-01T12:00:00Z'\n"
        "sources:\n  api:\n    url: repo\n    ref: main\n    fingerprint: v1\n"
        "    fetched_at: '2024-06-01T11:30:00Z'\n",
        encoding="utf-8",
    )
    store = load(path)
    assert store.generated_at == NOW
    assert store.sources["api"].fetched_at == datetime(2024, 6, 1, 11, 30, tzinfo=timezone.utc)


def test_empty_store_round_trips(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    store = new_store()
    save(path, store)
    assert load(path) == store


# ---------------------------------------------------------------------------
# Load failures
# ---------------------------------------------------------------------------


def test_load_missing_raises_not_found(tmp_path: Path) -> None:
    with pytest.raises(StoreNotFoundError):
        load(tmp_path / "missing.lock")


def test_load_or_create_missing_returns_empty(tmp_path: Path) -> None:
    store = load_or_create(tmp_path / "missing.lock")
    assert store.sources == {}
    assert store.files == {}
    assert store.revision == 0
    assert store.schema_version == SCHEMA_VERSION


def test_load_invalid_yaml_is_corrupt(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    path.write_text("sources: [unclosed\n", encoding="utf-8")
    with pytest.raises(StoreCorruptError):
        load(path)


def test_load_wrong_shape_is_corrupt(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(StoreCorruptError):
        load(path)


def test_load_missing_fields_is_corrupt(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    path.write_text(
        "schema_version: '1.0'\ngenerated_at: '2024-06-01T12:00:00+00:00'\n"
        "sources:\n  api:\n    ref: main\n",
        encoding="utf-8",
    )
    with pytest.raises(StoreCorruptError):
        load(path)


def test_load_unsupported_schema_version_is_corrupt(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    path.write_text(
        "schema_version: '9.9'\ngenerated_at: '2024-06-01T12:00:00+00:00'\n",
        encoding="utf-8",
    )
    with pytest.raises(StoreCorruptError) as exc_info:
        load(path)
    assert "9.9" in exc_info.value.reason


def test_load_or_create_does_not_hide_corruption(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    path.write_text("not: [valid", encoding="utf-8")
    with pytest.raises(StoreCorruptError):
        load_or_create(path)


# ---------------------------------------------------------------------------
# Revision compare-and-swap
# ---------------------------------------------------------------------------


def test_save_advances_revision(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    store = new_store()
    save(path, store)
    assert store.revision == 1
    save(path, store)
    assert store.revision == 2
    assert load(path).revision == 2


def test_concurrent_writer_is_detected(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    save(path, new_store())

    first = load(path)
    second = load(path)
    first.add_source("a", make_source())
    save(path, first)

    second.add_source("b", make_source())
    with pytest.raises(StoreConflictError) as exc_info:
        save(path, second)
    assert exc_info.value.expected == 1
    assert exc_info.value.found == 2
    assert sorted(load(path).sources) == ["a"]


def test_force_save_skips_revision_check(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    save(path, new_store())
    stale = FingerprintStore()
    save(path, stale, force=True)
    assert load(path).revision == 1


def test_save_creates_parent_directories(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "dir" / "gensonnet.lock"
    save(path, new_store())
    assert path.exists()


# ---------------------------------------------------------------------------
# Atomic write
# ---------------------------------------------------------------------------


def test_failed_write_keeps_previous_file(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    store = _populated()
    save(path, store)
    before = path.read_text(encoding="utf-8")

    store.add_source("other", make_source())
    with patch("gensonnet.lockfile.store.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            save(path, store)

    assert path.read_text(encoding="utf-8") == before
    assert store.revision == 1
    assert [p.name for p in tmp_path.iterdir()] == ["gensonnet.lock"]


def test_no_temp_files_left_after_save(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    save(path, _populated())
    assert os.listdir(tmp_path) == ["gensonnet.lock"]


# ---------------------------------------------------------------------------
# Wholesale update
# ---------------------------------------------------------------------------


def test_apply_update_replaces_sources_and_files() -> None:
    store = _populated()
    store.generated_at = NOW
    apply_update(store, {"new": make_source("n1")}, {"out/new.libsonnet": make_file("new")})

    assert list(store.sources) == ["new"]
    assert list(store.files) == ["out/new.libsonnet"]
    assert store.dependencies == {"app": ["crds"]}
    assert store.statistics.sources_processed == 1
    assert store.generated_at > NOW


def test_apply_update_with_dependencies_and_statistics() -> None:
    store = _populated()
    stats = RunStatistics(error_count=2)
    apply_update(store, {}, {}, dependencies={"b": ["a"]}, statistics=stats)
    assert store.dependencies == {"b": ["a"]}
    assert store.statistics == stats


def test_update_creates_and_replaces(tmp_path: Path) -> None:
    path = tmp_path / "gensonnet.lock"
    update(path, {"a": make_source("1"), "b": make_source("1")}, {})
    written = update(path, {"a": make_source("2")}, {})

    loaded = load(path)
    assert sorted(loaded.sources) == ["a"]
    assert loaded.sources["a"].fingerprint == "2"
    assert loaded.revision == written.revision == 2
