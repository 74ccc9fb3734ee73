"""Tests for gensonnet.lockfile.staleness."""

from __future__ import annotations

from datetime import timedelta

from conftest import NOW, make_file, make_source

from gensonnet.lockfile import (
    FingerprintStore,
    changed_sources,
    file_changed,
    is_stale,
    needs_regeneration,
    source_changed,
)
from gensonnet.lockfile.staleness import age_hours


def _store() -> FingerprintStore:
    store = FingerprintStore(generated_at=NOW)
    store.add_source("api", make_source("abc123"))
    store.add_file("out/api.libsonnet", make_file("api", sha256="deadbeef"))
    return store


# ---------------------------------------------------------------------------
# source_changed / file_changed
# ---------------------------------------------------------------------------


def test_source_unchanged_when_fingerprint_equal() -> None:
    assert source_changed(_store(), "api", "abc123") is False


def test_source_changed_when_fingerprint_differs() -> None:
    assert source_changed(_store(), "api", "def456") is True


def test_unknown_source_is_always_changed() -> None:
    assert source_changed(_store(), "unknown", "abc123") is True
    assert source_changed(FingerprintStore(), "api", "") is True


def test_fingerprint_comparison_is_exact() -> None:
    assert source_changed(_store(), "api", "ABC123") is True
    assert source_changed(_store(), "api", "abc123 ") is True


def test_file_changed() -> None:
    store = _store()
    assert file_changed(store, "out/api.libsonnet", "deadbeef") is False
    assert file_changed(store, "out/api.libsonnet", "cafebabe") is True
    assert file_changed(store, "out/other.libsonnet", "deadbeef") is True


def test_changed_sources_sorted_and_filtered() -> None:
    store = _store()
    store.add_source("base", make_source("b1"))
    current = {"zeta": "z1", "api": "abc123", "base": "b2"}
    assert changed_sources(store, current) == ["base", "zeta"]


def test_needs_regeneration() -> None:
    store = _store()
    assert needs_regeneration(store, {"api": "abc123"}) is False
    assert needs_regeneration(store, {"api": "other"}) is True
    assert needs_regeneration(store, {}) is False


# ---------------------------------------------------------------------------
# Age
# ---------------------------------------------------------------------------


def test_age_hours_truncates() -> None:
    assert age_hours(NOW - timedelta(hours=2, minutes=59), NOW) == 2
    assert age_hours(NOW - timedelta(hours=3), NOW) == 3


def test_is_stale_boundary() -> None:
    """An entry exactly at the limit is kept; one hour more is stale."""
    assert is_stale(NOW - timedelta(hours=24), 24, NOW) is False
    assert is_stale(NOW - timedelta(hours=24, minutes=59), 24, NOW) is False
    assert is_stale(NOW - timedelta(hours=25), 24, NOW) is True


def test_future_timestamp_is_never_stale() -> None:
    assert is_stale(NOW + timedelta(hours=5), 0, NOW) is False
