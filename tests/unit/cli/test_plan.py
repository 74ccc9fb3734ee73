"""Tests for gensonnet plan."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from gensonnet.cli.main import app
from gensonnet.fingerprints import FingerprintError
from gensonnet.lockfile import FingerprintStore, save

runner = CliRunner()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _in_project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)


def _write_config(tmp_path: Path, deps: dict[str, list[str]], names: list[str]) -> None:
    sources = [
        {
            "type": "openapi",
            "name": name,
            "git": {"url": f"https://github.com/example/{name}.git"},
            "depends_on": deps.get(name, []),
        }
        for name in names
    ]
    (tmp_path / "gensonnet.yaml").write_text(yaml.dump({"sources": sources}), encoding="utf-8")


def _write_fingerprints(tmp_path: Path, mapping: dict[str, str]) -> Path:
    path = tmp_path / "fingerprints.yaml"
    path.write_text(yaml.dump(mapping), encoding="utf-8")
    return path


def _ordered_rows(output: str, names: list[str]) -> list[str]:
    """Source names in the order their table rows appear."""
    found = []
    for line in output.splitlines():
        for name in names:
            if f" {name} " in line and name not in found:
                found.append(name)
    return found


# ---------------------------------------------------------------------------
# gensonnet plan
# ---------------------------------------------------------------------------


def test_plan_no_sources(tmp_path: Path) -> None:
    _write_config(tmp_path, {}, [])
    result = runner.invoke(app, ["plan"])
    assert result.exit_code == 0
    assert "No sources configured" in result.output


def test_plan_up_to_date(tmp_path: Path) -> None:
    _write_config(tmp_path, {}, ["api"])
    fps = _write_fingerprints(tmp_path, {"api": "v1"})
    runner.invoke(app, ["lock", "update", "--fingerprints", str(fps)])

    result = runner.invoke(app, ["plan", "--fingerprints", str(fps)])
    assert result.exit_code == 0
    assert "up to date" in result.output


def test_plan_single_changed_source(tmp_path: Path) -> None:
    _write_config(tmp_path, {}, ["api", "web"])
    fps = _write_fingerprints(tmp_path, {"api": "v1", "web": "w1"})
    runner.invoke(app, ["lock", "update", "--fingerprints", str(fps)])

    _write_fingerprints(tmp_path, {"api": "v2", "web": "w1"})
    result = runner.invoke(app, ["plan", "--fingerprints", str(fps)])
    assert result.exit_code == 0, result.output
    assert "Incremental regeneration" in result.output
    assert "changed" in result.output
    assert " web " not in result.output
    assert "50.0%" in result.output


def test_plan_orders_dependents_after_dependencies(tmp_path: Path) -> None:
    names = ["app", "base", "lib"]
    _write_config(tmp_path, {"lib": ["base"], "app": ["lib"]}, names)
    fps = _write_fingerprints(tmp_path, {"app": "1", "base": "1", "lib": "1"})
    runner.invoke(app, ["lock", "update", "--fingerprints", str(fps)])

    _write_fingerprints(tmp_path, {"app": "1", "base": "2", "lib": "1"})
    result = runner.invoke(app, ["plan", "--fingerprints", str(fps)])
    assert result.exit_code == 0, result.output
    assert _ordered_rows(result.output, names) == ["base", "lib", "app"]
    assert "dependent" in result.output


def test_plan_force_rebuilds_everything(tmp_path: Path) -> None:
    names = ["a", "b"]
    _write_config(tmp_path, {"a": ["b"]}, names)
    fps = _write_fingerprints(tmp_path, {"a": "1", "b": "1"})
    runner.invoke(app, ["lock", "update", "--fingerprints", str(fps)])

    result = runner.invoke(app, ["plan", "--force", "--fingerprints", str(fps)])
    assert result.exit_code == 0
    assert "--force" in result.output
    assert _ordered_rows(result.output, names) == ["b", "a"]


def test_plan_wide_fanout_falls_back_to_full(tmp_path: Path) -> None:
    names = ["a", "b", "c", "d", "e"]
    _write_config(tmp_path, {"b": ["a"], "c": ["a"], "d": ["a"]}, names)
    fps = _write_fingerprints(tmp_path, {n: "1" for n in names})
    runner.invoke(app, ["lock", "update", "--fingerprints", str(fps)])

    _write_fingerprints(tmp_path, {**{n: "1" for n in names}, "a": "2"})
    result = runner.invoke(app, ["plan", "--fingerprints", str(fps)])
    assert result.exit_code == 0
    assert "Full regeneration" in result.output
    assert _ordered_rows(result.output, names) == ["a", "b", "c", "d", "e"]
    assert "0.0%" in result.output


def test_plan_cycle_in_stored_dependencies_exits_1(tmp_path: Path) -> None:
    _write_config(tmp_path, {}, ["a", "b"])
    store = FingerprintStore()
    store.add_dependency("a", "b")
    store.add_dependency("b", "a")
    save(tmp_path / "gensonnet.lock", store)
    fps = _write_fingerprints(tmp_path, {"a": "1", "b": "1"})

    result = runner.invoke(app, ["plan", "--fingerprints", str(fps)])
    assert result.exit_code == 1
    assert "Circular dependency" in result.output


def test_plan_source_missing_from_fingerprints_file_is_unresolved(tmp_path: Path) -> None:
    _write_config(tmp_path, {}, ["api", "web"])
    fps = _write_fingerprints(tmp_path, {"api": "v1", "web": "w1"})
    runner.invoke(app, ["lock", "update", "--fingerprints", str(fps)])

    _write_fingerprints(tmp_path, {"api": "v1"})
    result = runner.invoke(app, ["plan", "--fingerprints", str(fps)])
    assert result.exit_code == 0, result.output
    assert "No current fingerprint for source 'web'" in result.output
    assert "unresolved" in result.output
    assert "up to date" not in result.output
    assert _ordered_rows(result.output, ["api", "web"]) == ["web"]


def test_plan_git_failure_counts_as_changed(tmp_path: Path) -> None:
    _write_config(tmp_path, {}, ["api"])
    fps = _write_fingerprints(tmp_path, {"api": "v1"})
    runner.invoke(app, ["lock", "update", "--fingerprints", str(fps)])

    with patch(
        "gensonnet.fingerprints.resolve_fingerprint",
        side_effect=FingerprintError("network unreachable"),
    ):
        result = runner.invoke(app, ["plan"])

    assert result.exit_code == 0, result.output
    assert "network unreachable" in result.output
    assert "unresolved" in result.output
    assert "up to date" not in result.output
