"""Tests for gensonnet init."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from gensonnet.cli.main import app
from gensonnet.config import load_config
from gensonnet.lockfile import load

runner = CliRunner()


def test_init_creates_config_and_lockfile(tmp_path: Path) -> None:
    result = runner.invoke(app, ["init", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "gensonnet.yaml").exists()

    store = load(tmp_path / "gensonnet.lock")
    assert store.revision == 1
    assert store.sources == {}


def test_init_config_is_loadable(tmp_path: Path) -> None:
    runner.invoke(app, ["init", str(tmp_path)])
    cfg = load_config(tmp_path)
    assert cfg.lockfile.path == "gensonnet.lock"


def test_init_creates_missing_directory(tmp_path: Path) -> None:
    target = tmp_path / "new" / "project"
    result = runner.invoke(app, ["init", str(target)])
    assert result.exit_code == 0
    assert (target / "gensonnet.yaml").exists()


def test_init_keeps_existing_config_when_declined(tmp_path: Path) -> None:
    config = tmp_path / "gensonnet.yaml"
    config.write_text("sources: []\n", encoding="utf-8")

    result = runner.invoke(app, ["init", str(tmp_path)], input="n\n")
    assert result.exit_code == 0
    assert "already exists" in result.output
    assert config.read_text(encoding="utf-8") == "sources: []\n"


def test_init_overwrites_existing_config_when_confirmed(tmp_path: Path) -> None:
    config = tmp_path / "gensonnet.yaml"
    config.write_text("sources: []\n", encoding="utf-8")

    runner.invoke(app, ["init", str(tmp_path)], input="y\n")
    assert "lockfile:" in config.read_text(encoding="utf-8")


def test_init_keeps_existing_lockfile(tmp_path: Path) -> None:
    runner.invoke(app, ["init", str(tmp_path)])
    runner.invoke(app, ["init", str(tmp_path)], input="n\n")
    assert load(tmp_path / "gensonnet.lock").revision == 1
