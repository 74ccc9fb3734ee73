"""gensonnet configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (GENSONNET_LOCKFILE, GENSONNET_MAX_AGE_HOURS)
  3. Per-project gensonnet.yaml
  4. Global ~/.gensonnet/config.yaml  (generation/lockfile defaults only — no sources)
  5. Hardcoded defaults

Git URLs must not embed credentials; use the git credential helper instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import urllib.parse
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".gensonnet"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME: str = "gensonnet.yaml"

SOURCE_TYPES: frozenset[str] = frozenset(["crd", "go_ast", "openapi"])

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["version", "sources", "output", "generation", "lockfile"]
)

# Sections the global config may set; anything project-specific is rejected.
_GLOBAL_SECTIONS: frozenset[str] = frozenset(["generation", "lockfile"])

_ALLOWED_SCHEMES = {"https", "http", "ssh", "file"}
_GIT_SSH_PREFIX = "git@"

_NAME_RE: re.Pattern[str] = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class GitCfg:
    """Where a source lives (gensonnet.yaml: sources[].git:)."""

    url: str = ""
    ref: str = "main"


@dataclass
class SourceCfg:
    """A single configured schema source (gensonnet.yaml: sources[]).

    Attributes:
        type: 'crd', 'go_ast' or 'openapi'.
        name: Stable unique id; the lockfile keys this source by it.
        git: Repository URL (or local path) and ref.
        filters: CRD group/version filters (type: crd).
        include_patterns: Glob patterns of files to parse (go_ast, openapi).
        exclude_patterns: Glob patterns of files to skip (go_ast, openapi).
        output_path: Directory the generator writes this source's files to.
        depends_on: Sources whose change forces this one to rebuild.
    """

    type: str
    name: str
    git: GitCfg = field(default_factory=GitCfg)
    filters: list[str] = field(default_factory=list)
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)
    output_path: str = ""
    depends_on: list[str] = field(default_factory=list)

    @property
    def scope(self) -> list[str]:
        """Filter or include expressions recorded in the lockfile."""
        return list(self.filters) if self.type == "crd" else list(self.include_patterns)


@dataclass
class OutputCfg:
    """Generated output location (gensonnet.yaml: output:)."""

    base_path: str = "generated"


@dataclass
class GenerationCfg:
    """Generation run behaviour (gensonnet.yaml: generation:)."""

    fail_fast: bool = False
    max_workers: int = 4


@dataclass
class LockfileCfg:
    """Lockfile location and retention (gensonnet.yaml: lockfile:)."""

    path: str = "gensonnet.lock"
    max_age_hours: int = 168


@dataclass
class GensonnetConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    version: str = "1.0"
    sources: list[SourceCfg] = field(default_factory=list)
    output: OutputCfg = field(default_factory=OutputCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    lockfile: LockfileCfg = field(default_factory=LockfileCfg)

    def source(self, name: str) -> SourceCfg | None:
        for src in self.sources:
            if src.name == name:
                return src
        return None

    def dependencies(self) -> dict[str, list[str]]:
        """Dependency edges declared through ``depends_on``."""
        return {s.name: list(s.depends_on) for s in self.sources if s.depends_on}


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _validate_git_url(url: str, source_name: str) -> None:
    """Raise ConfigError for unsupported schemes or URLs carrying credentials."""
    if not url:
        raise ConfigError(f"Source '{source_name}' has no git.url.")
    if url.startswith(_GIT_SSH_PREFIX) or "://" not in url:
        return  # scp-style SSH or local path
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise ConfigError(
            f"Source '{source_name}' uses unsupported URL scheme '{parsed.scheme}'.\n"
            "  Allowed: https://, http://, ssh://, file://, git@, or a local path."
        )
    if parsed.password or (parsed.username and parsed.scheme in ("http", "https")):
        raise ConfigError(
            f"Source '{source_name}' embeds credentials in git.url.\n"
            "  Remove them and configure a git credential helper instead."
        )


def _validate_sources(sources: list[SourceCfg]) -> None:
    names: set[str] = set()
    for src in sources:
        if not src.name or not _NAME_RE.match(src.name):
            raise ConfigError(
                f"Invalid source name '{src.name}'. "
                "Use letters, digits, '.', '_' or '-' (e.g. my-crds)."
            )
        if src.name in names:
            raise ConfigError(f"Duplicate source name '{src.name}'.")
        names.add(src.name)
        if src.type not in SOURCE_TYPES:
            raise ConfigError(
                f"Source '{src.name}' has unknown type '{src.type}'. "
                f"Expected one of: {', '.join(sorted(SOURCE_TYPES))}."
            )
        _validate_git_url(src.git.url, src.name)

    for src in sources:
        for dep in src.depends_on:
            if dep == src.name:
                raise ConfigError(f"Source '{src.name}' cannot depend on itself.")
            if dep not in names:
                raise ConfigError(
                    f"Source '{src.name}' depends on unknown source '{dep}'."
                )


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _check_global_sections(data: dict[str, Any], source: Path) -> None:
    for key in data:
        if key in _KNOWN_SECTIONS and key not in _GLOBAL_SECTIONS:
            raise ConfigError(
                f"Global config '{source}' may not set '{key}'.\n"
                f"  Move it to the project's {PROJECT_CONFIG_NAME}."
            )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _str_list(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw]
    return [str(x) for x in raw]


def _parse_source(raw: dict[str, Any]) -> SourceCfg:
    git = raw.get("git") or {}
    return SourceCfg(
        type=str(raw.get("type", "")),
        name=str(raw.get("name", "")),
        git=GitCfg(
            url=str(git.get("url", "")),
            ref=str(git.get("ref") or "main"),
        ),
        filters=_str_list(raw.get("filters")),
        include_patterns=_str_list(raw.get("include_patterns")),
        exclude_patterns=_str_list(raw.get("exclude_patterns")),
        output_path=str(raw.get("output_path", "")),
        depends_on=_str_list(raw.get("depends_on")),
    )


def _cfg_from_dict(data: dict[str, Any]) -> GensonnetConfig:
    """Build a *GensonnetConfig* from a merged raw YAML dict."""
    cfg = GensonnetConfig()

    if "version" in data:
        cfg.version = str(data["version"])

    if "output" in data:
        o = data["output"] or {}
        cfg.output = OutputCfg(base_path=str(o.get("base_path", cfg.output.base_path)))

    if "sources" in data:
        raw_sources = data["sources"] or []
        if not isinstance(raw_sources, list):
            raise ConfigError("'sources' must be a list.")
        cfg.sources = [_parse_source(s) for s in raw_sources]
        for src in cfg.sources:
            if not src.output_path:
                src.output_path = str(Path(cfg.output.base_path) / src.name)

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            fail_fast=bool(g.get("fail_fast", cfg.generation.fail_fast)),
            max_workers=int(g.get("max_workers", cfg.generation.max_workers)),
        )

    if "lockfile" in data:
        lf = data["lockfile"] or {}
        cfg.lockfile = LockfileCfg(
            path=str(lf.get("path", cfg.lockfile.path)),
            max_age_hours=int(lf.get("max_age_hours", cfg.lockfile.max_age_hours)),
        )

    return cfg


def _apply_env_overrides(cfg: GensonnetConfig) -> GensonnetConfig:
    """Apply GENSONNET_* environment variable overrides (layer 2)."""
    if path := os.environ.get("GENSONNET_LOCKFILE"):
        cfg.lockfile.path = path
    if hours := os.environ.get("GENSONNET_MAX_AGE_HOURS"):
        try:
            cfg.lockfile.max_age_hours = int(hours)
        except ValueError:
            raise ConfigError(
                f"GENSONNET_MAX_AGE_HOURS must be an integer, got '{hours}'."
            ) from None
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    config_path: Path | None = None,
    global_config_path: Path | None = None,
) -> GensonnetConfig:
    """Load and return a merged *GensonnetConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *gensonnet.yaml*. Defaults to CWD.
        config_path: Explicit project config file (overrides the search).
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *GensonnetConfig* with env var overrides applied.

    Raises:
        ConfigError: On invalid sources, a malformed file, or a global config
            that sets project-only sections.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()
    project_cfg_path = config_path if config_path is not None else search_dir / PROJECT_CONFIG_NAME

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_global_sections(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)
    elif config_path is not None:
        raise ConfigError(f"Config file not found: '{config_path}'.")

    cfg = _cfg_from_dict(merged)
    _validate_sources(cfg.sources)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    return cfg


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file '{path}' is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")
    return data


def default_project_config() -> str:
    """Starter gensonnet.yaml written by ``gensonnet init``."""
    return (
        "# gensonnet project configuration.\n"
        "# Private repositories: configure a git credential helper and\n"
        "# never put tokens in git.url.\n"
        "\n"
        'version: "1.0"\n'
        "\n"
        "sources: []\n"
        "#  - type: crd\n"
        "#    name: my-crds\n"
        "#    git:\n"
        "#      url: https://github.com/example/repo.git\n"
        "#      ref: main\n"
        "#    filters:\n"
        "#      - example.com/v1\n"
        "#    output_path: generated/my-crds\n"
        "#    depends_on: []\n"
        "\n"
        "output:\n"
        "  base_path: generated\n"
        "\n"
        "generation:\n"
        "  fail_fast: false\n"
        "\n"
        "lockfile:\n"
        "  path: gensonnet.lock\n"
        "  max_age_hours: 168\n"
    )
