"""Current-state inputs for the planner: source fingerprints and file checksums.

Source fingerprints are commit SHAs:
- local repository path → ``git rev-parse <ref>``
- remote URL (https://, http://, ssh://, file://, git@) → ``git ls-remote <url> <ref>``

All git calls use shell=False. Credentials are stripped from any URL that
ends up in a log line or exception message.
"""

from __future__ import annotations

import hashlib
import re
import subprocess
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from gensonnet.config import SourceCfg
from gensonnet.lockfile.models import FileRecord, SourceRecord, utcnow
from gensonnet.logging import get_logger

logger = get_logger("fingerprints")

_GIT_SSH_PREFIX = "git@"
_CRED_RE = re.compile(r"(https?://)([^@/]+@)", re.IGNORECASE)
_SHA_RE = re.compile(r"^[0-9a-f]{40}([0-9a-f]{24})?$")

_HASH_CHUNK = 1 << 16


class FingerprintError(RuntimeError):
    """Raised when a source's current fingerprint cannot be resolved."""


def _sanitise_url(url: str) -> str:
    """Remove embedded credentials from a URL for safe logging / error messages."""
    return _CRED_RE.sub(r"\1***@", url)


def _is_remote(url: str) -> bool:
    return "://" in url or url.startswith(_GIT_SSH_PREFIX)


# ------------------------------------------------------------------
# Source fingerprints
# ------------------------------------------------------------------


def _run_git(args: list[str], cwd: str | None = None) -> str:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            shell=False,
            check=True,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        raise FingerprintError("git executable not found on PATH") from None
    except subprocess.CalledProcessError as exc:
        stderr_safe = _sanitise_url((exc.stderr or "").strip())
        raise FingerprintError(f"git {args[0]} failed: {stderr_safe}") from None
    return result.stdout


def _resolve_local(path: str, ref: str) -> str:
    repo = Path(path).resolve()
    if not repo.is_dir():
        raise FingerprintError(f"Repository path does not exist: {path}")
    return _run_git(["rev-parse", "--verify", f"{ref}^{{commit}}"], cwd=str(repo)).strip()


def _resolve_remote(url: str, ref: str) -> str:
    if _SHA_RE.match(ref):
        return ref
    output = _run_git(["ls-remote", "--", url, ref])
    candidates: dict[str, str] = {}
    for line in output.splitlines():
        sha, _, name = line.partition("\t")
        if sha and name:
            candidates[name.strip()] = sha.strip()
    # Prefer the peeled commit of an annotated tag, then exact branch/tag names.
    for name in (f"refs/tags/{ref}^{{}}", f"refs/heads/{ref}", f"refs/tags/{ref}", ref):
        if name in candidates:
            return candidates[name]
    if len(candidates) == 1:
        return next(iter(candidates.values()))
    raise FingerprintError(f"ref '{ref}' not found in {_sanitise_url(url)}")


def resolve_fingerprint(source: SourceCfg) -> str:
    """Return the commit SHA *source* currently points at.

    Raises:
        FingerprintError: git is missing, the repository is unreachable, or the
            ref does not exist.
    """
    url, ref = source.git.url, source.git.ref
    if _is_remote(url):
        sha = _resolve_remote(url, ref)
    else:
        sha = _resolve_local(url, ref)
    if not sha:
        raise FingerprintError(f"empty fingerprint for source '{source.name}'")
    logger.debug("%s: %s@%s -> %s", source.name, _sanitise_url(url), ref, sha)
    return sha


def resolve_fingerprints(
    sources: Iterable[SourceCfg], *, fail_fast: bool = False
) -> tuple[dict[str, str], dict[str, str]]:
    """Resolve every source.

    Returns:
        ``(fingerprints, failures)`` — id → SHA for resolved sources and
        id → error message for the rest.

    Raises:
        FingerprintError: On the first failure when *fail_fast* is set.
    """
    fingerprints: dict[str, str] = {}
    failures: dict[str, str] = {}
    for source in sources:
        try:
            fingerprints[source.name] = resolve_fingerprint(source)
        except FingerprintError as exc:
            if fail_fast:
                raise FingerprintError(f"source '{source.name}': {exc}") from exc
            logger.warning("skipping source '%s': %s", source.name, exc)
            failures[source.name] = str(exc)
    return fingerprints, failures


def build_source_record(
    source: SourceCfg, fingerprint: str, metadata: dict | None = None
) -> SourceRecord:
    """Return the lockfile record for *source* at *fingerprint*."""
    return SourceRecord(
        url=_sanitise_url(source.git.url),
        ref=source.git.ref,
        fingerprint=fingerprint,
        fetched_at=utcnow(),
        filters=source.scope,
        metadata=dict(metadata or {}),
    )


# ------------------------------------------------------------------
# Generated file checksums
# ------------------------------------------------------------------


def checksum_file(path: Path, source_id: str, file_type: str | None = None) -> FileRecord:
    """Hash *path* (SHA-256) and return its record, owned by *source_id*.

    Raises:
        OSError: If the file cannot be read.
    """
    digest = hashlib.sha256()
    lines = 0
    with path.open("rb") as f:
        while chunk := f.read(_HASH_CHUNK):
            digest.update(chunk)
            lines += chunk.count(b"\n")
    stat = path.stat()
    return FileRecord(
        sha256=digest.hexdigest(),
        size=stat.st_size,
        modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        source_id=source_id,
        file_type=file_type if file_type is not None else (path.suffix.lstrip(".") or None),
        line_count=lines,
    )


def scan_outputs(sources: Iterable[SourceCfg], base_dir: Path) -> dict[str, FileRecord]:
    """Checksum every file under each source's ``output_path``.

    Keys are POSIX paths relative to *base_dir* (absolute when a file lies
    outside it). Unreadable files are logged and skipped.
    """
    base_dir = base_dir.resolve()
    files: dict[str, FileRecord] = {}
    for source in sources:
        out_dir = Path(source.output_path)
        if not out_dir.is_absolute():
            out_dir = base_dir / out_dir
        if not out_dir.is_dir():
            continue
        for file_path in sorted(p for p in out_dir.rglob("*") if p.is_file()):
            try:
                record = checksum_file(file_path, source.name)
            except OSError as exc:
                logger.warning("cannot checksum %s: %s", file_path, exc)
                continue
            resolved = file_path.resolve()
            try:
                key = resolved.relative_to(base_dir).as_posix()
            except ValueError:
                key = resolved.as_posix()
            files[key] = record
    return files
