"""Exceptions raised by the lockfile layer."""

from __future__ import annotations

from pathlib import Path


class LockfileError(Exception):
    """Base class for every lockfile failure."""


class StoreNotFoundError(LockfileError):
    """No lockfile at the given path. Callers treat this as a first run."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Lockfile does not exist: {path}")
        self.path = path


class StoreCorruptError(LockfileError):
    """The lockfile cannot be parsed or has an unsupported schema version."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Lockfile '{path}' is corrupt or incompatible: {reason}")
        self.path = path
        self.reason = reason


class StoreConflictError(LockfileError):
    """The lockfile on disk was rewritten since this store was loaded."""

    def __init__(self, path: Path, expected: int, found: int) -> None:
        super().__init__(
            f"Lockfile '{path}' changed on disk (revision {found}, expected {expected})"
        )
        self.path = path
        self.expected = expected
        self.found = found


class CycleError(LockfileError):
    """The dependency graph contains a cycle through ``source_id``."""

    def __init__(self, source_id: str) -> None:
        super().__init__(f"Circular dependency detected involving '{source_id}'")
        self.source_id = source_id
