"""gensonnet lockfile layer: fingerprint store, dependency graph, planner."""

from gensonnet.lockfile.errors import (
    CycleError,
    LockfileError,
    StoreConflictError,
    StoreCorruptError,
    StoreNotFoundError,
)
from gensonnet.lockfile.graph import DependencyGraph, dangling_dependencies
from gensonnet.lockfile.models import (
    FileRecord,
    FingerprintStore,
    IncrementalPlan,
    RunStatistics,
    SourceRecord,
)
from gensonnet.lockfile.planner import cache_hit_rate, plan
from gensonnet.lockfile.staleness import (
    changed_sources,
    file_changed,
    is_stale,
    needs_regeneration,
    source_changed,
)
from gensonnet.lockfile.store import (
    DEFAULT_LOCKFILE,
    apply_update,
    load,
    load_or_create,
    new_store,
    save,
    update,
)
from gensonnet.lockfile.sweeper import SweepReport, collect_stale, sweep

__all__ = [
    "CycleError",
    "LockfileError",
    "StoreConflictError",
    "StoreCorruptError",
    "StoreNotFoundError",
    "DependencyGraph",
    "dangling_dependencies",
    "FileRecord",
    "FingerprintStore",
    "IncrementalPlan",
    "RunStatistics",
    "SourceRecord",
    "cache_hit_rate",
    "plan",
    "changed_sources",
    "file_changed",
    "is_stale",
    "needs_regeneration",
    "source_changed",
    "DEFAULT_LOCKFILE",
    "apply_update",
    "load",
    "load_or_create",
    "new_store",
    "save",
    "update",
    "SweepReport",
    "collect_stale",
    "sweep",
]
