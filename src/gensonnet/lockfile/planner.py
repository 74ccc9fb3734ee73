"""Incremental planner: decide what to rebuild from a store snapshot.

The planner never reads or writes the lockfile itself; callers pass the store
value in. Full regeneration is an explicit outcome (``can_incremental`` False),
never a silent reduction of the work set.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from gensonnet.lockfile.graph import DependencyGraph
from gensonnet.lockfile.models import FingerprintStore, IncrementalPlan

logger = logging.getLogger(__name__)

# Incremental is refused once dependents outnumber changed sources by this factor.
FANOUT_LIMIT = 2

_BYTES_PER_MS = 1024


def files_for_sources(store: FingerprintStore, source_ids: Iterable[str]) -> list[str]:
    """Return stored file paths owned by any of *source_ids*, sorted.

    Files without a recorded owner are included whenever *source_ids* is
    non-empty, since nothing proves they are unaffected.
    """
    owners = set(source_ids)
    if not owners:
        return []
    return sorted(
        path
        for path, record in store.files.items()
        if not record.source_id or record.source_id in owners
    )


def can_incremental(changed_count: int, dependent_count: int) -> bool:
    """Return False when the change fans out too widely for a partial rebuild."""
    return dependent_count <= FANOUT_LIMIT * changed_count


def estimate_time_ms(store: FingerprintStore, paths: Iterable[str]) -> int:
    """Roughly 1 ms per stored KiB. Paths with no record contribute nothing."""
    total = sum(store.files[p].size for p in paths if p in store.files)
    return total // _BYTES_PER_MS


def plan(
    store: FingerprintStore,
    changed_ids: Iterable[str],
    graph: DependencyGraph | None = None,
) -> IncrementalPlan:
    """Build the incremental work plan for *changed_ids*.

    Args:
        store: Snapshot of the last known state.
        changed_ids: Sources whose fingerprint changed.
        graph: Prebuilt graph for *store*; built on demand when omitted.

    Returns:
        IncrementalPlan with sorted id and path lists.
    """
    changed = sorted(set(changed_ids))
    graph = graph if graph is not None else DependencyGraph.from_store(store)

    dependents = sorted(graph.transitive_dependents(changed))
    files = files_for_sources(store, changed)
    incremental = can_incremental(len(changed), len(dependents))

    result = IncrementalPlan(
        changed_sources=changed,
        dependent_sources=dependents,
        files_to_regenerate=files,
        can_incremental=incremental,
        estimated_time_ms=estimate_time_ms(store, files),
    )
    logger.debug(
        "plan: %d changed, %d dependent, %d files, incremental=%s",
        len(changed),
        len(dependents),
        len(files),
        incremental,
    )
    return result


def cache_hit_rate(result: IncrementalPlan, total_sources: int) -> float:
    """Fraction of configured sources the plan lets us skip."""
    if result.requires_full_regeneration or total_sources <= 0:
        return 0.0
    cached = max(total_sources - result.total_sources, 0)
    return cached / total_sources
