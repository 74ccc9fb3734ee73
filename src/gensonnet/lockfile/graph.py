"""Source dependency graph: transitive dependents and generation order.

``dependencies[A]`` containing ``B`` means "A must be rebuilt whenever B
changes". The graph is built once per store snapshot. Source ids are sorted
and mapped to integer indices so traversal works on plain lists, and every
query returns the same answer on every run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from gensonnet.lockfile.errors import CycleError
from gensonnet.lockfile.models import FingerprintStore

logger = logging.getLogger(__name__)

_UNVISITED, _ON_STACK, _FINISHED = 0, 1, 2


class DependencyGraph:
    """Read-only view of a dependency adjacency list."""

    def __init__(
        self,
        dependencies: Mapping[str, Sequence[str]],
        source_ids: Iterable[str] = (),
    ) -> None:
        """Build the graph.

        Args:
            dependencies: Mapping of source id to the ids it depends on.
            source_ids: Additional known ids with no edges (e.g. store sources).
        """
        known = set(source_ids) | set(dependencies)
        for deps in dependencies.values():
            known.update(deps)

        self._ids: list[str] = sorted(known)
        self._index: dict[str, int] = {sid: i for i, sid in enumerate(self._ids)}
        self._deps: list[list[int]] = [[] for _ in self._ids]
        self._dependents: list[list[int]] = [[] for _ in self._ids]

        for sid in sorted(dependencies):
            node = self._index[sid]
            for dep in dependencies[sid]:
                target = self._index[dep]
                if target in self._deps[node]:
                    continue
                self._deps[node].append(target)
                self._dependents[target].append(node)

    @classmethod
    def from_store(cls, store: FingerprintStore) -> DependencyGraph:
        return cls(store.dependencies, store.sources.keys())

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def ids(self) -> list[str]:
        return list(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._index

    def dependencies_of(self, source_id: str) -> list[str]:
        """Direct dependencies of *source_id* in stored order."""
        node = self._index.get(source_id)
        if node is None:
            return []
        return [self._ids[d] for d in self._deps[node]]

    def dependents_of(self, source_id: str) -> list[str]:
        """Sources that directly depend on *source_id*."""
        node = self._index.get(source_id)
        if node is None:
            return []
        return sorted(self._ids[d] for d in self._dependents[node])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def transitive_dependents(self, changed_ids: Iterable[str]) -> set[str]:
        """Return every source that must rebuild because one of *changed_ids* changed.

        The walk is bounded by a visited set, so a cycle terminates instead of
        raising. A changed id is only part of the result when it is itself a
        dependent of some other visited source.
        """
        visited: set[int] = set()
        result: set[int] = set()

        for changed in changed_ids:
            start = self._index.get(changed)
            if start is None:
                continue
            stack = [start]
            while stack:
                node = stack.pop()
                if node in visited:
                    continue
                visited.add(node)
                for dependent in self._dependents[node]:
                    result.add(dependent)
                    if dependent not in visited:
                        stack.append(dependent)

        return {self._ids[i] for i in result}

    def generation_order(self) -> list[str]:
        """Return all known ids with every id placed after its dependencies.

        Raises:
            CycleError: If the graph has a cycle. No partial order is returned.
        """
        state = [_UNVISITED] * len(self._ids)
        order: list[str] = []

        for root in range(len(self._ids)):
            if state[root] != _UNVISITED:
                continue
            state[root] = _ON_STACK
            stack = [(root, iter(self._deps[root]))]
            while stack:
                node, pending = stack[-1]
                for dep in pending:
                    if state[dep] == _ON_STACK:
                        logger.debug("cycle closes at %s (from %s)", self._ids[dep], self._ids[node])
                        raise CycleError(self._ids[dep])
                    if state[dep] == _UNVISITED:
                        state[dep] = _ON_STACK
                        stack.append((dep, iter(self._deps[dep])))
                        break
                else:
                    stack.pop()
                    state[node] = _FINISHED
                    order.append(self._ids[node])

        return order

    def order_subset(self, source_ids: Iterable[str]) -> list[str]:
        """Generation order restricted to *source_ids*.

        Raises:
            CycleError: If the full graph has a cycle.
        """
        wanted = set(source_ids)
        ordered = [sid for sid in self.generation_order() if sid in wanted]
        # Ids the graph has never seen have no edges; append them sorted.
        ordered.extend(sorted(wanted - set(self._index)))
        return ordered


def dangling_dependencies(store: FingerprintStore) -> list[tuple[str, str]]:
    """Return ``(source, depends_on)`` edges touching an id missing from ``sources``."""
    dangling: list[tuple[str, str]] = []
    for source_id in sorted(store.dependencies):
        for dep in store.dependencies[source_id]:
            if source_id not in store.sources or dep not in store.sources:
                dangling.append((source_id, dep))
    return dangling
