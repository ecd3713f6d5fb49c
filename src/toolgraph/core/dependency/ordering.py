"""Installation ordering: Kahn's algorithm with parallel batches.

Given a graph and the tools a user asked for, compute the order in which
every needed tool must be installed so that each tool comes after everything
it depends on.

Algorithm
---------
1. Scope: the targets plus everything reachable from them through required
   edges, and through optional/suggests edges when the options include them.
   Tools reachable only through excluded edges are reported as *deferred*.
2. Kahn's algorithm over the scope. Each round removes every tool whose
   in-scope dependencies are all installed; that round is one *batch*, and
   no tool in a batch depends on another tool of the same batch, so a batch
   may be installed in parallel. Within a batch tools are sorted by id.
3. If rounds stop before the scope is exhausted, the leftovers are
   decomposed into strongly connected components: multi-node components are
   reported as circular dependencies, and the remaining leftovers (tools
   that sit downstream of a cycle) as *blocked*. Neither appears in the
   linear sequence.

Two other orderings of the same tools are available through
``OrderingOptions.algorithm``:

- depth-first: post-order walk from each target, dependencies visited by
  id. Installs a target's whole dependency chain before moving on to the
  next target. Batches are still Kahn's rounds.
- breadth-first: rounds peeled from the targets downwards (a tool joins a
  round once everything depending on it has); batches are those rounds
  reversed, so every tool is installed as late as possible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from toolgraph.core.dependency.graph import DEPENDENCY_TYPES, DependencyGraph
from toolgraph.core.manifest.models import DependencyType

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Options and result
# ---------------------------------------------------------------------------


class OrderingAlgorithm(Enum):
    """How the linear installation sequence is derived."""

    TOPOLOGICAL = "topological"
    DEPTH_FIRST = "depth-first"
    BREADTH_FIRST = "breadth-first"


@dataclass(frozen=True)
class OrderingOptions:
    """Which relations pull tools into the scope, and how they are ordered."""

    include_optional: bool = True
    include_suggested: bool = False
    algorithm: OrderingAlgorithm = OrderingAlgorithm.TOPOLOGICAL

    @classmethod
    def eager(cls, algorithm: OrderingAlgorithm = OrderingAlgorithm.TOPOLOGICAL) -> OrderingOptions:
        """Install everything the targets mention, suggestions included."""
        return cls(include_optional=True, include_suggested=True, algorithm=algorithm)

    @classmethod
    def lazy(cls, algorithm: OrderingAlgorithm = OrderingAlgorithm.TOPOLOGICAL) -> OrderingOptions:
        """Install only what the targets require; the rest is deferred."""
        return cls(include_optional=False, include_suggested=False, algorithm=algorithm)

    @property
    def edge_types(self) -> frozenset[DependencyType]:
        types = {DependencyType.REQUIRED}
        if self.include_optional:
            types.add(DependencyType.OPTIONAL)
        if self.include_suggested:
            types.add(DependencyType.SUGGESTS)
        return frozenset(types)


@dataclass(frozen=True)
class InstallationOrder:
    """The computed installation plan.

    Attributes:
        sequence: Linear order. The concatenation of ``batches`` except for
            the depth-first algorithm, which orders by target instead.
        batches: Groups installable in parallel, in dependency order.
        deferred: Tools reachable only through relations outside the scope.
        circular_dependencies: Cycles that prevented a full order, each in
            cycle order starting from its smallest id.
        blocked: Acyclic tools that cannot be ordered because they depend
            on a cycle.
    """

    sequence: tuple[str, ...] = ()
    batches: tuple[tuple[str, ...], ...] = ()
    deferred: tuple[str, ...] = ()
    circular_dependencies: tuple[tuple[str, ...], ...] = ()
    blocked: tuple[str, ...] = ()

    @property
    def is_complete(self) -> bool:
        """True when every in-scope tool made it into the sequence."""
        return not self.circular_dependencies and not self.blocked

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": list(self.sequence),
            "batches": [list(b) for b in self.batches],
            "deferred": list(self.deferred),
            "circular_dependencies": [list(c) for c in self.circular_dependencies],
            "blocked": list(self.blocked),
            "complete": self.is_complete,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def cycle_order(
    graph: DependencyGraph,
    members: Iterable[str],
    types: Iterable[DependencyType] = DEPENDENCY_TYPES,
) -> tuple[str, ...]:
    """Arrange the members of a strongly connected component in cycle order.

    Starts at the smallest id and repeatedly follows the smallest unvisited
    successor inside the component. For a simple cycle this is exactly the
    cycle; for denser components it is a deterministic walk.
    """
    member_set = set(members)
    allowed = frozenset(types)
    current = min(member_set)
    ordered = [current]
    visited = {current}
    while len(visited) < len(member_set):
        nxt = sorted(
            t for t in graph.dependencies(current, allowed)
            if t in member_set and t not in visited
        )
        current = nxt[0] if nxt else min(member_set - visited)
        ordered.append(current)
        visited.add(current)
    return tuple(ordered)


# ---------------------------------------------------------------------------
# DependencyResolver
# ---------------------------------------------------------------------------


class DependencyResolver:
    """Computes installation orders over a dependency graph.

    Args:
        graph: The graph to order. It is only read.
        options: Scope options; defaults to ``OrderingOptions()``.
    """

    def __init__(self, graph: DependencyGraph, options: OrderingOptions | None = None) -> None:
        self.graph = graph
        self.options = options or OrderingOptions()

    def resolve(self, target_tool_ids: Iterable[str]) -> InstallationOrder:
        """Compute the installation order for *target_tool_ids*.

        Raises:
            UnknownNodeError: If a target is not in the graph.
        """
        targets = list(dict.fromkeys(target_tool_ids))
        types = self.options.edge_types
        scope = self.graph.reachable_from(targets, types)
        in_scope = set(scope)
        everything = self.graph.reachable_from(targets, DEPENDENCY_TYPES)
        deferred = sorted(t for t in everything if t not in in_scope)

        pending: dict[str, int] = {
            node_id: sum(
                1 for dep in self.graph.dependencies(node_id, types) if dep in in_scope
            )
            for node_id in scope
        }
        batches: list[tuple[str, ...]] = []
        ready = sorted(n for n, count in pending.items() if count == 0)
        while ready:
            batches.append(tuple(ready))
            next_ready: list[str] = []
            for node_id in ready:
                del pending[node_id]
                for dependent in self.graph.dependents(node_id, types):
                    if dependent not in pending:
                        continue
                    pending[dependent] -= 1
                    if pending[dependent] == 0:
                        next_ready.append(dependent)
            ready = sorted(next_ready)

        cycles: list[tuple[str, ...]] = []
        blocked: list[str] = []
        if pending:
            leftovers = [n for n in scope if n in pending]
            for component in self.graph.strongly_connected_components(leftovers, types):
                if len(component) > 1:
                    cycles.append(cycle_order(self.graph, component, types))
                else:
                    blocked.extend(component)
            cycles.sort()
            logger.warning(
                "Installation order incomplete: %d cycle(s), %d blocked tool(s)",
                len(cycles), len(blocked),
            )

        sequence = tuple(node_id for batch in batches for node_id in batch)
        algorithm = self.options.algorithm
        if algorithm is OrderingAlgorithm.DEPTH_FIRST:
            sequence = tuple(self._depth_first([*targets, *sorted(sequence)], set(sequence), types))
        elif algorithm is OrderingAlgorithm.BREADTH_FIRST:
            batches = self._breadth_first(set(sequence), types)
            sequence = tuple(node_id for batch in batches for node_id in batch)
        logger.debug(
            "Ordered %d tools in %d batches (%d deferred, %s)",
            len(sequence), len(batches), len(deferred), algorithm.value,
        )
        return InstallationOrder(
            sequence=sequence,
            batches=tuple(batches),
            deferred=tuple(deferred),
            circular_dependencies=tuple(cycles),
            blocked=tuple(sorted(blocked)),
        )

    def _ordered_dependencies(
        self, node_id: str, orderable: set[str], types: frozenset[DependencyType]
    ) -> list[str]:
        return sorted(d for d in self.graph.dependencies(node_id, types) if d in orderable)

    def _depth_first(
        self, roots: list[str], orderable: set[str], types: frozenset[DependencyType]
    ) -> list[str]:
        """Iterative post-order over the orderable tools, starting from *roots*."""
        visited: set[str] = set()
        order: list[str] = []
        for root in roots:
            if root not in orderable or root in visited:
                continue
            visited.add(root)
            stack = [(root, iter(self._ordered_dependencies(root, orderable, types)))]
            while stack:
                node_id, deps = stack[-1]
                for dep in deps:
                    if dep not in visited:
                        visited.add(dep)
                        stack.append(
                            (dep, iter(self._ordered_dependencies(dep, orderable, types)))
                        )
                        break
                else:
                    stack.pop()
                    order.append(node_id)
        return order

    def _breadth_first(
        self, orderable: set[str], types: frozenset[DependencyType]
    ) -> list[tuple[str, ...]]:
        """Rounds peeled from the top of the graph, returned bottom round first."""
        waiting: dict[str, int] = {
            node_id: sum(1 for d in self.graph.dependents(node_id, types) if d in orderable)
            for node_id in orderable
        }
        rounds: list[tuple[str, ...]] = []
        ready = sorted(n for n, count in waiting.items() if count == 0)
        while ready:
            rounds.append(tuple(ready))
            next_ready: list[str] = []
            for node_id in ready:
                for dep in self._ordered_dependencies(node_id, orderable, types):
                    waiting[dep] -= 1
                    if waiting[dep] == 0:
                        next_ready.append(dep)
            ready = sorted(next_ready)
        rounds.reverse()
        return rounds


def resolve_installation_order(
    graph: DependencyGraph,
    target_tool_ids: Iterable[str],
    options: OrderingOptions | None = None,
) -> InstallationOrder:
    """Compute the installation order for *target_tool_ids* over *graph*.

    See ``DependencyResolver.resolve``.
    """
    return DependencyResolver(graph, options).resolve(target_tool_ids)
