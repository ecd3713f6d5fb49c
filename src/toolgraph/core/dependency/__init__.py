"""Tool dependency graph, graph construction, and installation ordering.

This package implements the graph data structure over which conflicts are
detected and resolved, the builder that turns tool descriptors into a graph
for a target platform, and the ordering algorithms that turn a graph into
parallel installation batches. All public names are re-exported here so
callers can write ``from toolgraph.core.dependency import X``.

Formal Definition
-----------------
A tool dependency graph is a pair G = (T, E) where:

- **T** = set of tool nodes, each identified by a unique id
- **E** ⊆ T x T x Rel x Constraint = directed relations, at most one per
  ordered pair, where Rel = {required, optional, suggests, conflicts}

An edge (a, b, rel, c) reads "a depends on b at a version satisfying c".
"""

from toolgraph.core.dependency.builder import (
    ConstructionIssue,
    GraphBuilder,
    GraphConstructionOptions,
    GraphConstructionResult,
    build_graph,
)
from toolgraph.core.dependency.constraints import (
    Version,
    VersionConstraint,
    VersionRange,
    exact,
    format_version,
    intersect_all,
    parse_constraint,
    parse_version,
    version_key,
)
from toolgraph.core.dependency.graph import (
    DEPENDENCY_TYPES,
    REQUIRED_ONLY,
    DependencyGraph,
    Edge,
    EdgeRelation,
    GraphStatistics,
    Node,
    NodeHandle,
)
from toolgraph.core.dependency.ordering import (
    DependencyResolver,
    InstallationOrder,
    OrderingAlgorithm,
    OrderingOptions,
    cycle_order,
    resolve_installation_order,
)

__all__ = [
    "ConstructionIssue",
    "DEPENDENCY_TYPES",
    "DependencyGraph",
    "DependencyResolver",
    "Edge",
    "EdgeRelation",
    "GraphBuilder",
    "GraphConstructionOptions",
    "GraphConstructionResult",
    "GraphStatistics",
    "InstallationOrder",
    "Node",
    "NodeHandle",
    "OrderingAlgorithm",
    "OrderingOptions",
    "REQUIRED_ONLY",
    "Version",
    "VersionConstraint",
    "VersionRange",
    "build_graph",
    "cycle_order",
    "exact",
    "format_version",
    "intersect_all",
    "parse_constraint",
    "parse_version",
    "resolve_installation_order",
    "version_key",
]
