"""Build a ``DependencyGraph`` from tool descriptors for one target platform.

The builder applies inclusion policy (which declared dependency kinds become
edges) and selects an installation method per tool. It is deliberately
policy-free about conflicts: a tool with no installation path for the target
platform is still added (flagged ``platform_compatible=False``), and the
conflict detector decides what that means.

Issue codes:
    DUPLICATE_TOOL_ID   -- two descriptors share an id (error when validating).
    MISSING_DEPENDENCY  -- a dependency names an unknown tool; the edge is skipped.
    PLATFORM_UNSUPPORTED -- no installation method matches the platform.
    SELF_DEPENDENCY     -- a tool lists itself; the edge is skipped.
    INVALID_CONSTRAINT  -- unparsable version constraint; the edge is kept unconstrained.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from toolgraph.core.dependency.constraints import VersionConstraint
from toolgraph.core.dependency.graph import (
    DependencyGraph,
    EdgeRelation,
    GraphStatistics,
)
from toolgraph.core.manifest.models import (
    Architecture,
    DependencySpec,
    DependencyType,
    InstallationStatus,
    Platform,
    ToolDescriptor,
    select_installation_method,
)
from toolgraph.exceptions import ConstraintError, GraphTooLargeError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Options and result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GraphConstructionOptions:
    """Inclusion policy and safety limits for graph construction.

    Attributes:
        include_optional: Add edges for ``optional`` dependencies.
        include_suggested: Add edges for ``suggests`` dependencies.
        max_nodes: Ceiling on the number of descriptors accepted.
        validate_during_construction: Check for duplicate ids up front and
            return errors instead of a graph.
    """

    include_optional: bool = True
    include_suggested: bool = False
    max_nodes: int = 5000
    validate_during_construction: bool = True

    def includes(self, dependency_type: DependencyType) -> bool:
        """Whether a declared dependency of this type becomes an edge.

        Conflicts are always kept: they never order anything but the
        detector needs them for mutual-exclusion checks.
        """
        if dependency_type is DependencyType.OPTIONAL:
            return self.include_optional
        if dependency_type is DependencyType.SUGGESTS:
            return self.include_suggested
        return True


@dataclass(frozen=True)
class ConstructionIssue:
    """An error or warning raised while building a graph."""

    code: str
    message: str
    tool_id: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"code": self.code, "message": self.message, "tool_id": self.tool_id}


@dataclass(frozen=True)
class GraphConstructionResult:
    """Outcome of ``GraphBuilder.build``.

    ``graph`` is None when validation found structural errors.
    """

    graph: DependencyGraph | None
    errors: tuple[ConstructionIssue, ...] = ()
    warnings: tuple[ConstructionIssue, ...] = ()
    statistics: GraphStatistics | None = None

    @property
    def success(self) -> bool:
        return self.graph is not None and not self.errors

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "statistics": self.statistics.to_dict() if self.statistics else None,
        }


# ---------------------------------------------------------------------------
# GraphBuilder
# ---------------------------------------------------------------------------


@dataclass
class _BuildContext:
    errors: list[ConstructionIssue] = field(default_factory=list)
    warnings: list[ConstructionIssue] = field(default_factory=list)


class GraphBuilder:
    """Construct dependency graphs for a fixed target platform.

    Args:
        platform: Target operating system.
        architecture: Target CPU architecture.
        options: Inclusion policy; defaults to ``GraphConstructionOptions()``.
    """

    def __init__(
        self,
        platform: Platform,
        architecture: Architecture = Architecture.X64,
        options: GraphConstructionOptions | None = None,
    ) -> None:
        self.platform = platform
        self.architecture = architecture
        self.options = options or GraphConstructionOptions()

    def build(
        self,
        descriptors: Iterable[ToolDescriptor],
        statuses: Mapping[str, InstallationStatus] | None = None,
    ) -> GraphConstructionResult:
        """Build a graph from *descriptors*.

        Args:
            descriptors: Tool descriptors, in the order nodes should be inserted.
            statuses: Installation status per tool id, for tools already present.

        Returns:
            A ``GraphConstructionResult``. With validation enabled and
            duplicate ids present, ``graph`` is None and ``errors`` lists
            every duplicate. Dependencies on tools missing from
            *descriptors* are skipped with a ``MISSING_DEPENDENCY`` warning.

        Raises:
            GraphTooLargeError: If there are more descriptors than ``max_nodes``.
        """
        items = list(descriptors)
        if len(items) > self.options.max_nodes:
            raise GraphTooLargeError(len(items), self.options.max_nodes)

        ctx = _BuildContext()
        if self.options.validate_during_construction:
            self._validate(items, ctx)
            if ctx.errors:
                logger.warning("Graph construction failed with %d errors", len(ctx.errors))
                return GraphConstructionResult(
                    graph=None, errors=tuple(ctx.errors), warnings=tuple(ctx.warnings)
                )

        graph = DependencyGraph(self.platform, self.architecture)
        statuses = statuses or {}
        for descriptor in items:
            if descriptor.id in graph:
                ctx.warnings.append(ConstructionIssue(
                    "DUPLICATE_TOOL_ID",
                    f"Tool {descriptor.id!r} declared more than once; keeping the first",
                    descriptor.id,
                ))
                continue
            self._add_node(graph, descriptor, statuses.get(descriptor.id), ctx)

        for descriptor in items:
            node = graph.get_node(descriptor.id)
            # Skip later duplicates so only the kept descriptor contributes edges.
            if node is None or node.descriptor is not descriptor:
                continue
            self._add_edges(graph, descriptor, ctx)

        stats = graph.get_statistics()
        logger.debug(
            "Built graph for %s/%s: %d nodes, %d edges, %d warnings",
            self.platform.value, self.architecture.value,
            stats.node_count, stats.edge_count, len(ctx.warnings),
        )
        return GraphConstructionResult(
            graph=graph,
            errors=tuple(ctx.errors),
            warnings=tuple(ctx.warnings),
            statistics=stats,
        )

    def add_tool(
        self,
        graph: DependencyGraph,
        descriptor: ToolDescriptor,
        status: InstallationStatus | None = None,
    ) -> list[ConstructionIssue]:
        """Add one tool to an existing graph, wiring edges in both directions.

        Edges are created for the new tool's own dependencies and for any
        existing tool that declares a dependency on it.

        Returns:
            Warnings produced while wiring edges.

        Raises:
            DuplicateNodeError: If the tool is already in the graph.
            GraphTooLargeError: If the graph is already at ``max_nodes``.
        """
        if graph.node_count + 1 > self.options.max_nodes:
            raise GraphTooLargeError(graph.node_count + 1, self.options.max_nodes)
        ctx = _BuildContext()
        self._add_node(graph, descriptor, status, ctx)
        self._add_edges(graph, descriptor, ctx)
        for node in graph.get_all_nodes():
            for dep in node.descriptor.dependencies:
                if dep.tool_id == descriptor.id and node.id != descriptor.id:
                    self._add_edge(graph, node.descriptor, dep, ctx)
        return ctx.warnings

    # -- Internals ----------------------------------------------------------

    def _validate(self, items: list[ToolDescriptor], ctx: _BuildContext) -> None:
        # Unknown dependency ids are not errors: _add_edge warns and skips them,
        # and graph edges cannot dangle once built.
        seen: set[str] = set()
        for descriptor in items:
            if descriptor.id in seen:
                ctx.errors.append(ConstructionIssue(
                    "DUPLICATE_TOOL_ID",
                    f"Tool {descriptor.id!r} is declared more than once",
                    descriptor.id,
                ))
            seen.add(descriptor.id)

    def _add_node(
        self,
        graph: DependencyGraph,
        descriptor: ToolDescriptor,
        status: InstallationStatus | None,
        ctx: _BuildContext,
    ) -> None:
        method = select_installation_method(descriptor, self.platform, self.architecture)
        compatible = method is not None
        if not descriptor.installation_methods:
            # No methods declared: installable wherever the tool claims support.
            compatible = descriptor.supports(self.platform, self.architecture)
        if not compatible:
            ctx.warnings.append(ConstructionIssue(
                "PLATFORM_UNSUPPORTED",
                f"Tool {descriptor.id!r} has no installation method for "
                f"{self.platform.value}/{self.architecture.value}",
                descriptor.id,
            ))
        graph.add_node(
            descriptor,
            status,
            installation_method=method,
            platform_compatible=compatible,
        )

    def _add_edges(
        self, graph: DependencyGraph, descriptor: ToolDescriptor, ctx: _BuildContext
    ) -> None:
        for dep in descriptor.dependencies:
            self._add_edge(graph, descriptor, dep, ctx)

    def _add_edge(
        self,
        graph: DependencyGraph,
        descriptor: ToolDescriptor,
        dep: DependencySpec,
        ctx: _BuildContext,
    ) -> None:
        if not dep.applies_to(self.platform) or not self.options.includes(dep.type):
            return
        if dep.tool_id not in graph:
            ctx.warnings.append(ConstructionIssue(
                "MISSING_DEPENDENCY",
                f"Tool {descriptor.id!r} depends on {dep.tool_id!r}, which is not available",
                descriptor.id,
            ))
            return
        if dep.tool_id == descriptor.id:
            ctx.warnings.append(ConstructionIssue(
                "SELF_DEPENDENCY",
                f"Tool {descriptor.id!r} lists itself as a dependency; ignored",
                descriptor.id,
            ))
            return
        expression = dep.constraint_expression()
        try:
            constraint = VersionConstraint(expression) if expression else None
        except ConstraintError as exc:
            ctx.warnings.append(ConstructionIssue(
                "INVALID_CONSTRAINT",
                f"Tool {descriptor.id!r}: ignoring constraint on {dep.tool_id!r}: {exc}",
                descriptor.id,
            ))
            constraint = None
        graph.add_edge(
            descriptor.id,
            dep.tool_id,
            EdgeRelation(dep.type, constraint, dep.reason),
        )


def build_graph(
    descriptors: Iterable[ToolDescriptor],
    platform: Platform,
    architecture: Architecture = Architecture.X64,
    options: GraphConstructionOptions | None = None,
    statuses: Mapping[str, InstallationStatus] | None = None,
) -> GraphConstructionResult:
    """Convenience wrapper around ``GraphBuilder(...).build(...)``."""
    return GraphBuilder(platform, architecture, options).build(descriptors, statuses)
