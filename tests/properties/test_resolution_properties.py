"""Property-based tests for conflict resolution invariants.

Verifies on randomly generated version clashes that:
- Resolution never mutates the input graph
- Resolving the same detection twice yields the same report
- A pinned version satisfies every constraint left on the pinned tool
- A successful run verifies clean and has a complete order
- The compromise version satisfies the most constraints, newest on ties
"""
from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from toolgraph.core.conflicts import (
    StepAction,
    StepResult,
    best_compromise,
    detect_conflicts,
    resolve_conflicts,
)
from toolgraph.core.dependency import (
    DependencyGraph,
    VersionConstraint,
    build_graph,
    parse_version,
)
from toolgraph.core.manifest import DependencySpec, Platform, ToolDescriptor


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

version_strings = st.sampled_from([
    "1.0.0", "1.1.0", "1.2.0", "2.0.0", "2.1.0", "3.0.0",
])

constraint_strings = st.sampled_from([
    ">=1.0.0", "<2.0.0", "1.x", "2.x", "^1.1.0", "~2.0.0", ">=3.0.0", "==1.2.0", "*",
])


@st.composite
def version_clash(draw: st.DrawFn) -> tuple[DependencyGraph, list[str]]:
    """One shared ``lib`` and 2-4 dependents, each constraining its version."""
    versions = draw(st.lists(version_strings, min_size=0, max_size=3, unique=True))
    constraints = draw(st.lists(constraint_strings, min_size=2, max_size=4))
    dependents = [f"app{i}" for i in range(len(constraints))]
    tools = [ToolDescriptor(id="lib", versions=tuple(versions))]
    for tool_id, constraint in zip(dependents, constraints):
        tools.append(ToolDescriptor(
            id=tool_id,
            dependencies=(DependencySpec("lib", version_range=constraint),),
        ))
    result = build_graph(tools, Platform.LINUX)
    assert result.graph is not None
    return result.graph, dependents


def _constraints_snapshot(graph: DependencyGraph) -> list[tuple[str, str, str | None]]:
    return sorted(
        (e.source, e.target, e.constraint.raw if e.constraint else None)
        for node_id in graph.node_ids
        for e in graph.get_outgoing_edges(node_id)
    )


# ---------------------------------------------------------------------------
# Resolver properties
# ---------------------------------------------------------------------------


class TestResolverProperties:
    """Invariants of ``resolve_conflicts``."""

    @given(case=version_clash())
    @settings(max_examples=150)
    def test_input_graph_untouched(self, case: tuple[DependencyGraph, list[str]]) -> None:
        graph, targets = case
        before = _constraints_snapshot(graph)
        resolve_conflicts(detect_conflicts(graph, targets), graph)
        assert _constraints_snapshot(graph) == before
        assert graph.get_node("lib").selected_version is None

    @given(case=version_clash())
    @settings(max_examples=100)
    def test_idempotent(self, case: tuple[DependencyGraph, list[str]]) -> None:
        graph, targets = case
        detection = detect_conflicts(graph, targets)
        assert resolve_conflicts(detection, graph).to_dict() == (
            resolve_conflicts(detection, graph).to_dict()
        )

    @given(case=version_clash())
    @settings(max_examples=150)
    def test_pinned_version_meets_remaining_constraints(
        self, case: tuple[DependencyGraph, list[str]]
    ) -> None:
        graph, targets = case
        result = resolve_conflicts(detect_conflicts(graph, targets), graph)
        for step in result.steps:
            if step.action is not StepAction.PIN_VERSION or step.result is not StepResult.SUCCESS:
                continue
            pinned = result.graph.get_node(step.affected_tools[0]).selected_version
            for edge in result.graph.get_incoming_edges(step.affected_tools[0]):
                if edge.constraint is not None:
                    assert edge.constraint.satisfies(pinned)

    @given(case=version_clash())
    @settings(max_examples=150)
    def test_success_means_verified(self, case: tuple[DependencyGraph, list[str]]) -> None:
        graph, targets = case
        result = resolve_conflicts(detect_conflicts(graph, targets), graph)
        if result.success:
            assert result.verification is not None
            assert not result.verification.has_conflicts
            assert result.installation_order.is_complete
            assert result.remaining_conflicts == ()


# ---------------------------------------------------------------------------
# Compromise selection
# ---------------------------------------------------------------------------


class TestCompromiseProperties:
    """Invariants of ``best_compromise``."""

    @given(
        versions=st.lists(version_strings, min_size=1, max_size=6, unique=True),
        constraints=st.lists(constraint_strings, min_size=1, max_size=5),
    )
    def test_maximal_then_newest(self, versions: list[str], constraints: list[str]) -> None:
        parsed = [VersionConstraint(c) for c in constraints]
        candidates = [(parse_version(v), v) for v in versions]
        chosen, count = best_compromise(candidates, parsed)

        def score(version: str) -> int:
            return sum(1 for c in parsed if c.satisfies(version))

        best = max(score(v) for v in versions)
        assert count == best == score(chosen)
        tied = [v for v in versions if score(v) == best]
        assert parse_version(chosen) == max(parse_version(v) for v in tied)

    @given(
        versions=st.lists(version_strings, min_size=1, max_size=6, unique=True),
        constraints=st.lists(constraint_strings, min_size=1, max_size=5),
    )
    def test_prefer_oldest_picks_lowest_tie(
        self, versions: list[str], constraints: list[str]
    ) -> None:
        parsed = [VersionConstraint(c) for c in constraints]
        candidates = [(parse_version(v), v) for v in versions]
        chosen, count = best_compromise(candidates, parsed, prefer_latest=False)
        tied = [v for v in versions if sum(1 for c in parsed if c.satisfies(v)) == count]
        assert parse_version(chosen) == min(parse_version(v) for v in tied)
