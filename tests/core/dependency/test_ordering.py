"""Tests for installation ordering (Kahn batches, cycles, scope)."""

from __future__ import annotations

import pytest

from toolgraph.core.dependency import (
    DependencyGraph,
    DependencyResolver,
    EdgeRelation,
    OrderingAlgorithm,
    OrderingOptions,
    build_graph,
    cycle_order,
    resolve_installation_order,
)
from toolgraph.core.manifest import DependencyType, Platform, ToolDescriptor
from toolgraph.exceptions import UnknownNodeError


def _graph(*ids: str, edges: list[tuple[str, str]] | None = None) -> DependencyGraph:
    g = DependencyGraph()
    for tool_id in ids:
        g.add_node(ToolDescriptor(id=tool_id))
    for source, target in edges or []:
        g.add_edge(source, target, EdgeRelation())
    return g


class TestBatches:
    """Tests for the acyclic case."""

    def test_web_stack_batches(self, web_stack: list[ToolDescriptor]) -> None:
        """node first, then npm, then react."""
        graph = build_graph(web_stack, Platform.LINUX).graph
        order = resolve_installation_order(graph, ["react"])
        assert order.batches == (("node",), ("npm",), ("react",))
        assert order.sequence == ("node", "npm", "react")
        assert order.is_complete

    def test_independent_tools_share_a_batch(self) -> None:
        g = _graph("node", "npm", "react", edges=[("react", "node"), ("react", "npm")])
        order = resolve_installation_order(g, ["react"])
        assert order.batches == (("node", "npm"), ("react",))

    def test_batches_are_sorted(self) -> None:
        g = _graph("zsh", "bash", "app", edges=[("app", "zsh"), ("app", "bash")])
        order = resolve_installation_order(g, ["app"])
        assert order.batches[0] == ("bash", "zsh")

    def test_only_reachable_tools_are_ordered(self) -> None:
        g = _graph("a", "b", "unrelated", edges=[("a", "b")])
        order = resolve_installation_order(g, ["a"])
        assert "unrelated" not in order.sequence

    def test_multiple_targets(self) -> None:
        g = _graph("x", "y", "base", edges=[("x", "base"), ("y", "base")])
        order = resolve_installation_order(g, ["x", "y"])
        assert order.batches == (("base",), ("x", "y"))

    def test_duplicate_targets_are_ignored(self) -> None:
        g = _graph("a")
        assert resolve_installation_order(g, ["a", "a"]).sequence == ("a",)

    def test_no_targets_is_empty(self) -> None:
        order = resolve_installation_order(_graph("a"), [])
        assert order.sequence == ()
        assert order.is_complete

    def test_unknown_target_raises(self) -> None:
        with pytest.raises(UnknownNodeError):
            resolve_installation_order(_graph("a"), ["b"])

    def test_conflicts_relations_do_not_order(self) -> None:
        g = _graph("a", "b")
        g.add_edge("a", "b", EdgeRelation(DependencyType.CONFLICTS))
        assert resolve_installation_order(g, ["a"]).sequence == ("a",)


class TestScope:
    """Tests for optional and suggested relations in scope."""

    def _graph(self) -> DependencyGraph:
        g = _graph("app", "docs", "lint")
        g.add_edge("app", "docs", EdgeRelation(DependencyType.OPTIONAL))
        g.add_edge("app", "lint", EdgeRelation(DependencyType.SUGGESTS))
        return g

    def test_optional_included_by_default(self) -> None:
        order = resolve_installation_order(self._graph(), ["app"])
        assert order.batches == (("docs",), ("app",))
        assert order.deferred == ("lint",)

    def test_excluding_optional_defers_it(self) -> None:
        options = OrderingOptions(include_optional=False)
        order = resolve_installation_order(self._graph(), ["app"], options)
        assert order.sequence == ("app",)
        assert order.deferred == ("docs", "lint")

    def test_including_suggested(self) -> None:
        options = OrderingOptions(include_suggested=True)
        order = resolve_installation_order(self._graph(), ["app"], options)
        assert order.batches == (("docs", "lint"), ("app",))
        assert order.deferred == ()

    def test_eager_preset_includes_everything(self) -> None:
        order = resolve_installation_order(self._graph(), ["app"], OrderingOptions.eager())
        assert order.batches == (("docs", "lint"), ("app",))
        assert order.deferred == ()

    def test_lazy_preset_keeps_only_requirements(self) -> None:
        order = resolve_installation_order(self._graph(), ["app"], OrderingOptions.lazy())
        assert order.sequence == ("app",)
        assert order.deferred == ("docs", "lint")

    def test_presets_carry_the_algorithm(self) -> None:
        options = OrderingOptions.lazy(OrderingAlgorithm.DEPTH_FIRST)
        assert options.algorithm is OrderingAlgorithm.DEPTH_FIRST
        assert not options.include_optional


class TestAlgorithms:
    """Tests for the depth-first and breadth-first orderings."""

    def _graph(self) -> DependencyGraph:
        """x -> a -> base, x -> b, y -> base."""
        return _graph(
            "x", "y", "a", "b", "base",
            edges=[("x", "a"), ("a", "base"), ("x", "b"), ("y", "base")],
        )

    def _order(self, algorithm: OrderingAlgorithm, graph: DependencyGraph | None = None):
        options = OrderingOptions(algorithm=algorithm)
        return resolve_installation_order(graph or self._graph(), ["x", "y"], options)

    def test_topological_is_the_default(self) -> None:
        order = resolve_installation_order(self._graph(), ["x", "y"])
        assert order == self._order(OrderingAlgorithm.TOPOLOGICAL)
        assert order.batches == (("b", "base"), ("a", "y"), ("x",))
        assert order.sequence == ("b", "base", "a", "y", "x")

    def test_depth_first_finishes_one_target_at_a_time(self) -> None:
        order = self._order(OrderingAlgorithm.DEPTH_FIRST)
        assert order.sequence == ("base", "a", "b", "x", "y")
        assert order.batches == (("b", "base"), ("a", "y"), ("x",))

    def test_breadth_first_installs_as_late_as_possible(self) -> None:
        order = self._order(OrderingAlgorithm.BREADTH_FIRST)
        assert order.batches == (("base",), ("a", "b"), ("x", "y"))
        assert order.sequence == ("base", "a", "b", "x", "y")

    @pytest.mark.parametrize("algorithm", list(OrderingAlgorithm))
    def test_every_tool_follows_its_dependencies(self, algorithm: OrderingAlgorithm) -> None:
        graph = self._graph()
        sequence = self._order(algorithm, graph).sequence
        assert sorted(sequence) == ["a", "b", "base", "x", "y"]
        for edge in graph.get_all_edges():
            assert sequence.index(edge.target) < sequence.index(edge.source)

    @pytest.mark.parametrize("algorithm", list(OrderingAlgorithm))
    def test_cycles_are_left_out(self, algorithm: OrderingAlgorithm) -> None:
        g = _graph("A", "B", "base", edges=[("A", "B"), ("B", "A"), ("A", "base")])
        options = OrderingOptions(algorithm=algorithm)
        order = resolve_installation_order(g, ["A"], options)
        assert order.sequence == ("base",)
        assert order.circular_dependencies == (("A", "B"),)


class TestCycles:
    """Tests for residual cycles and blocked tools."""

    def test_three_cycle(self, three_cycle: list[ToolDescriptor]) -> None:
        graph = build_graph(three_cycle, Platform.LINUX).graph
        order = resolve_installation_order(graph, ["A"])
        assert order.circular_dependencies == (("A", "B", "C"),)
        assert order.sequence == ()
        assert not order.is_complete

    def test_acyclic_part_is_still_ordered(self) -> None:
        g = _graph("A", "B", "base", edges=[("A", "B"), ("B", "A"), ("A", "base")])
        order = resolve_installation_order(g, ["A"])
        assert order.sequence == ("base",)
        assert order.circular_dependencies == (("A", "B"),)

    def test_tool_depending_on_cycle_is_blocked(self) -> None:
        g = _graph("app", "A", "B", edges=[("app", "A"), ("A", "B"), ("B", "A")])
        order = resolve_installation_order(g, ["app"])
        assert order.circular_dependencies == (("A", "B"),)
        assert order.blocked == ("app",)

    def test_cycle_order_follows_edges(self) -> None:
        g = _graph("b", "a", "c", edges=[("a", "c"), ("c", "b"), ("b", "a")])
        assert cycle_order(g, ["b", "a", "c"]) == ("a", "c", "b")

    def test_to_dict(self, three_cycle: list[ToolDescriptor]) -> None:
        graph = build_graph(three_cycle, Platform.LINUX).graph
        data = DependencyResolver(graph).resolve(["A"]).to_dict()
        assert data["complete"] is False
        assert data["circular_dependencies"] == [["A", "B", "C"]]
