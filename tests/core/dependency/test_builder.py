"""Tests for GraphBuilder: inclusion policy, validation and method selection."""

from __future__ import annotations

import pytest

from toolgraph.core.dependency import (
    GraphBuilder,
    GraphConstructionOptions,
    build_graph,
)
from toolgraph.core.manifest import (
    Architecture,
    DependencySpec,
    DependencyType,
    InstallationMethod,
    InstallationState,
    InstallationStatus,
    Platform,
    ToolDescriptor,
)
from toolgraph.exceptions import DuplicateNodeError, GraphTooLargeError


# ===========================================================================
# Helpers
# ===========================================================================


def _tool(tool_id: str, *deps: DependencySpec, **kwargs) -> ToolDescriptor:
    return ToolDescriptor(id=tool_id, dependencies=deps, **kwargs)


def _codes(issues) -> list[str]:
    return [issue.code for issue in issues]


# ===========================================================================
# Basic construction
# ===========================================================================


class TestBuild:
    """Tests for building graphs from descriptor lists."""

    def test_web_stack(self, web_stack: list[ToolDescriptor]) -> None:
        result = build_graph(web_stack, Platform.LINUX)
        assert result.success
        graph = result.graph
        assert graph.node_ids == ["node", "npm", "react"]
        assert graph.edge_count == 3
        assert graph.platform is Platform.LINUX
        assert graph.architecture is Architecture.X64
        assert result.statistics is not None
        assert result.statistics.node_count == 3

    def test_empty_input_gives_empty_graph(self) -> None:
        result = build_graph([], Platform.LINUX)
        assert result.success
        assert result.graph.node_count == 0

    def test_statuses_are_attached(self) -> None:
        status = InstallationStatus(InstallationState.INSTALLED, "2.43.0")
        result = build_graph([_tool("git")], Platform.LINUX, statuses={"git": status})
        assert result.graph.get_node("git").installation_status == status

    def test_constraint_expression_becomes_edge_constraint(self) -> None:
        tools = [
            _tool("node"),
            _tool("react", DependencySpec("node", min_version="16", max_version="20")),
        ]
        edge = build_graph(tools, Platform.LINUX).graph.get_edge("react", "node")
        assert edge.constraint.raw == ">=16,<=20"

    def test_too_many_descriptors_raises(self) -> None:
        options = GraphConstructionOptions(max_nodes=2)
        with pytest.raises(GraphTooLargeError) as exc_info:
            build_graph([_tool("a"), _tool("b"), _tool("c")], Platform.LINUX, options=options)
        assert exc_info.value.count == 3
        assert exc_info.value.limit == 2

    def test_to_dict(self, web_stack: list[ToolDescriptor]) -> None:
        data = build_graph(web_stack, Platform.LINUX).to_dict()
        assert data["success"] is True
        assert data["errors"] == []
        assert data["statistics"]["edge_count"] == 3


# ===========================================================================
# Inclusion policy
# ===========================================================================


class TestInclusionPolicy:
    """Tests for which declared relations become edges."""

    def _tools(self) -> list[ToolDescriptor]:
        return [
            _tool("docs"),
            _tool("lint"),
            _tool("vim"),
            _tool(
                "editor",
                DependencySpec("docs", DependencyType.OPTIONAL),
                DependencySpec("lint", DependencyType.SUGGESTS),
                DependencySpec("vim", DependencyType.CONFLICTS),
            ),
        ]

    def test_defaults_include_optional_not_suggested(self) -> None:
        graph = build_graph(self._tools(), Platform.LINUX).graph
        assert graph.get_edge("editor", "docs") is not None
        assert graph.get_edge("editor", "lint") is None

    def test_suggested_on_request(self) -> None:
        options = GraphConstructionOptions(include_suggested=True)
        graph = build_graph(self._tools(), Platform.LINUX, options=options).graph
        assert graph.get_edge("editor", "lint").dependency_type is DependencyType.SUGGESTS

    def test_optional_can_be_excluded(self) -> None:
        options = GraphConstructionOptions(include_optional=False)
        graph = build_graph(self._tools(), Platform.LINUX, options=options).graph
        assert graph.get_edge("editor", "docs") is None

    def test_conflicts_are_always_kept(self) -> None:
        options = GraphConstructionOptions(include_optional=False)
        graph = build_graph(self._tools(), Platform.LINUX, options=options).graph
        assert graph.get_edge("editor", "vim").dependency_type is DependencyType.CONFLICTS

    def test_platform_scoped_dependency(self) -> None:
        """A dependency limited to Windows is skipped on Linux."""
        tools = [
            _tool("wsl"),
            _tool("docker", DependencySpec("wsl", platforms=frozenset({Platform.WINDOWS}))),
        ]
        assert build_graph(tools, Platform.LINUX).graph.edge_count == 0
        assert build_graph(tools, Platform.WINDOWS).graph.edge_count == 1


# ===========================================================================
# Validation
# ===========================================================================


class TestValidation:
    """Tests for structural validation and its relaxed mode."""

    def test_duplicate_ids_fail_validation(self) -> None:
        result = build_graph([_tool("git"), _tool("git")], Platform.LINUX)
        assert result.graph is None
        assert not result.success
        assert _codes(result.errors) == ["DUPLICATE_TOOL_ID"]

    def test_missing_dependency_is_skipped_with_warning(self) -> None:
        """An unknown dependency id leaves the rest of the graph usable."""
        tools = [_tool("react", DependencySpec("node"), DependencySpec("ghost")), _tool("node")]
        result = build_graph(tools, Platform.LINUX)
        assert result.success
        assert result.graph is not None
        assert result.graph.get_edge("react", "node") is not None
        assert result.graph.edge_count == 1
        assert result.errors == ()
        assert _codes(result.warnings) == ["MISSING_DEPENDENCY"]
        assert result.warnings[0].tool_id == "react"
        assert "ghost" in result.warnings[0].message

    def test_all_duplicates_are_reported(self) -> None:
        tools = [_tool("a", DependencySpec("x")), _tool("a"), _tool("b"), _tool("b")]
        result = build_graph(tools, Platform.LINUX)
        assert result.graph is None
        assert _codes(result.errors) == ["DUPLICATE_TOOL_ID", "DUPLICATE_TOOL_ID"]

    def test_relaxed_mode_keeps_first_duplicate(self) -> None:
        options = GraphConstructionOptions(validate_during_construction=False)
        tools = [_tool("git", name="first"), _tool("git", name="second")]
        result = build_graph(tools, Platform.LINUX, options=options)
        assert result.success
        assert result.graph.get_node("git").descriptor.name == "first"
        assert _codes(result.warnings) == ["DUPLICATE_TOOL_ID"]

    def test_relaxed_mode_skips_missing_dependency(self) -> None:
        options = GraphConstructionOptions(validate_during_construction=False)
        result = build_graph([_tool("react", DependencySpec("node"))], Platform.LINUX, options=options)
        assert result.success
        assert result.graph.edge_count == 0
        assert _codes(result.warnings) == ["MISSING_DEPENDENCY"]

    def test_self_dependency_is_skipped(self) -> None:
        result = build_graph([_tool("loop", DependencySpec("loop"))], Platform.LINUX)
        assert result.success
        assert result.graph.edge_count == 0
        assert _codes(result.warnings) == ["SELF_DEPENDENCY"]

    def test_invalid_constraint_keeps_unconstrained_edge(self) -> None:
        tools = [_tool("node"), _tool("app", DependencySpec("node", version_range=">=banana"))]
        result = build_graph(tools, Platform.LINUX)
        assert result.graph.get_edge("app", "node").constraint is None
        assert _codes(result.warnings) == ["INVALID_CONSTRAINT"]


# ===========================================================================
# Platform compatibility
# ===========================================================================


class TestPlatformCompatibility:
    """Tests for installation method selection during construction."""

    def test_matching_method_is_selected(self) -> None:
        tool = _tool(
            "node",
            installation_methods=(
                InstallationMethod("brew", Platform.MACOS, "brew install node"),
                InstallationMethod("apt", Platform.LINUX, "apt install nodejs"),
            ),
        )
        node = build_graph([tool], Platform.LINUX).graph.get_node("node")
        assert node.platform_compatible is True
        assert node.installation_method.method == "apt"

    def test_architecture_specific_method_preferred(self) -> None:
        tool = _tool(
            "node",
            installation_methods=(
                InstallationMethod("generic", Platform.MACOS, "install"),
                InstallationMethod("arm", Platform.MACOS, "install-arm", Architecture.ARM64),
            ),
        )
        node = build_graph([tool], Platform.MACOS, Architecture.ARM64).graph.get_node("node")
        assert node.installation_method.method == "arm"

    def test_no_method_for_platform_is_incompatible(self) -> None:
        tool = _tool(
            "winget-only",
            installation_methods=(InstallationMethod("winget", Platform.WINDOWS, "winget install x"),),
        )
        result = build_graph([tool], Platform.LINUX)
        node = result.graph.get_node("winget-only")
        assert node.platform_compatible is False
        assert node.installation_method is None
        assert _codes(result.warnings) == ["PLATFORM_UNSUPPORTED"]

    def test_unsupported_platform_without_methods(self) -> None:
        tool = _tool("iis", platforms=frozenset({Platform.WINDOWS}))
        node = build_graph([tool], Platform.LINUX).graph.get_node("iis")
        assert node.platform_compatible is False

    def test_no_declared_methods_means_compatible(self) -> None:
        node = build_graph([_tool("plain")], Platform.LINUX).graph.get_node("plain")
        assert node.platform_compatible is True
        assert node.installation_method is None


# ===========================================================================
# Incremental addition
# ===========================================================================


class TestAddTool:
    """Tests for ``GraphBuilder.add_tool``."""

    def test_add_tool_wires_both_directions(self) -> None:
        builder = GraphBuilder(Platform.LINUX)
        options = GraphConstructionOptions(validate_during_construction=False)
        graph = GraphBuilder(Platform.LINUX, options=options).build(
            [_tool("react", DependencySpec("node"))]
        ).graph
        builder.add_tool(graph, _tool("node", DependencySpec("python")))
        builder.add_tool(graph, _tool("python"))
        assert graph.get_edge("react", "node") is not None
        assert graph.get_edge("node", "python") is not None

    def test_add_tool_reports_missing_dependencies(self) -> None:
        graph = build_graph([], Platform.LINUX).graph
        warnings = GraphBuilder(Platform.LINUX).add_tool(graph, _tool("app", DependencySpec("lib")))
        assert _codes(warnings) == ["MISSING_DEPENDENCY"]

    def test_add_existing_tool_raises(self, web_stack: list[ToolDescriptor]) -> None:
        graph = build_graph(web_stack, Platform.LINUX).graph
        with pytest.raises(DuplicateNodeError):
            GraphBuilder(Platform.LINUX).add_tool(graph, ToolDescriptor(id="node"))

    def test_add_tool_respects_node_limit(self) -> None:
        builder = GraphBuilder(Platform.LINUX, options=GraphConstructionOptions(max_nodes=1))
        graph = builder.build([_tool("a")]).graph
        with pytest.raises(GraphTooLargeError):
            builder.add_tool(graph, _tool("b"))
