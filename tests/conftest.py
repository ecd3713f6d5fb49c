"""Shared fixtures for toolgraph tests."""

from __future__ import annotations

import pathlib

import pytest

from toolgraph.core.manifest import (
    DependencySpec,
    InstallationMethod,
    Platform,
    ToolDescriptor,
)


def _apt(tool_id: str) -> InstallationMethod:
    return InstallationMethod("apt", Platform.LINUX, f"apt install {tool_id}")


@pytest.fixture
def web_stack() -> list[ToolDescriptor]:
    """node <- npm <- react, all installable on Linux."""
    return [
        ToolDescriptor(id="node", category="runtime", installation_methods=(_apt("node"),)),
        ToolDescriptor(
            id="npm",
            category="package-manager",
            installation_methods=(_apt("npm"),),
            dependencies=(DependencySpec("node"),),
        ),
        ToolDescriptor(
            id="react",
            category="framework",
            installation_methods=(_apt("react"),),
            dependencies=(DependencySpec("node"), DependencySpec("npm")),
        ),
    ]


@pytest.fixture
def node_version_clash() -> list[ToolDescriptor]:
    """A needs node 16.x, B needs node >=18; node ships 16.20.2 and 18.19.1."""
    return [
        ToolDescriptor(id="node", versions=("16.20.2", "18.19.1")),
        ToolDescriptor(id="A", dependencies=(DependencySpec("node", version_range="16.x"),)),
        ToolDescriptor(id="B", dependencies=(DependencySpec("node", min_version="18"),)),
    ]


@pytest.fixture
def three_cycle() -> list[ToolDescriptor]:
    """A -> B -> C -> A, all required."""
    return [
        ToolDescriptor(id="A", dependencies=(DependencySpec("B"),)),
        ToolDescriptor(id="B", dependencies=(DependencySpec("C"),)),
        ToolDescriptor(id="C", dependencies=(DependencySpec("A"),)),
    ]


WEB_STACK_YAML = """\
tools:
  - id: node
    category: runtime
    versions: ["16.20.2", "18.19.1"]
    installation_methods:
      - {method: apt, platform: linux, command: "apt install nodejs"}
      - {method: brew, platform: macos, command: "brew install node"}
  - id: npm
    category: package-manager
    dependencies: [node]
  - id: react
    category: framework
    dependencies:
      - node
      - {tool_id: npm, type: required}
"""

CLASH_YAML = """\
tools:
  - id: node
    versions: ["16.20.2", "18.19.1"]
  - id: A
    dependencies:
      - {tool_id: node, version_range: "16.x"}
  - id: B
    dependencies:
      - {tool_id: node, min_version: "18"}
"""

CYCLE_YAML = """\
- id: A
  dependencies: [B]
- id: B
  dependencies: [C]
- id: C
  dependencies: [A]
"""


@pytest.fixture
def web_stack_file(tmp_path: pathlib.Path) -> pathlib.Path:
    """Descriptor file for the node/npm/react stack."""
    path = tmp_path / "tools.yaml"
    path.write_text(WEB_STACK_YAML)
    return path


@pytest.fixture
def clash_file(tmp_path: pathlib.Path) -> pathlib.Path:
    """Descriptor file with a node version clash between A and B."""
    path = tmp_path / "clash.yaml"
    path.write_text(CLASH_YAML)
    return path


@pytest.fixture
def cycle_file(tmp_path: pathlib.Path) -> pathlib.Path:
    """Descriptor file (bare list form) with a required A -> B -> C -> A cycle."""
    path = tmp_path / "cycle.yaml"
    path.write_text(CYCLE_YAML)
    return path
