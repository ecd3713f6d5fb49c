"""Shared fixtures for CLI tests.

Provides the Click runner and descriptor/policy files covering the error
paths (unreadable YAML, missing dependencies, duplicate ids, platform gaps).
"""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner
from rich.console import Console

from toolgraph.cli import output


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Render rich output at a fixed width so table titles never wrap."""
    monkeypatch.setattr(output, "console", Console(width=200))
    monkeypatch.setattr(output, "err_console", Console(stderr=True, width=200))


@pytest.fixture
def broken_yaml_file(tmp_path: Path) -> Path:
    """A descriptor file that is not valid YAML."""
    path = tmp_path / "broken.yaml"
    path.write_text("tools: [unclosed\n")
    return path


@pytest.fixture
def missing_dependency_file(tmp_path: Path) -> Path:
    """react depends on node, which is not described."""
    path = tmp_path / "missing.yaml"
    path.write_text("tools:\n  - id: react\n    dependencies: [node]\n")
    return path


@pytest.fixture
def duplicate_file(tmp_path: Path) -> Path:
    """git is described twice."""
    path = tmp_path / "duplicate.yaml"
    path.write_text("tools:\n  - id: git\n  - id: git\n")
    return path


@pytest.fixture
def windows_only_file(tmp_path: Path) -> Path:
    """iis installs only through winget; nginx is a declared alternative."""
    path = tmp_path / "servers.yaml"
    path.write_text(
        "tools:\n"
        "  - id: iis\n"
        "    alternatives: [nginx]\n"
        "    installation_methods:\n"
        "      - {method: winget, platform: windows, command: 'winget install iis'}\n"
        "  - id: nginx\n"
        "  - id: site\n"
        "    dependencies: [iis]\n"
    )
    return path


@pytest.fixture
def policy_file(tmp_path: Path) -> Path:
    """A policy that only plans."""
    path = tmp_path / "policy.yaml"
    path.write_text("automatic_resolution: false\nmax_steps: 10\n")
    return path


@pytest.fixture
def bad_policy_file(tmp_path: Path) -> Path:
    """A policy with a misspelled key."""
    path = tmp_path / "bad-policy.yaml"
    path.write_text("allow_breaking: true\n")
    return path
