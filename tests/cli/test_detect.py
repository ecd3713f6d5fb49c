"""Tests for ``toolgraph detect`` and the top-level group.

Verifies:
    - Clean graphs exit with code 0.
    - Version clashes and cycles exit with code 1.
    - Unreadable files, invalid graphs and unknown targets exit with code 2.
    - JSON output format.
"""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from toolgraph import __version__
from toolgraph.cli.main import cli


class TestGroup:
    """Tests for the ``toolgraph`` group itself."""

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("detect", "resolve", "order", "stats"):
            assert command in result.output


class TestDetectClean:
    """Tests for graphs without conflicts."""

    def test_exit_code_0(self, runner: CliRunner, web_stack_file: Path) -> None:
        result = runner.invoke(cli, ["detect", str(web_stack_file), "-t", "react"])
        assert result.exit_code == 0
        assert "No conflicts" in result.output

    def test_json(self, runner: CliRunner, web_stack_file: Path) -> None:
        result = runner.invoke(cli, ["detect", str(web_stack_file), "-t", "react", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["has_conflicts"] is False
        assert data["statistics"]["nodes_checked"] == 3
        assert data["platform"] == "linux"

    def test_missing_dependency_is_a_warning(
        self, runner: CliRunner, missing_dependency_file: Path
    ) -> None:
        result = runner.invoke(cli, ["detect", str(missing_dependency_file), "-t", "react"])
        assert result.exit_code == 0
        assert "MISSING_DEPENDENCY" in result.output
        assert "No conflicts" in result.output


class TestDetectConflicts:
    """Tests for graphs with conflicts."""

    def test_version_clash(self, runner: CliRunner, clash_file: Path) -> None:
        result = runner.invoke(cli, ["detect", str(clash_file), "-t", "A", "-t", "B", "--json"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["severity"] == "critical"
        assert data["conflicts"][0]["id"] == "version-node"
        assert data["version_conflicts"][0]["compromise_version"] == "18.19.1"

    def test_version_clash_table(self, runner: CliRunner, clash_file: Path) -> None:
        result = runner.invoke(cli, ["detect", str(clash_file), "-t", "A", "-t", "B"])
        assert result.exit_code == 1
        assert "Conflicts" in result.output
        assert "critical" in result.output

    def test_cycle(self, runner: CliRunner, cycle_file: Path) -> None:
        result = runner.invoke(cli, ["detect", str(cycle_file), "-t", "A", "--json"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["circular_dependencies"][0]["cycle"] == ["A", "B", "C"]

    def test_platform_gap_depends_on_platform(
        self, runner: CliRunner, windows_only_file: Path
    ) -> None:
        on_linux = runner.invoke(cli, ["detect", str(windows_only_file), "-t", "site"])
        on_windows = runner.invoke(
            cli, ["detect", str(windows_only_file), "-t", "site", "--platform", "windows"]
        )
        assert on_linux.exit_code == 1
        assert on_windows.exit_code == 0

    def test_quick_thoroughness(self, runner: CliRunner, cycle_file: Path) -> None:
        result = runner.invoke(
            cli, ["detect", str(cycle_file), "-t", "A", "--thoroughness", "quick", "--json"]
        )
        assert result.exit_code == 1
        assert len(json.loads(result.output)["circular_dependencies"]) == 1


class TestDetectBadInput:
    """Tests for exit code 2."""

    def test_unknown_target(self, runner: CliRunner, web_stack_file: Path) -> None:
        result = runner.invoke(cli, ["detect", str(web_stack_file), "-t", "vue"])
        assert result.exit_code == 2
        assert "Unknown target tool(s): vue" in result.output

    def test_broken_yaml(self, runner: CliRunner, broken_yaml_file: Path) -> None:
        result = runner.invoke(cli, ["detect", str(broken_yaml_file), "-t", "x"])
        assert result.exit_code == 2
        assert "Error" in result.output

    def test_duplicate_ids(self, runner: CliRunner, duplicate_file: Path) -> None:
        result = runner.invoke(cli, ["detect", str(duplicate_file), "-t", "git"])
        assert result.exit_code == 2
        assert "DUPLICATE_TOOL_ID" in result.output

    def test_missing_file(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["detect", str(tmp_path / "nope.yaml"), "-t", "x"])
        assert result.exit_code == 2

    def test_target_is_required(self, runner: CliRunner, web_stack_file: Path) -> None:
        result = runner.invoke(cli, ["detect", str(web_stack_file)])
        assert result.exit_code == 2
