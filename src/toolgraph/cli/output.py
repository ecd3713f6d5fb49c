"""Rich output formatting helpers for the toolgraph CLI.

Provides consistent, severity-coloured terminal output for conflict reports,
resolution steps, installation orders and graph statistics.

Severity Color Mapping:
    CRITICAL = bold red, MAJOR = yellow, MINOR = cyan
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from toolgraph.core.conflicts import (
    ConflictDetectionResult,
    ConflictSeverity,
    ImpactLevel,
    ResolutionExecutionResult,
    StepResult,
)
from toolgraph.core.dependency import (
    ConstructionIssue,
    GraphStatistics,
    InstallationOrder,
)

_SEVERITY_STYLES: dict[ConflictSeverity, str] = {
    ConflictSeverity.CRITICAL: "bold red",
    ConflictSeverity.MAJOR: "yellow",
    ConflictSeverity.MINOR: "cyan",
}

_STEP_STYLES: dict[StepResult, str] = {
    StepResult.SUCCESS: "bold green",
    StepResult.PLANNED: "cyan",
    StepResult.SKIPPED: "dim",
    StepResult.FAILED: "bold red",
}

_IMPACT_STYLES: dict[ImpactLevel, str] = {
    ImpactLevel.LOW: "green",
    ImpactLevel.MEDIUM: "yellow",
    ImpactLevel.HIGH: "bold red",
}

console = Console()
err_console = Console(stderr=True)


def severity_style(severity: ConflictSeverity) -> str:
    """Return the Rich style string for a given severity level."""
    return _SEVERITY_STYLES.get(severity, "white")


def print_error(message: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {escape(message)}")


def print_issues(warnings: tuple[ConstructionIssue, ...]) -> None:
    """Print graph construction warnings, one per line."""
    for issue in warnings:
        console.print(f"[yellow]warning[/yellow] [dim]{issue.code}[/dim] {escape(issue.message)}")


def print_conflicts(result: ConflictDetectionResult) -> None:
    """Print a conflict table followed by the detector's recommendations.

    Args:
        result: Detection result for one set of targets.
    """
    targets = ", ".join(result.target_tool_ids) or "-"
    if not result.has_conflicts:
        console.print(
            Panel(f"[bold green]No conflicts[/bold green] for {targets}",
                  title="Conflict Detection")
        )
        return

    table = Table(title="Conflicts", show_header=True, header_style="bold")
    table.add_column("Severity", justify="center")
    table.add_column("Type")
    table.add_column("Tools", style="bold")
    table.add_column("Description")
    table.add_column("Auto", justify="center")
    for conflict in result.conflicts:
        table.add_row(
            Text(conflict.severity.label, style=severity_style(conflict.severity)),
            conflict.type.value,
            ", ".join(conflict.involved_tools),
            conflict.description,
            "yes" if conflict.auto_resolvable else "no",
        )
    console.print(table)

    stats = result.statistics
    parts = [f"[bold]{stats.total}[/bold] conflicts"]
    if stats.critical:
        parts.append(f"[red]{stats.critical} critical[/red]")
    parts.append(f"{stats.nodes_checked} tools checked")
    console.print(" | ".join(parts))
    for recommendation in result.recommendations:
        console.print(f"  [dim]-[/dim] {recommendation}")


def print_resolution(result: ResolutionExecutionResult) -> None:
    """Print the steps of a resolution run and its summary.

    Args:
        result: Output of ``ConflictResolver.resolve``.
    """
    if result.success:
        verdict = "[bold green]Resolution successful[/bold green]"
    elif not result.applied:
        verdict = "[bold cyan]Resolution planned[/bold cyan]"
    else:
        verdict = "[bold red]Resolution incomplete[/bold red]"
    console.print(Panel(verdict, title="Conflict Resolution"))

    if result.steps:
        table = Table(title="Steps", show_header=True)
        table.add_column("Step", style="dim")
        table.add_column("Conflict")
        table.add_column("Action")
        table.add_column("Result", justify="center")
        table.add_column("Description")
        for step in result.steps:
            table.add_row(
                step.step_id,
                step.conflict_id,
                step.action.value,
                Text(step.result.value, style=_STEP_STYLES.get(step.result, "white")),
                step.description,
            )
        console.print(table)

    summary = result.summary
    impact = Text(summary.impact.value, style=_IMPACT_STYLES.get(summary.impact, "white"))
    console.print(f"  {summary.description}")
    console.print("  Impact: ", impact)
    for effect in summary.side_effects:
        console.print(f"  [dim]-[/dim] {effect}")
    for conflict in result.remaining_conflicts:
        console.print(f"  [red]- {conflict.id}: {conflict.description}[/red]")


def print_order(order: InstallationOrder) -> None:
    """Print installation batches, then anything that could not be ordered."""
    if not order.batches:
        console.print("[dim]Nothing to install.[/dim]")
    else:
        table = Table(title="Installation Order", show_header=True)
        table.add_column("Batch", justify="right", style="bold")
        table.add_column("Tools")
        for index, batch in enumerate(order.batches, start=1):
            table.add_row(str(index), ", ".join(batch))
        console.print(table)
        if order.sequence != tuple(t for batch in order.batches for t in batch):
            console.print(f"[dim]Sequence:[/dim] {' -> '.join(order.sequence)}")

    if order.deferred:
        console.print(f"[dim]Deferred:[/dim] {', '.join(order.deferred)}")
    for cycle in order.circular_dependencies:
        console.print(f"[red]Cycle:[/red] {' -> '.join((*cycle, cycle[0]))}")
    if order.blocked:
        console.print(f"[yellow]Blocked:[/yellow] {', '.join(order.blocked)}")


def print_statistics(stats: GraphStatistics) -> None:
    """Print graph size metrics and category distribution.

    Args:
        stats: Snapshot from ``DependencyGraph.get_statistics``.
    """
    console.print(Panel("[bold]Dependency Graph[/bold]", title="Graph Statistics"))
    console.print(f"  Tools:         [bold]{stats.node_count}[/bold]")
    console.print(f"  Relations:     [bold]{stats.edge_count}[/bold]")
    console.print(f"  Components:    {stats.connected_components}")
    console.print(f"  Max depth:     {stats.max_depth}")
    console.print(f"  Avg degree:    {stats.average_degree:.2f}")
    console.print(f"  Density:       {stats.density:.3f}")

    if stats.edges_by_type:
        type_table = Table(title="Relations by Type", show_header=True)
        type_table.add_column("Type", style="bold")
        type_table.add_column("Count", justify="right")
        for kind, count in sorted(stats.edges_by_type.items()):
            type_table.add_row(kind, str(count))
        console.print(type_table)

    if stats.category_distribution:
        cat_table = Table(title="Categories", show_header=True)
        cat_table.add_column("Category", style="bold")
        cat_table.add_column("Count", justify="right")
        for category, count in sorted(stats.category_distribution.items()):
            cat_table.add_row(category, str(count))
        console.print(cat_table)


def print_json(data: Any) -> None:
    """Print data as formatted JSON to stdout.

    Args:
        data: Any JSON-serializable data structure.
    """
    console.print_json(json.dumps(data, default=str))
