"""Resolution strategies and their dispatch table.

Each ``ResolutionStrategy`` member maps to exactly one handler in
``STRATEGY_HANDLERS``. Which strategies are tried for a conflict, and in
what order, is decided by ``select_strategies`` from the conflict type and
the policy. Adding a strategy means adding an enum member, a handler and a
row in ``_STRATEGIES_BY_TYPE``; the test suite checks the tables are total.

A handler receives the working graph (through ``ResolutionContext``) and
either mutates it and returns a ``StrategyOutcome``, or returns None when
the strategy does not apply to this conflict.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from toolgraph.core.conflicts.detector import (
    best_compromise,
    compatible_alternatives,
    compromise_candidates,
    constraints_satisfiable,
    deferrable,
)
from toolgraph.core.conflicts.models import (
    ConflictDetail,
    ConflictType,
    ResolutionStrategy,
    StepAction,
    VersionConflictInfo,
)
from toolgraph.core.dependency.constraints import VersionConstraint, exact
from toolgraph.core.dependency.graph import (
    DEPENDENCY_TYPES,
    DependencyGraph,
    Edge,
    EdgeRelation,
    Node,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Policy and handler plumbing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolutionPolicy:
    """How aggressively the resolver may change the graph.

    Attributes:
        automatic_resolution: Apply steps. When False only a plan is returned.
        require_user_confirmation: Return a plan for the caller to confirm,
            even when ``automatic_resolution`` is set.
        allow_breaking_changes: Permit tool substitution and removal of
            required relations inside cycles.
        prefer_latest_versions: Break compromise ties towards the newest
            version (else the oldest).
        max_steps: Upper bound on steps per run; further conflicts are skipped.
    """

    automatic_resolution: bool = True
    require_user_confirmation: bool = False
    allow_breaking_changes: bool = False
    prefer_latest_versions: bool = True
    max_steps: int = 50

    @property
    def plan_only(self) -> bool:
        return not self.automatic_resolution or self.require_user_confirmation


@dataclass
class ResolutionContext:
    """Mutable state shared by the handlers during one resolver run."""

    graph: DependencyGraph
    policy: ResolutionPolicy
    targets: list[str]
    substitutions: dict[str, str] = field(default_factory=dict)
    version_conflicts: dict[str, VersionConflictInfo] = field(default_factory=dict)

    def in_scope(self) -> set[str]:
        """Tools that installing the current targets pulls in."""
        return set(self.graph.reachable_from(self.targets, DEPENDENCY_TYPES))

    def replace_target(self, old: str, new: str) -> None:
        replaced = [new if t == old else t for t in self.targets]
        self.targets[:] = list(dict.fromkeys(replaced))


@dataclass(frozen=True)
class StrategyOutcome:
    """What a handler did to the graph."""

    action: StepAction
    description: str
    affected_tools: tuple[str, ...]
    reversible: bool = True
    side_effects: tuple[str, ...] = ()


StrategyHandler = Callable[[ResolutionContext, ConflictDetail], Optional[StrategyOutcome]]


# ---------------------------------------------------------------------------
# Version pinning
# ---------------------------------------------------------------------------


def _constraint_edges(ctx: ResolutionContext, tool_id: str) -> list[Edge]:
    """Constraining edges into *tool_id* whose source the targets pull in."""
    scope = ctx.in_scope()
    return [
        e for e in ctx.graph.get_incoming_edges(tool_id)
        if e.constraint is not None
        and e.dependency_type in DEPENDENCY_TYPES
        and e.source in scope
    ]


def _compromise(
    ctx: ResolutionContext, node: Node, constraints: list[VersionConstraint]
) -> tuple[str | None, int]:
    info = ctx.version_conflicts.get(node.id)
    if (
        ctx.policy.prefer_latest_versions
        and info is not None
        and info.compromise_version is not None
    ):
        return info.compromise_version, info.satisfied_count
    return best_compromise(
        compromise_candidates(node, constraints),
        constraints,
        prefer_latest=ctx.policy.prefer_latest_versions,
    )


def pin_version(ctx: ResolutionContext, conflict: ConflictDetail) -> StrategyOutcome | None:
    """Select the compromise version and rewrite unsatisfied constraints to it.

    Only relations from tools the targets pull in are considered or rewritten.
    The detector's compromise is reused when the policy prefers latest versions.
    """
    tool_id = conflict.involved_tools[0]
    node = ctx.graph.get_node(tool_id)
    if node is None:
        return None
    edges = _constraint_edges(ctx, tool_id)
    constraints = [e.constraint for e in edges if e.constraint is not None]
    version, satisfied = _compromise(ctx, node, constraints)
    if version is None or (constraints and satisfied == 0):
        return None

    pinned = exact(version)
    side_effects: list[str] = []
    for edge in edges:
        assert edge.constraint is not None
        if edge.constraint.satisfies(version):
            continue
        ctx.graph.set_edge_constraint(edge.source, tool_id, pinned)
        side_effects.append(
            f"{edge.source}: constraint on {tool_id} changed from "
            f"{edge.constraint.raw} to {pinned.raw}"
        )
    ctx.graph.set_selected_version(tool_id, version)
    logger.debug("Pinned %s to %s (%d constraints rewritten)", tool_id, version, len(side_effects))
    return StrategyOutcome(
        action=StepAction.PIN_VERSION,
        description=f"Pin {tool_id} to {version}",
        affected_tools=(tool_id, *sorted({e.source for e in edges})),
        reversible=True,
        side_effects=tuple(side_effects),
    )


# ---------------------------------------------------------------------------
# Tool substitution
# ---------------------------------------------------------------------------


def _subjects(conflict: ConflictDetail) -> list[str]:
    """Tools a substitution or deferral may act on, in preference order."""
    if conflict.type is ConflictType.MUTUAL_EXCLUSION:
        # The excluded tool first, then the one declaring the exclusion.
        return [conflict.involved_tools[1], conflict.involved_tools[0]]
    if conflict.type is ConflictType.RESOURCE:
        return list(reversed(conflict.involved_tools))
    return [conflict.involved_tools[0]]


def _contested_resources(
    graph: DependencyGraph, subject: str, conflict: ConflictDetail
) -> set[str]:
    """Resources *subject* shares with the other tools of a resource conflict."""
    node = graph.get_node(subject)
    if conflict.type is not ConflictType.RESOURCE or node is None:
        return set()
    others: set[str] = set()
    for tool_id in conflict.involved_tools:
        other = graph.get_node(tool_id)
        if tool_id != subject and other is not None:
            others.update(other.descriptor.resources)
    return others.intersection(node.descriptor.resources)


def substitute_tool(ctx: ResolutionContext, conflict: ConflictDetail) -> StrategyOutcome | None:
    """Replace a tool with a compatible declared alternative.

    Dependents are rewired onto the alternative without version constraints,
    the original tool is removed, and the target list is updated.
    """
    if not ctx.policy.allow_breaking_changes:
        return None
    for subject in _subjects(conflict):
        node = ctx.graph.get_node(subject)
        if node is None:
            continue
        contested = _contested_resources(ctx.graph, subject, conflict)
        candidates = [
            alt for alt in compatible_alternatives(ctx.graph, node)
            if alt not in conflict.involved_tools
            and not contested.intersection(ctx.graph.get_node(alt).descriptor.resources)
        ]
        if not candidates:
            continue
        replacement = candidates[0]
        rewired: list[str] = []
        for edge in ctx.graph.get_incoming_edges(subject):
            ctx.graph.remove_edge(edge.source, subject)
            if edge.source == replacement or not edge.dependency_type.is_ordering:
                continue
            ctx.graph.add_edge(
                edge.source,
                replacement,
                EdgeRelation(edge.dependency_type, None, f"substituted for {subject}"),
            )
            rewired.append(edge.source)
        ctx.graph.remove_node(subject)
        ctx.replace_target(subject, replacement)
        ctx.substitutions[subject] = replacement
        logger.debug("Substituted %s with %s", subject, replacement)
        side_effects = [f"Removed {subject} from the installation"]
        if rewired:
            side_effects.append(
                f"Rewired {', '.join(sorted(rewired))} to depend on {replacement}"
            )
        return StrategyOutcome(
            action=StepAction.SUBSTITUTE,
            description=f"Substitute {replacement} for {subject}",
            affected_tools=(subject, replacement, *sorted(rewired)),
            reversible=False,
            side_effects=tuple(side_effects),
        )
    return None


# ---------------------------------------------------------------------------
# Edge relaxation
# ---------------------------------------------------------------------------


def _disconnects_target(ctx: ResolutionContext, edge: Edge) -> bool:
    """True when removing *edge* would leave a target with no dependencies."""
    return (
        edge.source in ctx.targets
        and len(ctx.graph.dependencies(edge.source)) <= 1
    )


def _relax_version_conflict(
    ctx: ResolutionContext, conflict: ConflictDetail
) -> StrategyOutcome | None:
    tool_id = conflict.involved_tools[0]
    node = ctx.graph.get_node(tool_id)
    if node is None:
        return None
    edges = _constraint_edges(ctx, tool_id)
    # Soft relations first: dropping them changes nothing that must hold.
    ordered = sorted(edges, key=lambda e: (e.is_required, e.source))
    for edge in ordered:
        rest = [e.constraint for e in edges if e is not edge and e.constraint is not None]
        if not constraints_satisfiable(node, rest):
            continue
        if edge.is_required and _disconnects_target(ctx, edge):
            continue
        ctx.graph.remove_edge(edge.source, tool_id)
        kind = edge.dependency_type.value
        return StrategyOutcome(
            action=StepAction.RELAX_EDGE,
            description=f"Drop {kind} relation {edge.source} -> {tool_id}",
            affected_tools=(edge.source, tool_id),
            reversible=not edge.is_required,
            side_effects=(
                f"{edge.source} no longer constrains {tool_id} "
                f"(was {edge.constraint.raw if edge.constraint else '*'})",
            ),
        )
    return None


def _break_cycle(ctx: ResolutionContext, conflict: ConflictDetail) -> StrategyOutcome | None:
    cycle = conflict.involved_tools
    edges = [
        ctx.graph.get_edge(cycle[i], cycle[(i + 1) % len(cycle)])
        for i in range(len(cycle))
    ]
    present = [e for e in edges if e is not None]
    if len(present) < len(edges):
        return None

    candidates = [e for e in present if not e.is_required]
    if not candidates and ctx.policy.allow_breaking_changes:
        candidates = sorted(
            (e for e in present if not _disconnects_target(ctx, e)),
            key=lambda e: (-len(ctx.graph.dependencies(e.source)), e.source),
        )
    if not candidates:
        return None
    edge = candidates[0]
    ctx.graph.remove_edge(edge.source, edge.target)
    return StrategyOutcome(
        action=StepAction.BREAK_CYCLE,
        description=(
            f"Break cycle by dropping {edge.dependency_type.value} relation "
            f"{edge.source} -> {edge.target}"
        ),
        affected_tools=(edge.source, edge.target),
        reversible=not edge.is_required,
        side_effects=(f"{edge.source} is installed without waiting for {edge.target}",),
    )


def relax_edge(ctx: ResolutionContext, conflict: ConflictDetail) -> StrategyOutcome | None:
    """Drop the single relation responsible for a conflict."""
    if conflict.type is ConflictType.CIRCULAR:
        return _break_cycle(ctx, conflict)
    if conflict.type is ConflictType.VERSION:
        return _relax_version_conflict(ctx, conflict)
    return None


# ---------------------------------------------------------------------------
# Dependency deferral
# ---------------------------------------------------------------------------


def defer_dependency(ctx: ResolutionContext, conflict: ConflictDetail) -> StrategyOutcome | None:
    """Leave a tool that no target requires out of this installation.

    Applies when every relation pulling the tool in is optional or suggested.
    Those relations are dropped, so the tool and anything only it needed
    leave the installation scope.
    """
    scope = ctx.in_scope()
    for subject in _subjects(conflict):
        if not deferrable(ctx.graph, subject, ctx.targets, scope):
            continue
        dropped = sorted(
            e.source for e in ctx.graph.get_incoming_edges(subject)
            if e.source in scope and e.dependency_type.is_ordering
        )
        for source in dropped:
            ctx.graph.remove_edge(source, subject)
        logger.debug("Deferred %s (dropped relations from %s)", subject, ", ".join(dropped))
        return StrategyOutcome(
            action=StepAction.DEFER,
            description=f"Defer {subject}",
            affected_tools=(subject, *dropped),
            reversible=True,
            side_effects=(f"{subject} is left out; install it separately",),
        )
    return None


# ---------------------------------------------------------------------------
# Dispatch tables
# ---------------------------------------------------------------------------

STRATEGY_HANDLERS: dict[ResolutionStrategy, StrategyHandler] = {
    ResolutionStrategy.VERSION_PINNING: pin_version,
    ResolutionStrategy.TOOL_SUBSTITUTION: substitute_tool,
    ResolutionStrategy.EDGE_RELAXATION: relax_edge,
    ResolutionStrategy.DEPENDENCY_DEFERRAL: defer_dependency,
}

_STRATEGIES_BY_TYPE: dict[ConflictType, tuple[ResolutionStrategy, ...]] = {
    ConflictType.VERSION: (
        ResolutionStrategy.VERSION_PINNING,
        ResolutionStrategy.TOOL_SUBSTITUTION,
        ResolutionStrategy.EDGE_RELAXATION,
    ),
    ConflictType.INSTALLED_VERSION: (ResolutionStrategy.VERSION_PINNING,),
    ConflictType.CIRCULAR: (ResolutionStrategy.EDGE_RELAXATION,),
    ConflictType.PLATFORM: (
        ResolutionStrategy.DEPENDENCY_DEFERRAL,
        ResolutionStrategy.TOOL_SUBSTITUTION,
    ),
    ConflictType.MUTUAL_EXCLUSION: (
        ResolutionStrategy.DEPENDENCY_DEFERRAL,
        ResolutionStrategy.TOOL_SUBSTITUTION,
    ),
    ConflictType.RESOURCE: (
        ResolutionStrategy.DEPENDENCY_DEFERRAL,
        ResolutionStrategy.TOOL_SUBSTITUTION,
    ),
}


def select_strategies(
    conflict: ConflictDetail, policy: ResolutionPolicy
) -> tuple[ResolutionStrategy, ...]:
    """Strategies to try for *conflict*, in priority order, under *policy*."""
    strategies = _STRATEGIES_BY_TYPE[conflict.type]
    if not policy.allow_breaking_changes:
        strategies = tuple(
            s for s in strategies if s is not ResolutionStrategy.TOOL_SUBSTITUTION
        )
    return strategies
