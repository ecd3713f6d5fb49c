"""Conflict detection over a tool dependency graph.

Reads a graph plus the set of tools a user wants installed, and reports
everything that stands between them and a clean installation order.

Checks run cheapest and most fundamental first, because later checks may
assume earlier ones already ran:

1. Circular dependencies (iterative DFS with an on-stack set; every
   back-edge yields a cycle, and all cycles are reported).
2. Version conflicts (interval intersection of competing constraints, with
   a compromise version suggestion, restricted to the versions the selected
   installation method can provide).
3. Platform incompatibilities (tools the builder could not place on the
   target platform/architecture).
4. Mutual exclusions (``conflicts`` relations between tools that would both
   be installed). Skipped in QUICK mode.
5. Shared resources (two reachable tools declaring the same exclusive
   resource, such as a port). Skipped in QUICK mode.
6. Installed-version mismatches (THOROUGH only).

Severity policy:
    - cycle: CRITICAL
    - version conflict unsatisfiable by required constraints alone: CRITICAL
    - version conflict caused only by soft (optional/suggests) constraints: MAJOR
    - platform gap with a fallback installer or alternative tool: MINOR,
      otherwise MAJOR and blocking
    - mutual exclusion: MAJOR, blocking
    - shared resource: MAJOR, blocking
    - installed-version mismatch: MINOR
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Sequence

from toolgraph.core.conflicts.models import (
    CircularDependencyInfo,
    ConflictDetail,
    ConflictDetectionResult,
    ConflictSeverity,
    ConflictStatistics,
    ConflictType,
    DetectionThoroughness,
    MutualExclusionInfo,
    PlatformIncompatibilityInfo,
    ResolutionStrategy,
    ResourceConflictInfo,
    SuggestedResolution,
    VersionConflictInfo,
    VersionRequirement,
)
from toolgraph.core.dependency.constraints import (
    UNBOUNDED,
    Version,
    VersionConstraint,
    VersionRange,
    format_version,
    intersect_all,
    parse_constraint,
    parse_version,
)
from toolgraph.core.dependency.graph import DEPENDENCY_TYPES, DependencyGraph, Node
from toolgraph.core.manifest.models import (
    Architecture,
    DependencyType,
    Platform,
    fallback_installation_method,
)
from toolgraph.exceptions import ConstraintError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DetectionOptions:
    """Detector configuration.

    Attributes:
        thoroughness: QUICK, BALANCED (default) or THOROUGH.
        platform: Platform to report against; defaults to the graph's.
        architecture: Architecture to report against; defaults to the graph's.
    """

    thoroughness: DetectionThoroughness = DetectionThoroughness.BALANCED
    platform: Platform | None = None
    architecture: Architecture | None = None


# ---------------------------------------------------------------------------
# Version helpers (shared with the resolver)
# ---------------------------------------------------------------------------


def installable_range(node: Node) -> VersionRange:
    """Versions the tool's selected installation method can provide.

    Unbounded when no method is selected or the method declares no window.
    """
    method = node.installation_method
    expression = method.version_expression() if method is not None else None
    if expression is None:
        return UNBOUNDED
    try:
        return parse_constraint(expression)
    except ConstraintError:
        logger.debug("Ignoring unparsable version window %r of %s", expression, node.id)
        return UNBOUNDED


def _declared_versions(node: Node) -> list[tuple[Version, str]]:
    parsed: list[tuple[Version, str]] = []
    for raw in node.descriptor.versions:
        try:
            parsed.append((parse_version(raw), raw))
        except ConstraintError:
            logger.debug("Ignoring unparsable version %r of %s", raw, node.id)
    return parsed


def available_versions(node: Node) -> list[tuple[Version, str]]:
    """Parsed declared versions the selected installation method can install."""
    window = installable_range(node)
    return [(v, raw) for v, raw in _declared_versions(node) if window.contains(v)]


def compromise_candidates(
    node: Node, constraints: Sequence[VersionConstraint]
) -> list[tuple[Version, str]]:
    """Versions worth considering as a compromise for *node*.

    The available versions when the tool declares any; otherwise the
    inclusive boundary versions of each constraint and of the installation
    method's window. Candidates always lie inside that window.
    """
    if _declared_versions(node):
        return available_versions(node)
    window = installable_range(node)
    seen: dict[Version, str] = {}
    for rng in [c.range for c in constraints] + [window]:
        for version in rng.boundary_versions():
            if window.contains(version):
                seen.setdefault(version, format_version(version))
    return sorted(seen.items())


def best_compromise(
    candidates: Iterable[tuple[Version, str]],
    constraints: Sequence[VersionConstraint],
    prefer_latest: bool = True,
) -> tuple[str | None, int]:
    """Pick the version satisfying the largest number of constraints.

    Ties between versions satisfying the same number of constraints go to
    the highest version (``prefer_latest``) or the lowest.

    Returns:
        ``(version, satisfied_count)``; ``(None, 0)`` without candidates.
    """
    best: tuple[int, Version, str] | None = None
    for version, raw in candidates:
        count = sum(1 for c in constraints if c.range.contains(version))
        key_version = version if prefer_latest else tuple(-p for p in version)
        if best is None or (count, key_version) > (best[0], best[1]):
            best = (count, key_version, raw)
    if best is None:
        return None, 0
    return best[2], best[0]


def constraints_satisfiable(node: Node, constraints: Sequence[VersionConstraint]) -> bool:
    """Whether some version of *node* meets every constraint.

    With declared versions this means an actual available version; without
    them, a non-empty intersection. Either way the version must lie in the
    installation method's window.
    """
    combined = intersect_all(constraints).intersect(installable_range(node))
    if _declared_versions(node):
        return any(combined.contains(v) for v, _ in available_versions(node))
    return not combined.is_empty()


def compatible_alternatives(graph: DependencyGraph, node: Node) -> tuple[str, ...]:
    """Declared alternatives of *node* present in *graph* and installable."""
    result: list[str] = []
    for alt_id in node.descriptor.alternatives:
        alt = graph.get_node(alt_id)
        if alt is not None and alt.platform_compatible and alt_id != node.id:
            result.append(alt_id)
    return tuple(result)


def deferrable(
    graph: DependencyGraph,
    tool_id: str,
    targets: Iterable[str],
    scope: set[str],
) -> bool:
    """Whether *tool_id* is pulled in only through optional or suggested relations.

    Such a tool is not needed by any target and can be left out of this
    installation, to be installed on its own later.
    """
    if tool_id in targets:
        return False
    edges = [
        e for e in graph.get_incoming_edges(tool_id)
        if e.source in scope and e.dependency_type.is_ordering
    ]
    return bool(edges) and not any(e.is_required for e in edges)


def canonical_cycle(cycle: Sequence[str]) -> tuple[str, ...]:
    """Rotate a cycle so it starts at its smallest id (direction preserved)."""
    start = cycle.index(min(cycle))
    return tuple(cycle[start:]) + tuple(cycle[:start])


# ---------------------------------------------------------------------------
# ConflictDetector
# ---------------------------------------------------------------------------


class ConflictDetector:
    """Detect conflicts blocking the installation of a set of tools.

    Args:
        options: Detection configuration; defaults to BALANCED.
    """

    def __init__(self, options: DetectionOptions | None = None) -> None:
        self.options = options or DetectionOptions()

    @property
    def _quick(self) -> bool:
        return self.options.thoroughness is DetectionThoroughness.QUICK

    def detect(
        self, graph: DependencyGraph, target_tool_ids: Iterable[str]
    ) -> ConflictDetectionResult:
        """Run every check for *target_tool_ids* and return a snapshot.

        Raises:
            UnknownNodeError: If a target is not in the graph.
        """
        targets = tuple(dict.fromkeys(target_tool_ids))
        reachable = graph.reachable_from(targets, DEPENDENCY_TYPES)
        platform = self.options.platform or graph.platform
        architecture = self.options.architecture or graph.architecture

        cycles = self._find_cycles(graph, reachable)
        versions = self._find_version_conflicts(graph, reachable)
        platforms = self._find_platform_gaps(graph, reachable, platform, architecture)
        exclusions: list[MutualExclusionInfo] = []
        resources: list[ResourceConflictInfo] = []
        if not self._quick:
            exclusions = self._find_mutual_exclusions(graph, reachable)
            resources = self._find_resource_conflicts(graph, reachable)

        scope = set(reachable)
        soft = frozenset(n for n in reachable if deferrable(graph, n, targets, scope))
        conflicts: list[ConflictDetail] = []
        conflicts.extend(self._cycle_detail(c) for c in cycles)
        conflicts.extend(self._version_detail(graph, v) for v in versions)
        conflicts.extend(self._platform_detail(p, soft) for p in platforms)
        conflicts.extend(self._exclusion_detail(graph, m, soft) for m in exclusions)
        conflicts.extend(self._resource_detail(graph, r, soft) for r in resources)
        if self.options.thoroughness is DetectionThoroughness.THOROUGH:
            conflicts.extend(self._find_installed_mismatches(graph, reachable, versions))

        stats = ConflictStatistics(
            total=len(conflicts),
            critical=sum(1 for c in conflicts if c.severity is ConflictSeverity.CRITICAL),
            blocking=sum(1 for c in conflicts if c.blocking),
            auto_resolvable=sum(1 for c in conflicts if c.auto_resolvable),
            by_type=dict(sorted(Counter(c.type.value for c in conflicts).items())),
            nodes_checked=len(reachable),
        )
        logger.debug(
            "Checked %d tools for %s: %d conflicts (%d critical)",
            len(reachable), ", ".join(targets), stats.total, stats.critical,
        )
        return ConflictDetectionResult(
            conflicts=tuple(conflicts),
            version_conflicts=tuple(versions),
            circular_dependencies=tuple(cycles),
            platform_incompatibilities=tuple(platforms),
            mutual_exclusions=tuple(exclusions),
            resource_conflicts=tuple(resources),
            statistics=stats,
            recommendations=tuple(_recommendations(conflicts)),
            target_tool_ids=targets,
            platform=platform,
        )

    # -- 1. Cycles ----------------------------------------------------------

    def _find_cycles(
        self, graph: DependencyGraph, reachable: list[str]
    ) -> list[CircularDependencyInfo]:
        """Iterative DFS; every back-edge to an on-stack node closes a cycle."""
        in_scope = set(reachable)
        finished: set[str] = set()
        found: dict[tuple[str, ...], None] = {}

        for root in sorted(reachable):
            if root in finished:
                continue
            path: list[str] = [root]
            position: dict[str, int] = {root: 0}
            stack = [iter(sorted(graph.dependencies(root)))]
            while stack:
                for nxt in stack[-1]:
                    if nxt not in in_scope or nxt in finished:
                        continue
                    if nxt in position:
                        found.setdefault(canonical_cycle(path[position[nxt]:]))
                        if self._quick:
                            return [self._cycle_info(graph, next(iter(found)))]
                        continue
                    position[nxt] = len(path)
                    path.append(nxt)
                    stack.append(iter(sorted(graph.dependencies(nxt))))
                    break
                else:
                    stack.pop()
                    done = path.pop()
                    del position[done]
                    finished.add(done)

        return [self._cycle_info(graph, cycle) for cycle in found]

    @staticmethod
    def _cycle_info(graph: DependencyGraph, cycle: tuple[str, ...]) -> CircularDependencyInfo:
        edges = [
            graph.get_edge(cycle[i], cycle[(i + 1) % len(cycle)]) for i in range(len(cycle))
        ]
        break_points = tuple(
            (e.source, e.target) for e in edges if e is not None and not e.is_required
        )
        impact = ConflictSeverity.MAJOR if break_points else ConflictSeverity.CRITICAL
        return CircularDependencyInfo(cycle=cycle, break_points=break_points, impact=impact)

    # -- 2. Version conflicts -----------------------------------------------

    def _find_version_conflicts(
        self, graph: DependencyGraph, reachable: list[str]
    ) -> list[VersionConflictInfo]:
        in_scope = set(reachable)
        conflicts: list[VersionConflictInfo] = []
        for node_id in reachable:
            node = graph.get_node(node_id)
            requirements = tuple(
                VersionRequirement(e.source, e.dependency_type, e.constraint)
                for e in graph.get_incoming_edges(node_id)
                if e.constraint is not None
                and e.source in in_scope
                and e.dependency_type in DEPENDENCY_TYPES
            )
            if node is None or len(requirements) < 2:
                continue
            all_constraints = [r.constraint for r in requirements]
            if constraints_satisfiable(node, all_constraints):
                continue

            strict = [r.constraint for r in requirements if r.strict]
            severity = (
                ConflictSeverity.MAJOR if constraints_satisfiable(node, strict)
                else ConflictSeverity.CRITICAL
            )
            compromise, satisfied = best_compromise(
                compromise_candidates(node, all_constraints), all_constraints
            )
            conflicts.append(VersionConflictInfo(
                tool_id=node_id,
                requirements=requirements,
                compromise_version=compromise,
                satisfied_count=satisfied,
                severity=severity,
            ))
            if self._quick:
                break
        return conflicts

    # -- 3. Platform gaps ---------------------------------------------------

    def _find_platform_gaps(
        self,
        graph: DependencyGraph,
        reachable: list[str],
        platform: Platform | None,
        architecture: Architecture | None,
    ) -> list[PlatformIncompatibilityInfo]:
        gaps: list[PlatformIncompatibilityInfo] = []
        for node_id in reachable:
            node = graph.get_node(node_id)
            if node is None or node.platform_compatible:
                continue
            fallback = (
                fallback_installation_method(node.descriptor, platform) if platform else None
            )
            gaps.append(PlatformIncompatibilityInfo(
                tool_id=node_id,
                platform=platform,
                architecture=architecture,
                fallback_method=fallback.method if fallback else None,
                alternatives=compatible_alternatives(graph, node),
            ))
            if self._quick:
                break
        return gaps

    # -- 4. Mutual exclusion ------------------------------------------------

    def _find_mutual_exclusions(
        self, graph: DependencyGraph, reachable: list[str]
    ) -> list[MutualExclusionInfo]:
        in_scope = set(reachable)
        seen: set[frozenset[str]] = set()
        found: list[MutualExclusionInfo] = []
        for node_id in reachable:
            for edge in graph.get_outgoing_edges(node_id):
                if edge.dependency_type is not DependencyType.CONFLICTS:
                    continue
                other = graph.get_node(edge.target)
                present = edge.target in in_scope or (
                    other is not None and other.installation_status.is_installed
                )
                pair = frozenset((edge.source, edge.target))
                if not present or pair in seen:
                    continue
                seen.add(pair)
                found.append(MutualExclusionInfo(edge.source, edge.target, edge.reason))
        return found

    # -- 5. Shared resources ------------------------------------------------

    def _find_resource_conflicts(
        self, graph: DependencyGraph, reachable: list[str]
    ) -> list[ResourceConflictInfo]:
        claims: dict[str, list[str]] = {}
        for node_id in reachable:
            node = graph.get_node(node_id)
            if node is None:
                continue
            for resource in dict.fromkeys(node.descriptor.resources):
                claims.setdefault(resource, []).append(node_id)
        return [
            ResourceConflictInfo(resource, tuple(sorted(users)))
            for resource, users in sorted(claims.items())
            if len(users) > 1
        ]

    # -- 6. Installed versions ----------------------------------------------

    def _find_installed_mismatches(
        self,
        graph: DependencyGraph,
        reachable: list[str],
        version_conflicts: list[VersionConflictInfo],
    ) -> list[ConflictDetail]:
        in_scope = set(reachable)
        already = {v.tool_id for v in version_conflicts}
        details: list[ConflictDetail] = []
        for node_id in reachable:
            node = graph.get_node(node_id)
            if node is None or node_id in already:
                continue
            current = node.selected_version or node.installation_status.version
            if not node.installation_status.is_installed or not current:
                continue
            try:
                current_version = parse_version(current)
            except ConstraintError:
                continue
            violated = sorted(
                e.source for e in graph.get_incoming_edges(node_id)
                if e.is_required
                and e.source in in_scope
                and e.constraint is not None
                and not e.constraint.range.contains(current_version)
            )
            if not violated:
                continue
            details.append(ConflictDetail(
                id=f"installed-{node_id}",
                type=ConflictType.INSTALLED_VERSION,
                severity=ConflictSeverity.MINOR,
                involved_tools=(node_id, *violated),
                description=(
                    f"Installed {node_id} {current} does not satisfy "
                    f"{', '.join(violated)}"
                ),
                blocking=False,
                auto_resolvable=True,
                suggested_strategies=(SuggestedResolution(
                    ResolutionStrategy.VERSION_PINNING, 0.9,
                    f"Install a version of {node_id} meeting every requirement",
                ),),
            ))
        return details

    # -- ConflictDetail builders ---------------------------------------------

    @staticmethod
    def _cycle_detail(info: CircularDependencyInfo) -> ConflictDetail:
        strategies: list[SuggestedResolution] = []
        for source, target in info.break_points:
            strategies.append(SuggestedResolution(
                ResolutionStrategy.EDGE_RELAXATION, 0.8,
                f"Drop the non-required relation {source} -> {target}",
            ))
        if not strategies:
            strategies.append(SuggestedResolution(
                ResolutionStrategy.EDGE_RELAXATION, 0.3,
                "Remove a required relation from the cycle (breaking change)",
            ))
        path = " -> ".join((*info.cycle, info.cycle[0]))
        return ConflictDetail(
            id="circular-" + "-".join(info.cycle),
            type=ConflictType.CIRCULAR,
            severity=ConflictSeverity.CRITICAL,
            involved_tools=info.cycle,
            description=f"Circular dependency: {path}",
            blocking=True,
            auto_resolvable=bool(info.break_points),
            suggested_strategies=tuple(strategies),
        )

    @staticmethod
    def _version_detail(graph: DependencyGraph, info: VersionConflictInfo) -> ConflictDetail:
        demands = ", ".join(f"{r.required_by} needs {r.constraint.raw}" for r in info.requirements)
        strategies: list[SuggestedResolution] = []
        if info.compromise_version is not None:
            strategies.append(SuggestedResolution(
                ResolutionStrategy.VERSION_PINNING,
                info.satisfied_count / len(info.requirements),
                f"Pin {info.tool_id} to {info.compromise_version}",
            ))
        node = graph.get_node(info.tool_id)
        alternatives = compatible_alternatives(graph, node) if node else ()
        if alternatives:
            strategies.append(SuggestedResolution(
                ResolutionStrategy.TOOL_SUBSTITUTION, 0.5,
                f"Replace {info.tool_id} with {alternatives[0]}",
            ))
        strategies.append(SuggestedResolution(
            ResolutionStrategy.EDGE_RELAXATION, 0.3,
            "Relax the single requirement that makes the constraints unsatisfiable",
        ))
        return ConflictDetail(
            id=f"version-{info.tool_id}",
            type=ConflictType.VERSION,
            severity=info.severity,
            involved_tools=(info.tool_id, *(r.required_by for r in info.requirements)),
            description=f"Version conflict for {info.tool_id}: {demands}",
            blocking=info.severity is ConflictSeverity.CRITICAL,
            auto_resolvable=info.compromise_version is not None,
            suggested_strategies=tuple(strategies),
        )

    @staticmethod
    def _deferral(tool_id: str, soft: frozenset[str]) -> list[SuggestedResolution]:
        if tool_id not in soft:
            return []
        return [SuggestedResolution(
            ResolutionStrategy.DEPENDENCY_DEFERRAL, 0.6,
            f"Defer {tool_id} and install it separately",
        )]

    @classmethod
    def _platform_detail(
        cls, info: PlatformIncompatibilityInfo, soft: frozenset[str]
    ) -> ConflictDetail:
        where = info.platform.value if info.platform else "the target platform"
        if info.architecture is not None and info.platform is not None:
            where = f"{where}/{info.architecture.value}"
        strategies = [
            SuggestedResolution(
                ResolutionStrategy.TOOL_SUBSTITUTION, 0.85,
                f"Use {alt} instead of {info.tool_id}",
            )
            for alt in info.alternatives
        ]
        strategies.extend(cls._deferral(info.tool_id, soft))
        description = f"{info.tool_id} cannot be installed on {where}"
        if info.fallback_method:
            description += f" (fallback: {info.fallback_method})"
        return ConflictDetail(
            id=f"platform-{info.tool_id}",
            type=ConflictType.PLATFORM,
            severity=ConflictSeverity.MINOR if info.has_fallback else ConflictSeverity.MAJOR,
            involved_tools=(info.tool_id,),
            description=description,
            blocking=not info.has_fallback,
            auto_resolvable=bool(strategies),
            suggested_strategies=tuple(strategies),
        )

    @classmethod
    def _exclusion_detail(
        cls, graph: DependencyGraph, info: MutualExclusionInfo, soft: frozenset[str]
    ) -> ConflictDetail:
        pair = tuple(sorted((info.declared_by, info.excludes)))
        strategies: list[SuggestedResolution] = []
        excluded = graph.get_node(info.excludes)
        for alt in compatible_alternatives(graph, excluded) if excluded else ():
            strategies.append(SuggestedResolution(
                ResolutionStrategy.TOOL_SUBSTITUTION, 0.7,
                f"Use {alt} instead of {info.excludes}",
            ))
        strategies.extend(cls._deferral(info.excludes, soft))
        strategies.extend(cls._deferral(info.declared_by, soft))
        description = f"{info.declared_by} cannot be installed together with {info.excludes}"
        if info.reason:
            description += f": {info.reason}"
        return ConflictDetail(
            id=f"exclusive-{pair[0]}-{pair[1]}",
            type=ConflictType.MUTUAL_EXCLUSION,
            severity=ConflictSeverity.MAJOR,
            involved_tools=(info.declared_by, info.excludes),
            description=description,
            blocking=True,
            auto_resolvable=bool(strategies),
            suggested_strategies=tuple(strategies),
        )

    @classmethod
    def _resource_detail(
        cls, graph: DependencyGraph, info: ResourceConflictInfo, soft: frozenset[str]
    ) -> ConflictDetail:
        strategies: list[SuggestedResolution] = []
        for user in info.users:
            strategies.extend(cls._deferral(user, soft))
        for user in info.users:
            node = graph.get_node(user)
            free = [
                alt for alt in (compatible_alternatives(graph, node) if node else ())
                if info.resource not in graph.get_node(alt).descriptor.resources
            ]
            if free:
                strategies.append(SuggestedResolution(
                    ResolutionStrategy.TOOL_SUBSTITUTION, 0.5,
                    f"Use {free[0]} instead of {user}",
                ))
        return ConflictDetail(
            id=f"resource-{info.resource}-{'-'.join(info.users)}",
            type=ConflictType.RESOURCE,
            severity=ConflictSeverity.MAJOR,
            involved_tools=info.users,
            description=f"{', '.join(info.users)} claim {info.resource}",
            blocking=True,
            auto_resolvable=bool(strategies),
            suggested_strategies=tuple(strategies),
        )


def _recommendations(conflicts: list[ConflictDetail]) -> list[str]:
    if not conflicts:
        return ["No conflicts detected. Installation can proceed."]
    recommendations: list[str] = []
    blockers = [c for c in conflicts if c.blocking]
    if blockers:
        recommendations.append(f"Resolve {len(blockers)} blocking conflicts before installation")
    resolvable = [c for c in conflicts if c.auto_resolvable]
    if resolvable:
        recommendations.append(f"{len(resolvable)} conflicts can be resolved automatically")
    if any(c.type is ConflictType.CIRCULAR for c in conflicts):
        recommendations.append("Break circular dependencies before computing an installation order")
    return recommendations


def detect_conflicts(
    graph: DependencyGraph,
    target_tool_ids: Iterable[str],
    options: DetectionOptions | None = None,
) -> ConflictDetectionResult:
    """Detect conflicts for *target_tool_ids*. See ``ConflictDetector.detect``."""
    return ConflictDetector(options).detect(graph, target_tool_ids)
