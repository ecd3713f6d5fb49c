"""Conflict detection and resolution data models.

Defines the severity scale, the conflict and strategy vocabularies, the
``ConflictDetectionResult`` snapshot produced by the detector, and the
``ResolutionExecutionResult`` report produced by the resolver.

All result types are frozen and expose ``to_dict()`` returning plain,
JSON-serializable data, so they can cross a process or UI boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any

from toolgraph.core.dependency.constraints import VersionConstraint
from toolgraph.core.dependency.ordering import InstallationOrder
from toolgraph.core.manifest.models import Architecture, DependencyType, Platform

if TYPE_CHECKING:
    from toolgraph.core.dependency.graph import DependencyGraph


# ---------------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------------


class ConflictSeverity(IntEnum):
    """Ordered conflict severity. Higher values are more severe.

    - MINOR: a degraded but workable path exists (e.g., fallback installer).
    - MAJOR: installation is impaired; a compromise or manual step is needed.
    - CRITICAL: no installation order exists until the conflict is resolved.
    """

    MINOR = 1
    MAJOR = 2
    CRITICAL = 3

    @property
    def label(self) -> str:
        return self.name.lower()


class ConflictType(Enum):
    """Kind of obstruction to a clean installation order."""

    VERSION = "version-conflict"
    CIRCULAR = "circular-dependency"
    PLATFORM = "platform-incompatibility"
    MUTUAL_EXCLUSION = "mutual-exclusion"
    INSTALLED_VERSION = "installed-version-mismatch"
    RESOURCE = "resource-conflict"


class ResolutionStrategy(Enum):
    """Closed set of remediation strategies, in priority order."""

    VERSION_PINNING = "version-pinning"
    TOOL_SUBSTITUTION = "tool-substitution"
    EDGE_RELAXATION = "edge-relaxation"
    DEPENDENCY_DEFERRAL = "dependency-deferral"


class DetectionThoroughness(Enum):
    """Trade-off between exhaustiveness and speed.

    - QUICK: stop each check category at its first conflict.
    - BALANCED: visit every reachable node (default).
    - THOROUGH: BALANCED plus installed-version checks.
    """

    QUICK = "quick"
    BALANCED = "balanced"
    THOROUGH = "thorough"


# ---------------------------------------------------------------------------
# Detection records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SuggestedResolution:
    """A strategy the resolver could apply, with a confidence in [0, 1]."""

    strategy: ResolutionStrategy
    confidence: float
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "confidence": round(self.confidence, 3),
            "description": self.description,
        }


@dataclass(frozen=True)
class ConflictDetail:
    """One detected conflict.

    Attributes:
        id: Stable identifier derived from the conflict type and tools.
        type: Conflict kind.
        severity: MINOR, MAJOR or CRITICAL.
        involved_tools: Tool ids taking part in the conflict.
        description: Human-readable summary.
        blocking: Installation cannot proceed past this conflict as-is.
        auto_resolvable: A strategy exists that needs no user decision.
        suggested_strategies: Candidate strategies, most confident first.
    """

    id: str
    type: ConflictType
    severity: ConflictSeverity
    involved_tools: tuple[str, ...]
    description: str
    blocking: bool = True
    auto_resolvable: bool = False
    suggested_strategies: tuple[SuggestedResolution, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.label,
            "involved_tools": list(self.involved_tools),
            "description": self.description,
            "blocking": self.blocking,
            "auto_resolvable": self.auto_resolvable,
            "suggested_strategies": [s.to_dict() for s in self.suggested_strategies],
        }


@dataclass(frozen=True)
class VersionRequirement:
    """One tool's version demand on another."""

    required_by: str
    dependency_type: DependencyType
    constraint: VersionConstraint

    @property
    def strict(self) -> bool:
        return self.dependency_type is DependencyType.REQUIRED

    def to_dict(self) -> dict[str, Any]:
        return {
            "required_by": self.required_by,
            "type": self.dependency_type.value,
            "constraint": self.constraint.raw,
        }


@dataclass(frozen=True)
class VersionConflictInfo:
    """Competing version requirements on one tool.

    Attributes:
        tool_id: The tool whose versions are contested.
        requirements: Every constraint-bearing incoming relation.
        compromise_version: Highest version satisfying the most requirements,
            or None when there is no candidate at all.
        satisfied_count: How many requirements the compromise satisfies.
        severity: CRITICAL when required constraints alone are unsatisfiable.
    """

    tool_id: str
    requirements: tuple[VersionRequirement, ...]
    compromise_version: str | None
    satisfied_count: int
    severity: ConflictSeverity

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool_id": self.tool_id,
            "requirements": [r.to_dict() for r in self.requirements],
            "compromise_version": self.compromise_version,
            "satisfied_count": self.satisfied_count,
            "severity": self.severity.label,
        }


@dataclass(frozen=True)
class CircularDependencyInfo:
    """A dependency cycle, listed in cycle order without repeating the start.

    Attributes:
        cycle: Tool ids; the last one depends on the first.
        break_points: Non-required edges (source, target) inside the cycle.
        impact: CRITICAL when every edge of the cycle is required.
    """

    cycle: tuple[str, ...]
    break_points: tuple[tuple[str, str], ...] = ()
    impact: ConflictSeverity = ConflictSeverity.CRITICAL

    @property
    def edges(self) -> tuple[tuple[str, str], ...]:
        n = len(self.cycle)
        return tuple((self.cycle[i], self.cycle[(i + 1) % n]) for i in range(n))

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle": list(self.cycle),
            "break_points": [list(bp) for bp in self.break_points],
            "impact": self.impact.label,
        }


@dataclass(frozen=True)
class PlatformIncompatibilityInfo:
    """A reachable tool with no installation path on the target platform."""

    tool_id: str
    platform: Platform | None
    architecture: Architecture | None
    fallback_method: str | None = None
    alternatives: tuple[str, ...] = ()

    @property
    def has_fallback(self) -> bool:
        return self.fallback_method is not None or bool(self.alternatives)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool_id": self.tool_id,
            "platform": self.platform.value if self.platform else None,
            "architecture": self.architecture.value if self.architecture else None,
            "fallback_method": self.fallback_method,
            "alternatives": list(self.alternatives),
        }


@dataclass(frozen=True)
class MutualExclusionInfo:
    """Two reachable tools that declare they cannot be installed together."""

    declared_by: str
    excludes: str
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"declared_by": self.declared_by, "excludes": self.excludes, "reason": self.reason}


@dataclass(frozen=True)
class ResourceConflictInfo:
    """Reachable tools claiming the same exclusive resource (e.g., a port)."""

    resource: str
    users: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"resource": self.resource, "users": list(self.users)}


@dataclass(frozen=True)
class ConflictStatistics:
    """Aggregate counts over a detection run."""

    total: int = 0
    critical: int = 0
    blocking: int = 0
    auto_resolvable: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    nodes_checked: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "critical": self.critical,
            "blocking": self.blocking,
            "auto_resolvable": self.auto_resolvable,
            "by_type": dict(self.by_type),
            "nodes_checked": self.nodes_checked,
        }


@dataclass(frozen=True)
class ConflictDetectionResult:
    """Immutable snapshot of everything the detector found.

    A changed graph needs a fresh detection run; nothing here is updated.
    """

    conflicts: tuple[ConflictDetail, ...] = ()
    version_conflicts: tuple[VersionConflictInfo, ...] = ()
    circular_dependencies: tuple[CircularDependencyInfo, ...] = ()
    platform_incompatibilities: tuple[PlatformIncompatibilityInfo, ...] = ()
    mutual_exclusions: tuple[MutualExclusionInfo, ...] = ()
    resource_conflicts: tuple[ResourceConflictInfo, ...] = ()
    statistics: ConflictStatistics = field(default_factory=ConflictStatistics)
    recommendations: tuple[str, ...] = ()
    target_tool_ids: tuple[str, ...] = ()
    platform: Platform | None = None

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def severity(self) -> ConflictSeverity | None:
        """Most severe conflict level, or None if there are no conflicts."""
        if not self.conflicts:
            return None
        return max(c.severity for c in self.conflicts)

    @property
    def can_proceed(self) -> bool:
        """True iff no critical conflict exists."""
        return all(c.severity < ConflictSeverity.CRITICAL for c in self.conflicts)

    def get_conflict(self, conflict_id: str) -> ConflictDetail | None:
        for conflict in self.conflicts:
            if conflict.id == conflict_id:
                return conflict
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_conflicts": self.has_conflicts,
            "severity": self.severity.label if self.severity else None,
            "can_proceed": self.can_proceed,
            "target_tool_ids": list(self.target_tool_ids),
            "platform": self.platform.value if self.platform else None,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "version_conflicts": [v.to_dict() for v in self.version_conflicts],
            "circular_dependencies": [c.to_dict() for c in self.circular_dependencies],
            "platform_incompatibilities": [
                p.to_dict() for p in self.platform_incompatibilities
            ],
            "mutual_exclusions": [m.to_dict() for m in self.mutual_exclusions],
            "resource_conflicts": [r.to_dict() for r in self.resource_conflicts],
            "statistics": self.statistics.to_dict(),
            "recommendations": list(self.recommendations),
        }


# ---------------------------------------------------------------------------
# Resolution records
# ---------------------------------------------------------------------------


class StepAction(Enum):
    """What a resolution step does to the graph."""

    PIN_VERSION = "pin-version"
    SUBSTITUTE = "substitute"
    RELAX_EDGE = "relax-edge"
    BREAK_CYCLE = "break-cycle"
    DEFER = "defer"


class StepResult(Enum):
    """Outcome of one resolution step."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    PLANNED = "planned"


class ImpactLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class ExecutedResolutionStep:
    """One action taken (or planned) for one conflict."""

    step_id: str
    conflict_id: str
    strategy: ResolutionStrategy
    action: StepAction
    description: str
    result: StepResult
    affected_tools: tuple[str, ...] = ()
    reversible: bool = True
    side_effects: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_id": self.step_id,
            "conflict_id": self.conflict_id,
            "strategy": self.strategy.value,
            "action": self.action.value,
            "description": self.description,
            "result": self.result.value,
            "affected_tools": list(self.affected_tools),
            "reversible": self.reversible,
            "side_effects": list(self.side_effects),
        }


@dataclass(frozen=True)
class ResolutionSummary:
    """Human-oriented digest of a resolution run."""

    description: str
    impact: ImpactLevel
    reversible: bool
    side_effects: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "impact": self.impact.value,
            "reversible": self.reversible,
            "side_effects": list(self.side_effects),
        }


@dataclass(frozen=True)
class ResolutionExecutionResult:
    """Report of one resolution attempt. Never mutated after return.

    Attributes:
        success: No remaining conflicts and no failed step.
        graph: The resolved copy of the input graph (an untouched copy when
            only a plan was produced).
        installation_order: Order computed on ``graph``.
        steps: Steps in execution order.
        remaining_conflicts: Conflicts still unresolved.
        summary: Digest of the run.
        verification: Fresh detection result on ``graph``, or None for plans.
        applied: False when the steps are only a plan.
        target_tool_ids: Targets after substitutions.
    """

    success: bool
    graph: DependencyGraph
    installation_order: InstallationOrder
    steps: tuple[ExecutedResolutionStep, ...]
    remaining_conflicts: tuple[ConflictDetail, ...]
    summary: ResolutionSummary
    verification: ConflictDetectionResult | None = None
    applied: bool = True
    target_tool_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "applied": self.applied,
            "target_tool_ids": list(self.target_tool_ids),
            "steps": [s.to_dict() for s in self.steps],
            "remaining_conflicts": [c.to_dict() for c in self.remaining_conflicts],
            "summary": self.summary.to_dict(),
            "installation_order": self.installation_order.to_dict(),
        }
