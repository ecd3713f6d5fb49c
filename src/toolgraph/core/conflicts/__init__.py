"""Conflict detection and resolution over a tool dependency graph.

The detector inspects the part of a graph reachable from a set of target
tools and reports every obstacle to installing them: circular dependencies,
incompatible version constraints, tools with no installation path on the
target platform, mutually exclusive tools, tools claiming the same exclusive
resource, and installed versions that no longer meet their dependents'
constraints.

The resolver takes a detection result and a policy and applies (or plans)
version pinning, tool substitution, edge relaxation and dependency deferral
on a copy of the graph, then re-runs detection to verify the outcome.
"""

from toolgraph.core.conflicts.detector import (
    ConflictDetector,
    DetectionOptions,
    best_compromise,
    detect_conflicts,
)
from toolgraph.core.conflicts.models import (
    CircularDependencyInfo,
    ConflictDetail,
    ConflictDetectionResult,
    ConflictSeverity,
    ConflictStatistics,
    ConflictType,
    DetectionThoroughness,
    ExecutedResolutionStep,
    ImpactLevel,
    MutualExclusionInfo,
    PlatformIncompatibilityInfo,
    ResolutionExecutionResult,
    ResolutionStrategy,
    ResolutionSummary,
    ResourceConflictInfo,
    StepAction,
    StepResult,
    SuggestedResolution,
    VersionConflictInfo,
    VersionRequirement,
)
from toolgraph.core.conflicts.resolver import (
    ConflictResolver,
    prioritize_conflicts,
    resolve_conflicts,
)
from toolgraph.core.conflicts.strategies import (
    STRATEGY_HANDLERS,
    ResolutionContext,
    ResolutionPolicy,
    StrategyOutcome,
    select_strategies,
)

__all__ = [
    "CircularDependencyInfo",
    "ConflictDetail",
    "ConflictDetectionResult",
    "ConflictDetector",
    "ConflictResolver",
    "ConflictSeverity",
    "ConflictStatistics",
    "ConflictType",
    "DetectionOptions",
    "DetectionThoroughness",
    "ExecutedResolutionStep",
    "ImpactLevel",
    "MutualExclusionInfo",
    "PlatformIncompatibilityInfo",
    "ResolutionContext",
    "ResolutionExecutionResult",
    "ResolutionPolicy",
    "ResolutionStrategy",
    "ResolutionSummary",
    "ResourceConflictInfo",
    "STRATEGY_HANDLERS",
    "StepAction",
    "StepResult",
    "StrategyOutcome",
    "SuggestedResolution",
    "VersionConflictInfo",
    "VersionRequirement",
    "best_compromise",
    "detect_conflicts",
    "prioritize_conflicts",
    "resolve_conflicts",
    "select_strategies",
]
