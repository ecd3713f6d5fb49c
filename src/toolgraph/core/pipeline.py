"""End-to-end installation planning: build, detect, resolve, order.

``plan_installation`` strings the engine's stages together for callers that
just want an installation order for a set of tools. Each stage's full report
is kept on the returned ``InstallationPlan`` so callers can show why an
order is incomplete.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from toolgraph.core.conflicts.detector import DetectionOptions, detect_conflicts
from toolgraph.core.conflicts.models import (
    ConflictDetectionResult,
    ResolutionExecutionResult,
)
from toolgraph.core.conflicts.resolver import resolve_conflicts
from toolgraph.core.conflicts.strategies import ResolutionPolicy
from toolgraph.core.dependency.builder import (
    GraphConstructionOptions,
    GraphConstructionResult,
    build_graph,
)
from toolgraph.core.dependency.ordering import (
    InstallationOrder,
    OrderingOptions,
    resolve_installation_order,
)
from toolgraph.core.manifest.models import (
    Architecture,
    InstallationStatus,
    Platform,
    ToolDescriptor,
)
from toolgraph.exceptions import ResolutionError, UnknownNodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallationPlan:
    """Every stage's output for one planning run.

    ``detection``, ``resolution`` and ``order`` are None when an earlier
    stage stopped the run (no graph was built). ``resolution`` is also None
    when detection found nothing to resolve.
    """

    construction: GraphConstructionResult
    detection: ConflictDetectionResult | None = None
    resolution: ResolutionExecutionResult | None = None
    order: InstallationOrder | None = None

    @property
    def success(self) -> bool:
        if self.order is None or not self.order.is_complete:
            return False
        if self.resolution is not None:
            return self.resolution.success
        return self.detection is not None and not self.detection.has_conflicts

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "construction": self.construction.to_dict(),
            "detection": self.detection.to_dict() if self.detection else None,
            "resolution": self.resolution.to_dict() if self.resolution else None,
            "order": self.order.to_dict() if self.order else None,
        }


def _ordering_for(construction: GraphConstructionOptions) -> OrderingOptions:
    return OrderingOptions(
        include_optional=construction.include_optional,
        include_suggested=construction.include_suggested,
    )


def plan_installation(
    descriptors: Iterable[ToolDescriptor],
    target_tool_ids: Iterable[str],
    platform: Platform,
    architecture: Architecture = Architecture.X64,
    *,
    statuses: Mapping[str, InstallationStatus] | None = None,
    construction: GraphConstructionOptions | None = None,
    detection: DetectionOptions | None = None,
    policy: ResolutionPolicy | None = None,
    strict: bool = False,
) -> InstallationPlan:
    """Plan the installation of *target_tool_ids* on one platform.

    Args:
        descriptors: Every known tool descriptor.
        target_tool_ids: Tools the user asked for.
        platform: Target operating system.
        architecture: Target CPU architecture.
        statuses: Installation status per tool id.
        construction: Graph inclusion policy.
        detection: Detector configuration; its platform defaults to *platform*.
        policy: Resolution policy used when conflicts are found.
        strict: Raise instead of returning an unsuccessful plan.

    Returns:
        The ``InstallationPlan``.

    Raises:
        ResolutionError: In strict mode, when the graph cannot be built,
            conflicts remain, or the order is incomplete.
        UnknownNodeError: If a target is not among the descriptors.
    """
    targets = list(dict.fromkeys(target_tool_ids))
    construction = construction or GraphConstructionOptions()
    built = build_graph(descriptors, platform, architecture, construction, statuses)
    if built.graph is None:
        if strict:
            messages = "; ".join(e.message for e in built.errors)
            raise ResolutionError(f"Graph construction failed: {messages}")
        return InstallationPlan(construction=built)

    graph = built.graph
    for target in targets:
        if target not in graph:
            raise UnknownNodeError(target)

    detection_options = detection or DetectionOptions(
        platform=platform, architecture=architecture
    )
    found = detect_conflicts(graph, targets, detection_options)
    ordering = _ordering_for(construction)

    resolution: ResolutionExecutionResult | None = None
    if found.has_conflicts:
        logger.info("Resolving %d conflicts", len(found.conflicts))
        resolution = resolve_conflicts(found, graph, policy, ordering)
        order = resolution.installation_order
    else:
        order = resolve_installation_order(graph, targets, ordering)

    plan = InstallationPlan(
        construction=built, detection=found, resolution=resolution, order=order
    )
    if strict and not plan.success:
        remaining = resolution.remaining_conflicts if resolution else found.conflicts
        raise ResolutionError(
            f"Cannot install {', '.join(targets)}: "
            f"{len(remaining)} conflicts remain, "
            f"{len(order.blocked)} tools blocked"
        )
    return plan
