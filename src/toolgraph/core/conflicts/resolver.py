"""Conflict resolution: compute and apply remediation steps.

Given a ``ConflictDetectionResult`` and a ``ResolutionPolicy``, the
resolver walks the conflicts from most to least severe and tries the
strategies chosen by ``select_strategies`` until one succeeds. Every
attempt becomes an ``ExecutedResolutionStep``; conflicts without an
applicable strategy go to ``remaining_conflicts`` and the run continues.

The caller's graph is never mutated. The resolver works on ``graph.copy()``,
so resolving the same detection result twice yields the same report.
After applying steps the detector is re-run on the modified copy: a
resolution is verified, not assumed.
"""

from __future__ import annotations

import logging
from typing import Iterable

from toolgraph.core.conflicts.detector import DetectionOptions, detect_conflicts
from toolgraph.core.conflicts.models import (
    ConflictDetail,
    ConflictDetectionResult,
    ConflictType,
    ExecutedResolutionStep,
    ImpactLevel,
    ResolutionStrategy,
    ResolutionExecutionResult,
    ResolutionSummary,
    StepAction,
    StepResult,
)
from toolgraph.core.conflicts.strategies import (
    STRATEGY_HANDLERS,
    ResolutionContext,
    ResolutionPolicy,
    select_strategies,
)
from toolgraph.core.dependency.graph import DependencyGraph
from toolgraph.core.dependency.ordering import OrderingOptions, resolve_installation_order
from toolgraph.exceptions import ToolGraphError

logger = logging.getLogger(__name__)

# More applied steps than this make a run medium impact.
_MEDIUM_IMPACT_STEPS = 5

_DEFAULT_ACTIONS: dict[ResolutionStrategy, StepAction] = {
    ResolutionStrategy.VERSION_PINNING: StepAction.PIN_VERSION,
    ResolutionStrategy.TOOL_SUBSTITUTION: StepAction.SUBSTITUTE,
    ResolutionStrategy.EDGE_RELAXATION: StepAction.RELAX_EDGE,
    ResolutionStrategy.DEPENDENCY_DEFERRAL: StepAction.DEFER,
}


def prioritize_conflicts(conflicts: Iterable[ConflictDetail]) -> list[ConflictDetail]:
    """Order conflicts for processing: critical first, blocking first, then id."""
    return sorted(conflicts, key=lambda c: (-c.severity, not c.blocking, c.id))


class ConflictResolver:
    """Apply (or plan) remediation steps for detected conflicts.

    Args:
        policy: Resolution policy; defaults to ``ResolutionPolicy()``.
        ordering: Options for the installation order computed afterwards.
    """

    def __init__(
        self,
        policy: ResolutionPolicy | None = None,
        ordering: OrderingOptions | None = None,
    ) -> None:
        self.policy = policy or ResolutionPolicy()
        self.ordering = ordering or OrderingOptions()

    def resolve(
        self, detection: ConflictDetectionResult, graph: DependencyGraph
    ) -> ResolutionExecutionResult:
        """Resolve the conflicts of *detection* on a copy of *graph*.

        Args:
            detection: Detector output for *graph*.
            graph: The graph the detection ran on. Left untouched.

        Returns:
            The execution report, including the resolved graph copy and its
            installation order.
        """
        ctx = ResolutionContext(
            graph=graph.copy(),
            policy=self.policy,
            targets=list(detection.target_tool_ids),
            version_conflicts={v.tool_id: v for v in detection.version_conflicts},
        )
        steps: list[ExecutedResolutionStep] = []
        remaining: list[ConflictDetail] = []
        planned = self.policy.plan_only

        for conflict in prioritize_conflicts(detection.conflicts):
            if len(steps) >= self.policy.max_steps:
                steps.append(self._skipped(conflict, len(steps) + 1, "step limit reached"))
                remaining.append(conflict)
                continue
            if _already_resolved(ctx, conflict):
                steps.append(self._skipped(conflict, len(steps) + 1, "already resolved"))
                continue
            if not self._attempt(ctx, conflict, steps, planned):
                remaining.append(conflict)

        if planned:
            return self._plan_result(detection, graph, steps)

        verification = detect_conflicts(
            ctx.graph,
            ctx.targets,
            DetectionOptions(platform=detection.platform),
        )
        known = {c.id for c in remaining}
        for conflict in verification.conflicts:
            if conflict.id not in known:
                remaining.append(conflict)
                known.add(conflict.id)

        failed = any(s.result is StepResult.FAILED for s in steps)
        success = not remaining and not failed
        order = resolve_installation_order(ctx.graph, ctx.targets, self.ordering)
        summary = _summarize(detection, steps, remaining, applied=True)
        logger.debug(
            "Resolution %s: %d steps, %d remaining",
            "succeeded" if success else "incomplete", len(steps), len(remaining),
        )
        return ResolutionExecutionResult(
            success=success,
            graph=ctx.graph,
            installation_order=order,
            steps=tuple(steps),
            remaining_conflicts=tuple(remaining),
            summary=summary,
            verification=verification,
            applied=True,
            target_tool_ids=tuple(ctx.targets),
        )

    # -- Internals ----------------------------------------------------------

    def _attempt(
        self,
        ctx: ResolutionContext,
        conflict: ConflictDetail,
        steps: list[ExecutedResolutionStep],
        planned: bool,
    ) -> bool:
        """Try each applicable strategy in order; True once one succeeds."""
        for strategy in select_strategies(conflict, self.policy):
            handler = STRATEGY_HANDLERS[strategy]
            step_id = f"step-{len(steps) + 1}"
            try:
                outcome = handler(ctx, conflict)
            except ToolGraphError as exc:
                logger.warning(
                    "Strategy %s failed for %s: %s", strategy.value, conflict.id, exc
                )
                steps.append(ExecutedResolutionStep(
                    step_id=step_id,
                    conflict_id=conflict.id,
                    strategy=strategy,
                    action=_DEFAULT_ACTIONS[strategy],
                    description=f"{strategy.value} failed: {exc}",
                    result=StepResult.FAILED,
                    affected_tools=conflict.involved_tools,
                ))
                continue
            if outcome is None:
                continue
            steps.append(ExecutedResolutionStep(
                step_id=step_id,
                conflict_id=conflict.id,
                strategy=strategy,
                action=outcome.action,
                description=outcome.description,
                result=StepResult.PLANNED if planned else StepResult.SUCCESS,
                affected_tools=outcome.affected_tools,
                reversible=outcome.reversible,
                side_effects=outcome.side_effects,
            ))
            return True
        logger.debug("No applicable strategy for %s", conflict.id)
        return False

    def _skipped(
        self, conflict: ConflictDetail, index: int, reason: str
    ) -> ExecutedResolutionStep:
        candidates = select_strategies(conflict, self.policy)
        strategy = candidates[0] if candidates else ResolutionStrategy.EDGE_RELAXATION
        return ExecutedResolutionStep(
            step_id=f"step-{index}",
            conflict_id=conflict.id,
            strategy=strategy,
            action=_DEFAULT_ACTIONS[strategy],
            description=f"Skipped {conflict.id}: {reason}",
            result=StepResult.SKIPPED,
            affected_tools=conflict.involved_tools,
        )

    def _plan_result(
        self,
        detection: ConflictDetectionResult,
        graph: DependencyGraph,
        steps: list[ExecutedResolutionStep],
    ) -> ResolutionExecutionResult:
        untouched = graph.copy()
        return ResolutionExecutionResult(
            success=not detection.conflicts,
            graph=untouched,
            installation_order=resolve_installation_order(
                untouched, detection.target_tool_ids, self.ordering
            ),
            steps=tuple(steps),
            remaining_conflicts=detection.conflicts,
            summary=_summarize(detection, steps, list(detection.conflicts), applied=False),
            verification=None,
            applied=False,
            target_tool_ids=detection.target_tool_ids,
        )


def _already_resolved(ctx: ResolutionContext, conflict: ConflictDetail) -> bool:
    """True when an earlier step removed what *conflict* is about."""
    involved = conflict.involved_tools
    if conflict.type is ConflictType.CIRCULAR:
        return any(
            ctx.graph.get_edge(involved[i], involved[(i + 1) % len(involved)]) is None
            for i in range(len(involved))
        )
    scope = ctx.in_scope()
    if conflict.type is ConflictType.MUTUAL_EXCLUSION:
        declared_by, excludes = involved[:2]
        excluded = ctx.graph.get_node(excludes)
        return (
            ctx.graph.get_edge(declared_by, excludes) is None
            or declared_by not in scope
            or (excludes not in scope and not excluded.installation_status.is_installed)
        )
    if conflict.type is ConflictType.RESOURCE:
        return sum(1 for tool_id in involved if tool_id in scope) < 2
    return involved[0] not in scope


def _summarize(
    detection: ConflictDetectionResult,
    steps: list[ExecutedResolutionStep],
    remaining: list[ConflictDetail],
    applied: bool,
) -> ResolutionSummary:
    acted = [s for s in steps if s.result in (StepResult.SUCCESS, StepResult.PLANNED)]
    breaking = any(
        s.action is StepAction.SUBSTITUTE or not s.reversible for s in acted
    )
    if breaking:
        impact = ImpactLevel.HIGH
    elif len(acted) > _MEDIUM_IMPACT_STEPS:
        impact = ImpactLevel.MEDIUM
    else:
        impact = ImpactLevel.LOW

    total = len(detection.conflicts)
    if total == 0:
        description = "No conflicts to resolve"
    elif not applied:
        description = f"Planned {len(acted)} step(s) for {total} conflict(s)"
    else:
        resolved = sum(1 for c in detection.conflicts if c.id not in {r.id for r in remaining})
        description = (
            f"Resolved {resolved} of {total} conflict(s) in {len(acted)} step(s); "
            f"{len(remaining)} remaining"
        )
    side_effects = tuple(effect for s in acted for effect in s.side_effects)
    return ResolutionSummary(
        description=description,
        impact=impact,
        reversible=all(s.reversible for s in acted),
        side_effects=side_effects,
    )


def resolve_conflicts(
    detection: ConflictDetectionResult,
    graph: DependencyGraph,
    policy: ResolutionPolicy | None = None,
    ordering: OrderingOptions | None = None,
) -> ResolutionExecutionResult:
    """Resolve the conflicts of *detection*. See ``ConflictResolver.resolve``."""
    return ConflictResolver(policy, ordering).resolve(detection, graph)
