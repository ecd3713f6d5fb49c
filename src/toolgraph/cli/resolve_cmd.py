"""``toolgraph resolve FILE --target ID``: Resolve conflicts and print the order.

Detects conflicts, applies (or only plans) resolution steps according to a
``ResolutionPolicy``, and prints the steps together with the installation
order of the resolved graph.

The policy can be loaded from a YAML mapping with ``--policy``::

    automatic_resolution: true
    allow_breaking_changes: false
    prefer_latest_versions: true
    max_steps: 50

Flags given on the command line override values from the file.

Exit Codes:
    0: No conflicts remain and the order is complete.
    1: Conflicts remain, steps failed, the order is incomplete, or the run
        was only planned for conflicts that still exist.
    2: Bad input: descriptor file, policy file, or unknown target.
"""

from __future__ import annotations

import dataclasses
import sys
from pathlib import Path
from typing import Any

import click
import yaml

from toolgraph.cli.common import (
    EXIT_CONFLICTS,
    EXIT_OK,
    EXIT_USAGE,
    build_or_exit,
    configure_logging,
    construction_options,
    inclusion_options,
    json_option,
    load_or_exit,
    platform_options,
    target_option,
    verbose_option,
)
from toolgraph.cli.output import print_error, print_issues, print_json, print_order, print_resolution
from toolgraph.core.conflicts import (
    ConflictResolver,
    DetectionOptions,
    ResolutionPolicy,
    detect_conflicts,
)
from toolgraph.core.dependency import OrderingOptions
from toolgraph.exceptions import ToolGraphError

_POLICY_FIELDS = {f.name for f in dataclasses.fields(ResolutionPolicy)}


def load_policy(path: str | Path) -> ResolutionPolicy:
    """Read a ``ResolutionPolicy`` from a YAML mapping.

    Raises:
        ToolGraphError: If the file is unreadable, is not a mapping, or
            contains unknown keys.
    """
    try:
        data: Any = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ToolGraphError(f"Cannot read policy file {path}: {exc}") from exc
    if data is None:
        return ResolutionPolicy()
    if not isinstance(data, dict):
        raise ToolGraphError(f"Policy file {path} must contain a mapping")
    unknown = sorted(set(data) - _POLICY_FIELDS)
    if unknown:
        raise ToolGraphError(f"Unknown policy keys in {path}: {', '.join(unknown)}")
    return ResolutionPolicy(**data)


@click.command("resolve")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@target_option
@platform_options
@inclusion_options
@click.option(
    "--policy", "policy_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML file with resolution policy settings.",
)
@click.option("--plan-only", is_flag=True, default=False, help="Plan steps without applying them.")
@click.option(
    "--allow-breaking", is_flag=True, default=False,
    help="Allow tool substitution and removal of required relations.",
)
@click.option(
    "--prefer-oldest", is_flag=True, default=False,
    help="Break version ties towards the oldest version.",
)
@json_option
@verbose_option
def resolve_command(
    path: str,
    targets: tuple[str, ...],
    platform_name: str,
    architecture: str,
    include_optional: bool,
    include_suggested: bool,
    policy_path: str | None,
    plan_only: bool,
    allow_breaking: bool,
    prefer_oldest: bool,
    as_json: bool,
    verbose: bool,
) -> None:
    """Resolve conflicts for the target tools and print the installation order.

    Exit code 0 when everything resolved, 1 otherwise, 2 on bad input.
    """
    configure_logging(verbose)
    try:
        policy = load_policy(policy_path) if policy_path else ResolutionPolicy()
    except (ToolGraphError, TypeError) as exc:
        print_error(str(exc))
        sys.exit(EXIT_USAGE)

    overrides: dict[str, Any] = {}
    if plan_only:
        overrides["automatic_resolution"] = False
    if allow_breaking:
        overrides["allow_breaking_changes"] = True
    if prefer_oldest:
        overrides["prefer_latest_versions"] = False
    policy = dataclasses.replace(policy, **overrides)

    descriptors, statuses = load_or_exit(path)
    graph, warnings = build_or_exit(
        descriptors, statuses, platform_name, architecture,
        construction_options(include_optional, include_suggested), targets,
    )
    detection = detect_conflicts(graph, targets, DetectionOptions())
    resolver = ConflictResolver(
        policy,
        OrderingOptions(include_optional=include_optional, include_suggested=include_suggested),
    )
    result = resolver.resolve(detection, graph)

    if as_json:
        print_json(result.to_dict())
    else:
        print_issues(warnings)
        print_resolution(result)
        print_order(result.installation_order)

    ok = result.success and result.installation_order.is_complete
    sys.exit(EXIT_OK if ok else EXIT_CONFLICTS)
