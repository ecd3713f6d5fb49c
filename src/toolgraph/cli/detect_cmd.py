"""``toolgraph detect FILE --target ID``: Report installation conflicts.

Builds the dependency graph for the target platform and runs the conflict
detector over everything reachable from the targets.

Exit Codes:
    0: No conflicts.
    1: One or more conflicts detected.
    2: Unreadable descriptor file, invalid graph, or unknown target.
"""

from __future__ import annotations

import sys

import click

from toolgraph.cli.common import (
    EXIT_CONFLICTS,
    EXIT_OK,
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
from toolgraph.cli.output import print_conflicts, print_issues, print_json
from toolgraph.core.conflicts import (
    DetectionOptions,
    DetectionThoroughness,
    detect_conflicts,
)


@click.command("detect")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@target_option
@platform_options
@inclusion_options
@click.option(
    "--thoroughness",
    type=click.Choice([t.value for t in DetectionThoroughness]),
    default=DetectionThoroughness.BALANCED.value,
    show_default=True,
    help="quick stops at the first finding per check; thorough adds installed-version checks.",
)
@json_option
@verbose_option
def detect_command(
    path: str,
    targets: tuple[str, ...],
    platform_name: str,
    architecture: str,
    include_optional: bool,
    include_suggested: bool,
    thoroughness: str,
    as_json: bool,
    verbose: bool,
) -> None:
    """Detect conflicts blocking the installation of the target tools.

    Exit code 0 when clean, 1 when conflicts are found, 2 on bad input.
    """
    configure_logging(verbose)
    descriptors, statuses = load_or_exit(path)
    graph, warnings = build_or_exit(
        descriptors, statuses, platform_name, architecture,
        construction_options(include_optional, include_suggested), targets,
    )
    result = detect_conflicts(
        graph, targets, DetectionOptions(thoroughness=DetectionThoroughness(thoroughness))
    )

    if as_json:
        print_json(result.to_dict())
    else:
        print_issues(warnings)
        print_conflicts(result)
    sys.exit(EXIT_CONFLICTS if result.has_conflicts else EXIT_OK)
