"""``toolgraph stats FILE``: Print dependency graph metrics.

Exit Codes:
    0: Statistics printed.
    2: Bad input.
"""

from __future__ import annotations

import sys

import click

from toolgraph.cli.common import (
    EXIT_OK,
    build_or_exit,
    configure_logging,
    construction_options,
    inclusion_options,
    json_option,
    load_or_exit,
    platform_options,
    verbose_option,
)
from toolgraph.cli.output import print_issues, print_json, print_statistics


@click.command("stats")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@platform_options
@inclusion_options
@json_option
@verbose_option
def stats_command(
    path: str,
    platform_name: str,
    architecture: str,
    include_optional: bool,
    include_suggested: bool,
    as_json: bool,
    verbose: bool,
) -> None:
    """Show size and complexity metrics of the dependency graph in PATH."""
    configure_logging(verbose)
    descriptors, statuses = load_or_exit(path)
    graph, warnings = build_or_exit(
        descriptors, statuses, platform_name, architecture,
        construction_options(include_optional, include_suggested),
    )
    stats = graph.get_statistics()

    if as_json:
        print_json(stats.to_dict())
    else:
        print_issues(warnings)
        print_statistics(stats)
    sys.exit(EXIT_OK)
