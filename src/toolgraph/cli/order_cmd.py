"""``toolgraph order FILE --target ID``: Print the installation order.

Computes parallel installation batches without resolving conflicts. Cycles
and the tools stuck behind them are reported separately. ``--algorithm``
selects a topological, depth-first or breadth-first sequence.

Exit Codes:
    0: Every tool in scope was ordered.
    1: Cycles or blocked tools prevent a complete order.
    2: Bad input.
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
from toolgraph.cli.output import print_issues, print_json, print_order
from toolgraph.core.dependency import (
    OrderingAlgorithm,
    OrderingOptions,
    resolve_installation_order,
)


@click.command("order")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@target_option
@platform_options
@inclusion_options
@click.option(
    "--algorithm",
    type=click.Choice([a.value for a in OrderingAlgorithm]),
    default=OrderingAlgorithm.TOPOLOGICAL.value,
    show_default=True,
    help="How the linear sequence is derived from the graph.",
)
@json_option
@verbose_option
def order_command(
    path: str,
    targets: tuple[str, ...],
    platform_name: str,
    architecture: str,
    include_optional: bool,
    include_suggested: bool,
    algorithm: str,
    as_json: bool,
    verbose: bool,
) -> None:
    """Compute installation batches for the target tools."""
    configure_logging(verbose)
    descriptors, statuses = load_or_exit(path)
    graph, warnings = build_or_exit(
        descriptors, statuses, platform_name, architecture,
        construction_options(include_optional, include_suggested), targets,
    )
    order = resolve_installation_order(
        graph,
        targets,
        OrderingOptions(
            include_optional=include_optional,
            include_suggested=include_suggested,
            algorithm=OrderingAlgorithm(algorithm),
        ),
    )

    if as_json:
        print_json(order.to_dict())
    else:
        print_issues(warnings)
        print_order(order)
    sys.exit(EXIT_OK if order.is_complete else EXIT_CONFLICTS)
