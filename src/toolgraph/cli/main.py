"""toolgraph CLI: Dependency planning for developer tool installation.

Entry point for the ``toolgraph`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    detect   Report conflicts blocking the installation of target tools.
    resolve  Resolve conflicts and print the resulting installation order.
    order    Print installation batches without resolving conflicts.
    stats    Print dependency graph metrics.

Usage::

    toolgraph detect tools.yaml --target react
    toolgraph resolve tools.yaml -t react -t django --allow-breaking
    toolgraph resolve tools.yaml -t react --plan-only --json
    toolgraph order tools.yaml -t react --platform macos --arch arm64
    toolgraph stats tools.yaml
"""

from __future__ import annotations

import click

from toolgraph import __version__
from toolgraph.cli.detect_cmd import detect_command
from toolgraph.cli.order_cmd import order_command
from toolgraph.cli.resolve_cmd import resolve_command
from toolgraph.cli.stats_cmd import stats_command


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """toolgraph: Plan the installation of developer tools.

    Build a dependency graph from tool descriptors, detect version,
    platform and cycle conflicts, resolve them, and compute an
    installation order.
    """


# Register all subcommands
cli.add_command(detect_command)
cli.add_command(resolve_command)
cli.add_command(order_command)
cli.add_command(stats_command)
