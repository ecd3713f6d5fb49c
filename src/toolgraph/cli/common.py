"""Options and helpers shared by the toolgraph subcommands."""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable

import click

from toolgraph.cli.output import print_error
from toolgraph.core.dependency import (
    ConstructionIssue,
    DependencyGraph,
    GraphConstructionOptions,
    build_graph,
)
from toolgraph.core.manifest import (
    Architecture,
    InstallationStatus,
    Platform,
    ToolDescriptor,
    load_descriptors,
)
from toolgraph.exceptions import ToolGraphError

EXIT_OK = 0
EXIT_CONFLICTS = 1
EXIT_USAGE = 2

_PLATFORMS = [p.value for p in Platform]
_ARCHITECTURES = [a.value for a in Architecture]


def configure_logging(verbose: bool) -> None:
    """Send debug records to stderr so stdout stays machine-readable."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )


def platform_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach ``--platform`` and ``--arch``."""
    func = click.option(
        "--arch", "architecture",
        type=click.Choice(_ARCHITECTURES),
        default=Architecture.X64.value,
        show_default=True,
        help="Target CPU architecture.",
    )(func)
    func = click.option(
        "--platform", "platform_name",
        type=click.Choice(_PLATFORMS),
        default=Platform.LINUX.value,
        show_default=True,
        help="Target operating system.",
    )(func)
    return func


def inclusion_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the optional/suggested inclusion flags."""
    func = click.option(
        "--include-suggested", is_flag=True, default=False,
        help="Treat 'suggests' relations as dependencies.",
    )(func)
    func = click.option(
        "--include-optional/--no-include-optional", default=True, show_default=True,
        help="Treat 'optional' relations as dependencies.",
    )(func)
    return func


def target_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--target", "-t", "targets",
        multiple=True, required=True,
        help="Tool id to install (repeatable).",
    )(func)


def json_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--json", "as_json", is_flag=True, default=False,
        help="Print machine-readable JSON instead of tables.",
    )(func)


def verbose_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--verbose", "-v", is_flag=True, default=False,
        help="Log debug output to stderr.",
    )(func)


def construction_options(
    include_optional: bool, include_suggested: bool
) -> GraphConstructionOptions:
    return GraphConstructionOptions(
        include_optional=include_optional,
        include_suggested=include_suggested,
    )


def load_or_exit(path: str) -> tuple[list[ToolDescriptor], dict[str, InstallationStatus]]:
    """Load a descriptor file, exiting with the usage code on bad input."""
    try:
        return load_descriptors(path)
    except ToolGraphError as exc:
        print_error(str(exc))
        sys.exit(EXIT_USAGE)


def build_or_exit(
    descriptors: list[ToolDescriptor],
    statuses: dict[str, InstallationStatus],
    platform_name: str,
    architecture: str,
    options: GraphConstructionOptions,
    targets: tuple[str, ...] = (),
) -> tuple[DependencyGraph, tuple[ConstructionIssue, ...]]:
    """Build the graph and check *targets* exist, exiting on failure.

    Returns:
        The graph and the construction warnings.
    """
    try:
        result = build_graph(
            descriptors, Platform(platform_name), Architecture(architecture), options, statuses
        )
    except ToolGraphError as exc:
        print_error(str(exc))
        sys.exit(EXIT_USAGE)
    if result.graph is None:
        for issue in result.errors:
            print_error(f"{issue.code}: {issue.message}")
        sys.exit(EXIT_USAGE)
    missing = [t for t in targets if t not in result.graph]
    if missing:
        print_error(f"Unknown target tool(s): {', '.join(missing)}")
        sys.exit(EXIT_USAGE)
    return result.graph, result.warnings
