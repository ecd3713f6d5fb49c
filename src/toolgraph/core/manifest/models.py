"""Tool descriptor data models.

Defines the input side of the engine: the manifest data for one installable
tool (``ToolDescriptor``), its declared dependencies (``DependencySpec``),
its per-platform installation methods (``InstallationMethod``), and the
installation status of a tool on the target machine.

These are pure data holders (frozen dataclasses) with no graph logic, so
they can be imported anywhere without circular-dependency concerns.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Platform(Enum):
    """Operating system family a tool can be installed on."""

    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"


class Architecture(Enum):
    """CPU architecture a tool can be installed on."""

    X64 = "x64"
    ARM64 = "arm64"
    X86 = "x86"


class DependencyType(Enum):
    """Kind of relation a tool declares towards another tool.

    - REQUIRED: the target must be installed first.
    - OPTIONAL: the target may be installed first; ordering applies when included.
    - SUGGESTS: advisory only; included on request.
    - CONFLICTS: the two tools must not be installed together.
    """

    REQUIRED = "required"
    OPTIONAL = "optional"
    CONFLICTS = "conflicts"
    SUGGESTS = "suggests"

    @property
    def strength(self) -> int:
        """Rank used when two relations between the same pair are merged.

        Higher wins: required > optional > suggests > conflicts.
        """
        return _DEPENDENCY_STRENGTH[self]

    @property
    def is_ordering(self) -> bool:
        """True for relations that imply an installation order."""
        return self is not DependencyType.CONFLICTS


_DEPENDENCY_STRENGTH: dict[DependencyType, int] = {
    DependencyType.CONFLICTS: 0,
    DependencyType.SUGGESTS: 1,
    DependencyType.OPTIONAL: 2,
    DependencyType.REQUIRED: 3,
}


class InstallationState(Enum):
    """Installation state of a tool on the target system."""

    NOT_INSTALLED = "not-installed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    UPDATE_AVAILABLE = "update-available"
    FAILED = "failed"
    CONFLICTED = "conflicted"


# ---------------------------------------------------------------------------
# Descriptor components
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InstallationMethod:
    """One way of installing a tool on a platform.

    Attributes:
        method: Installer name (e.g., "winget", "brew", "apt", "npm").
        platform: Platform the command applies to.
        command: The install command line. Never executed by this package.
        architecture: Architecture restriction, or None for any architecture.
        min_version: Lowest version this method can install, if known.
        max_version: Highest version this method can install, if known.
    """

    method: str
    platform: Platform
    command: str
    architecture: Architecture | None = None
    min_version: str | None = None
    max_version: str | None = None

    def version_expression(self) -> str | None:
        """Constraint text for the versions this method can install, or None."""
        parts: list[str] = []
        if self.min_version:
            parts.append(f">={self.min_version}")
        if self.max_version:
            parts.append(f"<={self.max_version}")
        return ",".join(parts) if parts else None


@dataclass(frozen=True)
class DependencySpec:
    """A dependency declared in a tool descriptor.

    ``min_version``, ``max_version`` and ``version_range`` are combined with
    AND semantics into a single constraint expression by
    :meth:`constraint_expression`.

    Attributes:
        tool_id: Id of the tool depended upon.
        type: Relation kind.
        min_version: Inclusive lower bound (e.g., "16").
        max_version: Inclusive upper bound.
        version_range: Free-form constraint (e.g., "^18.0.0", "16.x").
        platforms: Platforms the dependency applies to, or None for all.
        reason: Human-readable justification.
    """

    tool_id: str
    type: DependencyType = DependencyType.REQUIRED
    min_version: str | None = None
    max_version: str | None = None
    version_range: str | None = None
    platforms: frozenset[Platform] | None = None
    reason: str | None = None

    def constraint_expression(self) -> str | None:
        """Return the combined constraint text, or None when unconstrained."""
        parts: list[str] = []
        if self.min_version:
            parts.append(f">={self.min_version}")
        if self.max_version:
            parts.append(f"<={self.max_version}")
        if self.version_range:
            parts.append(self.version_range)
        return ",".join(parts) if parts else None

    def applies_to(self, platform: Platform) -> bool:
        """Check whether this dependency is in effect on *platform*."""
        return self.platforms is None or platform in self.platforms


@dataclass(frozen=True)
class InstallationStatus:
    """Whether (and at which version) a tool is present on the target system."""

    state: InstallationState = InstallationState.NOT_INSTALLED
    version: str | None = None

    @property
    def is_installed(self) -> bool:
        return self.state in (
            InstallationState.INSTALLED,
            InstallationState.UPDATE_AVAILABLE,
        )


NOT_INSTALLED = InstallationStatus()


# ---------------------------------------------------------------------------
# ToolDescriptor: the manifest data for one tool
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolDescriptor:
    """Manifest data for one installable tool.

    Attributes:
        id: Stable unique identifier (e.g., "nodejs").
        name: Display name. Defaults to the id.
        category: Grouping used to find alternatives (e.g., "runtime").
        platforms: Operating systems the tool supports.
        architectures: CPU architectures the tool supports.
        installation_methods: Per-platform install commands.
        dependencies: Declared relations to other tools.
        versions: Versions known to be installable.
        alternatives: Ids of tools that can fill the same role.
        resources: Exclusive system resources the tool claims once installed
            (e.g., "port:80"). Two tools claiming the same one conflict.
        description: Free text.
    """

    id: str
    name: str = ""
    category: str = "general"
    platforms: frozenset[Platform] = frozenset(Platform)
    architectures: frozenset[Architecture] = frozenset(Architecture)
    installation_methods: tuple[InstallationMethod, ...] = ()
    dependencies: tuple[DependencySpec, ...] = ()
    versions: tuple[str, ...] = ()
    alternatives: tuple[str, ...] = ()
    resources: tuple[str, ...] = ()
    description: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def supports(self, platform: Platform, architecture: Architecture | None = None) -> bool:
        """Check declared platform (and optionally architecture) support."""
        if platform not in self.platforms:
            return False
        return architecture is None or architecture in self.architectures


# ---------------------------------------------------------------------------
# Installation method selection
# ---------------------------------------------------------------------------


def select_installation_method(
    descriptor: ToolDescriptor,
    platform: Platform,
    architecture: Architecture,
) -> InstallationMethod | None:
    """Pick the installation method matching a platform and architecture.

    An exact platform+architecture match is preferred over a method with no
    architecture restriction. Declaration order breaks ties.

    Args:
        descriptor: The tool to install.
        platform: Target operating system.
        architecture: Target CPU architecture.

    Returns:
        The selected method, or None when the tool cannot be installed on
        this platform/architecture combination.
    """
    if not descriptor.supports(platform, architecture):
        return None
    unrestricted: InstallationMethod | None = None
    for method in descriptor.installation_methods:
        if method.platform is not platform:
            continue
        if method.architecture is architecture:
            return method
        if method.architecture is None and unrestricted is None:
            unrestricted = method
    return unrestricted


def fallback_installation_method(
    descriptor: ToolDescriptor,
    platform: Platform,
) -> InstallationMethod | None:
    """Return any method for *platform*, ignoring architecture.

    Used by the conflict detector to decide whether an incompatible tool has
    a degraded-but-workable path (e.g., x64 emulation on arm64).
    """
    if platform not in descriptor.platforms:
        return None
    for method in descriptor.installation_methods:
        if method.platform is platform:
            return method
    return None

