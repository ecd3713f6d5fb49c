"""Version parsing and version constraints for dependency edges.

Constraint semantics follow npm/SemVer conventions with support for exact
match (``==`` or a bare full version), range (``>=``, ``<=``, ``>``, ``<``),
not-equal (``!=``), caret (``^``), tilde (``~``), wildcard (``*``, ``16.x``,
``16.*``, or a partial version such as ``16``), and compound constraints
joined by commas or whitespace (all must hold).

Tool manifests are loose about versions ("16", "v18.0.0", "3.11"), so
parsing is forgiving: a leading ``v`` is dropped, missing components are
zero, and pre-release/build suffixes are ignored for ordering.

Every constraint compiles to a ``VersionRange`` (an interval plus a set of
excluded points), which makes intersection and emptiness checks exact
instead of sample-based.

References
----------
.. [SemVer] Preston-Werner, T. (2013). "Semantic Versioning 2.0.0."
   https://semver.org/
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

from toolgraph.exceptions import ConstraintError

Version = tuple[int, int, int]


# ---------------------------------------------------------------------------
# Version comparison utilities
# ---------------------------------------------------------------------------

_VERSION_RE = re.compile(
    r"^[vV]?(?P<core>\d+(?:\.\d+){0,2})"
    r"(?:-(?P<pre>[0-9A-Za-z\-.]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z\-.]+))?$"
)

_WILDCARDS = frozenset({"x", "X", "*"})


def parse_version(version: str) -> Version:
    """Parse a loose version string into a comparable (major, minor, patch) tuple.

    Pre-release and build metadata are stripped for ordering purposes.

    Args:
        version: Version string (e.g., "1.2.3", "v18", "3.11", "1.0.0-beta").

    Returns:
        A (major, minor, patch) integer tuple.

    Raises:
        ConstraintError: If the string is not a version.
    """
    m = _VERSION_RE.match(str(version).strip())
    if not m:
        raise ConstraintError(f"Invalid version: {version!r}")
    parts = [int(p) for p in m.group("core").split(".")]
    while len(parts) < 3:
        parts.append(0)
    return parts[0], parts[1], parts[2]


def format_version(version: Version) -> str:
    """Render a version tuple as ``major.minor.patch``."""
    return "{}.{}.{}".format(*version)


def version_key(version: str) -> Version:
    """Sort key for version strings (ascending)."""
    return parse_version(version)


def is_valid_version(version: str) -> bool:
    """Return True when *version* parses as a version."""
    try:
        parse_version(version)
    except ConstraintError:
        return False
    return True


# ---------------------------------------------------------------------------
# VersionRange: interval representation of a constraint
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Bound:
    """One end of a version interval."""

    version: Version
    inclusive: bool


def _tighter_lower(a: Bound | None, b: Bound | None) -> Bound | None:
    if a is None:
        return b
    if b is None:
        return a
    if a.version != b.version:
        return a if a.version > b.version else b
    return a if not a.inclusive else b


def _tighter_upper(a: Bound | None, b: Bound | None) -> Bound | None:
    if a is None:
        return b
    if b is None:
        return a
    if a.version != b.version:
        return a if a.version < b.version else b
    return a if not a.inclusive else b


def _normalize_lower(bound: Bound | None) -> Bound | None:
    # Versions are integer triples, so ">1.2.3" is exactly ">=1.2.4".
    if bound is None or bound.inclusive:
        return bound
    major, minor, patch = bound.version
    return Bound((major, minor, patch + 1), True)


def _normalize_upper(bound: Bound | None) -> Bound | None:
    # "<1.2.3" is ">=...,<=1.2.2"; "<2.0.0" has no finite predecessor and stays exclusive.
    if bound is None or bound.inclusive:
        return bound
    major, minor, patch = bound.version
    if patch > 0:
        return Bound((major, minor, patch - 1), True)
    return bound


@dataclass(frozen=True)
class VersionRange:
    """A set of versions: an interval minus a finite set of excluded points.

    Attributes:
        lower: Lower bound, or None for unbounded.
        upper: Upper bound, or None for unbounded.
        excluded: Individual versions removed from the interval (``!=``).
    """

    lower: Bound | None = None
    upper: Bound | None = None
    excluded: frozenset[Version] = frozenset()

    def contains(self, version: Version) -> bool:
        """Check whether a parsed version lies in this range."""
        if version in self.excluded:
            return False
        if self.lower is not None:
            if version < self.lower.version:
                return False
            if version == self.lower.version and not self.lower.inclusive:
                return False
        if self.upper is not None:
            if version > self.upper.version:
                return False
            if version == self.upper.version and not self.upper.inclusive:
                return False
        return True

    def intersect(self, other: VersionRange) -> VersionRange:
        """Return the range of versions contained in both ranges."""
        return VersionRange(
            lower=_tighter_lower(self.lower, other.lower),
            upper=_tighter_upper(self.upper, other.upper),
            excluded=self.excluded | other.excluded,
        )

    def is_empty(self) -> bool:
        """Check whether no version at all can satisfy this range.

        Exclusions only empty a range that has collapsed to a single point.
        """
        lower = _normalize_lower(self.lower)
        upper = _normalize_upper(self.upper)
        if lower is None or upper is None:
            return False
        if upper.inclusive:
            if lower.version > upper.version:
                return True
            if lower.version == upper.version:
                return lower.version in self.excluded
            return False
        return lower.version >= upper.version

    def boundary_versions(self) -> list[Version]:
        """Versions sitting on the inclusive edges of this range.

        Used as compromise candidates when a tool declares no available
        versions of its own.
        """
        candidates: list[Version] = []
        lower = _normalize_lower(self.lower)
        upper = _normalize_upper(self.upper)
        if lower is not None:
            candidates.append(lower.version)
        if upper is not None and upper.inclusive:
            candidates.append(upper.version)
        return [v for v in candidates if self.contains(v)]


UNBOUNDED = VersionRange()


# ---------------------------------------------------------------------------
# Constraint parsing
# ---------------------------------------------------------------------------

_ATOM_RE = re.compile(
    r"^(?P<op>==|!=|>=|<=|>|<|\^|~|=)?"
    r"[vV]?(?P<ver>(?:\d+|[xX*])(?:\.(?:\d+|[xX*])){0,2})"
    r"(?:-[0-9A-Za-z\-.]+)?(?:\+[0-9A-Za-z\-.]+)?$"
)

_OP_SPACE_RE = re.compile(r"(==|!=|>=|<=|>|<|\^|~|=)\s+")


def _split_partial(text: str) -> list[int | None]:
    """Split "16.x" into [16, None]; wildcards and missing parts become None."""
    parts: list[int | None] = []
    for piece in text.split("."):
        parts.append(None if piece in _WILDCARDS else int(piece))
    while len(parts) < 3:
        parts.append(None)
    # Anything after a wildcard is a wildcard too ("16.x.3" means "16.x").
    for i in range(1, 3):
        if parts[i - 1] is None:
            parts[i] = None
    return parts


def _wildcard_range(parts: list[int | None]) -> VersionRange:
    major, minor, patch = parts
    if major is None:
        return UNBOUNDED
    if minor is None:
        return VersionRange(Bound((major, 0, 0), True), Bound((major + 1, 0, 0), False))
    if patch is None:
        return VersionRange(
            Bound((major, minor, 0), True), Bound((major, minor + 1, 0), False)
        )
    exact = (major, minor, patch)
    return VersionRange(Bound(exact, True), Bound(exact, True))


def _atom_range(atom: str) -> VersionRange:
    m = _ATOM_RE.match(atom)
    if not m:
        raise ConstraintError(f"Invalid constraint atom: {atom!r}")
    op = m.group("op") or "="
    parts = _split_partial(m.group("ver"))

    if op in ("=", "=="):
        return _wildcard_range(parts)

    if parts[0] is None:
        # ">=*" and friends carry no information.
        return UNBOUNDED
    filled: Version = (parts[0], parts[1] or 0, parts[2] or 0)

    if op == ">=":
        return VersionRange(lower=Bound(filled, True))
    if op == ">":
        return VersionRange(lower=Bound(filled, False))
    if op == "<=":
        return VersionRange(upper=Bound(filled, True))
    if op == "<":
        return VersionRange(upper=Bound(filled, False))
    if op == "!=":
        return VersionRange(excluded=frozenset({filled}))
    if op == "^":
        # Caret: the left-most non-zero component given stays fixed.
        major, minor, patch = filled
        if major != 0 or parts[1] is None:
            ceiling = (major + 1, 0, 0)
        elif minor != 0 or parts[2] is None:
            ceiling = (0, minor + 1, 0)
        else:
            ceiling = (0, 0, patch + 1)
        return VersionRange(Bound(filled, True), Bound(ceiling, False))
    if op == "~":
        # Tilde: same major.minor when a minor is given, else same major.
        major, minor, _ = filled
        ceiling = (major, minor + 1, 0) if parts[1] is not None else (major + 1, 0, 0)
        return VersionRange(Bound(filled, True), Bound(ceiling, False))
    raise ConstraintError(f"Unknown operator: {op!r}")  # pragma: no cover


def _atoms(raw: str) -> list[str]:
    if "||" in raw:
        raise ConstraintError(f"Disjunctive constraints are not supported: {raw!r}")
    joined = _OP_SPACE_RE.sub(r"\1", raw)
    atoms: list[str] = []
    for segment in joined.split(","):
        atoms.extend(segment.split())
    return atoms


def parse_constraint(raw: str) -> VersionRange:
    """Compile a constraint expression into a ``VersionRange``.

    Raises:
        ConstraintError: On malformed expressions or disjunctions (``||``).
    """
    result = UNBOUNDED
    for atom in _atoms(raw):
        if atom == "*":
            continue
        result = result.intersect(_atom_range(atom))
    return result


# ---------------------------------------------------------------------------
# VersionConstraint: declarative version requirement on an edge
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VersionConstraint:
    """A version constraint attached to a dependency edge.

    Examples: ``>=16``, ``16.x``, ``^18.0.0``, ``>=1.0.0,<2.0.0``,
    ``==18.19.1``, ``*``.

    The expression is compiled eagerly, so an invalid constraint fails at
    construction with ``ConstraintError`` rather than during detection.

    Attributes:
        raw: The constraint string as authored.
    """

    raw: str
    _range: VersionRange = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_range", parse_constraint(self.raw))

    @property
    def range(self) -> VersionRange:
        return self._range

    def satisfies(self, version: str) -> bool:
        """Check whether a version string satisfies this constraint.

        Raises:
            ConstraintError: If *version* is not a valid version.
        """
        return self._range.contains(parse_version(version))

    def is_satisfiable(self) -> bool:
        return not self._range.is_empty()

    def intersect(self, other: VersionConstraint) -> VersionConstraint:
        """Combine two constraints with AND semantics."""
        if self.raw.strip() in ("", "*"):
            return other
        if other.raw.strip() in ("", "*") or other.raw == self.raw:
            return self
        return VersionConstraint(f"{self.raw},{other.raw}")

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"VersionConstraint({self.raw!r})"


def intersect_all(constraints: Iterable[VersionConstraint]) -> VersionRange:
    """Intersect the ranges of several constraints."""
    result = UNBOUNDED
    for constraint in constraints:
        result = result.intersect(constraint.range)
    return result


def exact(version: str) -> VersionConstraint:
    """Constraint pinning exactly *version*."""
    return VersionConstraint(f"=={format_version(parse_version(version))}")
