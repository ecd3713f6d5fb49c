"""Load tool descriptors from YAML or JSON documents.

Accepted document shapes::

    tools:
      - id: nodejs
        category: runtime
        versions: ["16.20.2", "18.19.1"]
        resources: ["port:3000"]
        installation_methods:
          - {method: apt, platform: linux, command: "apt install nodejs"}
      - id: react
        dependencies:
          - {tool_id: nodejs, type: required, min_version: "16"}

or a bare top-level list of tool mappings. JSON is a subset of YAML, so a
single ``yaml.safe_load`` handles both formats.

Only the fields needed to build a graph are interpreted. Full manifest
schema validation is the job of the manifest tooling upstream.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from toolgraph.core.manifest.models import (
    Architecture,
    DependencySpec,
    DependencyType,
    InstallationMethod,
    InstallationState,
    InstallationStatus,
    Platform,
    ToolDescriptor,
)
from toolgraph.exceptions import DescriptorError

logger = logging.getLogger(__name__)


def _enum_value(enum_cls: type, raw: Any, field_name: str, tool_id: str) -> Any:
    """Convert *raw* to a member of *enum_cls*, raising DescriptorError."""
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise DescriptorError(
            f"Tool {tool_id!r}: invalid {field_name} {raw!r} (expected one of: {allowed})"
        ) from None


def _str_or_none(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _parse_method(raw: Any, tool_id: str) -> InstallationMethod:
    if not isinstance(raw, dict):
        raise DescriptorError(f"Tool {tool_id!r}: installation method must be a mapping")
    arch = raw.get("architecture")
    return InstallationMethod(
        method=str(raw.get("method", "")),
        platform=_enum_value(Platform, raw.get("platform"), "platform", tool_id),
        command=str(raw.get("command", "")),
        architecture=(
            _enum_value(Architecture, arch, "architecture", tool_id) if arch else None
        ),
        min_version=_str_or_none(raw.get("min_version")),
        max_version=_str_or_none(raw.get("max_version")),
    )


def _parse_dependency(raw: Any, tool_id: str) -> DependencySpec:
    # Shorthand: a bare string is a required dependency without a constraint.
    if isinstance(raw, str):
        return DependencySpec(tool_id=raw)
    if not isinstance(raw, dict):
        raise DescriptorError(f"Tool {tool_id!r}: dependency must be a string or mapping")
    target = raw.get("tool_id") or raw.get("id")
    if not target:
        raise DescriptorError(f"Tool {tool_id!r}: dependency is missing 'tool_id'")
    platforms = raw.get("platforms")
    return DependencySpec(
        tool_id=str(target),
        type=_enum_value(DependencyType, raw.get("type", "required"), "dependency type", tool_id),
        min_version=_str_or_none(raw.get("min_version")),
        max_version=_str_or_none(raw.get("max_version")),
        version_range=_str_or_none(raw.get("version_range")),
        platforms=(
            frozenset(_enum_value(Platform, p, "platform", tool_id) for p in platforms)
            if platforms
            else None
        ),
        reason=_str_or_none(raw.get("reason")),
    )


def descriptor_from_dict(data: dict[str, Any]) -> ToolDescriptor:
    """Build a ``ToolDescriptor`` from a plain mapping.

    Args:
        data: One tool entry, as parsed from YAML or JSON.

    Returns:
        The corresponding descriptor.

    Raises:
        DescriptorError: If the entry has no id or contains unknown enum values.
    """
    if not isinstance(data, dict):
        raise DescriptorError(f"Tool entry must be a mapping, got {type(data).__name__}")
    tool_id = data.get("id")
    if not tool_id:
        raise DescriptorError("Tool entry is missing 'id'")
    tool_id = str(tool_id)

    kwargs: dict[str, Any] = {
        "id": tool_id,
        "name": str(data.get("name", "")),
        "category": str(data.get("category", "general")),
        "description": str(data.get("description", "")),
        "installation_methods": tuple(
            _parse_method(m, tool_id) for m in data.get("installation_methods") or []
        ),
        "dependencies": tuple(
            _parse_dependency(d, tool_id) for d in data.get("dependencies") or []
        ),
        "versions": tuple(str(v) for v in data.get("versions") or []),
        "alternatives": tuple(str(a) for a in data.get("alternatives") or []),
        "resources": tuple(str(r) for r in data.get("resources") or []),
    }
    if data.get("platforms"):
        kwargs["platforms"] = frozenset(
            _enum_value(Platform, p, "platform", tool_id) for p in data["platforms"]
        )
    if data.get("architectures"):
        kwargs["architectures"] = frozenset(
            _enum_value(Architecture, a, "architecture", tool_id)
            for a in data["architectures"]
        )
    return ToolDescriptor(**kwargs)


def status_from_dict(data: Any, tool_id: str) -> InstallationStatus:
    """Parse an optional ``installed`` entry: a version string or a mapping."""
    if isinstance(data, str):
        return InstallationStatus(InstallationState.INSTALLED, data)
    if isinstance(data, dict):
        return InstallationStatus(
            _enum_value(InstallationState, data.get("state", "installed"), "state", tool_id),
            _str_or_none(data.get("version")),
        )
    raise DescriptorError(f"Tool {tool_id!r}: 'installed' must be a version or mapping")


def parse_descriptors(text: str) -> tuple[list[ToolDescriptor], dict[str, InstallationStatus]]:
    """Parse a YAML/JSON document into descriptors and installation statuses.

    Each tool entry may carry an ``installed`` key describing its state on
    the target machine; those are returned separately since they are not
    part of the manifest.

    Args:
        text: Document text.

    Returns:
        Tuple of (descriptors in document order, statuses keyed by tool id).

    Raises:
        DescriptorError: If the document cannot be parsed or has the wrong shape.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise DescriptorError(f"Cannot parse descriptor document: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("tools")
    if data is None:
        return [], {}
    if not isinstance(data, list):
        raise DescriptorError("Descriptor document must be a list of tools or contain 'tools:'")

    descriptors: list[ToolDescriptor] = []
    statuses: dict[str, InstallationStatus] = {}
    for entry in data:
        descriptor = descriptor_from_dict(entry)
        descriptors.append(descriptor)
        if entry.get("installed") is not None:
            statuses[descriptor.id] = status_from_dict(entry["installed"], descriptor.id)
    logger.debug("Parsed %d tool descriptors", len(descriptors))
    return descriptors, statuses


def load_descriptors(path: str | Path) -> tuple[list[ToolDescriptor], dict[str, InstallationStatus]]:
    """Read and parse a descriptor file. See :func:`parse_descriptors`."""
    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DescriptorError(f"Cannot read {file_path}: {exc}") from exc
    return parse_descriptors(text)
