"""Tool descriptors: the input data model of the dependency engine.

Re-exports the descriptor types and the YAML/JSON loader so callers can use
``from toolgraph.core.manifest import ToolDescriptor``.
"""

from toolgraph.core.manifest.loader import (
    descriptor_from_dict,
    load_descriptors,
    parse_descriptors,
)
from toolgraph.core.manifest.models import (
    NOT_INSTALLED,
    Architecture,
    DependencySpec,
    DependencyType,
    InstallationMethod,
    InstallationState,
    InstallationStatus,
    Platform,
    ToolDescriptor,
    fallback_installation_method,
    select_installation_method,
)

__all__ = [
    "Architecture",
    "DependencySpec",
    "DependencyType",
    "InstallationMethod",
    "InstallationState",
    "InstallationStatus",
    "NOT_INSTALLED",
    "Platform",
    "ToolDescriptor",
    "descriptor_from_dict",
    "fallback_installation_method",
    "load_descriptors",
    "parse_descriptors",
    "select_installation_method",
]
