"""toolgraph exception hierarchy.

All public exceptions inherit from ToolGraphError, giving callers a single
base class to catch when they want to handle any toolgraph-specific failure
without swallowing unrelated errors.

Conflicts found by the detector are *not* exceptions. They are returned as
data because their presence is an expected outcome of planning an install.
"""

from __future__ import annotations


class ToolGraphError(Exception):
    """Base exception for all toolgraph errors."""


class GraphError(ToolGraphError):
    """Raised when a structural graph invariant would be violated.

    Structural errors are always fatal to the operation that raised them.
    The graph is left exactly as it was before the call.
    """


class DuplicateNodeError(GraphError):
    """Raised when adding a node whose id already exists in the graph."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Tool {node_id!r} is already in the graph")
        self.node_id = node_id


class UnknownNodeError(GraphError):
    """Raised when an operation references a node id absent from the graph."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Tool {node_id!r} is not in the graph")
        self.node_id = node_id


class SelfDependencyError(GraphError):
    """Raised when an edge would connect a node to itself."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Tool {node_id!r} cannot depend on itself")
        self.node_id = node_id


class GraphTooLargeError(GraphError):
    """Raised when graph construction would exceed the node-count ceiling."""

    def __init__(self, count: int, limit: int) -> None:
        super().__init__(
            f"Graph construction aborted: {count} tools exceeds the limit of {limit}"
        )
        self.count = count
        self.limit = limit


class ConstraintError(ToolGraphError, ValueError):
    """Raised when a version or version-constraint string cannot be parsed."""


class DescriptorError(ToolGraphError):
    """Raised when a tool descriptor document is malformed.

    Covers missing ids, unknown enum values, and documents whose top-level
    shape is neither a list of tools nor a mapping with a ``tools`` key.
    """


class ResolutionError(ToolGraphError):
    """Raised when a strict installation plan cannot be produced.

    Covers unresolved conflicts and residual circular dependencies that
    remain after automatic conflict resolution.
    """
