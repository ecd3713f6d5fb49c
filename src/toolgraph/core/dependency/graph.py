"""Tool dependency graph data structure and graph algorithms.

A directed graph whose nodes are tools and whose edges are dependency
relations (``source -> target`` reads "source depends on target").

Nodes are stored in a list and addressed internally by integer
``NodeHandle`` values; the string id is resolved to a handle once at the API
boundary, and every traversal after that works on handles. Edges are keyed
by handle pairs, so an edge endpoint always refers to a stored node.
Adjacency is indexed in both directions for O(1) neighbour lookup.

All values handed out (``Node``, ``Edge``, ``GraphStatistics``) are frozen
snapshots; mutation goes exclusively through the graph's methods.
"""

from __future__ import annotations

import dataclasses
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, NewType

from toolgraph.core.dependency.constraints import VersionConstraint
from toolgraph.core.manifest.models import (
    NOT_INSTALLED,
    Architecture,
    DependencyType,
    InstallationMethod,
    InstallationStatus,
    Platform,
    ToolDescriptor,
)
from toolgraph.exceptions import (
    DuplicateNodeError,
    SelfDependencyError,
    UnknownNodeError,
)

NodeHandle = NewType("NodeHandle", int)

# Relations that carry an installation ordering (everything but "conflicts").
DEPENDENCY_TYPES: frozenset[DependencyType] = frozenset(
    {DependencyType.REQUIRED, DependencyType.OPTIONAL, DependencyType.SUGGESTS}
)
REQUIRED_ONLY: frozenset[DependencyType] = frozenset({DependencyType.REQUIRED})


# ---------------------------------------------------------------------------
# Node, Edge, EdgeRelation: graph value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Node:
    """A tool vertex.

    Attributes:
        id: Unique tool id (same as ``descriptor.id``).
        descriptor: The tool's manifest data.
        installation_status: Whether the tool is already on the target system.
        selected_version: Version chosen for this run, or None if unset.
        installation_method: Method selected for the target platform, if any.
        platform_compatible: False when no installation path exists for the
            target platform/architecture.
    """

    id: str
    descriptor: ToolDescriptor
    installation_status: InstallationStatus = NOT_INSTALLED
    selected_version: str | None = None
    installation_method: InstallationMethod | None = None
    platform_compatible: bool = True


@dataclass(frozen=True)
class EdgeRelation:
    """What ``add_edge`` attaches between two nodes."""

    dependency_type: DependencyType = DependencyType.REQUIRED
    constraint: VersionConstraint | None = None
    reason: str | None = None


@dataclass(frozen=True)
class Edge:
    """A directed relation ``source -> target`` (source depends on target)."""

    source: str
    target: str
    dependency_type: DependencyType
    constraint: VersionConstraint | None = None
    reason: str | None = None

    @property
    def is_required(self) -> bool:
        return self.dependency_type is DependencyType.REQUIRED

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.source,
            "to": self.target,
            "type": self.dependency_type.value,
            "constraint": self.constraint.raw if self.constraint else None,
        }


@dataclass(frozen=True)
class GraphStatistics:
    """Size and complexity metrics of a graph at one point in time."""

    node_count: int
    edge_count: int
    edges_by_type: dict[str, int] = field(default_factory=dict)
    connected_components: int = 0
    cyclomatic_complexity: int = 0
    strongly_connected_components: int = 0
    max_depth: int = 0
    average_degree: float = 0.0
    density: float = 0.0
    max_fan_in: int = 0
    max_fan_out: int = 0
    category_distribution: dict[str, int] = field(default_factory=dict)
    platform_coverage: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def _merge_edge(existing: Edge, relation: EdgeRelation) -> Edge:
    """Merge a second relation for the same ordered pair into *existing*.

    The stronger relation type wins and version constraints are AND-ed.
    """
    dep_type = existing.dependency_type
    if relation.dependency_type.strength > dep_type.strength:
        dep_type = relation.dependency_type

    constraint = existing.constraint
    if relation.constraint is not None:
        constraint = (
            relation.constraint if constraint is None
            else constraint.intersect(relation.constraint)
        )
    return dataclasses.replace(
        existing,
        dependency_type=dep_type,
        constraint=constraint,
        reason=existing.reason or relation.reason,
    )


# ---------------------------------------------------------------------------
# DependencyGraph
# ---------------------------------------------------------------------------


class DependencyGraph:
    """Directed dependency graph of tools.

    Supports:
    - Node and edge insertion with structural validation
    - Edge merging (one relation per ordered pair)
    - Bidirectional neighbour lookup
    - BFS transitive dependencies, dependents and path queries
    - Induced subgraphs and category/platform lookups
    - Iterative strongly connected component decomposition
    - On-demand statistics

    Args:
        platform: Platform the graph was built for, if known.
        architecture: Architecture the graph was built for, if known.

    Thread safety: This class is NOT thread-safe. Concurrent resolution
    attempts must each work on their own ``copy()``.
    """

    def __init__(
        self,
        platform: Platform | None = None,
        architecture: Architecture | None = None,
    ) -> None:
        self.platform = platform
        self.architecture = architecture
        self._nodes: list[Node | None] = []
        self._handles: dict[str, NodeHandle] = {}
        self._edges: dict[tuple[NodeHandle, NodeHandle], Edge] = {}
        self._outgoing: dict[NodeHandle, dict[NodeHandle, Edge]] = {}
        self._incoming: dict[NodeHandle, dict[NodeHandle, Edge]] = {}

    # -- Handle resolution --------------------------------------------------

    def _handle(self, node_id: str) -> NodeHandle:
        handle = self._handles.get(node_id)
        if handle is None:
            raise UnknownNodeError(node_id)
        return handle

    def _node_at(self, handle: NodeHandle) -> Node:
        node = self._nodes[handle]
        assert node is not None, "dangling handle"
        return node

    def _live_handles(self) -> Iterator[NodeHandle]:
        return iter(self._handles.values())

    # -- Size ---------------------------------------------------------------

    @property
    def node_count(self) -> int:
        return len(self._handles)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    @property
    def node_ids(self) -> list[str]:
        """All node ids in insertion order."""
        return list(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._handles

    # -- Mutation -----------------------------------------------------------

    def add_node(
        self,
        descriptor: ToolDescriptor,
        status: InstallationStatus | None = None,
        *,
        installation_method: InstallationMethod | None = None,
        platform_compatible: bool = True,
    ) -> Node:
        """Insert a node for *descriptor*.

        Args:
            descriptor: Tool manifest data; ``descriptor.id`` becomes the node id.
            status: Installation status on the target system.
            installation_method: Method selected for the target platform.
            platform_compatible: Whether an installation path exists.

        Returns:
            The inserted ``Node``.

        Raises:
            DuplicateNodeError: If the id already exists. The graph is unchanged.
        """
        if descriptor.id in self._handles:
            raise DuplicateNodeError(descriptor.id)
        node = Node(
            id=descriptor.id,
            descriptor=descriptor,
            installation_status=status or NOT_INSTALLED,
            installation_method=installation_method,
            platform_compatible=platform_compatible,
        )
        handle = NodeHandle(len(self._nodes))
        self._nodes.append(node)
        self._handles[node.id] = handle
        self._outgoing[handle] = {}
        self._incoming[handle] = {}
        return node

    def add_edge(self, source_id: str, target_id: str, relation: EdgeRelation) -> Edge:
        """Insert the edge ``source -> target``, merging with an existing one.

        Args:
            source_id: The dependent tool.
            target_id: The tool depended upon.
            relation: Relation type, optional constraint and reason.

        Returns:
            The stored (possibly merged) ``Edge``.

        Raises:
            UnknownNodeError: If either endpoint is absent.
            SelfDependencyError: If ``source_id == target_id``.
        """
        src = self._handle(source_id)
        dst = self._handle(target_id)
        if src == dst:
            raise SelfDependencyError(source_id)

        existing = self._edges.get((src, dst))
        if existing is None:
            edge = Edge(
                source=source_id,
                target=target_id,
                dependency_type=relation.dependency_type,
                constraint=relation.constraint,
                reason=relation.reason,
            )
        else:
            edge = _merge_edge(existing, relation)
        self._store_edge(src, dst, edge)
        return edge

    def _store_edge(self, src: NodeHandle, dst: NodeHandle, edge: Edge) -> None:
        self._edges[(src, dst)] = edge
        self._outgoing[src][dst] = edge
        self._incoming[dst][src] = edge

    def remove_edge(self, source_id: str, target_id: str) -> Edge | None:
        """Remove the edge ``source -> target``.

        Returns:
            The removed edge, or None if there was no such edge.
        """
        src = self._handles.get(source_id)
        dst = self._handles.get(target_id)
        if src is None or dst is None:
            return None
        edge = self._edges.pop((src, dst), None)
        if edge is not None:
            del self._outgoing[src][dst]
            del self._incoming[dst][src]
        return edge

    def remove_node(self, node_id: str) -> Node:
        """Remove a node together with every incident edge.

        The handle is retired, never reused.

        Raises:
            UnknownNodeError: If the node is absent.
        """
        handle = self._handle(node_id)
        for dst in list(self._outgoing[handle]):
            del self._edges[(handle, dst)]
            del self._incoming[dst][handle]
        for src in list(self._incoming[handle]):
            del self._edges[(src, handle)]
            del self._outgoing[src][handle]
        del self._outgoing[handle]
        del self._incoming[handle]
        del self._handles[node_id]
        node = self._node_at(handle)
        self._nodes[handle] = None
        return node

    def set_selected_version(self, node_id: str, version: str | None) -> Node:
        """Record the version chosen for *node_id* in this run."""
        handle = self._handle(node_id)
        node = dataclasses.replace(self._node_at(handle), selected_version=version)
        self._nodes[handle] = node
        return node

    def set_edge_constraint(
        self, source_id: str, target_id: str, constraint: VersionConstraint | None
    ) -> Edge:
        """Replace the version constraint of an existing edge.

        Raises:
            UnknownNodeError: If an endpoint is absent or the edge does not exist.
        """
        key = (self._handle(source_id), self._handle(target_id))
        edge = self._edges.get(key)
        if edge is None:
            raise UnknownNodeError(f"{source_id}->{target_id}")
        updated = dataclasses.replace(edge, constraint=constraint)
        self._store_edge(key[0], key[1], updated)
        return updated

    def set_edge_type(
        self, source_id: str, target_id: str, dependency_type: DependencyType
    ) -> Edge:
        """Change the relation type of an existing edge (no strength merge)."""
        key = (self._handle(source_id), self._handle(target_id))
        edge = self._edges.get(key)
        if edge is None:
            raise UnknownNodeError(f"{source_id}->{target_id}")
        updated = dataclasses.replace(edge, dependency_type=dependency_type)
        self._store_edge(key[0], key[1], updated)
        return updated

    def copy(self) -> DependencyGraph:
        """Return an independent graph with the same nodes, edges and handles."""
        clone = DependencyGraph(self.platform, self.architecture)
        clone._nodes = list(self._nodes)
        clone._handles = dict(self._handles)
        clone._edges = dict(self._edges)
        clone._outgoing = {h: dict(adj) for h, adj in self._outgoing.items()}
        clone._incoming = {h: dict(adj) for h, adj in self._incoming.items()}
        return clone

    # -- Queries ------------------------------------------------------------

    def get_node(self, node_id: str) -> Node | None:
        handle = self._handles.get(node_id)
        return None if handle is None else self._node_at(handle)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._handles

    def get_edge(self, source_id: str, target_id: str) -> Edge | None:
        src = self._handles.get(source_id)
        dst = self._handles.get(target_id)
        if src is None or dst is None:
            return None
        return self._edges.get((src, dst))

    def get_all_nodes(self) -> tuple[Node, ...]:
        """Snapshot of all nodes in insertion order."""
        return tuple(self._node_at(h) for h in self._live_handles())

    def get_all_edges(self) -> tuple[Edge, ...]:
        """Snapshot of all edges in insertion order."""
        return tuple(self._edges.values())

    def get_outgoing_edges(self, node_id: str) -> tuple[Edge, ...]:
        """Edges leaving *node_id*; empty for unknown ids."""
        handle = self._handles.get(node_id)
        if handle is None:
            return ()
        return tuple(self._outgoing[handle].values())

    def get_incoming_edges(self, node_id: str) -> tuple[Edge, ...]:
        """Edges entering *node_id*; empty for unknown ids."""
        handle = self._handles.get(node_id)
        if handle is None:
            return ()
        return tuple(self._incoming[handle].values())

    def subgraph(self, node_ids: Iterable[str]) -> DependencyGraph:
        """A new graph holding *node_ids* and the edges among them.

        Node state (status, selected version, installation method) is kept.

        Raises:
            UnknownNodeError: If an id is absent.
        """
        handles = [self._handle(n) for n in dict.fromkeys(node_ids)]
        sub = DependencyGraph(self.platform, self.architecture)
        remap: dict[NodeHandle, NodeHandle] = {}
        for old in handles:
            node = self._node_at(old)
            new = NodeHandle(len(sub._nodes))
            sub._nodes.append(node)
            sub._handles[node.id] = new
            sub._outgoing[new] = {}
            sub._incoming[new] = {}
            remap[old] = new
        for (src, dst), edge in self._edges.items():
            if src in remap and dst in remap:
                sub._store_edge(remap[src], remap[dst], edge)
        return sub

    def nodes_by_category(self, category: str) -> tuple[Node, ...]:
        """Nodes whose descriptor declares *category*, in insertion order."""
        return tuple(n for n in self.get_all_nodes() if n.descriptor.category == category)

    def nodes_by_platform(self, platform: Platform) -> tuple[Node, ...]:
        """Nodes whose descriptor supports *platform*, in insertion order."""
        return tuple(n for n in self.get_all_nodes() if n.descriptor.supports(platform))

    def _successors(
        self, handle: NodeHandle, types: frozenset[DependencyType]
    ) -> Iterator[NodeHandle]:
        for dst, edge in self._outgoing[handle].items():
            if edge.dependency_type in types:
                yield dst

    def _predecessors(
        self, handle: NodeHandle, types: frozenset[DependencyType]
    ) -> Iterator[NodeHandle]:
        for src, edge in self._incoming[handle].items():
            if edge.dependency_type in types:
                yield src

    def dependencies(
        self, node_id: str, types: Iterable[DependencyType] = DEPENDENCY_TYPES
    ) -> list[str]:
        """Direct dependencies of *node_id* through edges of the given types."""
        allowed = frozenset(types)
        return [
            e.target for e in self.get_outgoing_edges(node_id)
            if e.dependency_type in allowed
        ]

    def dependents(
        self, node_id: str, types: Iterable[DependencyType] = DEPENDENCY_TYPES
    ) -> list[str]:
        """Direct dependents of *node_id* through edges of the given types."""
        allowed = frozenset(types)
        return [
            e.source for e in self.get_incoming_edges(node_id)
            if e.dependency_type in allowed
        ]

    def reachable_from(
        self, node_ids: Iterable[str], types: Iterable[DependencyType] = DEPENDENCY_TYPES
    ) -> list[str]:
        """BFS closure of *node_ids* (included) in discovery order.

        Raises:
            UnknownNodeError: If a start id is absent.
        """
        allowed = frozenset(types)
        starts = [self._handle(n) for n in node_ids]
        seen: set[NodeHandle] = set()
        order: list[NodeHandle] = []
        queue: deque[NodeHandle] = deque()
        for handle in starts:
            if handle not in seen:
                seen.add(handle)
                order.append(handle)
                queue.append(handle)
        while queue:
            current = queue.popleft()
            for nxt in self._successors(current, allowed):
                if nxt not in seen:
                    seen.add(nxt)
                    order.append(nxt)
                    queue.append(nxt)
        return [self._node_at(h).id for h in order]

    def _closure(
        self, handle: NodeHandle, step: Callable[[NodeHandle], Iterable[NodeHandle]]
    ) -> set[str]:
        visited: set[NodeHandle] = set()
        queue: deque[NodeHandle] = deque(step(handle))
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            queue.extend(step(current))
        return {self._node_at(h).id for h in visited}

    def transitive_dependencies(
        self, node_id: str, types: Iterable[DependencyType] = DEPENDENCY_TYPES
    ) -> set[str]:
        """Every tool *node_id* depends on, directly or indirectly.

        The result contains *node_id* itself only when it sits on a cycle.
        """
        allowed = frozenset(types)
        return self._closure(self._handle(node_id), lambda h: self._successors(h, allowed))

    def transitive_dependents(
        self, node_id: str, types: Iterable[DependencyType] = DEPENDENCY_TYPES
    ) -> set[str]:
        """Every tool that depends on *node_id*, directly or indirectly.

        Answers "what breaks if this tool goes away". Contains *node_id*
        itself only when it sits on a cycle.
        """
        allowed = frozenset(types)
        return self._closure(self._handle(node_id), lambda h: self._predecessors(h, allowed))

    def has_path(
        self,
        source_id: str,
        target_id: str,
        types: Iterable[DependencyType] = DEPENDENCY_TYPES,
    ) -> bool:
        """Check whether *target_id* is reachable from *source_id*."""
        if source_id not in self._handles or target_id not in self._handles:
            return False
        return target_id in self.transitive_dependencies(source_id, types)

    def strongly_connected_components(
        self,
        node_ids: Iterable[str] | None = None,
        types: Iterable[DependencyType] = DEPENDENCY_TYPES,
    ) -> list[list[str]]:
        """Tarjan's SCC decomposition, implemented with an explicit stack.

        Args:
            node_ids: Restrict the decomposition to this node subset
                (edges leaving the subset are ignored). Defaults to all nodes.
            types: Edge types to follow.

        Returns:
            Components in reverse topological order (dependencies first);
            members in discovery order.
        """
        allowed_types = frozenset(types)
        if node_ids is None:
            scope = list(self._live_handles())
        else:
            scope = [self._handle(n) for n in node_ids]
        in_scope = set(scope)

        index: dict[NodeHandle, int] = {}
        low: dict[NodeHandle, int] = {}
        on_stack: set[NodeHandle] = set()
        stack: list[NodeHandle] = []
        components: list[list[NodeHandle]] = []
        counter = 0

        for root in scope:
            if root in index:
                continue
            index[root] = low[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            work = [(root, self._successors(root, allowed_types))]
            while work:
                current, successors = work[-1]
                descended = False
                for nxt in successors:
                    if nxt not in in_scope:
                        continue
                    if nxt not in index:
                        index[nxt] = low[nxt] = counter
                        counter += 1
                        stack.append(nxt)
                        on_stack.add(nxt)
                        work.append((nxt, self._successors(nxt, allowed_types)))
                        descended = True
                        break
                    if nxt in on_stack:
                        low[current] = min(low[current], index[nxt])
                if descended:
                    continue
                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[current])
                if low[current] == index[current]:
                    component: list[NodeHandle] = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == current:
                            break
                    component.reverse()
                    components.append(component)

        return [[self._node_at(h).id for h in comp] for comp in components]

    # -- Statistics ---------------------------------------------------------

    def _weak_components(self) -> int:
        seen: set[NodeHandle] = set()
        count = 0
        for start in self._live_handles():
            if start in seen:
                continue
            count += 1
            seen.add(start)
            queue: deque[NodeHandle] = deque([start])
            while queue:
                current = queue.popleft()
                for nxt in (*self._outgoing[current], *self._incoming[current]):
                    if nxt not in seen:
                        seen.add(nxt)
                        queue.append(nxt)
        return count

    def _max_depth(self) -> int:
        """Longest dependency chain (in edges) over the acyclic part of the graph."""
        ordering = frozenset({DependencyType.REQUIRED, DependencyType.OPTIONAL})
        remaining = {
            h: sum(1 for _ in self._successors(h, ordering)) for h in self._live_handles()
        }
        depth = {h: 0 for h in remaining}
        ready = deque(h for h, n in remaining.items() if n == 0)
        best = 0
        while ready:
            current = ready.popleft()
            best = max(best, depth[current])
            for src, edge in self._incoming[current].items():
                if edge.dependency_type not in ordering:
                    continue
                depth[src] = max(depth[src], depth[current] + 1)
                remaining[src] -= 1
                if remaining[src] == 0:
                    ready.append(src)
        return best

    def get_statistics(self) -> GraphStatistics:
        """Compute size and complexity metrics.

        Computed on every call; nothing is cached because the graph may have
        been mutated since the previous call.
        """
        nodes = self.get_all_nodes()
        n = len(nodes)
        e = len(self._edges)
        components = self._weak_components()

        by_type = Counter(edge.dependency_type.value for edge in self._edges.values())
        categories = Counter(node.descriptor.category for node in nodes)
        coverage = {
            platform.value: sum(1 for node in nodes if platform in node.descriptor.platforms)
            for platform in Platform
        }
        fan_out = max((len(self._outgoing[h]) for h in self._live_handles()), default=0)
        fan_in = max((len(self._incoming[h]) for h in self._live_handles()), default=0)

        return GraphStatistics(
            node_count=n,
            edge_count=e,
            edges_by_type=dict(sorted(by_type.items())),
            connected_components=components,
            cyclomatic_complexity=e - n + components,
            strongly_connected_components=len(self.strongly_connected_components()),
            max_depth=self._max_depth(),
            average_degree=(2 * e / n) if n else 0.0,
            density=(e / (n * (n - 1))) if n > 1 else 0.0,
            max_fan_in=fan_in,
            max_fan_out=fan_out,
            category_distribution=dict(sorted(categories.items())),
            platform_coverage=coverage,
        )
