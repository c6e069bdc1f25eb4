"""Build the in-memory dependency graph from a cargo metadata document."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

import networkx as nx

from cratetree.core.errors import MalformedInput
from cratetree.core.parser import DependencyKind, PackageId, PackageInfo, parse_package

logger = logging.getLogger(__name__)

_TOO_OLD = "cratetree requires cargo 1.41 or newer (resolve data lacks dependency kinds)"


class Direction(Enum):
    """Which edge endpoint is treated as a child while walking."""

    OUTGOING = "outgoing"  # package -> its dependencies
    INCOMING = "incoming"  # package -> its dependents


@dataclass
class GraphNode:
    """One package in the graph plus bookkeeping used when displaying it."""

    package: PackageInfo
    # Breadth-first depth of first discovery from the root; None without a root.
    depth: int | None = None
    has_duplicate_path: bool = False

    @property
    def id(self) -> PackageId:
        return self.package.id


class DependencyGraph:
    """
    Directed multigraph of resolved packages.

    Nodes are small integer indices carrying a GraphNode under the "node"
    attribute. Edges are keyed by DependencyKind, so a (source, target) pair
    holds at most one edge per kind.
    """

    def __init__(self) -> None:
        self.graph = nx.MultiDiGraph()
        self.index_of: dict[PackageId, int] = {}
        self.root: PackageId | None = None
        self._next_index = 0

    def add_package(self, package: PackageInfo) -> int:
        """
        Add a package node and return its index.

        Re-adding the same metadata entry returns the existing index. A
        different entry with the same identity raises MalformedInput.
        """
        if package.id in self.index_of:
            index = self.index_of[package.id]
            existing = self.node_at(index).package
            if existing.raw_id != package.raw_id:
                raise MalformedInput(
                    f"packages `{existing.raw_id}` and `{package.raw_id}` "
                    f"share the identity {package.id}"
                )
            return index
        index = self._next_index
        self._next_index += 1
        self.graph.add_node(index, node=GraphNode(package=package))
        self.index_of[package.id] = index
        return index

    def add_dependency(self, source: int, target: int, kind: DependencyKind) -> None:
        """Add an edge; adding the same (source, target, kind) twice is a no-op."""
        if not self.graph.has_edge(source, target, key=kind):
            self.graph.add_edge(source, target, key=kind)

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    def __contains__(self, package_id: object) -> bool:
        return package_id in self.index_of

    def node_at(self, index: int) -> GraphNode:
        return self.graph.nodes[index]["node"]

    def node(self, package_id: PackageId) -> GraphNode:
        return self.node_at(self.index_of[package_id])

    def nodes(self) -> Iterator[GraphNode]:
        """All nodes, in identity order."""
        for package_id in sorted(self.index_of):
            yield self.node(package_id)

    def edges(self) -> list[tuple[PackageId, PackageId, DependencyKind]]:
        """All edges as (source, target, kind), sorted for stable output."""
        out = [
            (self.node_at(u).id, self.node_at(v).id, kind)
            for u, v, kind in self.graph.edges(keys=True)
        ]
        order = list(DependencyKind)
        return sorted(out, key=lambda e: (e[0], e[1], order.index(e[2])))

    def children(self, index: int, direction: Direction) -> dict[DependencyKind, list[int]]:
        """
        Neighbour indices of a node grouped by kind, each group sorted by identity.

        Groups come back in rendering order (normal, build, development) and
        are present even when empty.
        """
        if direction is Direction.OUTGOING:
            pairs = ((v, kind) for _, v, kind in self.graph.out_edges(index, keys=True))
        else:
            pairs = ((u, kind) for u, _, kind in self.graph.in_edges(index, keys=True))
        groups: dict[DependencyKind, list[int]] = {kind: [] for kind in DependencyKind}
        for other, kind in pairs:
            groups[kind].append(other)
        for members in groups.values():
            members.sort(key=lambda i: self.node_at(i).id)
        return groups

    def prune_unreachable(self) -> int:
        """Remove every node the root cannot reach. Returns the number removed."""
        if self.root is None:
            return 0
        start = self.index_of[self.root]
        keep = nx.descendants(self.graph, start) | {start}
        doomed = [i for i in self.graph.nodes if i not in keep]
        for index in doomed:
            node = self.node_at(index)
            logger.debug("pruning unreachable package %s", node.id)
            del self.index_of[node.id]
        self.graph.remove_nodes_from(doomed)
        return len(doomed)

    def annotate(self) -> None:
        """Fill in first-discovery depth and the duplicate-path flag."""
        if self.root is not None:
            depths = nx.single_source_shortest_path_length(self.graph, self.index_of[self.root])
            for index, depth in depths.items():
                self.node_at(index).depth = depth
        for index in self.graph.nodes:
            parents = {p for p in self.graph.predecessors(index) if p != index}
            self.node_at(index).has_duplicate_path = len(parents) > 1


def _dep_kinds(dep: dict) -> list[DependencyKind]:
    """Distinct kinds of one resolved dep, in first-seen order."""
    raw_kinds = dep.get("dep_kinds")
    if not raw_kinds:
        raise MalformedInput(_TOO_OLD)
    kinds: list[DependencyKind] = []
    for raw in raw_kinds:
        # The same kind repeats when it is declared for several targets.
        kind = DependencyKind.parse(raw.get("kind"))
        if kind not in kinds:
            kinds.append(kind)
    return kinds


def build_graph(document: dict, *, no_dev_dependencies: bool = False) -> DependencyGraph:
    """
    Build a DependencyGraph from a `cargo metadata --format-version 1` document.

    Adds one node per package and one edge per distinct dependency kind of
    every resolved dep. Development edges are skipped when
    no_dev_dependencies is set. When the document names a resolve root,
    nodes the root cannot reach are pruned.

    Raises MalformedInput if the document lacks resolve data, per-dep kinds,
    or refers to unknown packages.
    """
    resolve = document.get("resolve")
    if not isinstance(resolve, dict):
        raise MalformedInput("metadata document has no resolve section")

    graph = DependencyGraph()
    by_raw_id: dict[str, int] = {}
    for raw in document.get("packages") or []:
        package = parse_package(raw)
        by_raw_id[package.raw_id] = graph.add_package(package)

    def lookup(raw_id: str | None) -> int:
        try:
            return by_raw_id[raw_id]
        except KeyError:
            raise MalformedInput(f"resolve refers to unknown package `{raw_id}`") from None

    for node in resolve.get("nodes") or []:
        source = lookup(node.get("id"))
        deps = node.get("deps")
        if deps is None or len(deps) != len(node.get("dependencies") or []):
            raise MalformedInput(_TOO_OLD)
        for dep in deps:
            target = lookup(dep.get("pkg"))
            for kind in _dep_kinds(dep):
                if no_dev_dependencies and kind is DependencyKind.DEVELOPMENT:
                    continue
                graph.add_dependency(source, target, kind)

    root = resolve.get("root")
    if root is not None:
        graph.root = graph.node_at(lookup(root)).id
        removed = graph.prune_unreachable()
        logger.debug("pruned %d package(s) unreachable from %s", removed, graph.root)

    graph.annotate()
    logger.info(
        "built dependency graph: %d package(s), %d edge(s)",
        len(graph),
        graph.graph.number_of_edges(),
    )
    return graph
