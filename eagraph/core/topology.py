"""
Graph Topology
==============

Structural analysis of the architecture graph via networkx.

ALLOWED:
- Impact reach over dependency edges (who is affected if X changes)
- Cycle detection in capability decomposition
- Path finding (traceability)

This module never mutates the repository; it builds its own graph.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
import networkx as nx

from ..contracts.graph import Edge, Node
from ..contracts.metamodel import (
    DECOMPOSITION_EDGE_TYPES, DEPENDENCY_EDGE_TYPES, EdgeType, NodeType
)


# Edge kinds whose impact flows from source to target. All other
# dependency kinds flow from target back to source (the dependent side).
_FORWARD_IMPACT: FrozenSet[EdgeType] = frozenset({
    EdgeType.PROVIDES, EdgeType.SUPPORTS,
})


@dataclass(frozen=True)
class ImpactedNode:
    node_id: str
    node_type: NodeType
    depth: int
    path: Tuple[str, ...]


@dataclass(frozen=True)
class ImpactReport:
    """Nodes reachable from `root_id` along impact direction, nearest first."""
    root_id: str
    impacted: Tuple[ImpactedNode, ...] = field(default_factory=tuple)
    max_depth: Optional[int] = None

    @property
    def impacted_ids(self) -> Tuple[str, ...]:
        return tuple(n.node_id for n in self.impacted)

    def to_dict(self) -> Dict:
        return {
            "rootId": self.root_id,
            "maxDepth": self.max_depth,
            "impacted": [
                {
                    "id": n.node_id,
                    "type": n.node_type.value,
                    "depth": n.depth,
                    "path": list(n.path),
                }
                for n in self.impacted
            ],
        }


class GraphTopology:
    """
    Wraps a networkx MultiDiGraph built from node and edge records.
    """

    def __init__(self):
        self._graph = nx.MultiDiGraph()

    @classmethod
    def from_records(cls, nodes: Iterable[Node], edges: Iterable[Edge]) -> GraphTopology:
        topology = cls()
        topology.build(nodes, edges)
        return topology

    @classmethod
    def from_repository(cls, repository) -> GraphTopology:
        return cls.from_records(repository.iter_nodes(), repository.iter_edges())

    def build(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> None:
        """Replace internal graph state."""
        self._graph = nx.MultiDiGraph()
        for node in nodes:
            self._graph.add_node(node.id, node_type=node.type)
        for edge in edges:
            if edge.from_id in self._graph and edge.to_id in self._graph:
                self._graph.add_edge(edge.from_id, edge.to_id, key=edge.id, edge_type=edge.type)

    @property
    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def has_node(self, node_id: str) -> bool:
        return node_id in self._graph

    def _typed_digraph(self, edge_types: FrozenSet[EdgeType], impact_direction: bool) -> nx.DiGraph:
        graph = nx.DiGraph()
        graph.add_nodes_from(self._graph.nodes)
        for source, target, data in self._graph.edges(data=True):
            edge_type = data["edge_type"]
            if edge_type not in edge_types:
                continue
            if impact_direction and edge_type not in _FORWARD_IMPACT:
                graph.add_edge(target, source)
            else:
                graph.add_edge(source, target)
        return graph

    def impact_of(
        self,
        node_id: str,
        edge_types: FrozenSet[EdgeType] = DEPENDENCY_EDGE_TYPES,
        max_depth: Optional[int] = None
    ) -> Optional[ImpactReport]:
        """
        Downstream impact of changing `node_id`.

        Returns None when the node is unknown.
        """
        if node_id not in self._graph:
            return None
        graph = self._typed_digraph(frozenset(edge_types), impact_direction=True)
        paths = nx.single_source_shortest_path(graph, node_id, cutoff=max_depth)
        impacted = [
            ImpactedNode(
                node_id=target,
                node_type=self._graph.nodes[target]["node_type"],
                depth=len(path) - 1,
                path=tuple(path),
            )
            for target, path in paths.items()
            if target != node_id
        ]
        impacted.sort(key=lambda n: (n.depth, n.node_id))
        return ImpactReport(root_id=node_id, impacted=tuple(impacted), max_depth=max_depth)

    def decomposition_cycles(self) -> List[Tuple[str, ...]]:
        """
        Cycles among DECOMPOSES_TO / COMPOSED_OF edges.

        Each cycle is rotated to start at its smallest id; the list is sorted.
        """
        graph = self._typed_digraph(DECOMPOSITION_EDGE_TYPES, impact_direction=False)
        cycles = []
        for cycle in nx.simple_cycles(graph):
            start = cycle.index(min(cycle))
            cycles.append(tuple(cycle[start:] + cycle[:start]))
        return sorted(cycles)

    def shortest_path(self, start_id: str, end_id: str) -> Optional[List[str]]:
        """Shortest undirected trace between two nodes."""
        try:
            return nx.shortest_path(self._graph.to_undirected(as_view=True), source=start_id, target=end_id)
        except (nx.NetworkXNoPath, nx.NodeNotFound):
            return None

    def clear(self) -> None:
        self._graph.clear()
