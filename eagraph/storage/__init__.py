"""
Graph Storage Layer

RESPONSIBILITY: The committed Node/Edge graph and its copy-on-write clones
ALLOWED INPUTS: Typed node/edge writes, snapshot restores
OUTPUTS: Result-wrapped ids, immutable Node/Edge/Snapshot records

WHAT THIS LAYER MUST NOT DO:
============================
- Evaluate cardinality or governance rules (commit-time only)
- Decide permissions
- Mutate a repository after it has been published to readers

BOUNDARY ENFORCEMENT:
=====================
- Every write returns a Result; nothing raises across the boundary
- Readers receive records with private attribute copies
- A published (frozen) repository rejects every write; changes are made
  on a clone which is then swapped in by the RepositoryHandle

INVARIANTS:
===========
1. No dangling edge: every edge resolves both endpoints
2. Edge endpoint types are permitted by the edge kind's schema
3. Ids are unique across nodes and edges
4. Deleting a node deletes its incident edges in the same call
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union
import logging
import uuid

from ..contracts.base import ErrorCode, Result, Timestamp
from ..contracts.graph import (
    CREATED_AT, CREATED_BY, LAST_MODIFIED_AT, LAST_MODIFIED_BY,
    Edge, Node, Snapshot, copy_attributes, strip_bookkeeping
)
from ..contracts.metamodel import (
    EdgeType, NodeType, edge_schema, node_schema
)
from ..temporal.clock import LogicalClock


logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"
EDGE_ID_PREFIX = "rel-"


class UpdateMode(Enum):
    """How an attribute patch combines with existing attributes."""
    MERGE = "merge"
    REPLACE = "replace"


def generate_node_id(node_type: NodeType) -> str:
    return f"{node_schema(node_type).id_prefix}{uuid.uuid4()}"


def generate_edge_id() -> str:
    return f"{EDGE_ID_PREFIX}{uuid.uuid4()}"


def check_attributes(attributes: Any) -> Result:
    """Attribute payloads are absent or a mapping; anything else is rejected."""
    if attributes is None or isinstance(attributes, Mapping):
        return Result.success()
    return Result.fail(
        ErrorCode.INVALID_ATTRIBUTES,
        f"Attributes must be an object, got {type(attributes).__name__}",
    )


def _export_node(node: Node) -> Node:
    return Node(id=node.id, type=node.type, attributes=copy_attributes(node.attributes))


def _export_edge(edge: Edge) -> Edge:
    return Edge(
        id=edge.id,
        type=edge.type,
        from_id=edge.from_id,
        to_id=edge.to_id,
        attributes=copy_attributes(edge.attributes),
    )


# =============================================================================
# GRAPH REPOSITORY
# =============================================================================

class GraphRepository:
    """
    Owns the committed Node/Edge graph.

    Collections keep insertion order so exports and findings are stable.
    `clone()` is the unit of transaction: writers mutate a private clone and
    the handle publishes it by reference swap.
    """

    def __init__(self, clock: Optional[LogicalClock] = None):
        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[str, Edge] = {}
        self._clock = clock or LogicalClock.live()
        self._frozen = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> GraphRepository:
        """Mark as published. Irreversible."""
        self._frozen = True
        return self

    def clone(self) -> GraphRepository:
        """
        Deep, reference-independent, writable copy.
        """
        copy = GraphRepository(clock=self._clock)
        copy._nodes = {nid: _export_node(n) for nid, n in self._nodes.items()}
        copy._edges = {eid: _export_edge(e) for eid, e in self._edges.items()}
        return copy

    @classmethod
    def from_snapshot(
        cls,
        snapshot: Snapshot,
        clock: Optional[LogicalClock] = None
    ) -> Result:
        """
        Rebuild a repository from a snapshot, keeping attributes verbatim
        (bookkeeping included).

        Fails on duplicate ids, dangling endpoints and endpoint-type
        violations.
        """
        repo = cls(clock=clock)
        for node in snapshot.nodes:
            if repo.contains(node.id):
                return Result.fail(ErrorCode.DUPLICATE_ID, f"Duplicate id: {node.id}", id=node.id)
            repo._nodes[node.id] = _export_node(node)
        for edge in snapshot.edges:
            if repo.contains(edge.id):
                return Result.fail(ErrorCode.DUPLICATE_ID, f"Duplicate id: {edge.id}", id=edge.id)
            check = repo._check_endpoints(edge.type, edge.from_id, edge.to_id)
            if check.is_failure:
                return Result.failure(check.error.with_context("id", edge.id))
            repo._edges[edge.id] = _export_edge(edge)
        return Result.success(repo)

    # -------------------------------------------------------------------------
    # Readers
    # -------------------------------------------------------------------------

    @property
    def objects(self) -> Tuple[Node, ...]:
        return tuple(_export_node(n) for n in self._nodes.values())

    @property
    def relationships(self) -> Tuple[Edge, ...]:
        return tuple(_export_edge(e) for e in self._edges.values())

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def get_node(self, node_id: str) -> Optional[Node]:
        node = self._nodes.get(node_id)
        return _export_node(node) if node else None

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        edge = self._edges.get(edge_id)
        return _export_edge(edge) if edge else None

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def has_edge(self, edge_id: str) -> bool:
        return edge_id in self._edges

    def contains(self, entity_id: str) -> bool:
        return entity_id in self._nodes or entity_id in self._edges

    def node_type(self, node_id: str) -> Optional[NodeType]:
        node = self._nodes.get(node_id)
        return node.type if node else None

    def nodes_by_type(self, node_type: NodeType) -> Tuple[Node, ...]:
        return tuple(_export_node(n) for n in self._nodes.values() if n.type == node_type)

    def edges_by_type(self, edge_type: EdgeType) -> Tuple[Edge, ...]:
        return tuple(_export_edge(e) for e in self._edges.values() if e.type == edge_type)

    def incident_edges(self, node_id: str) -> Tuple[Edge, ...]:
        return tuple(_export_edge(e) for e in self._edges.values() if e.touches(node_id))

    def outgoing_edges(self, node_id: str, edge_type: Optional[EdgeType] = None) -> Tuple[Edge, ...]:
        return tuple(
            _export_edge(e) for e in self._edges.values()
            if e.from_id == node_id and (edge_type is None or e.type == edge_type)
        )

    def incoming_edges(self, node_id: str, edge_type: Optional[EdgeType] = None) -> Tuple[Edge, ...]:
        return tuple(
            _export_edge(e) for e in self._edges.values()
            if e.to_id == node_id and (edge_type is None or e.type == edge_type)
        )

    def iter_nodes(self) -> Iterator[Node]:
        for node in self._nodes.values():
            yield _export_node(node)

    def iter_edges(self) -> Iterator[Edge]:
        for edge in self._edges.values():
            yield _export_edge(edge)

    def snapshot(self, revision: int = 0) -> Snapshot:
        return Snapshot(
            nodes=self.objects,
            edges=self.relationships,
            revision=revision,
            taken_at=Timestamp(value=self._clock.now()),
        )

    # -------------------------------------------------------------------------
    # Writers
    # -------------------------------------------------------------------------

    def add_node(
        self,
        node_type: Union[NodeType, str],
        attributes: Optional[Mapping[str, Any]] = None,
        node_id: Optional[str] = None,
        actor: Optional[str] = None
    ) -> Result:
        """
        Add a node. Returns Result with the node id.

        Fails: UNKNOWN_TYPE, DUPLICATE_ID, INVALID_STATE_TRANSITION (frozen).
        """
        guard = self._check_writable()
        if guard.is_failure:
            return guard

        resolved = NodeType.parse(node_type)
        if resolved is None:
            return Result.fail(ErrorCode.UNKNOWN_TYPE, f"Unknown node type: {node_type}", type=str(node_type))

        node_id = node_id.strip() if isinstance(node_id, str) else None
        node_id = node_id or generate_node_id(resolved)
        if self.contains(node_id):
            return Result.fail(ErrorCode.DUPLICATE_ID, f"Duplicate id: {node_id}", id=node_id)

        valid = check_attributes(attributes)
        if valid.is_failure:
            return valid

        attrs = strip_bookkeeping(attributes)
        self._stamp_created(attrs, actor)
        self._nodes[node_id] = Node(id=node_id, type=resolved, attributes=attrs)
        return Result.success(node_id)

    def add_edge(
        self,
        from_id: str,
        to_id: str,
        edge_type: Union[EdgeType, str],
        attributes: Optional[Mapping[str, Any]] = None,
        edge_id: Optional[str] = None,
        actor: Optional[str] = None
    ) -> Result:
        """
        Add an edge. Returns Result with the edge id.

        Fails: UNKNOWN_TYPE, DANGLING_ENDPOINT, INVALID_ENDPOINT_TYPES,
        DUPLICATE_ID, INVALID_STATE_TRANSITION (frozen).
        """
        guard = self._check_writable()
        if guard.is_failure:
            return guard

        resolved = EdgeType.parse(edge_type)
        if resolved is None:
            return Result.fail(ErrorCode.UNKNOWN_TYPE, f"Unknown relationship type: {edge_type}", type=str(edge_type))

        check = self._check_endpoints(resolved, from_id, to_id)
        if check.is_failure:
            return check

        edge_id = edge_id.strip() if isinstance(edge_id, str) else None
        edge_id = edge_id or generate_edge_id()
        if self.contains(edge_id):
            return Result.fail(ErrorCode.DUPLICATE_ID, f"Duplicate id: {edge_id}", id=edge_id)

        valid = check_attributes(attributes)
        if valid.is_failure:
            return valid

        attrs = strip_bookkeeping(attributes)
        self._stamp_created(attrs, actor)
        self._edges[edge_id] = Edge(
            id=edge_id, type=resolved, from_id=from_id, to_id=to_id, attributes=attrs
        )
        return Result.success(edge_id)

    def update_attributes(
        self,
        entity_id: str,
        patch: Optional[Mapping[str, Any]],
        mode: UpdateMode = UpdateMode.MERGE,
        actor: Optional[str] = None
    ) -> Result:
        """
        Patch a node's or edge's attributes.

        MERGE overlays the patch; REPLACE swaps the semantic attributes
        wholesale while keeping createdAt/createdBy. Bookkeeping keys in the
        patch are ignored. Fails: NOT_FOUND, INVALID_ATTRIBUTES.
        """
        guard = self._check_writable()
        if guard.is_failure:
            return guard

        valid = check_attributes(patch)
        if valid.is_failure:
            return valid

        if entity_id in self._nodes:
            node = self._nodes[entity_id]
            attrs = self._patched(node.attributes, patch, mode, actor)
            self._nodes[entity_id] = Node(id=node.id, type=node.type, attributes=attrs)
            return Result.success(entity_id)

        if entity_id in self._edges:
            edge = self._edges[entity_id]
            attrs = self._patched(edge.attributes, patch, mode, actor)
            self._edges[entity_id] = Edge(
                id=edge.id, type=edge.type, from_id=edge.from_id,
                to_id=edge.to_id, attributes=attrs,
            )
            return Result.success(entity_id)

        return Result.fail(ErrorCode.NOT_FOUND, f"No node or relationship with id {entity_id}", id=entity_id)

    def update_edge(
        self,
        edge_id: str,
        edge_type: Union[EdgeType, str],
        from_id: str,
        to_id: str,
        attributes: Optional[Mapping[str, Any]] = None,
        actor: Optional[str] = None
    ) -> Result:
        """
        Re-point and/or retype an edge, replacing its semantic attributes.

        Endpoints are re-validated exactly as in `add_edge`.
        """
        guard = self._check_writable()
        if guard.is_failure:
            return guard

        existing = self._edges.get(edge_id)
        if existing is None:
            return Result.fail(ErrorCode.NOT_FOUND, f"No relationship with id {edge_id}", id=edge_id)

        resolved = EdgeType.parse(edge_type)
        if resolved is None:
            return Result.fail(ErrorCode.UNKNOWN_TYPE, f"Unknown relationship type: {edge_type}", type=str(edge_type))

        check = self._check_endpoints(resolved, from_id, to_id)
        if check.is_failure:
            return check

        valid = check_attributes(attributes)
        if valid.is_failure:
            return valid

        attrs = self._patched(existing.attributes, attributes, UpdateMode.REPLACE, actor)
        self._edges[edge_id] = Edge(
            id=edge_id, type=resolved, from_id=from_id, to_id=to_id, attributes=attrs
        )
        return Result.success(edge_id)

    def delete_node(self, node_id: str) -> Result:
        """
        Delete a node and every incident edge.

        Returns Result with the tuple of removed edge ids.
        """
        guard = self._check_writable()
        if guard.is_failure:
            return guard

        if node_id not in self._nodes:
            return Result.fail(ErrorCode.NOT_FOUND, f"No node with id {node_id}", id=node_id)

        removed = tuple(eid for eid, e in self._edges.items() if e.touches(node_id))
        for eid in removed:
            del self._edges[eid]
        del self._nodes[node_id]
        return Result.success(removed)

    def delete_edge(self, edge_id: str) -> Result:
        guard = self._check_writable()
        if guard.is_failure:
            return guard

        if edge_id not in self._edges:
            return Result.fail(ErrorCode.NOT_FOUND, f"No relationship with id {edge_id}", id=edge_id)
        del self._edges[edge_id]
        return Result.success(edge_id)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _check_writable(self) -> Result:
        if self._frozen:
            return Result.fail(
                ErrorCode.INVALID_STATE_TRANSITION,
                "Published repositories are read-only; write to a clone",
            )
        return Result.success()

    def _check_endpoints(self, edge_type: EdgeType, from_id: str, to_id: str) -> Result:
        if not (isinstance(from_id, str) and isinstance(to_id, str)):
            return Result.fail(
                ErrorCode.INVALID_ATTRIBUTES,
                f"{edge_type.value} endpoints must be string ids",
                from_id=from_id,
                to_id=to_id,
            )
        source = self._nodes.get(from_id)
        target = self._nodes.get(to_id)
        missing: List[str] = [
            nid for nid, node in ((from_id, source), (to_id, target)) if node is None
        ]
        if missing:
            return Result.fail(
                ErrorCode.DANGLING_ENDPOINT,
                f"{edge_type.value} endpoint(s) not found: {', '.join(missing)}",
                from_id=from_id,
                to_id=to_id,
            )
        if not edge_schema(edge_type).allows(source.type, target.type):
            return Result.fail(
                ErrorCode.INVALID_ENDPOINT_TYPES,
                f"{edge_type.value} does not allow {source.type.value} -> {target.type.value}",
                from_type=source.type.value,
                to_type=target.type.value,
            )
        return Result.success()

    def _now_iso(self) -> str:
        return Timestamp(value=self._clock.now()).to_iso()

    def _stamp_created(self, attrs: Dict[str, Any], actor: Optional[str]) -> None:
        now = self._now_iso()
        who = actor or SYSTEM_ACTOR
        attrs[CREATED_AT] = now
        attrs[CREATED_BY] = who
        attrs[LAST_MODIFIED_AT] = now
        attrs[LAST_MODIFIED_BY] = who

    def _patched(
        self,
        existing: Mapping[str, Any],
        patch: Optional[Mapping[str, Any]],
        mode: UpdateMode,
        actor: Optional[str]
    ) -> Dict[str, Any]:
        clean = strip_bookkeeping(patch)
        if mode is UpdateMode.REPLACE:
            attrs = clean
            for key in (CREATED_AT, CREATED_BY):
                if key in existing:
                    attrs[key] = existing[key]
        else:
            attrs = copy_attributes(existing)
            attrs.update(clean)
        attrs[LAST_MODIFIED_AT] = self._now_iso()
        attrs[LAST_MODIFIED_BY] = actor or SYSTEM_ACTOR
        return attrs

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "writable"
        return f"GraphRepository({len(self._nodes)} nodes, {len(self._edges)} edges, {state})"
