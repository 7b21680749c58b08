"""
Diff Engine
===========

Classifies every Draft against its committed counterpart and builds the
proposed post-commit graph that validation runs over.

CLASSIFICATION:
- not in repository, not tombstoned -> ADD
- not in repository, tombstoned     -> NO-OP
- in repository, tombstoned         -> REMOVE
- in repository, changed            -> MODIFY
- in repository, unchanged          -> NO-OP (no bookkeeping bump)

Attributes are compared after stripping bookkeeping fields and
canonicalizing both sides, so key order never produces a spurious MODIFY.
Edges additionally compare type and both endpoints.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterator, List, Mapping, Optional, Set, Tuple
import json

from ..contracts.governance import Permission
from ..contracts.graph import Edge, Node, copy_attributes, strip_bookkeeping
from ..contracts.metamodel import EdgeType, NodeType
from ..contracts.workspace import ChangeKind, EntityKind
from ..storage import GraphRepository
from .workspace import Draft, Workspace


def canonical_form(attributes: Optional[Mapping[str, Any]]) -> str:
    """Recursive, key-sorted string form of the semantic attributes."""
    return json.dumps(
        strip_bookkeeping(attributes),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


# =============================================================================
# CHANGE SET
# =============================================================================

@dataclass(frozen=True)
class Change:
    """One classified draft, frozen at diff time."""
    entity_id: str
    kind: EntityKind
    change: ChangeKind
    type_name: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    from_id: Optional[str] = None
    to_id: Optional[str] = None
    previous_type: Optional[str] = None
    previous_from_id: Optional[str] = None
    previous_to_id: Optional[str] = None

    @property
    def node_type(self) -> Optional[NodeType]:
        return NodeType.parse(self.type_name) if self.kind is EntityKind.NODE else None

    @property
    def edge_type(self) -> Optional[EdgeType]:
        return EdgeType.parse(self.type_name) if self.kind is EntityKind.EDGE else None

    @property
    def action(self) -> str:
        """Audit action name, e.g. `node.add`."""
        return f"{self.kind.value}.{self.change.value.lower()}"


_PERMISSIONS = {
    (EntityKind.NODE, ChangeKind.ADD): Permission.CREATE_ELEMENT,
    (EntityKind.NODE, ChangeKind.MODIFY): Permission.EDIT_ELEMENT,
    (EntityKind.NODE, ChangeKind.REMOVE): Permission.DELETE_ELEMENT,
    (EntityKind.EDGE, ChangeKind.ADD): Permission.CREATE_RELATIONSHIP,
    (EntityKind.EDGE, ChangeKind.MODIFY): Permission.EDIT_RELATIONSHIP,
    (EntityKind.EDGE, ChangeKind.REMOVE): Permission.DELETE_RELATIONSHIP,
}


@dataclass(frozen=True)
class ChangeSet:
    """
    Non-NO-OP changes in staging order plus the ids classified NO-OP.
    """
    changes: Tuple[Change, ...] = field(default_factory=tuple)
    noop_ids: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.changes

    def __len__(self) -> int:
        return len(self.changes)

    def __iter__(self) -> Iterator[Change]:
        return iter(self.changes)

    def of(self, kind: EntityKind, *changes: ChangeKind) -> Tuple[Change, ...]:
        return tuple(
            c for c in self.changes
            if c.kind is kind and (not changes or c.change in changes)
        )

    @property
    def removed_node_ids(self) -> FrozenSet[str]:
        return frozenset(c.entity_id for c in self.of(EntityKind.NODE, ChangeKind.REMOVE))

    def required_permissions(self) -> Tuple[Permission, ...]:
        """Permissions implied by the changes, in first-seen order."""
        seen = []
        for c in self.changes:
            permission = _PERMISSIONS[(c.kind, c.change)]
            if permission not in seen:
                seen.append(permission)
        return tuple(seen)

    def counts(self) -> Dict[str, int]:
        counts = {k.value: 0 for k in ChangeKind if k is not ChangeKind.NOOP}
        for c in self.changes:
            counts[c.change.value] += 1
        counts[ChangeKind.NOOP.value] = len(self.noop_ids)
        return counts


def _node_changed(draft: Draft, committed: Node) -> bool:
    if draft.type_name != committed.type.value:
        return True
    return canonical_form(draft.attributes) != canonical_form(committed.attributes)


def _edge_changed(draft: Draft, committed: Edge) -> bool:
    if draft.type_name != committed.type.value:
        return True
    if draft.from_id != committed.from_id or draft.to_id != committed.to_id:
        return True
    return canonical_form(draft.attributes) != canonical_form(committed.attributes)


def classify(draft: Draft, repository: GraphRepository) -> Change:
    """Classify one draft against the committed repository."""
    committed = (
        repository.get_node(draft.id) if draft.is_node else repository.get_edge(draft.id)
    )

    if committed is None:
        kind = ChangeKind.NOOP if draft.marked_for_removal else ChangeKind.ADD
        previous_type = None
    elif draft.marked_for_removal:
        kind = ChangeKind.REMOVE
        previous_type = committed.type.value
    else:
        changed = (
            _node_changed(draft, committed) if draft.is_node
            else _edge_changed(draft, committed)
        )
        kind = ChangeKind.MODIFY if changed else ChangeKind.NOOP
        previous_type = committed.type.value

    return Change(
        entity_id=draft.id,
        kind=draft.kind,
        change=kind,
        type_name=draft.type_name,
        attributes=strip_bookkeeping(draft.attributes),
        from_id=draft.from_id,
        to_id=draft.to_id,
        previous_type=previous_type,
        previous_from_id=getattr(committed, "from_id", None),
        previous_to_id=getattr(committed, "to_id", None),
    )


def diff_workspace(workspace: Workspace, repository: GraphRepository) -> ChangeSet:
    changes = []
    noops = []
    for draft in workspace.drafts:
        change = classify(draft, repository)
        if change.change is ChangeKind.NOOP:
            noops.append(change.entity_id)
        else:
            changes.append(change)
    return ChangeSet(changes=tuple(changes), noop_ids=tuple(noops))


# =============================================================================
# PROPOSED GRAPH
# =============================================================================

@dataclass(frozen=True)
class ProposedGraph:
    """
    Committed entities merged with a change set.

    Removed nodes take their incident edges with them; staged edges that
    touch a removed node are dropped (they are skipped at apply time).
    Staged entities whose type does not resolve are left out; the
    mandatory-field pass reports them. Edges whose endpoints do not resolve
    are kept so that no finding is masked.
    """
    nodes: Dict[str, Node]
    edges: Dict[str, Edge]
    removed_node_ids: FrozenSet[str] = frozenset()
    dropped_edge_ids: FrozenSet[str] = frozenset()
    orphaned_node_ids: Tuple[str, ...] = ()

    def has_node(self, node_id: Optional[str]) -> bool:
        return node_id in self.nodes

    def node_type(self, node_id: Optional[str]) -> Optional[NodeType]:
        node = self.nodes.get(node_id)
        return node.type if node else None

    def incoming(self, node_id: str, edge_type: Optional[EdgeType] = None) -> Tuple[Edge, ...]:
        return tuple(
            e for e in self.edges.values()
            if e.to_id == node_id and (edge_type is None or e.type == edge_type)
        )

    def outgoing(self, node_id: str, edge_type: Optional[EdgeType] = None) -> Tuple[Edge, ...]:
        return tuple(
            e for e in self.edges.values()
            if e.from_id == node_id and (edge_type is None or e.type == edge_type)
        )


def build_proposed_graph(repository: GraphRepository, change_set: ChangeSet) -> ProposedGraph:
    nodes: Dict[str, Node] = {n.id: n for n in repository.iter_nodes()}
    edges: Dict[str, Edge] = {e.id: e for e in repository.iter_edges()}
    removed = change_set.removed_node_ids
    dropped: Set[str] = set()
    orphaned: List[str] = []

    for node_id in removed:
        nodes.pop(node_id, None)
    for edge_id, edge in list(edges.items()):
        if edge.from_id in removed or edge.to_id in removed:
            dropped.add(edge_id)
            del edges[edge_id]
            for endpoint in (edge.from_id, edge.to_id):
                if endpoint not in removed and endpoint not in orphaned:
                    orphaned.append(endpoint)

    for change in change_set.of(EntityKind.NODE, ChangeKind.ADD, ChangeKind.MODIFY):
        node_type = change.node_type
        if node_type is None:
            continue
        nodes[change.entity_id] = Node(
            id=change.entity_id, type=node_type, attributes=copy_attributes(change.attributes)
        )

    for change in change_set.of(EntityKind.EDGE):
        if change.change is ChangeKind.REMOVE:
            edges.pop(change.entity_id, None)
            continue
        if change.from_id in removed or change.to_id in removed:
            dropped.add(change.entity_id)
            edges.pop(change.entity_id, None)
            continue
        edge_type = change.edge_type
        if edge_type is None:
            continue
        dropped.discard(change.entity_id)
        edges[change.entity_id] = Edge(
            id=change.entity_id,
            type=edge_type,
            from_id=change.from_id,
            to_id=change.to_id,
            attributes=copy_attributes(change.attributes),
        )

    return ProposedGraph(
        nodes=nodes,
        edges=edges,
        removed_node_ids=removed,
        dropped_edge_ids=frozenset(dropped),
        orphaned_node_ids=tuple(orphaned),
    )
