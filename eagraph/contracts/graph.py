"""
Graph Contracts

Node, Edge and Snapshot records exchanged between the repository and every
other layer.

INVARIANTS:
- Node/Edge records are frozen; their attribute maps are private copies
- Bookkeeping fields are engine-managed, never caller-set
- A Snapshot is a complete, immutable copy of one repository state
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple
import copy

from .base import Timestamp
from .metamodel import EdgeType, NodeType


CREATED_AT = "createdAt"
CREATED_BY = "createdBy"
LAST_MODIFIED_AT = "lastModifiedAt"
LAST_MODIFIED_BY = "lastModifiedBy"

BOOKKEEPING_FIELDS: FrozenSet[str] = frozenset({
    CREATED_AT, CREATED_BY, LAST_MODIFIED_AT, LAST_MODIFIED_BY,
})


def copy_attributes(attributes: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Deep, reference-independent copy of an attribute map."""
    if not attributes:
        return {}
    return copy.deepcopy(dict(attributes))


def strip_bookkeeping(attributes: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Copy of `attributes` without engine-managed fields."""
    return {
        k: copy.deepcopy(v)
        for k, v in (attributes or {}).items()
        if k not in BOOKKEEPING_FIELDS
    }


def display_name(node: Optional["Node"]) -> str:
    """Trimmed `name` attribute, falling back to the id."""
    if node is None:
        return ""
    raw = node.attributes.get("name")
    name = raw.strip() if isinstance(raw, str) else ""
    return name or node.id


@dataclass(frozen=True)
class Node:
    """Typed vertex in the architecture graph."""
    id: str
    type: NodeType
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return display_name(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "attributes": copy_attributes(self.attributes),
        }


@dataclass(frozen=True)
class Edge:
    """Typed directed connection between two nodes."""
    id: str
    type: EdgeType
    from_id: str
    to_id: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    def touches(self, node_id: str) -> bool:
        return self.from_id == node_id or self.to_id == node_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fromId": self.from_id,
            "toId": self.to_id,
            "type": self.type.value,
            "attributes": copy_attributes(self.attributes),
        }


@dataclass(frozen=True)
class Snapshot:
    """
    Immutable full copy of the node and edge collections.

    Used for undo/redo, baselines and diff baselines.
    """
    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...]
    revision: int = 0
    taken_at: Timestamp = field(default_factory=Timestamp.now)

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def node_ids(self) -> FrozenSet[str]:
        return frozenset(n.id for n in self.nodes)

    def edge_ids(self) -> FrozenSet[str]:
        return frozenset(e.id for e in self.edges)
