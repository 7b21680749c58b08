"""
Snapshot Codec
==============

Versioned JSON interchange for a whole repository:

    {version, metadata, objects: [{id, type, attributes}],
     relationships: [{id, fromId, toId, type, attributes}], updatedAt}

Attributes (bookkeeping included) round-trip verbatim. Loading validates
metadata and referential integrity and never raises on bad input.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union
import json

from ..contracts.base import ErrorCode, Result, Timestamp
from ..contracts.graph import Edge, Node, Snapshot, copy_attributes
from ..contracts.metadata import RepositoryMetadata
from ..contracts.metamodel import EdgeType, NodeType
from ..governance.metadata import validate_metadata
from ..temporal.clock import LogicalClock
from . import GraphRepository, generate_edge_id


SNAPSHOT_VERSION = 1


class StrictSnapshotEncoder(json.JSONEncoder):
    """
    JSON encoder that prioritizes fidelity over flexibility.

    RULES:
    1. Dates MUST be ISO 8601 strings.
    2. Enums MUST use their .value.
    3. Decimals become floats.
    4. Sets -> sorted lists (deterministic output).
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Timestamp):
            return obj.to_iso()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (set, frozenset)):
            return sorted(list(obj))
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        return super().default(obj)


@dataclass(frozen=True)
class LoadedSnapshot:
    metadata: RepositoryMetadata
    repository: GraphRepository
    updated_at: Optional[Timestamp]
    version: int


def export_snapshot(
    repository: GraphRepository,
    metadata: RepositoryMetadata,
    updated_at: Optional[Timestamp] = None
) -> Dict[str, Any]:
    return {
        "version": SNAPSHOT_VERSION,
        "metadata": metadata.to_dict(),
        "objects": [n.to_dict() for n in repository.iter_nodes()],
        "relationships": [e.to_dict() for e in repository.iter_edges()],
        "updatedAt": (updated_at or Timestamp.now()).to_iso(),
    }


def dumps_snapshot(
    repository: GraphRepository,
    metadata: RepositoryMetadata,
    updated_at: Optional[Timestamp] = None,
    indent: Optional[int] = 2
) -> str:
    return json.dumps(
        export_snapshot(repository, metadata, updated_at),
        cls=StrictSnapshotEncoder,
        indent=indent,
        ensure_ascii=False,
    )


def _invalid(message: str, **context: str) -> Result:
    return Result.fail(ErrorCode.INVALID_SNAPSHOT, message, **context)


def _parse_nodes(raw: Any) -> Result:
    if not isinstance(raw, list):
        return _invalid("objects must be an array")
    nodes: List[Node] = []
    for index, item in enumerate(raw):
        if not isinstance(item, Mapping):
            return _invalid(f"objects[{index}] must be an object", row=str(index))
        node_id = item.get("id")
        if not isinstance(node_id, str) or not node_id.strip():
            return _invalid(f"objects[{index}] is missing an id", row=str(index))
        node_type = NodeType.parse(item.get("type"))
        if node_type is None:
            return Result.fail(
                ErrorCode.UNKNOWN_TYPE,
                f"objects[{index}] has unknown type {item.get('type')!r}",
                row=str(index), id=node_id,
            )
        attributes = item.get("attributes") or {}
        if not isinstance(attributes, Mapping):
            return _invalid(f"objects[{index}].attributes must be an object", row=str(index))
        nodes.append(Node(id=node_id.strip(), type=node_type, attributes=copy_attributes(attributes)))
    return Result.success(nodes)


def _parse_edges(raw: Any) -> Result:
    if not isinstance(raw, list):
        return _invalid("relationships must be an array")
    edges: List[Edge] = []
    for index, item in enumerate(raw):
        if not isinstance(item, Mapping):
            return _invalid(f"relationships[{index}] must be an object", row=str(index))
        edge_type = EdgeType.parse(item.get("type"))
        if edge_type is None:
            return Result.fail(
                ErrorCode.UNKNOWN_TYPE,
                f"relationships[{index}] has unknown type {item.get('type')!r}",
                row=str(index),
            )
        from_id, to_id = item.get("fromId"), item.get("toId")
        if not isinstance(from_id, str) or not isinstance(to_id, str):
            return _invalid(f"relationships[{index}] needs fromId and toId", row=str(index))
        edge_id = item.get("id")
        edge_id = edge_id.strip() if isinstance(edge_id, str) and edge_id.strip() else generate_edge_id()
        attributes = item.get("attributes") or {}
        if not isinstance(attributes, Mapping):
            return _invalid(f"relationships[{index}].attributes must be an object", row=str(index))
        edges.append(Edge(
            id=edge_id, type=edge_type, from_id=from_id, to_id=to_id,
            attributes=copy_attributes(attributes),
        ))
    return Result.success(edges)


def load_snapshot(
    data: Union[str, bytes, Mapping[str, Any]],
    clock: Optional[LogicalClock] = None
) -> Result:
    """
    Parse and validate a snapshot document.

    Returns Result with a LoadedSnapshot. Relationships written without an
    id (older exports) receive a generated one.
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as e:
            return _invalid(f"Snapshot is not valid JSON: {e}")
    if not isinstance(data, Mapping):
        return _invalid("Snapshot must be a JSON object")

    version = data.get("version")
    if type(version) is not int or version != SNAPSHOT_VERSION:
        return _invalid(f"Unsupported snapshot version: {version!r}", version=str(version))

    metadata = validate_metadata(data.get("metadata"), clock=clock)
    if metadata.is_failure:
        return metadata

    nodes = _parse_nodes(data.get("objects", []))
    if nodes.is_failure:
        return nodes
    edges = _parse_edges(data.get("relationships", []))
    if edges.is_failure:
        return edges

    repository = GraphRepository.from_snapshot(
        Snapshot(nodes=tuple(nodes.value), edges=tuple(edges.value)),
        clock=clock,
    )
    if repository.is_failure:
        return repository

    updated_at = None
    raw_updated = data.get("updatedAt")
    if isinstance(raw_updated, str) and raw_updated.strip():
        try:
            updated_at = Timestamp.from_iso(raw_updated)
        except ValueError:
            return _invalid(f"updatedAt is not an ISO-8601 timestamp: {raw_updated}")

    return Result.success(LoadedSnapshot(
        metadata=metadata.value,
        repository=repository.value,
        updated_at=updated_at,
        version=version,
    ))
