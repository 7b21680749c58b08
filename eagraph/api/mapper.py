"""
API Mapper
==========

Transforms repository records into the DTOs served by the read API.
Attributes are returned verbatim, bookkeeping fields included.
"""
from typing import Any, Dict, List

from ..contracts.events import AuditEvent
from ..contracts.graph import Edge, Node
from ..contracts.metadata import RepositoryMetadata
from ..core.topology import ImpactReport


def map_node(node: Node) -> Dict[str, Any]:
    return node.to_dict()


def map_edge(edge: Edge) -> Dict[str, Any]:
    return edge.to_dict()


def map_audit(events: List[AuditEvent]) -> List[Dict[str, Any]]:
    return [e.to_dict() for e in events]


def map_repository_summary(
    metadata: RepositoryMetadata,
    revision: int,
    node_count: int,
    edge_count: int
) -> Dict[str, Any]:
    return {
        "repositoryName": metadata.repository_name,
        "organizationName": metadata.organization_name,
        "governanceMode": metadata.governance_mode.value,
        "revision": revision,
        "objects": node_count,
        "relationships": edge_count,
    }


def map_impact(report: ImpactReport) -> Dict[str, Any]:
    return report.to_dict()
