"""
Meta-Model Contracts

Closed enumerations of node and edge kinds plus the per-kind schema tables
(required attributes, permitted endpoint pairs).

INVARIANT: Every type decision is a table lookup.
No layer branches on a type name to decide what is valid.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union


class Layer(Enum):
    """Architecture layer a node type belongs to."""
    STRATEGY = "Strategy"
    BUSINESS = "Business"
    APPLICATION = "Application"
    TECHNOLOGY = "Technology"


class NodeType(Enum):
    """Closed enumeration of repository object kinds."""
    ENTERPRISE = "Enterprise"
    CAPABILITY_CATEGORY = "CapabilityCategory"
    CAPABILITY = "Capability"
    SUB_CAPABILITY = "SubCapability"
    VALUE_STREAM = "ValueStream"
    BUSINESS_SERVICE = "BusinessService"
    BUSINESS_PROCESS = "BusinessProcess"
    DEPARTMENT = "Department"
    APPLICATION = "Application"
    APPLICATION_SERVICE = "ApplicationService"
    TECHNOLOGY = "Technology"
    PROGRAMME = "Programme"
    PROJECT = "Project"
    PRINCIPLE = "Principle"
    REQUIREMENT = "Requirement"

    @staticmethod
    def parse(value: Union[str, "NodeType", None]) -> Optional["NodeType"]:
        """Resolve a wire value to a member, or None when unknown."""
        if isinstance(value, NodeType):
            return value
        if not isinstance(value, str):
            return None
        try:
            return NodeType(value.strip())
        except ValueError:
            return None


class EdgeType(Enum):
    """Closed enumeration of repository relationship kinds."""
    DECOMPOSES_TO = "DECOMPOSES_TO"
    COMPOSED_OF = "COMPOSED_OF"
    REALIZES = "REALIZES"
    OWNS = "OWNS"
    HAS = "HAS"
    REALIZED_BY = "REALIZED_BY"
    PROVIDES = "PROVIDES"
    SUPPORTS = "SUPPORTS"
    CONSUMES = "CONSUMES"
    SUPPORTED_BY = "SUPPORTED_BY"
    INTEGRATES_WITH = "INTEGRATES_WITH"
    DEPENDS_ON = "DEPENDS_ON"
    HOSTED_ON = "HOSTED_ON"
    IMPACTS = "IMPACTS"
    IMPLEMENTS = "IMPLEMENTS"
    DELIVERS = "DELIVERS"

    @staticmethod
    def parse(value: Union[str, "EdgeType", None]) -> Optional["EdgeType"]:
        """Resolve a wire value to a member, or None when unknown."""
        if isinstance(value, EdgeType):
            return value
        if not isinstance(value, str):
            return None
        try:
            return EdgeType(value.strip())
        except ValueError:
            return None


# =============================================================================
# SCHEMA RECORDS
# =============================================================================

@dataclass(frozen=True)
class NodeSchema:
    """Per-kind node schema."""
    node_type: NodeType
    layer: Layer
    description: str
    id_prefix: str
    required_attributes: Tuple[str, ...] = ("name",)


@dataclass(frozen=True)
class EdgeSchema:
    """
    Per-kind edge schema.

    When `pairs` is non-empty it is authoritative; otherwise the
    `from_types` x `to_types` product is the fallback.
    """
    edge_type: EdgeType
    layer: Layer
    description: str
    from_types: FrozenSet[NodeType]
    to_types: FrozenSet[NodeType]
    pairs: Tuple[Tuple[NodeType, NodeType], ...] = field(default_factory=tuple)

    def allows(self, from_type: NodeType, to_type: NodeType) -> bool:
        if self.pairs:
            return (from_type, to_type) in self.pairs
        return from_type in self.from_types and to_type in self.to_types


def _node(node_type: NodeType, layer: Layer, description: str, id_prefix: str) -> NodeSchema:
    return NodeSchema(
        node_type=node_type,
        layer=layer,
        description=description,
        id_prefix=id_prefix,
    )


def _edge(
    edge_type: EdgeType,
    layer: Layer,
    description: str,
    from_types: Tuple[NodeType, ...],
    to_types: Tuple[NodeType, ...],
    pairs: Tuple[Tuple[NodeType, NodeType], ...] = ()
) -> EdgeSchema:
    return EdgeSchema(
        edge_type=edge_type,
        layer=layer,
        description=description,
        from_types=frozenset(from_types),
        to_types=frozenset(to_types),
        pairs=pairs,
    )


N = NodeType
E = EdgeType

NODE_SCHEMAS: Dict[NodeType, NodeSchema] = {
    s.node_type: s for s in (
        _node(N.ENTERPRISE, Layer.BUSINESS,
              "A legal entity, enterprise or business unit.", "ent-"),
        _node(N.CAPABILITY_CATEGORY, Layer.BUSINESS,
              "A top-level grouping of business capabilities.", "capcat-"),
        _node(N.CAPABILITY, Layer.BUSINESS,
              "A business capability (what the business does).", "cap-"),
        _node(N.SUB_CAPABILITY, Layer.BUSINESS,
              "A decomposed, more granular business capability.", "subcap-"),
        _node(N.VALUE_STREAM, Layer.BUSINESS,
              "End-to-end value delivery stream across capabilities.", "vs-"),
        _node(N.BUSINESS_SERVICE, Layer.BUSINESS,
              "A business service realized by capabilities.", "bs-"),
        _node(N.BUSINESS_PROCESS, Layer.BUSINESS,
              "A business process (how work is performed).", "bp-"),
        _node(N.DEPARTMENT, Layer.BUSINESS,
              "An organizational unit owned by an enterprise.", "dept-"),
        _node(N.APPLICATION, Layer.APPLICATION,
              "A software application or service.", "app-"),
        _node(N.APPLICATION_SERVICE, Layer.APPLICATION,
              "An application-exposed service.", "as-"),
        _node(N.TECHNOLOGY, Layer.TECHNOLOGY,
              "A technology platform or component.", "tech-"),
        _node(N.PROGRAMME, Layer.STRATEGY,
              "A strategic initiative grouping change outcomes.", "prog-"),
        _node(N.PROJECT, Layer.STRATEGY,
              "A time-bound delivery effort.", "proj-"),
        _node(N.PRINCIPLE, Layer.STRATEGY,
              "A guiding principle for architecture decisions.", "prin-"),
        _node(N.REQUIREMENT, Layer.STRATEGY,
              "A requirement constraining architecture work.", "req-"),
    )
}

_CAPABILITY_FAMILY = (N.CAPABILITY_CATEGORY, N.CAPABILITY, N.SUB_CAPABILITY)

EDGE_SCHEMAS: Dict[EdgeType, EdgeSchema] = {
    s.edge_type: s for s in (
        _edge(E.DECOMPOSES_TO, Layer.BUSINESS,
              "Capability decomposition.",
              (N.CAPABILITY,), (N.CAPABILITY,)),
        _edge(E.COMPOSED_OF, Layer.BUSINESS,
              "Explicit capability hierarchy.",
              _CAPABILITY_FAMILY, _CAPABILITY_FAMILY,
              pairs=(
                  (N.CAPABILITY_CATEGORY, N.CAPABILITY),
                  (N.CAPABILITY, N.SUB_CAPABILITY),
                  (N.CAPABILITY, N.CAPABILITY),
              )),
        _edge(E.REALIZES, Layer.BUSINESS,
              "A business process is realized by an application.",
              (N.BUSINESS_PROCESS,), (N.APPLICATION,)),
        _edge(E.OWNS, Layer.BUSINESS,
              "Enterprise ownership for accountability.",
              (N.ENTERPRISE,),
              (N.ENTERPRISE, N.CAPABILITY, N.APPLICATION, N.PROGRAMME)),
        _edge(E.HAS, Layer.BUSINESS,
              "Enterprise has a department.",
              (N.ENTERPRISE,), (N.DEPARTMENT,)),
        _edge(E.REALIZED_BY, Layer.BUSINESS,
              "Capability is realized by a business service.",
              (N.CAPABILITY, N.SUB_CAPABILITY), (N.BUSINESS_SERVICE,)),
        _edge(E.PROVIDES, Layer.APPLICATION,
              "Application provides an application service.",
              (N.APPLICATION,), (N.APPLICATION_SERVICE,)),
        _edge(E.SUPPORTS, Layer.APPLICATION,
              "Application service supports a business service.",
              (N.APPLICATION_SERVICE,), (N.BUSINESS_SERVICE,)),
        _edge(E.CONSUMES, Layer.APPLICATION,
              "Service-to-service dependency.",
              (N.APPLICATION_SERVICE,), (N.APPLICATION_SERVICE,)),
        _edge(E.SUPPORTED_BY, Layer.BUSINESS,
              "Cross-layer support alignment.",
              (N.CAPABILITY, N.SUB_CAPABILITY, N.BUSINESS_SERVICE),
              (N.APPLICATION, N.APPLICATION_SERVICE),
              pairs=(
                  (N.CAPABILITY, N.APPLICATION),
                  (N.SUB_CAPABILITY, N.APPLICATION),
                  (N.BUSINESS_SERVICE, N.APPLICATION_SERVICE),
              )),
        _edge(E.INTEGRATES_WITH, Layer.APPLICATION,
              "Application integrates with another application.",
              (N.APPLICATION,), (N.APPLICATION,)),
        _edge(E.DEPENDS_ON, Layer.APPLICATION,
              "Legacy service dependency.",
              (N.APPLICATION_SERVICE,), (N.APPLICATION_SERVICE,)),
        _edge(E.HOSTED_ON, Layer.TECHNOLOGY,
              "Application hosted on technology.",
              (N.APPLICATION,), (N.TECHNOLOGY,)),
        _edge(E.IMPACTS, Layer.STRATEGY,
              "Programme impacts a capability.",
              (N.PROGRAMME,), (N.CAPABILITY, N.SUB_CAPABILITY)),
        _edge(E.IMPLEMENTS, Layer.STRATEGY,
              "Project implements an application.",
              (N.PROJECT,), (N.APPLICATION,)),
        _edge(E.DELIVERS, Layer.STRATEGY,
              "Programme delivers an outcome.",
              (N.PROGRAMME,), _CAPABILITY_FAMILY + (N.APPLICATION,)),
    )
}

# Edge kinds followed by downstream impact analysis.
DEPENDENCY_EDGE_TYPES: FrozenSet[EdgeType] = frozenset({
    E.INTEGRATES_WITH, E.DEPENDS_ON, E.CONSUMES, E.HOSTED_ON,
    E.PROVIDES, E.SUPPORTS, E.SUPPORTED_BY, E.REALIZED_BY,
})

# Edge kinds forming capability hierarchies (must stay acyclic).
DECOMPOSITION_EDGE_TYPES: FrozenSet[EdgeType] = frozenset({
    E.DECOMPOSES_TO, E.COMPOSED_OF,
})


def node_schema(node_type: NodeType) -> NodeSchema:
    return NODE_SCHEMAS[node_type]


def edge_schema(edge_type: EdgeType) -> EdgeSchema:
    return EDGE_SCHEMAS[edge_type]
