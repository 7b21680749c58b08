"""
Validation Rule Tables

Cardinality rules are data: each row names a subject node type, an edge
kind, the permitted peer types and the bounds on the count of matching
incoming edges. Rows marked `traceability` only run once a staged element
is review-ready.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from ..contracts.metamodel import EdgeType, NodeType


N = NodeType
E = EdgeType


@dataclass(frozen=True)
class CardinalityRule:
    check_id: str
    subject_type: NodeType
    edge_type: EdgeType
    peer_types: FrozenSet[NodeType]
    minimum: int = 1
    maximum: Optional[int] = 1
    traceability: bool = False

    def accepts(self, count: int) -> bool:
        if count < self.minimum:
            return False
        return self.maximum is None or count <= self.maximum

    def describe_bound(self) -> str:
        if self.maximum == self.minimum:
            return f"exactly {self.minimum}"
        if self.maximum is None:
            return f"at least {self.minimum}"
        return f"between {self.minimum} and {self.maximum}"


CARDINALITY_RULES: Tuple[CardinalityRule, ...] = (
    CardinalityRule("capability-owner", N.CAPABILITY, E.OWNS, frozenset({N.ENTERPRISE})),
    CardinalityRule("application-owner", N.APPLICATION, E.OWNS, frozenset({N.ENTERPRISE})),
    CardinalityRule("programme-owner", N.PROGRAMME, E.OWNS, frozenset({N.ENTERPRISE})),
    CardinalityRule("department-enterprise", N.DEPARTMENT, E.HAS, frozenset({N.ENTERPRISE})),
    CardinalityRule("application-service-provider", N.APPLICATION_SERVICE, E.PROVIDES,
                    frozenset({N.APPLICATION})),
    CardinalityRule("business-service-realization", N.BUSINESS_SERVICE, E.REALIZED_BY,
                    frozenset({N.CAPABILITY, N.SUB_CAPABILITY}),
                    minimum=1, maximum=None, traceability=True),
)

# Capability -> REALIZED_BY -> BusinessService -> SUPPORTED_BY -> ApplicationService
CAPABILITY_SUPPORT_CHECK = "capability-application-support"
CAPABILITY_SUPPORT_PATH: Tuple[Tuple[EdgeType, NodeType], ...] = (
    (E.REALIZED_BY, N.BUSINESS_SERVICE),
    (E.SUPPORTED_BY, N.APPLICATION_SERVICE),
)

DECOMPOSITION_CYCLE_CHECK = "decomposition-cycle"
REQUIRED_ATTRIBUTE_CHECK = "required-attribute"
LIFECYCLE_TAG_CHECK = "lifecycle-tag"
UNKNOWN_TYPE_CHECK = "known-type"
IMMUTABLE_TYPE_CHECK = "immutable-type"
DANGLING_ENDPOINT_CHECK = "endpoint-exists"
ENDPOINT_TYPES_CHECK = "endpoint-types"

LIFECYCLE_STATES: FrozenSet[str] = frozenset({"As-Is", "To-Be"})


def rules_for(node_type: NodeType) -> Tuple[CardinalityRule, ...]:
    return tuple(r for r in CARDINALITY_RULES if r.subject_type == node_type)
