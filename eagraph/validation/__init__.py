"""
Validation Layer

RESPONSIBILITY: Evaluate a proposed post-commit graph
ALLOWED INPUTS: ChangeSet, ProposedGraph, resolved strictness
OUTPUTS: ValidationReport (ordered, severity-tagged Findings)

WHAT THIS LAYER MUST NOT DO:
============================
- Raise on a rule violation (violations are Findings)
- Touch the live repository
- Decide permissions

PASSES:
=======
1. Mandatory fields: known types, required attributes, lifecycle tags,
   resolvable and permitted edge endpoints
2. Structural cardinality, scoped to nodes the change set affects, plus
   decomposition-cycle warnings

SEVERITY RESOLUTION:
====================
- ITERATIVE workspace: BLOCKER and ERROR become WARNING
- Advisory strictness: ERROR becomes WARNING (BLOCKER stays)
- A finding blocks iff its resolved severity is BLOCKER or ERROR
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple
import logging

from ..contracts.base import ErrorCode
from ..contracts.findings import Finding, Severity, ValidationReport, ValidationStrictness
from ..contracts.graph import display_name
from ..contracts.metadata import LifecycleCoverage
from ..contracts.metamodel import NodeType, edge_schema, node_schema
from ..contracts.workspace import ChangeKind, EntityKind, WorkspaceMode
from ..core.diff import Change, ChangeSet, ProposedGraph
from ..core.topology import GraphTopology
from . import rules


logger = logging.getLogger(__name__)


@dataclass
class ValidationConfig:
    """
    Validation settings.

    `require_lifecycle_tag` None means "follow the repository's lifecycle
    coverage" (required when coverage is Both).
    """
    require_lifecycle_tag: Optional[bool] = None
    lifecycle_attribute: str = "lifecycleState"
    traceability_gating: bool = True
    detect_decomposition_cycles: bool = True


@dataclass(frozen=True)
class ValidationContext:
    strictness: ValidationStrictness = ValidationStrictness.ADVISORY
    workspace_mode: WorkspaceMode = WorkspaceMode.STANDARD
    lifecycle_coverage: LifecycleCoverage = LifecycleCoverage.AS_IS
    review_ready: bool = False


def resolve_severity(
    severity: Severity,
    strictness: ValidationStrictness,
    workspace_mode: WorkspaceMode
) -> Severity:
    if workspace_mode is WorkspaceMode.ITERATIVE and severity.is_blocking:
        return Severity.WARNING
    if strictness is ValidationStrictness.ADVISORY and severity is Severity.ERROR:
        return Severity.WARNING
    return severity


def _blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


class ValidationPipeline:
    """
    Runs both passes and returns the findings in order: mandatory pass
    first, then cardinality; subjects in staging order within each rule.
    """

    def __init__(self, config: Optional[ValidationConfig] = None):
        self._config = config or ValidationConfig()

    @property
    def config(self) -> ValidationConfig:
        return self._config

    def validate(
        self,
        change_set: ChangeSet,
        proposed: ProposedGraph,
        context: Optional[ValidationContext] = None
    ) -> ValidationReport:
        context = context or ValidationContext()
        raw: List[Finding] = []
        raw.extend(self._mandatory_pass(change_set, proposed, context))
        raw.extend(self._cardinality_pass(change_set, proposed, context))

        findings = tuple(
            f.with_severity(resolve_severity(f.severity, context.strictness, context.workspace_mode))
            for f in raw
        )
        report = ValidationReport(findings=findings)
        logger.debug(f"Validation: {report.summary()}")
        return report

    # -------------------------------------------------------------------------
    # Pass 1: mandatory fields
    # -------------------------------------------------------------------------

    def _lifecycle_required(self, context: ValidationContext) -> bool:
        if self._config.require_lifecycle_tag is not None:
            return self._config.require_lifecycle_tag
        return context.lifecycle_coverage is LifecycleCoverage.BOTH

    def _mandatory_pass(
        self,
        change_set: ChangeSet,
        proposed: ProposedGraph,
        context: ValidationContext
    ) -> List[Finding]:
        findings: List[Finding] = []
        lifecycle = self._lifecycle_required(context)

        for change in change_set:
            if change.change is ChangeKind.REMOVE:
                continue
            if change.kind is EntityKind.NODE:
                findings.extend(self._check_node(change, lifecycle))
            else:
                findings.extend(self._check_edge(change, proposed))
        return findings

    def _check_node(self, change: Change, lifecycle: bool) -> List[Finding]:
        node_type = change.node_type
        if node_type is None:
            return [Finding(
                severity=Severity.BLOCKER,
                subject_id=change.entity_id,
                check_id=rules.UNKNOWN_TYPE_CHECK,
                message=f"Unknown element type: {change.type_name!r}",
                code=ErrorCode.UNKNOWN_TYPE,
            )]

        findings: List[Finding] = []
        if change.previous_type and change.previous_type != change.type_name:
            findings.append(Finding(
                severity=Severity.BLOCKER,
                subject_id=change.entity_id,
                check_id=rules.IMMUTABLE_TYPE_CHECK,
                message=f"Element type cannot change ({change.previous_type} -> {change.type_name})",
                code=ErrorCode.INVALID_STATE_TRANSITION,
            ))

        for attribute in node_schema(node_type).required_attributes:
            if _blank(change.attributes.get(attribute)):
                findings.append(Finding(
                    severity=Severity.ERROR,
                    subject_id=change.entity_id,
                    check_id=rules.REQUIRED_ATTRIBUTE_CHECK,
                    message=f"{node_type.value} {change.entity_id} is missing required attribute '{attribute}'",
                    code=ErrorCode.MISSING_REQUIRED_ATTRIBUTE,
                ))

        if lifecycle:
            tag = change.attributes.get(self._config.lifecycle_attribute)
            if tag not in rules.LIFECYCLE_STATES:
                findings.append(Finding(
                    severity=Severity.ERROR,
                    subject_id=change.entity_id,
                    check_id=rules.LIFECYCLE_TAG_CHECK,
                    message=(
                        f"{node_type.value} {change.entity_id} needs "
                        f"'{self._config.lifecycle_attribute}' set to As-Is or To-Be"
                    ),
                    code=ErrorCode.MISSING_REQUIRED_ATTRIBUTE,
                ))
        return findings

    def _check_edge(self, change: Change, proposed: ProposedGraph) -> List[Finding]:
        if change.entity_id in proposed.dropped_edge_ids:
            return []

        edge_type = change.edge_type
        if edge_type is None:
            return [Finding(
                severity=Severity.BLOCKER,
                subject_id=change.entity_id,
                check_id=rules.UNKNOWN_TYPE_CHECK,
                message=f"Unknown relationship type: {change.type_name!r}",
                code=ErrorCode.UNKNOWN_TYPE,
            )]

        missing = [
            endpoint for endpoint in (change.from_id, change.to_id)
            if not proposed.has_node(endpoint)
        ]
        if missing:
            return [Finding(
                severity=Severity.BLOCKER,
                subject_id=change.entity_id,
                check_id=rules.DANGLING_ENDPOINT_CHECK,
                message=(
                    f"{edge_type.value} {change.entity_id} references missing "
                    f"element(s): {', '.join(str(m) for m in missing)}"
                ),
                code=ErrorCode.DANGLING_ENDPOINT,
            )]

        from_type = proposed.node_type(change.from_id)
        to_type = proposed.node_type(change.to_id)
        if not edge_schema(edge_type).allows(from_type, to_type):
            return [Finding(
                severity=Severity.BLOCKER,
                subject_id=change.entity_id,
                check_id=rules.ENDPOINT_TYPES_CHECK,
                message=f"{edge_type.value} does not allow {from_type.value} -> {to_type.value}",
                code=ErrorCode.INVALID_ENDPOINT_TYPES,
            )]
        return []

    # -------------------------------------------------------------------------
    # Pass 2: structural cardinality
    # -------------------------------------------------------------------------

    def affected_nodes(self, change_set: ChangeSet, proposed: ProposedGraph) -> Tuple[str, ...]:
        """
        Nodes whose cardinality may have changed, in staging order: staged
        nodes, endpoints of staged or removed edges, and neighbours that
        lost edges to a removed node.
        """
        ordered: List[str] = []
        seen: Set[str] = set()

        def add(node_id: Optional[str]) -> None:
            if node_id and node_id not in seen and proposed.has_node(node_id):
                seen.add(node_id)
                ordered.append(node_id)

        for change in change_set:
            if change.kind is EntityKind.NODE:
                add(change.entity_id)
            else:
                add(change.from_id)
                add(change.to_id)
                add(change.previous_from_id)
                add(change.previous_to_id)
        return tuple(ordered)

    def _cardinality_pass(
        self,
        change_set: ChangeSet,
        proposed: ProposedGraph,
        context: ValidationContext
    ) -> List[Finding]:
        affected = list(self.affected_nodes(change_set, proposed))
        affected.extend(n for n in proposed.orphaned_node_ids if n not in affected)
        traceability = context.review_ready or not self._config.traceability_gating

        findings: List[Finding] = []
        for node_id in affected:
            node = proposed.nodes[node_id]
            for rule in rules.rules_for(node.type):
                if rule.traceability and not traceability:
                    continue
                count = sum(
                    1 for e in proposed.incoming(node_id, rule.edge_type)
                    if proposed.node_type(e.from_id) in rule.peer_types
                )
                if not rule.accepts(count):
                    peers = "/".join(sorted(t.value for t in rule.peer_types))
                    findings.append(Finding(
                        severity=Severity.ERROR,
                        subject_id=node_id,
                        check_id=rule.check_id,
                        message=(
                            f"{node.type.value} '{display_name(node)}' must have "
                            f"{rule.describe_bound()} incoming {rule.edge_type.value} "
                            f"from {peers} (found {count})"
                        ),
                        code=ErrorCode.CARDINALITY_VIOLATION,
                    ))
            if traceability and node.type is NodeType.CAPABILITY:
                if not self._has_application_support(node_id, proposed):
                    findings.append(Finding(
                        severity=Severity.ERROR,
                        subject_id=node_id,
                        check_id=rules.CAPABILITY_SUPPORT_CHECK,
                        message=(
                            f"Capability '{display_name(node)}' is not supported by any "
                            f"ApplicationService (REALIZED_BY -> SUPPORTED_BY)"
                        ),
                        code=ErrorCode.CARDINALITY_VIOLATION,
                    ))

        if self._config.detect_decomposition_cycles:
            findings.extend(self._cycle_findings(affected, proposed))
        return findings

    def _has_application_support(self, capability_id: str, proposed: ProposedGraph) -> bool:
        frontier = {capability_id}
        for edge_type, target_type in rules.CAPABILITY_SUPPORT_PATH:
            frontier = {
                e.to_id
                for node_id in frontier
                for e in proposed.outgoing(node_id, edge_type)
                if proposed.node_type(e.to_id) is target_type
            }
            if not frontier:
                return False
        return True

    def _cycle_findings(self, affected: List[str], proposed: ProposedGraph) -> List[Finding]:
        affected_set = set(affected)
        topology = GraphTopology.from_records(proposed.nodes.values(), proposed.edges.values())
        findings: List[Finding] = []
        for cycle in topology.decomposition_cycles():
            touched = [n for n in cycle if n in affected_set]
            if not touched:
                continue
            findings.append(Finding(
                severity=Severity.WARNING,
                subject_id=touched[0],
                check_id=rules.DECOMPOSITION_CYCLE_CHECK,
                message=f"Capability decomposition cycle: {' -> '.join(cycle + (cycle[0],))}",
                code=ErrorCode.CARDINALITY_VIOLATION,
            ))
        return findings
