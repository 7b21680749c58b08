"""
Validation Pipeline Tests
=========================

Findings are data: every violation is collected, none is raised.
"""

import pytest

from eagraph.contracts.base import ErrorCode
from eagraph.contracts.findings import Severity, ValidationStrictness
from eagraph.contracts.metadata import LifecycleCoverage
from eagraph.contracts.metamodel import EdgeType, NodeType
from eagraph.contracts.workspace import ModelingState, WorkspaceMode
from eagraph.core.diff import build_proposed_graph, diff_workspace
from eagraph.validation import (
    ValidationConfig, ValidationContext, ValidationPipeline, resolve_severity
)
from eagraph.validation import rules

from tests.fixtures import ENTERPRISE_ID, ok, owned_portfolio


BLOCKING = ValidationContext(strictness=ValidationStrictness.BLOCKING)


@pytest.fixture
def repo(clock):
    return owned_portfolio(clock).freeze()


def validate(workspace, repo, context=BLOCKING, config=None):
    change_set = diff_workspace(workspace, repo)
    proposed = build_proposed_graph(repo, change_set)
    return ValidationPipeline(config).validate(change_set, proposed, context)


def checks(report):
    return [(f.check_id, f.subject_id) for f in report.findings]


class TestCardinality:

    @pytest.mark.parametrize("owners,violations", [(0, 1), (1, 0), (2, 1)])
    def test_exactly_one_owner(self, workspace, clock, owners, violations):
        """0 or >=2 incoming OWNS is a violation; exactly 1 passes."""
        repo = owned_portfolio(clock)
        ok(repo.add_node(NodeType.ENTERPRISE, {"name": "Subsidiary"}, node_id="ent-sub"))
        repo.freeze()

        ok(workspace.stage_node(NodeType.CAPABILITY, {"name": "Payments"}, node_id="cap-pay"))
        for owner in (ENTERPRISE_ID, "ent-sub")[:owners]:
            ok(workspace.stage_edge(owner, "cap-pay", EdgeType.OWNS))

        report = validate(workspace, repo)
        found = report.by_code(ErrorCode.CARDINALITY_VIOLATION)
        assert len(found) == violations
        if violations:
            assert found[0].subject_id == "cap-pay"
            assert found[0].check_id == "capability-owner"
            assert found[0].severity is Severity.ERROR
            assert f"found {owners}" in found[0].message

    def test_only_affected_nodes_are_checked(self, workspace, clock):
        """A pre-existing violation elsewhere is not reported."""
        repo = owned_portfolio(clock)
        ok(repo.add_node(NodeType.APPLICATION, {"name": "Unowned"}, node_id="app-unowned"))
        repo.freeze()
        ok(workspace.stage_node(NodeType.TECHNOLOGY, {"name": "VM"}))
        assert validate(workspace, repo).findings == ()

    def test_removing_owner_flags_orphaned_neighbours(self, workspace, repo):
        ok(workspace.checkout_node(repo.get_node(ENTERPRISE_ID)))
        ok(workspace.mark_for_removal(ENTERPRISE_ID))
        assert checks(validate(workspace, repo)) == [("application-owner", "app-crm")]

    def test_removing_edge_flags_its_endpoint(self, workspace, repo):
        ok(workspace.checkout_edge(repo.get_edge("rel-provides-api")))
        ok(workspace.mark_for_removal("rel-provides-api"))
        assert checks(validate(workspace, repo)) == [("application-service-provider", "as-crm-api")]

    def test_department_needs_enterprise(self, workspace, repo):
        ok(workspace.stage_node(NodeType.DEPARTMENT, {"name": "Finance"}, node_id="dept-fin"))
        assert checks(validate(workspace, repo)) == [("department-enterprise", "dept-fin")]
        ok(workspace.stage_edge(ENTERPRISE_ID, "dept-fin", EdgeType.HAS))
        assert validate(workspace, repo).findings == ()


class TestTraceability:

    def test_business_service_rule_waits_for_review_ready(self, workspace, repo):
        ok(workspace.stage_node(NodeType.BUSINESS_SERVICE, {"name": "Billing"}, node_id="bs-bill"))
        assert validate(workspace, repo).findings == ()

        ok(workspace.set_modeling_state("bs-bill", ModelingState.REVIEW_READY))
        report = validate(workspace, repo, ValidationContext(
            strictness=ValidationStrictness.BLOCKING, review_ready=workspace.has_review_ready_drafts()
        ))
        assert checks(report) == [("business-service-realization", "bs-bill")]

    def test_gating_can_be_disabled(self, workspace, repo):
        ok(workspace.stage_node(NodeType.BUSINESS_SERVICE, {"name": "Billing"}, node_id="bs-bill"))
        report = validate(workspace, repo, config=ValidationConfig(traceability_gating=False))
        assert checks(report) == [("business-service-realization", "bs-bill")]

    def test_capability_support_chain(self, workspace, repo):
        review = ValidationContext(strictness=ValidationStrictness.BLOCKING, review_ready=True)
        ok(workspace.stage_node(NodeType.CAPABILITY, {"name": "Sales"}, node_id="cap-sales"))
        ok(workspace.stage_edge(ENTERPRISE_ID, "cap-sales", EdgeType.OWNS))
        ok(workspace.stage_node(NodeType.BUSINESS_SERVICE, {"name": "Quoting"}, node_id="bs-quote"))
        ok(workspace.stage_edge("cap-sales", "bs-quote", EdgeType.REALIZED_BY))

        assert checks(validate(workspace, repo, review)) == [
            (rules.CAPABILITY_SUPPORT_CHECK, "cap-sales"),
        ]

        ok(workspace.stage_edge("bs-quote", "as-crm-api", EdgeType.SUPPORTED_BY))
        assert validate(workspace, repo, review).findings == ()


class TestMandatoryFields:

    def test_missing_name(self, workspace, repo):
        ok(workspace.stage_node(NodeType.TECHNOLOGY, {"name": "  "}, node_id="tech-x"))
        report = validate(workspace, repo)
        assert checks(report) == [(rules.REQUIRED_ATTRIBUTE_CHECK, "tech-x")]
        assert report.findings[0].code == ErrorCode.MISSING_REQUIRED_ATTRIBUTE

    def test_unknown_type_is_blocker(self, workspace, repo):
        ok(workspace.stage_node("Spaceship", {"name": "X"}, node_id="ship-1"))
        report = validate(workspace, repo)
        assert report.findings[0].severity is Severity.BLOCKER
        assert report.findings[0].code == ErrorCode.UNKNOWN_TYPE

    def test_dangling_edge_is_blocker(self, workspace, repo):
        ok(workspace.stage_edge("app-crm", "tech-missing", EdgeType.HOSTED_ON, edge_id="rel-x"))
        report = validate(workspace, repo)
        assert checks(report) == [(rules.DANGLING_ENDPOINT_CHECK, "rel-x")]
        assert report.findings[0].severity is Severity.BLOCKER

    def test_endpoint_types_blocker(self, workspace, repo):
        ok(workspace.stage_edge("tech-k8s", "app-crm", EdgeType.HOSTED_ON, edge_id="rel-x"))
        report = validate(workspace, repo)
        assert report.findings[0].code == ErrorCode.INVALID_ENDPOINT_TYPES
        assert report.is_blocked

    def test_type_change_is_blocker(self, workspace, repo):
        ok(workspace.checkout_node(repo.get_node("tech-k8s")))
        ok(workspace.stage_node(NodeType.PRINCIPLE, {"name": "Kubernetes"}, node_id="tech-k8s"))
        report = validate(workspace, repo)
        assert checks(report) == [(rules.IMMUTABLE_TYPE_CHECK, "tech-k8s")]

    def test_lifecycle_tag_required_for_both_coverage(self, workspace, repo):
        context = ValidationContext(
            strictness=ValidationStrictness.BLOCKING,
            lifecycle_coverage=LifecycleCoverage.BOTH,
        )
        ok(workspace.stage_node(NodeType.TECHNOLOGY, {"name": "VM"}, node_id="tech-vm"))
        assert checks(validate(workspace, repo, context)) == [(rules.LIFECYCLE_TAG_CHECK, "tech-vm")]

        ok(workspace.update_draft("tech-vm", {"lifecycleState": "To-Be"}))
        assert validate(workspace, repo, context).findings == ()

    def test_removals_skip_mandatory_checks(self, workspace, repo):
        ok(workspace.checkout_node(repo.get_node("tech-k8s")))
        ok(workspace.update_draft("tech-k8s", {"name": ""}))
        ok(workspace.mark_for_removal("tech-k8s"))
        assert validate(workspace, repo).findings == ()


class TestSeverityResolution:

    def test_iterative_downgrades_blockers(self):
        assert resolve_severity(
            Severity.BLOCKER, ValidationStrictness.BLOCKING, WorkspaceMode.ITERATIVE
        ) is Severity.WARNING

    def test_advisory_downgrades_errors_only(self):
        assert resolve_severity(
            Severity.ERROR, ValidationStrictness.ADVISORY, WorkspaceMode.STANDARD
        ) is Severity.WARNING
        assert resolve_severity(
            Severity.BLOCKER, ValidationStrictness.ADVISORY, WorkspaceMode.STANDARD
        ) is Severity.BLOCKER

    def test_advisory_report_is_not_blocked(self, workspace, repo):
        ok(workspace.stage_node(NodeType.CAPABILITY, {"name": "Payments"}))
        report = validate(workspace, repo, ValidationContext())
        assert len(report.findings) == 1
        assert not report.is_blocked
        assert report.summary()["WARNING"] == 1


class TestDecompositionCycles:

    def test_cycle_is_a_warning(self, workspace, clock):
        repo = owned_portfolio(clock)
        for cap in ("cap-a", "cap-b"):
            ok(repo.add_node(NodeType.CAPABILITY, {"name": cap}, node_id=cap))
            ok(repo.add_edge(ENTERPRISE_ID, cap, EdgeType.OWNS))
        repo.freeze()

        ok(workspace.stage_edge("cap-a", "cap-b", EdgeType.DECOMPOSES_TO))
        ok(workspace.stage_edge("cap-b", "cap-a", EdgeType.DECOMPOSES_TO))
        report = validate(workspace, repo)

        assert checks(report) == [(rules.DECOMPOSITION_CYCLE_CHECK, "cap-a")]
        assert report.findings[0].severity is Severity.WARNING
        assert not report.is_blocked

    def test_detection_can_be_disabled(self, workspace, clock):
        repo = owned_portfolio(clock)
        ok(repo.add_node(NodeType.CAPABILITY, {"name": "a"}, node_id="cap-a"))
        ok(repo.add_edge(ENTERPRISE_ID, "cap-a", EdgeType.OWNS))
        repo.freeze()
        ok(workspace.stage_edge("cap-a", "cap-a", EdgeType.DECOMPOSES_TO))
        config = ValidationConfig(detect_decomposition_cycles=False)
        assert validate(workspace, repo, config=config).findings == ()
