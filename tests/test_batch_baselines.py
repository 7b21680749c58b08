"""
Batch Import and Baseline Tests
"""

import pytest

from eagraph.contracts.base import ErrorCode
from eagraph.contracts.governance import AccessContext, Role
from eagraph.contracts.metamodel import NodeType
from eagraph.contracts.workspace import EntityKind
from eagraph.storage.baselines import BaselineStore
from eagraph.storage.batch import apply_batch

from tests.fixtures import ENTERPRISE_ID, ok, open_handle, owned_portfolio


OBJECTS = [
    {"id": "app-erp", "type": "Application", "attributes": {"name": "ERP"}},
    {"id": "tech-vm", "type": "Technology", "attributes": {"name": "VM"}},
]
RELATIONSHIPS = [
    {"id": "rel-owns-erp", "fromId": ENTERPRISE_ID, "toId": "app-erp", "type": "OWNS"},
    {"fromId": "app-erp", "toId": "tech-vm", "type": "HOSTED_ON"},
]


class TestBatchImport:

    def test_all_rows_applied_in_one_publish(self, handle):
        report = ok(apply_batch(handle, OBJECTS, RELATIONSHIPS, actor="importer"))

        assert report.applied
        assert report.node_ids == ("app-erp", "tech-vm")
        assert report.edge_ids[0] == "rel-owns-erp"
        assert report.edge_ids[1].startswith("rel-")
        assert report.revision == handle.revision == 1
        assert handle.current.get_node("app-erp").attributes["createdBy"] == "importer"

        entry, = handle.audit.entries()
        assert entry.action == "batch.import"
        assert entry.detail("objects") == "2"
        assert entry.detail("relationships") == "2"

    def test_any_row_error_rejects_everything(self, handle):
        bad_relationships = RELATIONSHIPS + [
            {"fromId": "tech-vm", "toId": "app-erp", "type": "HOSTED_ON"},
            {"fromId": "app-erp", "toId": "ghost", "type": "HOSTED_ON"},
        ]
        report = ok(apply_batch(handle, OBJECTS + ["not a row"], bad_relationships))

        assert not report.applied
        assert [(e.kind, e.row) for e in report.errors] == [
            (EntityKind.NODE, 2),
            (EntityKind.EDGE, 2),
            (EntityKind.EDGE, 3),
        ]
        assert report.errors[1].error.code == ErrorCode.INVALID_ENDPOINT_TYPES
        assert report.errors[2].error.code == ErrorCode.DANGLING_ENDPOINT
        assert handle.revision == 0
        assert handle.current.node_count == 1
        assert len(handle.audit) == 0

    def test_malformed_row_fields_become_row_errors(self, handle):
        objects = [{"id": "app-x", "type": "Application", "attributes": "oops"}]
        relationships = [
            {"fromId": ["app-x"], "toId": ENTERPRISE_ID, "type": "OWNS"},
            {"fromId": ENTERPRISE_ID, "toId": "app-x", "type": "OWNS", "attributes": [1, 2]},
        ]

        report = ok(apply_batch(handle, objects, relationships))

        assert not report.applied
        assert [(e.kind, e.row, e.error.code) for e in report.errors] == [
            (EntityKind.NODE, 0, ErrorCode.INVALID_ATTRIBUTES),
            (EntityKind.EDGE, 0, ErrorCode.INVALID_ATTRIBUTES),
            (EntityKind.EDGE, 1, ErrorCode.DANGLING_ENDPOINT),
        ]
        assert report.errors[0].entity_id == "app-x"
        assert handle.revision == 0

    def test_empty_batch(self, handle):
        report = ok(apply_batch(handle))
        assert report.applied
        assert handle.revision == 0

    def test_batch_during_commit_is_rejected(self, handle):
        ok(handle.begin_commit())
        try:
            result = apply_batch(handle, OBJECTS)
        finally:
            handle.end_commit()
        assert result.error.code == ErrorCode.COMMIT_IN_PROGRESS


class TestBaselines:

    @pytest.fixture
    def portfolio_handle(self, clock):
        handle = open_handle(clock, repository=owned_portfolio(clock))
        yield handle
        if handle.is_open:
            handle.close()

    def test_capture_is_immutable(self, portfolio_handle):
        store = BaselineStore()
        baseline = ok(store.create(portfolio_handle, "Q1 2026", created_by="alice"))

        ok(portfolio_handle.delete_node("app-crm"))

        view = baseline.as_repository()
        assert view.has_node("app-crm")
        assert view.edge_count == 3
        assert view.is_frozen
        assert baseline.source_revision == 0
        assert baseline.context_lock.locked

    def test_listing_and_lookup(self, portfolio_handle):
        store = BaselineStore()
        first = ok(store.create(portfolio_handle, "First", baseline_id="baseline-1"))
        ok(store.create(portfolio_handle, "  "))

        assert len(store) == 2
        assert store.get("baseline-1") is first
        assert store.list()[1].name.startswith("Baseline ")
        duplicate = store.create(portfolio_handle, "Again", baseline_id="baseline-1")
        assert duplicate.error.code == ErrorCode.DUPLICATE_ID

    def test_viewer_cannot_create(self, portfolio_handle):
        result = BaselineStore().create(
            portfolio_handle, "Q1", access=AccessContext(role=Role.VIEWER)
        )
        assert result.error.code == ErrorCode.PERMISSION_DENIED

    def test_closed_handle(self, portfolio_handle):
        ok(portfolio_handle.close())
        result = BaselineStore().create(portfolio_handle, "Q1")
        assert result.error.code == ErrorCode.REPOSITORY_CLOSED

    def test_baseline_view_is_read_only(self, portfolio_handle):
        baseline = ok(BaselineStore().create(portfolio_handle, "Q1"))
        result = baseline.as_repository().add_node(NodeType.TECHNOLOGY, {"name": "X"})
        assert result.error.code == ErrorCode.INVALID_STATE_TRANSITION
