"""
History and Audit Tests
=======================

Undo/redo restores whole published states; the audit log is append-only
and tamper-evident.
"""

import dataclasses

import pytest

from eagraph.contracts.base import ErrorCode
from eagraph.contracts.events import RepositoryChanged, RepositoryClosed
from eagraph.contracts.metamodel import NodeType
from eagraph.observability import AuditLog
from eagraph.storage.handle import RepositoryHandle
from eagraph.storage.history import HistoryStack

from tests.fixtures import ENTERPRISE_ID, make_metadata, ok, seeded_repository


class TestUndoRedo:

    def test_undo_restores_previous_state(self, handle):
        ok(handle.add_node(NodeType.TECHNOLOGY, {"name": "VM"}, node_id="tech-vm"))
        assert handle.current.has_node("tech-vm")

        ok(handle.undo("alice"))
        assert not handle.current.has_node("tech-vm")
        assert handle.current.is_frozen

        ok(handle.redo("alice"))
        assert handle.current.has_node("tech-vm")

    def test_undo_redo_bump_revision_and_audit(self, handle):
        ok(handle.add_node(NodeType.TECHNOLOGY, {"name": "VM"}))
        assert ok(handle.undo("alice")) == 2
        assert ok(handle.redo("alice")) == 3
        actions = [e.action for e in handle.audit.entries()]
        assert actions == ["node.add", "undo", "redo"]
        assert handle.audit.entries()[1].detail("revision") == "2"

    def test_nothing_to_undo(self, handle):
        assert handle.undo().error.code == ErrorCode.NOTHING_TO_UNDO
        assert handle.redo().error.code == ErrorCode.NOTHING_TO_REDO

    def test_new_edit_clears_redo(self, handle):
        ok(handle.add_node(NodeType.TECHNOLOGY, {"name": "A"}))
        ok(handle.undo())
        ok(handle.add_node(NodeType.TECHNOLOGY, {"name": "B"}))
        assert handle.redo().error.code == ErrorCode.NOTHING_TO_REDO

    def test_limit_drops_oldest(self, clock):
        handle = RepositoryHandle(clock=clock, history_limit=2)
        ok(handle.open(make_metadata(), seeded_repository(clock)))
        for name in ("a", "b", "c"):
            ok(handle.add_node(NodeType.TECHNOLOGY, {"name": name}, node_id=f"tech-{name}"))

        ok(handle.undo())
        ok(handle.undo())
        assert handle.undo().error.code == ErrorCode.NOTHING_TO_UNDO
        assert handle.current.has_node("tech-a")
        assert not handle.current.has_node("tech-b")

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            HistoryStack(limit=0)


class TestHandleLifecycle:

    def test_closed_handle_rejects_everything(self, handle):
        ok(handle.close())
        assert handle.current is None
        for result in (
            handle.add_node(NodeType.TECHNOLOGY, {"name": "X"}),
            handle.delete_node(ENTERPRISE_ID),
            handle.undo(),
            handle.close(),
            handle.begin_commit(),
        ):
            assert result.error.code == ErrorCode.REPOSITORY_CLOSED

    def test_double_open_rejected(self, handle, metadata):
        result = handle.open(metadata)
        assert result.error.code == ErrorCode.INVALID_STATE_TRANSITION

    def test_open_and_close_publish_notifications(self, clock):
        handle = RepositoryHandle(clock=clock)
        seen = []
        handle.bus.subscribe(RepositoryChanged, seen.append)
        handle.bus.subscribe(RepositoryClosed, seen.append)

        ok(handle.open(make_metadata(), seeded_repository(clock)))
        ok(handle.add_node(NodeType.TECHNOLOGY, {"name": "VM"}))
        ok(handle.close())

        assert [type(e).__name__ for e in seen] == [
            "RepositoryChanged", "RepositoryChanged", "RepositoryClosed"
        ]
        assert seen[0].reason == "open"
        assert seen[1].revision == 1
        assert seen[2].revision == 1

    def test_open_copies_the_given_repository(self, clock):
        source = seeded_repository(clock)
        handle = RepositoryHandle(clock=clock)
        ok(handle.open(make_metadata(), source))
        ok(source.add_node(NodeType.TECHNOLOGY, {"name": "Late"}, node_id="tech-late"))
        assert not handle.current.has_node("tech-late")

    def test_repository_name_is_immutable(self, handle):
        renamed = make_metadata(repository_name="Other")
        result = handle.set_metadata(renamed)
        assert result.error.code == ErrorCode.INVALID_METADATA
        assert result.error.context_value("field") == "repositoryName"

    def test_context_manager_closes(self, clock):
        with RepositoryHandle(clock=clock) as handle:
            ok(handle.open(make_metadata()))
        assert not handle.is_open

    def test_single_step_edit_is_audited(self, handle):
        node_id = ok(handle.add_node(NodeType.TECHNOLOGY, {"name": "VM"}, actor="alice"))
        ok(handle.delete_node(ENTERPRISE_ID, actor="alice"))
        first, second = handle.audit.entries()
        assert (first.action, first.entity_id, first.actor) == ("node.add", node_id, "alice")
        assert (second.action, second.entity_id) == ("node.remove", ENTERPRISE_ID)
        assert second.detail("cascadedEdges") == "0"


class TestAuditLog:

    def test_sequence_and_chain(self, clock):
        log = AuditLog(clock=clock)
        first = log.append("alice", "node.add", "Acme EA", entity_id="app-1")
        second = log.append("alice", "node.remove", "Acme EA", entity_id="app-1")

        assert (first.sequence, second.sequence) == (1, 2)
        assert first.previous_hash == ""
        assert second.previous_hash == first.entry_hash
        assert log.head_hash == second.entry_hash
        assert log.verify_integrity() == (True, None)

    def test_details_are_stringified(self, clock):
        log = AuditLog(clock=clock)
        entry = log.append("alice", "batch.import", "Acme EA", details=[("objects", 3)])
        assert entry.details == (("objects", "3"),)
        assert entry.to_dict()["details"] == {"objects": "3"}

    def test_tampered_entry_is_detected(self, clock):
        log = AuditLog(clock=clock)
        log.append("alice", "node.add", "Acme EA", entity_id="app-1")
        log.append("alice", "node.modify", "Acme EA", entity_id="app-1")
        log._entries[0] = dataclasses.replace(log._entries[0], actor="mallory")

        valid, error = log.verify_integrity()
        assert not valid
        assert error.code == ErrorCode.INTEGRITY_VIOLATION
        assert error.context_value("sequence") == "1"

    def test_removed_entry_breaks_sequence(self, clock):
        log = AuditLog(clock=clock)
        for action in ("node.add", "node.modify", "node.remove"):
            log.append("alice", action, "Acme EA")
        del log._entries[1]

        valid, error = log.verify_integrity()
        assert not valid
        assert "Sequence gap" in error.message

    def test_since_and_for_entity(self, clock):
        log = AuditLog(clock=clock)
        log.append("alice", "node.add", "Acme EA", entity_id="a")
        log.append("alice", "node.add", "Acme EA", entity_id="b")
        log.append("alice", "node.modify", "Acme EA", entity_id="a")

        assert [e.sequence for e in log.since(1)] == [2, 3]
        assert [e.action for e in log.for_entity("a")] == ["node.add", "node.modify"]
