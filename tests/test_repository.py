"""
Graph Repository Tests
======================

INVARIANTS UNDER TEST:
======================
1. No dangling edge in any reachable state (delete cascades)
2. Endpoint rules come from the schema tables; explicit pairs win
3. Bookkeeping fields are engine-managed
4. Published repositories are read-only; clones are independent
"""

import pytest
from hypothesis import given, settings, strategies as st

from eagraph.contracts.base import ErrorCode
from eagraph.contracts.graph import CREATED_AT, CREATED_BY, LAST_MODIFIED_BY
from eagraph.contracts.metamodel import EdgeType, NodeType
from eagraph.storage import GraphRepository, UpdateMode
from eagraph.temporal.clock import LogicalClock

from tests.fixtures import ENTERPRISE_ID, EPOCH, ok, owned_portfolio, seeded_repository


class TestNodes:

    def test_generated_id_uses_type_prefix(self):
        """Ids generated for a node carry the per-type prefix."""
        repo = GraphRepository()
        node_id = ok(repo.add_node(NodeType.CAPABILITY, {"name": "Payments"}))
        assert node_id.startswith("cap-")
        assert repo.get_node(node_id).name == "Payments"

    def test_duplicate_id_rejected(self):
        repo = seeded_repository()
        result = repo.add_node(NodeType.ENTERPRISE, {"name": "Again"}, node_id=ENTERPRISE_ID)
        assert result.is_failure
        assert result.error.code == ErrorCode.DUPLICATE_ID

    def test_unknown_type_rejected(self):
        repo = GraphRepository()
        result = repo.add_node("Spaceship", {"name": "X"})
        assert result.error.code == ErrorCode.UNKNOWN_TYPE
        assert repo.node_count == 0

    def test_type_accepts_wire_string(self):
        repo = GraphRepository()
        node_id = ok(repo.add_node("ApplicationService", {"name": "API"}))
        assert repo.node_type(node_id) is NodeType.APPLICATION_SERVICE

    def test_caller_bookkeeping_is_ignored(self):
        """Caller-supplied createdBy is overwritten by the actor."""
        repo = GraphRepository(clock=LogicalClock.manual(EPOCH))
        node_id = ok(repo.add_node(
            NodeType.TECHNOLOGY,
            {"name": "Postgres", CREATED_BY: "mallory"},
            actor="alice",
        ))
        attrs = repo.get_node(node_id).attributes
        assert attrs[CREATED_BY] == "alice"
        assert attrs[CREATED_AT] == "2026-01-01T00:00:00+00:00"


class TestEdges:

    def test_dangling_endpoint_rejected(self):
        repo = seeded_repository()
        result = repo.add_edge(ENTERPRISE_ID, "cap-missing", EdgeType.OWNS)
        assert result.error.code == ErrorCode.DANGLING_ENDPOINT
        assert repo.edge_count == 0

    def test_invalid_endpoint_types_rejected(self):
        repo = seeded_repository()
        ok(repo.add_node(NodeType.TECHNOLOGY, {"name": "DB"}, node_id="tech-db"))
        result = repo.add_edge(ENTERPRISE_ID, "tech-db", EdgeType.OWNS)
        assert result.error.code == ErrorCode.INVALID_ENDPOINT_TYPES

    def test_explicit_pairs_are_authoritative(self):
        """COMPOSED_OF lists SubCapability in its from-set but no SubCapability->Capability pair."""
        repo = GraphRepository()
        ok(repo.add_node(NodeType.CAPABILITY, {"name": "Sales"}, node_id="cap-sales"))
        ok(repo.add_node(NodeType.SUB_CAPABILITY, {"name": "Quoting"}, node_id="subcap-quote"))

        assert repo.add_edge("cap-sales", "subcap-quote", EdgeType.COMPOSED_OF).is_success
        backwards = repo.add_edge("subcap-quote", "cap-sales", EdgeType.COMPOSED_OF)
        assert backwards.error.code == ErrorCode.INVALID_ENDPOINT_TYPES

    def test_unknown_edge_type_rejected(self):
        repo = seeded_repository()
        result = repo.add_edge(ENTERPRISE_ID, ENTERPRISE_ID, "LIKES")
        assert result.error.code == ErrorCode.UNKNOWN_TYPE

    def test_update_edge_revalidates_endpoints(self):
        repo = owned_portfolio()
        result = repo.update_edge("rel-owns-crm", EdgeType.OWNS, ENTERPRISE_ID, "tech-k8s")
        assert result.error.code == ErrorCode.INVALID_ENDPOINT_TYPES
        assert repo.get_edge("rel-owns-crm").to_id == "app-crm"


class TestMalformedInput:

    @pytest.mark.parametrize("attributes", ["oops", ["name"], 42])
    def test_non_mapping_attributes(self, attributes):
        repo = owned_portfolio()
        assert repo.add_node(NodeType.TECHNOLOGY, attributes).error.code == ErrorCode.INVALID_ATTRIBUTES
        added = repo.add_edge("app-crm", "tech-k8s", EdgeType.HOSTED_ON, attributes)
        assert added.error.code == ErrorCode.INVALID_ATTRIBUTES
        assert repo.update_attributes("app-crm", attributes).error.code == ErrorCode.INVALID_ATTRIBUTES
        updated = repo.update_edge("rel-hosted-k8s", EdgeType.HOSTED_ON, "app-crm", "tech-k8s", attributes)
        assert updated.error.code == ErrorCode.INVALID_ATTRIBUTES
        assert (repo.node_count, repo.edge_count) == (4, 3)

    def test_non_string_endpoint(self):
        repo = owned_portfolio()
        result = repo.add_edge(["app-crm"], "tech-k8s", EdgeType.HOSTED_ON)
        assert result.error.code == ErrorCode.INVALID_ATTRIBUTES


class TestUpdates:

    def test_merge_overlays_patch(self):
        repo = owned_portfolio()
        ok(repo.update_attributes("app-crm", {"vendor": "Acme"}, actor="bob"))
        attrs = repo.get_node("app-crm").attributes
        assert attrs["name"] == "CRM"
        assert attrs["vendor"] == "Acme"
        assert attrs[LAST_MODIFIED_BY] == "bob"

    def test_replace_keeps_creation_fields(self):
        repo = owned_portfolio()
        ok(repo.update_attributes("app-crm", {"vendor": "Acme"}))
        created = repo.get_node("app-crm").attributes[CREATED_AT]
        ok(repo.update_attributes("app-crm", {"name": "CRM 2"}, mode=UpdateMode.REPLACE))
        attrs = repo.get_node("app-crm").attributes
        assert attrs["name"] == "CRM 2"
        assert attrs[CREATED_AT] == created
        assert "vendor" not in attrs

    def test_update_edge_attributes(self):
        repo = owned_portfolio()
        ok(repo.update_attributes("rel-owns-crm", {"since": "2020"}))
        assert repo.get_edge("rel-owns-crm").attributes["since"] == "2020"

    def test_update_unknown_id(self):
        repo = GraphRepository()
        assert repo.update_attributes("nope", {"a": 1}).error.code == ErrorCode.NOT_FOUND


class TestDeletion:

    def test_delete_node_cascades_incident_edges(self):
        repo = owned_portfolio()
        removed = ok(repo.delete_node("app-crm"))
        assert set(removed) == {"rel-owns-crm", "rel-provides-api", "rel-hosted-k8s"}
        assert repo.edge_count == 0
        assert repo.has_node("as-crm-api")

    def test_delete_missing_node(self):
        assert GraphRepository().delete_node("x").error.code == ErrorCode.NOT_FOUND

    def test_delete_edge(self):
        repo = owned_portfolio()
        ok(repo.delete_edge("rel-hosted-k8s"))
        assert not repo.has_edge("rel-hosted-k8s")
        assert repo.delete_edge("rel-hosted-k8s").error.code == ErrorCode.NOT_FOUND


class TestReaders:

    def test_edges_around_a_node(self):
        repo = owned_portfolio()
        assert {e.id for e in repo.incident_edges("app-crm")} == {
            "rel-owns-crm", "rel-provides-api", "rel-hosted-k8s"
        }
        assert [e.id for e in repo.incoming_edges("app-crm")] == ["rel-owns-crm"]
        assert [e.id for e in repo.outgoing_edges("app-crm", EdgeType.HOSTED_ON)] == ["rel-hosted-k8s"]
        assert repo.outgoing_edges("tech-k8s") == ()

    def test_by_type(self):
        repo = owned_portfolio()
        assert [n.id for n in repo.nodes_by_type(NodeType.APPLICATION)] == ["app-crm"]
        assert [e.id for e in repo.edges_by_type(EdgeType.PROVIDES)] == ["rel-provides-api"]
        assert repo.nodes_by_type(NodeType.CAPABILITY) == ()


class TestCopyOnWrite:

    def test_frozen_repository_rejects_writes(self):
        repo = seeded_repository().freeze()
        result = repo.add_node(NodeType.CAPABILITY, {"name": "X"})
        assert result.error.code == ErrorCode.INVALID_STATE_TRANSITION
        assert repo.delete_node(ENTERPRISE_ID).is_failure

    def test_clone_is_independent(self):
        original = owned_portfolio().freeze()
        copy = original.clone()
        ok(copy.update_attributes("app-crm", {"name": "Changed"}))
        ok(copy.delete_node("tech-k8s"))

        assert not copy.is_frozen
        assert original.get_node("app-crm").name == "CRM"
        assert original.has_node("tech-k8s")
        assert original.edge_count == 3

    def test_readers_return_copies(self):
        repo = owned_portfolio()
        repo.get_node("app-crm").attributes["name"] = "tampered"
        repo.objects[0].attributes["name"] = "tampered"
        assert repo.get_node("app-crm").name == "CRM"
        assert repo.get_node(ENTERPRISE_ID).name == "Acme"


# =============================================================================
# PROPERTY: REFERENTIAL INTEGRITY
# =============================================================================

_NODE_KINDS = [NodeType.APPLICATION, NodeType.APPLICATION_SERVICE, NodeType.TECHNOLOGY]
_EDGE_KINDS = [EdgeType.PROVIDES, EdgeType.HOSTED_ON, EdgeType.INTEGRATES_WITH, EdgeType.CONSUMES]

operations = st.lists(
    st.one_of(
        st.tuples(st.just("add_node"), st.sampled_from(_NODE_KINDS)),
        st.tuples(st.just("add_edge"), st.integers(0, 9), st.integers(0, 9), st.sampled_from(_EDGE_KINDS)),
        st.tuples(st.just("delete_node"), st.integers(0, 9)),
    ),
    max_size=40,
)


class TestReferentialIntegrity:

    @settings(max_examples=60, deadline=None)
    @given(ops=operations)
    def test_every_edge_resolves_both_endpoints(self, ops):
        """Any sequence of adds and deletes leaves no dangling edge."""
        repo = GraphRepository()
        ids = []
        for op in ops:
            if op[0] == "add_node":
                ids.append(ok(repo.add_node(op[1], {"name": "n"})))
            elif op[0] == "add_edge" and ids:
                repo.add_edge(ids[op[1] % len(ids)], ids[op[2] % len(ids)], op[3])
            elif op[0] == "delete_node" and ids:
                repo.delete_node(ids[op[1] % len(ids)])

            for edge in repo.iter_edges():
                assert repo.has_node(edge.from_id)
                assert repo.has_node(edge.to_id)
