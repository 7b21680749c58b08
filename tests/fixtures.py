"""
Test Fixtures

Deterministic builders shared by the test modules.
All fixtures are explicit - no random generation.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from eagraph.contracts.base import Result, Timestamp
from eagraph.contracts.governance import GovernanceMode
from eagraph.contracts.metadata import (
    LifecycleCoverage, RepositoryMetadata, RepositoryOwner
)
from eagraph.contracts.metamodel import NodeType
from eagraph.storage import GraphRepository
from eagraph.storage.handle import RepositoryHandle
from eagraph.temporal.clock import LogicalClock


# =============================================================================
# FIXED VALUES (deterministic)
# =============================================================================

EPOCH = datetime(2026, 1, 1, 0, 0, 0, tzinfo=timezone.utc)

REPOSITORY_NAME = "Acme EA"
ENTERPRISE_ID = "ent-acme"


def ok(result: Result) -> Any:
    """Unwrap a successful Result, failing the test with its error otherwise."""
    assert result.is_success, result.error
    return result.value


# =============================================================================
# METADATA
# =============================================================================

def make_metadata(
    governance_mode: GovernanceMode = GovernanceMode.STRICT,
    lifecycle_coverage: LifecycleCoverage = LifecycleCoverage.AS_IS,
    repository_name: str = REPOSITORY_NAME
) -> RepositoryMetadata:
    return RepositoryMetadata(
        repository_name=repository_name,
        organization_name="Acme Corp",
        owner=RepositoryOwner(user_id="u-owner", display_name="Repo Owner"),
        governance_mode=governance_mode,
        lifecycle_coverage=lifecycle_coverage,
        created_at=Timestamp(value=EPOCH),
    )


def raw_metadata(**overrides: Any) -> Dict[str, Any]:
    raw = {
        "repositoryName": REPOSITORY_NAME,
        "organizationName": "Acme Corp",
        "architectureScope": "Enterprise",
        "referenceFramework": "ArchiMate",
        "governanceMode": "Strict",
        "lifecycleCoverage": "As-Is",
        "timeHorizon": "Current",
        "owner": {"userId": "u-owner", "displayName": "Repo Owner"},
    }
    raw.update(overrides)
    return raw


# =============================================================================
# REPOSITORIES
# =============================================================================

def seeded_repository(clock: Optional[LogicalClock] = None) -> GraphRepository:
    """A repository holding one Enterprise."""
    repo = GraphRepository(clock=clock or LogicalClock.manual(EPOCH))
    ok(repo.add_node(NodeType.ENTERPRISE, {"name": "Acme"}, node_id=ENTERPRISE_ID))
    return repo


def owned_portfolio(clock: Optional[LogicalClock] = None) -> GraphRepository:
    """
    Enterprise owning one Application that provides one service and is
    hosted on one Technology.

        ent-acme -OWNS-> app-crm -PROVIDES-> as-crm-api
                         app-crm -HOSTED_ON-> tech-k8s
    """
    repo = seeded_repository(clock)
    ok(repo.add_node(NodeType.APPLICATION, {"name": "CRM"}, node_id="app-crm"))
    ok(repo.add_node(NodeType.APPLICATION_SERVICE, {"name": "CRM API"}, node_id="as-crm-api"))
    ok(repo.add_node(NodeType.TECHNOLOGY, {"name": "Kubernetes"}, node_id="tech-k8s"))
    ok(repo.add_edge(ENTERPRISE_ID, "app-crm", "OWNS", edge_id="rel-owns-crm"))
    ok(repo.add_edge("app-crm", "as-crm-api", "PROVIDES", edge_id="rel-provides-api"))
    ok(repo.add_edge("app-crm", "tech-k8s", "HOSTED_ON", edge_id="rel-hosted-k8s"))
    return repo


def open_handle(
    clock: LogicalClock,
    metadata: Optional[RepositoryMetadata] = None,
    repository: Optional[GraphRepository] = None
) -> RepositoryHandle:
    handle = RepositoryHandle(clock=clock)
    ok(handle.open(metadata or make_metadata(), repository or seeded_repository(clock)))
    return handle
