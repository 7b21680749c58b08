"""
Repository Metadata Contracts

Identity and governance settings of one architecture repository.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .base import Timestamp
from .governance import GovernanceMode


class ArchitectureScope(Enum):
    ENTERPRISE = "Enterprise"
    BUSINESS_UNIT = "Business Unit"
    DOMAIN = "Domain"
    PROGRAMME = "Programme"


class ReferenceFramework(Enum):
    ARCHIMATE = "ArchiMate"
    TOGAF = "TOGAF"
    CUSTOM = "Custom"


class LifecycleCoverage(Enum):
    AS_IS = "As-Is"
    TO_BE = "To-Be"
    BOTH = "Both"


class TimeHorizon(Enum):
    CURRENT = "Current"
    ONE_TO_THREE_YEARS = "1–3 years"
    STRATEGIC = "Strategic"


@dataclass(frozen=True)
class RepositoryOwner:
    user_id: str
    display_name: Optional[str] = None


@dataclass(frozen=True)
class RepositoryMetadata:
    """
    Immutable repository identity.

    `repository_name` never changes for the lifetime of a repository.
    """
    repository_name: str
    organization_name: str
    owner: RepositoryOwner
    architecture_scope: ArchitectureScope = ArchitectureScope.ENTERPRISE
    reference_framework: ReferenceFramework = ReferenceFramework.ARCHIMATE
    governance_mode: GovernanceMode = GovernanceMode.ADVISORY
    lifecycle_coverage: LifecycleCoverage = LifecycleCoverage.AS_IS
    time_horizon: TimeHorizon = TimeHorizon.CURRENT
    industry: Optional[str] = None
    created_at: Timestamp = field(default_factory=Timestamp.now)

    def with_governance_mode(self, mode: GovernanceMode) -> RepositoryMetadata:
        return RepositoryMetadata(
            repository_name=self.repository_name,
            organization_name=self.organization_name,
            owner=self.owner,
            architecture_scope=self.architecture_scope,
            reference_framework=self.reference_framework,
            governance_mode=mode,
            lifecycle_coverage=self.lifecycle_coverage,
            time_horizon=self.time_horizon,
            industry=self.industry,
            created_at=self.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        owner: Dict[str, Any] = {"userId": self.owner.user_id}
        if self.owner.display_name:
            owner["displayName"] = self.owner.display_name
        data: Dict[str, Any] = {
            "repositoryName": self.repository_name,
            "organizationName": self.organization_name,
            "architectureScope": self.architecture_scope.value,
            "referenceFramework": self.reference_framework.value,
            "governanceMode": self.governance_mode.value,
            "lifecycleCoverage": self.lifecycle_coverage.value,
            "timeHorizon": self.time_horizon.value,
            "owner": owner,
            "createdAt": self.created_at.to_iso(),
        }
        if self.industry:
            data["industry"] = self.industry
        return data
