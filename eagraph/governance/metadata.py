"""
Repository Metadata Validation

Turns an untrusted mapping (snapshot header, API payload) into a
RepositoryMetadata record. Every missing or unknown field is reported as
INVALID_METADATA naming the field.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Mapping, Optional, Type

from ..contracts.base import ErrorCode, Result, Timestamp
from ..contracts.governance import GovernanceMode
from ..contracts.metadata import (
    ArchitectureScope, LifecycleCoverage, ReferenceFramework,
    RepositoryMetadata, RepositoryOwner, TimeHorizon
)
from ..temporal.clock import LogicalClock


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _choice(enum_type: Type[Enum], value: Any) -> Optional[Enum]:
    if isinstance(value, enum_type):
        return value
    for member in enum_type:
        if member.value == value:
            return member
    return None


def _invalid(label: str, field_name: str) -> Result:
    return Result.fail(
        ErrorCode.INVALID_METADATA,
        f"{label} is required.",
        field=field_name,
    )


def validate_metadata(raw: Any, clock: Optional[LogicalClock] = None) -> Result:
    """
    Validate raw repository metadata.

    Returns Result with a RepositoryMetadata value. `createdAt` defaults to
    the clock's current time when absent.
    """
    if isinstance(raw, RepositoryMetadata):
        return Result.success(raw)
    if not isinstance(raw, Mapping):
        return Result.fail(ErrorCode.INVALID_METADATA, "Metadata must be an object.")

    repository_name = _text(raw.get("repositoryName"))
    if not repository_name:
        return _invalid("Repository Name", "repositoryName")

    organization_name = _text(raw.get("organizationName"))
    if not organization_name:
        return _invalid("Organization Name", "organizationName")

    scope = _choice(ArchitectureScope, raw.get("architectureScope"))
    if scope is None:
        return _invalid("Architecture Scope", "architectureScope")

    framework = _choice(ReferenceFramework, raw.get("referenceFramework"))
    if framework is None:
        return _invalid("Reference Framework", "referenceFramework")

    governance_mode = GovernanceMode.parse(raw.get("governanceMode"))
    if governance_mode is None:
        return _invalid("Governance Mode", "governanceMode")

    coverage = _choice(LifecycleCoverage, raw.get("lifecycleCoverage"))
    if coverage is None:
        return _invalid("Lifecycle Coverage", "lifecycleCoverage")

    horizon = _choice(TimeHorizon, raw.get("timeHorizon"))
    if horizon is None:
        return _invalid("Time Horizon", "timeHorizon")

    owner_raw = raw.get("owner")
    owner_raw = owner_raw if isinstance(owner_raw, Mapping) else {}
    owner_id = _text(owner_raw.get("userId"))
    if not owner_id:
        return Result.fail(
            ErrorCode.INVALID_METADATA,
            "Owner assignment is required.",
            field="owner",
        )

    created_raw = _text(raw.get("createdAt"))
    if created_raw:
        try:
            created_at = Timestamp.from_iso(created_raw)
        except ValueError:
            return Result.fail(
                ErrorCode.INVALID_METADATA,
                f"createdAt is not an ISO-8601 timestamp: {created_raw}",
                field="createdAt",
            )
    else:
        created_at = Timestamp(value=(clock or LogicalClock.live()).now())

    return Result.success(RepositoryMetadata(
        repository_name=repository_name,
        organization_name=organization_name,
        owner=RepositoryOwner(
            user_id=owner_id,
            display_name=_text(owner_raw.get("displayName")) or None,
        ),
        architecture_scope=scope,
        reference_framework=framework,
        governance_mode=governance_mode,
        lifecycle_coverage=coverage,
        time_horizon=horizon,
        industry=_text(raw.get("industry")) or None,
        created_at=created_at,
    ))
