"""
Governance Contracts

Roles, permissions, context locks and the decision record returned by the
permission chain.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .findings import ValidationStrictness


class GovernanceMode(Enum):
    """Strict makes validation blocking; Advisory makes it guidance only."""
    STRICT = "Strict"
    ADVISORY = "Advisory"

    @staticmethod
    def parse(value: Union[str, "GovernanceMode", None]) -> Optional["GovernanceMode"]:
        if isinstance(value, GovernanceMode):
            return value
        if not isinstance(value, str):
            return None
        try:
            return GovernanceMode(value.strip())
        except ValueError:
            return None


class Permission(Enum):
    INITIALIZE_ENTERPRISE = "initializeEnterprise"
    CREATE_ELEMENT = "createElement"
    EDIT_ELEMENT = "editElement"
    DELETE_ELEMENT = "deleteElement"
    CREATE_RELATIONSHIP = "createRelationship"
    EDIT_RELATIONSHIP = "editRelationship"
    DELETE_RELATIONSHIP = "deleteRelationship"
    CREATE_BASELINE = "createBaseline"
    CREATE_VIEW = "createView"
    EDIT_VIEW = "editView"
    DELETE_BASELINE = "deleteBaseline"
    IMPORT = "import"
    BULK_EDIT = "bulkEdit"
    IMPACT_ANALYSIS = "impactAnalysis"
    MANAGE_RBAC = "manageRbac"
    CHANGE_GOVERNANCE_MODE = "changeGovernanceMode"
    READ = "read"


class Role(Enum):
    OWNER = "Owner"
    ARCHITECT = "Architect"
    VIEWER = "Viewer"


@dataclass(frozen=True)
class ContextLock:
    """
    Read-only gate applied to historical or snapshot views.

    A locked context denies every write regardless of role.
    """
    locked: bool = False
    reason: str = ""

    @staticmethod
    def unlocked() -> ContextLock:
        return ContextLock(locked=False)

    @staticmethod
    def read_only(reason: str) -> ContextLock:
        return ContextLock(locked=True, reason=reason)


@dataclass(frozen=True)
class AccessContext:
    """Who is acting, in which context, under which governance mode."""
    role: Role = Role.OWNER
    context_lock: ContextLock = ContextLock()
    governance_mode: GovernanceMode = GovernanceMode.ADVISORY


@dataclass(frozen=True)
class AccessDecision:
    """
    Outcome of one permission-chain evaluation.

    When denied, `failed_at` names the first gate that refused and
    `strictness` is None.
    """
    allowed: bool
    permission: Permission
    failed_at: Optional[str] = None
    reason: str = ""
    strictness: Optional[ValidationStrictness] = None

    @property
    def is_blocking(self) -> bool:
        return self.strictness is ValidationStrictness.BLOCKING
