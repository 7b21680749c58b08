"""
Permission Chain
================

Ordered, short-circuiting authorization gate:

    1. context lock   -> deny, failed_at="context-lock"
    2. role permission -> deny, failed_at="role-permission"
    3. governance mode -> allow, Strict=blocking / Advisory=advisory

The order is load-bearing: a locked context is read-only for every role,
whatever the role's permissions or the governance mode. Owners do not
bypass context locks or validation.
"""

from __future__ import annotations
from typing import Dict, FrozenSet, Iterable, Optional, Tuple
import logging

from ..contracts.base import ErrorCode, Result
from ..contracts.findings import ValidationStrictness
from ..contracts.governance import (
    AccessContext, AccessDecision, ContextLock, GovernanceMode, Permission, Role
)


logger = logging.getLogger(__name__)

CONTEXT_LOCK_GATE = "context-lock"
ROLE_PERMISSION_GATE = "role-permission"

CONTEXT_LOCKED_REASON = "This context is read-only; changes are not allowed here."

P = Permission

ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.OWNER: frozenset(Permission),
    Role.ARCHITECT: frozenset({
        P.CREATE_ELEMENT, P.EDIT_ELEMENT,
        P.CREATE_RELATIONSHIP, P.EDIT_RELATIONSHIP,
        P.CREATE_VIEW, P.EDIT_VIEW,
        P.READ,
    }),
    Role.VIEWER: frozenset({P.IMPACT_ANALYSIS, P.READ}),
}


def has_permission(role: Role, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def resolve_strictness(mode: Optional[GovernanceMode]) -> ValidationStrictness:
    """Strict -> blocking; anything else (default Advisory) -> advisory."""
    if mode is GovernanceMode.STRICT:
        return ValidationStrictness.BLOCKING
    return ValidationStrictness.ADVISORY


def enforce(
    context_lock: ContextLock,
    role: Role,
    permission: Permission,
    governance_mode: Optional[GovernanceMode] = GovernanceMode.ADVISORY
) -> AccessDecision:
    """
    Evaluate the chain for one permission. Later gates are never consulted
    once an earlier one denies.
    """
    if context_lock.locked:
        return AccessDecision(
            allowed=False,
            permission=permission,
            failed_at=CONTEXT_LOCK_GATE,
            reason=context_lock.reason or CONTEXT_LOCKED_REASON,
        )

    if not has_permission(role, permission):
        return AccessDecision(
            allowed=False,
            permission=permission,
            failed_at=ROLE_PERMISSION_GATE,
            reason=f"Role {role.value} lacks permission {permission.value}",
        )

    return AccessDecision(
        allowed=True,
        permission=permission,
        strictness=resolve_strictness(governance_mode),
    )


class PermissionChain:
    """
    Applies `enforce` for an AccessContext across one or more permissions.
    """

    def __init__(self, context: Optional[AccessContext] = None):
        self._context = context or AccessContext()

    @property
    def context(self) -> AccessContext:
        return self._context

    def check(self, permission: Permission) -> AccessDecision:
        return enforce(
            self._context.context_lock,
            self._context.role,
            permission,
            self._context.governance_mode,
        )

    def check_all(self, permissions: Iterable[Permission]) -> Tuple[AccessDecision, ...]:
        """Decisions in the given order, stopping at the first denial."""
        decisions = []
        for permission in permissions:
            decision = self.check(permission)
            decisions.append(decision)
            if not decision.allowed:
                break
        return tuple(decisions)

    def require(self, *permissions: Permission) -> Result:
        """
        Result with the last AccessDecision, or PERMISSION_DENIED carrying
        `failed_at` and `permission` context.
        """
        decisions = self.check_all(permissions or (Permission.READ,))
        last = decisions[-1]
        if not last.allowed:
            logger.info(
                f"Permission {last.permission.value} denied at {last.failed_at} "
                f"for role {self._context.role.value}"
            )
            return Result.fail(
                ErrorCode.PERMISSION_DENIED,
                last.reason,
                failed_at=last.failed_at,
                permission=last.permission.value,
            )
        return Result.success(last)
