"""
Workspace and Draft Contracts

Lifecycle enumerations for staged changes and the classification vocabulary
shared by the diff engine and the commit coordinator.
"""

from __future__ import annotations
from enum import Enum


class WorkspaceStatus(Enum):
    """
    Workspace lifecycle.

    Monotonic: DRAFT -> COMMITTED or DRAFT -> DISCARDED, never back.
    """
    DRAFT = "DRAFT"
    COMMITTED = "COMMITTED"
    DISCARDED = "DISCARDED"

    @property
    def is_terminal(self) -> bool:
        return self is not WorkspaceStatus.DRAFT


class WorkspaceMode(Enum):
    """ITERATIVE workspaces receive advisory-only validation."""
    STANDARD = "STANDARD"
    ITERATIVE = "ITERATIVE"


class DraftStatus(Enum):
    STAGED = "STAGED"
    COMMITTED = "COMMITTED"
    DISCARDED = "DISCARDED"


class ModelingState(Enum):
    """Modeling lifecycle of a staged element."""
    DRAFT = "DRAFT"
    COMMITTED = "COMMITTED"
    REVIEW_READY = "REVIEW_READY"
    APPROVED = "APPROVED"

    @property
    def is_review_ready(self) -> bool:
        return self in (ModelingState.REVIEW_READY, ModelingState.APPROVED)


class EntityKind(Enum):
    NODE = "node"
    EDGE = "edge"


class ChangeKind(Enum):
    """Classification of a draft against its committed counterpart."""
    ADD = "ADD"
    MODIFY = "MODIFY"
    REMOVE = "REMOVE"
    NOOP = "NO-OP"
