"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.
No behavior, no side effects, no dependencies.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- All types are frozen dataclasses for immutability guarantee
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Tuple
from enum import Enum, auto


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    No silent fallbacks - every error state is enumerated.
    """
    # Repository mutation errors
    DUPLICATE_ID = auto()
    UNKNOWN_TYPE = auto()
    NOT_FOUND = auto()
    DANGLING_ENDPOINT = auto()
    INVALID_ENDPOINT_TYPES = auto()
    INVALID_ATTRIBUTES = auto()

    # Validation errors (surface as Findings, not failures)
    MISSING_REQUIRED_ATTRIBUTE = auto()
    CARDINALITY_VIOLATION = auto()

    # Governance errors
    PERMISSION_DENIED = auto()
    GOVERNANCE_BLOCKED = auto()

    # Lifecycle errors
    INVALID_STATE_TRANSITION = auto()
    COMMIT_IN_PROGRESS = auto()
    REPOSITORY_CLOSED = auto()

    # History errors
    NOTHING_TO_UNDO = auto()
    NOTHING_TO_REDO = auto()

    # Interchange errors
    INVALID_SNAPSHOT = auto()
    INVALID_METADATA = auto()

    # Audit errors
    INTEGRITY_VIOLATION = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )

    def context_value(self, key: str) -> Optional[str]:
        for k, v in self.context:
            if k == key:
                return v
        return None


@dataclass(frozen=True)
class Result:
    """
    Generic result type for operations that can fail.
    Either contains a value OR an error, never both.
    """
    value: Optional[Any] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @staticmethod
    def success(value: Any = None) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)

    @staticmethod
    def fail(code: ErrorCode, message: str, **context: str) -> Result:
        """Shorthand for a failure carrying a fresh Error."""
        return Result.failure(Error(
            code=code,
            message=message,
            context=tuple((k, str(v)) for k, v in context.items())
        ))


# =============================================================================
# TEMPORAL TYPES (Immutable, explicit semantics)
# =============================================================================

@dataclass(frozen=True)
class Timestamp:
    """
    Immutable timestamp with explicit semantics.
    All timestamps are UTC, never local time.
    """
    value: datetime

    def __post_init__(self):
        # Ensure UTC timezone
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    @staticmethod
    def from_iso(iso_string: str) -> Timestamp:
        dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return Timestamp(value=dt)

    def to_iso(self) -> str:
        return self.value.isoformat()
