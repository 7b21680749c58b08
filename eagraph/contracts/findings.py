"""
Validation Finding Contracts

Findings are DATA. Validation never raises; it returns an ordered tuple of
severity-tagged findings the caller can store, display or gate on.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Tuple

from .base import ErrorCode


class Severity(Enum):
    """Finding severity, most severe first."""
    BLOCKER = "BLOCKER"
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"

    @property
    def is_blocking(self) -> bool:
        return self in (Severity.BLOCKER, Severity.ERROR)


class ValidationStrictness(Enum):
    """How findings are treated once resolved by the permission chain."""
    BLOCKING = "blocking"
    ADVISORY = "advisory"


@dataclass(frozen=True)
class Finding:
    """Severity-tagged validation result about one subject."""
    severity: Severity
    subject_id: str
    check_id: str
    message: str
    code: ErrorCode

    @property
    def is_blocking(self) -> bool:
        return self.severity.is_blocking

    def with_severity(self, severity: Severity) -> Finding:
        return Finding(
            severity=severity,
            subject_id=self.subject_id,
            check_id=self.check_id,
            message=self.message,
            code=self.code,
        )


@dataclass(frozen=True)
class ValidationReport:
    """Ordered findings for one validation run."""
    findings: Tuple[Finding, ...] = field(default_factory=tuple)

    @property
    def blocking(self) -> Tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.is_blocking)

    @property
    def is_blocked(self) -> bool:
        return any(f.is_blocking for f in self.findings)

    def by_code(self, code: ErrorCode) -> Tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.code == code)

    def for_subject(self, subject_id: str) -> Tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.subject_id == subject_id)

    def summary(self) -> Dict[str, int]:
        counts: Dict[str, int] = {s.value: 0 for s in Severity}
        for f in self.findings:
            counts[f.severity.value] += 1
        counts["total"] = len(self.findings)
        return counts
