"""
Observability & Audit Layer

RESPONSIBILITY: Append-only audit trail, publish-subscribe notifications
OUTPUTS: AuditEvent records, delivered notifications

WHAT THIS LAYER MUST NOT DO:
============================
- Modify system behavior
- Rewrite or delete past audit entries
- Let a failing subscriber break the publisher

BOUNDARY ENFORCEMENT:
=====================
- Audit entries are frozen and hash-chained
- Readers receive tuples, never the internal list
"""

from __future__ import annotations
from typing import Iterable, List, Optional, Tuple
import logging

from ..contracts.base import Error, ErrorCode, Timestamp
from ..contracts.events import AuditEvent
from ..temporal.clock import LogicalClock
from .events import EventBus


logger = logging.getLogger(__name__)


class AuditLog:
    """
    Append-only audit log.

    GUARANTEES:
    ===========
    1. NO updates - entries are immutable once written
    2. NO deletes - the log only grows
    3. Monotonic sequence numbers starting at 1
    4. Verifiable - hash chain ensures integrity
    """

    def __init__(self, clock: Optional[LogicalClock] = None):
        self._entries: List[AuditEvent] = []
        self._head_hash = ""
        self._clock = clock or LogicalClock.live()

    @property
    def head_hash(self) -> str:
        return self._head_hash

    @property
    def head_sequence(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def append(
        self,
        actor: str,
        action: str,
        repository_name: str,
        entity_id: Optional[str] = None,
        details: Iterable[Tuple[str, str]] = ()
    ) -> AuditEvent:
        """
        Append one entry. This is the ONLY write operation.
        """
        entry = AuditEvent.create(
            sequence=len(self._entries) + 1,
            actor=actor,
            timestamp=Timestamp(value=self._clock.now()),
            action=action,
            repository_name=repository_name,
            previous_hash=self._head_hash,
            entity_id=entity_id,
            details=tuple((k, str(v)) for k, v in details),
        )
        self._entries.append(entry)
        self._head_hash = entry.entry_hash
        logger.debug(f"Audit #{entry.sequence} {action} {entity_id or ''}".rstrip())
        return entry

    def entries(self) -> Tuple[AuditEvent, ...]:
        return tuple(self._entries)

    def since(self, sequence: int) -> Tuple[AuditEvent, ...]:
        """Entries with a sequence strictly greater than `sequence`."""
        return tuple(e for e in self._entries if e.sequence > sequence)

    def for_entity(self, entity_id: str) -> Tuple[AuditEvent, ...]:
        return tuple(e for e in self._entries if e.entity_id == entity_id)

    def verify_integrity(self) -> Tuple[bool, Optional[Error]]:
        """
        Verify hash chain integrity.

        Returns (is_valid, error) tuple.
        """
        expected_previous = ""

        for index, entry in enumerate(self._entries, start=1):
            if entry.sequence != index:
                return (False, Error(
                    code=ErrorCode.INTEGRITY_VIOLATION,
                    message=f"Sequence gap at position {index}",
                    context=(
                        ("expected_sequence", str(index)),
                        ("actual_sequence", str(entry.sequence)),
                    )
                ))
            if entry.previous_hash != expected_previous:
                return (False, Error(
                    code=ErrorCode.INTEGRITY_VIOLATION,
                    message=f"Hash chain broken at sequence {entry.sequence}",
                    context=(
                        ("expected_hash", expected_previous),
                        ("actual_hash", entry.previous_hash),
                    )
                ))
            if entry.recompute_hash() != entry.entry_hash:
                return (False, Error(
                    code=ErrorCode.INTEGRITY_VIOLATION,
                    message=f"Corrupt entry at sequence {entry.sequence}: hash mismatch",
                    context=(("sequence", str(entry.sequence)),)
                ))
            expected_previous = entry.entry_hash

        return (True, None)


__all__ = ["AuditLog", "EventBus"]
