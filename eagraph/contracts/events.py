"""
Event Contracts

Immutable records emitted by the engine: audit entries (hash-chained) and
repository change notifications.

INVARIANTS:
- Audit entries are never modified once created
- entry_hash is a pure function of the entry's content and previous_hash
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
import hashlib

from .base import Timestamp


# =============================================================================
# AUDIT
# =============================================================================

@dataclass(frozen=True)
class AuditEvent:
    """
    Immutable record of one applied mutation (or a commit summary).

    Entries form a hash chain: each entry hashes its own content together
    with the previous entry's hash, so any rewrite of history is detectable.
    """
    sequence: int
    actor: str
    timestamp: Timestamp
    action: str
    repository_name: str
    previous_hash: str
    entry_hash: str
    entity_id: Optional[str] = None
    details: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def compute_hash(
        sequence: int,
        actor: str,
        timestamp: Timestamp,
        action: str,
        repository_name: str,
        entity_id: Optional[str],
        details: Tuple[Tuple[str, str], ...],
        previous_hash: str
    ) -> str:
        detail_str = ",".join(f"{k}={v}" for k, v in details)
        hash_content = (
            f"{sequence}|"
            f"{actor}|"
            f"{timestamp.to_iso()}|"
            f"{action}|"
            f"{repository_name}|"
            f"{entity_id or ''}|"
            f"{detail_str}|"
            f"{previous_hash}"
        )
        return hashlib.sha256(hash_content.encode()).hexdigest()

    @staticmethod
    def create(
        sequence: int,
        actor: str,
        timestamp: Timestamp,
        action: str,
        repository_name: str,
        previous_hash: str,
        entity_id: Optional[str] = None,
        details: Tuple[Tuple[str, str], ...] = ()
    ) -> AuditEvent:
        """Factory for deterministic entry creation."""
        entry_hash = AuditEvent.compute_hash(
            sequence, actor, timestamp, action, repository_name,
            entity_id, details, previous_hash
        )
        return AuditEvent(
            sequence=sequence,
            actor=actor,
            timestamp=timestamp,
            action=action,
            repository_name=repository_name,
            previous_hash=previous_hash,
            entry_hash=entry_hash,
            entity_id=entity_id,
            details=details,
        )

    def recompute_hash(self) -> str:
        return AuditEvent.compute_hash(
            self.sequence, self.actor, self.timestamp, self.action,
            self.repository_name, self.entity_id, self.details,
            self.previous_hash
        )

    def detail(self, key: str) -> Optional[str]:
        for k, v in self.details:
            if k == key:
                return v
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "actor": self.actor,
            "timestamp": self.timestamp.to_iso(),
            "action": self.action,
            "repositoryName": self.repository_name,
            "entityId": self.entity_id,
            "details": dict(self.details),
            "previousHash": self.previous_hash,
            "entryHash": self.entry_hash,
        }


# =============================================================================
# REPOSITORY NOTIFICATIONS
# =============================================================================

@dataclass(frozen=True)
class RepositoryChanged:
    """Published after every swap of the live repository reference."""
    repository_name: str
    revision: int
    reason: str
    timestamp: Timestamp = field(default_factory=Timestamp.now)


@dataclass(frozen=True)
class RepositoryClosed:
    """Published once when a handle is closed."""
    repository_name: str
    revision: int
    timestamp: Timestamp = field(default_factory=Timestamp.now)


@dataclass(frozen=True)
class WorkspaceCommitted:
    """Published after a workspace's changes become visible."""
    workspace_id: str
    repository_name: str
    revision: int
    change_count: int
    actor: str
