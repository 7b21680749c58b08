"""
Baselines
=========

Named, read-only point-in-time snapshots of the whole repository
(nodes and edges), independent of any view or layout.

INVARIANTS:
- A baseline never changes after creation
- Viewing a baseline is a context-locked (read-only) context
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import logging
import uuid

from ..contracts.base import ErrorCode, Result, Timestamp
from ..contracts.governance import AccessContext, ContextLock, Permission
from ..contracts.graph import Snapshot
from ..governance.access import PermissionChain
from . import GraphRepository
from .handle import RepositoryHandle


logger = logging.getLogger(__name__)


def generate_baseline_id() -> str:
    return f"baseline-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Baseline:
    id: str
    name: str
    created_at: Timestamp
    source_revision: int
    snapshot: Snapshot
    description: Optional[str] = None
    created_by: Optional[str] = None

    @property
    def context_lock(self) -> ContextLock:
        return ContextLock.read_only(f"Baseline '{self.name}' is read-only.")

    def as_repository(self) -> GraphRepository:
        """Frozen repository view of the captured state."""
        result = GraphRepository.from_snapshot(self.snapshot)
        return result.value.freeze()


class BaselineStore:
    """
    In-memory baseline registry, in creation order.
    """

    def __init__(self):
        self._baselines: List[Baseline] = []
        self._index: Dict[str, Baseline] = {}

    def create(
        self,
        handle: RepositoryHandle,
        name: str,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
        baseline_id: Optional[str] = None,
        access: Optional[AccessContext] = None
    ) -> Result:
        """
        Capture the handle's live repository. Requires createBaseline.
        """
        allowed = PermissionChain(access).require(Permission.CREATE_BASELINE)
        if allowed.is_failure:
            return allowed
        if not handle.is_open:
            return Result.fail(ErrorCode.REPOSITORY_CLOSED, "Repository handle is closed")

        created_at = Timestamp(value=handle.clock.now())
        baseline_id = (baseline_id or "").strip() or generate_baseline_id()
        if baseline_id in self._index:
            return Result.fail(ErrorCode.DUPLICATE_ID, f"Duplicate baseline id: {baseline_id}", id=baseline_id)

        baseline = Baseline(
            id=baseline_id,
            name=(name or "").strip() or f"Baseline {created_at.to_iso()}",
            description=(description or "").strip() or None,
            created_at=created_at,
            created_by=(created_by or "").strip() or None,
            source_revision=handle.revision,
            snapshot=handle.current.snapshot(revision=handle.revision),
        )
        self._baselines.append(baseline)
        self._index[baseline.id] = baseline
        logger.info(f"Baseline {baseline.id} captured at revision {baseline.source_revision}")
        return Result.success(baseline)

    def list(self) -> Tuple[Baseline, ...]:
        return tuple(self._baselines)

    def get(self, baseline_id: str) -> Optional[Baseline]:
        return self._index.get((baseline_id or "").strip())

    def __len__(self) -> int:
        return len(self._baselines)
