"""
Repository Handle
=================

Explicit, injected owner of the live repository reference.

GUARANTEES:
===========
1. `swap()` is the only externally visible state transition
2. Readers of `current` always see a complete, frozen repository
3. At most one commit is in flight per handle
4. Every operation on a closed handle fails with REPOSITORY_CLOSED
"""

from __future__ import annotations
from typing import Any, Callable, Mapping, Optional, Union
import logging

from ..contracts.base import ErrorCode, Result
from ..contracts.events import RepositoryChanged, RepositoryClosed
from ..contracts.metadata import RepositoryMetadata
from ..contracts.metamodel import EdgeType, NodeType
from ..observability import AuditLog
from ..observability.events import EventBus
from ..temporal.clock import LogicalClock
from . import SYSTEM_ACTOR, GraphRepository, UpdateMode
from .history import HISTORY_LIMIT, HistoryStack


logger = logging.getLogger(__name__)


class RepositoryHandle:
    """
    Open/close lifecycle around one live GraphRepository.

    Single-step edits run clone -> apply -> swap so readers never observe a
    half-applied change.
    """

    def __init__(
        self,
        bus: Optional[EventBus] = None,
        audit: Optional[AuditLog] = None,
        clock: Optional[LogicalClock] = None,
        history_limit: int = HISTORY_LIMIT
    ):
        self._clock = clock or LogicalClock.live()
        self._bus = bus or EventBus()
        self._audit = audit or AuditLog(clock=self._clock)
        self._history = HistoryStack(limit=history_limit)
        self._metadata: Optional[RepositoryMetadata] = None
        self._current: Optional[GraphRepository] = None
        self._revision = 0
        self._commit_in_progress = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(
        self,
        metadata: RepositoryMetadata,
        repository: Optional[GraphRepository] = None
    ) -> Result:
        if self._current is not None:
            return Result.fail(
                ErrorCode.INVALID_STATE_TRANSITION,
                f"Handle already open for {self._metadata.repository_name}",
            )
        initial = repository.clone() if repository is not None else GraphRepository(clock=self._clock)
        self._metadata = metadata
        self._current = initial.freeze()
        self._revision = 0
        self._history.clear()
        logger.info(
            f"Opened repository {metadata.repository_name} "
            f"({initial.node_count} nodes, {initial.edge_count} edges)"
        )
        self._bus.emit(RepositoryChanged(
            repository_name=metadata.repository_name,
            revision=self._revision,
            reason="open",
        ))
        return Result.success(self)

    def close(self) -> Result:
        guard = self._require_open()
        if guard.is_failure:
            return guard
        name = self._metadata.repository_name
        revision = self._revision
        self._current = None
        self._history.clear()
        self._commit_in_progress = False
        logger.info(f"Closed repository {name} at revision {revision}")
        self._bus.emit(RepositoryClosed(repository_name=name, revision=revision))
        return Result.success()

    def __enter__(self) -> RepositoryHandle:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.is_open:
            self.close()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._current is not None

    @property
    def current(self) -> Optional[GraphRepository]:
        """The live, frozen repository (None when closed)."""
        return self._current

    @property
    def metadata(self) -> Optional[RepositoryMetadata]:
        return self._metadata

    @property
    def repository_name(self) -> str:
        return self._metadata.repository_name if self._metadata else ""

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def history(self) -> HistoryStack:
        return self._history

    @property
    def audit(self) -> AuditLog:
        return self._audit

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def clock(self) -> LogicalClock:
        return self._clock

    @property
    def commit_in_progress(self) -> bool:
        return self._commit_in_progress

    def set_metadata(self, metadata: RepositoryMetadata) -> Result:
        guard = self._require_open()
        if guard.is_failure:
            return guard
        if metadata.repository_name != self._metadata.repository_name:
            return Result.fail(
                ErrorCode.INVALID_METADATA,
                "Repository name is immutable",
                field="repositoryName",
            )
        self._metadata = metadata
        return Result.success(metadata)

    # -------------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------------

    def swap(self, next_repository: GraphRepository, reason: str) -> Result:
        """
        Publish `next_repository` as the live graph.

        The outgoing repository goes onto the undo stack. Returns Result with
        the new revision.
        """
        guard = self._require_open()
        if guard.is_failure:
            return guard
        self._history.push(self._current)
        self._publish(next_repository, reason)
        return Result.success(self._revision)

    def begin_commit(self) -> Result:
        guard = self._require_writable()
        if guard.is_failure:
            return guard
        self._commit_in_progress = True
        return Result.success()

    def end_commit(self) -> None:
        self._commit_in_progress = False

    def undo(self, actor: str = SYSTEM_ACTOR) -> Result:
        guard = self._require_writable()
        if guard.is_failure:
            return guard
        result = self._history.undo(self._current)
        if result.is_failure:
            return result
        self._publish(result.value, "undo")
        self._audit.append(actor, "undo", self.repository_name,
                           details=(("revision", str(self._revision)),))
        return Result.success(self._revision)

    def redo(self, actor: str = SYSTEM_ACTOR) -> Result:
        guard = self._require_writable()
        if guard.is_failure:
            return guard
        result = self._history.redo(self._current)
        if result.is_failure:
            return result
        self._publish(result.value, "redo")
        self._audit.append(actor, "redo", self.repository_name,
                           details=(("revision", str(self._revision)),))
        return Result.success(self._revision)

    # -------------------------------------------------------------------------
    # Single-step edits
    # -------------------------------------------------------------------------

    def add_node(
        self,
        node_type: Union[NodeType, str],
        attributes: Optional[Mapping[str, Any]] = None,
        node_id: Optional[str] = None,
        actor: str = SYSTEM_ACTOR
    ) -> Result:
        return self._edit(
            "node.add", actor,
            lambda repo: repo.add_node(node_type, attributes, node_id=node_id, actor=actor),
        )

    def add_edge(
        self,
        from_id: str,
        to_id: str,
        edge_type: Union[EdgeType, str],
        attributes: Optional[Mapping[str, Any]] = None,
        edge_id: Optional[str] = None,
        actor: str = SYSTEM_ACTOR
    ) -> Result:
        return self._edit(
            "edge.add", actor,
            lambda repo: repo.add_edge(from_id, to_id, edge_type, attributes, edge_id=edge_id, actor=actor),
        )

    def update_attributes(
        self,
        entity_id: str,
        patch: Optional[Mapping[str, Any]],
        mode: UpdateMode = UpdateMode.MERGE,
        actor: str = SYSTEM_ACTOR
    ) -> Result:
        action = "edge.modify" if self._current is not None and self._current.has_edge(entity_id) else "node.modify"
        return self._edit(
            action, actor,
            lambda repo: repo.update_attributes(entity_id, patch, mode=mode, actor=actor),
        )

    def delete_node(self, node_id: str, actor: str = SYSTEM_ACTOR) -> Result:
        return self._edit(
            "node.remove", actor,
            lambda repo: repo.delete_node(node_id),
            entity_id=node_id,
        )

    def delete_edge(self, edge_id: str, actor: str = SYSTEM_ACTOR) -> Result:
        return self._edit(
            "edge.remove", actor,
            lambda repo: repo.delete_edge(edge_id),
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _edit(
        self,
        action: str,
        actor: str,
        apply: Callable[[GraphRepository], Result],
        entity_id: Optional[str] = None
    ) -> Result:
        guard = self._require_writable()
        if guard.is_failure:
            return guard
        working = self._current.clone()
        result = apply(working)
        if result.is_failure:
            logger.debug(f"{action} rejected: {result.error.message}")
            return result
        self.swap(working, action)
        details = ()
        if isinstance(result.value, tuple):
            details = (("cascadedEdges", str(len(result.value))),)
        self._audit.append(
            actor, action, self.repository_name,
            entity_id=entity_id or result.value,
            details=details,
        )
        return result

    def _publish(self, repository: GraphRepository, reason: str) -> None:
        self._current = repository.freeze()
        self._revision += 1
        logger.info(f"{self.repository_name}: revision {self._revision} ({reason})")
        self._bus.emit(RepositoryChanged(
            repository_name=self.repository_name,
            revision=self._revision,
            reason=reason,
        ))

    def _require_open(self) -> Result:
        if self._current is None:
            return Result.fail(ErrorCode.REPOSITORY_CLOSED, "Repository handle is closed")
        return Result.success()

    def _require_writable(self) -> Result:
        guard = self._require_open()
        if guard.is_failure:
            return guard
        if self._commit_in_progress:
            return Result.fail(ErrorCode.COMMIT_IN_PROGRESS, "Another commit is in flight")
        return Result.success()
