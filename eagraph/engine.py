"""
Engine Orchestration Module

This module provides the unified interface for coordinating the
repository, staging, validation, governance and audit layers.

DESIGN PRINCIPLES:
==================
1. Layers communicate ONLY through contracts
2. Every write is gated by the permission chain before it reaches the handle
3. All state transitions go through RepositoryHandle.swap
4. No hidden timers; autosave runs when the host calls tick()
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Union
import logging
import os

from .contracts.base import ErrorCode, Result
from .contracts.events import RepositoryChanged
from .contracts.governance import AccessContext, GovernanceMode, Permission
from .contracts.metadata import RepositoryMetadata
from .contracts.metamodel import EdgeType, NodeType
from .contracts.workspace import WorkspaceMode
from .core.commit import CommitCoordinator, CommitOutcome
from .core.topology import GraphTopology
from .core.workspace import Workspace
from .governance import PermissionChain, validate_metadata
from .observability import AuditLog
from .observability.events import EventBus
from .storage import SYSTEM_ACTOR, GraphRepository, UpdateMode
from .storage.baselines import BaselineStore
from .storage.batch import apply_batch
from .storage.handle import RepositoryHandle
from .storage.history import HISTORY_LIMIT
from .storage.serialization import dumps_snapshot, export_snapshot, load_snapshot
from .temporal.clock import LogicalClock
from .temporal.scheduler import ScheduledTask
from .validation import ValidationConfig, ValidationPipeline


logger = logging.getLogger(__name__)

AUTOSAVE_TASK = "autosave"

_TRUE = {"1", "true", "yes", "on", "required"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class HistoryConfig:
    limit: int = HISTORY_LIMIT


@dataclass
class AutosaveConfig:
    """Debounce delay for autosave; None disables it."""
    delay_seconds: Optional[float] = None

    @property
    def enabled(self) -> bool:
        return self.delay_seconds is not None


@dataclass
class EngineConfig:
    """Unified configuration for the engine."""
    validation: ValidationConfig = None
    history: HistoryConfig = None
    autosave: AutosaveConfig = None

    def __post_init__(self):
        self.validation = self.validation or ValidationConfig()
        self.history = self.history or HistoryConfig()
        self.autosave = self.autosave or AutosaveConfig()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> EngineConfig:
        """
        Build a config from EAGRAPH_* environment variables.

        EAGRAPH_HISTORY_LIMIT     undo depth (int)
        EAGRAPH_LIFECYCLE_TAGS    required / off / auto
        EAGRAPH_AUTOSAVE_SECONDS  autosave debounce delay (float)
        """
        env = os.environ if environ is None else environ
        config = cls()

        limit = env.get("EAGRAPH_HISTORY_LIMIT", "").strip()
        if limit:
            try:
                config.history.limit = max(1, int(limit))
            except ValueError:
                logger.warning(f"Ignoring EAGRAPH_HISTORY_LIMIT={limit!r}")

        tags = env.get("EAGRAPH_LIFECYCLE_TAGS", "").strip().lower()
        if tags in _TRUE:
            config.validation.require_lifecycle_tag = True
        elif tags in _FALSE:
            config.validation.require_lifecycle_tag = False

        delay = env.get("EAGRAPH_AUTOSAVE_SECONDS", "").strip()
        if delay:
            try:
                config.autosave.delay_seconds = max(0.0, float(delay))
            except ValueError:
                logger.warning(f"Ignoring EAGRAPH_AUTOSAVE_SECONDS={delay!r}")
        return config


class ArchitectureEngine:
    """
    Unified entry point for one architecture repository.

    LAYER FLOW:
    ===========
    1. Governance: PermissionChain gates every write
    2. Staging: Workspace collects Drafts
    3. Commit: diff -> validate -> clone-apply -> swap -> audit
    4. Storage: RepositoryHandle publishes frozen repositories
    5. Observability: AuditLog + EventBus record all activity

    `access` is the default AccessContext; when omitted, writes run as
    Owner under the repository's governance mode.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        clock: Optional[LogicalClock] = None,
        access: Optional[AccessContext] = None,
        autosave_sink: Optional[Callable[[str], Any]] = None
    ):
        self._config = config or EngineConfig()
        self._clock = clock or LogicalClock.live()
        self._access = access
        self._bus = EventBus()
        self._handle = RepositoryHandle(
            bus=self._bus,
            audit=AuditLog(clock=self._clock),
            clock=self._clock,
            history_limit=self._config.history.limit,
        )
        self._coordinator = CommitCoordinator(ValidationPipeline(self._config.validation))
        self._baselines = BaselineStore()

        self._autosave: Optional[ScheduledTask] = None
        self._autosave_sink = autosave_sink
        if self._config.autosave.enabled and autosave_sink is not None:
            self._autosave = ScheduledTask(
                AUTOSAVE_TASK,
                self._write_autosave,
                self._config.autosave.delay_seconds,
                clock=self._clock,
            )
            self._bus.subscribe(RepositoryChanged, self._on_repository_changed)

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def handle(self) -> RepositoryHandle:
        return self._handle

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def audit(self) -> AuditLog:
        return self._handle.audit

    @property
    def baselines(self) -> BaselineStore:
        return self._baselines

    @property
    def current(self) -> Optional[GraphRepository]:
        return self._handle.current

    @property
    def metadata(self) -> Optional[RepositoryMetadata]:
        return self._handle.metadata

    @property
    def revision(self) -> int:
        return self._handle.revision

    @property
    def autosave_task(self) -> Optional[ScheduledTask]:
        return self._autosave

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def open(
        self,
        metadata: Union[RepositoryMetadata, Mapping[str, Any]],
        repository: Optional[GraphRepository] = None
    ) -> Result:
        if not isinstance(metadata, RepositoryMetadata):
            validated = validate_metadata(metadata, clock=self._clock)
            if validated.is_failure:
                return validated
            metadata = validated.value
        result = self._handle.open(metadata, repository)
        if result.is_success and self._autosave is not None:
            self._autosave.cancel()
        return result

    def open_snapshot(self, data: Union[str, bytes, Mapping[str, Any]]) -> Result:
        loaded = load_snapshot(data, clock=self._clock)
        if loaded.is_failure:
            return loaded
        return self.open(loaded.value.metadata, loaded.value.repository)

    def close(self) -> Result:
        if self._autosave is not None:
            self._autosave.flush()
            self._autosave.cancel()
        return self._handle.close()

    def tick(self) -> bool:
        """Drive scheduled tasks. Returns True when autosave ran."""
        if self._autosave is None:
            return False
        return self._autosave.tick()

    # =========================================================================
    # STAGING AND COMMIT
    # =========================================================================

    def open_workspace(
        self,
        name: str = "",
        mode: WorkspaceMode = WorkspaceMode.STANDARD,
        created_by: str = SYSTEM_ACTOR,
        description: str = ""
    ) -> Result:
        if not self._handle.is_open:
            return Result.fail(ErrorCode.REPOSITORY_CLOSED, "Repository handle is closed")
        return Result.success(Workspace(
            repository_name=self._handle.repository_name,
            name=name,
            description=description,
            mode=mode,
            created_by=created_by,
            base_revision=self._handle.revision,
            clock=self._clock,
        ))

    def commit(
        self,
        workspace: Workspace,
        actor: str = SYSTEM_ACTOR,
        access: Optional[AccessContext] = None
    ) -> CommitOutcome:
        return self._coordinator.commit(
            workspace, self._handle, actor, access=self._resolve_access(access)
        )

    def discard(self, workspace: Workspace) -> Result:
        return workspace.discard()

    # =========================================================================
    # SINGLE-STEP EDITS
    # =========================================================================

    def add_node(
        self,
        node_type: Union[NodeType, str],
        attributes: Optional[Mapping[str, Any]] = None,
        node_id: Optional[str] = None,
        actor: str = SYSTEM_ACTOR,
        access: Optional[AccessContext] = None
    ) -> Result:
        allowed = self._require(access, Permission.CREATE_ELEMENT)
        if allowed.is_failure:
            return allowed
        return self._handle.add_node(node_type, attributes, node_id=node_id, actor=actor)

    def add_edge(
        self,
        from_id: str,
        to_id: str,
        edge_type: Union[EdgeType, str],
        attributes: Optional[Mapping[str, Any]] = None,
        edge_id: Optional[str] = None,
        actor: str = SYSTEM_ACTOR,
        access: Optional[AccessContext] = None
    ) -> Result:
        allowed = self._require(access, Permission.CREATE_RELATIONSHIP)
        if allowed.is_failure:
            return allowed
        return self._handle.add_edge(from_id, to_id, edge_type, attributes, edge_id=edge_id, actor=actor)

    def update_attributes(
        self,
        entity_id: str,
        patch: Optional[Mapping[str, Any]],
        mode: UpdateMode = UpdateMode.MERGE,
        actor: str = SYSTEM_ACTOR,
        access: Optional[AccessContext] = None
    ) -> Result:
        current = self._handle.current
        is_edge = current is not None and current.has_edge(entity_id)
        permission = Permission.EDIT_RELATIONSHIP if is_edge else Permission.EDIT_ELEMENT
        allowed = self._require(access, permission)
        if allowed.is_failure:
            return allowed
        return self._handle.update_attributes(entity_id, patch, mode=mode, actor=actor)

    def delete_node(
        self,
        node_id: str,
        actor: str = SYSTEM_ACTOR,
        access: Optional[AccessContext] = None
    ) -> Result:
        allowed = self._require(access, Permission.DELETE_ELEMENT)
        if allowed.is_failure:
            return allowed
        return self._handle.delete_node(node_id, actor=actor)

    def delete_edge(
        self,
        edge_id: str,
        actor: str = SYSTEM_ACTOR,
        access: Optional[AccessContext] = None
    ) -> Result:
        allowed = self._require(access, Permission.DELETE_RELATIONSHIP)
        if allowed.is_failure:
            return allowed
        return self._handle.delete_edge(edge_id, actor=actor)

    def undo(self, actor: str = SYSTEM_ACTOR, access: Optional[AccessContext] = None) -> Result:
        allowed = self._require(access, Permission.EDIT_ELEMENT)
        if allowed.is_failure:
            return allowed
        return self._handle.undo(actor)

    def redo(self, actor: str = SYSTEM_ACTOR, access: Optional[AccessContext] = None) -> Result:
        allowed = self._require(access, Permission.EDIT_ELEMENT)
        if allowed.is_failure:
            return allowed
        return self._handle.redo(actor)

    def set_governance_mode(
        self,
        mode: Union[GovernanceMode, str],
        actor: str = SYSTEM_ACTOR,
        access: Optional[AccessContext] = None
    ) -> Result:
        if not self._handle.is_open:
            return Result.fail(ErrorCode.REPOSITORY_CLOSED, "Repository handle is closed")
        parsed = GovernanceMode.parse(mode)
        if parsed is None:
            return Result.fail(
                ErrorCode.INVALID_METADATA,
                "Governance Mode must be Strict or Advisory.",
                field="governanceMode",
            )
        allowed = self._require(access, Permission.CHANGE_GOVERNANCE_MODE)
        if allowed.is_failure:
            return allowed
        result = self._handle.set_metadata(self._handle.metadata.with_governance_mode(parsed))
        if result.is_success:
            self._handle.audit.append(
                actor, "governance.mode", self._handle.repository_name,
                details=(("mode", parsed.value),),
            )
        return result

    # =========================================================================
    # IMPORT / EXPORT / BASELINES
    # =========================================================================

    def apply_batch(
        self,
        objects: Sequence[Mapping[str, Any]] = (),
        relationships: Sequence[Mapping[str, Any]] = (),
        actor: str = SYSTEM_ACTOR,
        access: Optional[AccessContext] = None
    ) -> Result:
        allowed = self._require(access, Permission.IMPORT)
        if allowed.is_failure:
            return allowed
        return apply_batch(self._handle, objects, relationships, actor=actor)

    def export_snapshot(self) -> Result:
        if not self._handle.is_open:
            return Result.fail(ErrorCode.REPOSITORY_CLOSED, "Repository handle is closed")
        return Result.success(export_snapshot(
            self._handle.current, self._handle.metadata, self._clock.timestamp()
        ))

    def dumps_snapshot(self) -> Result:
        if not self._handle.is_open:
            return Result.fail(ErrorCode.REPOSITORY_CLOSED, "Repository handle is closed")
        return Result.success(dumps_snapshot(
            self._handle.current, self._handle.metadata, self._clock.timestamp()
        ))

    def create_baseline(
        self,
        name: str,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
        access: Optional[AccessContext] = None
    ) -> Result:
        return self._baselines.create(
            self._handle, name,
            description=description,
            created_by=created_by,
            access=self._resolve_access(access),
        )

    # =========================================================================
    # ANALYSIS
    # =========================================================================

    def impact_analysis(
        self,
        node_id: str,
        max_depth: Optional[int] = None,
        access: Optional[AccessContext] = None
    ) -> Result:
        """Downstream impact of changing `node_id` over dependency edges."""
        if not self._handle.is_open:
            return Result.fail(ErrorCode.REPOSITORY_CLOSED, "Repository handle is closed")
        allowed = self._require(access, Permission.IMPACT_ANALYSIS)
        if allowed.is_failure:
            return allowed
        report = GraphTopology.from_repository(self._handle.current).impact_of(node_id, max_depth=max_depth)
        if report is None:
            return Result.fail(ErrorCode.NOT_FOUND, f"Element not found: {node_id}", id=node_id)
        return Result.success(report)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _resolve_access(self, access: Optional[AccessContext]) -> AccessContext:
        if access is not None:
            return access
        if self._access is not None:
            return self._access
        metadata = self._handle.metadata
        mode = metadata.governance_mode if metadata else GovernanceMode.ADVISORY
        return AccessContext(governance_mode=mode)

    def _require(self, access: Optional[AccessContext], permission: Permission) -> Result:
        return PermissionChain(self._resolve_access(access)).require(permission)

    def _on_repository_changed(self, event: RepositoryChanged) -> None:
        if event.reason != "open":
            self._autosave.mark_dirty()

    def _write_autosave(self) -> None:
        if not self._handle.is_open:
            return
        text = dumps_snapshot(self._handle.current, self._handle.metadata, self._clock.timestamp())
        self._autosave_sink(text)
        logger.debug(f"Autosaved {self._handle.repository_name} at revision {self._handle.revision}")
