"""
Commit Coordinator
==================

Orchestrates permission -> diff -> validate -> clone-apply -> swap -> audit
for one workspace, all-or-nothing.

GUARANTEES:
===========
1. A blocking finding aborts with zero mutation; the full findings list is
   returned
2. Any apply failure discards the clone; repository and workspace are
   untouched
3. At most one commit is in flight per handle (single writer)
4. Observers only ever see the pre-commit or post-commit graph
5. An all-NO-OP workspace commits with zero mutations and zero audit events

APPLY ORDER (fixed):
====================
1. REMOVE nodes (incident edges cascade)
2. MODIFY / ADD nodes
3. MODIFY / ADD / REMOVE edges; edges ending on a removed node are skipped,
   edges re-pointed away from one are re-created under the same id
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import logging

from ..contracts.base import Error, ErrorCode, Result
from ..contracts.events import AuditEvent, WorkspaceCommitted
from ..contracts.findings import Finding
from ..contracts.governance import AccessContext
from ..contracts.workspace import ChangeKind, EntityKind, WorkspaceStatus
from ..governance.access import PermissionChain
from ..storage import GraphRepository, UpdateMode
from ..storage.handle import RepositoryHandle
from ..validation import ValidationConfig, ValidationContext, ValidationPipeline
from .diff import Change, ChangeSet, build_proposed_graph, diff_workspace
from .workspace import Workspace


logger = logging.getLogger(__name__)

COMMIT_SUMMARY_ACTION = "workspace.commit"


@dataclass(frozen=True)
class CommitOutcome:
    """
    Result of one commit attempt.

    `committed` is True only when the workspace reached COMMITTED. On
    refusal `error` carries the code (GOVERNANCE_BLOCKED, PERMISSION_DENIED,
    an apply failure, ...) and `findings` the complete validation output.
    """
    committed: bool
    workspace_id: str
    findings: Tuple[Finding, ...] = field(default_factory=tuple)
    change_set: Optional[ChangeSet] = None
    audit_events: Tuple[AuditEvent, ...] = field(default_factory=tuple)
    revision: Optional[int] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.committed

    @property
    def blocking_findings(self) -> Tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.is_blocking)

    @property
    def failed_at(self) -> Optional[str]:
        return self.error.context_value("failed_at") if self.error else None


@dataclass(frozen=True)
class _Applied:
    change: Change
    cascaded: Tuple[str, ...] = ()


class CommitCoordinator:
    """
    Merges a workspace into the handle's live repository.
    """

    def __init__(self, validation: Optional[ValidationPipeline] = None):
        self._validation = validation or ValidationPipeline(ValidationConfig())

    @property
    def validation(self) -> ValidationPipeline:
        return self._validation

    def commit(
        self,
        workspace: Workspace,
        handle: RepositoryHandle,
        actor: str,
        access: Optional[AccessContext] = None
    ) -> CommitOutcome:
        if workspace.status is not WorkspaceStatus.DRAFT:
            return self._refused(workspace, Error(
                code=ErrorCode.INVALID_STATE_TRANSITION,
                message=f"Workspace {workspace.id} is {workspace.status.value}",
            ))
        if handle.is_open and workspace.repository_name != handle.repository_name:
            return self._refused(workspace, Error(
                code=ErrorCode.INVALID_STATE_TRANSITION,
                message=(
                    f"Workspace {workspace.id} belongs to {workspace.repository_name}, "
                    f"not {handle.repository_name}"
                ),
            ))

        started = handle.begin_commit()
        if started.is_failure:
            return self._refused(workspace, started.error)
        try:
            return self._commit_locked(workspace, handle, actor, access)
        finally:
            handle.end_commit()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _commit_locked(
        self,
        workspace: Workspace,
        handle: RepositoryHandle,
        actor: str,
        access: Optional[AccessContext]
    ) -> CommitOutcome:
        metadata = handle.metadata
        access = access or AccessContext(governance_mode=metadata.governance_mode)
        live = handle.current

        change_set = diff_workspace(workspace, live)

        allowed = PermissionChain(access).require(*change_set.required_permissions())
        if allowed.is_failure:
            return self._refused(workspace, allowed.error, change_set=change_set)
        decision = allowed.value

        proposed = build_proposed_graph(live, change_set)
        report = self._validation.validate(change_set, proposed, ValidationContext(
            strictness=decision.strictness,
            workspace_mode=workspace.mode,
            lifecycle_coverage=metadata.lifecycle_coverage,
            review_ready=workspace.has_review_ready_drafts(),
        ))
        if report.is_blocked:
            blocking = report.blocking
            logger.info(
                f"Commit of {workspace.id} blocked by {len(blocking)} finding(s)"
            )
            return self._refused(workspace, Error(
                code=ErrorCode.GOVERNANCE_BLOCKED,
                message=f"Commit blocked by {len(blocking)} finding(s)",
                context=(("blocking", str(len(blocking))),),
            ), findings=report.findings, change_set=change_set)

        if change_set.is_empty:
            workspace.mark_committed()
            logger.info(f"Workspace {workspace.id} committed with no changes")
            return CommitOutcome(
                committed=True,
                workspace_id=workspace.id,
                findings=report.findings,
                change_set=change_set,
                revision=handle.revision,
            )

        working = live.clone()
        applied = self._apply(working, change_set, actor)
        if applied.is_failure:
            logger.warning(f"Commit of {workspace.id} aborted: {applied.error.message}")
            return self._refused(
                workspace, applied.error, findings=report.findings, change_set=change_set
            )

        swapped = handle.swap(working, f"commit {workspace.id}")
        events = self._audit(handle, workspace, actor, applied.value, change_set)
        workspace.mark_committed()

        logger.info(
            f"Workspace {workspace.id} committed by {actor}: "
            f"{len(applied.value)} change(s), revision {swapped.value}"
        )
        handle.bus.emit(WorkspaceCommitted(
            workspace_id=workspace.id,
            repository_name=handle.repository_name,
            revision=swapped.value,
            change_count=len(applied.value),
            actor=actor,
        ))
        return CommitOutcome(
            committed=True,
            workspace_id=workspace.id,
            findings=report.findings,
            change_set=change_set,
            audit_events=events,
            revision=swapped.value,
        )

    def _apply(self, working: GraphRepository, change_set: ChangeSet, actor: str) -> Result:
        """
        Apply every change to `working` in the fixed order.

        Returns Result with the applied changes, or the first failure.
        """
        applied: List[_Applied] = []
        removed = change_set.removed_node_ids

        for change in change_set.of(EntityKind.NODE, ChangeKind.REMOVE):
            result = working.delete_node(change.entity_id)
            if result.is_failure:
                return self._apply_failure(result, change)
            applied.append(_Applied(change, cascaded=result.value))

        for change in change_set.of(EntityKind.NODE, ChangeKind.ADD, ChangeKind.MODIFY):
            if change.change is ChangeKind.ADD:
                result = working.add_node(
                    change.type_name, change.attributes, node_id=change.entity_id, actor=actor
                )
            elif change.previous_type != change.type_name:
                result = Result.fail(
                    ErrorCode.INVALID_STATE_TRANSITION,
                    f"Element type cannot change ({change.previous_type} -> {change.type_name})",
                )
            else:
                result = working.update_attributes(
                    change.entity_id, change.attributes, mode=UpdateMode.REPLACE, actor=actor
                )
            if result.is_failure:
                return self._apply_failure(result, change)
            applied.append(_Applied(change))

        for change in change_set.of(EntityKind.EDGE):
            if change.from_id in removed or change.to_id in removed:
                continue
            # True when a node removal above already cascaded this edge away.
            cascaded = change.previous_from_id in removed or change.previous_to_id in removed
            if change.change is ChangeKind.REMOVE and cascaded:
                continue
            if change.change is ChangeKind.ADD or cascaded:
                result = working.add_edge(
                    change.from_id, change.to_id, change.type_name, change.attributes,
                    edge_id=change.entity_id, actor=actor,
                )
            elif change.change is ChangeKind.MODIFY:
                result = working.update_edge(
                    change.entity_id, change.type_name, change.from_id, change.to_id,
                    change.attributes, actor=actor,
                )
            else:
                result = working.delete_edge(change.entity_id)
            if result.is_failure:
                return self._apply_failure(result, change)
            applied.append(_Applied(change))

        return Result.success(tuple(applied))

    @staticmethod
    def _apply_failure(result: Result, change: Change) -> Result:
        return Result.failure(
            result.error
            .with_context("entity_id", change.entity_id)
            .with_context("change", change.change.value)
        )

    @staticmethod
    def _audit(
        handle: RepositoryHandle,
        workspace: Workspace,
        actor: str,
        applied: Tuple[_Applied, ...],
        change_set: ChangeSet
    ) -> Tuple[AuditEvent, ...]:
        audit = handle.audit
        name = handle.repository_name
        events = []
        for item in applied:
            details = [("workspace", workspace.id), ("type", item.change.type_name)]
            if item.cascaded:
                details.append(("cascadedEdges", str(len(item.cascaded))))
            events.append(audit.append(
                actor, item.change.action, name,
                entity_id=item.change.entity_id,
                details=details,
            ))
        counts = change_set.counts()
        events.append(audit.append(
            actor, COMMIT_SUMMARY_ACTION, name,
            entity_id=workspace.id,
            details=[
                ("applied", str(len(applied))),
                ("added", str(counts[ChangeKind.ADD.value])),
                ("modified", str(counts[ChangeKind.MODIFY.value])),
                ("removed", str(counts[ChangeKind.REMOVE.value])),
                ("revision", str(handle.revision)),
            ],
        ))
        return tuple(events)

    @staticmethod
    def _refused(
        workspace: Workspace,
        error: Error,
        findings: Tuple[Finding, ...] = (),
        change_set: Optional[ChangeSet] = None
    ) -> CommitOutcome:
        return CommitOutcome(
            committed=False,
            workspace_id=workspace.id,
            findings=findings,
            change_set=change_set,
            error=error,
        )
