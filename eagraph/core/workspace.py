"""
Workspace / Staging
===================

Isolated staging area for draft node and edge changes.

GUARANTEES:
===========
1. Staging performs no endpoint or cardinality checks
2. Re-staging an id edits the same Draft in place (last write wins per field)
3. Status is monotonic: DRAFT -> COMMITTED | DISCARDED
4. A workspace never touches the live repository
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union
import logging
import uuid

from ..contracts.base import ErrorCode, Result, Timestamp
from ..contracts.graph import Edge, Node, strip_bookkeeping
from ..contracts.metamodel import EdgeType, NodeType, node_schema
from ..contracts.workspace import (
    DraftStatus, EntityKind, ModelingState, WorkspaceMode, WorkspaceStatus
)
from ..storage import check_attributes
from ..temporal.clock import LogicalClock


logger = logging.getLogger(__name__)


def _type_name(value: Union[NodeType, EdgeType, str, None]) -> str:
    if isinstance(value, (NodeType, EdgeType)):
        return value.value
    return str(value).strip() if value is not None else ""


def generate_draft_id(type_name: str) -> str:
    node_type = NodeType.parse(type_name)
    if node_type is not None:
        return f"{node_schema(node_type).id_prefix}{uuid.uuid4()}"
    prefix = (type_name or "element").strip().lower()
    return f"{prefix}-{uuid.uuid4()}"


@dataclass
class Draft:
    """
    A staged node or edge edit.

    Mutable by design: the workspace edits drafts in place. `type_name`
    keeps the raw staged type so that unknown kinds surface as findings at
    commit time rather than failing while drafting.
    """
    id: str
    kind: EntityKind
    type_name: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    from_id: Optional[str] = None
    to_id: Optional[str] = None
    status: DraftStatus = DraftStatus.STAGED
    marked_for_removal: bool = False
    modeling_state: ModelingState = ModelingState.DRAFT
    staged_at: Optional[Timestamp] = None
    updated_at: Optional[Timestamp] = None

    @property
    def is_node(self) -> bool:
        return self.kind is EntityKind.NODE

    @property
    def is_edge(self) -> bool:
        return self.kind is EntityKind.EDGE

    @property
    def node_type(self) -> Optional[NodeType]:
        return NodeType.parse(self.type_name) if self.is_node else None

    @property
    def edge_type(self) -> Optional[EdgeType]:
        return EdgeType.parse(self.type_name) if self.is_edge else None


class Workspace:
    """
    Ordered collection of Drafts for one repository.

    Any mutation on a COMMITTED or DISCARDED workspace fails with
    INVALID_STATE_TRANSITION.
    """

    def __init__(
        self,
        repository_name: str,
        name: str = "",
        description: str = "",
        mode: WorkspaceMode = WorkspaceMode.STANDARD,
        created_by: str = "system",
        base_revision: int = 0,
        workspace_id: Optional[str] = None,
        clock: Optional[LogicalClock] = None
    ):
        self._clock = clock or LogicalClock.live()
        self.id = workspace_id or f"ws-{uuid.uuid4()}"
        self.repository_name = repository_name
        self.name = name or self.id
        self.description = description
        self.mode = mode
        self.created_by = created_by
        self.base_revision = base_revision
        self.created_at = self._now()
        self.updated_at = self.created_at
        self._status = WorkspaceStatus.DRAFT
        self._drafts: Dict[str, Draft] = {}

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def status(self) -> WorkspaceStatus:
        return self._status

    @property
    def is_iterative(self) -> bool:
        return self.mode is WorkspaceMode.ITERATIVE

    @property
    def drafts(self) -> Tuple[Draft, ...]:
        """All drafts in staging order."""
        return tuple(self._drafts.values())

    @property
    def node_drafts(self) -> Tuple[Draft, ...]:
        return tuple(d for d in self._drafts.values() if d.is_node)

    @property
    def edge_drafts(self) -> Tuple[Draft, ...]:
        return tuple(d for d in self._drafts.values() if d.is_edge)

    def get_draft(self, draft_id: str) -> Optional[Draft]:
        return self._drafts.get(draft_id)

    def has_review_ready_drafts(self) -> bool:
        return any(
            d.modeling_state.is_review_ready
            for d in self._drafts.values()
            if not d.marked_for_removal
        )

    def __len__(self) -> int:
        return len(self._drafts)

    def __contains__(self, draft_id: str) -> bool:
        return draft_id in self._drafts

    # -------------------------------------------------------------------------
    # Staging
    # -------------------------------------------------------------------------

    def stage_node(
        self,
        node_type: Union[NodeType, str],
        attributes: Optional[Mapping[str, Any]] = None,
        node_id: Optional[str] = None,
        modeling_state: Optional[ModelingState] = None
    ) -> Result:
        """Stage a node. Returns Result with the draft id."""
        guard = self._require_draft()
        if guard.is_failure:
            return guard

        valid = check_attributes(attributes)
        if valid.is_failure:
            return valid

        type_name = _type_name(node_type)
        draft_id = (node_id or "").strip() or generate_draft_id(type_name)
        existing = self._drafts.get(draft_id)
        if existing is not None and not existing.is_node:
            return Result.fail(ErrorCode.DUPLICATE_ID, f"{draft_id} is staged as a relationship", id=draft_id)

        if existing is None:
            self._drafts[draft_id] = Draft(
                id=draft_id,
                kind=EntityKind.NODE,
                type_name=type_name,
                attributes=strip_bookkeeping(attributes),
                modeling_state=modeling_state or ModelingState.DRAFT,
                staged_at=self._now(),
                updated_at=self._now(),
            )
        else:
            existing.type_name = type_name
            existing.attributes.update(strip_bookkeeping(attributes))
            if modeling_state is not None:
                existing.modeling_state = modeling_state
            existing.updated_at = self._now()
        self._touch()
        return Result.success(draft_id)

    def stage_edge(
        self,
        from_id: str,
        to_id: str,
        edge_type: Union[EdgeType, str],
        attributes: Optional[Mapping[str, Any]] = None,
        edge_id: Optional[str] = None,
        modeling_state: Optional[ModelingState] = None
    ) -> Result:
        """Stage an edge. Endpoints are not resolved until commit."""
        guard = self._require_draft()
        if guard.is_failure:
            return guard

        valid = check_attributes(attributes)
        if valid.is_failure:
            return valid

        draft_id = (edge_id or "").strip() or f"rel-{uuid.uuid4()}"
        existing = self._drafts.get(draft_id)
        if existing is not None and not existing.is_edge:
            return Result.fail(ErrorCode.DUPLICATE_ID, f"{draft_id} is staged as an element", id=draft_id)

        if existing is None:
            self._drafts[draft_id] = Draft(
                id=draft_id,
                kind=EntityKind.EDGE,
                type_name=_type_name(edge_type),
                attributes=strip_bookkeeping(attributes),
                from_id=from_id,
                to_id=to_id,
                modeling_state=modeling_state or ModelingState.DRAFT,
                staged_at=self._now(),
                updated_at=self._now(),
            )
        else:
            existing.type_name = _type_name(edge_type)
            existing.from_id = from_id
            existing.to_id = to_id
            existing.attributes.update(strip_bookkeeping(attributes))
            if modeling_state is not None:
                existing.modeling_state = modeling_state
            existing.updated_at = self._now()
        self._touch()
        return Result.success(draft_id)

    def checkout_node(self, node: Node) -> Result:
        """Stage an editable copy of a committed node."""
        guard = self._require_draft()
        if guard.is_failure:
            return guard
        if node.id in self._drafts:
            return Result.success(node.id)
        self._drafts[node.id] = Draft(
            id=node.id,
            kind=EntityKind.NODE,
            type_name=node.type.value,
            attributes=strip_bookkeeping(node.attributes),
            modeling_state=ModelingState.COMMITTED,
            staged_at=self._now(),
            updated_at=self._now(),
        )
        self._touch()
        return Result.success(node.id)

    def checkout_edge(self, edge: Edge) -> Result:
        guard = self._require_draft()
        if guard.is_failure:
            return guard
        if edge.id in self._drafts:
            return Result.success(edge.id)
        self._drafts[edge.id] = Draft(
            id=edge.id,
            kind=EntityKind.EDGE,
            type_name=edge.type.value,
            attributes=strip_bookkeeping(edge.attributes),
            from_id=edge.from_id,
            to_id=edge.to_id,
            modeling_state=ModelingState.COMMITTED,
            staged_at=self._now(),
            updated_at=self._now(),
        )
        self._touch()
        return Result.success(edge.id)

    def update_draft(
        self,
        draft_id: str,
        patch: Optional[Mapping[str, Any]] = None,
        from_id: Optional[str] = None,
        to_id: Optional[str] = None
    ) -> Result:
        """Overlay attribute values (and, for edges, re-point endpoints)."""
        found = self._require_existing(draft_id)
        if found.is_failure:
            return found
        valid = check_attributes(patch)
        if valid.is_failure:
            return valid
        draft: Draft = found.value
        draft.attributes.update(strip_bookkeeping(patch))
        if draft.is_edge:
            draft.from_id = from_id or draft.from_id
            draft.to_id = to_id or draft.to_id
        draft.updated_at = self._now()
        self._touch()
        return Result.success(draft_id)

    def set_modeling_state(self, draft_id: str, state: ModelingState) -> Result:
        found = self._require_existing(draft_id)
        if found.is_failure:
            return found
        found.value.modeling_state = state
        found.value.updated_at = self._now()
        self._touch()
        return Result.success(draft_id)

    def mark_for_removal(self, draft_id: str) -> Result:
        """Tombstone a draft. The draft itself stays so intent can be reversed."""
        found = self._require_existing(draft_id)
        if found.is_failure:
            return found
        found.value.marked_for_removal = True
        found.value.updated_at = self._now()
        self._touch()
        return Result.success(draft_id)

    def undo_removal(self, draft_id: str) -> Result:
        found = self._require_existing(draft_id)
        if found.is_failure:
            return found
        found.value.marked_for_removal = False
        found.value.updated_at = self._now()
        self._touch()
        return Result.success(draft_id)

    # -------------------------------------------------------------------------
    # Terminal transitions
    # -------------------------------------------------------------------------

    def discard(self) -> Result:
        """Drop every draft. Irreversible; the repository is never touched."""
        guard = self._require_draft()
        if guard.is_failure:
            return guard
        for draft in self._drafts.values():
            draft.status = DraftStatus.DISCARDED
        count = len(self._drafts)
        self._drafts.clear()
        self._status = WorkspaceStatus.DISCARDED
        self._touch()
        logger.info(f"Workspace {self.id} discarded ({count} drafts)")
        return Result.success(count)

    def mark_committed(self) -> Result:
        """Called by the commit coordinator once changes are live."""
        guard = self._require_draft()
        if guard.is_failure:
            return guard
        for draft in self._drafts.values():
            draft.status = DraftStatus.COMMITTED
            if not draft.marked_for_removal:
                draft.modeling_state = ModelingState.COMMITTED
        self._status = WorkspaceStatus.COMMITTED
        self._touch()
        return Result.success()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _now(self) -> Timestamp:
        return Timestamp(value=self._clock.now())

    def _touch(self) -> None:
        self.updated_at = self._now()

    def _require_draft(self) -> Result:
        if self._status is not WorkspaceStatus.DRAFT:
            return Result.fail(
                ErrorCode.INVALID_STATE_TRANSITION,
                f"Workspace {self.id} is {self._status.value}",
                workspace_id=self.id,
                status=self._status.value,
            )
        return Result.success()

    def _require_existing(self, draft_id: str) -> Result:
        guard = self._require_draft()
        if guard.is_failure:
            return guard
        draft = self._drafts.get(draft_id)
        if draft is None:
            return Result.fail(ErrorCode.NOT_FOUND, f"No draft with id {draft_id}", id=draft_id)
        return Result.success(draft)

    def __repr__(self) -> str:
        return f"Workspace({self.id}, {self._status.value}, {len(self._drafts)} drafts)"
