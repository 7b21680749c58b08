"""
Batch Import
============

Entry point for bulk collaborators (spreadsheet and CSV importers). Rows go
through the same checks as single-step `add_node`/`add_edge`, on a private
clone; the clone is published only if every row applied.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Tuple
import logging

from ..contracts.base import Error, ErrorCode, Result
from ..contracts.workspace import EntityKind
from . import SYSTEM_ACTOR
from .handle import RepositoryHandle


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowError:
    """One rejected batch row."""
    kind: EntityKind
    row: int
    error: Error
    entity_id: Optional[str] = None


@dataclass(frozen=True)
class BatchReport:
    """Outcome of one batch. `applied` is False whenever `errors` is non-empty."""
    applied: bool
    node_ids: Tuple[str, ...] = field(default_factory=tuple)
    edge_ids: Tuple[str, ...] = field(default_factory=tuple)
    errors: Tuple[RowError, ...] = field(default_factory=tuple)
    revision: Optional[int] = None


def _row_id(row: Mapping[str, Any]) -> Optional[str]:
    value = row.get("id")
    return value if isinstance(value, str) and value.strip() else None


def apply_batch(
    handle: RepositoryHandle,
    objects: Sequence[Mapping[str, Any]] = (),
    relationships: Sequence[Mapping[str, Any]] = (),
    actor: str = SYSTEM_ACTOR
) -> Result:
    """
    Apply object rows then relationship rows atomically.

    Every row is attempted so the caller sees all per-row errors; nothing
    is published unless all rows succeed. Returns Result with a BatchReport
    (also on row errors); the Result fails only when the handle cannot
    accept writes.
    """
    guard = handle.begin_commit()
    if guard.is_failure:
        return guard
    try:
        working = handle.current.clone()
        errors: List[RowError] = []
        node_ids: List[str] = []
        edge_ids: List[str] = []

        for index, row in enumerate(objects):
            if not isinstance(row, Mapping):
                errors.append(RowError(EntityKind.NODE, index, Error(
                    code=ErrorCode.INVALID_SNAPSHOT, message="Row must be an object")))
                continue
            result = working.add_node(
                row.get("type"), row.get("attributes"),
                node_id=_row_id(row), actor=actor,
            )
            if result.is_failure:
                errors.append(RowError(EntityKind.NODE, index, result.error, _row_id(row)))
            else:
                node_ids.append(result.value)

        for index, row in enumerate(relationships):
            if not isinstance(row, Mapping):
                errors.append(RowError(EntityKind.EDGE, index, Error(
                    code=ErrorCode.INVALID_SNAPSHOT, message="Row must be an object")))
                continue
            result = working.add_edge(
                row.get("fromId"), row.get("toId"), row.get("type"),
                row.get("attributes"), edge_id=_row_id(row), actor=actor,
            )
            if result.is_failure:
                errors.append(RowError(EntityKind.EDGE, index, result.error, _row_id(row)))
            else:
                edge_ids.append(result.value)

        if errors:
            logger.info(f"Batch rejected: {len(errors)} row error(s), nothing applied")
            return Result.success(BatchReport(applied=False, errors=tuple(errors)))

        if not node_ids and not edge_ids:
            return Result.success(BatchReport(applied=True, revision=handle.revision))

        swapped = handle.swap(working, "batch.import")
        handle.audit.append(
            actor, "batch.import", handle.repository_name,
            details=(("objects", str(len(node_ids))), ("relationships", str(len(edge_ids)))),
        )
        logger.info(f"Batch applied: {len(node_ids)} objects, {len(edge_ids)} relationships")
        return Result.success(BatchReport(
            applied=True,
            node_ids=tuple(node_ids),
            edge_ids=tuple(edge_ids),
            revision=swapped.value,
        ))
    finally:
        handle.end_commit()
