"""
History Stack
=============

Bounded undo/redo over published repository states.

INVARIANTS:
- Only frozen (published) repositories are stored
- A new publish clears the redo stack
- The oldest state is dropped once the limit is exceeded
"""

from __future__ import annotations
from typing import List
import logging

from ..contracts.base import ErrorCode, Result
from . import GraphRepository


logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50


class HistoryStack:
    """
    Undo/redo stack of prior repository states.

    The handle pushes the outgoing repository on every swap; `undo` and
    `redo` exchange the current repository for a stored one.
    """

    def __init__(self, limit: int = HISTORY_LIMIT):
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self._limit = limit
        self._past: List[GraphRepository] = []
        self._future: List[GraphRepository] = []

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    @property
    def undo_depth(self) -> int:
        return len(self._past)

    @property
    def redo_depth(self) -> int:
        return len(self._future)

    def push(self, previous: GraphRepository) -> None:
        """Record the state being replaced by a new publish."""
        self._past.append(previous)
        if len(self._past) > self._limit:
            dropped = len(self._past) - self._limit
            del self._past[:dropped]
            logger.debug(f"History limit {self._limit} reached, dropped {dropped} state(s)")
        self._future.clear()

    def undo(self, current: GraphRepository) -> Result:
        """Returns Result with the repository to restore."""
        if not self._past:
            return Result.fail(ErrorCode.NOTHING_TO_UNDO, "Nothing to undo")
        previous = self._past.pop()
        self._future.append(current)
        return Result.success(previous)

    def redo(self, current: GraphRepository) -> Result:
        if not self._future:
            return Result.fail(ErrorCode.NOTHING_TO_REDO, "Nothing to redo")
        following = self._future.pop()
        self._past.append(current)
        return Result.success(following)

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()
