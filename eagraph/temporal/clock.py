"""
Logical Clock
=============

Injectable clock so that bookkeeping timestamps, audit entries and
scheduled tasks are deterministic under test and replay.

MODES:
- LIVE: reads system time; records ticks for replay only when asked to
- REPLAY: returns a pre-recorded tick sequence
- MANUAL: returns a held time that only moves when advanced
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, List, Optional

from ..contracts.base import Timestamp


class ClockExhausted(Exception):
    """Raised when a replay clock runs out of ticks."""
    pass


class ClockMode(Enum):
    LIVE = "live"
    REPLAY = "replay"
    MANUAL = "manual"


@dataclass
class LogicalClock:
    """
    Injectable clock for deterministic execution.

    All time reads inside the engine go through `now()`.
    """
    _ticks: List[datetime] = field(default_factory=list)
    _current_index: int = 0
    _mode: ClockMode = ClockMode.LIVE
    _held: Optional[datetime] = None
    _record: bool = False

    def now(self) -> datetime:
        if self._mode is ClockMode.LIVE:
            current = datetime.now(timezone.utc)
            if self._record:
                self._ticks.append(current)
            self._current_index += 1
            return current
        if self._mode is ClockMode.MANUAL:
            self._current_index += 1
            return self._held
        if self._current_index >= len(self._ticks):
            raise ClockExhausted(
                f"Replay clock exhausted at index {self._current_index}. "
                f"Original execution had {len(self._ticks)} ticks."
            )
        tick = self._ticks[self._current_index]
        self._current_index += 1
        return tick

    def timestamp(self) -> Timestamp:
        return Timestamp(value=self.now())

    def advance(self, seconds: float) -> datetime:
        """Move a MANUAL clock forward."""
        if self._mode is not ClockMode.MANUAL:
            raise ValueError("Only a manual clock can be advanced")
        self._held = self._held + timedelta(seconds=seconds)
        return self._held

    def tick_count(self) -> int:
        return self._current_index

    def recorded_ticks(self) -> List[datetime]:
        return list(self._ticks)

    @property
    def mode(self) -> ClockMode:
        return self._mode

    @classmethod
    def live(cls, record: bool = False) -> LogicalClock:
        return cls(_mode=ClockMode.LIVE, _record=record)

    @classmethod
    def replay(cls, ticks: Iterable[datetime]) -> LogicalClock:
        return cls(_ticks=list(ticks), _current_index=0, _mode=ClockMode.REPLAY)

    @classmethod
    def manual(cls, start: Optional[datetime] = None) -> LogicalClock:
        start = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        return cls(_mode=ClockMode.MANUAL, _held=start)

    def __repr__(self) -> str:
        return f"LogicalClock({self._mode.name}, ticks={len(self._ticks)}, index={self._current_index})"
