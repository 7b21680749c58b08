"""
Scheduled Tasks
===============

Debounced work the host drives explicitly. The engine owns no timers or
threads: the host calls `tick()` from its own loop and the task decides,
from the injected clock, whether it is due.
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Callable, Optional
import logging

from .clock import LogicalClock


logger = logging.getLogger(__name__)


class ScheduledTask:
    """
    Debounced task.

    `mark_dirty()` arms the task; it becomes due once `delay_seconds` have
    passed since the most recent `mark_dirty()`. A failing action is logged
    and the task stays armed so the next tick retries it.
    """

    def __init__(
        self,
        name: str,
        action: Callable[[], Any],
        delay_seconds: float,
        clock: Optional[LogicalClock] = None
    ):
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")
        self._name = name
        self._action = action
        self._delay = delay_seconds
        self._clock = clock or LogicalClock.live()
        self._dirty_since: Optional[datetime] = None
        self._run_count = 0
        self._last_run: Optional[datetime] = None
        self._last_error: Optional[BaseException] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_armed(self) -> bool:
        return self._dirty_since is not None

    @property
    def run_count(self) -> int:
        return self._run_count

    @property
    def last_run(self) -> Optional[datetime]:
        return self._last_run

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._last_error

    def mark_dirty(self) -> None:
        self._dirty_since = self._clock.now()

    def cancel(self) -> None:
        self._dirty_since = None

    def is_due(self) -> bool:
        if self._dirty_since is None:
            return False
        elapsed = (self._clock.now() - self._dirty_since).total_seconds()
        return elapsed >= self._delay

    def tick(self) -> bool:
        """Run the action if due. Returns True when it ran successfully."""
        if not self.is_due():
            return False
        return self._run()

    def flush(self) -> bool:
        """Run the action now if armed, ignoring the debounce delay."""
        if not self.is_armed:
            return False
        return self._run()

    def _run(self) -> bool:
        try:
            self._action()
        except Exception as e:
            self._last_error = e
            logger.error(f"Scheduled task {self._name} failed: {e}", exc_info=True)
            return False
        self._dirty_since = None
        self._last_error = None
        self._last_run = self._clock.now()
        self._run_count += 1
        logger.debug(f"Scheduled task {self._name} ran ({self._run_count} runs)")
        return True
