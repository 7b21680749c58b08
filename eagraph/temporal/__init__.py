"""
Temporal Layer

Injectable time source and host-driven scheduled tasks. Nothing in the
engine reads wall-clock time except through a LogicalClock.
"""

from .clock import ClockExhausted, LogicalClock
from .scheduler import ScheduledTask

__all__ = ["ClockExhausted", "LogicalClock", "ScheduledTask"]
