"""
Single-CPU scheduling simulator.

Provides shortest-job-first with priority aging, round robin with an
adaptive quantum, preemptive priority and shortest-job-next policies, the
metrics derived from their runs, and a command-line interface.
"""

from .algorithms import ALGORITHMS, run_algorithm
from .metrics import summarize
from .models import InvalidInputError, Process, ScheduleResult, SchedulerConfig

__all__ = [
    "ALGORITHMS",
    "InvalidInputError",
    "Process",
    "ScheduleResult",
    "SchedulerConfig",
    "cli",
    "run_algorithm",
    "summarize",
]
