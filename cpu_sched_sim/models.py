from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


class InvalidInputError(ValueError):
    """
    Raised when a workload or configuration cannot be simulated.
    """


@dataclass(frozen=True)
class Process:
    """
    Immutable facts about one process. Every simulation run builds its own
    ProcessState objects from these, so a workload can be reused freely.
    """

    pid: str
    arrival_time: int
    burst_time: int
    priority: int = 0

    def __post_init__(self) -> None:
        if self.arrival_time < 0:
            raise InvalidInputError(f"{self.pid}: arrival_time cannot be negative ({self.arrival_time})")
        if self.burst_time <= 0:
            raise InvalidInputError(f"{self.pid}: burst_time must be positive ({self.burst_time})")


@dataclass(eq=False)
class ProcessState:
    """
    Mutable run-time state of a process during a single simulation run.
    """

    process: Process
    remaining_time: int
    waiting_time: int = 0
    turnaround_time: int = 0
    completion_time: Optional[int] = None
    start_time: Optional[int] = None
    # Admitted and not finished; stays set while the process is on the CPU.
    in_waiting_set: bool = False
    effective_priority: int = 0

    @classmethod
    def from_process(cls, process: Process) -> "ProcessState":
        return cls(
            process=process,
            remaining_time=process.burst_time,
            effective_priority=process.priority,
        )

    @property
    def pid(self) -> str:
        return self.process.pid

    @property
    def arrival_time(self) -> int:
        return self.process.arrival_time

    @property
    def burst_time(self) -> int:
        return self.process.burst_time

    @property
    def priority(self) -> int:
        return self.process.priority

    @property
    def finished(self) -> bool:
        return self.completion_time is not None

    def run_for(self, duration: int, now: int) -> None:
        """
        Consume `duration` units of CPU starting at `now`.
        """
        assert 0 < duration <= self.remaining_time, (
            f"{self.pid}: cannot run {duration} with {self.remaining_time} remaining"
        )
        if self.start_time is None:
            self.start_time = now
        self.remaining_time -= duration

    def finish(self, now: int) -> None:
        assert self.remaining_time == 0, f"{self.pid}: finished with {self.remaining_time} remaining"
        self.completion_time = now
        self.in_waiting_set = False
        self.turnaround_time = now - self.arrival_time
        self.waiting_time = self.turnaround_time - self.burst_time


@dataclass
class TraceEntry:
    """
    One contiguous slice of execution for a process in the Gantt chart.
    """

    pid: str
    start_time: int
    end_time: int
    quantum: Optional[int] = None

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class SchedulerConfig:
    base_quantum: int = 5
    aging_interval: int = 10
    enforce_arrival: bool = False

    def __post_init__(self) -> None:
        if self.base_quantum <= 0:
            raise InvalidInputError(f"base_quantum must be positive ({self.base_quantum})")
        if self.aging_interval <= 0:
            raise InvalidInputError(f"aging_interval must be positive ({self.aging_interval})")


@dataclass
class SystemMetrics:
    process_count: int
    total_waiting: int
    avg_waiting: float
    total_turnaround: int
    avg_turnaround: float
    max_starvation: int
    cpu_busy_time: int
    idle_time: int
    makespan: int
    cpu_utilization: float
    throughput: float


@dataclass
class ScheduleResult:
    algorithm: str
    quantum: Optional[int]
    processes: List[ProcessState] = field(default_factory=list)
    timeline: List[TraceEntry] = field(default_factory=list)
    system: Optional[SystemMetrics] = None
