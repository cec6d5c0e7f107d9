from __future__ import annotations

from typing import List, Sequence, Tuple

from .models import ProcessState, ScheduleResult, SystemMetrics, TraceEntry


def summarize(processes: Sequence[ProcessState], timeline: Sequence[TraceEntry]) -> SystemMetrics:
    """
    Reduce final per-process times and the execution trace into system metrics.

    CPU utilization is busy time over makespan, where the makespan runs from
    time 0 to the end of the last trace entry, so idle gaps before and between
    slices count against it. An empty run yields all-zero metrics.
    """
    n = len(processes)
    cpu_busy_time = sum(entry.duration for entry in timeline)
    makespan = max((entry.end_time for entry in timeline), default=0)

    if n == 0:
        return SystemMetrics(
            process_count=0,
            total_waiting=0,
            avg_waiting=0.0,
            total_turnaround=0,
            avg_turnaround=0.0,
            max_starvation=0,
            cpu_busy_time=cpu_busy_time,
            idle_time=makespan - cpu_busy_time,
            makespan=makespan,
            cpu_utilization=0.0,
            throughput=0.0,
        )

    total_waiting = sum(p.waiting_time for p in processes)
    total_turnaround = sum(p.turnaround_time for p in processes)

    return SystemMetrics(
        process_count=n,
        total_waiting=total_waiting,
        avg_waiting=total_waiting / n,
        total_turnaround=total_turnaround,
        avg_turnaround=total_turnaround / n,
        max_starvation=max(p.waiting_time for p in processes),
        cpu_busy_time=cpu_busy_time,
        idle_time=makespan - cpu_busy_time,
        makespan=makespan,
        cpu_utilization=cpu_busy_time / makespan if makespan > 0 else 0.0,
        throughput=n / makespan if makespan > 0 else 0.0,
    )


def compute_system_metrics(result: ScheduleResult) -> SystemMetrics:
    system = summarize(result.processes, result.timeline)
    result.system = system
    return system


def summarize_process_metrics(processes: Sequence[ProcessState]) -> dict:
    """
    Return averages of the key per-process metrics for quick comparison.
    """
    if not processes:
        return {"avg_waiting": 0.0, "avg_turnaround": 0.0, "max_starvation": 0}

    n = len(processes)
    return {
        "avg_waiting": sum(p.waiting_time for p in processes) / n,
        "avg_turnaround": sum(p.turnaround_time for p in processes) / n,
        "max_starvation": max(p.waiting_time for p in processes),
    }


def trace_pairs(timeline: Sequence[TraceEntry]) -> List[Tuple[str, int]]:
    """Ordered (label, duration) pairs, one per execution slice."""
    return [(entry.pid, entry.duration) for entry in sorted(timeline, key=lambda e: e.start_time)]
