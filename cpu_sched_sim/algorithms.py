from __future__ import annotations

import logging
import math
from statistics import mean
from typing import Callable, Dict, List, Optional, Sequence

from .metrics import compute_system_metrics
from .models import InvalidInputError, Process, ProcessState, ScheduleResult, SchedulerConfig, TraceEntry
from .waiting_set import KeyedHeap, RequeueRing, SortedWaitingSet

logger = logging.getLogger(__name__)


def _new_states(processes: Sequence[Process]) -> List[ProcessState]:
    """
    Validate the workload and build fresh run state for it.
    """
    if not processes:
        raise InvalidInputError("At least one process is required")

    seen: set[str] = set()
    for p in processes:
        if p.pid in seen:
            raise InvalidInputError(f"Duplicate process id '{p.pid}'")
        seen.add(p.pid)

    return [ProcessState.from_process(p) for p in processes]


def _by_arrival(states: List[ProcessState]) -> List[ProcessState]:
    # sorted() is stable, so equal arrivals keep input order.
    return sorted(states, key=lambda s: s.arrival_time)


def _admit_arrivals(states: List[ProcessState], now: int, admit: Callable[[ProcessState], None]) -> None:
    for state in states:
        if state.arrival_time <= now and not state.in_waiting_set and not state.finished:
            state.in_waiting_set = True
            admit(state)
            logger.debug("t=%d: admitted %s", now, state.pid)


def _next_arrival(states: List[ProcessState], now: int) -> int:
    """
    Time of the next arrival strictly after `now`. The CPU idles until then;
    this is equivalent to repeated one-unit idle ticks.
    """
    future = [s.arrival_time for s in states if not s.finished and s.arrival_time > now]
    assert future, f"t={now}: nothing ready and nothing left to arrive"
    nxt = min(future)
    logger.debug("t=%d: CPU idle until %d", now, nxt)
    return nxt


def _finish_result(algorithm: str, quantum: Optional[int], states, timeline) -> ScheduleResult:
    result = ScheduleResult(algorithm=algorithm, quantum=quantum, processes=states, timeline=timeline)
    compute_system_metrics(result)
    return result


def schedule_sjf_aging(processes: Sequence[Process], config: Optional[SchedulerConfig] = None) -> ScheduleResult:
    """
    Shortest Job First (non-preemptive) with priority aging.

    The waiting set is kept sorted by (burst time, aged priority); equal keys
    keep insertion order. Before every dispatch the waiting processes age:
    their effective priority becomes

        priority - waiting_time // aging_interval

    where lower values are more urgent.

    By default every process is admitted at time 0 regardless of its arrival
    time, so a process can be dispatched before it has arrived. Its waiting
    time is then clamped to 0 and its turnaround equals its burst. Set
    `enforce_arrival` in the config to admit processes only once they arrive.
    """
    config = config or SchedulerConfig()
    states = _new_states(processes)
    arrivals = _by_arrival(states)

    waiting: SortedWaitingSet[ProcessState] = SortedWaitingSet(
        key=lambda s: (s.burst_time, s.effective_priority)
    )

    time = 0
    timeline: List[TraceEntry] = []
    completed = 0

    if not config.enforce_arrival:
        # Input order, not arrival order: ties fall back to how the workload was given.
        for state in states:
            state.in_waiting_set = True
            waiting.insert(state)

    while completed < len(states):
        if config.enforce_arrival:
            _admit_arrivals(arrivals, time, waiting.insert)

        # Includes processes admitted just now.
        _age(waiting, time, config.aging_interval)

        if not waiting:
            time = _next_arrival(states, time)
            continue

        p = waiting.pop()
        p.waiting_time = max(0, time - p.arrival_time)
        p.turnaround_time = p.waiting_time + p.burst_time

        p.run_for(p.burst_time, time)
        timeline.append(TraceEntry(pid=p.pid, start_time=time, end_time=time + p.burst_time))
        logger.debug("t=%d: dispatched %s for %d (waited %d)", time, p.pid, p.burst_time, p.waiting_time)

        time += p.burst_time
        p.completion_time = time
        p.in_waiting_set = False
        completed += 1

    return _finish_result("SJF (aging)", None, states, timeline)


def _age(waiting: SortedWaitingSet[ProcessState], now: int, interval: int) -> None:
    for state in waiting:
        state.waiting_time = max(0, now - state.arrival_time)
        aged = state.priority - state.waiting_time // interval
        if aged != state.effective_priority:
            logger.debug("t=%d: %s aged to priority %d", now, state.pid, aged)
        state.effective_priority = aged
    waiting.resort()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def schedule_rr_adaptive(processes: Sequence[Process], config: Optional[SchedulerConfig] = None) -> ScheduleResult:
    """
    Round Robin whose quantum adapts to the work still queued.

    The quantum starts at `base_quantum`. After each slice, once newly
    arrived processes are queued, it becomes

        max(base_quantum, round(mean remaining time of the queued processes))

    and only then is the preempted process put back at the tail, so the new
    quantum applies from the next dispatch on.
    """
    config = config or SchedulerConfig()
    states = _new_states(processes)
    arrivals = _by_arrival(states)

    ready: RequeueRing[ProcessState] = RequeueRing()
    quantum = config.base_quantum

    time = 0
    timeline: List[TraceEntry] = []
    completed = 0

    while completed < len(states):
        _admit_arrivals(arrivals, time, ready.push)

        if not ready:
            time = _next_arrival(states, time)
            continue

        p = ready.pop()
        run_time = min(quantum, p.remaining_time)
        p.run_for(run_time, time)
        timeline.append(TraceEntry(pid=p.pid, start_time=time, end_time=time + run_time, quantum=quantum))
        logger.debug("t=%d: %s ran %d (quantum %d)", time, p.pid, run_time, quantum)

        time += run_time

        # Enqueue any new arrivals that appeared during this slice
        _admit_arrivals(arrivals, time, ready.push)

        if ready:
            new_quantum = max(config.base_quantum, _round_half_up(mean(s.remaining_time for s in ready)))
            if new_quantum != quantum:
                logger.debug("t=%d: quantum %d -> %d", time, quantum, new_quantum)
            quantum = new_quantum

        if p.remaining_time > 0:
            ready.push(p)
        else:
            p.finish(time)
            completed += 1
            logger.debug("t=%d: %s completed", time, p.pid)

    return _finish_result("Round Robin (adaptive)", config.base_quantum, states, timeline)


def _extend_trace(timeline: List[TraceEntry], pid: str, start: int, end: int) -> None:
    last = timeline[-1] if timeline else None
    if last is not None and last.pid == pid and last.end_time == start:
        last.end_time = end
    else:
        timeline.append(TraceEntry(pid=pid, start_time=start, end_time=end))


def schedule_priority_preemptive(
    processes: Sequence[Process], config: Optional[SchedulerConfig] = None
) -> ScheduleResult:
    """
    Preemptive static priority scheduling, one time unit per decision.

    Lower numeric priority value means higher priority. Equal priorities are
    ordered by arrival time, then input order, so they never preempt each
    other. Consecutive ticks of one process form a single trace entry.
    """
    states = _new_states(processes)
    arrivals = _by_arrival(states)
    position: Dict[str, int] = {s.pid: i for i, s in enumerate(states)}

    ready: KeyedHeap[ProcessState] = KeyedHeap(key=lambda s: (s.priority, s.arrival_time, position[s.pid]))

    time = 0
    timeline: List[TraceEntry] = []
    completed = 0

    while completed < len(states):
        _admit_arrivals(arrivals, time, ready.push)

        if not ready:
            time = _next_arrival(states, time)
            continue

        p = ready.pop()
        if timeline and timeline[-1].pid != p.pid and timeline[-1].end_time == time:
            logger.debug("t=%d: %s preempts %s", time, p.pid, timeline[-1].pid)
        p.run_for(1, time)
        _extend_trace(timeline, p.pid, time, time + 1)
        time += 1

        if p.remaining_time == 0:
            p.finish(time)
            completed += 1
            logger.debug("t=%d: %s completed", time, p.pid)
        else:
            ready.push(p)

    return _finish_result("Priority (preemptive)", None, states, timeline)


def schedule_sjn(processes: Sequence[Process], config: Optional[SchedulerConfig] = None) -> ScheduleResult:
    """
    Shortest Job Next (non-preemptive).

    At each decision point, among processes that have arrived and are not yet
    completed, choose the one with the smallest burst time (tie-breaker:
    earlier arrival, then input order). No aging.
    """
    states = _new_states(processes)
    position: Dict[str, int] = {s.pid: i for i, s in enumerate(states)}

    time = 0
    timeline: List[TraceEntry] = []
    completed = 0

    while completed < len(states):
        ready = [s for s in states if s.arrival_time <= time and not s.finished]

        if not ready:
            time = _next_arrival(states, time)
            continue

        p = min(ready, key=lambda s: (s.burst_time, s.arrival_time, position[s.pid]))

        p.run_for(p.burst_time, time)
        timeline.append(TraceEntry(pid=p.pid, start_time=time, end_time=time + p.burst_time))
        logger.debug("t=%d: dispatched %s for %d", time, p.pid, p.burst_time)

        time += p.burst_time
        p.finish(time)
        completed += 1

    return _finish_result("SJN (non-preemptive)", None, states, timeline)


ALGORITHMS = {
    "sjf-aging": schedule_sjf_aging,
    "rr": schedule_rr_adaptive,
    "priority": schedule_priority_preemptive,
    "sjn": schedule_sjn,
}


def run_algorithm(
    name: str, processes: Sequence[Process], config: Optional[SchedulerConfig] = None
) -> ScheduleResult:
    """
    Dispatch to the requested algorithm. Each call simulates on fresh state,
    so the same workload can be passed to several algorithms.
    """
    name = name.lower()
    if name not in ALGORITHMS:
        raise ValueError(f"Unknown algorithm '{name}' (choose from {', '.join(ALGORITHMS)})")

    func = ALGORITHMS[name]
    logger.info("Running %s on %d processes", name, len(processes))
    return func(processes, config=config)
