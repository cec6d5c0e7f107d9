import pytest

from cpu_sched_sim.algorithms import (
    ALGORITHMS,
    run_algorithm,
    schedule_priority_preemptive,
    schedule_rr_adaptive,
    schedule_sjf_aging,
    schedule_sjn,
)
from cpu_sched_sim.metrics import trace_pairs
from cpu_sched_sim.models import InvalidInputError, Process, ProcessState, SchedulerConfig
from cpu_sched_sim.workload_io import sample_workload

GATED = SchedulerConfig(enforce_arrival=True)


def _procs():
    return [
        Process("P1", arrival_time=0, burst_time=5, priority=2),
        Process("P2", arrival_time=2, burst_time=3, priority=1),
        Process("P3", arrival_time=4, burst_time=1, priority=3),
    ]


def _mixed():
    return [
        Process("A", arrival_time=3, burst_time=7, priority=4),
        Process("B", arrival_time=0, burst_time=2, priority=2),
        Process("C", arrival_time=1, burst_time=9, priority=1),
        Process("D", arrival_time=1, burst_time=2, priority=2),
        Process("E", arrival_time=20, burst_time=4, priority=0),
        Process("F", arrival_time=6, burst_time=12, priority=3),
    ]


def _by_pid(result):
    return {p.pid: p for p in result.processes}


WORKLOADS = [_procs, _mixed, lambda: sample_workload("rr"), lambda: sample_workload("sjf")]


@pytest.mark.parametrize("name", list(ALGORITHMS))
@pytest.mark.parametrize("workload", WORKLOADS)
def test_turnaround_is_waiting_plus_burst(name, workload):
    res = run_algorithm(name, workload())
    for p in res.processes:
        assert p.remaining_time == 0
        assert p.completion_time is not None
        assert p.turnaround_time == p.waiting_time + p.burst_time
        assert p.waiting_time >= 0


@pytest.mark.parametrize("name", list(ALGORITHMS))
@pytest.mark.parametrize("workload", WORKLOADS)
def test_trace_accounts_for_every_burst(name, workload):
    procs = workload()
    res = run_algorithm(name, procs)
    for proc in procs:
        ran = sum(e.duration for e in res.timeline if e.pid == proc.pid)
        assert ran == proc.burst_time
    assert res.system.cpu_busy_time == sum(p.burst_time for p in procs)


@pytest.mark.parametrize("name", list(ALGORITHMS))
def test_runs_are_deterministic(name):
    procs = _mixed()
    first = run_algorithm(name, procs)
    second = run_algorithm(name, procs)
    assert first.timeline == second.timeline
    assert first.system == second.system
    # Inputs are never mutated by a run.
    assert procs == _mixed()


@pytest.mark.parametrize("name", ["rr", "priority", "sjn"])
def test_gated_algorithms_never_run_before_arrival(name):
    res = run_algorithm(name, _mixed())
    arrival = {p.pid: p.arrival_time for p in res.processes}
    for entry in res.timeline:
        assert entry.start_time >= arrival[entry.pid]


@pytest.mark.parametrize("name", list(ALGORITHMS))
def test_idle_gap_before_late_arrival(name):
    procs = [Process("P1", 0, 2), Process("P2", 10, 3)]
    res = run_algorithm(name, procs, config=GATED)
    assert [(e.pid, e.start_time, e.end_time) for e in res.timeline] == [("P1", 0, 2), ("P2", 10, 13)]
    assert res.system.idle_time == 8
    assert res.system.makespan == 13
    assert res.system.cpu_utilization == pytest.approx(5 / 13)


@pytest.mark.parametrize("name", list(ALGORITHMS))
def test_far_future_arrival_terminates(name):
    res = run_algorithm(name, [Process("P1", 1_000_000, 1)], config=GATED)
    assert res.processes[0].completion_time == 1_000_001
    assert res.processes[0].waiting_time == 0


@pytest.mark.parametrize("name", list(ALGORITHMS))
def test_empty_workload_rejected(name):
    with pytest.raises(InvalidInputError):
        run_algorithm(name, [])


def test_duplicate_pid_rejected():
    with pytest.raises(InvalidInputError, match="Duplicate"):
        schedule_sjn([Process("P1", 0, 1), Process("P1", 1, 2)])


def test_invalid_process_facts_rejected():
    with pytest.raises(InvalidInputError):
        Process("P1", arrival_time=0, burst_time=0)
    with pytest.raises(InvalidInputError):
        Process("P1", arrival_time=-1, burst_time=3)


def test_invalid_config_rejected():
    with pytest.raises(InvalidInputError):
        SchedulerConfig(base_quantum=0)
    with pytest.raises(InvalidInputError):
        SchedulerConfig(aging_interval=0)


def test_unknown_algorithm():
    with pytest.raises(ValueError, match="Unknown algorithm"):
        run_algorithm("fcfs", _procs())


def test_run_algorithm_is_case_insensitive():
    assert run_algorithm("SJN", _procs()).algorithm == "SJN (non-preemptive)"


def test_overrunning_a_process_is_a_defect():
    state = ProcessState.from_process(Process("P1", 0, 2))
    with pytest.raises(AssertionError):
        state.run_for(3, now=0)


# SJF with aging


def test_sjf_aging_reference_order_ignores_arrival():
    res = schedule_sjf_aging(sample_workload("sjf"))
    assert trace_pairs(res.timeline) == [("P2", 5), ("P4", 6), ("P3", 8), ("P1", 10)]

    procs = _by_pid(res)
    # P2 arrives at 1 but is dispatched at 0: its waiting time clamps to 0.
    assert procs["P2"].start_time == 0
    assert procs["P2"].waiting_time == 0
    assert procs["P2"].turnaround_time == 5
    assert [procs[pid].waiting_time for pid in ("P1", "P2", "P3", "P4")] == [19, 0, 9, 2]
    assert res.system.avg_waiting == pytest.approx(7.5)
    assert res.system.avg_turnaround == pytest.approx(14.75)
    assert res.system.max_starvation == 19


def test_sjf_aging_with_arrival_gating():
    res = schedule_sjf_aging(sample_workload("sjf"), config=GATED)
    assert [(e.pid, e.start_time) for e in res.timeline] == [("P1", 0), ("P2", 10), ("P4", 15), ("P3", 21)]
    procs = _by_pid(res)
    assert [procs[pid].waiting_time for pid in ("P1", "P2", "P3", "P4")] == [0, 9, 19, 12]
    assert procs["P3"].completion_time == 29


def test_sjf_aging_ties_on_burst_follow_aged_priority():
    procs = [
        Process("A", arrival_time=0, burst_time=5, priority=0),
        Process("B", arrival_time=0, burst_time=5, priority=4),
        Process("C", arrival_time=4, burst_time=5, priority=3),
    ]
    slow = schedule_sjf_aging(procs, config=SchedulerConfig(aging_interval=100))
    assert [e.pid for e in slow.timeline] == ["A", "C", "B"]

    # B has waited 5 units by t=5 and overtakes C, which has waited only 1.
    fast = schedule_sjf_aging(procs, config=SchedulerConfig(aging_interval=1))
    assert [e.pid for e in fast.timeline] == ["A", "B", "C"]
    assert _by_pid(fast)["B"].effective_priority == -1


def test_sjf_aging_gated_ages_processes_that_arrived_during_a_burst():
    procs = [
        Process("A", arrival_time=0, burst_time=30, priority=0),
        Process("B", arrival_time=1, burst_time=5, priority=2),
        Process("C", arrival_time=25, burst_time=5, priority=1),
    ]
    res = schedule_sjf_aging(procs, config=GATED)
    # At t=30 B has waited 29 (priority 2 - 2 = 0), C only 5 (stays 1).
    assert [(e.pid, e.start_time) for e in res.timeline] == [("A", 0), ("B", 30), ("C", 35)]
    assert _by_pid(res)["B"].effective_priority == 0
    assert _by_pid(res)["C"].waiting_time == 10


def test_sjf_aging_equal_keys_keep_input_order():
    procs = [Process("X", 0, 3, 1), Process("Y", 0, 3, 1), Process("Z", 0, 3, 1)]
    res = schedule_sjf_aging(procs)
    assert [e.pid for e in res.timeline] == ["X", "Y", "Z"]


# Round robin with adaptive quantum


def test_rr_adaptive_reference_scenario():
    res = schedule_rr_adaptive(sample_workload("rr"))

    assert trace_pairs(res.timeline)[0] == ("P1", 5)
    assert [(e.pid, e.duration, e.quantum) for e in res.timeline] == [
        ("P1", 5, 5),
        ("P2", 10, 20),
        ("P3", 28, 28),
        ("P1", 15, 28),
        ("P4", 21, 21),
        ("P3", 2, 5),
        ("P4", 19, 19),
    ]

    procs = _by_pid(res)
    assert [procs[pid].completion_time for pid in ("P1", "P2", "P3", "P4")] == [58, 15, 81, 100]
    assert res.system.total_waiting == 142
    assert res.system.total_turnaround == 242
    assert 0.0 <= res.system.cpu_utilization <= 1.0
    assert res.quantum == 5


@pytest.mark.parametrize("workload", WORKLOADS)
def test_rr_slices_never_exceed_quantum(workload):
    res = schedule_rr_adaptive(workload(), config=SchedulerConfig(base_quantum=2))
    for entry in res.timeline:
        assert entry.quantum >= 2
        assert 0 < entry.duration <= entry.quantum


def test_rr_slice_never_exceeds_remaining_time():
    res = schedule_rr_adaptive([Process("P1", 0, 3), Process("P2", 0, 7)])
    # P1 needs less than the quantum; the quantum then grows to P2's remaining 7.
    assert [(e.pid, e.duration, e.quantum) for e in res.timeline] == [("P1", 3, 5), ("P2", 7, 7)]


def test_rr_requeued_process_goes_behind_new_arrivals():
    procs = [Process("P1", 0, 8), Process("P2", 3, 2)]
    res = schedule_rr_adaptive(procs)
    assert [e.pid for e in res.timeline] == ["P1", "P2", "P1"]


# Preemptive priority


def test_priority_preemption_scenario():
    res = schedule_priority_preemptive(_procs())
    assert [(e.pid, e.start_time, e.end_time) for e in res.timeline] == [
        ("P1", 0, 2),
        ("P2", 2, 5),
        ("P1", 5, 8),
        ("P3", 8, 9),
    ]
    procs = _by_pid(res)
    assert procs["P2"].completion_time < procs["P1"].completion_time
    assert [procs[pid].completion_time for pid in ("P1", "P2", "P3")] == [8, 5, 9]
    assert [procs[pid].waiting_time for pid in ("P1", "P2", "P3")] == [3, 0, 4]


@pytest.mark.parametrize("workload", WORKLOADS)
def test_priority_always_runs_most_urgent_ready_process(workload):
    res = schedule_priority_preemptive(workload())
    for entry in res.timeline:
        for t in range(entry.start_time, entry.end_time):
            ready = [p for p in res.processes if p.arrival_time <= t < p.completion_time]
            running = next(p for p in ready if p.pid == entry.pid)
            assert running.priority == min(p.priority for p in ready)


def test_priority_equal_priorities_do_not_preempt():
    res = schedule_priority_preemptive([Process("P1", 0, 4, 1), Process("P2", 1, 2, 1)])
    assert [(e.pid, e.duration) for e in res.timeline] == [("P1", 4), ("P2", 2)]


# Shortest job next


def test_sjn_scenario():
    res = schedule_sjn(_procs())
    assert [(e.pid, e.start_time, e.end_time) for e in res.timeline] == [
        ("P1", 0, 5),
        ("P3", 5, 6),
        ("P2", 6, 9),
    ]
    procs = _by_pid(res)
    assert [procs[pid].completion_time for pid in ("P1", "P2", "P3")] == [5, 9, 6]
    assert [procs[pid].waiting_time for pid in ("P1", "P2", "P3")] == [0, 4, 1]


def test_sjn_ties_prefer_earlier_arrival():
    procs = [Process("L", 0, 10), Process("X", 2, 3), Process("Y", 1, 3)]
    res = schedule_sjn(procs)
    assert [e.pid for e in res.timeline] == ["L", "Y", "X"]
