from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import List

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .algorithms import ALGORITHMS, run_algorithm
from .gantt import build_rich_gantt, format_trace, render_gantt
from .metrics import summarize_process_metrics
from .models import Process, ScheduleResult, SchedulerConfig
from .workload_io import SAMPLE_WORKLOADS, load_workload, sample_workload

logger = logging.getLogger(__name__)


def _add_workload_args(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--workload",
        "-w",
        help="Path to JSON or CSV workload file.",
    )
    source.add_argument(
        "--sample",
        "-s",
        choices=sorted(SAMPLE_WORKLOADS),
        help="Use a built-in sample workload instead of a file.",
    )


def _add_policy_args(parser: argparse.ArgumentParser) -> None:
    defaults = SchedulerConfig()
    parser.add_argument(
        "--quantum",
        "-q",
        type=int,
        default=defaults.base_quantum,
        help=f"Base time quantum for round robin (default: {defaults.base_quantum}).",
    )
    parser.add_argument(
        "--aging-interval",
        type=int,
        default=defaults.aging_interval,
        help=f"Waiting time per priority step in SJF aging (default: {defaults.aging_interval}).",
    )
    parser.add_argument(
        "--enforce-arrival",
        action="store_true",
        help="Make SJF aging wait for processes to arrive (the other algorithms always do).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cpu-sched-sim",
        description="Single-CPU scheduling simulator (SJF with aging, adaptive RR, preemptive priority, SJN).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Log simulation steps (-v for info, -vv for every dispatch).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a scheduling algorithm on a workload.")
    run_parser.add_argument(
        "--algorithm",
        "-a",
        required=True,
        choices=list(ALGORITHMS),
        help="Algorithm to use.",
    )
    _add_workload_args(run_parser)
    _add_policy_args(run_parser)
    run_parser.add_argument(
        "--plain",
        action="store_true",
        help="Draw the Gantt chart as plain text instead of colored blocks.",
    )
    run_parser.add_argument(
        "--step",
        action="store_true",
        help="Show a simple time-stepped simulation in the terminal.",
    )
    run_parser.add_argument(
        "--step-delay",
        type=float,
        default=0.3,
        help="Seconds to wait between steps when --step is used (default: 0.3).",
    )

    compare_parser = subparsers.add_parser(
        "compare",
        help="Run multiple algorithms on the same workload and compare average metrics.",
    )
    _add_workload_args(compare_parser)
    _add_policy_args(compare_parser)
    compare_parser.add_argument(
        "--algorithms",
        "-a",
        nargs="+",
        choices=list(ALGORITHMS),
        default=list(ALGORITHMS),
        help="Algorithms to compare (default: all).",
    )

    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


def _config_from_args(args: argparse.Namespace) -> SchedulerConfig:
    return SchedulerConfig(
        base_quantum=args.quantum,
        aging_interval=args.aging_interval,
        enforce_arrival=args.enforce_arrival,
    )


def _load_processes(args: argparse.Namespace) -> List[Process]:
    if args.sample:
        return sample_workload(args.sample)
    return load_workload(Path(args.workload))


def _print_result(result: ScheduleResult, console: Console, plain: bool = False) -> None:
    console.print(f"[bold]Algorithm:[/bold] {result.algorithm}")
    if result.quantum is not None:
        console.print(f"[bold]Base quantum:[/bold] {result.quantum}")

    console.print()
    console.print(f"[bold]Trace:[/bold] {format_trace(result.timeline)}", highlight=False)
    console.print()

    if plain:
        console.print(render_gantt(result.timeline), highlight=False)
    else:
        panel, time_marks = build_rich_gantt(result.timeline)
        console.print(panel)
        if time_marks:
            console.print(time_marks, highlight=False)

    console.print()

    headers = [
        "PID",
        "Arrive",
        "Burst",
        "Priority",
        "Start",
        "Complete",
        "Wait",
        "Turnaround",
    ]

    proc_table = Table(title="Per-process metrics", box=box.SIMPLE_HEAVY)
    for h in headers:
        justify = "center" if h in {"PID", "Priority"} else "right"
        proc_table.add_column(h, justify=justify)

    for p in result.processes:
        proc_table.add_row(
            p.pid,
            str(p.arrival_time),
            str(p.burst_time),
            str(p.priority),
            "" if p.start_time is None else str(p.start_time),
            "" if p.completion_time is None else str(p.completion_time),
            str(p.waiting_time),
            str(p.turnaround_time),
        )

    console.print(proc_table)
    console.print()

    if result.system:
        system = result.system
        sys_table = Table(title="System metrics", box=box.SIMPLE_HEAVY)
        sys_table.add_column("Metric")
        sys_table.add_column("Value", justify="right")

        sys_table.add_row("Total waiting", str(system.total_waiting))
        sys_table.add_row("Avg waiting", f"{system.avg_waiting:.2f}")
        sys_table.add_row("Total turnaround", str(system.total_turnaround))
        sys_table.add_row("Avg turnaround", f"{system.avg_turnaround:.2f}")
        sys_table.add_row("Max starvation", str(system.max_starvation))
        sys_table.add_row("Idle time", str(system.idle_time))
        sys_table.add_row("Throughput (proc/time)", f"{system.throughput:.3f}")
        sys_table.add_row("CPU utilization", f"{system.cpu_utilization*100:.1f}%")

        console.print(sys_table)


def _print_comparison(
    processes: List[Process], algorithms: List[str], config: SchedulerConfig, console: Console
) -> None:
    summary_table = Table(title="Algorithm comparison", box=box.SIMPLE_HEAVY)
    summary_table.add_column("Algorithm")
    summary_table.add_column("Quantum", justify="right")
    summary_table.add_column("Avg waiting", justify="right")
    summary_table.add_column("Avg turnaround", justify="right")
    summary_table.add_column("Max starvation", justify="right")
    summary_table.add_column("CPU util.", justify="right")

    for alg in algorithms:
        result = run_algorithm(alg, processes, config=config)
        summary = summarize_process_metrics(result.processes)
        summary_table.add_row(
            result.algorithm,
            "" if result.quantum is None else str(result.quantum),
            f"{summary['avg_waiting']:.2f}",
            f"{summary['avg_turnaround']:.2f}",
            str(summary["max_starvation"]),
            f"{result.system.cpu_utilization*100:.1f}%" if result.system else "",
        )

    console.print(summary_table)


def _animate_result(result: ScheduleResult, delay: float, console: Console) -> None:
    """
    Simple time-stepped textual simulation using the computed schedule.
    """
    timeline = sorted(result.timeline, key=lambda e: (e.start_time, e.end_time))
    if not timeline:
        console.print("[red]No execution to animate.[/red]")
        return

    makespan = timeline[-1].end_time
    console.print(f"[bold]Simulating {result.algorithm}[/bold] (duration {makespan} time units)")
    console.print("[dim]Press Ctrl+C to skip animation.[/dim]")

    for t in range(makespan):
        running = next((e for e in timeline if e.start_time <= t < e.end_time), None)
        if running is None:
            console.print(f"t={t:2d}: [dim]idle[/dim]")
        else:
            bar = "█" * (t - running.start_time + 1)
            console.print(f"t={t:2d}: {running.pid} [green]{bar}[/green]")
        time.sleep(delay)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)
    console = Console()

    try:
        processes = _load_processes(args)
        config = _config_from_args(args)

        if args.command == "run":
            result = run_algorithm(args.algorithm, processes, config=config)
            if args.step:
                try:
                    _animate_result(result, delay=args.step_delay, console=console)
                except KeyboardInterrupt:
                    console.print("[yellow]Animation skipped.[/yellow]")
            _print_result(result, console, plain=args.plain)
            return 0

        if args.command == "compare":
            _print_comparison(processes, args.algorithms, config, console)
            return 0
    except (ValueError, OSError) as exc:
        logger.debug("Aborting", exc_info=True)
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        return 2

    parser.error(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
