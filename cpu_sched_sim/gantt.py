from __future__ import annotations

from typing import Dict, Iterator, Optional, Sequence, Tuple

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .metrics import trace_pairs
from .models import TraceEntry

COLORS = ["red", "green", "yellow", "blue", "magenta", "cyan"]


def format_trace(timeline: Sequence[TraceEntry], unit: str = "ms") -> str:
    """
    One-line execution order, e.g. "P1 (5 ms) -> P2 (10 ms)".
    """
    if not timeline:
        return "(no execution)"
    return " -> ".join(f"{label} ({duration} {unit})" for label, duration in trace_pairs(timeline))


def _columns(timeline: Sequence[TraceEntry]) -> Iterator[Tuple[int, Optional[TraceEntry]]]:
    """
    Walk the chart left to right, yielding (width, entry) per block; entry is
    None for an idle gap.
    """
    last_time = 0
    for entry in sorted(timeline, key=lambda e: (e.start_time, e.end_time)):
        if entry.start_time > last_time:
            yield entry.start_time - last_time, None
        yield max(1, entry.duration), entry
        last_time = entry.end_time


def _time_marks(timeline: Sequence[TraceEntry]) -> str:
    marks = "0"
    last_time = 0
    for width, entry in _columns(timeline):
        last_time = entry.end_time if entry is not None else last_time + width
        marks += f"{last_time:>3}"
    return marks


def render_gantt(timeline: Sequence[TraceEntry]) -> str:
    """
    Plain-text Gantt chart; idle gaps are drawn with dots.
    """
    if not timeline:
        return "(no execution)"

    line = "|"
    labels = ""
    for width, entry in _columns(timeline):
        if entry is None:
            line += "." * width
            labels += " " * width
        else:
            line += "=" * width
            labels += entry.pid[:width].ljust(width)
    line += "|"

    return "\n".join(["Gantt Chart:", line, labels, _time_marks(timeline)])


def build_rich_gantt(timeline: Sequence[TraceEntry]) -> tuple[Panel, str]:
    """
    Build a Rich Panel containing a colored Gantt chart and a string with time marks.
    """
    if not timeline:
        return Panel("No execution", title="Gantt Chart"), ""

    pid_to_color: Dict[str, str] = {}
    bars = Text()
    labels = Text()

    for width, entry in _columns(timeline):
        if entry is None:
            bars.append("." * width, style="dim")
            labels.append(" " * width)
            continue
        color = pid_to_color.setdefault(entry.pid, COLORS[len(pid_to_color) % len(COLORS)])
        bars.append(" " * width, style=f"on {color}")
        labels.append(entry.pid[:width].ljust(width), style="bold")

    grid = Table.grid(padding=(0, 0))
    grid.add_row(bars)
    grid.add_row(labels)

    return Panel.fit(grid, title="Gantt Chart"), _time_marks(timeline)
