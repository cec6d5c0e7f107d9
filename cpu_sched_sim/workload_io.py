from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Dict, List, Tuple

from .models import Process

logger = logging.getLogger(__name__)

# (pid, arrival_time, burst_time, priority)
SAMPLE_WORKLOADS: Dict[str, List[Tuple[str, int, int, int]]] = {
    "sjf": [
        ("P1", 0, 10, 1),
        ("P2", 1, 5, 2),
        ("P3", 2, 8, 1),
        ("P4", 3, 6, 3),
    ],
    "rr": [
        ("P1", 0, 20, 0),
        ("P2", 2, 10, 0),
        ("P3", 4, 30, 0),
        ("P4", 6, 40, 0),
    ],
    "priority": [
        ("P1", 0, 5, 2),
        ("P2", 2, 3, 1),
        ("P3", 4, 1, 3),
    ],
}


def sample_workload(name: str) -> List[Process]:
    """
    Build a fresh copy of one of the built-in workloads.
    """
    try:
        rows = SAMPLE_WORKLOADS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown sample workload '{name}' (choose from {', '.join(SAMPLE_WORKLOADS)})") from None
    return [Process(pid, arrival, burst, priority) for pid, arrival, burst, priority in rows]


def load_workload(path: str | Path) -> List[Process]:
    """
    Load a workload from a JSON or CSV file into a list of Process objects.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        processes = _load_json(path)
    elif suffix == ".csv":
        processes = _load_csv(path)
    else:
        raise ValueError(f"Unsupported workload format: {suffix} (use .json or .csv)")

    logger.info("Loaded %d processes from %s", len(processes), path)
    return processes


def _load_json(path: Path) -> List[Process]:
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, list):
        raise ValueError("JSON workload must be a list of process objects")

    return [_process_from_mapping(entry) for entry in raw]


def _load_csv(path: Path) -> List[Process]:
    with path.open("r", encoding="utf-8", newline="") as f:
        return [_process_from_mapping(row) for row in csv.DictReader(f)]


def _as_int(value) -> int:
    """
    CSV cells arrive as strings, JSON values as numbers; neither may be
    truncated or coerced from a bool.
    """
    if isinstance(value, str):
        return int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected an integer, got {value!r}")
    return value


def _process_from_mapping(mapping) -> Process:
    try:
        pid = str(mapping["pid"])
        arrival_time = _as_int(mapping["arrival_time"])
        burst_time = _as_int(mapping["burst_time"])
        priority_val = mapping.get("priority")
        priority = _as_int(priority_val) if priority_val not in (None, "") else 0
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid process entry: {mapping!r}") from exc

    return Process(
        pid=pid,
        arrival_time=arrival_time,
        burst_time=burst_time,
        priority=priority,
    )
