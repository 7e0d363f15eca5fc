from __future__ import annotations

from typing import Any, Iterable, Mapping

import pandas as pd

MAX_POINTS = 300

HISTORY_COLUMNS = [
    "timestamp",
    "cpu",
    "sysMemPercent",
    "diskPercent",
    "rpm",
    "rps",
    "avgResponseMs",
    "p95ResponseMs",
    "p99ResponseMs",
    "errorRate",
    "activeConnections",
]


def append_point(
    history: list[Mapping[str, Any]],
    snapshot: Mapping[str, Any],
    max_points: int = MAX_POINTS,
) -> list[Mapping[str, Any]]:
    """Return ``history`` plus the charted fields of ``snapshot``, oldest trimmed."""
    point = {column: snapshot.get(column) for column in HISTORY_COLUMNS}
    updated = [*history, point]
    if len(updated) > max_points:
        updated = updated[-max_points:]
    return updated


def history_frame(history: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    frame = pd.DataFrame(list(history), columns=HISTORY_COLUMNS)
    if frame.empty:
        return frame
    frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True, errors="coerce")
    return frame.dropna(subset=["timestamp"]).reset_index(drop=True)


def counts_frame(counts: Mapping[str, int], label: str) -> pd.DataFrame:
    frame = pd.DataFrame(
        [{label: key, "count": value} for key, value in counts.items()],
        columns=[label, "count"],
    )
    return frame.sort_values("count", ascending=False).reset_index(drop=True)
