from __future__ import annotations

from datetime import datetime, timezone

_UNITS = ("KB", "MB", "GB")


def format_bytes(n: float) -> str:
    """Render a byte count with base-1024 units, e.g. ``"1.50 KB"``."""
    if n < 1024:
        return f"{max(0, int(n))} B"
    value = float(n)
    unit = "B"
    for candidate in _UNITS:
        if value < 1024:
            break
        value /= 1024
        unit = candidate
    return f"{value:.2f} {unit}"


def iso_from_ms(timestamp_ms: float) -> str:
    moment = datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
