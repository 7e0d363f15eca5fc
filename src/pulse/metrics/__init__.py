from __future__ import annotations

from pulse.metrics.clock import Clock, SystemClock
from pulse.metrics.cpu import CpuSampler, CpuSource, CpuTimes, SharedCpuTicker, read_cpu_times
from pulse.metrics.formatting import format_bytes
from pulse.metrics.health import HealthTier, classify
from pulse.metrics.models import NetworkInterface, RequestHandle, Snapshot, SystemInfo
from pulse.metrics.snapshot import SnapshotBuilder
from pulse.metrics.state import MetricsState, normalize_path
from pulse.metrics.window import SlidingWindowCounter

__all__ = [
    "Clock",
    "CpuSampler",
    "CpuSource",
    "CpuTimes",
    "HealthTier",
    "MetricsState",
    "NetworkInterface",
    "RequestHandle",
    "SharedCpuTicker",
    "SlidingWindowCounter",
    "Snapshot",
    "SnapshotBuilder",
    "SystemClock",
    "SystemInfo",
    "classify",
    "format_bytes",
    "normalize_path",
    "read_cpu_times",
]
