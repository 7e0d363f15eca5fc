from __future__ import annotations

from enum import Enum

from pulse.config import HealthThresholds

DEFAULT_THRESHOLDS = HealthThresholds()


class HealthTier(str, Enum):
    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"

    @property
    def color(self) -> str:
        return _COLORS[self]


_COLORS = {
    HealthTier.HEALTHY: "#22c55e",
    HealthTier.WARNING: "#f59e0b",
    HealthTier.CRITICAL: "#ef4444",
}


def classify(
    cpu: float,
    mem: float,
    disk: float,
    thresholds: HealthThresholds = DEFAULT_THRESHOLDS,
) -> HealthTier:
    if cpu > thresholds.cpu_critical or mem > thresholds.mem_critical or disk > thresholds.disk_critical:
        return HealthTier.CRITICAL
    if cpu > thresholds.cpu_warning or mem > thresholds.mem_warning or disk > thresholds.disk_warning:
        return HealthTier.WARNING
    return HealthTier.HEALTHY
