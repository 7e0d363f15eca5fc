from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class HealthThresholds:
    cpu_critical: float = 90.0
    mem_critical: float = 90.0
    disk_critical: float = 95.0
    cpu_warning: float = 70.0
    mem_warning: float = 70.0
    disk_warning: float = 80.0


@dataclass(frozen=True, slots=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    # Long-lived streams would skew response-time figures.
    excluded_paths: tuple[str, ...] = ("/api/stream",)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerConfig:
        env = os.environ if environ is None else environ
        # Slot descriptors shadow the class-level defaults.
        defaults = cls()
        raw_port = env.get("PORT", str(defaults.port))
        try:
            port = int(raw_port)
        except ValueError:
            msg = f"Invalid PORT value: {raw_port!r}"
            raise ValueError(msg) from None
        if not 0 < port < 65536:
            msg = f"PORT out of range: {port}"
            raise ValueError(msg)
        return cls(
            host=env.get("HOST", defaults.host),
            port=port,
            log_level=env.get("LOG_LEVEL", defaults.log_level),
        )


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    push_interval_sec: float = 2.0
    per_minute_window_sec: int = 60
    per_hour_window_sec: int = 3600
    disk_path: str = "/"
    shared_cpu_sampling: bool = True
    cpu_sample_interval_sec: float = 2.0
    outbox_size: int = 16
    latency_sample_size: int = 1024
    thresholds: HealthThresholds = field(default_factory=HealthThresholds)

    def __post_init__(self) -> None:
        if self.push_interval_sec <= 0:
            msg = f"push_interval_sec must be positive, got {self.push_interval_sec}"
            raise ValueError(msg)
        if self.cpu_sample_interval_sec <= 0:
            msg = f"cpu_sample_interval_sec must be positive, got {self.cpu_sample_interval_sec}"
            raise ValueError(msg)
        if self.outbox_size < 1:
            msg = f"outbox_size must be at least 1, got {self.outbox_size}"
            raise ValueError(msg)

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "push_interval_sec": self.push_interval_sec,
            "per_minute_window_sec": self.per_minute_window_sec,
            "per_hour_window_sec": self.per_hour_window_sec,
            "disk_path": self.disk_path,
            "shared_cpu_sampling": self.shared_cpu_sampling,
            "cpu_sample_interval_sec": self.cpu_sample_interval_sec,
            "outbox_size": self.outbox_size,
            "latency_sample_size": self.latency_sample_size,
            "thresholds": {
                "cpu_critical": self.thresholds.cpu_critical,
                "mem_critical": self.thresholds.mem_critical,
                "disk_critical": self.thresholds.disk_critical,
                "cpu_warning": self.thresholds.cpu_warning,
                "mem_warning": self.thresholds.mem_warning,
                "disk_warning": self.thresholds.disk_warning,
            },
        }
