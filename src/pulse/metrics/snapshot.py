from __future__ import annotations

import os
import platform
import socket
from typing import Callable, TypeVar

import psutil

from pulse.config import MonitorConfig
from pulse.log import get_logger
from pulse.metrics.cpu import CpuSource
from pulse.metrics.formatting import iso_from_ms
from pulse.metrics.health import classify
from pulse.metrics.models import NetworkInterface, Snapshot, SystemInfo
from pulse.metrics.state import MetricsState

logger = get_logger(__name__)

T = TypeVar("T")

_INTROSPECTION_ERRORS = (psutil.Error, OSError, AttributeError, ValueError)

_FAMILY_NAMES = {
    socket.AF_INET: "IPv4",
    socket.AF_INET6: "IPv6",
}


def _degrade(label: str, probe: Callable[[], T], default: T) -> T:
    try:
        return probe()
    except _INTROSPECTION_ERRORS as exc:
        logger.debug("%s unavailable, using %r: %s", label, default, exc)
        return default


def _memory_percent(total: int, available: int) -> float:
    if total <= 0:
        return 0.0
    return round(100 * (total - available) / total, 1)


def _network_interfaces() -> tuple[NetworkInterface, ...]:
    interfaces: list[NetworkInterface] = []
    for name, addresses in psutil.net_if_addrs().items():
        for addr in addresses:
            family = _FAMILY_NAMES.get(addr.family)
            if family is None:
                continue
            interfaces.append(NetworkInterface(name=name, address=addr.address, family=family))
    return tuple(interfaces)


def _load_average() -> tuple[float, float, float]:
    one, five, fifteen = psutil.getloadavg()
    return round(one, 2), round(five, 2), round(fifteen, 2)


class SnapshotBuilder:
    """Assembles a ``Snapshot`` from the counters and live host readings.

    Building leaves the counters alone but advances the CPU source and
    prunes both sliding windows.
    """

    def __init__(
        self,
        state: MetricsState,
        cpu: CpuSource,
        config: MonitorConfig | None = None,
        process: psutil.Process | None = None,
    ) -> None:
        self.state = state
        self.cpu = cpu
        self.config = config or MonitorConfig()
        self._process = process or psutil.Process()

    def process_uptime_sec(self) -> float:
        created = _degrade("process create time", lambda: self._process.create_time(), None)
        if created is None:
            return 0.0
        return round(max(0.0, self.state.clock.now_ms() / 1000.0 - created), 1)

    def system_info(self) -> SystemInfo:
        clock = self.state.clock
        memory = _degrade("virtual memory", psutil.virtual_memory, None)
        boot_time = _degrade("boot time", psutil.boot_time, None)
        uptime = 0.0
        if boot_time is not None:
            uptime = round(max(0.0, clock.now_ms() / 1000.0 - boot_time), 1)
        return SystemInfo(
            hostname=_degrade("hostname", socket.gethostname, ""),
            platform=platform.system().lower(),
            arch=platform.machine(),
            python_version=platform.python_version(),
            pid=os.getpid(),
            cpu_cores=_degrade("cpu count", lambda: psutil.cpu_count() or 0, 0),
            total_memory=memory.total if memory is not None else 0,
            free_memory=memory.available if memory is not None else 0,
            load_average=_degrade("load average", _load_average, (0.0, 0.0, 0.0)),
            uptime_sec=uptime,
            network_interfaces=_degrade("network interfaces", _network_interfaces, ()),
        )

    def build(self) -> Snapshot:
        state = self.state
        clock = state.clock
        now_mono = clock.monotonic_ms()

        cpu_percent = self.cpu.sample()
        system = self.system_info()
        mem_percent = _memory_percent(system.total_memory, system.free_memory)
        disk_percent = _degrade(
            "disk usage",
            lambda: float(psutil.disk_usage(self.config.disk_path).percent),
            0.0,
        )
        rss = _degrade("process rss", lambda: int(self._process.memory_info().rss), 0)
        health = classify(cpu_percent, mem_percent, disk_percent, self.config.thresholds)

        uptime_sec = self.process_uptime_sec()
        rpm = state.per_minute.count_in_window(now_mono)
        rph = state.per_hour.count_in_window(now_mono)
        p50, p95, p99 = state.response_time_percentiles()
        last_request_at = None
        if state.last_request_ms is not None:
            last_request_at = iso_from_ms(state.last_request_ms)

        return Snapshot(
            timestamp=iso_from_ms(clock.now_ms()),
            cpu=cpu_percent,
            memory_rss=rss,
            sys_mem_percent=mem_percent,
            disk_percent=disk_percent,
            health=health.value,
            health_color=health.color,
            total_requests=state.total_requests,
            rpm=rpm,
            rps=round(rpm / 60, 2),
            rph=rph,
            avg_lifetime_rpm=round(state.total_requests / max(uptime_sec / 60, 1), 2),
            avg_response_ms=state.average_response_ms(),
            min_response_ms=round(state.min_response_ms(), 2),
            max_response_ms=round(state.max_response_time_ms, 2),
            p50_response_ms=p50,
            p95_response_ms=p95,
            p99_response_ms=p99,
            error_count=state.error_count,
            success_rate=state.success_rate(),
            error_rate=state.error_rate(),
            status_codes=dict(state.status_code_counts),
            endpoints=dict(state.endpoint_counts),
            active_connections=state.active_connections,
            total_bytes_received=state.total_bytes_received,
            total_bytes_sent=state.total_bytes_sent,
            process_uptime_sec=uptime_sec,
            last_request_at=last_request_at,
            system=system,
        )
