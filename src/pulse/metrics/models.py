from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from pulse.metrics.formatting import format_bytes


@dataclass(frozen=True, slots=True)
class RequestHandle:
    request_id: int
    path: str
    method: str
    started_ms: float


@dataclass(frozen=True, slots=True)
class NetworkInterface:
    name: str
    address: str
    family: str


@dataclass(frozen=True, slots=True)
class SystemInfo:
    hostname: str
    platform: str
    arch: str
    python_version: str
    pid: int
    cpu_cores: int
    total_memory: int
    free_memory: int
    load_average: tuple[float, float, float]
    uptime_sec: float
    network_interfaces: tuple[NetworkInterface, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "hostname": self.hostname,
            "platform": self.platform,
            "arch": self.arch,
            "pythonVersion": self.python_version,
            "pid": self.pid,
            "cpuCores": self.cpu_cores,
            "totalMemory": self.total_memory,
            "totalMemoryFormatted": format_bytes(self.total_memory),
            "freeMemory": self.free_memory,
            "freeMemoryFormatted": format_bytes(self.free_memory),
            "loadAverage": list(self.load_average),
            "uptimeSec": self.uptime_sec,
            "networkInterfaces": [
                {"name": nic.name, "address": nic.address, "family": nic.family}
                for nic in self.network_interfaces
            ],
        }


@dataclass(frozen=True, slots=True)
class Snapshot:
    """One point-in-time reading of host, process and traffic figures.

    Fields are read one after another while building, so two fields may
    straddle a request that completed mid-build.
    """

    timestamp: str
    cpu: int
    memory_rss: int
    sys_mem_percent: float
    disk_percent: float
    health: str
    health_color: str
    total_requests: int
    rpm: int
    rps: float
    rph: int
    avg_lifetime_rpm: float
    avg_response_ms: int
    min_response_ms: float
    max_response_ms: float
    p50_response_ms: float
    p95_response_ms: float
    p99_response_ms: float
    error_count: int
    success_rate: float
    error_rate: float
    status_codes: Mapping[str, int]
    endpoints: Mapping[str, int]
    active_connections: int
    total_bytes_received: int
    total_bytes_sent: int
    process_uptime_sec: float
    last_request_at: str | None
    system: SystemInfo

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "cpu": self.cpu,
            "memoryRss": self.memory_rss,
            "memoryRssFormatted": format_bytes(self.memory_rss),
            "sysMemPercent": self.sys_mem_percent,
            "diskPercent": self.disk_percent,
            "health": self.health,
            "healthColor": self.health_color,
            "totalRequests": self.total_requests,
            "rpm": self.rpm,
            "rps": self.rps,
            "rph": self.rph,
            "avgLifetimeRpm": self.avg_lifetime_rpm,
            "avgResponseMs": self.avg_response_ms,
            "minResponseMs": self.min_response_ms,
            "maxResponseMs": self.max_response_ms,
            "p50ResponseMs": self.p50_response_ms,
            "p95ResponseMs": self.p95_response_ms,
            "p99ResponseMs": self.p99_response_ms,
            "errorCount": self.error_count,
            "successRate": self.success_rate,
            "errorRate": self.error_rate,
            "statusCodes": dict(self.status_codes),
            "endpoints": dict(self.endpoints),
            "activeConnections": self.active_connections,
            "totalBytesReceived": self.total_bytes_received,
            "totalBytesReceivedFormatted": format_bytes(self.total_bytes_received),
            "totalBytesSent": self.total_bytes_sent,
            "totalBytesSentFormatted": format_bytes(self.total_bytes_sent),
            "processUptimeSec": self.process_uptime_sec,
            "lastRequestAt": self.last_request_at,
            "system": self.system.to_dict(),
        }
