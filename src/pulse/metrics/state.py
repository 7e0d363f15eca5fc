from __future__ import annotations

import itertools
from collections import deque
from urllib.parse import urlsplit

import numpy as np

from pulse.log import get_logger
from pulse.metrics.clock import Clock, SystemClock
from pulse.metrics.models import RequestHandle
from pulse.metrics.window import SlidingWindowCounter

logger = get_logger(__name__)

MINUTE_MS = 60_000.0
HOUR_MS = 3_600_000.0


def normalize_path(url: str) -> str:
    path = urlsplit(url).path
    return path or "/"


class MetricsState:
    """Process-wide request and traffic counters.

    Every ``record_*`` call is an in-memory update that never raises.
    Calls that break the start/end contract are dropped and reported by a
    ``False`` return value instead.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        per_minute_ms: float = MINUTE_MS,
        per_hour_ms: float = HOUR_MS,
        latency_sample_size: int = 1024,
    ) -> None:
        self.clock = clock or SystemClock()
        self.per_minute = SlidingWindowCounter(per_minute_ms)
        self.per_hour = SlidingWindowCounter(per_hour_ms)

        self.total_requests = 0
        self.completed_requests = 0
        self.total_response_time_ms = 0.0
        self.min_response_time_ms: float | None = None
        self.max_response_time_ms = 0.0
        self.error_count = 0
        self.status_code_counts: dict[str, int] = {}
        self.endpoint_counts: dict[str, int] = {}
        self.total_bytes_received = 0
        self.total_bytes_sent = 0
        self.active_connections = 0
        self.last_request_ms: float | None = None
        self.recent_response_times: deque[float] = deque(maxlen=latency_sample_size)

        self._ids = itertools.count(1)
        self._in_flight: dict[int, RequestHandle] = {}

    def record_request_start(self, url: str, method: str = "GET") -> RequestHandle:
        path = normalize_path(url)
        now_ms = self.clock.now_ms()
        mono_ms = self.clock.monotonic_ms()
        handle = RequestHandle(
            request_id=next(self._ids),
            path=path,
            method=method.upper(),
            started_ms=mono_ms,
        )
        self._in_flight[handle.request_id] = handle
        self.total_requests += 1
        self.endpoint_counts[path] = self.endpoint_counts.get(path, 0) + 1
        self.per_minute.record(mono_ms)
        self.per_hour.record(mono_ms)
        self.last_request_ms = now_ms
        return handle

    def record_request_end(
        self,
        handle: RequestHandle,
        status_code: int,
        elapsed_ms: float,
        bytes_out: int = 0,
    ) -> bool:
        if elapsed_ms < 0 or bytes_out < 0:
            logger.debug(
                "ignoring request end with elapsed_ms=%s bytes_out=%s",
                elapsed_ms,
                bytes_out,
            )
            return False
        if self._in_flight.pop(handle.request_id, None) is None:
            logger.debug("ignoring request end for unknown handle %s", handle.request_id)
            return False
        key = str(status_code)
        self.status_code_counts[key] = self.status_code_counts.get(key, 0) + 1
        self.completed_requests += 1
        self.total_response_time_ms += elapsed_ms
        if self.min_response_time_ms is None or elapsed_ms < self.min_response_time_ms:
            self.min_response_time_ms = elapsed_ms
        if elapsed_ms > self.max_response_time_ms:
            self.max_response_time_ms = elapsed_ms
        if status_code >= 400:
            self.error_count += 1
        self.total_bytes_sent += bytes_out
        self.recent_response_times.append(elapsed_ms)
        return True

    def record_bytes_received(self, n: int) -> bool:
        if n < 0:
            logger.debug("ignoring negative byte count %s", n)
            return False
        self.total_bytes_received += n
        return True

    def connection_opened(self) -> None:
        self.active_connections += 1

    def connection_closed(self) -> None:
        if self.active_connections > 0:
            self.active_connections -= 1

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def average_response_ms(self) -> int:
        if self.total_requests == 0:
            return 0
        return round(self.total_response_time_ms / self.total_requests)

    def min_response_ms(self) -> float:
        return self.min_response_time_ms if self.min_response_time_ms is not None else 0

    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 100.0
        return round(100 * (self.total_requests - self.error_count) / self.total_requests, 1)

    def error_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return round(100 * self.error_count / self.total_requests, 1)

    def response_time_percentiles(self) -> tuple[float, float, float]:
        if not self.recent_response_times:
            return 0.0, 0.0, 0.0
        p50, p95, p99 = np.percentile(list(self.recent_response_times), [50, 95, 99])
        return round(float(p50), 2), round(float(p95), 2), round(float(p99), 2)
