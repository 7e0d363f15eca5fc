from __future__ import annotations

import threading

import psutil

from pulse.config import MonitorConfig
from pulse.log import get_logger
from pulse.metrics import (
    Clock,
    CpuSampler,
    MetricsState,
    RequestHandle,
    SharedCpuTicker,
    Snapshot,
    SnapshotBuilder,
    SystemClock,
)
from pulse.metrics.cpu import CpuReader, read_cpu_times
from pulse.stream import BroadcastHub, Subscription

logger = get_logger(__name__)


class Monitor:
    """Entry point the HTTP layer and stream transports talk to.

    Owns the single ``MetricsState`` and serializes mutations and builds
    behind one lock, so worker threads may call in as safely as the event
    loop does.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        clock: Clock | None = None,
        cpu_reader: CpuReader = read_cpu_times,
        process: psutil.Process | None = None,
    ) -> None:
        self.config = config or MonitorConfig()
        self._lock = threading.Lock()
        self.state = MetricsState(
            clock=clock or SystemClock(),
            per_minute_ms=self.config.per_minute_window_sec * 1000.0,
            per_hour_ms=self.config.per_hour_window_sec * 1000.0,
            latency_sample_size=self.config.latency_sample_size,
        )
        self.sampler = CpuSampler(cpu_reader)
        self.ticker: SharedCpuTicker | None = None
        cpu_source: CpuSampler | SharedCpuTicker = self.sampler
        if self.config.shared_cpu_sampling:
            self.ticker = SharedCpuTicker(self.sampler, self.config.cpu_sample_interval_sec)
            cpu_source = self.ticker
        self.builder = SnapshotBuilder(self.state, cpu_source, self.config, process=process)
        self.hub = BroadcastHub(
            self.state,
            self.get_snapshot,
            interval_sec=self.config.push_interval_sec,
            outbox_size=self.config.outbox_size,
            lock=self._lock,
        )

    async def start(self) -> None:
        if self.ticker is not None:
            with self._lock:
                self.ticker.start()
        logger.info("monitor started with %s", self.config.to_metadata())

    async def stop(self) -> None:
        await self.hub.close()
        if self.ticker is not None:
            await self.ticker.stop()
        logger.info("monitor stopped")

    def on_request_start(self, url: str, method: str = "GET") -> RequestHandle:
        with self._lock:
            return self.state.record_request_start(url, method)

    def on_bytes_received(self, handle: RequestHandle, n: int) -> bool:
        # Bytes are process-wide; the handle only ties the call to a request.
        with self._lock:
            return self.state.record_bytes_received(n)

    def on_request_end(
        self,
        handle: RequestHandle,
        status_code: int,
        elapsed_ms: float,
        bytes_out: int = 0,
    ) -> bool:
        with self._lock:
            return self.state.record_request_end(handle, status_code, elapsed_ms, bytes_out)

    def get_snapshot(self) -> Snapshot:
        with self._lock:
            return self.builder.build()

    def subscribe(self) -> Subscription:
        return self.hub.subscribe()

    def unsubscribe(self, subscription: Subscription) -> bool:
        return self.hub.unsubscribe(subscription)
