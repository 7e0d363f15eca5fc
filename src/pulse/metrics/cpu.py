from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Callable, Protocol, Sequence

import psutil

from pulse.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CpuTimes:
    user: float
    system: float
    idle: float
    nice: float = 0.0
    irq: float = 0.0

    @property
    def total(self) -> float:
        return self.user + self.system + self.idle + self.nice + self.irq


CpuReader = Callable[[], Sequence[CpuTimes]]


class CpuSource(Protocol):
    def sample(self) -> int:
        ...


def read_cpu_times() -> list[CpuTimes]:
    # nice is absent on Windows, irq on macOS.
    return [
        CpuTimes(
            user=core.user,
            system=core.system,
            idle=core.idle,
            nice=getattr(core, "nice", 0.0),
            irq=getattr(core, "irq", 0.0),
        )
        for core in psutil.cpu_times(percpu=True)
    ]


class CpuSampler:
    """Busy percentage across all cores since the previous ``sample()`` call.

    Every call advances the stored breakdown, so two calls in a row against
    unchanged OS counters give 0 the second time. Callers sharing one
    sampler must serialize access.
    """

    def __init__(self, reader: CpuReader = read_cpu_times) -> None:
        self._reader = reader
        self._previous: list[CpuTimes] | None = None

    def sample(self) -> int:
        try:
            current = list(self._reader())
        except (psutil.Error, OSError) as exc:
            logger.debug("cpu times unavailable: %s", exc)
            return 0
        previous = self._previous if self._previous is not None else current
        self._previous = current
        if len(previous) != len(current):
            return 0
        idle_diff = 0.0
        total_diff = 0.0
        for before, after in zip(previous, current):
            idle_diff += after.idle - before.idle
            total_diff += after.total - before.total
        if total_diff <= 0:
            return 0
        percent = round(100 * (1 - idle_diff / total_diff))
        return max(0, min(100, percent))


class SharedCpuTicker:
    """Samples one ``CpuSampler`` on a fixed cadence and caches the result.

    Snapshot builds read the cached value, so the number of subscribers no
    longer changes the interval the CPU delta is measured over.
    """

    def __init__(self, sampler: CpuSampler, interval_sec: float) -> None:
        self._sampler = sampler
        self._interval_sec = interval_sec
        self._latest = 0
        self._task: asyncio.Task[None] | None = None

    def sample(self) -> int:
        return self._latest

    def tick(self) -> int:
        self._latest = self._sampler.sample()
        return self._latest

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self.tick()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_sec)
            self.tick()
