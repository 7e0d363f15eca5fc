from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import pytest

from pulse.config import MonitorConfig
from pulse.metrics import CpuSampler, CpuTimes, MetricsState, SnapshotBuilder

START_WALL_MS = 1_700_000_000_000.0


@dataclass(slots=True)
class FakeClock:
    wall_ms: float = START_WALL_MS
    mono_ms: float = 0.0

    def now_ms(self) -> float:
        return self.wall_ms

    def monotonic_ms(self) -> float:
        return self.mono_ms

    def advance(self, ms: float) -> None:
        self.wall_ms += ms
        self.mono_ms += ms


class FakeCpuReader:
    """Returns the queued readings in order, repeating the last one."""

    def __init__(self, *readings: Sequence[CpuTimes]) -> None:
        self._readings = [list(r) for r in readings]
        self.calls = 0

    def __call__(self) -> list[CpuTimes]:
        index = min(self.calls, len(self._readings) - 1)
        self.calls += 1
        return self._readings[index]


def idle_core(idle: float = 100.0) -> CpuTimes:
    return CpuTimes(user=0.0, system=0.0, idle=idle)


@dataclass(slots=True)
class FakeMemoryInfo:
    rss: int


class FakeProcess:
    """Stands in for ``psutil.Process``; started at the fake clock's epoch."""

    def __init__(self, created_sec: float = START_WALL_MS / 1000.0, rss: int = 50 * 1024 * 1024) -> None:
        self.created_sec = created_sec
        self.rss = rss

    def create_time(self) -> float:
        return self.created_sec

    def memory_info(self) -> FakeMemoryInfo:
        return FakeMemoryInfo(rss=self.rss)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def state(clock: FakeClock) -> MetricsState:
    return MetricsState(clock=clock)


@pytest.fixture
def builder(state: MetricsState) -> SnapshotBuilder:
    sampler = CpuSampler(FakeCpuReader([idle_core()]))
    return SnapshotBuilder(state, sampler, MonitorConfig(), process=FakeProcess())
