from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol


class Clock(Protocol):
    def now_ms(self) -> float:
        ...

    def monotonic_ms(self) -> float:
        ...


@dataclass(frozen=True, slots=True)
class SystemClock:
    def now_ms(self) -> float:
        return time.time() * 1000.0

    def monotonic_ms(self) -> float:
        return time.monotonic() * 1000.0
