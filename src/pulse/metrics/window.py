from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field


@dataclass(slots=True)
class SlidingWindowCounter:
    """Counts events whose timestamp falls in the trailing ``window_ms``.

    Timestamps must be recorded in non-decreasing order, so stale entries
    always sit at the left end and pruning never rescans the whole deque.
    """

    window_ms: float
    _events: deque[float] = field(default_factory=deque)

    def record(self, timestamp_ms: float) -> None:
        self._events.append(timestamp_ms)

    def count_in_window(self, now_ms: float) -> int:
        self._prune(now_ms)
        return len(self._events)

    def clear(self) -> None:
        self._events.clear()

    def _prune(self, now_ms: float) -> None:
        events = self._events
        while events and now_ms - events[0] >= self.window_ms:
            events.popleft()
