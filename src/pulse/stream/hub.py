from __future__ import annotations

import asyncio
import contextlib
import itertools
import threading
from enum import Enum
from typing import AsyncIterator, Callable, ContextManager

from pulse.log import get_logger
from pulse.metrics import MetricsState, Snapshot

logger = get_logger(__name__)

SnapshotFactory = Callable[[], Snapshot]


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class SubscriptionState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    CLOSED = "closed"


class Subscription:
    """A live subscriber's outbox of pushed snapshots.

    Iterate it to receive snapshots; iteration ends once the hub closes
    the subscription. When the outbox is full the oldest queued snapshot
    is dropped to make room, so a stalled reader only ever sees the
    latest readings.
    """

    def __init__(self, subscriber_id: int, connected_at_ms: float, outbox_size: int) -> None:
        self.subscriber_id = subscriber_id
        self.connected_at_ms = connected_at_ms
        self.state = SubscriptionState.CONNECTING
        self.pushed = 0
        self.dropped = 0
        self._outbox_size = outbox_size
        self._outbox: asyncio.Queue[Snapshot | None] = asyncio.Queue()
        self._timer: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._closing = False

    @property
    def closed(self) -> bool:
        return self.state is SubscriptionState.CLOSED

    def push(self, snapshot: Snapshot) -> bool:
        if self.state is not SubscriptionState.STREAMING:
            return False
        if self._outbox.qsize() >= self._outbox_size:
            self._outbox.get_nowait()
            self.dropped += 1
        self._outbox.put_nowait(snapshot)
        self.pushed += 1
        return True

    def _close(self) -> None:
        self.state = SubscriptionState.CLOSED
        self._outbox.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[Snapshot]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Snapshot]:
        while True:
            snapshot = await self._outbox.get()
            if snapshot is None:
                return
            yield snapshot


class BroadcastHub:
    """Pushes a freshly built snapshot to every subscriber on its own timer.

    Each subscription gets one snapshot immediately and then one per
    ``interval_sec`` until it is unsubscribed. Builds are per subscriber;
    there is no shared broadcast snapshot.

    ``lock`` guards the registry and the connection counter. Pass the lock
    that already serializes other ``MetricsState`` writers.
    """

    def __init__(
        self,
        state: MetricsState,
        build: SnapshotFactory,
        interval_sec: float = 2.0,
        outbox_size: int = 16,
        lock: ContextManager[object] | None = None,
    ) -> None:
        self._state = state
        self._build = build
        self._interval_sec = interval_sec
        self._outbox_size = outbox_size
        self._lock = lock if lock is not None else threading.Lock()
        self._ids = itertools.count(1)
        self._subscriptions: dict[int, Subscription] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self) -> Subscription:
        """Register a subscriber. Must be called from a running event loop."""
        loop = asyncio.get_running_loop()
        sub = Subscription(next(self._ids), self._state.clock.now_ms(), self._outbox_size)
        sub._loop = loop
        with self._lock:
            self._subscriptions[sub.subscriber_id] = sub
            sub.state = SubscriptionState.STREAMING
            self._state.connection_opened()
            active = self._state.active_connections
        logger.info("subscriber %s connected (%s active)", sub.subscriber_id, active)
        try:
            sub.push(self._build())
        except Exception:
            self.unsubscribe(sub)
            raise
        sub._timer = loop.create_task(self._tick(sub), name=f"pulse-subscriber-{sub.subscriber_id}")
        return sub

    def unsubscribe(self, sub: Subscription) -> bool:
        """Close ``sub`` and stop its timer. Closing twice is a no-op.

        May be called from any thread. Off the subscription's own loop the
        teardown is scheduled onto that loop and runs on its next iteration.
        """
        with self._lock:
            if sub.closed or sub._closing:
                return False
            sub._closing = True
        loop = sub._loop
        if loop is not None and _running_loop() is not loop and not loop.is_closed():
            try:
                loop.call_soon_threadsafe(self._teardown, sub)
                return True
            except RuntimeError:
                # Loop closed between the check and the call.
                pass
        self._teardown(sub)
        return True

    def _teardown(self, sub: Subscription) -> None:
        running = _running_loop()
        current = asyncio.current_task() if running is not None else None
        timer, sub._timer = sub._timer, None
        if timer is not None and running is sub._loop and timer is not current:
            timer.cancel()
        was_streaming = sub.state is SubscriptionState.STREAMING
        sub._close()
        with self._lock:
            self._subscriptions.pop(sub.subscriber_id, None)
            if was_streaming:
                self._state.connection_closed()
            active = self._state.active_connections
        logger.info("subscriber %s disconnected (%s active)", sub.subscriber_id, active)

    async def close(self) -> None:
        timers = [sub._timer for sub in self._subscriptions.values() if sub._timer is not None]
        for sub in list(self._subscriptions.values()):
            self.unsubscribe(sub)
        for timer in timers:
            with contextlib.suppress(asyncio.CancelledError):
                await timer

    async def _tick(self, sub: Subscription) -> None:
        while True:
            await asyncio.sleep(self._interval_sec)
            if sub.closed or sub._closing:
                return
            try:
                snapshot = self._build()
            except Exception:
                logger.exception("snapshot build failed for subscriber %s", sub.subscriber_id)
                self.unsubscribe(sub)
                return
            sub.push(snapshot)
