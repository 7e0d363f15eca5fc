from __future__ import annotations

from pulse.stream.hub import BroadcastHub, Subscription, SubscriptionState
from pulse.stream.sse import create_response, format_sse, snapshot_events

__all__ = [
    "BroadcastHub",
    "Subscription",
    "SubscriptionState",
    "create_response",
    "format_sse",
    "snapshot_events",
]
