"""Server-Sent Events framing for snapshot streams."""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Mapping

from starlette.responses import StreamingResponse

from pulse.stream.hub import BroadcastHub

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(
    payload: Mapping[str, Any],
    event: str | None = None,
    event_id: str | None = None,
    retry_ms: int | None = None,
) -> str:
    """Frame one JSON payload as an SSE message ending in a blank line."""
    lines: list[str] = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    if event is not None:
        lines.append(f"event: {event}")
    if retry_ms is not None:
        lines.append(f"retry: {retry_ms}")
    lines.append(f"data: {json.dumps(payload, separators=(',', ':'))}")
    return "\n".join(lines) + "\n\n"


async def snapshot_events(hub: BroadcastHub, retry_ms: int | None = None) -> AsyncIterator[str]:
    """Subscribe to ``hub`` and yield SSE frames until the subscription closes.

    Whatever ends the generator (client gone, write failure, cancellation)
    unsubscribes, which stops the subscriber's timer.
    """
    subscription = hub.subscribe()
    try:
        sequence = 0
        async for snapshot in subscription:
            sequence += 1
            yield format_sse(
                snapshot.to_dict(),
                event_id=f"{subscription.subscriber_id}-{sequence}",
                retry_ms=retry_ms if sequence == 1 else None,
            )
    finally:
        hub.unsubscribe(subscription)


def create_response(hub: BroadcastHub, retry_ms: int | None = None) -> StreamingResponse:
    return StreamingResponse(
        snapshot_events(hub, retry_ms),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
