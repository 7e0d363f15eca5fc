from __future__ import annotations

import time
from typing import Iterable

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from pulse.monitor import Monitor


class RequestMetricsMiddleware:
    """Reports every HTTP request's lifecycle to a ``Monitor``.

    Request body bytes are counted as they are received and response body
    bytes as they are sent. A request whose app raises before sending a
    status line is recorded as a 500.
    """

    def __init__(self, app: ASGIApp, monitor: Monitor, excluded_paths: Iterable[str] = ()) -> None:
        self.app = app
        self.monitor = monitor
        self.excluded_paths = frozenset(excluded_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] in self.excluded_paths:
            await self.app(scope, receive, send)
            return

        monitor = self.monitor
        url = scope["path"]
        query = scope.get("query_string", b"")
        if query:
            url = f"{url}?{query.decode('latin-1')}"
        handle = monitor.on_request_start(url, scope["method"])
        started = time.perf_counter()
        status_code = 500
        bytes_out = 0

        async def receive_wrapper() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                body = message.get("body", b"")
                if body:
                    monitor.on_bytes_received(handle, len(body))
            return message

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, bytes_out
            if message["type"] == "http.response.start":
                status_code = message["status"]
            elif message["type"] == "http.response.body":
                bytes_out += len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            monitor.on_request_end(handle, status_code, round(elapsed_ms, 2), bytes_out)
