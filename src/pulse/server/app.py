from __future__ import annotations

import contextlib
from typing import Any, AsyncIterator

from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from pulse.config import ServerConfig
from pulse.metrics.formatting import iso_from_ms
from pulse.monitor import Monitor
from pulse.server.middleware import RequestMetricsMiddleware
from pulse.stream import create_response

STREAM_RETRY_MS = 3000


def health_payload(monitor: Monitor) -> dict[str, Any]:
    builder = monitor.builder
    system = builder.system_info()
    return {
        "status": "OK",
        "timestamp": iso_from_ms(monitor.state.clock.now_ms()),
        "server": {
            "uptimeSec": builder.process_uptime_sec(),
            "pythonVersion": system.python_version,
            "platform": system.platform,
            "arch": system.arch,
            "pid": system.pid,
        },
        "system": {
            "hostname": system.hostname,
            "cpuCores": system.cpu_cores,
            "totalMemoryMb": round(system.total_memory / 1024 / 1024),
            "freeMemoryMb": round(system.free_memory / 1024 / 1024),
            "loadAverage": list(system.load_average),
        },
    }


def create_app(monitor: Monitor | None = None, server_config: ServerConfig | None = None) -> Starlette:
    monitor = monitor or Monitor()
    server_config = server_config or ServerConfig()

    async def health(request: Request) -> Response:
        return JSONResponse(health_payload(monitor))

    async def metrics(request: Request) -> Response:
        return JSONResponse(monitor.get_snapshot().to_dict())

    async def stream(request: Request) -> Response:
        return create_response(monitor.hub, retry_ms=STREAM_RETRY_MS)

    async def not_found(request: Request, exc: HTTPException) -> Response:
        return JSONResponse({"error": "Not Found"}, status_code=404)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        await monitor.start()
        try:
            yield
        finally:
            await monitor.stop()

    app = Starlette(
        routes=[
            Route("/", health, methods=["GET"]),
            Route("/api/metrics", metrics, methods=["GET"]),
            Route("/api/stream", stream, methods=["GET"]),
        ],
        middleware=[
            Middleware(
                RequestMetricsMiddleware,
                monitor=monitor,
                excluded_paths=server_config.excluded_paths,
            ),
        ],
        exception_handlers={404: not_found},
        lifespan=lifespan,
    )
    app.state.monitor = monitor
    return app
