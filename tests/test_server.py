from __future__ import annotations

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
from starlette.testclient import TestClient

from conftest import FakeClock, FakeCpuReader, FakeProcess, idle_core
from pulse.config import ServerConfig
from pulse.monitor import Monitor
from pulse.server import RequestMetricsMiddleware, create_app


def _monitor() -> Monitor:
    return Monitor(clock=FakeClock(), cpu_reader=FakeCpuReader([idle_core()]))


def test_health_endpoint() -> None:
    with TestClient(create_app(_monitor())) as client:
        resp = client.get("/")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "OK"
    assert body["timestamp"].endswith("Z")
    assert set(body["server"]) == {"uptimeSec", "pythonVersion", "platform", "arch", "pid"}
    assert body["system"]["cpuCores"] >= 0
    assert len(body["system"]["loadAverage"]) == 3


def test_unknown_route_is_json_404() -> None:
    with TestClient(create_app(_monitor())) as client:
        resp = client.get("/missing")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not Found"}


def test_metrics_endpoint_counts_traffic() -> None:
    monitor = _monitor()
    with TestClient(create_app(monitor)) as client:
        client.get("/")
        client.get("/?verbose=1")
        client.get("/missing")
        payload = client.get("/api/metrics").json()

    # the metrics request itself has started but not finished
    assert payload["totalRequests"] == 4
    assert payload["endpoints"] == {"/": 2, "/missing": 1, "/api/metrics": 1}
    assert payload["statusCodes"] == {"200": 2, "404": 1}
    assert payload["errorCount"] == 1
    assert payload["totalBytesSent"] > 0
    assert payload["health"] in {"HEALTHY", "WARNING", "CRITICAL"}
    assert monitor.state.status_code_counts["200"] == 3


def test_excluded_paths_are_not_recorded() -> None:
    monitor = _monitor()
    config = ServerConfig(excluded_paths=("/",))
    with TestClient(create_app(monitor, config)) as client:
        client.get("/")
        client.get("/")
    assert monitor.state.total_requests == 0


async def _echo(request: Request) -> Response:
    body = await request.body()
    return Response(body, media_type="application/octet-stream")


async def _explode(request: Request) -> Response:
    raise RuntimeError("boom")


async def _ok(request: Request) -> Response:
    return JSONResponse({"ok": True})


def _bare_app(monitor: Monitor) -> Starlette:
    return Starlette(
        routes=[
            Route("/echo", _echo, methods=["POST"]),
            Route("/explode", _explode),
            Route("/ok", _ok),
        ],
        middleware=[Middleware(RequestMetricsMiddleware, monitor=monitor)],
    )


def test_middleware_counts_request_and_response_bytes() -> None:
    monitor = _monitor()
    client = TestClient(_bare_app(monitor))
    resp = client.post("/echo", content=b"x" * 300)
    assert resp.content == b"x" * 300
    state = monitor.state
    assert state.total_bytes_received == 300
    assert state.total_bytes_sent == 300
    assert state.endpoint_counts == {"/echo": 1}
    assert state.in_flight == 0


def test_middleware_records_crash_as_server_error() -> None:
    monitor = _monitor()
    client = TestClient(_bare_app(monitor), raise_server_exceptions=False)
    resp = client.get("/explode")
    assert resp.status_code == 500
    assert monitor.state.status_code_counts == {"500": 1}
    assert monitor.state.error_count == 1


def test_middleware_measures_elapsed_time() -> None:
    monitor = _monitor()
    client = TestClient(_bare_app(monitor))
    client.get("/ok")
    state = monitor.state
    assert state.completed_requests == 1
    assert state.min_response_time_ms is not None
    assert 0 <= state.min_response_time_ms <= state.max_response_time_ms


def test_health_reports_process_uptime() -> None:
    clock = FakeClock()
    process = FakeProcess(created_sec=clock.now_ms() / 1000.0 - 42)
    monitor = Monitor(clock=clock, cpu_reader=FakeCpuReader([idle_core()]), process=process)
    with TestClient(create_app(monitor)) as client:
        resp = client.get("/")
    assert resp.json()["server"]["uptimeSec"] == 42.0
