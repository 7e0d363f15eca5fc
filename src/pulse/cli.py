from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Mapping

import httpx
import uvicorn

from pulse.config import MonitorConfig, ServerConfig
from pulse.log import setup_logging
from pulse.monitor import Monitor
from pulse.server import create_app


def summary_line(payload: Mapping[str, Any]) -> str:
    return (
        f"{payload.get('timestamp', '-')} "
        f"health={payload.get('health', '?')} "
        f"cpu={payload.get('cpu', 0)}% "
        f"mem={payload.get('sysMemPercent', 0)}% "
        f"disk={payload.get('diskPercent', 0)}% "
        f"rpm={payload.get('rpm', 0)} "
        f"avg={payload.get('avgResponseMs', 0)}ms "
        f"errors={payload.get('errorRate', 0)}% "
        f"subscribers={payload.get('activeConnections', 0)}"
    )


def parse_sse_data(line: str) -> Mapping[str, Any] | None:
    if not line.startswith("data:"):
        return None
    return json.loads(line[len("data:") :].strip())


async def fetch_snapshot(
    base_url: str,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Mapping[str, Any]:
    async with httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport) as client:
        resp = await client.get("/api/metrics")
        resp.raise_for_status()
        return resp.json()


async def watch_stream(
    base_url: str,
    count: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> int:
    received = 0
    timeout = httpx.Timeout(10.0, read=None)
    async with httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport) as client:
        async with client.stream("GET", "/api/stream") as resp:
            resp.raise_for_status()
            async for line in resp.aiter_lines():
                payload = parse_sse_data(line)
                if payload is None:
                    continue
                print(summary_line(payload), flush=True)
                received += 1
                if count is not None and received >= count:
                    break
    return received


def _build_monitor_config(args: argparse.Namespace) -> MonitorConfig:
    return MonitorConfig(
        push_interval_sec=args.push_interval,
        disk_path=args.disk_path,
        shared_cpu_sampling=not args.per_subscriber_cpu,
        cpu_sample_interval_sec=args.cpu_interval,
    )


def _serve(args: argparse.Namespace) -> int:
    env_config = ServerConfig.from_env()
    server_config = ServerConfig(
        host=args.host or env_config.host,
        port=args.port or env_config.port,
        log_level=args.log_level or env_config.log_level,
    )
    setup_logging(server_config.log_level)
    monitor = Monitor(_build_monitor_config(args))
    app = create_app(monitor, server_config)
    print(f"Pulse monitor running on http://{server_config.host}:{server_config.port}")
    uvicorn.run(
        app,
        host=server_config.host,
        port=server_config.port,
        log_level=server_config.log_level.lower(),
    )
    return 0


def _snapshot(args: argparse.Namespace) -> int:
    payload = asyncio.run(fetch_snapshot(args.url))
    print(json.dumps(payload, indent=2))
    return 0


def _watch(args: argparse.Namespace) -> int:
    try:
        asyncio.run(watch_stream(args.url, args.count))
    except KeyboardInterrupt:
        pass
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pulse self-reporting process monitor")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the monitor HTTP server")
    serve.add_argument("--host", default=None, help="Bind address (env HOST, default 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="Port (env PORT, default 3000)")
    serve.add_argument("--log-level", default=None, help="Log level (env LOG_LEVEL, default INFO)")
    serve.add_argument("--push-interval", type=float, default=2.0)
    serve.add_argument("--cpu-interval", type=float, default=2.0)
    serve.add_argument("--disk-path", default="/")
    serve.add_argument(
        "--per-subscriber-cpu",
        action="store_true",
        help="Sample CPU on every snapshot build instead of one shared ticker",
    )
    serve.set_defaults(handler=_serve)

    snapshot = sub.add_parser("snapshot", help="Fetch one snapshot from a running monitor")
    snapshot.add_argument("url", help="Monitor base URL, e.g. http://localhost:3000")
    snapshot.set_defaults(handler=_snapshot)

    watch = sub.add_parser("watch", help="Tail a running monitor's snapshot stream")
    watch.add_argument("url", help="Monitor base URL, e.g. http://localhost:3000")
    watch.add_argument("--count", type=int, default=None, help="Stop after N snapshots")
    watch.set_defaults(handler=_watch)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.handler(args)
    except (httpx.HTTPError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
