from __future__ import annotations

from pulse.server.app import create_app, health_payload
from pulse.server.middleware import RequestMetricsMiddleware

__all__ = ["RequestMetricsMiddleware", "create_app", "health_payload"]
