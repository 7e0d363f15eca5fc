from __future__ import annotations

from pulse.config.models import HealthThresholds, MonitorConfig, ServerConfig

__all__ = ["HealthThresholds", "MonitorConfig", "ServerConfig"]
