"""Prometheus metrics for opswatch.

This module provides:
- Standard opswatch metrics (COMMANDS, HEALTH_CHECKS, EVENTS_EMITTED, ...)
- A metrics server for /metrics plus a JSON /health summary

Usage:
    from opswatch.metrics import start_metrics_server, COMMANDS

    server = start_metrics_server(port=9100, status=lambda: {"clients": ["ops-bot"]})

    COMMANDS.labels(command="health").inc()
"""

from opswatch.metrics.opswatch import (
    COMMANDS,
    DELIVERIES,
    EVENTS_EMITTED,
    HEALTH_CHECKS,
    SERVICE_INFO,
    WATCHERS_ACTIVE,
)
from opswatch.metrics.server import MetricsServer, start_metrics_server, stop_metrics_server

__all__ = [
    "MetricsServer",
    "start_metrics_server",
    "stop_metrics_server",
    "SERVICE_INFO",
    "COMMANDS",
    "HEALTH_CHECKS",
    "EVENTS_EMITTED",
    "DELIVERIES",
    "WATCHERS_ACTIVE",
]
