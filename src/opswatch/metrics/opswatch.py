"""Standard Prometheus metrics for opswatch.

All metrics use the 'opswatch_' prefix for consistency.
"""

from prometheus_client import Counter, Gauge, Info

# Service info - set once at startup
SERVICE_INFO = Info(
    "opswatch_service",
    "Service metadata",
)

COMMANDS = Counter(
    "opswatch_commands_total",
    "Total chat commands handled",
    ["command"],  # health, health_all, logs, alarm, register, unknown, unauthorized
)

HEALTH_CHECKS = Counter(
    "opswatch_health_checks_total",
    "Total health checks performed",
    ["status"],
)

EVENTS_EMITTED = Counter(
    "opswatch_events_emitted_total",
    "Total event matches emitted by watchers",
    ["event"],
)

DELIVERIES = Counter(
    "opswatch_deliveries_total",
    "Total outbound message chunks",
    ["status"],  # success, error, no_client
)

WATCHERS_ACTIVE = Gauge(
    "opswatch_watchers_active",
    "Number of running event watchers",
)
