"""Health states reported by probes."""

from dataclasses import dataclass
from enum import Enum


class HealthStatus(Enum):
    """Closed set of health states."""

    HEALTHY = "Healthy"
    UNHEALTHY = "Unhealthy"
    DEREGISTERED = "Deregistered"  # Draining
    DEGRADED = "Degraded"
    DOWN = "Down"  # Dead
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class Health:
    """Result of one health check. Produced fresh on every check, never cached."""

    status: HealthStatus
    reason: str | None = None

    def __str__(self) -> str:
        if self.reason:
            return f"{self.status.value} ({self.reason})"
        return self.status.value

    @classmethod
    def healthy(cls) -> "Health":
        return cls(HealthStatus.HEALTHY)

    @classmethod
    def unhealthy(cls, reason: str | None = None) -> "Health":
        return cls(HealthStatus.UNHEALTHY, reason)

    @classmethod
    def deregistered(cls, reason: str | None = None) -> "Health":
        return cls(HealthStatus.DEREGISTERED, reason)

    @classmethod
    def degraded(cls, reason: str | None = None) -> "Health":
        return cls(HealthStatus.DEGRADED, reason)

    @classmethod
    def down(cls, reason: str | None = None) -> "Health":
        return cls(HealthStatus.DOWN, reason)

    @classmethod
    def unknown(cls, reason: str) -> "Health":
        return cls(HealthStatus.UNKNOWN, reason)
