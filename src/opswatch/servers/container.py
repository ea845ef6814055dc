"""Container runtime health probe (Docker Engine API)."""

import asyncio
from typing import Any

import docker
import structlog

from .health import Health
from .server import ContainerProbe, Server

log = structlog.get_logger()


def health_from_container_state(state: dict[str, Any]) -> Health:
    """Map a container's ``State`` block to a health state.

    Args:
        state: ``container.attrs["State"]`` as returned by the Engine API
    """
    status = state.get("Status", "")
    health = (state.get("Health") or {}).get("Status")

    if status == "running":
        if health == "unhealthy":
            return Health.unhealthy("container healthcheck failing")
        if health == "starting":
            return Health.degraded("container starting")
        return Health.healthy()
    if status == "restarting":
        return Health.degraded("restarting")
    if status in ("paused", "removing"):
        return Health.deregistered(status)
    if status in ("exited", "dead"):
        exit_code = state.get("ExitCode")
        return Health.down(f"{status} (exit code {exit_code})")
    return Health.unknown(f"container status '{status}'")


class DockerHealthChecker:
    """Checks container state through the Docker SDK.

    The SDK is synchronous; calls run in a worker thread.
    """

    def __init__(self, client: docker.DockerClient | None = None):
        self._client = client

    def _get_client(self) -> docker.DockerClient:
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    def _inspect(self, container_name: str) -> dict[str, Any]:
        container = self._get_client().containers.get(container_name)
        return container.attrs.get("State", {})

    async def healthcheck(self, server: Server) -> Health:
        method = server.health_check_method
        if not isinstance(method, ContainerProbe):
            return Health.unknown("Container name is not configured")

        try:
            state = await asyncio.to_thread(self._inspect, method.container)
        except docker.errors.NotFound:
            return Health.down(f"container '{method.container}' not found")
        except docker.errors.DockerException as e:
            log.warning("Docker health check failed", server=server.name, error=str(e))
            return Health.unknown(f"docker error: {e}")

        return health_from_container_state(state)
