"""Health checks, log reads and kill requests against named servers."""

import structlog

from opswatch.metrics import HEALTH_CHECKS

from .container import DockerHealthChecker
from .directory import ServerDirectory
from .health import Health
from .http_probe import HttpServerClient
from .logs import LogReader, LogStream
from .server import ContainerProbe, HttpProbe, NoProbe

log = structlog.get_logger()


class ServerManager:
    """Resolves servers by name and dispatches to the configured strategy."""

    def __init__(
        self,
        directory: ServerDirectory,
        http_client: HttpServerClient | None = None,
        log_reader: LogReader | None = None,
        docker_checker: DockerHealthChecker | None = None,
    ):
        self.directory = directory
        self.http_client = http_client or HttpServerClient()
        self.log_reader = log_reader or LogReader()
        self.docker_checker = docker_checker or DockerHealthChecker()

    async def healthcheck(self, name: str) -> Health:
        server = self.directory.find(name)
        if server is None:
            return Health.unknown(f"Fail to find server: '{name}'")

        method = server.health_check_method
        if isinstance(method, HttpProbe):
            health = await self.http_client.healthcheck(server)
        elif isinstance(method, ContainerProbe):
            health = await self.docker_checker.healthcheck(server)
        elif isinstance(method, NoProbe):
            health = Health.unknown("Health check is not available")
        else:
            raise TypeError(f"Unhandled health check method: {method!r}")

        HEALTH_CHECKS.labels(status=health.status.value).inc()
        log.debug("Health checked", server=name, health=str(health))
        return health

    async def healthcheck_all(self) -> list[tuple[str, Health]]:
        """Check every known server, one after another."""
        results = []
        for server in self.directory.find_all():
            results.append((server.name, await self.healthcheck(server.name)))
        return results

    async def logs(self, name: str, n: int) -> str | None:
        server = self.directory.find(name)
        if server is None:
            return None
        return await self.log_reader.read(server, n)

    async def logs_stream(self, name: str) -> LogStream | None:
        """Open a live log stream. The caller owns it and must ``aclose`` it."""
        server = self.directory.find(name)
        if server is None:
            return None
        return await self.log_reader.read_follow(server)

    async def kill(self, name: str) -> bool:
        server = self.directory.find(name)
        if server is None:
            return False
        return await self.http_client.kill(server)

    async def aclose(self) -> None:
        await self.http_client.aclose()
