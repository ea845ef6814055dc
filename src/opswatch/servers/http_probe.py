"""HTTP health probe and kill requests."""

import httpx
import structlog

from .health import Health
from .server import Server

log = structlog.get_logger()


def health_from_status(status_code: int) -> Health:
    """Map an HTTP status code to a health state."""
    if 200 <= status_code < 300:
        return Health.healthy()
    if 500 <= status_code < 600:
        return Health.unhealthy(f"HTTP {status_code}")
    return Health.degraded(f"HTTP {status_code}")


class HttpServerClient:
    """Issues health check and kill requests against a server's base URL."""

    def __init__(self, http_client: httpx.AsyncClient | None = None, timeout: float = 5.0):
        self.http = http_client or httpx.AsyncClient(timeout=timeout)

    async def healthcheck(self, server: Server) -> Health:
        url = server.health_check_url()
        if url is None:
            return Health.unknown("Health check URL is not available")

        try:
            response = await self.http.get(url)
        except httpx.TimeoutException:
            log.warning("Health check timed out", server=server.name, url=url)
            return Health.unhealthy("timeout")
        except httpx.RequestError as e:
            log.warning("Health check request failed", server=server.name, error=str(e))
            return Health.down(str(e) or type(e).__name__)

        return health_from_status(response.status_code)

    async def kill(self, server: Server) -> bool:
        url = server.kill_url()
        if url is None:
            return False

        try:
            await self.http.get(url)
        except httpx.RequestError as e:
            log.error("Kill request failed", server=server.name, error=str(e))
            return False

        log.info("Kill signal sent", server=server.name)
        return True

    async def aclose(self) -> None:
        await self.http.aclose()
