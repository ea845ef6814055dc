"""Resolved server definitions."""

from __future__ import annotations

from dataclasses import dataclass

from opswatch.models import ServerConfig


@dataclass(frozen=True)
class HttpProbe:
    """GET ``{base_url}/{path}`` and map the status code."""

    path: str


@dataclass(frozen=True)
class ContainerProbe:
    """Ask the container runtime for the container state."""

    container: str


@dataclass(frozen=True)
class NoProbe:
    """Health check is not available for this server."""


HealthCheckMethod = HttpProbe | ContainerProbe | NoProbe


@dataclass(frozen=True)
class Server:
    """A server as used at runtime. Immutable for the lifetime of a load."""

    name: str
    base_url: str | None
    docker_container_name: str | None
    health_check_method: HealthCheckMethod
    kill_path: str | None
    log_command: tuple[str, ...] | None

    @classmethod
    def from_config(cls, config: ServerConfig) -> Server:
        log_command = None
        if config.log_command and config.log_command.strip():
            log_command = tuple(config.log_command.split())

        method: HealthCheckMethod
        if config.health_check_path:
            method = HttpProbe(config.health_check_path)
        elif config.docker_container_name:
            method = ContainerProbe(config.docker_container_name)
        else:
            method = NoProbe()

        return cls(
            name=config.name,
            base_url=config.base_url,
            docker_container_name=config.docker_container_name,
            health_check_method=method,
            kill_path=config.kill_path,
            log_command=log_command,
        )

    def health_check_url(self) -> str | None:
        if not isinstance(self.health_check_method, HttpProbe) or not self.base_url:
            return None
        return _join(self.base_url, self.health_check_method.path)

    def kill_url(self) -> str | None:
        if not self.kill_path or not self.base_url:
            return None
        return _join(self.base_url, self.kill_path)


def _join(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"
