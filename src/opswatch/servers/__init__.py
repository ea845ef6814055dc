"""Server definitions, health probes and log access."""

from .directory import ServerDirectory
from .health import Health, HealthStatus
from .logs import LogReader, LogStream
from .manager import ServerManager
from .server import ContainerProbe, HealthCheckMethod, HttpProbe, NoProbe, Server

__all__ = [
    "ContainerProbe",
    "Health",
    "HealthCheckMethod",
    "HealthStatus",
    "HttpProbe",
    "LogReader",
    "LogStream",
    "NoProbe",
    "Server",
    "ServerDirectory",
    "ServerManager",
]
