"""Server directory loaded from the config document."""

from collections.abc import Mapping
from types import MappingProxyType

import structlog

from opswatch.models import Config
from opswatch.storage import DocumentStore

from .server import Server

log = structlog.get_logger()


class ServerDirectory:
    """Name -> Server lookup.

    ``load`` builds a fresh mapping and swaps it in; readers always see a
    complete snapshot, never a half-loaded one.
    """

    def __init__(self, config_store: DocumentStore[Config] | None = None):
        self.config_store = config_store
        self._servers: Mapping[str, Server] = MappingProxyType({})

    async def load(self) -> int:
        if self.config_store is None:
            return len(self._servers)
        config = await self.config_store.read()
        self.replace(Server.from_config(server_config) for server_config in config.servers)
        log.info("Servers loaded", count=len(self._servers))
        return len(self._servers)

    def replace(self, servers) -> None:
        self._servers = MappingProxyType({server.name: server for server in servers})

    def find(self, name: str) -> Server | None:
        return self._servers.get(name)

    def find_all(self) -> list[Server]:
        return list(self._servers.values())
