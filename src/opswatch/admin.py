"""Operator-side configuration changes: clients, servers and events.

Used by the CLI. Every change is a locked read-modify-write of config.json.
"""

import structlog

from opswatch.errors import ConfigurationError
from opswatch.models import ClientConfig, Config, EventConfig, ServerConfig
from opswatch.storage import Stores

log = structlog.get_logger()

CLIENT_KINDS = ("telegram",)
EVENT_TYPES = ("logs", "health")


class ConfigAdmin:
    """Add, list and remove configured clients, servers and events."""

    def __init__(self, stores: Stores):
        self.stores = stores

    # --- Clients ---

    async def add_client(self, client: ClientConfig) -> None:
        if client.kind not in CLIENT_KINDS:
            raise ConfigurationError(f"kind({client.kind}) is not available")
        if client.kind == "telegram" and not client.token:
            raise ConfigurationError("Telegram clients require a token")

        def apply(config: Config) -> bool:
            if any(c.name == client.name for c in config.clients):
                raise ConfigurationError(f"Client '{client.name}' already exists")
            config.clients.append(client)
            return True

        await self.stores.config.update(apply)
        log.info("Client added", client=client.name, kind=client.kind)

    async def list_clients(self) -> list[ClientConfig]:
        return (await self.stores.config.read()).clients

    async def remove_client(self, name: str) -> bool:
        def apply(config: Config) -> bool:
            before = len(config.clients)
            config.clients = [c for c in config.clients if c.name != name]
            return len(config.clients) != before

        return await self.stores.config.update(apply)

    # --- Servers ---

    async def add_server(self, server: ServerConfig) -> None:
        def apply(config: Config) -> bool:
            if any(s.name == server.name for s in config.servers):
                raise ConfigurationError(f"Server '{server.name}' already exists")
            config.servers.append(server)
            return True

        await self.stores.config.update(apply)
        log.info("Server added", server=server.name)

    async def list_servers(self) -> list[ServerConfig]:
        return (await self.stores.config.read()).servers

    async def remove_server(self, name: str) -> bool:
        def apply(config: Config) -> bool:
            before = len(config.servers)
            config.servers = [s for s in config.servers if s.name != name]
            return len(config.servers) != before

        return await self.stores.config.update(apply)

    # --- Events ---

    async def add_event(self, event: EventConfig) -> None:
        if event.type not in EVENT_TYPES:
            raise ConfigurationError(
                f"Event type '{event.type}' is not available (use {' or '.join(EVENT_TYPES)})"
            )

        def apply(config: Config) -> bool:
            if config.find_event(event.name) is not None:
                raise ConfigurationError(f"Event '{event.name}' already exists")
            config.events.append(event)
            return True

        await self.stores.config.update(apply)
        log.info("Event added", event=event.name, type=event.type, target=event.target)

    async def list_events(self) -> list[EventConfig]:
        return (await self.stores.config.read()).events

    async def remove_event(self, name: str) -> bool:
        """Remove an event and every subscription to it."""

        def apply(config: Config) -> bool:
            before = len(config.events)
            config.events = [e for e in config.events if e.name != name]
            return len(config.events) != before

        removed = await self.stores.config.update(apply)
        await self.stores.subscribes.update(lambda doc: doc.remove_event(name))
        if removed:
            log.info("Event removed", event=name)
        return removed
