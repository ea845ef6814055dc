"""Client registry: loads adapters, merges their inbound streams, routes sends."""

from __future__ import annotations

import asyncio

import structlog

from opswatch.metrics import DELIVERIES
from opswatch.models import Config
from opswatch.scheduler import TaskScheduler
from opswatch.storage import DocumentStore

from .base import Client, Message, client_from_config

log = structlog.get_logger()

CHUNK_SIZE = 4000
CHUNK_DELAY = 0.5


def split_chunks(text: str, size: int = CHUNK_SIZE) -> list[str]:
    """Split text into consecutive pieces of at most ``size`` characters."""
    if not text:
        return [""]
    return [text[i : i + size] for i in range(0, len(text), size)]


class ClientRegistry:
    """Owns every configured adapter.

    Inbound: all adapters publish onto one bounded queue, drained by a single
    consumer (the handler loop). Outbound: ``send_message`` resolves the
    adapter by name and delivers the text in rate-limited chunks.
    """

    def __init__(
        self,
        scheduler: TaskScheduler,
        config_store: DocumentStore[Config] | None = None,
        poll_interval: float = 5.0,
        chunk_size: int = CHUNK_SIZE,
        chunk_delay: float = CHUNK_DELAY,
        queue_size: int = 16,
    ):
        self.scheduler = scheduler
        self.config_store = config_store
        self.poll_interval = poll_interval
        self.chunk_size = chunk_size
        self.chunk_delay = chunk_delay
        self.inbound: asyncio.Queue[Message] = asyncio.Queue(maxsize=queue_size)
        self._clients: dict[str, Client] = {}

    async def load_clients(self) -> int:
        """(Re)build the adapter map from the config document."""
        if self.config_store is None:
            return len(self._clients)
        config = await self.config_store.read()

        clients: dict[str, Client] = {}
        for client_config in config.clients:
            client = client_from_config(client_config, interval=self.poll_interval)
            if client is not None:
                clients[client.name] = client
        self._clients = clients
        log.info("Clients loaded", count=len(clients))
        return len(clients)

    def register(self, client: Client) -> None:
        self._clients[client.name] = client

    def find(self, name: str) -> Client | None:
        return self._clients.get(name)

    def names(self) -> list[str]:
        return list(self._clients)

    def run(self) -> asyncio.Queue[Message]:
        """Start every adapter as a scheduler worker and return the merged inbound queue."""
        for client in self._clients.values():
            client.subscribe(self.inbound)
            self.scheduler.run(client)
        return self.inbound

    def stop(self) -> None:
        for name in self._clients:
            self.scheduler.stop(name)

    async def send_message(self, client_name: str, chat_id: str, text: str) -> bool:
        """Deliver text in chunks, best effort.

        A failed chunk does not stop the remaining ones. Returns True only if
        every chunk was accepted.
        """
        client = self.find(client_name)
        if client is None:
            log.error("Client is not available", client=client_name)
            DELIVERIES.labels(status="no_client").inc()
            return False

        chunks = split_chunks(text, self.chunk_size)
        delivered = True
        for index, chunk in enumerate(chunks):
            if index:
                await asyncio.sleep(self.chunk_delay)
            if await client.send_message(chat_id, chunk):
                DELIVERIES.labels(status="success").inc()
            else:
                DELIVERIES.labels(status="error").inc()
                delivered = False
        return delivered

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.aclose()
