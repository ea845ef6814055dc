"""Channel-agnostic message model and adapter interfaces."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol

import structlog

from opswatch.models import ClientConfig

log = structlog.get_logger()


@dataclass(frozen=True)
class Message:
    """An inbound chat message, consumed once by the handler."""

    client_name: str
    chat_id: str
    text: str


class Client(Protocol):
    """A messaging platform adapter.

    An adapter is a scheduler worker (``on_tick`` polls the platform and pushes
    ``Message``s onto the queue given to ``subscribe``) and an outbound sender.
    The same instance is shared by both roles; only ``on_tick`` mutates the
    poll cursor and ticks never overlap.
    """

    @property
    def name(self) -> str: ...

    @property
    def interval(self) -> float: ...

    async def on_tick(self) -> bool: ...

    def subscribe(self, queue: asyncio.Queue[Message]) -> None: ...

    async def send_message(self, chat_id: str, text: str) -> bool: ...

    async def aclose(self) -> None: ...


class MessageGateway(Protocol):
    """Outbound delivery by client name. Chunking is the gateway's job."""

    async def send_message(self, client_name: str, chat_id: str, text: str) -> bool: ...


def client_from_config(config: ClientConfig, interval: float = 5.0) -> Client | None:
    """Build the adapter for a configured client kind, or None if unsupported."""
    from .telegram import TelegramClient

    if config.kind == "telegram":
        if not config.token:
            log.error("Telegram client has no token", client=config.name)
            return None
        return TelegramClient(config.name, config.token, interval=interval)

    log.warning("Unsupported client kind, skipping", client=config.name, kind=config.kind)
    return None
