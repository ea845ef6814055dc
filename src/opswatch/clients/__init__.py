"""Messaging channel adapters and the registry that fans them in and out."""

from .base import Client, Message, MessageGateway, client_from_config
from .registry import ClientRegistry, split_chunks
from .telegram import TelegramClient

__all__ = [
    "Client",
    "ClientRegistry",
    "Message",
    "MessageGateway",
    "TelegramClient",
    "client_from_config",
    "split_chunks",
]
