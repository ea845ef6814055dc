"""Registration and authentication of chats.

A chat is identified externally by (client name, identity) and internally by a
subscriber id assigned on first registration. Lookups go through an in-memory
snapshot of the chat list that is rebuilt lazily after every registration.
"""

import asyncio
import hmac
from collections.abc import Mapping
from types import MappingProxyType

import structlog

from opswatch.errors import StoreError
from opswatch.models import Chat, ChatList, Config
from opswatch.storage import DocumentStore

log = structlog.get_logger()

ChatKey = tuple[str, str]


class AuthGate:
    """Shared-password gate in front of every chat command."""

    def __init__(self, config_store: DocumentStore[Config], chat_store: DocumentStore[ChatList]):
        self.config_store = config_store
        self.chat_store = chat_store
        self._password: str | None = None
        self._chat_map: Mapping[ChatKey, str] | None = None
        self._build_lock = asyncio.Lock()
        self._generation = 0

    async def init(self) -> None:
        """Load the configured password."""
        config = await self.config_store.read()
        self._password = config.password

    async def set_password(self, password: str | None) -> None:
        """Persist a new password. None disables the gate."""

        def apply(config: Config) -> bool:
            config.password = password
            return True

        await self.config_store.update(apply)
        self._password = password
        log.info("Password updated", required=password is not None)

    def password_required(self) -> bool:
        return self._password is not None

    def validate_password(self, candidate: str) -> bool:
        """Compare against the configured password. False when none is set."""
        if self._password is None:
            return False
        return hmac.compare_digest(self._password.encode(), candidate.encode())

    async def register(self, client_name: str, identity: str) -> str:
        """Register a chat, returning its subscriber id.

        Idempotent: an existing (client_name, identity) entry is reused and the
        chat list is left untouched.
        """
        registered: list[str] = []

        def apply(chat_list: ChatList) -> bool:
            existing = chat_list.find(client_name, identity)
            if existing is not None:
                registered.append(existing.id)
                return False
            chat = Chat.new(client_name, identity)
            chat_list.chats.append(chat)
            registered.append(chat.id)
            return True

        if await self.chat_store.update(apply):
            self.invalidate()
            log.info("Chat registered", client=client_name, identity=identity)
        return registered[0]

    async def authenticate(self, client_name: str, identity: str) -> str | None:
        """Resolve the subscriber id for a chat, or None if it is not registered."""
        try:
            chat_map = await self._get_chat_map()
        except StoreError as e:
            log.error("Fail to load chat list", error=str(e))
            return None
        return chat_map.get((client_name, identity))

    def invalidate(self) -> None:
        """Drop the cached lookup; the next authenticate rebuilds it."""
        self._generation += 1
        self._chat_map = None

    async def _get_chat_map(self) -> Mapping[ChatKey, str]:
        chat_map = self._chat_map
        if chat_map is not None:
            return chat_map

        async with self._build_lock:
            if self._chat_map is not None:
                return self._chat_map

            generation = self._generation
            chat_list = await self.chat_store.read()
            chat_map = MappingProxyType(
                {(chat.client_name, chat.identity): chat.id for chat in chat_list.chats}
            )
            # A registration landed while reading; serve this snapshot but do not cache it
            if generation == self._generation:
                self._chat_map = chat_map
            log.debug("Chat map rebuilt", chats=len(chat_list.chats))
            return chat_map
