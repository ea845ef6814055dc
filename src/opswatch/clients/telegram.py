"""Telegram Bot API adapter."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from .base import Message

log = structlog.get_logger()

API_URL = "https://api.telegram.org"


class TelegramError(Exception):
    """Telegram answered with ``ok: false``."""


class TelegramClient:
    """Long-poll style Telegram adapter driven by the scheduler.

    Each tick calls ``getUpdates`` from the current offset, advances the offset
    to one past the highest ``update_id`` seen and pushes one ``Message`` per
    usable update onto the subscribed queue.
    """

    def __init__(
        self,
        name: str,
        token: str,
        interval: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._name = name
        self._interval = interval
        self.offset = 0
        self._queue: asyncio.Queue[Message] | None = None
        self.http = http_client or httpx.AsyncClient(
            base_url=f"{API_URL}/bot{token}/",
            timeout=10.0,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def interval(self) -> float:
        return self._interval

    def subscribe(self, queue: asyncio.Queue[Message]) -> None:
        self._queue = queue

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        response = await self.http.post(method, json=payload)
        response.raise_for_status()
        body = response.json()
        if not body.get("ok"):
            raise TelegramError(
                f"status: {body.get('error_code')} {body.get('description')}"
            )
        return body.get("result")

    async def get_updates(self) -> list[dict[str, Any]]:
        """Fetch updates since the cursor and advance it past the newest one."""
        updates: list[dict[str, Any]] = await self._call(
            "getUpdates", {"offset": self.offset, "timeout": 0}
        )
        if updates:
            self.offset = max(update["update_id"] for update in updates) + 1
            log.debug("Telegram offset advanced", client=self.name, offset=self.offset)
        return updates

    @staticmethod
    def to_chat_text(update: dict[str, Any]) -> tuple[str, str] | None:
        """Extract (chat_id, text) from a message or callback query update."""
        message = update.get("message")
        if message is not None:
            return str(message["chat"]["id"]), message.get("text") or ""

        callback = update.get("callback_query")
        if callback is not None and callback.get("message") is not None:
            return str(callback["message"]["chat"]["id"]), callback.get("data") or ""

        return None

    async def on_tick(self) -> bool:
        try:
            updates = await self.get_updates()
        except (httpx.HTTPError, TelegramError, ValueError) as e:
            # Offset untouched; the same updates are fetched next tick
            log.error("Telegram poll failed", client=self.name, error=str(e))
            return True

        log.debug("Telegram updates received", client=self.name, count=len(updates))
        for update in updates:
            chat_text = self.to_chat_text(update)
            if chat_text is None:
                continue
            if self._queue is None:
                log.warning("No subscriber for inbound message", client=self.name)
                continue
            chat_id, text = chat_text
            await self._queue.put(Message(self.name, chat_id, text))
        return True

    async def send_message(self, chat_id: str, text: str) -> bool:
        try:
            await self._call("sendMessage", {"chat_id": chat_id, "text": text})
        except (httpx.HTTPError, TelegramError, ValueError) as e:
            log.error("Telegram send failed", client=self.name, chat_id=chat_id, error=str(e))
            return False
        return True

    async def aclose(self) -> None:
        await self.http.aclose()
