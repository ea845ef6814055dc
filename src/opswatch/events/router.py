"""Event subscriptions and delivery of watcher matches to subscribed chats."""

from __future__ import annotations

import asyncio

import structlog

from opswatch.clients import MessageGateway
from opswatch.errors import EventNotFoundError, StoreError
from opswatch.models import ChatList, Config, EventConfig, EventSubscribeList
from opswatch.storage import DocumentStore

from .event import EventMessage

log = structlog.get_logger()


class EventRouter:
    """Single consumer of the event queue, and owner of the subscription list.

    Runs as a scheduler worker: each tick takes one EventMessage off the queue,
    looks up the current subscribers of its event and sends the text to each
    of them through the gateway.
    """

    name = "event-router"
    interval = 0.0

    def __init__(
        self,
        config_store: DocumentStore[Config],
        subscribe_store: DocumentStore[EventSubscribeList],
        chat_store: DocumentStore[ChatList],
        gateway: MessageGateway,
        queue: asyncio.Queue[EventMessage],
    ):
        self.config_store = config_store
        self.subscribe_store = subscribe_store
        self.chat_store = chat_store
        self.gateway = gateway
        self.queue = queue

    async def on_tick(self) -> bool:
        message = await self.queue.get()
        try:
            await self.dispatch(message)
        except StoreError as e:
            log.error("Fail to dispatch event", event=message.event_name, error=str(e))
        finally:
            self.queue.task_done()
        return True

    async def dispatch(self, message: EventMessage) -> int:
        """Send the message to every chat subscribed to its event. Returns deliveries."""
        subscribes = await self.subscribe_store.read()
        chat_ids = subscribes.subscribers(message.event_name)
        if not chat_ids:
            log.debug("Event has no subscribers", event=message.event_name)
            return 0

        chat_list = await self.chat_store.read()
        chats = {chat.id: chat for chat in chat_list.chats}

        delivered = 0
        for chat_id in chat_ids:
            chat = chats.get(chat_id)
            if chat is None:
                log.warning("Subscriber is not registered", event=message.event_name, chat=chat_id)
                continue
            if await self.gateway.send_message(chat.client_name, chat.identity, message.text):
                delivered += 1

        log.info(
            "Event dispatched",
            event=message.event_name,
            subscribers=len(chat_ids),
            delivered=delivered,
        )
        return delivered

    async def subscribe(self, chat_id: str, event_name: str) -> bool:
        """Subscribe a chat to an event. Returns False if it was already subscribed.

        Raises:
            EventNotFoundError: No event with that name is configured
        """
        config = await self.config_store.read()
        if config.find_event(event_name) is None:
            raise EventNotFoundError(event_name)

        added = await self.subscribe_store.update(lambda doc: doc.subscribe(event_name, chat_id))
        if added:
            log.info("Chat subscribed", event=event_name, chat=chat_id)
        return added

    async def unsubscribe(self, chat_id: str, event_name: str) -> bool:
        """Unsubscribe a chat. A chat that is not subscribed is a no-op."""
        removed = await self.subscribe_store.update(
            lambda doc: doc.unsubscribe(event_name, chat_id)
        )
        if removed:
            log.info("Chat unsubscribed", event=event_name, chat=chat_id)
        return removed

    async def list_subscribed_events(self, chat_id: str) -> list[EventConfig]:
        subscribes = await self.subscribe_store.read()
        event_names = set(subscribes.find_subscribed_events(chat_id))
        config = await self.config_store.read()
        return [event for event in config.events if event.name in event_names]
