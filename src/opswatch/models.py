"""Persisted document models.

Each top-level model maps to one JSON file in the data directory:

- ``Config`` -> config.json (password, clients, servers, events)
- ``ChatList`` -> chat_list.json (registered chats)
- ``EventSubscribeList`` -> subscribe.json (event name -> chat ids)
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class ClientConfig(BaseModel):
    """A messaging channel the bot polls and replies on."""

    name: str
    kind: str  # ex: telegram
    token: str | None = None

    @classmethod
    def new_telegram(cls, name: str, token: str) -> ClientConfig:
        return cls(name=name, kind="telegram", token=token)


class ServerConfig(BaseModel):
    """A monitored server as entered by the operator."""

    name: str
    base_url: str | None = None
    docker_container_name: str | None = None
    health_check_path: str | None = None
    kill_path: str | None = None
    log_command: str | None = None


class EventConfig(BaseModel):
    """A keyword condition watched on a target server."""

    type: str  # logs, health
    name: str
    target: str  # target server
    keyword: str


class Config(BaseModel):
    """Operator-managed configuration document."""

    password: str | None = None
    clients: list[ClientConfig] = Field(default_factory=list)
    servers: list[ServerConfig] = Field(default_factory=list)
    events: list[EventConfig] = Field(default_factory=list)

    def find_event(self, name: str) -> EventConfig | None:
        return next((event for event in self.events if event.name == name), None)


class Chat(BaseModel):
    """A registered (client, identity) pair and its internal subscriber id."""

    id: str
    client_name: str
    identity: str

    @classmethod
    def new(cls, client_name: str, identity: str) -> Chat:
        return cls(id=str(uuid.uuid4()), client_name=client_name, identity=identity)


class ChatList(BaseModel):
    chats: list[Chat] = Field(default_factory=list)

    def find(self, client_name: str, identity: str) -> Chat | None:
        for chat in self.chats:
            if chat.client_name == client_name and chat.identity == identity:
                return chat
        return None


class EventSubscribe(BaseModel):
    event_name: str
    chat_ids: list[str] = Field(default_factory=list)

    def contains(self, chat_id: str) -> bool:
        return chat_id in self.chat_ids


class EventSubscribeList(BaseModel):
    """Subscriptions keyed by event name; chat ids are unique per event."""

    subscribes: list[EventSubscribe] = Field(default_factory=list)

    def find_subscribe(self, event_name: str) -> EventSubscribe | None:
        return next((s for s in self.subscribes if s.event_name == event_name), None)

    def contains(self, event_name: str, chat_id: str) -> bool:
        subscribe = self.find_subscribe(event_name)
        return subscribe is not None and subscribe.contains(chat_id)

    def subscribe(self, event_name: str, chat_id: str) -> bool:
        """Add chat_id to the event's subscribers. Returns False if already present."""
        subscribe = self.find_subscribe(event_name)
        if subscribe is None:
            self.subscribes.append(EventSubscribe(event_name=event_name, chat_ids=[chat_id]))
            return True
        if subscribe.contains(chat_id):
            return False
        subscribe.chat_ids.append(chat_id)
        return True

    def unsubscribe(self, event_name: str, chat_id: str) -> bool:
        """Remove chat_id from the event's subscribers. Returns False if absent."""
        subscribe = self.find_subscribe(event_name)
        if subscribe is None or not subscribe.contains(chat_id):
            return False
        subscribe.chat_ids = [id_ for id_ in subscribe.chat_ids if id_ != chat_id]
        return True

    def remove_event(self, event_name: str) -> bool:
        before = len(self.subscribes)
        self.subscribes = [s for s in self.subscribes if s.event_name != event_name]
        return len(self.subscribes) != before

    def find_subscribed_events(self, chat_id: str) -> list[str]:
        return [s.event_name for s in self.subscribes if s.contains(chat_id)]

    def subscribers(self, event_name: str) -> list[str]:
        subscribe = self.find_subscribe(event_name)
        return list(subscribe.chat_ids) if subscribe else []
