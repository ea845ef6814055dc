"""Runtime view of configured events."""

from __future__ import annotations

from dataclasses import dataclass

from opswatch.models import EventConfig


@dataclass(frozen=True)
class LogEvent:
    """Match keyword against each line of the server's live log."""

    server_name: str
    keyword: str


@dataclass(frozen=True)
class HealthEvent:
    """Match keyword against the stringified health of the server."""

    server_name: str
    keyword: str


@dataclass(frozen=True)
class UnknownEvent:
    """Unrecognised event type; no watcher is spawned."""

    type: str


EventKind = LogEvent | HealthEvent | UnknownEvent


@dataclass(frozen=True)
class Event:
    name: str
    kind: EventKind

    @classmethod
    def from_config(cls, config: EventConfig) -> Event:
        kind: EventKind
        if config.type == "logs":
            kind = LogEvent(config.target, config.keyword)
        elif config.type == "health":
            kind = HealthEvent(config.target, config.keyword)
        else:
            kind = UnknownEvent(config.type)
        return cls(name=config.name, kind=kind)


@dataclass(frozen=True)
class EventMessage:
    """A watcher match, consumed exactly once by the router."""

    event_name: str
    text: str
