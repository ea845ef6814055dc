"""Event definitions, watchers and subscriber routing."""

from .event import Event, EventKind, EventMessage, HealthEvent, LogEvent, UnknownEvent
from .router import EventRouter
from .supervisor import EventWatchSupervisor

__all__ = [
    "Event",
    "EventKind",
    "EventMessage",
    "EventRouter",
    "EventWatchSupervisor",
    "HealthEvent",
    "LogEvent",
    "UnknownEvent",
]
