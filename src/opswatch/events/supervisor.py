"""Spawns one watcher task per configured event.

Health watcher: check, match keyword against ``str(health)``, sleep, forever.
Log watcher: open a live log stream and match every line; ends when the
log process exits. Matches go onto the shared event queue consumed by
``EventRouter``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from functools import partial

import structlog

from opswatch.metrics import EVENTS_EMITTED, WATCHERS_ACTIVE
from opswatch.models import Config
from opswatch.servers import ServerManager
from opswatch.storage import DocumentStore

from .event import Event, EventMessage, HealthEvent, LogEvent, UnknownEvent

log = structlog.get_logger()

HEALTH_INTERVAL = 30.0


async def watch_health(
    event_name: str,
    kind: HealthEvent,
    server_manager: ServerManager,
    queue: asyncio.Queue[EventMessage],
    interval: float = HEALTH_INTERVAL,
) -> None:
    """Emit an EventMessage each interval while the health string contains the keyword."""
    while True:
        try:
            health = await server_manager.healthcheck(kind.server_name)
            if kind.keyword in str(health):
                await queue.put(
                    EventMessage(
                        event_name=event_name,
                        text=(
                            f"[{event_name}] Keyword '{kind.keyword}' found in health check "
                            f"of server '{kind.server_name}'\nHealth: {health}"
                        ),
                    )
                )
                EVENTS_EMITTED.labels(event=event_name).inc()
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("Health watcher cycle failed", event=event_name)
        await asyncio.sleep(interval)


async def watch_logs(
    event_name: str,
    kind: LogEvent,
    server_manager: ServerManager,
    queue: asyncio.Queue[EventMessage],
) -> None:
    """Emit an EventMessage for every log line containing the keyword."""
    stream = await server_manager.logs_stream(kind.server_name)
    if stream is None:
        log.warning("Logs are not available, watcher not started", event=event_name)
        return

    async with stream:
        async for line in stream:
            if kind.keyword not in line:
                continue
            await queue.put(
                EventMessage(
                    event_name=event_name,
                    text=(
                        f"[{event_name}] Keyword '{kind.keyword}' found in logs "
                        f"of server '{kind.server_name}'\nLog: {line}"
                    ),
                )
            )
            EVENTS_EMITTED.labels(event=event_name).inc()

    log.warning("Log stream ended", event=event_name, server=kind.server_name)


class EventWatchSupervisor:
    """Keeps at most one running watcher per event name."""

    def __init__(
        self,
        config_store: DocumentStore[Config] | None,
        server_manager: ServerManager,
        queue: asyncio.Queue[EventMessage],
        health_interval: float = HEALTH_INTERVAL,
    ):
        self.config_store = config_store
        self.server_manager = server_manager
        self.queue = queue
        self.health_interval = health_interval
        self._watchers: dict[str, asyncio.Task[None]] = {}

    async def start(self) -> int:
        """Load every configured event and spawn its watcher."""
        if self.config_store is None:
            return 0
        config = await self.config_store.read()
        started = 0
        for event_config in config.events:
            if self.watch(Event.from_config(event_config)):
                started += 1
        log.info("Event watchers started", count=started, configured=len(config.events))
        return started

    def watch(self, event: Event) -> bool:
        """Start (or restart) the watcher for an event. False for unknown kinds."""
        kind = event.kind
        if isinstance(kind, HealthEvent):
            watcher = partial(
                watch_health,
                event.name,
                kind,
                self.server_manager,
                self.queue,
                self.health_interval,
            )
        elif isinstance(kind, LogEvent):
            watcher = partial(watch_logs, event.name, kind, self.server_manager, self.queue)
        elif isinstance(kind, UnknownEvent):
            log.warning("Unknown event type, skipping", event=event.name, type=kind.type)
            return False
        else:
            raise TypeError(f"Unhandled event kind: {kind!r}")

        self.stop(event.name)
        task = asyncio.create_task(self._run(event.name, watcher), name=f"watcher:{event.name}")
        self._watchers[event.name] = task
        return True

    def stop(self, event_name: str) -> None:
        task = self._watchers.pop(event_name, None)
        if task is not None:
            task.cancel()

    async def stop_all(self) -> None:
        tasks = list(self._watchers.values())
        self._watchers.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def is_watching(self, event_name: str) -> bool:
        task = self._watchers.get(event_name)
        return task is not None and not task.done()

    def watching(self) -> list[str]:
        return [name for name in self._watchers if self.is_watching(name)]

    async def _run(self, event_name: str, watcher: Callable[[], Awaitable[None]]) -> None:
        WATCHERS_ACTIVE.inc()
        try:
            await watcher()
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("Watcher crashed", event=event_name)
        finally:
            WATCHERS_ACTIVE.dec()
