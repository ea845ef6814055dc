"""Application wiring.

``AppContext`` is built once at startup and hands each component the
collaborators it needs. Nothing in opswatch reaches for a global instance.
"""

from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass

import structlog

from opswatch import __version__
from opswatch.admin import ConfigAdmin
from opswatch.auth import AuthGate
from opswatch.clients import ClientRegistry
from opswatch.config import Settings
from opswatch.events import EventMessage, EventRouter, EventWatchSupervisor
from opswatch.handler import Handler
from opswatch.metrics import SERVICE_INFO, start_metrics_server, stop_metrics_server
from opswatch.scheduler import TaskScheduler
from opswatch.servers import ServerDirectory, ServerManager
from opswatch.storage import Stores

log = structlog.get_logger()


@dataclass
class AppContext:
    settings: Settings
    stores: Stores
    scheduler: TaskScheduler
    registry: ClientRegistry
    auth: AuthGate
    directory: ServerDirectory
    server_manager: ServerManager
    events: asyncio.Queue[EventMessage]
    event_router: EventRouter
    supervisor: EventWatchSupervisor
    handler: Handler
    admin: ConfigAdmin

    @classmethod
    def create(cls, settings: Settings) -> AppContext:
        stores = Stores(settings.data_dir)
        scheduler = TaskScheduler()
        registry = ClientRegistry(
            scheduler,
            stores.config,
            poll_interval=settings.poll_interval,
            chunk_size=settings.chunk_size,
            chunk_delay=settings.chunk_delay,
            queue_size=settings.queue_size,
        )
        auth = AuthGate(stores.config, stores.chats)
        directory = ServerDirectory(stores.config)
        server_manager = ServerManager(directory)
        events: asyncio.Queue[EventMessage] = asyncio.Queue(maxsize=settings.queue_size)
        event_router = EventRouter(stores.config, stores.subscribes, stores.chats, registry, events)
        supervisor = EventWatchSupervisor(
            stores.config, server_manager, events, health_interval=settings.health_interval
        )
        handler = Handler(registry, auth, server_manager, event_router, registry.inbound)

        return cls(
            settings=settings,
            stores=stores,
            scheduler=scheduler,
            registry=registry,
            auth=auth,
            directory=directory,
            server_manager=server_manager,
            events=events,
            event_router=event_router,
            supervisor=supervisor,
            handler=handler,
            admin=ConfigAdmin(stores),
        )

    def status(self) -> dict[str, list[str]]:
        """Running clients and scheduler workers, for the /health endpoint."""
        return {"clients": self.registry.names(), "workers": self.scheduler.keys()}

    async def load(self) -> None:
        """Read the persisted configuration into the runtime components."""
        await self.auth.init()
        await self.directory.load()
        await self.registry.load_clients()

    async def start(self) -> None:
        """Start adapters, the handler, the event router and every watcher."""
        self.registry.run()
        self.scheduler.run(self.handler)
        self.scheduler.run(self.event_router)
        await self.supervisor.start()

    async def shutdown(self) -> None:
        """Cancel everything. In-flight work is not drained."""
        await self.supervisor.stop_all()
        await self.scheduler.stop_all()
        await self.registry.aclose()
        await self.server_manager.aclose()
        log.info("Shutdown complete")


async def run(settings: Settings) -> None:
    """Run until SIGINT or SIGTERM."""
    SERVICE_INFO.info({"version": __version__})
    context = AppContext.create(settings)
    await context.load()
    if settings.metrics_port:
        start_metrics_server(port=settings.metrics_port, status=context.status)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await context.start()
    log.info(
        "opswatch running",
        clients=context.registry.names(),
        servers=len(context.directory.find_all()),
        watchers=context.supervisor.watching(),
    )
    try:
        await stop.wait()
        log.info("Received shutdown signal")
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await context.shutdown()
        await asyncio.to_thread(stop_metrics_server)
