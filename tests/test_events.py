"""Tests for event watchers, the supervisor and the event router."""

import asyncio
import sys

import pytest

from fakes import FakeGateway, FakeServerManager
from opswatch.errors import EventNotFoundError
from opswatch.events import (
    Event,
    EventMessage,
    EventRouter,
    EventWatchSupervisor,
    HealthEvent,
    LogEvent,
    UnknownEvent,
)
from opswatch.events.supervisor import watch_health, watch_logs
from opswatch.models import Chat, ChatList, Config, EventConfig
from opswatch.servers import Health, LogStream
from opswatch.servers.logs import LINE_LIMIT


class FakeStream:
    def __init__(self, lines):
        self.lines = list(lines)
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.lines:
            raise StopAsyncIteration
        return self.lines.pop(0)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True


class StreamingManager(FakeServerManager):
    def __init__(self, stream):
        super().__init__()
        self.stream = stream

    async def logs_stream(self, name):
        return self.stream


class ScriptManager(FakeServerManager):
    """Streams the output of a Python snippet as the server's logs."""

    def __init__(self, script):
        super().__init__()
        self.script = script

    async def logs_stream(self, name):
        process = await asyncio.create_subprocess_exec(
            sys.executable,
            "-c",
            self.script,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            limit=LINE_LIMIT,
        )
        return LogStream(process, name)


def test_event_from_config():
    def event(type_):
        return Event.from_config(EventConfig(type=type_, name="ev", target="main", keyword="ERR"))

    assert event("logs").kind == LogEvent("main", "ERR")
    assert event("health").kind == HealthEvent("main", "ERR")
    assert event("cpu").kind == UnknownEvent("cpu")


class TestWatchers:
    """Tests for the health and log watchers."""

    @pytest.mark.asyncio
    async def test_health_keyword_match(self):
        queue: asyncio.Queue[EventMessage] = asyncio.Queue()
        manager = FakeServerManager(health=Health.down("connection refused"))
        task = asyncio.create_task(
            watch_health("api-down", HealthEvent("main", "refused"), manager, queue, interval=0.01)
        )

        message = await asyncio.wait_for(queue.get(), timeout=1)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert message.event_name == "api-down"
        assert message.text == (
            "[api-down] Keyword 'refused' found in health check of server 'main'\n"
            "Health: Down (connection refused)"
        )

    @pytest.mark.asyncio
    async def test_health_emits_once_per_interval(self):
        queue: asyncio.Queue[EventMessage] = asyncio.Queue()
        manager = FakeServerManager(health=Health.down("connection refused"))
        task = asyncio.create_task(
            watch_health("api-down", HealthEvent("main", "Down"), manager, queue, interval=0.05)
        )

        await asyncio.sleep(0.125)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert 2 <= queue.qsize() <= 4

    @pytest.mark.asyncio
    async def test_health_no_match_keeps_polling(self):
        queue: asyncio.Queue[EventMessage] = asyncio.Queue()
        manager = FakeServerManager(health=Health.healthy())
        task = asyncio.create_task(
            watch_health("api-down", HealthEvent("main", "Down"), manager, queue, interval=0.01)
        )

        await asyncio.sleep(0.1)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert queue.empty()
        assert manager.health_calls > 1

    @pytest.mark.asyncio
    async def test_health_watcher_survives_errors(self):
        class FlakyManager(FakeServerManager):
            async def healthcheck(self, name):
                self.health_calls += 1
                if self.health_calls == 1:
                    raise RuntimeError("health check exploded")
                return Health.down("refused")

        queue: asyncio.Queue[EventMessage] = asyncio.Queue()
        task = asyncio.create_task(
            watch_health("ev", HealthEvent("main", "Down"), FlakyManager(), queue, interval=0.01)
        )

        message = await asyncio.wait_for(queue.get(), timeout=1)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert "Health: Down (refused)" in message.text

    @pytest.mark.asyncio
    async def test_log_keyword_match(self):
        queue: asyncio.Queue[EventMessage] = asyncio.Queue()
        stream = FakeStream(["INFO ok", "ERROR boom", "INFO done"])

        await watch_logs("api-errors", LogEvent("main", "ERROR"), StreamingManager(stream), queue)

        assert queue.qsize() == 1
        message = queue.get_nowait()
        assert message.event_name == "api-errors"
        assert message.text == (
            "[api-errors] Keyword 'ERROR' found in logs of server 'main'\nLog: ERROR boom"
        )
        assert stream.closed

    @pytest.mark.asyncio
    async def test_log_watcher_survives_oversized_line(self):
        manager = ScriptManager(
            "import sys; sys.stdout.write('x' * (2 * 1024 * 1024) + '\\n'); print('ERROR boom')"
        )
        queue: asyncio.Queue[EventMessage] = asyncio.Queue()

        await asyncio.wait_for(
            watch_logs("api-errors", LogEvent("main", "ERROR"), manager, queue), timeout=10
        )

        assert queue.qsize() == 1
        assert queue.get_nowait().text.endswith("Log: ERROR boom")

    @pytest.mark.asyncio
    async def test_log_watcher_without_logs(self):
        queue: asyncio.Queue[EventMessage] = asyncio.Queue()

        await watch_logs("ev", LogEvent("main", "ERROR"), FakeServerManager(), queue)

        assert queue.empty()


class TestEventWatchSupervisor:
    """Tests for one-watcher-per-event supervision."""

    @pytest.mark.asyncio
    async def test_rewatch_replaces_watcher(self):
        queue: asyncio.Queue[EventMessage] = asyncio.Queue()
        supervisor = EventWatchSupervisor(None, FakeServerManager(), queue, health_interval=60)
        event = Event("ev", HealthEvent("main", "Down"))

        assert supervisor.watch(event)
        first = supervisor._watchers["ev"]
        assert supervisor.watch(event)
        await asyncio.gather(first, return_exceptions=True)

        assert first.cancelled()
        assert supervisor.watching() == ["ev"]

        await supervisor.stop_all()
        assert supervisor.watching() == []

    @pytest.mark.asyncio
    async def test_unknown_event_not_watched(self):
        supervisor = EventWatchSupervisor(None, FakeServerManager(), asyncio.Queue())

        assert supervisor.watch(Event("ev", UnknownEvent("cpu"))) is False
        assert not supervisor.is_watching("ev")

    @pytest.mark.asyncio
    async def test_stop(self):
        supervisor = EventWatchSupervisor(None, FakeServerManager(), asyncio.Queue(), 60)
        supervisor.watch(Event("ev", HealthEvent("main", "Down")))

        supervisor.stop("ev")
        supervisor.stop("missing")
        await asyncio.sleep(0)

        assert not supervisor.is_watching("ev")

    @pytest.mark.asyncio
    async def test_start_from_config(self, stores):
        await stores.config.write(
            Config(
                events=[
                    EventConfig(type="health", name="down", target="main", keyword="Down"),
                    EventConfig(type="logs", name="errors", target="main", keyword="ERROR"),
                    EventConfig(type="cpu", name="cpu", target="main", keyword="90"),
                ]
            )
        )
        supervisor = EventWatchSupervisor(stores.config, FakeServerManager(), asyncio.Queue(), 60)

        assert await supervisor.start() == 2
        assert supervisor.is_watching("down")
        assert not supervisor.is_watching("cpu")

        await supervisor.stop_all()


@pytest.fixture
async def router(stores, gateway):
    await stores.config.write(
        Config(events=[EventConfig(type="logs", name="ev", target="main", keyword="ERROR")])
    )
    await stores.chats.write(
        ChatList(
            chats=[
                Chat(id="id-1", client_name="tg", identity="100"),
                Chat(id="id-2", client_name="tg", identity="200"),
            ]
        )
    )
    return EventRouter(stores.config, stores.subscribes, stores.chats, gateway, asyncio.Queue())


class TestEventRouter:
    """Tests for subscriptions and delivery."""

    @pytest.mark.asyncio
    async def test_subscribe_unknown_event(self, router, stores):
        with pytest.raises(EventNotFoundError):
            await router.subscribe("id-1", "nope")

        assert not stores.subscribes.path.exists()

    @pytest.mark.asyncio
    async def test_subscribe_is_idempotent(self, router, stores):
        assert await router.subscribe("id-1", "ev") is True
        assert await router.subscribe("id-1", "ev") is False

        assert (await stores.subscribes.read()).subscribers("ev") == ["id-1"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, router):
        assert await router.unsubscribe("id-1", "ev") is False
        await router.subscribe("id-1", "ev")
        assert await router.unsubscribe("id-1", "ev") is True

        assert await router.list_subscribed_events("id-1") == []

    @pytest.mark.asyncio
    async def test_list_subscribed_events(self, router):
        await router.subscribe("id-1", "ev")

        events = await router.list_subscribed_events("id-1")

        assert [event.name for event in events] == ["ev"]
        assert await router.list_subscribed_events("id-2") == []

    @pytest.mark.asyncio
    async def test_dispatch_to_subscribers(self, router, gateway):
        await router.subscribe("id-1", "ev")
        await router.subscribe("id-2", "ev")
        await router.subscribe("id-gone", "ev")

        delivered = await router.dispatch(EventMessage("ev", "boom"))

        assert delivered == 2
        assert gateway.sent == [("tg", "100", "boom"), ("tg", "200", "boom")]

    @pytest.mark.asyncio
    async def test_dispatch_without_subscribers(self, router, gateway):
        assert await router.dispatch(EventMessage("ev", "boom")) == 0
        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_failed_delivery_not_counted(self, stores, router):
        router.gateway = FakeGateway(result=False)
        await router.subscribe("id-1", "ev")

        assert await router.dispatch(EventMessage("ev", "boom")) == 0

    @pytest.mark.asyncio
    async def test_on_tick_consumes_one_message(self, router, gateway):
        await router.subscribe("id-1", "ev")
        await router.queue.put(EventMessage("ev", "first"))
        await router.queue.put(EventMessage("ev", "second"))

        assert await router.on_tick() is True

        assert gateway.texts() == ["first"]
        assert router.queue.qsize() == 1
