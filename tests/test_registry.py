"""Tests for the client registry."""

import asyncio

import pytest

from fakes import FakeClient
from opswatch.clients import ClientRegistry, Message, TelegramClient, split_chunks
from opswatch.models import ClientConfig, Config
from opswatch.scheduler import TaskScheduler


class TestSplitChunks:
    """Tests for outbound chunking."""

    def test_long_text(self):
        text = "x" * 9000
        chunks = split_chunks(text)

        assert [len(chunk) for chunk in chunks] == [4000, 4000, 1000]
        assert "".join(chunks) == text

    def test_exact_size(self):
        assert split_chunks("y" * 4000) == ["y" * 4000]

    def test_empty_text(self):
        assert split_chunks("") == [""]

    def test_custom_size(self):
        assert split_chunks("abcdefg", size=3) == ["abc", "def", "g"]


class TestSendMessage:
    """Tests for routed, chunked delivery."""

    @pytest.mark.asyncio
    async def test_chunks_sent_in_order(self):
        registry = ClientRegistry(TaskScheduler(), chunk_delay=0)
        client = FakeClient()
        registry.register(client)
        text = "a" * 4000 + "b" * 4000 + "c" * 1000

        assert await registry.send_message("fake", "42", text) is True

        assert [chat_id for chat_id, _ in client.sent] == ["42", "42", "42"]
        assert [chunk[0] for _, chunk in client.sent] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_failed_chunk_does_not_abort(self):
        registry = ClientRegistry(TaskScheduler(), chunk_delay=0)
        client = FakeClient(fail_on={1})
        registry.register(client)

        assert await registry.send_message("fake", "42", "x" * 9000) is False
        assert len(client.sent) == 3

    @pytest.mark.asyncio
    async def test_unknown_client(self):
        registry = ClientRegistry(TaskScheduler(), chunk_delay=0)

        assert await registry.send_message("missing", "42", "hello") is False

    @pytest.mark.asyncio
    async def test_chunk_delay_between_chunks(self):
        registry = ClientRegistry(TaskScheduler(), chunk_size=2, chunk_delay=0.02)
        registry.register(FakeClient())
        loop = asyncio.get_running_loop()

        started = loop.time()
        await registry.send_message("fake", "42", "abcdef")

        assert loop.time() - started >= 0.04


class TestLifecycle:
    """Tests for loading and running adapters."""

    @pytest.mark.asyncio
    async def test_load_clients_skips_unsupported(self, stores):
        await stores.config.write(
            Config(
                clients=[
                    ClientConfig.new_telegram("ops-bot", "123:abc"),
                    ClientConfig(name="no-token", kind="telegram"),
                    ClientConfig(name="chat", kind="slack", token="xoxb"),
                ]
            )
        )
        registry = ClientRegistry(TaskScheduler(), stores.config)

        assert await registry.load_clients() == 1
        assert registry.names() == ["ops-bot"]
        assert isinstance(registry.find("ops-bot"), TelegramClient)

        await registry.aclose()

    @pytest.mark.asyncio
    async def test_run_merges_inbound(self):
        scheduler = TaskScheduler()
        registry = ClientRegistry(scheduler)
        first, second = FakeClient("one"), FakeClient("two")
        registry.register(first)
        registry.register(second)

        inbound = registry.run()
        assert first.queue is inbound
        assert second.queue is inbound
        assert sorted(scheduler.keys()) == ["one", "two"]

        await first.queue.put(Message("one", "1", "/health"))
        await second.queue.put(Message("two", "2", "/alarm"))
        received = [await inbound.get(), await inbound.get()]
        assert [m.client_name for m in received] == ["one", "two"]

        registry.stop()
        assert scheduler.keys() == []
        await registry.aclose()
        assert first.closed and second.closed
