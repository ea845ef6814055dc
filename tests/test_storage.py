"""Tests for JSON document storage."""

import asyncio

import pytest

from opswatch.errors import StoreError
from opswatch.models import Chat, ChatList, Config, EventSubscribeList, ServerConfig
from opswatch.storage import CONFIG_FILE, DocumentStore


class TestDocumentStore:
    """Tests for reads, atomic writes and locked updates."""

    @pytest.mark.asyncio
    async def test_missing_file_reads_default(self, stores):
        """A missing file yields an empty document and is not created."""
        config = await stores.config.read()

        assert config == Config()
        assert not stores.config.path.exists()

    @pytest.mark.asyncio
    async def test_write_then_read(self, stores):
        config = Config(password="secret", servers=[ServerConfig(name="main")])

        await stores.config.write(config)

        assert stores.config.path.name == CONFIG_FILE
        assert await stores.config.read() == config

    @pytest.mark.asyncio
    async def test_write_leaves_no_temp_file(self, stores):
        await stores.chats.write(ChatList(chats=[Chat.new("tg", "42")]))

        files = sorted(p.name for p in stores.data_dir.iterdir())
        assert files == ["chat_list.json"]

    @pytest.mark.asyncio
    async def test_write_creates_directory(self, tmp_path):
        store = DocumentStore(tmp_path / "nested" / "dir", "subscribe.json", EventSubscribeList)

        await store.write(EventSubscribeList())

        assert store.path.exists()

    @pytest.mark.asyncio
    async def test_update_without_change_does_not_write(self, stores):
        changed = await stores.config.update(lambda config: False)

        assert changed is False
        assert not stores.config.path.exists()

    @pytest.mark.asyncio
    async def test_update_with_change_writes(self, stores):
        def apply(config: Config) -> bool:
            config.password = "hunter2"
            return True

        assert await stores.config.update(apply) is True
        assert (await stores.config.read()).password == "hunter2"

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_serialised(self, stores):
        """No update is lost when many run at once."""

        def add(identity: str):
            def apply(chat_list: ChatList) -> bool:
                chat_list.chats.append(Chat.new("tg", identity))
                return True

            return apply

        await asyncio.gather(*(stores.chats.update(add(str(i))) for i in range(20)))

        chat_list = await stores.chats.read()
        assert sorted(chat.identity for chat in chat_list.chats) == sorted(
            str(i) for i in range(20)
        )

    @pytest.mark.asyncio
    async def test_corrupt_file_raises(self, stores):
        stores.data_dir.mkdir(parents=True, exist_ok=True)
        stores.config.path.write_text("{not json")

        with pytest.raises(StoreError, match="Fail to parse"):
            await stores.config.read()

    @pytest.mark.asyncio
    async def test_wrong_shape_raises(self, stores):
        stores.data_dir.mkdir(parents=True, exist_ok=True)
        stores.config.path.write_text('{"servers": "not a list"}')

        with pytest.raises(StoreError):
            await stores.config.read()


class TestEventSubscribeList:
    """Tests for subscription bookkeeping."""

    def test_subscribe_is_unique_per_event(self):
        doc = EventSubscribeList()

        assert doc.subscribe("ev", "chat-1") is True
        assert doc.subscribe("ev", "chat-1") is False
        assert doc.subscribers("ev") == ["chat-1"]

    def test_unsubscribe(self):
        doc = EventSubscribeList()
        doc.subscribe("ev", "chat-1")
        doc.subscribe("ev", "chat-2")

        assert doc.unsubscribe("ev", "chat-1") is True
        assert doc.unsubscribe("ev", "chat-1") is False
        assert doc.unsubscribe("other", "chat-1") is False
        assert doc.subscribers("ev") == ["chat-2"]

    def test_find_subscribed_events(self):
        doc = EventSubscribeList()
        doc.subscribe("a", "chat-1")
        doc.subscribe("b", "chat-2")
        doc.subscribe("c", "chat-1")

        assert doc.find_subscribed_events("chat-1") == ["a", "c"]
        assert doc.contains("b", "chat-2")
        assert not doc.contains("b", "chat-1")

    def test_remove_event(self):
        doc = EventSubscribeList()
        doc.subscribe("a", "chat-1")

        assert doc.remove_event("a") is True
        assert doc.remove_event("a") is False
        assert doc.subscribers("a") == []
