"""JSON document storage with atomic writes.

Each ``DocumentStore`` owns one file. Reads never lock: the file is only ever
replaced wholesale (write to ``<name>.tmp`` then ``os.replace``), so a reader
sees either the old or the new document. Writers go through ``update`` which
serialises read-modify-write cycles on a per-document ``asyncio.Lock``.
"""

import asyncio
import os
from collections.abc import Callable
from pathlib import Path
from typing import Generic, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from opswatch.errors import StoreError
from opswatch.models import ChatList, Config, EventSubscribeList

log = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

CONFIG_FILE = "config.json"
CHAT_LIST_FILE = "chat_list.json"
SUBSCRIBE_FILE = "subscribe.json"


class DocumentStore(Generic[T]):
    """Async access to a single JSON document backed by a pydantic model."""

    def __init__(self, directory: Path, file_name: str, model: type[T]):
        self.directory = directory
        self.file_name = file_name
        self.model = model
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self.directory / self.file_name

    async def read(self) -> T:
        """Read the document, substituting an empty default when the file is missing."""
        return await asyncio.to_thread(self._read_sync)

    async def write(self, document: T) -> None:
        """Atomically replace the document on disk."""
        await asyncio.to_thread(self._write_sync, document)

    async def update(self, mutate: Callable[[T], bool]) -> bool:
        """Run a read-modify-write cycle under the document lock.

        Args:
            mutate: Called with the current document; mutates it in place and
                returns True if it changed. Nothing is written when it returns False.

        Returns:
            Whatever ``mutate`` returned
        """
        async with self._lock:
            document = await self.read()
            changed = mutate(document)
            if changed:
                await self.write(document)
            return changed

    def _read_sync(self) -> T:
        path = self.path
        if not path.exists():
            return self.model()

        try:
            raw = path.read_text(encoding="utf-8")
            return self.model.model_validate_json(raw)
        except OSError as e:
            raise StoreError(f"Fail to read {path}: {e}") from e
        except ValidationError as e:
            raise StoreError(f"Fail to parse {path}: {e.error_count()} invalid field(s)") from e

    def _write_sync(self, document: T) -> None:
        path = self.path
        temp_path = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(document.model_dump_json(indent=2), encoding="utf-8")
            os.replace(temp_path, path)
        except OSError as e:
            raise StoreError(f"Fail to write {path}: {e}") from e
        log.debug("Document written", path=str(path))


class Stores:
    """The three documents opswatch persists, sharing one data directory."""

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir
        self.config: DocumentStore[Config] = DocumentStore(data_dir, CONFIG_FILE, Config)
        self.chats: DocumentStore[ChatList] = DocumentStore(data_dir, CHAT_LIST_FILE, ChatList)
        self.subscribes: DocumentStore[EventSubscribeList] = DocumentStore(
            data_dir, SUBSCRIBE_FILE, EventSubscribeList
        )
