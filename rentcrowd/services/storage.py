"""Durable key/value storage for session and location state."""

import asyncio
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from rentcrowd.utils.errors import StorageError
from rentcrowd.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStorage(ABC):
    """Async string storage keyed by namespaced keys."""

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        ...


class MemoryStorage(KeyValueStorage):
    """In-process storage; nothing survives a restart."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.items: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    async def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """One file per key under a directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    async def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    async def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(self._write, path, value)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e
        logger.debug("Storage item written", storage_key=key, size=len(value))

    async def remove_item(self, key: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove {key}: {e}") from e

    def _write(self, path: Path, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        # Atomic replace
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)
