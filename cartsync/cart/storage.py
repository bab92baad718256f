"""
Local cart snapshot storage.

Storage is a convenience cache, not a system of record: `save` swallows
failures and `load` degrades to an empty cart when the slot is missing
or unreadable.
"""
import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from cartsync.errors import CorruptPersistedStateError
from cartsync.logging import get_logger
from .models import Cart
from .sanitizer import sanitize_cart_payload

logger = get_logger(__name__)

CART_STORAGE_KEY = "cartItems"
SNAPSHOT_VERSION = 1


def serialize_cart(cart: Cart) -> str:
    """Serialize a cart snapshot deterministically."""
    return json.dumps(
        {"version": SNAPSHOT_VERSION, "items": cart.to_list()},
        ensure_ascii=False,
        sort_keys=True,
    )


def deserialize_cart(data: Any) -> Cart:
    """
    Parse a stored snapshot.

    Accepts the versioned envelope or a bare list of items.

    Raises:
        CorruptPersistedStateError: payload is not valid JSON or has the wrong shape
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise CorruptPersistedStateError(f"Invalid JSON: {e}") from e

    if isinstance(data, dict):
        items = data.get("items")
    else:
        items = data

    if not isinstance(items, list):
        raise CorruptPersistedStateError(f"Unexpected snapshot shape: {type(items).__name__}")

    return Cart.from_list(sanitize_cart_payload(items))


class CartStorage(ABC):
    """Durable slot holding the last known cart snapshot."""

    async def save(self, cart: Cart) -> bool:
        """Persist the snapshot. Returns False (and logs) on failure."""
        try:
            await self._write(serialize_cart(cart))
            return True
        except Exception as e:
            logger.error(f"Failed to persist cart snapshot: {e}")
            return False

    async def load(self) -> Cart:
        """Return the last saved cart, or an empty cart if none is usable."""
        try:
            data = await self._read()
            if not data:
                return Cart.empty()
            return deserialize_cart(data)
        except CorruptPersistedStateError as e:
            logger.warning(f"Corrupted cart snapshot, starting empty: {e}")
            await self._discard()
            return Cart.empty()
        except Exception as e:
            logger.warning(f"Failed to read cart snapshot: {e}")
            return Cart.empty()

    async def _discard(self) -> None:
        try:
            await self._clear()
        except Exception as e:
            logger.warning(f"Failed to clear corrupted cart snapshot: {e}")

    @abstractmethod
    async def _read(self) -> Optional[Any]:
        ...

    @abstractmethod
    async def _write(self, payload: str) -> None:
        ...

    @abstractmethod
    async def _clear(self) -> None:
        ...


class MemoryCartStorage(CartStorage):
    """In-process slot, lost on restart."""

    def __init__(self, key: str = CART_STORAGE_KEY):
        self.key = key
        self._slots: Dict[str, str] = {}

    async def _read(self) -> Optional[str]:
        return self._slots.get(self.key)

    async def _write(self, payload: str) -> None:
        self._slots[self.key] = payload

    async def _clear(self) -> None:
        self._slots.pop(self.key, None)


class FileCartStorage(CartStorage):
    """
    JSON file holding `{key: snapshot}` entries.

    Writes go through a temporary file and `os.replace`, so a reader never
    sees a half-written file. Disk I/O runs in a worker thread.
    """

    def __init__(self, path: str | os.PathLike, key: str = CART_STORAGE_KEY):
        self.path = Path(path)
        self.key = key

    def _read_all(self) -> Dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptPersistedStateError(f"Invalid JSON in {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise CorruptPersistedStateError(f"Unexpected file shape in {self.path}")
        return data

    def _write_all(self, data: Dict[str, Any]) -> None:
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, sort_keys=True)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _update(self, value: Any = None, remove: bool = False) -> None:
        try:
            data = self._read_all()
        except CorruptPersistedStateError:
            data = {}
        if remove:
            data.pop(self.key, None)
        else:
            data[self.key] = value
        self._write_all(data)

    async def _read(self) -> Optional[Any]:
        data = await asyncio.to_thread(self._read_all)
        return data.get(self.key)

    async def _write(self, payload: str) -> None:
        await asyncio.to_thread(self._update, json.loads(payload))

    async def _clear(self) -> None:
        await asyncio.to_thread(self._update, remove=True)


class RedisCartStorage(CartStorage):
    """
    Upstash Redis slot, shared between devices of the same scope.

    `ttl` (seconds) lets abandoned snapshots expire; None or 0 keeps them.
    """

    def __init__(self, redis, key: str = CART_STORAGE_KEY, ttl: Optional[int] = None):
        self.redis = redis
        self.key = key
        self.ttl = ttl or None

    async def _read(self) -> Optional[Any]:
        return await self.redis.get(self.key)

    async def _write(self, payload: str) -> None:
        if self.ttl:
            await self.redis.set(self.key, payload, ex=self.ttl)
        else:
            await self.redis.set(self.key, payload)

    async def _clear(self) -> None:
        await self.redis.delete(self.key)
