"""Tests for cart snapshot storage"""
import asyncio
import json
import pytest
from unittest.mock import AsyncMock, patch

from cartsync.cart import Cart, FileCartStorage, MemoryCartStorage, RedisCartStorage
from cartsync.cart.storage import CART_STORAGE_KEY, serialize_cart


@pytest.mark.asyncio
async def test_memory_storage_roundtrip(sample_payload):
    """Saved cart is loaded back unchanged"""
    storage = MemoryCartStorage()
    cart = Cart.from_list(sample_payload)

    assert await storage.save(cart) is True
    assert await storage.load() == cart


@pytest.mark.asyncio
async def test_load_without_snapshot_is_empty():
    """Nothing saved yet"""
    assert await MemoryCartStorage().load() == Cart.empty()


@pytest.mark.asyncio
async def test_corrupt_snapshot_degrades_to_empty():
    """Unparsable payload yields an empty cart and is cleared"""
    storage = MemoryCartStorage()
    await storage._write("{not json")

    assert await storage.load() == Cart.empty()
    assert await storage._read() is None


@pytest.mark.asyncio
async def test_wrong_shape_snapshot_degrades_to_empty():
    storage = MemoryCartStorage()
    await storage._write(json.dumps({"version": 1, "items": "oops"}))

    assert await storage.load() == Cart.empty()


@pytest.mark.asyncio
async def test_load_accepts_bare_list(sample_payload):
    """Legacy snapshots stored as a plain list of items still load"""
    storage = MemoryCartStorage()
    await storage._write(json.dumps(sample_payload))

    cart = await storage.load()

    assert [item.item_id for item in cart] == ["a", "b"]


@pytest.mark.asyncio
async def test_load_sanitizes_stored_items(sample_payload):
    """Malformed stored lines never reach the canonical cart"""
    storage = MemoryCartStorage()
    await storage._write(json.dumps(sample_payload + [{"id": "bad", "product": {"id": "p9"}}]))

    cart = await storage.load()

    assert not cart.contains("bad")
    assert len(cart) == 2


@pytest.mark.asyncio
async def test_save_swallows_write_errors(sample_payload):
    """Storage failures are logged, not raised"""
    storage = MemoryCartStorage()
    storage._write = AsyncMock(side_effect=OSError("disk full"))

    assert await storage.save(Cart.from_list(sample_payload)) is False


@pytest.mark.asyncio
async def test_load_swallows_read_errors():
    storage = MemoryCartStorage()
    storage._read = AsyncMock(side_effect=OSError("permission denied"))

    assert await storage.load() == Cart.empty()


def test_serialization_is_deterministic(sample_payload):
    """Equal carts serialize to identical bytes"""
    first = serialize_cart(Cart.from_list(sample_payload))
    second = serialize_cart(Cart.from_list(json.loads(json.dumps(sample_payload))))

    assert first == second


class TestFileCartStorage:
    """Tests for the JSON file backend."""

    @pytest.mark.asyncio
    async def test_roundtrip_survives_new_instance(self, tmp_path, sample_payload):
        """Snapshot outlives the storage object (process restart)"""
        path = tmp_path / "cache" / "cart.json"
        cart = Cart.from_list(sample_payload)

        assert await FileCartStorage(path).save(cart) is True

        assert await FileCartStorage(path).load() == cart
        stored = json.loads(path.read_text(encoding="utf-8"))
        assert CART_STORAGE_KEY in stored

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path):
        assert await FileCartStorage(tmp_path / "nope.json").load() == Cart.empty()

    @pytest.mark.asyncio
    async def test_corrupt_file_is_empty_and_reset(self, tmp_path):
        """A broken file does not propagate and is replaced"""
        path = tmp_path / "cart.json"
        path.write_text("garbage{", encoding="utf-8")
        storage = FileCartStorage(path)

        assert await storage.load() == Cart.empty()
        assert json.loads(path.read_text(encoding="utf-8")) == {}

    @pytest.mark.asyncio
    async def test_other_keys_are_kept(self, tmp_path, sample_payload):
        """Each storage key is its own slot in the file"""
        path = tmp_path / "cart.json"
        await FileCartStorage(path, key="one").save(Cart.from_list(sample_payload))
        await FileCartStorage(path, key="two").save(Cart.empty())

        assert len(await FileCartStorage(path, key="one").load()) == 2
        assert await FileCartStorage(path, key="two").load() == Cart.empty()

    @pytest.mark.asyncio
    async def test_disk_io_runs_in_worker_thread(self, tmp_path, sample_payload):
        """Reads and writes are handed to asyncio.to_thread, never run on the loop"""
        path = tmp_path / "cart.json"
        storage = FileCartStorage(path)
        calls = []
        real_to_thread = asyncio.to_thread

        async def recording_to_thread(func, *args, **kwargs):
            calls.append(func.__name__)
            return await real_to_thread(func, *args, **kwargs)

        with patch("cartsync.cart.storage.asyncio.to_thread", side_effect=recording_to_thread):
            await storage.save(Cart.from_list(sample_payload))
            loaded = await storage.load()

        assert calls == ["_update", "_read_all"]
        assert loaded == Cart.from_list(sample_payload)


class TestRedisCartStorage:
    """Tests for the Upstash Redis backend."""

    @pytest.mark.asyncio
    async def test_save_sets_key_with_ttl(self, sample_payload):
        redis = AsyncMock()
        storage = RedisCartStorage(redis, key="cartItems:user-1", ttl=86400)
        cart = Cart.from_list(sample_payload)

        assert await storage.save(cart) is True

        redis.set.assert_awaited_once_with("cartItems:user-1", serialize_cart(cart), ex=86400)

    @pytest.mark.asyncio
    async def test_save_without_ttl(self):
        redis = AsyncMock()
        storage = RedisCartStorage(redis, ttl=0)

        await storage.save(Cart.empty())

        redis.set.assert_awaited_once_with(CART_STORAGE_KEY, serialize_cart(Cart.empty()))

    @pytest.mark.asyncio
    async def test_load_reads_key(self, sample_payload):
        cart = Cart.from_list(sample_payload)
        redis = AsyncMock()
        redis.get.return_value = serialize_cart(cart)

        assert await RedisCartStorage(redis).load() == cart

    @pytest.mark.asyncio
    async def test_corrupt_value_is_deleted(self):
        redis = AsyncMock()
        redis.get.return_value = "{broken"

        assert await RedisCartStorage(redis, key="k").load() == Cart.empty()
        redis.delete.assert_awaited_once_with("k")

    @pytest.mark.asyncio
    async def test_unavailable_redis_degrades(self):
        redis = AsyncMock()
        redis.get.side_effect = ConnectionError("redis down")
        redis.set.side_effect = ConnectionError("redis down")
        storage = RedisCartStorage(redis)

        assert await storage.load() == Cart.empty()
        assert await storage.save(Cart.empty()) is False
