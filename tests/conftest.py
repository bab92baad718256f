"""Pytest configuration and fixtures"""
import os
import pytest
from unittest.mock import AsyncMock

# Set test environment variables before cartsync.config is imported
os.environ.setdefault("CART_API_URL", "https://shop.test")
os.environ.setdefault("CART_STORAGE", "memory")
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://test.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test_token")

from cartsync.cart import CartSyncEngine, MemoryCartStorage, RemoteCartClient
from cartsync.services.notifications import NotificationSink


def _make_item(
    item_id="a",
    product_id="p1",
    price=10,
    stock=3,
    quantity=1,
    status="pending",
    **product_fields,
):
    """Build a cart item in wire format."""
    product = {"id": product_id, "name": f"Product {product_id}", "price": price, "stock": stock}
    product.update(product_fields)
    return {"id": item_id, "product": product, "quantity": quantity, "status": status}


class RecordingStorage(MemoryCartStorage):
    """Memory storage that records every write."""

    def __init__(self):
        super().__init__()
        self.writes = []

    async def _write(self, payload: str) -> None:
        self.writes.append(payload)
        await super()._write(payload)


@pytest.fixture
def make_item():
    """Factory for wire-format cart items"""
    return _make_item


@pytest.fixture
def sample_payload():
    """Two-line cart as returned by the cart API"""
    return [
        _make_item("a", "p1", price=10, stock=3, quantity=1),
        _make_item("b", "p2", price=7.5, stock=10, quantity=2, brand="Acme"),
    ]


@pytest.fixture
def mock_remote():
    """Remote cart client with every call mocked"""
    return AsyncMock(spec=RemoteCartClient)


@pytest.fixture
def storage():
    return RecordingStorage()


@pytest.fixture
def mock_notifier():
    return AsyncMock(spec=NotificationSink)


@pytest.fixture
def engine(mock_remote, storage, mock_notifier):
    """Sync engine over mocked collaborators"""
    return CartSyncEngine(remote=mock_remote, storage=storage, notifier=mock_notifier)
