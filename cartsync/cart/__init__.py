"""Cart package: models, sanitizer, storage, remote client and sync engine."""
from .models import Cart, CartItem, CartItemStatus, Product
from .remote import RemoteCartClient
from .sanitizer import sanitize_cart_payload
from .service import CartSyncEngine, SyncResult, build_cart_engine
from .storage import CartStorage, FileCartStorage, MemoryCartStorage, RedisCartStorage

__all__ = [
    "Cart",
    "CartItem",
    "CartItemStatus",
    "Product",
    "RemoteCartClient",
    "sanitize_cart_payload",
    "CartSyncEngine",
    "SyncResult",
    "build_cart_engine",
    "CartStorage",
    "FileCartStorage",
    "MemoryCartStorage",
    "RedisCartStorage",
]
