"""
Cart synchronization engine.

Owns the canonical in-memory cart and reconciles it with the remote cart
API and the local snapshot storage.

Features:
- Canonical cart is an immutable snapshot, replaced wholesale on every change
- Remote reads that fail degrade to the last persisted snapshot
- Remote writes that fail leave the canonical cart untouched
- Quantity and pickup changes re-read the full cart from the server
- Mutations are queued; stale full-cart results are discarded
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from cartsync.errors import (
    CartError,
    InsufficientStockError,
    MSG_ADD_FAILED,
    MSG_INSUFFICIENT_STOCK,
    TITLE_ERROR,
    TITLE_INSUFFICIENT_STOCK,
)
from cartsync.logging import get_logger, sanitize_id_for_logging
from cartsync.services.notifications import LoggingNotificationSink, NotificationSink, Severity
from .models import Cart
from .remote import RemoteCartClient
from .sanitizer import sanitize_cart_payload
from .storage import CartStorage

logger = get_logger(__name__)

CartObserver = Callable[[Cart], Any]


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a cart operation together with the canonical cart after it."""
    ok: bool
    cart: Cart
    error: Optional[CartError] = None


class CartSyncEngine:
    """
    Single owner of the canonical cart for one client session.

    Readers get immutable snapshots through `cart` or `subscribe()`; all
    writes go through the mutation methods. No method raises for remote
    or storage failures: each returns a `SyncResult` whose `error` names
    what went wrong.
    """

    def __init__(
        self,
        remote: RemoteCartClient,
        storage: CartStorage,
        notifier: Optional[NotificationSink] = None,
    ):
        self.remote = remote
        self.storage = storage
        self.notifier = notifier or LoggingNotificationSink()
        self._cart = Cart.empty()
        self._observers: List[CartObserver] = []
        # Bumped when a mutation starts; full-cart results from requests
        # that began before the bump are stale.
        self._seq = 0
        # Bumped when a mutation commits; reads that began before are stale.
        self._generation = 0
        self._mutation_lock = asyncio.Lock()
        self._commit_lock = asyncio.Lock()

    @property
    def cart(self) -> Cart:
        """Current canonical cart snapshot."""
        return self._cart

    def subscribe(self, callback: CartObserver) -> Callable[[], None]:
        """
        Register an observer called with the new cart after each replacement.

        Returns:
            Function that removes the observer
        """
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    async def hydrate(self) -> Cart:
        """Load the persisted snapshot into the canonical cart (process start)."""
        cart = await self.storage.load()
        await self._commit(cart, started_seq=self._seq, persist=False)
        logger.info(f"Cart hydrated from storage with {len(cart)} item(s)")
        return self._cart

    # ==================== INTERNAL HELPERS ====================

    def _begin_mutation(self) -> int:
        self._seq += 1
        return self._seq

    def _notify_observers(self, cart: Cart) -> None:
        for observer in list(self._observers):
            try:
                observer(cart)
            except Exception:
                logger.exception("Cart observer failed")

    async def _commit(
        self,
        cart: Cart,
        started_seq: int,
        started_generation: Optional[int] = None,
        persist: bool = True,
        mutation: bool = False,
    ) -> bool:
        """
        Atomically replace the canonical cart.

        The result is dropped when a mutation started after its request
        began, or (for plain reads, `started_generation` set) when a mutation
        committed since. Returns True if applied.
        """
        async with self._commit_lock:
            if started_seq != self._seq:
                logger.debug(f"Discarding stale cart result (seq {started_seq} < {self._seq})")
                return False
            if started_generation is not None and started_generation != self._generation:
                logger.debug("Discarding cart read that overlapped a committed mutation")
                return False
            if persist:
                await self.storage.save(cart)
            self._cart = cart
            if mutation:
                self._generation += 1
            self._notify_observers(cart)
            return True

    async def _commit_removal(self, item_id: str) -> None:
        async with self._commit_lock:
            cart = self._cart.without(item_id)
            await self.storage.save(cart)
            self._cart = cart
            self._generation += 1
            self._notify_observers(cart)

    async def _notify_user(self, title: str, message: str, severity: Severity) -> None:
        try:
            await self.notifier.notify(title, message, severity)
        except Exception:
            logger.exception("Notification sink failed")

    async def _fetch(self, started_seq: int, resync: bool = False) -> SyncResult:
        """
        Read the full cart and commit it.

        A resync runs under the mutation lock and counts as part of that
        mutation; a plain read is dropped if any mutation commits meanwhile.
        """
        started_generation = None if resync else self._generation
        try:
            payload = await self.remote.fetch()
            cart = Cart.from_list(sanitize_cart_payload(payload))
        except Exception as e:
            logger.warning(f"Error fetching cart, falling back to cached snapshot: {e}")
            cached = await self.storage.load()
            await self._commit(
                cached,
                started_seq=started_seq,
                started_generation=started_generation,
                persist=False,
                mutation=resync,
            )
            return SyncResult(ok=False, cart=self._cart, error=CartError.REMOTE_UNAVAILABLE)

        await self._commit(
            cart,
            started_seq=started_seq,
            started_generation=started_generation,
            mutation=resync,
        )
        return SyncResult(ok=True, cart=self._cart)

    # ==================== OPERATIONS ====================

    async def fetch_cart(self) -> SyncResult:
        """
        Replace the canonical cart with the server's cart.

        On failure the last persisted snapshot is used instead and the result
        carries `REMOTE_UNAVAILABLE`.
        """
        return await self._fetch(self._seq)

    async def add_item(self, product_id: str) -> SyncResult:
        """
        Add a product; the server's full cart becomes the canonical cart.

        The server decides how a product already in the cart is merged.
        Failures notify the user and leave the canonical cart unchanged.
        """
        if not product_id or not isinstance(product_id, str):
            logger.warning("add_item called without a product id")
            await self._notify_user(TITLE_ERROR, MSG_ADD_FAILED, Severity.ERROR)
            return SyncResult(ok=False, cart=self._cart, error=CartError.ADD_FAILED)

        async with self._mutation_lock:
            seq = self._begin_mutation()
            try:
                payload = await self.remote.add(product_id)
                cart = Cart.from_list(sanitize_cart_payload(payload))
            except Exception as e:
                logger.error(f"Error adding product {sanitize_id_for_logging(product_id)} to cart: {e}")
                await self._notify_user(TITLE_ERROR, MSG_ADD_FAILED, Severity.ERROR)
                return SyncResult(ok=False, cart=self._cart, error=CartError.ADD_FAILED)

            await self._commit(cart, started_seq=seq, mutation=True)
            return SyncResult(ok=True, cart=self._cart)

    async def remove_item(self, item_id: str) -> SyncResult:
        """
        Remove a line; applied locally as soon as the server accepts it.

        Unknown ids are a no-op. Failures are logged only.
        """
        if not item_id or not self._cart.contains(item_id):
            logger.debug(f"remove_item: {sanitize_id_for_logging(item_id)} not in cart, nothing to do")
            return SyncResult(ok=True, cart=self._cart)

        async with self._mutation_lock:
            if not self._cart.contains(item_id):
                return SyncResult(ok=True, cart=self._cart)
            self._begin_mutation()
            try:
                await self.remote.remove(item_id)
            except Exception as e:
                logger.warning(f"Error removing cart item {sanitize_id_for_logging(item_id)}: {e}")
                return SyncResult(ok=False, cart=self._cart, error=CartError.REMOVE_FAILED)

            await self._commit_removal(item_id)
            return SyncResult(ok=True, cart=self._cart)

    async def update_quantity(self, item_id: str, quantity: int) -> SyncResult:
        """
        Set the quantity of a line, then re-read the full cart.

        Quantities below 1 are rejected locally with `INVALID_QUANTITY`.
        Running out of stock is reported as `INSUFFICIENT_STOCK` and
        shown to the user.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            logger.info(f"Rejected quantity {quantity!r} for {sanitize_id_for_logging(item_id)}")
            return SyncResult(ok=False, cart=self._cart, error=CartError.INVALID_QUANTITY)
        if not item_id:
            return SyncResult(ok=False, cart=self._cart, error=CartError.UPDATE_FAILED)

        async with self._mutation_lock:
            seq = self._begin_mutation()
            try:
                await self.remote.update_quantity(item_id, quantity)
            except InsufficientStockError as e:
                logger.warning(f"Insufficient stock for {sanitize_id_for_logging(item_id)}: {e}")
                await self._notify_user(TITLE_INSUFFICIENT_STOCK, MSG_INSUFFICIENT_STOCK, Severity.WARNING)
                return SyncResult(ok=False, cart=self._cart, error=CartError.INSUFFICIENT_STOCK)
            except Exception as e:
                logger.error(f"Error updating quantity of {sanitize_id_for_logging(item_id)}: {e}")
                return SyncResult(ok=False, cart=self._cart, error=CartError.UPDATE_FAILED)

            resync = await self._fetch(seq, resync=True)
            return SyncResult(ok=True, cart=resync.cart)

    async def confirm_pickup(self, item_id: str) -> SyncResult:
        """Mark a line as confirmed for pickup, then re-read the full cart."""
        if not item_id:
            return SyncResult(ok=False, cart=self._cart, error=CartError.CONFIRM_FAILED)

        async with self._mutation_lock:
            seq = self._begin_mutation()
            try:
                await self.remote.confirm_pickup(item_id)
            except Exception as e:
                logger.error(f"Error confirming pickup of {sanitize_id_for_logging(item_id)}: {e}")
                return SyncResult(ok=False, cart=self._cart, error=CartError.CONFIRM_FAILED)

            resync = await self._fetch(seq, resync=True)
            return SyncResult(ok=True, cart=resync.cart)


def build_cart_engine(
    storage: Optional[CartStorage] = None,
    notifier: Optional[NotificationSink] = None,
    remote: Optional[RemoteCartClient] = None,
) -> CartSyncEngine:
    """
    Build a new engine wired from configuration.

    Storage backend is chosen by CART_STORAGE ("file", "redis" or "memory").
    """
    from cartsync import config

    if storage is None:
        if config.CART_STORAGE == "redis":
            from cartsync.db import get_redis, RedisKeys, TTL
            from .storage import RedisCartStorage
            storage = RedisCartStorage(
                get_redis(),
                key=RedisKeys.cart_key(config.CART_STORAGE_SCOPE),
                ttl=TTL.CART,
            )
        elif config.CART_STORAGE == "memory":
            from .storage import MemoryCartStorage
            storage = MemoryCartStorage()
        else:
            from .storage import FileCartStorage
            storage = FileCartStorage(config.CART_STORAGE_PATH)

    return CartSyncEngine(
        remote=remote or RemoteCartClient(),
        storage=storage,
        notifier=notifier,
    )
