"""Cart models: immutable snapshots with Decimal-based pricing."""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, List, Optional, Tuple

from cartsync.logging import get_logger
from cartsync.services.money import to_decimal, round_money, multiply

logger = get_logger(__name__)

DEFAULT_PRODUCT_NAME = "Producto sin nombre"
DEFAULT_PRODUCT_IMAGE = "/default-product.png"


class CartItemStatus(str, Enum):
    """Pickup status of a cart line."""
    PENDING = "pending"  # Awaiting pickup/fulfillment confirmation
    CONFIRMED = "confirmed"

    @classmethod
    def parse(cls, value: Any) -> "CartItemStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.PENDING


def _optional_int(value: Any) -> Optional[int]:
    """Coerce to int; None for missing, boolean, non-numeric or non-finite values."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def _str_tuple(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(v) for v in value if v is not None)


@dataclass(frozen=True)
class Product:
    """Snapshot of catalog data embedded in a cart line."""
    product_id: str
    price: Decimal
    name: str = DEFAULT_PRODUCT_NAME
    stock: Optional[int] = None
    main_image: str = DEFAULT_PRODUCT_IMAGE
    brand: Optional[str] = None
    description: Optional[str] = None
    categories: Tuple[str, ...] = ()
    images: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "price", to_decimal(self.price))

    @property
    def main_category(self) -> Optional[str]:
        return self.categories[0] if self.categories else None

    def to_dict(self) -> dict:
        """Convert to the wire/storage shape."""
        return {
            "id": self.product_id,
            "name": self.name,
            "price": str(self.price),
            "stock": self.stock,
            "mainImage": self.main_image,
            "brand": self.brand,
            "description": self.description,
            "categories": list(self.categories),
            "images": list(self.images),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        """Create from a wire/storage dict. Accepts `_id` as an alias of `id`."""
        return cls(
            product_id=str(data.get("id") or data.get("_id") or ""),
            price=to_decimal(data.get("price")),
            name=data.get("name") or DEFAULT_PRODUCT_NAME,
            stock=_optional_int(data.get("stock")),
            main_image=data.get("mainImage") or DEFAULT_PRODUCT_IMAGE,
            brand=data.get("brand"),
            description=data.get("description"),
            categories=_str_tuple(data.get("categories")),
            images=_str_tuple(data.get("images")),
        )


@dataclass(frozen=True)
class CartItem:
    """Single line in the cart."""
    item_id: str
    product: Product
    quantity: int = 1
    status: CartItemStatus = CartItemStatus.PENDING

    @property
    def total_price(self) -> Decimal:
        """Price for all units of this line."""
        return round_money(multiply(self.product.price, self.quantity))

    @property
    def is_confirmed(self) -> bool:
        return self.status is CartItemStatus.CONFIRMED

    def to_dict(self) -> dict:
        return {
            "id": self.item_id,
            "product": self.product.to_dict(),
            "quantity": self.quantity,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        """Create from a sanitized wire/storage dict."""
        quantity = _optional_int(data.get("quantity"))
        return cls(
            item_id=str(data.get("id") or data.get("_id") or ""),
            product=Product.from_dict(data.get("product") or {}),
            quantity=quantity if quantity and quantity >= 1 else 1,
            status=CartItemStatus.parse(data.get("status")),
        )


@dataclass(frozen=True)
class Cart:
    """
    Ordered, immutable cart snapshot.

    Insertion order is display order. Every change produces a new Cart,
    so a reference handed to a reader never changes underneath it.
    """
    items: Tuple[CartItem, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    @classmethod
    def empty(cls) -> "Cart":
        return cls(items=())

    @classmethod
    def from_list(cls, data: List[dict]) -> "Cart":
        """
        Build from a sanitized list of wire items.

        Lines without an id cannot be addressed by remove/update/confirm
        and are left out.
        """
        items = [CartItem.from_dict(item) for item in data]
        addressable = tuple(item for item in items if item.item_id)
        if len(addressable) != len(items):
            logger.warning(f"Skipped {len(items) - len(addressable)} cart line(s) without an id")
        return cls(items=addressable)

    def to_list(self) -> List[dict]:
        return [item.to_dict() for item in self.items]

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[CartItem]:
        return iter(self.items)

    def get(self, item_id: str) -> Optional[CartItem]:
        return next((item for item in self.items if item.item_id == item_id), None)

    def contains(self, item_id: str) -> bool:
        return self.get(item_id) is not None

    def without(self, item_id: str) -> "Cart":
        """Return a copy of the cart with the given line removed."""
        return replace(self, items=tuple(item for item in self.items if item.item_id != item_id))

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def total_items(self) -> int:
        """Total number of units in cart."""
        return sum(item.quantity for item in self.items)

    @property
    def subtotal(self) -> Decimal:
        """Sum of all line totals."""
        return round_money(sum((item.total_price for item in self.items), Decimal("0")))
