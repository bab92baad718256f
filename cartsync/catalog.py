"""
Catalog helpers for product pages.

Pure derivations over the read-only product list; nothing here touches
the cart state or storage.
"""
from typing import Any, Iterable, List, Optional, Tuple

from cartsync.cart.models import Product
from cartsync.logging import get_logger
from cartsync.services.money import is_price

logger = get_logger(__name__)

LOW_STOCK_THRESHOLD = 5


def parse_catalog(raw: Any) -> List[Product]:
    """Build Product records from a raw catalog payload, skipping unusable entries."""
    if not isinstance(raw, (list, tuple)):
        return []
    products = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        if not (entry.get("id") or entry.get("_id")) or not is_price(entry.get("price")):
            continue
        products.append(Product.from_dict(entry))
    skipped = len(raw) - len(products)
    if skipped:
        logger.debug(f"Skipped {skipped} catalog entries without id or price")
    return products


def find_product(products: Iterable[Product], product_id: str) -> Optional[Product]:
    return next((p for p in products if p.product_id == product_id), None)


def related_products(
    products: Iterable[Product],
    product: Product,
) -> Tuple[List[Product], List[Product]]:
    """
    Split the catalog around a product's main (first) category.

    Returns:
        (same_category, other_categories): products sharing the main category
        other than `product` itself, then products outside that category.
        Catalog order is kept in both lists.
    """
    category = product.main_category
    same_category = []
    other_categories = []
    for candidate in products:
        if category is not None and category in candidate.categories:
            if candidate.product_id != product.product_id:
                same_category.append(candidate)
        else:
            other_categories.append(candidate)
    return same_category, other_categories


def low_stock(product: Product, threshold: int = LOW_STOCK_THRESHOLD) -> bool:
    """True when only a few units are left (in stock, at most `threshold`)."""
    return product.stock is not None and 0 < product.stock <= threshold
