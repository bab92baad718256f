"""
Sanitization of raw cart payloads returned by the server or read from storage.

Malformed lines are dropped and missing display fields are filled in, so
the canonical cart never holds a partially formed record. Never raises.
"""
import math
from typing import Any, List

from cartsync.logging import get_logger
from cartsync.services.money import is_price
from .models import DEFAULT_PRODUCT_NAME, DEFAULT_PRODUCT_IMAGE

logger = get_logger(__name__)


def _product_id(product: dict) -> Any:
    return product.get("id") or product.get("_id")


def _line_id(entry: dict) -> Any:
    return entry.get("id") or entry.get("_id")


def _valid_quantity(entry: dict) -> bool:
    if "quantity" not in entry or entry["quantity"] is None:
        return True
    quantity = entry["quantity"]
    if isinstance(quantity, bool):
        return False
    if isinstance(quantity, int):
        return quantity >= 1
    if isinstance(quantity, float):
        return math.isfinite(quantity) and quantity >= 1 and quantity.is_integer()
    return False


def _is_valid_entry(entry: Any) -> bool:
    if not isinstance(entry, dict):
        return False
    product = entry.get("product")
    if not isinstance(product, dict):
        return False
    if not _product_id(product):
        return False
    if product.get("price") is None or not is_price(product["price"]):
        return False
    return _valid_quantity(entry)


def sanitize_cart_payload(raw: Any) -> List[dict]:
    """
    Validate and normalize a raw cart payload.

    An entry survives when its product has a truthy id and a price that is a
    number >= 0. A repeated line id keeps only its first occurrence.
    Survivors get a default product name and image when those are missing or
    empty; every other field is kept as received, in the received order.

    Args:
        raw: Decoded JSON payload (expected to be a list of cart items)

    Returns:
        List of cleaned item dicts; empty when nothing survives
    """
    if not isinstance(raw, (list, tuple)):
        if raw is not None:
            logger.warning(f"Cart payload is not a list ({type(raw).__name__}), ignoring it")
        return []

    cleaned: List[dict] = []
    seen_ids = set()
    dropped = 0

    for entry in raw:
        if not _is_valid_entry(entry):
            dropped += 1
            continue

        line_id = _line_id(entry)
        if line_id:
            key = str(line_id)
            if key in seen_ids:
                dropped += 1
                continue
            seen_ids.add(key)

        product = dict(entry["product"])
        if not product.get("name"):
            product["name"] = DEFAULT_PRODUCT_NAME
        if not product.get("mainImage"):
            product["mainImage"] = DEFAULT_PRODUCT_IMAGE

        item = dict(entry)
        item["product"] = product
        cleaned.append(item)

    if dropped:
        logger.warning(f"Dropped {dropped} malformed cart item(s)")

    return cleaned
