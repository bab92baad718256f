"""
Cart error taxonomy and user-facing messages.

`CartError` kinds are what the sync engine reports back to callers.
The exceptions below are raised by the remote client and the storage
layer and are always translated into a `CartError` by the engine.
"""

from enum import Enum
from typing import Optional


class CartError(str, Enum):
    """Failure kinds reported by cart operations."""
    REMOTE_UNAVAILABLE = "remote_unavailable"  # read failed, cached snapshot in use
    ADD_FAILED = "add_failed"
    REMOVE_FAILED = "remove_failed"
    UPDATE_FAILED = "update_failed"
    INSUFFICIENT_STOCK = "insufficient_stock"
    CONFIRM_FAILED = "confirm_failed"
    INVALID_QUANTITY = "invalid_quantity"  # local validation, never sent
    CORRUPT_PERSISTED_STATE = "corrupt_persisted_state"  # internal only


# Wire-level codes
INSUFFICIENT_STOCK_CODE = "InsufficientStock"
INSUFFICIENT_STOCK_SERVER_MESSAGE = "Stock insuficiente"
TRANSPORT_ERROR_CODE = "transport"
INVALID_RESPONSE_CODE = "invalid_response"

# User-facing copy
TITLE_ERROR = "Error"
MSG_ADD_FAILED = "No se pudo agregar el producto"
TITLE_INSUFFICIENT_STOCK = "Stock insuficiente"
MSG_INSUFFICIENT_STOCK = "No hay suficientes unidades disponibles"


class RemoteCartError(Exception):
    """A cart request failed in transport or was rejected by the server."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class InsufficientStockError(RemoteCartError):
    """The server refused a quantity change because stock ran out."""


class CorruptPersistedStateError(ValueError):
    """Stored cart snapshot could not be parsed."""
