"""
Remote cart API client.

Thin boundary over the cart HTTP API. Every method either returns the
decoded response or raises `RemoteCartError`; it never interprets the
cart contents.
"""
from typing import Any, List, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from cartsync.config import CART_API_URL, CART_API_TOKEN, CART_API_TIMEOUT
from cartsync.errors import (
    INSUFFICIENT_STOCK_CODE,
    INSUFFICIENT_STOCK_SERVER_MESSAGE,
    INVALID_RESPONSE_CODE,
    TRANSPORT_ERROR_CODE,
    InsufficientStockError,
    RemoteCartError,
)
from cartsync.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

NO_RESPONSE_BODY = "No response body"


class RemoteErrorBody(BaseModel):
    """Error payload returned by the cart API on non-2xx responses."""
    model_config = ConfigDict(extra="ignore")

    code: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_insufficient_stock(self) -> bool:
        return (
            self.code == INSUFFICIENT_STOCK_CODE
            or self.message == INSUFFICIENT_STOCK_SERVER_MESSAGE
        )

    @property
    def detail(self) -> Optional[str]:
        return self.message or self.error


def _error_from_response(response: httpx.Response) -> RemoteCartError:
    """Translate a non-2xx response into the matching exception."""
    body: Optional[RemoteErrorBody] = None
    try:
        body = RemoteErrorBody.model_validate(response.json())
    except (ValueError, ValidationError):
        body = None

    if body is not None and body.is_insufficient_stock:
        return InsufficientStockError(
            body.detail or INSUFFICIENT_STOCK_SERVER_MESSAGE,
            code=INSUFFICIENT_STOCK_CODE,
            status_code=response.status_code,
        )

    detail = (body.detail if body else None) or (response.text[:200] if response.text else NO_RESPONSE_BODY)
    return RemoteCartError(
        detail,
        code=body.code if body else None,
        status_code=response.status_code,
    )


class RemoteCartClient:
    """
    Cart API client over httpx.

    Endpoints:
    - GET    /api/cart                     -> list of cart items
    - POST   /api/cart/add      {productId} -> list of cart items
    - DELETE /api/cart/remove/{itemId}
    - PUT    /api/cart/update/{itemId} {quantity}
    - PUT    /api/cart/confirm/{itemId}
    """

    def __init__(
        self,
        base_url: str = CART_API_URL,
        token: Optional[str] = CART_API_TOKEN,
        timeout: float = CART_API_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token or None
        self.timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "RemoteCartClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _get_http_client(self) -> httpx.AsyncClient:
        """Lazily create the shared httpx client."""
        if self._http_client is None:
            headers = {"Accept": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._http_client = httpx.AsyncClient(
                headers=headers,
                timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)),
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> httpx.Response:
        client = self._get_http_client()
        try:
            response = await client.request(method, f"{self.base_url}{path}", json=json)
        except httpx.TimeoutException as e:
            logger.warning(f"Cart API timeout on {method} {path}: {e}")
            raise RemoteCartError(f"Request timed out: {e}", code=TRANSPORT_ERROR_CODE) from e
        except httpx.RequestError as e:
            logger.warning(f"Cart API network error on {method} {path}: {e}")
            raise RemoteCartError(f"Failed to connect to cart API: {e}", code=TRANSPORT_ERROR_CODE) from e

        if response.is_success:
            return response

        error = _error_from_response(response)
        logger.warning(f"Cart API error {response.status_code} on {method} {path}: {error.message}")
        raise error

    @staticmethod
    def _cart_payload(response: httpx.Response) -> List[Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteCartError(
                "Cart API returned a non-JSON body",
                code=INVALID_RESPONSE_CODE,
                status_code=response.status_code,
            ) from e
        if not isinstance(data, list):
            raise RemoteCartError(
                f"Cart API returned {type(data).__name__}, expected a list",
                code=INVALID_RESPONSE_CODE,
                status_code=response.status_code,
            )
        return data

    async def fetch(self) -> List[Any]:
        """Get the full cart."""
        response = await self._request("GET", "/api/cart")
        return self._cart_payload(response)

    async def add(self, product_id: str) -> List[Any]:
        """Add a product; returns the full cart after the server merged it."""
        response = await self._request("POST", "/api/cart/add", json={"productId": product_id})
        return self._cart_payload(response)

    async def remove(self, item_id: str) -> None:
        await self._request("DELETE", f"/api/cart/remove/{quote(item_id, safe='')}")

    async def update_quantity(self, item_id: str, quantity: int) -> None:
        """
        Set the quantity of a line.

        Raises:
            InsufficientStockError: not enough units left
            RemoteCartError: any other failure
        """
        logger.debug(f"Updating quantity of {sanitize_id_for_logging(item_id)} to {quantity}")
        await self._request("PUT", f"/api/cart/update/{quote(item_id, safe='')}", json={"quantity": quantity})

    async def confirm_pickup(self, item_id: str) -> None:
        await self._request("PUT", f"/api/cart/confirm/{quote(item_id, safe='')}")
