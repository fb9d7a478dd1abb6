"""
HTTP API Client

Async wrapper over the ordering API used by the customer and kitchen
clients. Responses are parsed into the same pydantic schemas the server
emits; error envelopes are raised as ``ApiError``.
"""

import logging
from typing import Any, Optional, Union

import httpx

from snappy_serve.core.config import get_settings
from snappy_serve.core.exceptions import CafeError
from snappy_serve.domain import OrderStatus
from snappy_serve.schemas import (
    BillCreateResponse,
    DailyReportResponse,
    MenuItemSchema,
    OrderResponse,
)
from snappy_serve.services.invalidation import InvalidationEvent

logger = logging.getLogger(__name__)


class ApiError(CafeError):
    """Non-2xx response from the ordering API."""

    def __init__(self, status_code: int, error_type: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self._remote_type = error_type

    @property
    def error_type(self) -> str:
        return self._remote_type


class CafeApiClient:
    """
    Thin async client for the ordering API.

    Pass ``client`` to reuse an existing ``httpx.AsyncClient`` (for example
    one mounted on ``httpx.ASGITransport``); it is then left open by
    ``close``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or get_settings().api_base_url,
            timeout=timeout,
        )

    async def __aenter__(self) -> "CafeApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._client.request(method, path, **kwargs)
        if response.is_success:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}
        error_type = body.get("error", "HTTPError") if isinstance(body, dict) else "HTTPError"
        detail = body.get("detail") if isinstance(body, dict) else None
        raise ApiError(response.status_code, error_type, str(detail or response.reason_phrase))

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    async def list_orders(self) -> list[OrderResponse]:
        return [OrderResponse.model_validate(o) for o in await self._request("GET", "/orders")]

    async def kitchen_queue(self) -> list[OrderResponse]:
        return [OrderResponse.model_validate(o) for o in await self._request("GET", "/orders/queue")]

    async def get_order(self, order_id: str) -> OrderResponse:
        return OrderResponse.model_validate(await self._request("GET", f"/orders/{order_id}"))

    async def create_order(
        self,
        items: list[dict[str, Any]],
        table_number: Optional[int] = None,
        customer_name: Optional[str] = None,
        total_amount: Optional[float] = None,
    ) -> str:
        """Place an order and return its id."""
        payload: dict[str, Any] = {"items": items}
        if table_number is not None:
            payload["tableNumber"] = table_number
        if customer_name is not None:
            payload["customerName"] = customer_name
        if total_amount is not None:
            payload["totalAmount"] = total_amount
        data = await self._request("POST", "/orders", json=payload)
        return data["orderId"]

    async def update_status(self, order_id: str, status: Union[OrderStatus, str]) -> OrderResponse:
        value = status.value if isinstance(status, OrderStatus) else status
        data = await self._request("PATCH", f"/orders/{order_id}", json={"status": value})
        return OrderResponse.model_validate(data["order"])

    async def generate_bill(self, order_id: str) -> BillCreateResponse:
        return BillCreateResponse.model_validate(
            await self._request("POST", f"/orders/{order_id}/bill")
        )

    # -------------------------------------------------------------------------
    # Menu, reports, invalidation
    # -------------------------------------------------------------------------

    async def get_menu(self) -> dict[str, list[MenuItemSchema]]:
        data = await self._request("GET", "/menu")
        return {
            category: [MenuItemSchema.model_validate(item) for item in items]
            for category, items in data.items()
        }

    async def daily_report(self, date: Optional[str] = None) -> DailyReportResponse:
        params = {"date": date} if date else None
        return DailyReportResponse.model_validate(
            await self._request("GET", "/reports/daily", params=params)
        )

    async def invalidation_markers(self) -> dict[str, int]:
        return await self._request("GET", "/invalidations")

    async def publish_invalidation(self, event: InvalidationEvent) -> int:
        data = await self._request("POST", "/invalidations", json={"event": event.value})
        return data["at"]
