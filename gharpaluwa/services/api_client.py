"""
GharPaluwa REST API client.

Async wrapper around the remote JSON API used by the booking, checkout, payment
and account screens. All methods return decoded JSON; failures raise ApiError
with the server's message (or a generic fallback). Nothing is retried.
"""

from typing import Any, Optional
from urllib.parse import quote

import httpx

from gharpaluwa import config
from gharpaluwa.errors import (
    ERROR_CONNECTION,
    ERROR_UNKNOWN,
    ApiError,
    AuthenticationRequiredError,
)
from gharpaluwa.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

NO_RESPONSE_BODY = "No response body"


def extract_error(response: httpx.Response) -> tuple[str, list[str]]:
    """
    Pull (message, missing_fields) out of an error response.

    The API answers errors with `{"message": ..., "missingFields": [...]}`;
    anything else falls back to a generic message.
    """
    try:
        data = response.json() if response.content else {}
    except ValueError:
        data = {}

    if not isinstance(data, dict):
        return ERROR_UNKNOWN, []

    message = data.get("message") or data.get("error") or ERROR_UNKNOWN
    missing = data.get("missingFields") or []
    if not isinstance(missing, list):
        missing = []
    return str(message), [str(field) for field in missing]


class GharPaluwaClient:
    """Client for the bookings, orders, payments and products endpoints."""

    def __init__(
        self,
        base_url: str = config.API_URL,
        token: Optional[str] = None,
        timeout: float = config.API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

        # HTTP client (lazy init)
        self._http_client: httpx.AsyncClient | None = None

    def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of the shared httpx client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout, connect=min(5.0, self.timeout)),
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._http_client

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        """Send a request and decode the JSON body, raising ApiError on failure."""
        client = self._get_http_client()
        try:
            response = await client.request(method, path, json=json, headers=self._headers())
        except httpx.TimeoutException:
            logger.warning(f"Timeout calling {method} {path}")
            raise ApiError(ERROR_CONNECTION)
        except httpx.RequestError as e:
            logger.warning(f"Network error calling {method} {path}: {e}")
            raise ApiError(ERROR_CONNECTION) from e

        if response.status_code == 401:
            logger.info(f"Unauthorized response for {method} {path}")
            raise AuthenticationRequiredError(status_code=401)

        if response.is_error:
            message, missing = extract_error(response)
            logger.error(f"API error {response.status_code} for {method} {path}: {message}")
            raise ApiError(message, status_code=response.status_code, missing_fields=missing)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning(f"Non-JSON response for {method} {path}")
            return {"raw": response.text[:500] or NO_RESPONSE_BODY}

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "GharPaluwaClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ==================== VACCINATION BOOKINGS ====================

    async def create_booking(self, payload: dict) -> dict:
        """POST /api/vaccinations"""
        result = await self._request("POST", "/api/vaccinations", json=payload)
        logger.info(f"Vaccination booking created: {sanitize_id_for_logging(record_id(result))}")
        return result

    async def list_bookings(self) -> list[dict]:
        return await self._request("GET", "/api/vaccinations") or []

    async def get_booking(self, booking_id: str) -> dict:
        return await self._request("GET", f"/api/vaccinations/{quote(str(booking_id), safe='')}")

    async def update_booking(self, booking_id: str, changes: dict) -> dict:
        """PUT /api/vaccinations/{id}: status changes and reschedules."""
        return await self._request(
            "PUT", f"/api/vaccinations/{quote(str(booking_id), safe='')}", json=changes
        )

    async def list_user_bookings(self, email: str) -> list[dict]:
        return await self._request("GET", f"/api/users/{quote(email, safe='')}/vaccinations") or []

    async def send_booking_email(self, email: str, booking: dict, status: str) -> Any:
        return await self._request(
            "POST",
            "/api/send-vaccination-email",
            json={"email": email, "bookingDetails": booking, "status": status},
        )

    # ==================== ORDERS ====================

    async def create_order(self, payload: dict) -> dict:
        """POST /api/orders"""
        result = await self._request("POST", "/api/orders", json=payload)
        logger.info(f"Order created: {sanitize_id_for_logging(record_id(result))}")
        return result

    async def list_orders(self) -> list[dict]:
        return await self._request("GET", "/api/orders") or []

    async def get_order(self, order_id: str) -> dict:
        return await self._request("GET", f"/api/orders/{quote(str(order_id), safe='')}")

    async def update_order(self, order_id: str, changes: dict) -> dict:
        return await self._request("PUT", f"/api/orders/{quote(str(order_id), safe='')}", json=changes)

    async def cancel_order(self, order_id: str) -> dict:
        return await self._request("PATCH", f"/api/orders/{quote(str(order_id), safe='')}/cancel")

    async def delete_order(self, order_id: str) -> Any:
        return await self._request("DELETE", f"/api/orders/{quote(str(order_id), safe='')}")

    async def list_user_orders(self, email: str) -> list[dict]:
        return await self._request("GET", f"/api/users/{quote(email, safe='')}/orders") or []

    async def get_latest_order(self) -> dict:
        """GET /api/orders/latest: the order the payment page opens on."""
        return await self._request("GET", "/api/orders/latest")

    async def list_order_items(self, order_id: str) -> list[dict]:
        return await self._request("GET", f"/api/orders/{quote(str(order_id), safe='')}/items") or []

    async def send_order_email(self, email: str, order: dict, status: str) -> Any:
        return await self._request(
            "POST",
            "/api/send-order-email",
            json={"email": email, "orderDetails": order, "status": status},
        )

    # ==================== PAYMENTS ====================

    async def update_order_payment(self, order_id: str, changes: dict) -> dict:
        """PUT /api/orders/{id}/payment"""
        return await self._request(
            "PUT", f"/api/orders/{quote(str(order_id), safe='')}/payment", json=changes
        )

    async def initiate_khalti_payment(self, payload: dict) -> dict:
        """
        POST /payments/initiate-payment

        The server forwards to Khalti with its secret key and answers with
        Khalti's `pidx` and `payment_url`.
        """
        return await self._request("POST", "/payments/initiate-payment", json=payload)

    async def verify_khalti_return(self, params: dict) -> dict:
        """POST /payments/verify-khalti-return with the query string Khalti redirected back with."""
        return await self._request("POST", "/payments/verify-khalti-return", json=params)

    # ==================== PRODUCTS ====================

    async def list_products(self) -> list[dict]:
        return await self._request("GET", "/products") or []

    async def get_product(self, product_id: str) -> dict:
        return await self._request("GET", f"/products/{quote(str(product_id), safe='')}")


def record_id(record: Any) -> Optional[str]:
    """`id` or Mongo-style `_id` of a returned record."""
    if not isinstance(record, dict):
        return None
    value = record.get("id") or record.get("_id")
    return str(value) if value else None
