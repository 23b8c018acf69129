"""Order management for the profile page and the admin orders table."""

from typing import Any, Iterable, Optional

from gharpaluwa.errors import (
    ERROR_NO_EMAIL_ON_RECORD,
    ERROR_ORDER_NOT_FOUND,
    FormValidationError,
    OrderNotFoundError,
)
from gharpaluwa.logging import get_logger, sanitize_id_for_logging
from gharpaluwa.models import OrderStatus
from gharpaluwa.services.api_client import GharPaluwaClient
from gharpaluwa.services.scope import RequestScope
from gharpaluwa.services.status import check_order_transition, parse_order_status

logger = get_logger(__name__)


def filter_orders(orders: Iterable[dict], status: str = "all", query: str = "") -> list[dict]:
    """Filter by status ("all" keeps everything) and by id, customer name or e-mail."""
    status = (status or "all").lower()
    query = (query or "").strip().lower()

    def matches(order: dict) -> bool:
        if status != "all" and str(order.get("status") or "").lower() != status:
            return False
        if not query:
            return True
        candidates = (
            order.get("_id") or order.get("id"),
            (order.get("customer") or {}).get("name"),
            order.get("userEmail"),
        )
        return any(value and query in str(value).lower() for value in candidates)

    return [o for o in orders if matches(o)]


class OrderManager:
    """Remote order operations for one screen; cancel via `close()`."""

    def __init__(self, client: GharPaluwaClient):
        self.client = client
        self._scope = RequestScope("orders")

    def close(self) -> None:
        self._scope.cancel()

    async def get(self, order_id: str) -> dict:
        order = await self._scope.run(self.client.get_order(order_id))
        if not order:
            raise OrderNotFoundError(ERROR_ORDER_NOT_FOUND)
        return order

    async def list_for_user(self, email: str) -> list[dict]:
        return await self._scope.run(self.client.list_user_orders(email))

    async def list_all(self, status: str = "all", query: str = "") -> list[dict]:
        orders = await self._scope.run(self.client.list_orders())
        return filter_orders(orders, status, query)

    async def update_status(self, order_id: str, status: str) -> dict:
        """
        Set an order's status from the admin table; any known status is
        accepted.

        Raises:
            StatusTransitionError: unknown status
        """
        target = parse_order_status(status)
        order = await self.get(order_id)
        current = parse_order_status(order.get("status"))
        result = await self._scope.run(self.client.update_order(order_id, {"status": target.value}))
        logger.info(f"Order {sanitize_id_for_logging(order_id)} status: {current.value} -> {target.value}")
        return result or {**order, "status": target.value}

    async def cancel(self, order_id: str) -> dict:
        """Customer cancellation; only pending or processing orders qualify."""
        order = await self.get(order_id)
        check_order_transition(order.get("status"), OrderStatus.CANCELLED)
        result = await self._scope.run(self.client.cancel_order(order_id))
        logger.info(f"Order {sanitize_id_for_logging(order_id)} cancelled")
        return result or {**order, "status": OrderStatus.CANCELLED.value}

    async def delete(self, order_id: str) -> None:
        """Remove an order from the customer's history."""
        await self._scope.run(self.client.delete_order(order_id))
        logger.info(f"Order {sanitize_id_for_logging(order_id)} deleted")

    async def notify_status(self, order: dict, status: Optional[str] = None) -> Any:
        email = order.get("userEmail")
        if not email:
            raise FormValidationError(ERROR_NO_EMAIL_ON_RECORD, ["userEmail"])
        status_value = parse_order_status(status or order.get("status")).value
        return await self._scope.run(self.client.send_order_email(email, order, status_value))
