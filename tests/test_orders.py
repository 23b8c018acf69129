"""
Tests for order management
"""

import pytest

from gharpaluwa.errors import FormValidationError, OrderNotFoundError, StatusTransitionError
from gharpaluwa.orders import OrderManager, filter_orders

ORDERS = [
    {"_id": "o-100", "status": "pending", "customer": {"name": "Sita Sharma"}, "userEmail": "sita@example.com"},
    {"_id": "o-200", "status": "completed", "customer": {"name": "Ram Thapa"}, "userEmail": "ram@example.com"},
    {"_id": "o-300", "status": "Cancelled", "customer": {"name": "Gita Rai"}},
]


@pytest.fixture
def manager(api_client):
    return OrderManager(api_client)


class TestFilterOrders:
    """Tests for filter_orders."""

    def test_status(self):
        assert [o["_id"] for o in filter_orders(ORDERS, status="cancelled")] == ["o-300"]

    def test_query_matches_customer(self):
        assert [o["_id"] for o in filter_orders(ORDERS, query="thapa")] == ["o-200"]

    def test_query_and_status(self):
        assert filter_orders(ORDERS, status="pending", query="ram") == []


class TestOrderManager:
    """Tests for OrderManager."""

    @pytest.mark.asyncio
    async def test_get_missing(self, manager, fake_api):
        fake_api.add("GET /api/orders/o-404", 200, None)

        with pytest.raises(OrderNotFoundError):
            await manager.get("o-404")

    @pytest.mark.asyncio
    async def test_update_status(self, manager, fake_api):
        fake_api.add("GET /api/orders/o-100", 200, ORDERS[0])
        fake_api.add("PUT /api/orders/o-100", 200, {**ORDERS[0], "status": "processing"})

        result = await manager.update_status("o-100", "processing")

        assert result["status"] == "processing"
        assert fake_api.last_json() == {"status": "processing"}

    @pytest.mark.asyncio
    async def test_refund_completed_order(self, manager, fake_api):
        fake_api.add("GET /api/orders/o-200", 200, ORDERS[1])
        fake_api.add("PUT /api/orders/o-200", 200, None)

        result = await manager.update_status("o-200", "refunded")

        assert result["status"] == "refunded"

    @pytest.mark.asyncio
    async def test_admin_can_reopen_cancelled_order(self, manager, fake_api):
        """Test the admin table is not bound by the customer transition rules."""
        fake_api.add("GET /api/orders/o-300", 200, ORDERS[2])
        fake_api.add("PUT /api/orders/o-300", 200, None)

        result = await manager.update_status("o-300", "Approved")

        assert result["status"] == "approved"
        assert fake_api.last_json() == {"status": "approved"}

    @pytest.mark.asyncio
    async def test_admin_unknown_status(self, manager, fake_api):
        with pytest.raises(StatusTransitionError):
            await manager.update_status("o-300", "shipped")

        assert fake_api.requests == []

    @pytest.mark.asyncio
    async def test_cancel_pending(self, manager, fake_api):
        fake_api.add("GET /api/orders/o-100", 200, ORDERS[0])
        fake_api.add("PATCH /api/orders/o-100/cancel", 200, {**ORDERS[0], "status": "cancelled"})

        result = await manager.cancel("o-100")

        assert result["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_cancel_completed_is_refused(self, manager, fake_api):
        fake_api.add("GET /api/orders/o-200", 200, ORDERS[1])

        with pytest.raises(StatusTransitionError):
            await manager.cancel("o-200")

    @pytest.mark.asyncio
    async def test_delete(self, manager, fake_api):
        fake_api.add("DELETE /api/orders/o-300", 200, {"message": "Order deleted"})

        await manager.delete("o-300")

        assert fake_api.requests[-1].method == "DELETE"

    @pytest.mark.asyncio
    async def test_list_all(self, manager, fake_api):
        fake_api.add("GET /api/orders", 200, ORDERS)

        result = await manager.list_all(query="example.com")

        assert [o["_id"] for o in result] == ["o-100", "o-200"]

    @pytest.mark.asyncio
    async def test_list_for_user(self, manager, fake_api):
        fake_api.add("GET /api/users/ram@example.com/orders", 200, ORDERS[1:2])

        assert await manager.list_for_user("ram@example.com") == ORDERS[1:2]

    @pytest.mark.asyncio
    async def test_notify_status(self, manager, fake_api):
        fake_api.add("POST /api/send-order-email", 200, {"message": "sent"})

        await manager.notify_status(ORDERS[0], "Processing")

        assert fake_api.last_json()["status"] == "processing"
        assert fake_api.last_json()["email"] == "sita@example.com"

    @pytest.mark.asyncio
    async def test_notify_without_email(self, manager):
        with pytest.raises(FormValidationError):
            await manager.notify_status(ORDERS[2])
