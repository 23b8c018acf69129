"""
Tests for booking details, rescheduling and the admin booking list
"""

from datetime import date

import pytest

from gharpaluwa.bookings import BookingManager, filter_bookings, get_center
from gharpaluwa.errors import (
    ERROR_APPOINTMENT_REQUIRED,
    ERROR_BOOKING_ID_MISSING,
    ERROR_DATE_IN_PAST,
    AuthenticationRequiredError,
    BookingNotFoundError,
    FormValidationError,
    RequestCancelledError,
    StatusTransitionError,
)
from gharpaluwa.models import BookingStatus

BOOKINGS = [
    {
        "_id": "b-0001",
        "status": "scheduled",
        "patient": {"name": "Sita Sharma"},
        "dog": {"name": "Max"},
        "userEmail": "sita@example.com",
    },
    {
        "_id": "b-0002",
        "status": "Confirmed",
        "patient": {"name": "Ram Thapa"},
        "dog": {"name": "Bella"},
        "userEmail": "ram@example.com",
    },
    {
        "_id": "b-0003",
        "status": "cancelled",
        "patient": {"name": "Gita Rai"},
        "dog": {"name": "Tiger"},
    },
]


@pytest.fixture
def manager(api_client):
    return BookingManager(api_client, today=lambda: date(2026, 10, 18))


def _booking(status="scheduled", **extra):
    return {
        "_id": "65a1b2c3d4e5f6a7b8c9d0e1",
        "status": status,
        "appointmentDate": "2026-10-20T00:00:00Z",
        "appointmentTime": "10:00 AM",
        "userEmail": "sita@example.com",
        **extra,
    }


class TestFilterBookings:
    """Tests for filter_bookings."""

    def test_all(self):
        assert filter_bookings(BOOKINGS) == BOOKINGS

    def test_status_is_case_insensitive(self):
        result = filter_bookings(BOOKINGS, status="confirmed")

        assert [b["_id"] for b in result] == ["b-0002"]

    @pytest.mark.parametrize("query,expected", [
        ("0003", ["b-0003"]),
        ("ram", ["b-0002"]),
        ("BELLA", ["b-0002"]),
        ("example.com", ["b-0001", "b-0002"]),
        ("nobody", []),
    ])
    def test_query(self, query, expected):
        assert [b["_id"] for b in filter_bookings(BOOKINGS, query=query)] == expected


class TestCenters:
    """Tests for the vaccination center directory."""

    def test_default_center(self):
        center = get_center(None)

        assert center.name == "Main Center"
        assert center.hours == "9:00 AM - 5:00 PM"

    def test_unknown_center(self):
        assert get_center("Pokhara Clinic") is None


class TestLoadBooking:
    """Tests for BookingManager.load."""

    @pytest.mark.asyncio
    async def test_missing_id(self, manager, fake_api):
        with pytest.raises(BookingNotFoundError, match=ERROR_BOOKING_ID_MISSING):
            await manager.load(None)

        assert fake_api.requests == []

    @pytest.mark.asyncio
    async def test_load(self, manager, fake_api):
        fake_api.add("GET /api/vaccinations/65a1b2c3d4e5f6a7b8c9d0e1", 200, _booking())

        details = await manager.load("65a1b2c3d4e5f6a7b8c9d0e1")

        assert details.reference == "b8c9d0e1"
        assert details.status == BookingStatus.SCHEDULED
        assert details.center.address == "Radhe Radhe, Bhaktapur"

    @pytest.mark.asyncio
    async def test_empty_response(self, manager, fake_api):
        fake_api.add("GET /api/vaccinations/b1", 200, None)

        with pytest.raises(BookingNotFoundError):
            await manager.load("b1")

    @pytest.mark.asyncio
    async def test_session_expired(self, manager, fake_api):
        fake_api.add("GET /api/vaccinations/b1", 401, {"message": "jwt expired"})

        with pytest.raises(AuthenticationRequiredError, match="session has expired"):
            await manager.load("b1")

    @pytest.mark.asyncio
    async def test_close_cancels_later_requests(self, manager, fake_api):
        fake_api.add("GET /api/vaccinations/b1", 200, _booking())
        manager.close()

        with pytest.raises(RequestCancelledError):
            await manager.load("b1")

        assert fake_api.requests == []


class TestReschedule:
    """Tests for BookingManager.reschedule."""

    BOOKING_PATH = "/api/vaccinations/65a1b2c3d4e5f6a7b8c9d0e1"

    @pytest.mark.asyncio
    async def test_reschedule(self, manager, fake_api):
        fake_api.add(f"GET {self.BOOKING_PATH}", 200, _booking())
        fake_api.add(f"PUT {self.BOOKING_PATH}", 200, _booking(appointmentDate="2026-10-25T00:00:00Z"))

        details = await manager.reschedule("65a1b2c3d4e5f6a7b8c9d0e1", "2026-10-25", "02:00 PM")

        assert fake_api.last_json() == {
            "appointmentDate": "2026-10-25T00:00:00Z",
            "appointmentTime": "02:00 PM",
        }
        assert details.record["appointmentDate"] == "2026-10-25T00:00:00Z"

    @pytest.mark.asyncio
    async def test_today_is_allowed(self, manager, fake_api):
        fake_api.add(f"GET {self.BOOKING_PATH}", 200, _booking())
        fake_api.add(f"PUT {self.BOOKING_PATH}", 200, None)

        details = await manager.reschedule("65a1b2c3d4e5f6a7b8c9d0e1", date(2026, 10, 18), "09:00 AM")

        assert details.record["appointmentTime"] == "09:00 AM"

    @pytest.mark.asyncio
    async def test_no_show_is_rebooked(self, manager, fake_api):
        fake_api.add(f"GET {self.BOOKING_PATH}", 200, _booking(status="no-show"))
        fake_api.add(f"PUT {self.BOOKING_PATH}", 200, None)

        await manager.reschedule("65a1b2c3d4e5f6a7b8c9d0e1", "2026-10-25", "02:00 PM")

        assert fake_api.last_json()["status"] == "scheduled"

    @pytest.mark.asyncio
    async def test_past_date(self, manager, fake_api):
        with pytest.raises(FormValidationError, match=ERROR_DATE_IN_PAST):
            await manager.reschedule("65a1b2c3d4e5f6a7b8c9d0e1", "2026-10-17", "02:00 PM")

        assert fake_api.requests == []

    @pytest.mark.asyncio
    async def test_missing_time(self, manager):
        with pytest.raises(FormValidationError) as exc_info:
            await manager.reschedule("65a1b2c3d4e5f6a7b8c9d0e1", "2026-10-25", "")

        assert exc_info.value.message == ERROR_APPOINTMENT_REQUIRED
        assert exc_info.value.missing_fields == ["Appointment Time"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["completed", "Cancelled"])
    async def test_final_booking(self, manager, fake_api, status):
        fake_api.add(f"GET {self.BOOKING_PATH}", 200, _booking(status=status))

        with pytest.raises(StatusTransitionError):
            await manager.reschedule("65a1b2c3d4e5f6a7b8c9d0e1", "2026-10-25", "02:00 PM")

        assert [r.method for r in fake_api.requests] == ["GET"]


class TestBookingStatus:
    """Tests for status changes and notifications."""

    @pytest.mark.asyncio
    async def test_confirm(self, manager, fake_api):
        fake_api.add("GET /api/vaccinations/b1", 200, _booking(_id="b1"))
        fake_api.add("PUT /api/vaccinations/b1", 200, _booking(_id="b1", status="confirmed"))

        result = await manager.update_status("b1", "Confirmed")

        assert fake_api.last_json() == {"status": "confirmed"}
        assert result["status"] == "confirmed"

    @pytest.mark.asyncio
    async def test_admin_can_set_any_status(self, manager, fake_api):
        """Test the admin table may move a completed booking back to scheduled."""
        fake_api.add("GET /api/vaccinations/b1", 200, _booking(_id="b1", status="completed"))
        fake_api.add("PUT /api/vaccinations/b1", 200, None)

        result = await manager.update_status("b1", "Scheduled")

        assert result["status"] == "scheduled"
        assert fake_api.last_json() == {"status": "scheduled"}

    @pytest.mark.asyncio
    async def test_admin_can_skip_confirmation(self, manager, fake_api):
        fake_api.add("GET /api/vaccinations/b1", 200, _booking(_id="b1", status="scheduled"))
        fake_api.add("PUT /api/vaccinations/b1", 200, None)

        result = await manager.update_status("b1", "Completed")

        assert result["status"] == "completed"

    @pytest.mark.asyncio
    async def test_admin_unknown_status(self, manager, fake_api):
        with pytest.raises(StatusTransitionError, match="Invalid status"):
            await manager.update_status("b1", "archived")

        assert fake_api.requests == []

    @pytest.mark.parametrize("status", ["completed", "Cancelled"])
    @pytest.mark.asyncio
    async def test_cancel_final_booking_is_refused(self, manager, fake_api, status):
        fake_api.add("GET /api/vaccinations/b1", 200, _booking(_id="b1", status=status))

        with pytest.raises(StatusTransitionError, match="Cannot change booking"):
            await manager.cancel("b1")

        assert [r.method for r in fake_api.requests] == ["GET"]

    @pytest.mark.asyncio
    async def test_cancel(self, manager, fake_api):
        fake_api.add("GET /api/vaccinations/b1", 200, _booking(_id="b1", status="confirmed"))
        fake_api.add("PUT /api/vaccinations/b1", 200, None)

        result = await manager.cancel("b1")

        assert result["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_list_all_filters(self, manager, fake_api):
        fake_api.add("GET /api/vaccinations", 200, BOOKINGS)

        result = await manager.list_all(status="cancelled")

        assert [b["_id"] for b in result] == ["b-0003"]

    @pytest.mark.asyncio
    async def test_list_for_user(self, manager, fake_api):
        fake_api.add("GET /api/users/sita@example.com/vaccinations", 200, BOOKINGS[:1])

        assert await manager.list_for_user("sita@example.com") == BOOKINGS[:1]

    @pytest.mark.asyncio
    async def test_notify_status(self, manager, fake_api):
        fake_api.add("POST /api/send-vaccination-email", 200, {"message": "Email sent"})

        await manager.notify_status(BOOKINGS[1])

        assert fake_api.last_json() == {
            "email": "ram@example.com",
            "bookingDetails": BOOKINGS[1],
            "status": "confirmed",
        }

    @pytest.mark.asyncio
    async def test_notify_without_email(self, manager, fake_api):
        with pytest.raises(FormValidationError):
            await manager.notify_status(BOOKINGS[2])

        assert fake_api.requests == []
