"""
Booking management: the customer's booking details screen (view,
reschedule, cancel) and the admin bookings table (list, filter, status
changes, e-mail notifications).
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Iterable, Optional

from gharpaluwa.errors import (
    ERROR_APPOINTMENT_REQUIRED,
    ERROR_BOOKING_ID_MISSING,
    ERROR_BOOKING_NOT_FOUND,
    ERROR_DATE_IN_PAST,
    ERROR_NO_EMAIL_ON_RECORD,
    BookingNotFoundError,
    FormValidationError,
    StatusTransitionError,
)
from gharpaluwa.logging import get_logger, sanitize_id_for_logging
from gharpaluwa.models import BookingStatus
from gharpaluwa.services.api_client import GharPaluwaClient
from gharpaluwa.services.scope import RequestScope
from gharpaluwa.services.status import (
    check_booking_transition,
    is_final_booking_status,
    parse_booking_status,
)
from gharpaluwa.utils.validators import missing_fields

from .centers import VaccinationCenter, get_center
from .wizard import parse_appointment_date

logger = get_logger(__name__)


@dataclass
class BookingDetails:
    """A booking record with the center info used by the details page."""
    booking_id: str
    record: dict
    center: Optional[VaccinationCenter]

    @property
    def reference(self) -> str:
        return self.booking_id[-8:]

    @property
    def status(self) -> BookingStatus:
        return parse_booking_status(self.record.get("status"))


def filter_bookings(bookings: Iterable[dict], status: str = "all", query: str = "") -> list[dict]:
    """
    Admin table filter.

    `status` "all" keeps every booking; otherwise statuses are compared
    case-insensitively. `query` matches the booking id, owner name, pet name
    or customer e-mail.
    """
    status = (status or "all").lower()
    query = (query or "").strip().lower()

    def matches(booking: dict) -> bool:
        if status != "all" and str(booking.get("status") or "").lower() != status:
            return False
        if not query:
            return True
        candidates = (
            booking.get("_id") or booking.get("id"),
            (booking.get("patient") or {}).get("name"),
            (booking.get("dog") or {}).get("name"),
            booking.get("userEmail"),
        )
        return any(value and query in str(value).lower() for value in candidates)

    return [b for b in bookings if matches(b)]


class BookingManager:
    """Remote booking operations for one screen; cancel via `close()`."""

    def __init__(
        self,
        client: GharPaluwaClient,
        today: Callable[[], date] = date.today,
    ):
        self.client = client
        self._today = today
        self._scope = RequestScope("bookings")

    def close(self) -> None:
        """Screen torn down: cancel outstanding requests."""
        self._scope.cancel()

    async def load(self, booking_id: Optional[str]) -> BookingDetails:
        """
        Fetch one booking for the details page.

        Raises:
            BookingNotFoundError: no id given, or the API returned nothing
            AuthenticationRequiredError: the session expired (401)
        """
        if not booking_id:
            raise BookingNotFoundError(ERROR_BOOKING_ID_MISSING)

        record = await self._scope.run(self.client.get_booking(booking_id))
        if not record:
            raise BookingNotFoundError(ERROR_BOOKING_NOT_FOUND)

        return BookingDetails(
            booking_id=str(booking_id),
            record=record,
            center=get_center(record.get("vaccinationCenter")),
        )

    async def list_for_user(self, email: str) -> list[dict]:
        return await self._scope.run(self.client.list_user_bookings(email))

    async def list_all(self, status: str = "all", query: str = "") -> list[dict]:
        bookings = await self._scope.run(self.client.list_bookings())
        return filter_bookings(bookings, status, query)

    async def reschedule(self, booking_id: str, appointment_date: Any, appointment_time: str) -> BookingDetails:
        """
        Move a booking to a new date/time.

        Raises:
            FormValidationError: missing values or a date in the past
            StatusTransitionError: booking is completed or cancelled
        """
        missing = missing_fields([
            ("Appointment Date", appointment_date),
            ("Appointment Time", appointment_time),
        ])
        if missing:
            raise FormValidationError(ERROR_APPOINTMENT_REQUIRED, missing)

        new_date = parse_appointment_date(appointment_date)
        if new_date < self._today():
            raise FormValidationError(ERROR_DATE_IN_PAST, ["Appointment Date"])

        details = await self.load(booking_id)
        if is_final_booking_status(details.status):
            raise StatusTransitionError(
                f"Cannot reschedule a {details.status.value} booking"
            )

        changes = {
            "appointmentDate": f"{new_date.isoformat()}T00:00:00Z",
            "appointmentTime": appointment_time,
        }
        if details.status == BookingStatus.NO_SHOW:
            changes["status"] = BookingStatus.SCHEDULED.value

        record = await self._scope.run(self.client.update_booking(booking_id, changes))
        logger.info(f"Booking {sanitize_id_for_logging(booking_id)} rescheduled to {new_date.isoformat()}")
        return BookingDetails(
            booking_id=str(booking_id),
            record=record or {**details.record, **changes},
            center=details.center,
        )

    async def update_status(self, booking_id: str, status: str) -> dict:
        """
        Set a booking's status from the admin table. Any known status is
        accepted, including moving a completed or cancelled booking back.

        Raises:
            StatusTransitionError: unknown status
        """
        target = parse_booking_status(status)
        details = await self.load(booking_id)
        return await self._set_status(details, target)

    async def _set_status(self, details: BookingDetails, target: BookingStatus) -> dict:
        booking_id = details.booking_id
        record = await self._scope.run(self.client.update_booking(booking_id, {"status": target.value}))
        logger.info(
            f"Booking {sanitize_id_for_logging(booking_id)} status: {details.status.value} -> {target.value}"
        )
        return record or {**details.record, "status": target.value}

    async def cancel(self, booking_id: str) -> dict:
        """
        Customer cancellation.

        Raises:
            StatusTransitionError: booking is completed or already cancelled
        """
        details = await self.load(booking_id)
        target = check_booking_transition(details.status, BookingStatus.CANCELLED)
        return await self._set_status(details, target)

    async def notify_status(self, booking: dict, status: Optional[str] = None) -> Any:
        """
        E-mail the customer about the booking's status.

        Raises:
            FormValidationError: the booking has no customer e-mail
        """
        email = booking.get("userEmail")
        if not email:
            raise FormValidationError(ERROR_NO_EMAIL_ON_RECORD, ["userEmail"])
        status_value = parse_booking_status(status or booking.get("status")).value
        return await self._scope.run(self.client.send_booking_email(email, booking, status_value))
