"""
Status transition rules for bookings and orders.

Customer actions (cancel, reschedule) check the tables here before any
request is sent. Admin tables may set any known status.
"""

from typing import Union

from gharpaluwa.errors import ERROR_INVALID_STATUS, StatusTransitionError
from gharpaluwa.models import BookingStatus, OrderStatus

BOOKING_TRANSITIONS: dict[BookingStatus, tuple[BookingStatus, ...]] = {
    BookingStatus.SCHEDULED: (BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW),
    BookingStatus.CONFIRMED: (BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW),
    BookingStatus.COMPLETED: (),  # Final state
    BookingStatus.CANCELLED: (),  # Final state
    BookingStatus.NO_SHOW: (BookingStatus.SCHEDULED,),  # rebooked
}

ORDER_TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (
        OrderStatus.APPROVED, OrderStatus.PROCESSING, OrderStatus.COMPLETED, OrderStatus.CANCELLED,
    ),
    OrderStatus.APPROVED: (OrderStatus.PROCESSING, OrderStatus.COMPLETED, OrderStatus.CANCELLED),
    OrderStatus.PROCESSING: (OrderStatus.COMPLETED, OrderStatus.CANCELLED),
    OrderStatus.COMPLETED: (OrderStatus.REFUNDED,),
    OrderStatus.CANCELLED: (),  # Final state
    OrderStatus.REFUNDED: (),  # Final state
}


def parse_booking_status(value: Union[str, BookingStatus, None]) -> BookingStatus:
    """
    Normalize a booking status; the API stores mixed case ("Confirmed")
    and older records have no status at all (scheduled).
    """
    if value is None or value == "":
        return BookingStatus.SCHEDULED
    try:
        return BookingStatus(str(getattr(value, "value", value)).strip().lower())
    except ValueError:
        raise StatusTransitionError(f"{ERROR_INVALID_STATUS}: {value!r}") from None


def parse_order_status(value: Union[str, OrderStatus, None]) -> OrderStatus:
    """Normalize an order status; missing means pending."""
    if value is None or value == "":
        return OrderStatus.PENDING
    try:
        return OrderStatus(str(getattr(value, "value", value)).strip().lower())
    except ValueError:
        raise StatusTransitionError(f"{ERROR_INVALID_STATUS}: {value!r}") from None


def is_final_booking_status(status: BookingStatus) -> bool:
    return not BOOKING_TRANSITIONS[status]


def check_booking_transition(current, target) -> BookingStatus:
    """
    Validate a booking status change.

    Returns:
        The normalized target status

    Raises:
        StatusTransitionError: unknown status or change not allowed
    """
    current_status = parse_booking_status(current)
    target_status = parse_booking_status(target)
    allowed = BOOKING_TRANSITIONS[current_status]
    if target_status not in allowed:
        raise StatusTransitionError(
            f"Cannot change booking from '{current_status.value}' to '{target_status.value}'. "
            f"Allowed: {[s.value for s in allowed]}"
        )
    return target_status


def check_order_transition(current, target) -> OrderStatus:
    """Validate an order status change (same contract as bookings)."""
    current_status = parse_order_status(current)
    target_status = parse_order_status(target)
    allowed = ORDER_TRANSITIONS[current_status]
    if target_status not in allowed:
        raise StatusTransitionError(
            f"Cannot change order from '{current_status.value}' to '{target_status.value}'. "
            f"Allowed: {[s.value for s in allowed]}"
        )
    return target_status
