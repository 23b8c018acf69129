"""Form input validation shared by the booking wizard and checkout."""
import re
from typing import Any, Iterable, Mapping, Optional

PHONE_PATTERN = re.compile(r"[0-9]{10}")
_NON_DIGITS = re.compile(r"[^0-9]")


def digits_only(value: str) -> str:
    """Strip everything but ASCII digits: "(555) 123-4567" -> "5551234567"."""
    return _NON_DIGITS.sub("", value or "")


def is_valid_booking_phone(value: str) -> bool:
    """Booking form: 10 digits after removing punctuation and spaces."""
    return bool(PHONE_PATTERN.fullmatch(digits_only(value)))


def is_valid_order_phone(value: str) -> bool:
    """Checkout form: exactly 10 characters, all ASCII digits, nothing stripped."""
    return bool(value) and bool(PHONE_PATTERN.fullmatch(value))


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def missing_fields(fields: Iterable[tuple[str, Any]]) -> list[str]:
    """
    Names of required fields that are empty.

    Args:
        fields: (display name, value) pairs in form order
    """
    return [name for name, value in fields if is_blank(value)]


def resolve_user_email(user: Optional[Mapping[str, Any]]) -> Optional[str]:
    """
    Email of a logged-in user record.

    Uses `email` when present, otherwise the first string value that looks
    like an address (contains "@" and ".").
    """
    if not user:
        return None
    email = user.get("email")
    if isinstance(email, str) and email.strip():
        return email.strip()
    for value in user.values():
        if isinstance(value, str) and "@" in value and "." in value:
            return value.strip()
    return None
