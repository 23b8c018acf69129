"""
Common Error Constants and Exceptions

Centralized user-facing messages so every flow reports the same text.
"""

from typing import Optional, Sequence

# Cart errors
ERROR_ITEM_ID_MISSING = "Cannot add item without ID to cart"
ERROR_ITEM_PRICE_INVALID = "Item price must be a non-negative number"
ERROR_ITEM_QUANTITY_INVALID = "Quantity must be a positive integer"
ERROR_CART_EMPTY = "Your cart is empty. Add items to place an order."
ERROR_ORDER_TOTAL_ZERO = "Order total cannot be zero"

# Auth errors
ERROR_LOGIN_REQUIRED_BOOKING = "Please log in to schedule a vaccination appointment."
ERROR_LOGIN_REQUIRED_ORDER = "Please log in to place an order."
ERROR_EMAIL_UNAVAILABLE = "Valid user email not available. Please log out and log in again."
ERROR_SESSION_EXPIRED = "Your session has expired. Please log in again."

# Validation errors
ERROR_APPOINTMENT_REQUIRED = "Please select both date and time for your appointment."
ERROR_OWNER_INFO_REQUIRED = "Please fill all required owner information fields."
ERROR_INVALID_PHONE = "Please enter a valid 10-digit phone number."
ERROR_INVALID_ORDER_PHONE = "Phone number must be exactly 10 digits and contain only numbers"
ERROR_CONTACT_REQUIRED = "Please fill out all required contact information."
ERROR_ADDRESS_REQUIRED = "Please fill out your complete delivery address."
ERROR_FIELDS_REQUIRED = "Please fill out the following fields"
ERROR_DATE_IN_PAST = "Appointment date cannot be in the past"
ERROR_NO_EMAIL_ON_RECORD = "No email address found for this customer"

# Booking / order errors
ERROR_BOOKING_ID_MISSING = "No booking ID provided. Please select a booking from your profile."
ERROR_BOOKING_NOT_FOUND = "Unable to retrieve booking details."
ERROR_ORDER_NOT_FOUND = "Order not found"
ERROR_INVALID_STATUS = "Invalid status"

# Payment errors
ERROR_ORDER_INFO_MISSING = "Missing order information. Please reload the page."
ERROR_ORDER_ID_MISSING = "Order ID is missing"
ERROR_ORDER_TOTAL_MISSING = "Order total amount is missing"
ERROR_ORDER_LOAD_FAILED = "Failed to load order details"
ERROR_PAYMENT_UNAVAILABLE = "Payment system unavailable. Please try again later."
ERROR_PAYMENT_AUTH = "Authentication error. Please login again."
ERROR_COD_FAILED = "Failed to confirm Cash on Delivery"
ERROR_KHALTI_UNAVAILABLE = "Online payments temporarily unavailable. Please try cash on delivery."
ERROR_KHALTI_INITIATE_FAILED = "Failed to initiate payment"
ERROR_PAYMENT_VERIFICATION_FAILED = "Payment verification failed"
ERROR_VERIFICATION_FAILED = "Verification failed"

# Remote errors
ERROR_UNKNOWN = "Unknown error"
ERROR_CONNECTION = "Error connecting to the server. Please try again later."
ERROR_REQUEST_CANCELLED = "Request cancelled"


class GharPaluwaError(Exception):
    """Base class for every error raised by this package."""


class MissingItemIdError(GharPaluwaError, ValueError):
    """Raised when a product has neither `id` nor `_id`."""

    def __init__(self, message: str = ERROR_ITEM_ID_MISSING):
        super().__init__(message)


class InvalidCartItemError(GharPaluwaError, ValueError):
    """Raised for a non-numeric/negative price or a non-positive quantity."""


class CartStorageError(GharPaluwaError):
    """Raised when the persistence backend cannot be read or written."""


class FormValidationError(GharPaluwaError, ValueError):
    """Raised before any network call when form input is incomplete."""

    def __init__(self, message: str, missing_fields: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.message = message
        self.missing_fields = list(missing_fields or [])


class WizardStateError(GharPaluwaError):
    """Raised for a transition the current step does not allow."""


class BookingNotFoundError(GharPaluwaError, LookupError):
    """Raised when a booking id is missing or unknown."""


class OrderNotFoundError(GharPaluwaError, LookupError):
    """Raised when the API has no such order."""


class StatusTransitionError(GharPaluwaError, ValueError):
    """Raised when a booking/order status change is not allowed."""


class RequestCancelledError(GharPaluwaError):
    """Raised when a request's scope was cancelled before it completed."""

    def __init__(self, message: str = ERROR_REQUEST_CANCELLED):
        super().__init__(message)


class ApiError(GharPaluwaError):
    """
    Error returned by (or while reaching) the remote API.

    Attributes:
        status_code: HTTP status, or None for transport failures
        message: human-readable text from the response body or a fallback
        missing_fields: field names reported by the server, if any
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        missing_fields: Optional[Sequence[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.missing_fields = list(missing_fields or [])

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (HTTP {self.status_code})"


class PaymentError(ApiError):
    """A payment step failed; `message` is the text to show on the payment page."""


class AuthenticationRequiredError(ApiError):
    """No logged-in user, or the API rejected the token (401)."""

    def __init__(self, message: str = ERROR_SESSION_EXPIRED, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code)
