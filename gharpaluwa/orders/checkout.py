"""
Checkout flow: turns the cart into an order.

    CONTACT -> ADDRESS -> REVIEW -> PLACED

The cart is cleared only after the API accepted the order.
"""

from enum import IntEnum
from typing import Any, Mapping, Optional

from gharpaluwa.cart import CartStore
from gharpaluwa.errors import (
    ERROR_ADDRESS_REQUIRED,
    ERROR_CART_EMPTY,
    ERROR_CONTACT_REQUIRED,
    ERROR_EMAIL_UNAVAILABLE,
    ERROR_FIELDS_REQUIRED,
    ERROR_INVALID_ORDER_PHONE,
    ERROR_LOGIN_REQUIRED_ORDER,
    ERROR_ORDER_TOTAL_ZERO,
    AuthenticationRequiredError,
    CartStorageError,
    FormValidationError,
    WizardStateError,
)
from gharpaluwa.logging import get_logger, sanitize_id_for_logging
from gharpaluwa.models import OrderCreate, OrderCustomer, OrderLine
from gharpaluwa.services.api_client import GharPaluwaClient, record_id
from gharpaluwa.services.money import round_money, to_float
from gharpaluwa.services.scope import RequestScope
from gharpaluwa.utils.validators import is_valid_order_phone, missing_fields, resolve_user_email

logger = get_logger(__name__)


class CheckoutStep(IntEnum):
    CONTACT = 1
    ADDRESS = 2
    REVIEW = 3
    PLACED = 4


class CheckoutFlow:
    """Multi-step checkout over a CartStore."""

    def __init__(self, cart: CartStore, client: GharPaluwaClient, user: Optional[Mapping[str, Any]]):
        if not user:
            raise AuthenticationRequiredError(ERROR_LOGIN_REQUIRED_ORDER)

        self.cart = cart
        self.client = client
        self.user_email = resolve_user_email(user)

        self.name = user.get("displayName") or ""
        self.phone_number = ""
        self.city = ""
        self.colony = ""
        self.order_notes = ""

        self.step = CheckoutStep.CONTACT
        self.is_submitting = False
        self._scope = RequestScope("checkout")

    def _ensure_editable(self) -> None:
        if self.step == CheckoutStep.PLACED:
            raise WizardStateError("Order already placed")
        if self.is_submitting:
            raise WizardStateError("Order is being placed")

    def set_contact(self, name: str, phone_number: str) -> None:
        self._ensure_editable()
        self.name = name
        self.phone_number = phone_number

    def set_address(self, city: str, colony: str, order_notes: str = "") -> None:
        self._ensure_editable()
        self.city = city
        self.colony = colony
        self.order_notes = order_notes

    def validate_step(self, step: Optional[CheckoutStep] = None) -> None:
        """
        Raises:
            FormValidationError: missing contact/address fields or bad phone
        """
        step = step or self.step
        if step == CheckoutStep.CONTACT:
            missing = missing_fields([("Name", self.name), ("Phone Number", self.phone_number)])
            if missing:
                raise FormValidationError(ERROR_CONTACT_REQUIRED, missing)
            if not is_valid_order_phone(self.phone_number):
                raise FormValidationError(ERROR_INVALID_ORDER_PHONE, ["Phone Number"])
        elif step == CheckoutStep.ADDRESS:
            missing = missing_fields([("City", self.city), ("Colony", self.colony)])
            if missing:
                raise FormValidationError(ERROR_ADDRESS_REQUIRED, missing)

    def next_step(self) -> CheckoutStep:
        if self.step >= CheckoutStep.REVIEW:
            raise WizardStateError("Last step: place the order instead")
        self.validate_step()
        self.step = CheckoutStep(self.step + 1)
        return self.step

    def previous_step(self) -> CheckoutStep:
        if self.step not in (CheckoutStep.ADDRESS, CheckoutStep.REVIEW):
            raise WizardStateError("Already on the first step")
        self.step = CheckoutStep(self.step - 1)
        return self.step

    def build_order(self) -> OrderCreate:
        """
        Compose the order from the current cart snapshot.

        Raises:
            AuthenticationRequiredError: no e-mail for the user
            FormValidationError: empty cart, zero total, missing fields or bad phone
        """
        if not self.user_email:
            raise AuthenticationRequiredError(ERROR_EMAIL_UNAVAILABLE)

        items = self.cart.items
        if not items:
            raise FormValidationError(ERROR_CART_EMPTY)

        total = round_money(sum((item.line_total for item in items), 0))
        if total == 0:
            raise FormValidationError(ERROR_ORDER_TOTAL_ZERO)

        missing = missing_fields([
            ("Name", self.name),
            ("Phone Number", self.phone_number),
            ("City", self.city),
            ("Colony", self.colony),
        ])
        if missing:
            raise FormValidationError(f"{ERROR_FIELDS_REQUIRED}: {', '.join(missing)}", missing)
        if not is_valid_order_phone(self.phone_number):
            raise FormValidationError(ERROR_INVALID_ORDER_PHONE, ["Phone Number"])

        return OrderCreate(
            customer=OrderCustomer(
                name=self.name,
                phone_number=self.phone_number,
                city=self.city,
                colony=self.colony,
                order_notes=self.order_notes,
            ),
            products=[
                OrderLine(
                    name=item.name,
                    quantity=item.quantity,
                    price=to_float(item.price),
                    product_id=item.id,
                )
                for item in items
            ],
            total=to_float(total),
            total_amount=to_float(total),
            user_email=self.user_email,
        )

    async def submit(self) -> dict:
        """
        Place the order and clear the cart.

        Raises:
            WizardStateError: not on REVIEW, or an order is already being placed
            ApiError: server refused (see `missing_fields`) or unreachable; cart kept
            RequestCancelledError: checkout was closed while waiting; cart kept
        """
        if self.step != CheckoutStep.REVIEW:
            raise WizardStateError("Review the order before placing it")
        if self.is_submitting:
            raise WizardStateError("Order is already being placed")

        payload = self.build_order().to_payload()

        self.is_submitting = True
        try:
            order = await self._scope.run(self.client.create_order(payload))
        except Exception as e:
            logger.error(f"Error placing order: {e}")
            raise
        finally:
            self.is_submitting = False

        self.step = CheckoutStep.PLACED
        order_ref = sanitize_id_for_logging(record_id(order))
        logger.info(f"Order placed: {order_ref}")

        # From here on the order exists server-side
        try:
            self.cart.clear()
        except CartStorageError:
            logger.warning(f"Order {order_ref} placed but the emptied cart could not be saved")
        return order

    def close(self) -> None:
        """Leave checkout: cancel a pending order request."""
        self._scope.cancel()
        self.is_submitting = False
