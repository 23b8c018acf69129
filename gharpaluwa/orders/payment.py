"""
Payment step after checkout: Cash on Delivery or Khalti.

Cash on Delivery is a single update of the order's payment fields. Khalti
is a redirect: the API server starts the payment with its secret key and
hands back Khalti's `payment_url`; when Khalti sends the customer back to
the payment page, its query parameters are verified through the API server.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Union
from urllib.parse import quote

from gharpaluwa import config
from gharpaluwa.errors import (
    ERROR_COD_FAILED,
    ERROR_KHALTI_INITIATE_FAILED,
    ERROR_KHALTI_UNAVAILABLE,
    ERROR_ORDER_ID_MISSING,
    ERROR_ORDER_INFO_MISSING,
    ERROR_ORDER_LOAD_FAILED,
    ERROR_ORDER_TOTAL_MISSING,
    ERROR_PAYMENT_AUTH,
    ERROR_PAYMENT_UNAVAILABLE,
    ERROR_PAYMENT_VERIFICATION_FAILED,
    ERROR_UNKNOWN,
    ERROR_VERIFICATION_FAILED,
    ApiError,
    AuthenticationRequiredError,
    FormValidationError,
    PaymentError,
    WizardStateError,
)
from gharpaluwa.logging import get_logger, sanitize_id_for_logging
from gharpaluwa.services.api_client import GharPaluwaClient, record_id
from gharpaluwa.services.money import Number, to_decimal
from gharpaluwa.services.scope import RequestScope
from gharpaluwa.utils.validators import missing_fields

logger = get_logger(__name__)

KHALTI_MIN_AMOUNT_PAISA = 100  # Rs. 1
KHALTI_ORDER_NAME = "Order Payment"


class PaymentMethod(str, Enum):
    KHALTI = "khalti"
    COD = "cod"


def khalti_amount_in_paisa(total: Union[Number, None]) -> int:
    """Order total in rupees as whole paisa (half up), never below Rs. 1."""
    paisa = (to_decimal(total) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(KHALTI_MIN_AMOUNT_PAISA, int(paisa))


def _server_message(error: ApiError) -> Optional[str]:
    """The API's own error text, when the response carried one."""
    if error.status_code is None or error.message == ERROR_UNKNOWN:
        return None
    return error.message


def _cod_error(error: ApiError) -> ApiError:
    if error.status_code == 404:
        return PaymentError(ERROR_PAYMENT_UNAVAILABLE, status_code=404)
    if error.status_code in (401, 403):
        return AuthenticationRequiredError(ERROR_PAYMENT_AUTH, status_code=error.status_code)
    return PaymentError(_server_message(error) or ERROR_COD_FAILED, status_code=error.status_code)


@dataclass
class PaymentReceipt:
    """What the payment success page shows."""
    method: PaymentMethod
    order: dict
    items: list = field(default_factory=list)
    details: Optional[dict] = None


class PaymentFlow:
    """Payment page for one order; cancel pending requests via `close()`."""

    def __init__(
        self,
        client: GharPaluwaClient,
        order: Optional[Mapping[str, Any]] = None,
        method: Union[PaymentMethod, str] = PaymentMethod.KHALTI,
        khalti_public_key: Optional[str] = None,
        site_url: Optional[str] = None,
    ):
        self.client = client
        self.order: dict = dict(order) if order else {}
        self.items: list = list(self.order.get("products") or [])
        self.method = PaymentMethod(method)

        # Khalti settings (explicit values win over the environment)
        self.khalti_public_key = config.KHALTI_PUBLIC_KEY if khalti_public_key is None else khalti_public_key
        self.site_url = config.SITE_URL if site_url is None else site_url

        self.is_processing = False
        self._scope = RequestScope("payment")

    @classmethod
    async def for_latest_order(cls, client: GharPaluwaClient, **kwargs: Any) -> "PaymentFlow":
        """Open the payment page without an order handed over from checkout."""
        flow = cls(client, **kwargs)
        await flow.load_latest_order()
        return flow

    @property
    def order_id(self) -> Optional[str]:
        return record_id(self.order)

    @property
    def khalti_available(self) -> bool:
        return bool(self.khalti_public_key)

    def _validate_khalti_config(self) -> str:
        """Validate Khalti settings; returns the site URL Khalti redirects back to."""
        if not self.khalti_public_key:
            raise ValueError(ERROR_KHALTI_UNAVAILABLE)
        site_url = (self.site_url or "").rstrip("/")
        if not site_url:
            raise ValueError("Site URL (GHARPALUWA_SITE_URL) is not configured")
        return site_url

    def _start(self) -> None:
        if self.is_processing:
            raise WizardStateError("Payment is already being processed")
        self.is_processing = True

    def select_method(self, method: Union[PaymentMethod, str]) -> PaymentMethod:
        if self.is_processing:
            raise WizardStateError("Payment is already being processed")
        self.method = PaymentMethod(method)
        return self.method

    async def load_latest_order(self) -> dict:
        """
        Fetch the customer's latest order, plus its items when the record
        has no `products`.

        Raises:
            PaymentError: the order could not be loaded
        """
        try:
            order = await self._scope.run(self.client.get_latest_order())
        except AuthenticationRequiredError:
            raise
        except ApiError as e:
            logger.error(f"Order fetch error: {e}")
            raise PaymentError(_server_message(e) or ERROR_ORDER_LOAD_FAILED, status_code=e.status_code) from e

        if not isinstance(order, dict) or not order:
            raise PaymentError(ERROR_ORDER_LOAD_FAILED)

        self.order = order
        self.items = list(order.get("products") or [])
        if not self.items and self.order_id:
            self.items = await self._load_items(self.order_id)
        return order

    async def _load_items(self, order_id: str) -> list:
        """Item list for the summary panel (best-effort)."""
        try:
            items = await self._scope.run(self.client.list_order_items(order_id))
        except ApiError as e:
            logger.warning(f"Items for order {sanitize_id_for_logging(order_id)} unavailable: {e}")
            return []
        return list(items) if isinstance(items, list) else []

    async def process(self, **khalti_options: Any) -> Union[dict, PaymentReceipt]:
        """Run the selected method: Khalti initiation or Cash on Delivery."""
        if self.method == PaymentMethod.KHALTI:
            return await self.initiate_khalti(**khalti_options)
        return await self.confirm_cash_on_delivery()

    async def confirm_cash_on_delivery(self) -> PaymentReceipt:
        """
        Mark the order as Cash on Delivery.

        PUT /api/orders/{id}/payment first; when the server has no such
        route (404) the same fields go through PUT /api/orders/{id}.

        Raises:
            FormValidationError: no order loaded
            AuthenticationRequiredError: 401 or 403
            PaymentError: anything else, with the text to show
        """
        order_id = self.order_id
        if not order_id:
            raise FormValidationError(ERROR_ORDER_INFO_MISSING, ["_id"])

        order_ref = sanitize_id_for_logging(order_id)
        changes = {"paymentMethod": PaymentMethod.COD.value, "paymentStatus": "pending"}

        self._start()
        try:
            try:
                result = await self._scope.run(self.client.update_order_payment(order_id, changes))
            except ApiError as e:
                if e.status_code != 404:
                    raise
                logger.info(f"No payment endpoint for order {order_ref}, updating the order instead")
                result = await self._scope.run(
                    self.client.update_order(order_id, {**changes, "_id": order_id})
                )
        except ApiError as e:
            logger.exception(f"Cash on Delivery failed for order {order_ref}")
            raise _cod_error(e) from e
        finally:
            self.is_processing = False

        self.method = PaymentMethod.COD
        order = result if isinstance(result, dict) and result else {**self.order, **changes}
        logger.info(f"Cash on Delivery confirmed for order {order_ref}")
        return PaymentReceipt(method=PaymentMethod.COD, order=order, items=self.items)

    def _customer_info(self) -> Optional[dict]:
        customer = self.order.get("customer") or {}
        info = {
            "name": customer.get("name"),
            "email": self.order.get("userEmail"),
            "phone": customer.get("phoneNumber"),
        }
        info = {key: value for key, value in info.items() if value}
        return info or None

    async def initiate_khalti(
        self,
        return_url: Optional[str] = None,
        customer_info: Optional[Mapping[str, Any]] = None,
    ) -> dict:
        """
        Start a Khalti payment for the order.

        Returns:
            The server's answer; send the customer to its `payment_url`

        Raises:
            ValueError: Khalti is not configured
            FormValidationError: the order has no total or no id
            PaymentError: the server could not start the payment
        """
        site_url = self._validate_khalti_config()

        total = self.order.get("total")
        if to_decimal(total) <= 0:
            raise FormValidationError(ERROR_ORDER_TOTAL_MISSING, ["total"])
        order_id = self.order_id
        if not order_id:
            raise FormValidationError(ERROR_ORDER_ID_MISSING, ["_id"])

        payload = {
            "purchase_order_id": order_id,
            "purchase_order_name": KHALTI_ORDER_NAME,
            "amount": khalti_amount_in_paisa(total),
            "return_url": return_url or f"{site_url}/payment?order_id={quote(order_id, safe='')}",
        }
        info = dict(customer_info) if customer_info is not None else self._customer_info()
        if info:
            payload["customer_info"] = info

        order_ref = sanitize_id_for_logging(order_id)
        logger.info(f"Khalti payment for order {order_ref}: amount={payload['amount']} paisa")

        self._start()
        try:
            result = await self._scope.run(self.client.initiate_khalti_payment(payload))
        except AuthenticationRequiredError:
            raise
        except ApiError as e:
            logger.exception(f"Khalti initiation failed for order {order_ref}")
            raise PaymentError(
                _server_message(e) or ERROR_KHALTI_INITIATE_FAILED, status_code=e.status_code
            ) from e
        finally:
            self.is_processing = False

        if not isinstance(result, dict) or not result.get("payment_url"):
            logger.error(f"Khalti initiation for order {order_ref} returned no payment URL")
            raise PaymentError(ERROR_KHALTI_INITIATE_FAILED)

        self.method = PaymentMethod.KHALTI
        return result

    async def verify_khalti_return(
        self,
        pidx: str,
        status: str,
        txn_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> PaymentReceipt:
        """
        Verify the query parameters Khalti redirected back with.

        On failure the page stays on the payment step; callers usually
        reload the order with `load_latest_order()` so the customer can retry.

        Raises:
            FormValidationError: `pidx` or `status` missing
            PaymentError: the server did not confirm the payment
        """
        missing = missing_fields([("pidx", pidx), ("status", status)])
        if missing:
            raise FormValidationError(ERROR_PAYMENT_VERIFICATION_FAILED, missing)

        params = {
            "pidx": pidx,
            "txnId": txn_id,
            "status": status,
            "order_id": order_id or self.order_id,
        }
        pidx_ref = sanitize_id_for_logging(pidx)

        self._start()
        try:
            data = await self._scope.run(self.client.verify_khalti_return(params))
        except AuthenticationRequiredError:
            raise
        except ApiError as e:
            logger.exception(f"Khalti return verification failed for pidx {pidx_ref}")
            raise PaymentError(_server_message(e) or ERROR_VERIFICATION_FAILED, status_code=e.status_code) from e
        finally:
            self.is_processing = False

        if not isinstance(data, dict) or not data.get("success"):
            message = data.get("message") if isinstance(data, dict) else None
            logger.warning(f"Khalti payment {pidx_ref} not confirmed: {message}")
            raise PaymentError(message or ERROR_PAYMENT_VERIFICATION_FAILED)

        self.method = PaymentMethod.KHALTI
        order = data.get("orderDetails") or self.order
        items = data.get("orderItems") or self.items
        logger.info(f"Khalti payment {pidx_ref} verified for order {sanitize_id_for_logging(record_id(order))}")
        return PaymentReceipt(
            method=PaymentMethod.KHALTI, order=order, items=list(items), details=data.get("data")
        )

    def close(self) -> None:
        """Leave the payment page: cancel pending requests."""
        self._scope.cancel()
        self.is_processing = False
