"""Orders: checkout from the cart, payment and order management."""
from .checkout import CheckoutFlow, CheckoutStep
from .manager import OrderManager, filter_orders
from .payment import PaymentFlow, PaymentMethod, PaymentReceipt

__all__ = [
    "CheckoutFlow",
    "CheckoutStep",
    "OrderManager",
    "PaymentFlow",
    "PaymentMethod",
    "PaymentReceipt",
    "filter_orders",
]
