"""
Money Utilities - Safe Decimal operations for monetary values.

Avoids float precision issues by using Decimal throughout; floats only
appear at the JSON boundary (to_float).
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

Number = Union[str, int, float, Decimal]

MONEY_PRECISION = Decimal("0.01")

CURRENCY_SYMBOLS = {
    "USD": "$",
    "NPR": "Rs.",
}


def to_decimal(value: Union[Number, None]) -> Decimal:
    """
    Convert any value to Decimal safely.

    Returns Decimal("0") for None or unparseable input.
    """
    if value is None:
        return Decimal("0")
    try:
        return parse_money(value)
    except ValueError:
        return Decimal("0")


def parse_money(value: Number) -> Decimal:
    """
    Strict conversion used where a bad amount must be reported.

    Raises:
        ValueError: for booleans, non-numeric strings, NaN and infinities
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            # Via str() so 0.1 stays 0.1
            result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        except (InvalidOperation, ValueError, TypeError):
            raise ValueError(f"Not a monetary amount: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return result


def round_money(value: Number) -> Decimal:
    """Round to 2 decimal places (half up)."""
    return to_decimal(value).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def multiply(value: Number, factor: Number) -> Decimal:
    """Safe multiplication of monetary value by a factor."""
    return to_decimal(value) * to_decimal(factor)


def to_float(value: Number) -> float:
    """
    Convert to float for JSON serialization.

    Use only at API/storage boundaries, not for internal calculations.
    """
    return float(to_decimal(value))


def format_money(value: Number, currency: str = "USD") -> str:
    """Format with currency symbol, e.g. "$12.50" or "Rs. 1,200.00"."""
    formatted = f"{round_money(value):,.2f}"
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    if currency == "USD":
        return f"{symbol}{formatted}"
    return f"{symbol} {formatted}"
