"""Cart models with Decimal-based pricing."""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Mapping, Optional

from gharpaluwa.config import MAX_ITEM_QUANTITY
from gharpaluwa.errors import (
    ERROR_ITEM_PRICE_INVALID,
    ERROR_ITEM_QUANTITY_INVALID,
    InvalidCartItemError,
    MissingItemIdError,
)
from gharpaluwa.services.money import multiply, parse_money, round_money, to_float

# Fields CartItem owns; everything else on a product is carried in `extra`
_OWN_FIELDS = ("id", "_id", "name", "price", "image", "quantity")


def resolve_item_id(item: Any) -> Optional[str]:
    """
    Resolve the cart id of a product: `id` first, then `_id`.

    Numeric ids are coerced to strings. Returns None when neither is set.
    """
    if isinstance(item, CartItem):
        return item.id
    if not isinstance(item, Mapping):
        return None
    for key in ("id", "_id"):
        value = item.get(key)
        if value is not None and value != "":
            return str(value)
    return None


def validate_quantity(quantity: Any) -> int:
    """Return quantity as int, or raise InvalidCartItemError if not >= 1."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidCartItemError(f"{ERROR_ITEM_QUANTITY_INVALID}: {quantity!r}")
    return quantity


def clamp_quantity_selection(current: int, step: int) -> int:
    """
    Product page quantity selector: move by `step`, staying within
    1..MAX_ITEM_QUANTITY. The cart itself does not enforce the upper bound.
    """
    return max(1, min(MAX_ITEM_QUANTITY, current + step))


@dataclass(frozen=True)
class CartItem:
    """Single line item in the cart."""
    id: str
    name: str
    price: Decimal
    quantity: int = 1
    image: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def line_total(self) -> Decimal:
        """price x quantity for this line."""
        return multiply(self.price, self.quantity)

    def with_quantity(self, quantity: int) -> "CartItem":
        """Copy of this item with a new quantity."""
        return replace(self, quantity=quantity)

    def to_dict(self) -> dict:
        """
        Serialize for the persisted snapshot.

        Both `id` and `_id` are written so snapshots stay readable by
        consumers that look up either field.
        """
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "_id": self.id,
            "name": self.name,
            "price": to_float(self.price),
            "image": self.image,
            "quantity": self.quantity,
        })
        return data

    @classmethod
    def from_product(cls, product: Mapping[str, Any], quantity: int = 1) -> "CartItem":
        """
        Build a line item from a product record.

        Raises:
            MissingItemIdError: product has neither `id` nor `_id`
            InvalidCartItemError: bad price or quantity
        """
        item_id = resolve_item_id(product)
        if item_id is None:
            raise MissingItemIdError()

        raw_price = product.get("price")
        try:
            price = parse_money(raw_price)
        except ValueError:
            raise InvalidCartItemError(f"{ERROR_ITEM_PRICE_INVALID}: {raw_price!r}") from None
        if price < 0:
            raise InvalidCartItemError(f"{ERROR_ITEM_PRICE_INVALID}: {raw_price!r}")

        return cls(
            id=item_id,
            name=str(product.get("name") or ""),
            price=price,
            quantity=validate_quantity(quantity),
            image=product.get("image"),
            extra={k: v for k, v in product.items() if k not in _OWN_FIELDS},
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CartItem":
        """Create from a persisted snapshot entry (quantity read from the entry)."""
        return cls.from_product(data, quantity=data.get("quantity", 1))


def summarize_items(items) -> dict:
    """Cart page view model: rows with line totals plus counts and total."""
    rows = []
    total = Decimal("0")
    total_quantity = 0
    for item in items:
        line_total = item.line_total
        total += line_total
        total_quantity += item.quantity
        rows.append({
            "id": item.id,
            "name": item.name,
            "image": item.image,
            "price": round_money(item.price),
            "quantity": item.quantity,
            "line_total": round_money(line_total),
        })
    return {
        "is_empty": not rows,
        "items": rows,
        "item_count": len(rows),
        "total_quantity": total_quantity,
        "total": round_money(total),
    }
