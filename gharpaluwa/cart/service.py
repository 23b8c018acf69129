"""Cart store: in-memory line items with write-through persistence."""
import json
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, Tuple, Union

from gharpaluwa.config import CART_STORAGE_KEY
from gharpaluwa.errors import CartStorageError, MissingItemIdError
from gharpaluwa.logging import get_logger, sanitize_id_for_logging

from .models import CartItem, resolve_item_id, summarize_items, validate_quantity
from .storage import KeyValueStorage

logger = get_logger(__name__)

Listener = Callable[[Tuple[CartItem, ...]], None]
ItemLike = Union[CartItem, Mapping[str, Any]]


class CartStore:
    """
    Client-side shopping cart.

    Features:
    - Ordered line items, unique by id (insertion order kept)
    - Every mutation swaps in a new tuple, so readers never see a half-applied change
    - Write-through persistence of the whole snapshot after each mutation
    - Subscribers are called with the new snapshot (header badge, cart page, ...)

    Construct one per session and pass it to the flows that need it.
    """

    def __init__(self, storage: KeyValueStorage, key: str = CART_STORAGE_KEY):
        self._storage = storage
        self._key = key
        self._listeners: list[Listener] = []
        self._items: Tuple[CartItem, ...] = self._load()

    # ---- persistence ----

    def _load(self) -> Tuple[CartItem, ...]:
        """Rehydrate from storage; a corrupt snapshot is dropped with a warning."""
        raw = self._storage.get(self._key)
        if not raw:
            return ()

        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise TypeError(f"expected a list, got {type(data).__name__}")
            items = tuple(CartItem.from_dict(entry) for entry in data)
        except (json.JSONDecodeError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Corrupted cart snapshot under '{self._key}', starting empty: {e}")
            self._storage.delete(self._key)
            return ()

        ids = [item.id for item in items]
        if len(set(ids)) != len(ids):
            logger.warning(f"Duplicate ids in cart snapshot under '{self._key}', merging")
            merged: dict[str, CartItem] = {}
            for item in items:
                if item.id in merged:
                    merged[item.id] = merged[item.id].with_quantity(merged[item.id].quantity + item.quantity)
                else:
                    merged[item.id] = item
            items = tuple(merged.values())

        return items

    def _commit(self, items: Tuple[CartItem, ...]) -> None:
        """Swap in the new snapshot, persist it, notify listeners."""
        self._items = items
        snapshot = self._items

        try:
            self._storage.set(self._key, json.dumps([item.to_dict() for item in snapshot]))
            logger.debug(f"Cart saved: {len(snapshot)} item(s)")
        except CartStorageError:
            logger.error("Failed to save cart to storage", exc_info=True)
            raise
        finally:
            # Listeners follow the in-memory state even when the write failed
            self._notify(snapshot)

    def _notify(self, snapshot: Tuple[CartItem, ...]) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Cart listener failed")

    # ---- reads ----

    @property
    def items(self) -> Tuple[CartItem, ...]:
        """Current snapshot (immutable)."""
        return self._items

    @property
    def total(self) -> Decimal:
        """Sum of price x quantity, recomputed on every read."""
        return sum((item.line_total for item in self._items), Decimal("0"))

    @property
    def item_count(self) -> int:
        """Number of distinct lines (header badge)."""
        return len(self._items)

    @property
    def total_quantity(self) -> int:
        """Sum of quantities across lines."""
        return sum(item.quantity for item in self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def get_item(self, item_id: Any) -> Optional[CartItem]:
        item_id = str(item_id)
        return next((item for item in self._items if item.id == item_id), None)

    def summary(self) -> dict:
        """Cart page view: rows with line totals, counts and total."""
        return summarize_items(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    # ---- subscriptions ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- mutations ----

    def add_item(self, item: ItemLike, quantity: int = 1) -> CartItem:
        """
        Add `quantity` units of a product.

        An existing line with the same id has its quantity increased;
        otherwise a new line is appended. No upper bound is applied.

        Raises:
            MissingItemIdError: product has neither `id` nor `_id`
            InvalidCartItemError: bad price or quantity
        """
        quantity = validate_quantity(quantity)
        item_id = resolve_item_id(item)
        if item_id is None:
            logger.error(f"Cannot add item without ID to cart: {sorted(item) if isinstance(item, Mapping) else item!r}")
            raise MissingItemIdError()

        existing = self.get_item(item_id)
        if existing is not None:
            updated = existing.with_quantity(existing.quantity + quantity)
            items = tuple(updated if i.id == item_id else i for i in self._items)
        else:
            if isinstance(item, CartItem):
                updated = item.with_quantity(quantity)
            else:
                updated = CartItem.from_product(item, quantity=quantity)
            items = self._items + (updated,)

        logger.info(f"Adding to cart: id={sanitize_id_for_logging(item_id)} qty={quantity}")
        self._commit(items)
        return updated

    def subtract_item(self, item_id: Any) -> None:
        """Decrease quantity by one; the line is removed when it reaches zero."""
        existing = self.get_item(item_id)
        if existing is None:
            return

        if existing.quantity <= 1:
            items = tuple(i for i in self._items if i.id != existing.id)
        else:
            items = tuple(
                i.with_quantity(i.quantity - 1) if i.id == existing.id else i
                for i in self._items
            )
        self._commit(items)

    def remove_item(self, item_id: Any) -> None:
        """Remove a line regardless of its quantity."""
        item_id = str(item_id)
        if self.get_item(item_id) is None:
            return
        self._commit(tuple(i for i in self._items if i.id != item_id))

    def update_quantity(self, item_id: Any, quantity: int) -> None:
        """
        Set a line's quantity to max(0, quantity); zero removes the line.
        Unknown ids are ignored.
        """
        item_id = str(item_id)
        if self.get_item(item_id) is None:
            return

        quantity = max(0, int(quantity))
        if quantity == 0:
            items = tuple(i for i in self._items if i.id != item_id)
        else:
            items = tuple(i.with_quantity(quantity) if i.id == item_id else i for i in self._items)
        self._commit(items)

    def clear(self) -> None:
        """Empty the cart (after checkout or on request)."""
        self._commit(())
        logger.info("Cart cleared")

