"""Cart package: models, storage backends, and the cart store."""
from .models import CartItem, clamp_quantity_selection, resolve_item_id
from .service import CartStore
from .storage import JsonFileStorage, KeyValueStorage, MemoryStorage, RedisStorage, storage_from_env

__all__ = [
    "CartItem",
    "CartStore",
    "KeyValueStorage",
    "MemoryStorage",
    "JsonFileStorage",
    "RedisStorage",
    "clamp_quantity_selection",
    "resolve_item_id",
    "storage_from_env",
]
