"""
Runtime configuration read from the environment.

Values are read once at import time; tests override them by passing
explicit arguments to the classes that use them.
"""

import os
from pathlib import Path
from typing import Optional


def _get_float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_optional_int_env(name: str) -> Optional[int]:
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


# Remote API
API_URL = os.environ.get("GHARPALUWA_API_URL", "http://localhost:4001").rstrip("/")
API_TIMEOUT = _get_float_env("GHARPALUWA_API_TIMEOUT", 10.0)

# Cart persistence
CART_STORAGE_KEY = "cart"
CART_STORAGE_BACKEND = os.environ.get("CART_STORAGE_BACKEND", "file").lower()  # memory | file | redis
CART_STORAGE_DIR = Path(os.environ.get("CART_STORAGE_DIR", str(Path.home() / ".gharpaluwa")))
CART_TTL_SECONDS = _get_optional_int_env("CART_TTL_SECONDS")

# Upstash Redis (only for CART_STORAGE_BACKEND=redis)
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")
REDIS_KEY_PREFIX = os.environ.get("CART_REDIS_PREFIX", "gharpaluwa:")

# Payments (Khalti). The secret key lives on the API server only.
KHALTI_PUBLIC_KEY = os.environ.get("KHALTI_PUBLIC_KEY", "").strip()
SITE_URL = os.environ.get("GHARPALUWA_SITE_URL", "http://localhost:5173").rstrip("/")

# Quantity selector offered by the product pages (not enforced by the cart)
MAX_ITEM_QUANTITY = 5

# Vaccinations
DEFAULT_VACCINATION_CENTER = os.environ.get("DEFAULT_VACCINATION_CENTER", "Main Center")
