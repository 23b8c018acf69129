"""
Key-value persistence for the cart snapshot.

Every backend stores raw strings under a key; the cart store owns the JSON
encoding. Backends:
- MemoryStorage: process-local dict (tests, throwaway sessions)
- JsonFileStorage: one file per key in a directory (per-profile storage)
- RedisStorage: Upstash Redis, optional TTL for abandoned carts
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from gharpaluwa import config
from gharpaluwa.errors import CartStorageError
from gharpaluwa.logging import get_logger

logger = get_logger(__name__)

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStorage(Protocol):
    """Minimal string slot interface the cart store depends on."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStorage:
    """In-process storage; contents vanish with the process."""

    def __init__(self, initial: Optional[dict] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """
    File-per-key storage under a directory.

    Writes go to a temp file in the same directory and are renamed over the
    target, so a crash mid-write never leaves a truncated snapshot.
    """

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_SAFE_KEY.sub('_', key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CartStorageError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CartStorageError(f"Failed to write {path}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise CartStorageError(f"Failed to delete {path}: {e}") from e


class RedisStorage:
    """
    Upstash Redis storage.

    Keys are namespaced with `prefix`; `ttl` (seconds) expires abandoned
    carts, None keeps them indefinitely.
    """

    def __init__(self, client=None, prefix: str = config.REDIS_KEY_PREFIX, ttl: Optional[int] = None):
        self._client = client  # Lazy initialization
        self.prefix = prefix
        self.ttl = ttl

    @property
    def client(self):
        """Get Redis client (lazy initialization)."""
        if self._client is None:
            if not config.UPSTASH_REDIS_REST_URL or not config.UPSTASH_REDIS_REST_TOKEN:
                raise CartStorageError(
                    "UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set"
                )
            from upstash_redis import Redis

            self._client = Redis(
                url=config.UPSTASH_REDIS_REST_URL,
                token=config.UPSTASH_REDIS_REST_TOKEN,
            )
        return self._client

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(self._key(key))
        except CartStorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to read cart from Redis: {e}")
            raise CartStorageError(f"Redis read failed: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            if self.ttl:
                self.client.set(self._key(key), value, ex=self.ttl)
            else:
                self.client.set(self._key(key), value)
        except CartStorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to save cart to Redis: {e}")
            raise CartStorageError(f"Redis write failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except CartStorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to clear cart from Redis: {e}")
            raise CartStorageError(f"Redis delete failed: {e}") from e


def storage_from_env(backend: Optional[str] = None) -> KeyValueStorage:
    """
    Build the storage backend named by CART_STORAGE_BACKEND.

    Raises:
        ValueError: unknown backend name
    """
    backend = (backend or config.CART_STORAGE_BACKEND).lower()
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return JsonFileStorage(config.CART_STORAGE_DIR)
    if backend == "redis":
        return RedisStorage(ttl=config.CART_TTL_SECONDS)
    raise ValueError(f"Unknown cart storage backend: {backend}")
