"""
Key-value storage for cart state and checkout metadata.

Guest carts, line notes, saved-for-later items and the selected reward are
small JSON documents keyed by owner. Services take a ``KeyValueStore`` so the
same code runs against process memory (tests, guests) or Redis (signed-in
users, multiple workers).
"""

from abc import ABC, abstractmethod
from copy import deepcopy
from decimal import Decimal
from typing import Any, Dict, Optional
import json
import logging

import redis
from redis import Redis

from core.config import settings

logger = logging.getLogger(__name__)


def _json_default(value):
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class KeyValueStore(ABC):
    """Minimal get/set/delete contract over JSON-serializable values"""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store. Values are copied in and out like a real backend."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return deepcopy(default)
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, default=_json_default)

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store for server-side carts"""

    def __init__(self, client: Redis, ttl_seconds: Optional[int] = None):
        self.client = client
        self.ttl_seconds = ttl_seconds

    def get(self, key: str, default: Any = None) -> Any:
        raw = self.client.get(key)
        if raw is None:
            return deepcopy(default)
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.error(f"Discarding unreadable value stored at {key}")
            return deepcopy(default)

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, default=_json_default)
        if self.ttl_seconds:
            self.client.setex(key, self.ttl_seconds, payload)
        else:
            self.client.set(key, payload)

    def delete(self, key: str) -> bool:
        return bool(self.client.delete(key))


_default_store: Optional[KeyValueStore] = None


def get_key_value_store() -> KeyValueStore:
    """
    Store selected by ``CART_STORAGE_BACKEND``.

    When Redis is selected but unreachable the error surfaces here instead of
    silently falling back, since a per-process cart would lose data between
    workers.
    """
    global _default_store

    if _default_store is not None:
        return _default_store

    if settings.CART_STORAGE_BACKEND == "redis":
        from core.redis_config import get_redis_client

        client = get_redis_client()
        if client is None:
            raise redis.ConnectionError("Redis cart storage is configured but unavailable")
        _default_store = RedisKeyValueStore(client)
    else:
        _default_store = InMemoryKeyValueStore()

    logger.info(f"Using {type(_default_store).__name__} for cart storage")
    return _default_store
