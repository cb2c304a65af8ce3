"""TTL cache for tenant configuration rows.

Backed by the ``BaseKeyValueStore`` protocol so the same cache runs on Redis
in production (shared across instances, invalidations visible to all of them)
and on an in-process dict in tests or when Redis is down.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Protocol

from app.core.config import settings

logger = logging.getLogger(__name__)


class BaseKeyValueStore(Protocol):
    """Key-value storage interface used by the configuration cache."""

    def get(self, key: str) -> str | None:  # pragma: no cover - protocol stub
        ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None:  # pragma: no cover - protocol stub
        ...

    def delete(self, key: str) -> None:  # pragma: no cover - protocol stub
        ...

    def delete_prefix(self, prefix: str) -> int:  # pragma: no cover - protocol stub
        ...


class RedisStore(BaseKeyValueStore):
    """Redis-backed store using the shared connection pool."""

    def __init__(self) -> None:
        from app.db.redis_client import get_redis_client

        self._client = get_redis_client()

    def get(self, key: str) -> str | None:
        return self._client.get(key)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._client.setex(key, ttl_seconds, value)

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def delete_prefix(self, prefix: str) -> int:
        removed = 0
        for key in self._client.scan_iter(match=f"{prefix}*"):
            removed += self._client.delete(key)
        return removed


class InMemoryStore(BaseKeyValueStore):
    """Process-local store used for tests or when Redis is unavailable."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, float]] = {}

    def get(self, key: str) -> str | None:
        entry = self._data.get(key)
        if not entry:
            return None
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            self._data.pop(key, None)
            return None
        return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, time.monotonic() + ttl_seconds)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        keys = [k for k in self._data if k.startswith(prefix)]
        for key in keys:
            del self._data[key]
        return len(keys)

    def clear(self) -> None:
        self._data.clear()


class ConfigCache:
    """JSON values with a fixed TTL plus explicit invalidation.

    Store errors never propagate: a failing read is a miss and a failing
    write is skipped, so the caller falls back to the database.
    """

    def __init__(self, store: BaseKeyValueStore, ttl_seconds: int | None = None):
        self.store = store
        self.ttl_seconds = settings.GATEWAY_CONFIG_CACHE_TTL if ttl_seconds is None else ttl_seconds
        self.hits = 0
        self.misses = 0

    @staticmethod
    def gateway_key(company_id: str, gateway_name: str) -> str:
        return f"gateway:config:{company_id}:{gateway_name.lower()}"

    def get(self, key: str) -> dict[str, Any] | None:
        try:
            raw = self.store.get(key)
        except Exception as e:  # noqa: BLE001
            logger.warning("Config cache read error for %s: %s", key, e)
            return None
        if raw is None:
            self.misses += 1
            return None
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning("Discarding corrupt config cache entry %s", key)
            self.invalidate(key)
            return None
        self.hits += 1
        return value

    def set(self, key: str, value: dict[str, Any]) -> None:
        if self.ttl_seconds <= 0:
            return  # caching disabled
        try:
            self.store.set(key, json.dumps(value), self.ttl_seconds)
        except Exception as e:  # noqa: BLE001
            logger.warning("Config cache write error for %s: %s", key, e)

    def invalidate(self, key: str) -> None:
        try:
            self.store.delete(key)
            logger.debug("Invalidated config cache key %s", key)
        except Exception as e:  # noqa: BLE001
            logger.warning("Config cache invalidation error for %s: %s", key, e)

    def invalidate_prefix(self, prefix: str) -> int:
        try:
            return self.store.delete_prefix(prefix)
        except Exception as e:  # noqa: BLE001
            logger.warning("Config cache prefix invalidation error for %s: %s", prefix, e)
            return 0

    def stats(self) -> dict[str, int]:
        return {"hits": self.hits, "misses": self.misses}


_SHARED_STORE: BaseKeyValueStore | None = None


def build_store() -> BaseKeyValueStore:
    global _SHARED_STORE
    if _SHARED_STORE is not None:
        return _SHARED_STORE
    if settings.REDIS_URL and settings.ENV.lower() != "test":
        try:
            _SHARED_STORE = RedisStore()
            return _SHARED_STORE
        except Exception as exc:  # noqa: BLE001
            logger.warning("Falling back to in-memory config cache: %s", exc)
    _SHARED_STORE = InMemoryStore()
    return _SHARED_STORE


def get_config_cache() -> ConfigCache:
    """FastAPI dependency / factory returning a cache over the shared store."""
    return ConfigCache(build_store())
