"""
Fast-tier Cache Backends

Two interchangeable backends behind the CacheBackend protocol:

    MemoryCacheBackend → In-process LRU dict guarded by a lock
    RedisCacheBackend  → Shared Redis instance (JSON payloads, SETEX)

Both store absolute expiry timestamps and report an expired entry as a
miss. Keys never contain dictation text; they are built from codes,
categories and extracted keywords only.

Author: Shubham Singh
Date: December 2025
"""

import json
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Optional, Protocol, runtime_checkable

import redis
from loguru import logger

from clinical_validation.core.exceptions import KnowledgeLookupFailure
from clinical_validation.core.models import CacheEntry


# =============================================================================
# STAGE 1: CACHE BACKEND PROTOCOL
# =============================================================================


@runtime_checkable
class CacheBackend(Protocol):
    """
    Protocol for fast-tier caches.

    Required Methods:
        get(key)                      → CacheEntry within TTL, else None
        set(key, payload, ttl_seconds) → Store payload with expiry
        clear()                       → Drop every entry
    """

    def get(self, key: str) -> Optional[CacheEntry]:
        ...

    def set(self, key: str, payload: Any, ttl_seconds: float) -> None:
        ...

    def clear(self) -> None:
        ...


# =============================================================================
# STAGE 2: IN-MEMORY BACKEND
# =============================================================================


class MemoryCacheBackend:
    """
    Thread-safe in-process LRU cache with per-entry expiry.

    Args:
        max_entries: Oldest entries are evicted beyond this size
        clock: Time source in epoch seconds (injectable for tests)
    """

    def __init__(self, max_entries: int = 10_000, clock: Callable[[], float] = time.time):
        self._max_entries = max(1, int(max_entries))
        self._clock = clock
        self._lock = threading.Lock()
        self._items: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def get(self, key: str) -> Optional[CacheEntry]:
        now = self._clock()
        with self._lock:
            entry = self._items.get(key)
            if entry is None:
                return None
            if not entry.is_valid(now):
                self._items.pop(key, None)
                return None
            self._items.move_to_end(key)
            return entry

    def set(self, key: str, payload: Any, ttl_seconds: float) -> None:
        entry = CacheEntry(key=key, payload=payload, expiry_timestamp=self._clock() + ttl_seconds)
        with self._lock:
            self._items.pop(key, None)
            self._items[key] = entry
            while len(self._items) > self._max_entries:
                self._items.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


# =============================================================================
# STAGE 3: REDIS BACKEND
# =============================================================================


class RedisCacheBackend:
    """
    Redis-backed fast tier shared between engine processes.

    Values are stored as JSON {"payload": ..., "expires_at": ...} with SETEX,
    so Redis drops them at TTL; expires_at is also checked on read.
    Connection and protocol errors are raised as KnowledgeLookupFailure
    (tier="fast"); the caching decorator treats them as a miss.

    Args:
        redis_url: Redis connection URL (ignored when client is given)
        client: Pre-built redis client (tests inject a fake)
        key_prefix: Namespace prepended to every key
        clock: Time source in epoch seconds
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        client: Any = None,
        key_prefix: str = "clinical_validation:",
        clock: Callable[[], float] = time.time,
    ):
        if client is None:
            if not redis_url:
                raise ValueError("redis_url or client is required")
            client = redis.Redis.from_url(redis_url, socket_timeout=2.0)
        self._client = client
        self._prefix = key_prefix
        self._clock = clock
        logger.info(f"RedisCacheBackend initialized | Prefix: {key_prefix}")

    def get(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = self._client.get(self._prefix + key)
        except redis.exceptions.RedisError as e:
            raise KnowledgeLookupFailure(
                "Redis get failed", tier="fast", operation="get", original_error=e
            )
        if raw is None:
            return None
        try:
            stored = json.loads(raw)
            entry = CacheEntry(key=key, payload=stored["payload"], expiry_timestamp=stored["expires_at"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable cache entry | Key: {key} | Error: {e}")
            return None
        return entry if entry.is_valid(self._clock()) else None

    def set(self, key: str, payload: Any, ttl_seconds: float) -> None:
        ttl = max(1, int(ttl_seconds))
        value = json.dumps({"payload": payload, "expires_at": self._clock() + ttl_seconds})
        try:
            self._client.setex(self._prefix + key, ttl, value)
        except redis.exceptions.RedisError as e:
            raise KnowledgeLookupFailure(
                "Redis set failed", tier="fast", operation="set", original_error=e
            )

    def clear(self) -> None:
        try:
            keys = list(self._client.scan_iter(match=self._prefix + "*"))
            if keys:
                self._client.delete(*keys)
        except redis.exceptions.RedisError as e:
            raise KnowledgeLookupFailure(
                "Redis clear failed", tier="fast", operation="clear", original_error=e
            )
