"""
Per-company inventory status snapshot cache with TTL expiry.

- One entry per company, keyed "inventory_status:<company_id>".
- Entries expire after a short TTL (default 5 minutes); a stale read inside
  that window is accepted.
- Every ledger write invalidates its company's entry after commit.
- Backend failures are logged and swallowed: the cache never gates a write
  and never fails a read (the snapshot is recomputed instead).
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Callable

import redis

from ..time_utils import utcnow

logger = logging.getLogger(__name__)


def cache_key(company_id: int) -> str:
    return f"inventory_status:{company_id}"


class MemoryBackend:
    """
    Process-local backend. Expiry is evaluated against utcnow().

    Values are copied in and out, so callers never share the stored snapshot.
    """

    def __init__(self):
        self._entries: dict[str, tuple[datetime, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= utcnow():
                del self._entries[key]
                return None
            return copy.deepcopy(value)

    def set(self, key: str, value, ttl: int) -> None:
        with self._lock:
            self._entries[key] = (utcnow() + timedelta(seconds=ttl), copy.deepcopy(value))

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisBackend:
    """Shared backend for multi-process deployments."""

    def __init__(self, client: redis.Redis):
        self.client = client

    def get(self, key: str):
        raw = self.client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value, ttl: int) -> None:
        self.client.setex(key, ttl, json.dumps(value, default=str))

    def delete(self, key: str) -> None:
        self.client.delete(key)

    def clear(self) -> None:
        for key in self.client.scan_iter(match="inventory_status:*"):
            self.client.delete(key)


class InventoryStatusCache:
    """
    Explicit cache for inventory status snapshots.

    Configured from the Flask app (INVENTORY_STATUS_CACHE_TTL, CACHE_REDIS_URL)
    or constructed directly with a backend for tests.
    """

    def __init__(self, ttl: int = 300, backend=None):
        self.ttl = ttl
        self.backend = backend or MemoryBackend()

    def init_app(self, app) -> None:
        self.ttl = int(app.config.get("INVENTORY_STATUS_CACHE_TTL", self.ttl))
        url = app.config.get("CACHE_REDIS_URL")
        if url:
            self.backend = RedisBackend(redis.Redis.from_url(url, decode_responses=True))
        else:
            self.backend = MemoryBackend()
        app.extensions["inventory_status_cache"] = self

    def get(self, company_id: int):
        try:
            return self.backend.get(cache_key(company_id))
        except redis.RedisError:
            logger.warning("Inventory status cache read failed for company %s", company_id, exc_info=True)
            return None

    def set(self, company_id: int, value) -> None:
        try:
            self.backend.set(cache_key(company_id), value, self.ttl)
        except redis.RedisError:
            logger.warning("Inventory status cache write failed for company %s", company_id, exc_info=True)

    def invalidate(self, company_id: int) -> None:
        try:
            self.backend.delete(cache_key(company_id))
        except redis.RedisError:
            logger.warning("Inventory status cache invalidation failed for company %s", company_id, exc_info=True)

    def remember(self, company_id: int, factory: Callable[[], Any]):
        cached = self.get(company_id)
        if cached is not None:
            return cached
        value = factory()
        self.set(company_id, value)
        return value

    def clear(self) -> None:
        self.backend.clear()
