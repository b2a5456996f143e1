"""
Pieces shared by the catalog cache stores.
"""

import random
import re
from enum import Enum
from typing import Optional, Any, Protocol

_KEY_SEGMENT = re.compile(r"[A-Za-z0-9._-]+")


class CacheStatus(str, Enum):
    """Freshness of a cache entry."""
    MISSING = "missing"
    EXPIRED = "expired"
    FRESH = "fresh"


class CacheError(Exception):
    """Base class for cache store failures."""
    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.key = key


class CacheReadError(CacheError):
    """Stored entry exists but cannot be read or decoded."""
    pass


class CacheWriteError(CacheError):
    """Entry could not be persisted."""
    pass


class InvalidCacheKeyError(ValueError):
    """Cache key contains characters that cannot be mapped to storage."""
    pass


class CacheStore(Protocol):
    """Interface implemented by ``FileCache`` and ``DatabaseCache``."""

    def status(self, key: str) -> CacheStatus: ...

    def is_stale(self, key: str) -> bool: ...

    def get(self, key: str) -> Optional[Any]: ...

    def read(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


def validate_key(key: str) -> str:
    """
    Check a slash separated cache key such as ``products/123``.

    Raises:
        InvalidCacheKeyError: If a segment is empty, ``.``/``..`` or has
            characters outside ``[A-Za-z0-9._-]``
    """
    segments = key.split("/")
    for segment in segments:
        if segment in ("", ".", "..") or not _KEY_SEGMENT.fullmatch(segment):
            raise InvalidCacheKeyError(f"Invalid cache key: {key!r}")
    return key


def entity_key(kind: str, entity_id: Any) -> str:
    """Build the cache key of a single entity, e.g. ``patterns/42``."""
    return validate_key(f"{kind}/{entity_id}")


class TtlPolicy:
    """
    Freshness window with optional jitter.

    Jitter randomizes expiry per check (TTL +- jitter) so entries written
    together do not all expire in the same request.
    """

    def __init__(self, ttl: int, ttl_jitter: int = 0):
        self.ttl = ttl
        self.ttl_jitter = ttl_jitter

    def effective_ttl(self) -> int:
        if self.ttl_jitter == 0:
            return self.ttl
        return max(0, int(self.ttl + random.uniform(-self.ttl_jitter, self.ttl_jitter)))

    def max_ttl(self) -> int:
        return self.ttl + self.ttl_jitter

    def status_for_age(self, age: float) -> CacheStatus:
        if age > self.effective_ttl():
            return CacheStatus.EXPIRED
        return CacheStatus.FRESH

