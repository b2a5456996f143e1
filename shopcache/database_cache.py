"""
SQL database cache with TTL support.

Alternative to the file cache for deployments without a writable data
directory. Works with any SQLAlchemy URL (SQLite, PostgreSQL).
"""

import json
import time
from typing import Optional, Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from shopcache.cache import (
    CacheStatus, CacheReadError, CacheWriteError, TtlPolicy, validate_key
)
from shopcache.database import session_scope
from shopcache.db_models import CacheEntry


class DatabaseCache:
    """
    Database backed cache store.

    Stores key-value pairs with write timestamps. Expired rows are kept until
    they are overwritten or ``clear_expired`` runs, so they remain available
    as a stale fallback.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        ttl: int,
        ttl_jitter: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize cache.

        Args:
            session_factory: SQLAlchemy session factory
            ttl: Time-to-live in seconds
            ttl_jitter: Maximum jitter in seconds applied to the TTL
            clock: Source of the current time (seconds since epoch)
        """
        self.session_factory = session_factory
        self.policy = TtlPolicy(ttl, ttl_jitter)
        self.clock = clock

    def _load(self, key: str) -> Optional[CacheEntry]:
        validate_key(key)
        try:
            with session_scope(self.session_factory) as db:
                cache_entry = db.query(CacheEntry).filter(CacheEntry.key == key).first()
                if cache_entry is not None:
                    db.expunge(cache_entry)
                return cache_entry
        except SQLAlchemyError as e:
            raise CacheReadError(f"Cannot load cache entry {key!r}: {e}", key) from e

    def status(self, key: str) -> CacheStatus:
        """
        Report whether an entry is missing, expired or fresh.

        Args:
            key: Cache key

        Returns:
            CacheStatus of the entry
        """
        cache_entry = self._load(key)
        if cache_entry is None:
            return CacheStatus.MISSING
        return self.policy.status_for_age(self.clock() - cache_entry.timestamp)

    def is_stale(self, key: str) -> bool:
        """True when the entry is absent or older than the freshness window."""
        return self.status(key) is not CacheStatus.FRESH

    def read(self, key: str) -> Optional[Any]:
        """
        Read an entry regardless of its age.

        Returns:
            Stored value or None if there is no entry
        """
        cache_entry = self._load(key)
        if cache_entry is None:
            return None
        try:
            return json.loads(cache_entry.value)
        except ValueError as e:
            raise CacheReadError(f"Corrupt cache entry {key!r}: {e}", key) from e

    def get(self, key: str) -> Optional[Any]:
        """
        Get cached value if not expired.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found/expired
        """
        cache_entry = self._load(key)
        if cache_entry is None:
            return None

        if self.policy.status_for_age(self.clock() - cache_entry.timestamp) is CacheStatus.EXPIRED:
            return None

        try:
            return json.loads(cache_entry.value)
        except ValueError as e:
            raise CacheReadError(f"Corrupt cache entry {key!r}: {e}", key) from e

    def set(self, key: str, value: Any):
        """
        Set cache value with current timestamp.

        Args:
            key: Cache key
            value: Value to cache (will be JSON serialized)

        Raises:
            CacheWriteError: If the value cannot be serialized or stored
        """
        validate_key(key)
        try:
            value_json = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise CacheWriteError(f"Value for {key!r} is not JSON serializable: {e}", key) from e

        timestamp = int(self.clock())
        try:
            with session_scope(self.session_factory) as db:
                cache_entry = db.query(CacheEntry).filter(CacheEntry.key == key).first()

                if cache_entry:
                    cache_entry.value = value_json
                    cache_entry.timestamp = timestamp
                else:
                    db.add(CacheEntry(key=key, value=value_json, timestamp=timestamp))
        except SQLAlchemyError as e:
            raise CacheWriteError(f"Cannot store cache entry {key!r}: {e}", key) from e

    def delete(self, key: str):
        """
        Delete a specific cache entry.

        Args:
            key: Cache key to delete
        """
        validate_key(key)
        try:
            with session_scope(self.session_factory) as db:
                db.query(CacheEntry).filter(CacheEntry.key == key).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            raise CacheWriteError(f"Cannot delete cache entry {key!r}: {e}", key) from e

    def clear_expired(self) -> int:
        """
        Clear entries older than the maximum TTL (TTL plus jitter).

        Returns:
            Number of rows removed
        """
        cutoff = int(self.clock()) - self.policy.max_ttl()
        try:
            with session_scope(self.session_factory) as db:
                return db.query(CacheEntry).filter(
                    CacheEntry.timestamp < cutoff
                ).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            raise CacheWriteError(f"Cannot clear expired cache entries: {e}", "*") from e

    def clear_all(self):
        """Clear all cache entries."""
        try:
            with session_scope(self.session_factory) as db:
                db.query(CacheEntry).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            raise CacheWriteError(f"Cannot clear cache: {e}", "*") from e
