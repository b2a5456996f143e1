"""
JSON file cache with mtime-based expiration.

Each key maps to ``<root>/<key>.json``; the file's modification time is the
entry's last-write timestamp.
"""

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Optional, Any, Callable

from shopcache.cache import (
    CacheStatus, CacheReadError, CacheWriteError, TtlPolicy, validate_key
)

logger = logging.getLogger(__name__)


class FileCache:
    """
    File based cache store.

    Entries are written wholesale (temp file + rename) so readers never see a
    partially written document.
    """

    def __init__(
        self,
        root: Path,
        ttl: int,
        ttl_jitter: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize cache.

        Args:
            root: Data directory holding the JSON files
            ttl: Time-to-live in seconds
            ttl_jitter: Maximum jitter in seconds applied to the TTL
            clock: Source of the current time (seconds since epoch)
        """
        self.root = Path(root)
        self.policy = TtlPolicy(ttl, ttl_jitter)
        self.clock = clock

    def path_for(self, key: str) -> Path:
        """Return the file backing ``key``."""
        segments = validate_key(key).split("/")
        segments[-1] += ".json"
        return self.root.joinpath(*segments)

    def status(self, key: str) -> CacheStatus:
        """
        Report whether an entry is missing, expired or fresh.

        Args:
            key: Cache key

        Returns:
            CacheStatus of the entry
        """
        path = self.path_for(key)
        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            return CacheStatus.MISSING
        except OSError as e:
            raise CacheReadError(f"Cannot stat {path}: {e}", key) from e

        return self.policy.status_for_age(self.clock() - mtime)

    def is_stale(self, key: str) -> bool:
        """True when the entry is absent or older than the freshness window."""
        return self.status(key) is not CacheStatus.FRESH

    def read(self, key: str) -> Optional[Any]:
        """
        Read an entry regardless of its age.

        Returns:
            Stored value or None if there is no entry

        Raises:
            CacheReadError: If the file exists but cannot be read or decoded
        """
        path = self.path_for(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise CacheReadError(f"Cannot read cache entry {path}: {e}", key) from e

    def get(self, key: str) -> Optional[Any]:
        """
        Get cached value if not expired.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found/expired
        """
        if self.is_stale(key):
            return None
        return self.read(key)

    def set(self, key: str, value: Any):
        """
        Replace the entry for ``key`` with ``value``.

        Args:
            key: Cache key
            value: JSON serializable value

        Raises:
            CacheWriteError: If the value cannot be serialized or written
        """
        path = self.path_for(key)
        try:
            payload = json.dumps(value, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise CacheWriteError(f"Value for {key!r} is not JSON serializable: {e}", key) from e

        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CacheWriteError(f"Cannot write cache entry {path}: {e}", key) from e

        logger.debug("Saved %s", path)

    def delete(self, key: str):
        """
        Delete a specific cache entry.

        Args:
            key: Cache key to delete
        """
        self.path_for(key).unlink(missing_ok=True)

    def clear_expired(self) -> int:
        """
        Delete entries older than the maximum TTL (TTL plus jitter).

        Returns:
            Number of files removed
        """
        if not self.root.exists():
            return 0

        now = self.clock()
        max_ttl = self.policy.max_ttl()
        removed = 0
        for path in self.root.rglob("*.json"):
            if now - path.stat().st_mtime > max_ttl:
                path.unlink()
                removed += 1
        return removed

    def clear_all(self):
        """Clear all cache entries."""
        if not self.root.exists():
            return
        for path in self.root.rglob("*.json"):
            path.unlink()
