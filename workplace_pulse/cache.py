"""Short-TTL read cache in front of session lookups and analytics.

Entries carry an absolute expiry.  Nothing is invalidated automatically on
write: every command that mutates a session or its participants must call
:func:`invalidate_session` (or delete the relevant keys) itself.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Tuple

from workplace_pulse import config

logger = logging.getLogger(__name__)


class _Miss:
    """Sentinel type returned by :meth:`ReadCache.get` on a miss."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()


class ReadCache:
    """A thread-safe key → (value, expiry) store."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Any:
        """Return the cached value, or :data:`MISS` if absent or expired.

        ``None`` is a legitimate cached value, hence the sentinel.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return MISS
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return MISS
            return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)

    def get_or_set(self, key: str, factory: Callable[[], Any], ttl_seconds: float) -> Any:
        """Return the cached value or compute, store and return it.

        *factory* runs outside the lock; two concurrent misses may both compute,
        and the later ``set`` wins.
        """
        value = self.get(key)
        if value is not MISS:
            return value
        value = factory()
        self.set(key, value, ttl_seconds)
        return value

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        """Evict expired entries and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, (_, exp) in self._entries.items() if now >= exp]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Evicted %d expired cache entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------


def session_slug_key(slug: str) -> str:
    return f"session:{slug}"


def session_code_key(code: str) -> str:
    return f"session_code:{code}"


def session_id_key(session_id: str) -> str:
    return f"session_id:{session_id}"


def participants_key(session_id: str) -> str:
    return f"participants:{session_id}"


def analytics_key(slug: str) -> str:
    return f"analytics:{slug}"


def snapshot_key(owner: str, session_id: str) -> str:
    """Key of one store's locally computed snapshot.

    *owner* identifies the store, so dashboards sharing a cache never read
    each other's snapshots.
    """
    return f"snapshot:{owner}:{session_id}"


# TTL per key class, in seconds
SESSION_TTL: float = config.SESSION_CACHE_TTL
PARTICIPANTS_TTL: float = config.PARTICIPANTS_CACHE_TTL
ANALYTICS_TTL: float = config.ANALYTICS_CACHE_TTL


def invalidate_session(cache: ReadCache, session) -> None:
    """Drop every cached entry derived from *session*."""
    cache.delete(
        session_slug_key(session.slug),
        session_code_key(session.code),
        session_id_key(session.session_id),
        participants_key(session.session_id),
        analytics_key(session.slug),
    )
    logger.debug("cache_invalidated", extra={"session_id": session.session_id})
