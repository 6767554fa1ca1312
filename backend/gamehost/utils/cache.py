"""
In-process TTL cache for rendered booking views (calendar, admin lists,
public booking page). Keys are plain strings; invalidation is by prefix.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class ViewCache:
    """Dictionary cache with per-entry expiry and a size limit."""

    MAX_ENTRIES = 5000

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._values: dict[str, Any] = {}
        self._expiry: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._values)

    def _evict_expired(self) -> None:
        now = self._clock()
        for key in [k for k, exp in self._expiry.items() if exp <= now]:
            self.delete(key)

    def get(self, key: str) -> Optional[Any]:
        if key not in self._values:
            return None
        if self._clock() < self._expiry[key]:
            return self._values[key]
        self.delete(key)
        return None

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if len(self._values) >= self.MAX_ENTRIES:
            self._evict_expired()
        if len(self._values) >= self.MAX_ENTRIES:
            for oldest in sorted(self._expiry, key=self._expiry.__getitem__)[:100]:
                self.delete(oldest)
        self._values[key] = value
        self._expiry[key] = self._clock() + ttl_seconds

    def delete(self, key: str) -> None:
        self._values.pop(key, None)
        self._expiry.pop(key, None)

    def clear_prefix(self, prefix: str) -> int:
        keys = [k for k in self._values if k.startswith(prefix)]
        for key in keys:
            self.delete(key)
        if keys:
            logger.debug("cleared %d cached views under %s", len(keys), prefix)
        return len(keys)

    def clear(self) -> None:
        self._values.clear()
        self._expiry.clear()


class CacheKeys:
    ADMIN_BOOKINGS = "admin:bookings"
    ADMIN_SESSIONS = "admin:sessions"
    BOOKING_PAGE = "book"
    CALENDAR = "calendar"

    @staticmethod
    def calendar(venue_id: int, *parts: object) -> str:
        suffix = ":".join(str(p) for p in parts)
        base = f"{CacheKeys.CALENDAR}:{venue_id}:"
        return base + suffix if suffix else base

    @staticmethod
    def booking_page(slug: str) -> str:
        return f"{CacheKeys.BOOKING_PAGE}:{slug}:"


view_cache = ViewCache()
