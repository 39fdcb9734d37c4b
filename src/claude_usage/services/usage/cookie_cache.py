"""
Mitigation Cookie Cache.

Holds the single short-lived Cloudflare __cf_bm cookie shared by every
fetch_usage() invocation. There is exactly one slot: no per-organization or
per-credential partitioning.

Semantics:
- Expiry is checked lazily on read; an expired cookie is absent, never stale
- Last write wins; concurrent acquisitions only cost an extra request
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from .utils import CF_BM_COOKIE_NAME

logger = logging.getLogger(__name__)

DEFAULT_COOKIE_TTL_SECONDS = 5 * 60  # 5 minutes


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class MitigationCookie:
    """A cached __cf_bm cookie value with its absolute expiry."""

    value: str
    expires_at: datetime
    name: str = CF_BM_COOKIE_NAME

    def is_valid(self, now: datetime | None = None) -> bool:
        """Check if cookie is still valid."""
        return (now or _utc_now()) < self.expires_at

    @property
    def header_fragment(self) -> str:
        """Render as a Cookie header fragment (name=value)."""
        return f"{self.name}={self.value}"


class CookieCache:
    """
    Single-slot, time-bounded store for the mitigation cookie.

    The clock is injectable so expiry can be tested without sleeping.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_COOKIE_TTL_SECONDS,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cookie: MitigationCookie | None = None

    def get(self) -> MitigationCookie | None:
        """
        Get the cached cookie if it has not expired.

        Returns:
            MitigationCookie on a valid hit, None otherwise
        """
        cookie = self._cookie
        if cookie is None:
            logger.debug("Cookie cache MISS")
            return None

        if cookie.is_valid(self._clock()):
            logger.debug("Cookie cache HIT")
            return cookie

        logger.debug("Cookie cache EXPIRED")
        self._cookie = None
        return None

    def set(self, value: str, ttl_seconds: int | None = None) -> MitigationCookie:
        """
        Store a cookie value, replacing whatever was cached.

        Args:
            value: The __cf_bm cookie value (without the name)
            ttl_seconds: Time to live; defaults to the cache TTL

        Returns:
            The cached cookie
        """
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        cookie = MitigationCookie(
            value=value,
            expires_at=self._clock() + timedelta(seconds=ttl),
        )
        self._cookie = cookie
        logger.info(f"Cached {cookie.name} cookie (TTL: {ttl}s)")
        return cookie

    def clear(self) -> bool:
        """
        Drop the cached cookie.

        Returns:
            True if a cookie was cleared, False if the slot was empty
        """
        had_cookie = self._cookie is not None
        self._cookie = None
        return had_cookie


# Global instance (initialized lazily)
_cookie_cache: CookieCache | None = None


def get_cookie_cache(ttl_seconds: int = DEFAULT_COOKIE_TTL_SECONDS) -> CookieCache:
    """
    Get or create the process-wide cookie cache.

    Args:
        ttl_seconds: TTL used on first initialization only

    Returns:
        CookieCache instance
    """
    global _cookie_cache
    if _cookie_cache is None:
        _cookie_cache = CookieCache(ttl_seconds)
    return _cookie_cache
