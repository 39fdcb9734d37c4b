"""
Cookie Acquirer - harvests the Cloudflare __cf_bm cookie.

A priming GET against the origin root, dressed as an ordinary browser
navigation, usually comes back with a fresh __cf_bm Set-Cookie. Sending it
along with the usage request improves the odds of passing the bot filter.

Fallback Flow:
    curl_cffi (raw Set-Cookie access) → httpx

A timeout on the first attempt ends acquisition (no second attempt on an
already slow network). Absence of the cookie is never an error: the
pipeline proceeds without it.
"""

import logging
from typing import TYPE_CHECKING

from .cookie_cache import CookieCache, MitigationCookie, get_cookie_cache
from .exceptions import FetchTimeoutException
from .strategies import CurlCffiStrategy, HttpxStrategy, StrategyResponse, TransportStrategy
from .utils import CF_BM_COOKIE_NAME, build_standard_headers, extract_cf_bm, format_session_cookie

if TYPE_CHECKING:
    from ...core.config import Settings

logger = logging.getLogger(__name__)


class CookieAcquirer:
    """Returns a cached or freshly primed mitigation cookie, or None."""

    def __init__(
        self,
        settings: "Settings",
        cache: CookieCache | None = None,
        primary: TransportStrategy | None = None,
        fallback: TransportStrategy | None = None,
    ) -> None:
        """
        Initialize the acquirer.

        Args:
            settings: Application settings
            cache: Cookie cache (defaults to the process-wide instance)
            primary: First priming strategy (default: curl_cffi)
            fallback: Second priming strategy (default: httpx)
        """
        self.settings = settings
        self.cache = cache or get_cookie_cache(settings.USAGE_CF_BM_COOKIE_TTL)
        self.primary = primary or CurlCffiStrategy(settings)
        self.fallback = fallback or HttpxStrategy(settings)

    async def acquire(self, credential: str) -> MitigationCookie | None:
        """
        Get the mitigation cookie, priming the origin on a cache miss.

        Never raises.

        Args:
            credential: Raw credential (formatted internally)

        Returns:
            MitigationCookie, or None when none could be obtained
        """
        cached = self.cache.get()
        if cached is not None:
            return cached

        headers = build_standard_headers(
            format_session_cookie(credential),
            self.settings.USAGE_USER_AGENT,
        )
        url = self.settings.USAGE_PRIMING_URL

        response = await self._prime(url, headers)
        if response is None:
            return None

        value = extract_cf_bm(response.set_cookies)
        if value is None:
            logger.debug(f"No {CF_BM_COOKIE_NAME} in priming response (status={response.status_code})")
            return None

        return self.cache.set(value, self.settings.USAGE_CF_BM_COOKIE_TTL)

    async def _prime(self, url: str, headers: dict[str, str]) -> StrategyResponse | None:
        """Run the priming request with primary → fallback semantics.

        Redirects are not followed: Cloudflare may set __cf_bm on the root
        3xx response, and the redirected hop would not repeat it.
        """
        try:
            return await self.primary.get(url, headers, allow_redirects=False)
        except FetchTimeoutException as e:
            logger.warning(f"Timeout fetching {CF_BM_COOKIE_NAME} cookie: {e.message}")
            return None
        except Exception as e:
            logger.debug(f"{self.primary.STRATEGY_NAME} priming failed ({e}), trying {self.fallback.STRATEGY_NAME}")

        try:
            return await self.fallback.get(url, headers, allow_redirects=False)
        except Exception as e:
            logger.warning(f"Failed to fetch {CF_BM_COOKIE_NAME} cookie: {e}")
            return None

