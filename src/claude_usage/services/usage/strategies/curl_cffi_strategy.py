"""
curl_cffi Strategy - raw client with browser TLS impersonation.

Preferred for cookie priming because it hands back every raw Set-Cookie
entry, and second in the usage-fetch order because its JA3/HTTP2
fingerprint differs from httpx's.
"""

import logging
from typing import TYPE_CHECKING

from curl_cffi import CurlError
from curl_cffi.requests import AsyncSession, BrowserType

from ..exceptions import FetchTimeoutException, TransportException
from .base import StrategyResponse, TransportStrategy

if TYPE_CHECKING:
    from ....core.config import Settings

logger = logging.getLogger(__name__)

# Map config impersonate strings to curl_cffi BrowserType
IMPERSONATE_MAP: dict[str, BrowserType] = {
    "chrome110": BrowserType.chrome110,
    "chrome116": BrowserType.chrome116,
    "chrome119": BrowserType.chrome119,
    "chrome120": BrowserType.chrome120,
    "edge101": BrowserType.edge101,
    "safari15_5": BrowserType.safari15_5,
}

# curl error 28 = operation timed out
TIMEOUT_INDICATORS = ["timed out", "timeout", "curl: (28)"]


class CurlCffiStrategy(TransportStrategy):
    """GET through a short-lived curl_cffi AsyncSession."""

    STRATEGY_NAME = "curl_cffi"

    def __init__(self, settings: "Settings") -> None:
        super().__init__(settings)
        impersonate = getattr(settings, "USAGE_IMPERSONATE", "chrome120")
        self.impersonate = IMPERSONATE_MAP.get(impersonate, BrowserType.chrome120)

    async def _send(self, url: str, headers: dict[str, str], allow_redirects: bool = True) -> StrategyResponse:
        logger.debug(f"curl_cffi GET {url} (impersonate={self.impersonate.value})")
        try:
            async with AsyncSession(
                impersonate=self.impersonate,
                timeout=self.timeout,
            ) as session:
                response = await session.get(
                    url,
                    headers=headers,
                    allow_redirects=allow_redirects,
                )
        except CurlError as e:
            error_str = str(e).lower()
            if any(ind in error_str for ind in TIMEOUT_INDICATORS):
                raise FetchTimeoutException(
                    message="curl_cffi timeout (curl 28)",
                    url=url,
                    strategy=self.STRATEGY_NAME,
                    timeout_seconds=self.timeout,
                ) from e
            raise TransportException(
                message=f"curl_cffi transport error: {e}",
                url=url,
                strategy=self.STRATEGY_NAME,
            ) from e

        return StrategyResponse(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
            set_cookies=response.headers.get_list("set-cookie"),
        )
