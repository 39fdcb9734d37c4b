"""
httpx Strategy - standard async request API.

First choice for the usage fetch and fallback for cookie priming. httpx
exposes repeated Set-Cookie headers through Headers.get_list(), so priming
still works when the curl_cffi attempt fails outright.
"""

import logging
from typing import TYPE_CHECKING

import httpx

from ..exceptions import FetchTimeoutException, TransportException
from .base import StrategyResponse, TransportStrategy

if TYPE_CHECKING:
    from ....core.config import Settings

logger = logging.getLogger(__name__)


class HttpxStrategy(TransportStrategy):
    """GET through a short-lived httpx.AsyncClient."""

    STRATEGY_NAME = "httpx"

    def __init__(
        self,
        settings: "Settings",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the httpx strategy.

        Args:
            settings: Application settings
            transport: Optional transport override (e.g. httpx.MockTransport)
        """
        super().__init__(settings)
        self._transport = transport

    async def _send(self, url: str, headers: dict[str, str], allow_redirects: bool = True) -> StrategyResponse:
        logger.debug(f"httpx GET {url}")
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url, headers=headers, follow_redirects=allow_redirects)
        except httpx.TimeoutException as e:
            raise FetchTimeoutException(
                message=f"httpx timeout ({e.__class__.__name__})",
                url=url,
                strategy=self.STRATEGY_NAME,
                timeout_seconds=self.timeout,
            ) from e
        except httpx.HTTPError as e:
            raise TransportException(
                message=f"httpx transport error: {e.__class__.__name__}: {e}",
                url=url,
                strategy=self.STRATEGY_NAME,
            ) from e

        return StrategyResponse(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
            set_cookies=response.headers.get_list("set-cookie"),
        )
