"""
aiohttp Strategy - general-purpose async client, last resort of the usage fetch.
"""

import logging

import aiohttp

from ..exceptions import FetchTimeoutException, TransportException
from .base import StrategyResponse, TransportStrategy

logger = logging.getLogger(__name__)


class AiohttpStrategy(TransportStrategy):
    """GET through a short-lived aiohttp.ClientSession."""

    STRATEGY_NAME = "aiohttp"

    async def _send(self, url: str, headers: dict[str, str], allow_redirects: bool = True) -> StrategyResponse:
        logger.debug(f"aiohttp GET {url}")
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url, headers=headers, allow_redirects=allow_redirects) as response:
                    text = await response.text(errors="replace")
                    return StrategyResponse(
                        status_code=response.status,
                        text=text,
                        headers=dict(response.headers),
                        set_cookies=response.headers.getall("Set-Cookie", []),
                    )
        except TimeoutError as e:
            # aiohttp's own total timeout; the outer deadline is handled by the base class
            raise FetchTimeoutException(
                message="aiohttp timeout",
                url=url,
                strategy=self.STRATEGY_NAME,
                timeout_seconds=self.timeout,
            ) from e
        except aiohttp.ClientError as e:
            raise TransportException(
                message=f"aiohttp transport error: {e.__class__.__name__}: {e}",
                url=url,
                strategy=self.STRATEGY_NAME,
            ) from e
