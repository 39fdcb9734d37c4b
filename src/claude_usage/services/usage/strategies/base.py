"""
Usage Strategies - Base Transport Strategy

Defines the interface every HTTP client strategy implements, so the
dispatcher and the cookie acquirer can swap clients transparently. The
remote bot-mitigation layer differentiates clients by TLS/HTTP fingerprint,
which is why several interchangeable clients exist at all.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..exceptions import (
    BotChallengeException,
    FetchTimeoutException,
    HttpStatusException,
    TransportException,
)
from ..utils import find_challenge_marker, is_bot_challenge, truncate

if TYPE_CHECKING:
    from ....core.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class StrategyResponse:
    """Raw response as seen by any strategy."""

    status_code: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)

    # Every Set-Cookie entry, unmerged
    set_cookies: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class TransportStrategy(ABC):
    """
    Abstract base class for all transport strategies.

    Subclasses implement _send() and translate their library's errors into
    TransportException/FetchTimeoutException. The base class applies the
    per-attempt deadline and turns responses into payloads or typed errors.
    """

    STRATEGY_NAME: str = "base"

    def __init__(self, settings: "Settings") -> None:
        self.settings = settings
        self.timeout = float(getattr(settings, "USAGE_REQUEST_TIMEOUT", 10.0))
        self.message_max_length = int(getattr(settings, "USAGE_ERROR_MESSAGE_MAX_LENGTH", 200))

    @abstractmethod
    async def _send(self, url: str, headers: dict[str, str], allow_redirects: bool = True) -> StrategyResponse:
        """
        Issue a single GET request.

        Args:
            url: Target URL
            headers: Complete header set (Cookie included)
            allow_redirects: Follow 3xx responses; when False the 3xx itself
                is returned with its own Set-Cookie entries

        Returns:
            StrategyResponse with status, body text and Set-Cookie entries

        Raises:
            TransportException: On network-level failure
        """
        raise NotImplementedError

    async def get(self, url: str, headers: dict[str, str], allow_redirects: bool = True) -> StrategyResponse:
        """
        GET bounded by the attempt deadline.

        asyncio.wait_for cancels the in-flight request on expiry, which
        closes the client session via its async context manager.

        Raises:
            FetchTimeoutException: If the deadline expires
            TransportException: On network-level failure
        """
        try:
            return await asyncio.wait_for(self._send(url, headers, allow_redirects), timeout=self.timeout)
        except TimeoutError as e:
            logger.warning(f"{self.STRATEGY_NAME} timed out after {self.timeout}s")
            raise FetchTimeoutException(
                message=f"Timeout after {self.timeout}s",
                url=url,
                strategy=self.STRATEGY_NAME,
                timeout_seconds=self.timeout,
            ) from e

    async def fetch_json(self, url: str, headers: dict[str, str]) -> dict[str, Any]:
        """
        GET and decode a JSON object from a 2xx response.

        Returns:
            Decoded JSON object

        Raises:
            BotChallengeException: 403 or challenge page (even with a 2xx status)
            HttpStatusException: Any other non-2xx status
            TransportException: Network failure or malformed body
        """
        response = await self.get(url, headers)

        if not response.ok:
            self._raise_for_status(response, url)

        try:
            data = json.loads(response.text)
        except ValueError as e:
            marker = find_challenge_marker(response.text)
            if marker:
                raise BotChallengeException(
                    message=f"Challenge page served with status {response.status_code}",
                    url=url,
                    status_code=response.status_code,
                    challenge_marker=marker,
                    content=truncate(response.text, self.message_max_length),
                ) from e
            raise TransportException(
                message=f"Malformed JSON body ({e.__class__.__name__})",
                url=url,
                strategy=self.STRATEGY_NAME,
            ) from e

        if not isinstance(data, dict):
            raise TransportException(
                message=f"Expected a JSON object, got {type(data).__name__}",
                url=url,
                strategy=self.STRATEGY_NAME,
            )
        return data

    def _raise_for_status(self, response: StrategyResponse, url: str | None = None) -> None:
        """Raise the typed exception matching a non-2xx response."""
        excerpt = truncate(response.text, self.message_max_length)
        message = f"HTTP {response.status_code}: {excerpt}"

        if is_bot_challenge(message, response.status_code):
            raise BotChallengeException(
                message=message,
                url=url,
                status_code=response.status_code,
                challenge_marker=find_challenge_marker(message) or str(response.status_code),
                content=excerpt,
            )

        raise HttpStatusException(
            message=message,
            url=url,
            status_code=response.status_code,
            content=excerpt,
        )
