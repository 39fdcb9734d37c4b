"""Usage fetch pipeline exceptions.

Hierarchy:
    UsageFetchException (base)
    ├── BotChallengeException  - 403 or interstitial challenge page detected
    ├── HttpStatusException    - genuine non-2xx rejection (401, 404, 429, ...)
    └── TransportException     - no usable response (network, malformed body)
        └── FetchTimeoutException - attempt exceeded its deadline

Strategies raise these; the dispatcher folds them into a FetchOutcome so
nothing crosses the fetch_usage() boundary.
"""


class UsageFetchException(Exception):
    """Base exception for all usage fetch errors."""

    def __init__(self, message: str, url: str | None = None) -> None:
        self.message = message
        self.url = url
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.url:
            return f"{self.message} (URL: {self.url})"
        return self.message


class BotChallengeException(UsageFetchException):
    """Raised when the bot-mitigation layer rejected the request.

    Recoverable: the dispatcher moves on to the next transport strategy.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        challenge_marker: str | None = None,
        content: str | None = None,
    ) -> None:
        super().__init__(message, url)
        self.status_code = status_code
        self.challenge_marker = challenge_marker  # e.g. "Just a moment", "403"
        self.content = content  # Bounded body excerpt (for debugging)

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code:
            parts.append(f"status={self.status_code}")
        if self.challenge_marker:
            parts.append(f"challenge={self.challenge_marker}")
        if self.url:
            parts.append(f"url={self.url}")
        return " | ".join(parts)


class HttpStatusException(UsageFetchException):
    """Raised for a substantive HTTP rejection (auth, not-found, rate limit).

    Not recoverable by switching transport; surfaced immediately.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        content: str | None = None,
    ) -> None:
        super().__init__(message, url)
        self.status_code = status_code
        self.content = content

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code:
            parts.append(f"status={self.status_code}")
        if self.url:
            parts.append(f"url={self.url}")
        return " | ".join(parts)


class TransportException(UsageFetchException):
    """Raised when no usable response was obtained.

    Examples: DNS failure, connection reset, TLS error, malformed JSON body.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        strategy: str | None = None,
    ) -> None:
        super().__init__(message, url)
        self.strategy = strategy

    def __str__(self) -> str:
        base = super().__str__()
        if self.strategy:
            return f"{base} (strategy={self.strategy})"
        return base


class FetchTimeoutException(TransportException):
    """Raised when a single network attempt exceeds its deadline."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        strategy: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        super().__init__(message, url, strategy)
        self.timeout_seconds = timeout_seconds

    def __str__(self) -> str:
        parts = [self.message]
        if self.timeout_seconds:
            parts.append(f"timeout={self.timeout_seconds}s")
        if self.strategy:
            parts.append(f"strategy={self.strategy}")
        if self.url:
            parts.append(f"url={self.url}")
        return " | ".join(parts)
