"""Usage pipeline utility functions.

Provides:
- Credential normalization (sessionKey cookie fragment)
- Browser-like header construction
- Usage URL construction
- Challenge/failure classification
- Set-Cookie scanning for __cf_bm
- Message bounding and credential masking
"""

import re
from collections.abc import Iterable
from urllib.parse import quote

from .exceptions import BotChallengeException, TransportException
from .outcome import FailureKind

SESSION_COOKIE_NAME = "sessionKey"
CF_BM_COOKIE_NAME = "__cf_bm"

CF_BM_REGEX = re.compile(rf"{CF_BM_COOKIE_NAME}=([^;]+)")

# Literal markers of Cloudflare interstitial pages (case-sensitive, as served)
CHALLENGE_MARKERS = [
    "Just a moment",
    "cf-browser-verification",
    "challenge-platform",
    "403",
]

# Present in every HTTP-level failure message ("HTTP 404: ...")
HTTP_FAILURE_MARKER = "HTTP"

BOT_CHALLENGE_REMEDIATION = (
    "\n\nCloudflare bot protection detected.\n\n"
    "Cloudflare blocks automated requests based on TLS fingerprinting, and no single "
    "HTTP client is reliably trusted. Tools such as Postman (libcurl) often get through "
    "where scripted clients do not.\n\n"
    "Possible solutions:\n"
    "1. Use a fresh Cookie header copied from your browser (__cf_bm expires quickly)\n"
    "2. Use a proxy service that can handle Cloudflare challenges\n"
    "3. Contact Claude.ai to request API access or whitelisting"
)


def format_session_cookie(credential: str) -> str:
    """Normalize a credential into a cookie-header fragment.

    A bare token (no ';' and at most one '=') is wrapped as sessionKey=<token>;
    anything else is assumed to be a full Cookie header and passed through.

    Args:
        credential: Raw sessionKey value or full Cookie header

    Returns:
        Cookie-header fragment
    """
    trimmed = credential.strip()
    if ";" not in trimmed and trimmed.count("=") <= 1:
        return f"{SESSION_COOKIE_NAME}={trimmed}"
    return trimmed


def build_standard_headers(cookie_value: str, user_agent: str) -> dict[str, str]:
    """Build the header set of an ordinary desktop browser request.

    Args:
        cookie_value: Full Cookie header value
        user_agent: User-Agent string to send

    Returns:
        Dictionary of HTTP headers
    """
    return {
        "Cookie": cookie_value,
        "User-Agent": user_agent,
        "Accept": "*/*",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate, br",
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
    }


def combine_cookies(mitigation_cookie: str | None, session_cookie: str) -> str:
    """Join the __cf_bm fragment (if any) and the session fragment."""
    if mitigation_cookie:
        return f"{mitigation_cookie}; {session_cookie}"
    return session_cookie


def build_usage_url(base_url: str, api_path: str, organization_id: str) -> str:
    """Build the usage endpoint URL with a fully escaped organization id."""
    return f"{base_url}{api_path}/{quote(organization_id, safe='')}/usage"


def extract_cf_bm(set_cookie_headers: Iterable[str]) -> str | None:
    """Return the first __cf_bm value found in a list of Set-Cookie entries."""
    for cookie in set_cookie_headers:
        match = CF_BM_REGEX.search(cookie)
        if match:
            return match.group(1)
    return None


def find_challenge_marker(text: str | None) -> str | None:
    """Return the first challenge marker contained in text, if any."""
    if not text:
        return None
    for marker in CHALLENGE_MARKERS:
        if marker in text:
            return marker
    return None


def is_bot_challenge(text: str | None, status_code: int | None = None) -> bool:
    """Check if a response or failure text looks like a bot-mitigation rejection.

    Args:
        text: Failure message or response body
        status_code: HTTP status code, if a response was received

    Returns:
        True for any challenge marker or a 403 status
    """
    if status_code == 403:
        return True
    return find_challenge_marker(text) is not None


def classify_failure(text: str | None, status_code: int | None = None) -> FailureKind:
    """Classify a failure from its text and status code.

    Pure function shared by the cookie acquirer and the dispatcher.

    Returns:
        BOT_CHALLENGE for challenge markers or 403,
        HTTP_ERROR for any other non-2xx status (or an "HTTP ..." message),
        TRANSPORT_ERROR otherwise
    """
    if is_bot_challenge(text, status_code):
        return FailureKind.BOT_CHALLENGE
    if status_code is not None and not 200 <= status_code < 300:
        return FailureKind.HTTP_ERROR
    if text and HTTP_FAILURE_MARKER in text:
        return FailureKind.HTTP_ERROR
    return FailureKind.TRANSPORT_ERROR


def classify_exception(exc: BaseException) -> FailureKind:
    """Classify a raised exception.

    Typed pipeline exceptions are classified by type first so that library
    error strings (which may mention "HTTP/1.1") cannot turn a transport
    failure into a fatal HTTP error.
    """
    if isinstance(exc, BotChallengeException):
        return FailureKind.BOT_CHALLENGE
    if isinstance(exc, TransportException):
        return FailureKind.TRANSPORT_ERROR
    status_code = getattr(exc, "status_code", None)
    return classify_failure(error_message(exc), status_code)


def should_try_next_strategy(kind: FailureKind) -> bool:
    """Bot challenges and transport failures move on; HTTP errors abort."""
    return kind in (FailureKind.BOT_CHALLENGE, FailureKind.TRANSPORT_ERROR)


def error_message(exc: BaseException | None) -> str:
    """Extract the bare message of an exception (without URL decoration)."""
    if exc is None:
        return "Unknown error"
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or type(exc).__name__


def truncate(text: str, max_length: int) -> str:
    """Bound text to max_length characters."""
    return text[:max_length]


def mask_secret(secret: str, visible: int = 10) -> str:
    """Show only a bounded prefix of a secret plus its length."""
    if not secret:
        return "NOT SET"
    return f"{secret[:visible]}... ({len(secret)} chars)"
