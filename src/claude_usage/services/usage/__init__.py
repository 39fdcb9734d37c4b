# ============================================
# USAGE - Resilient Claude Usage Fetch Pipeline
# ============================================
#
# Obtains the five-hour usage percentage from the claude.ai usage API,
# which sits behind Cloudflare bot mitigation.
#
# Pipeline:
#   Credential formatter → __cf_bm cookie acquirer (cached 5 min)
#   → dispatcher (httpx → curl_cffi → aiohttp) → classifier
#   → FetchOutcome (success payload or one synthesized failure)
#
# Presentation:
#   presenter: FetchOutcome → UsageSnapshot ("58% left")
#   monitor: periodic refresh, floor of 30 seconds
# ============================================

from .cookie_acquirer import CookieAcquirer
from .cookie_cache import CookieCache, MitigationCookie, get_cookie_cache

# Exceptions
from .exceptions import (
    BotChallengeException,
    FetchTimeoutException,
    HttpStatusException,
    TransportException,
    UsageFetchException,
)

# Dispatcher (main entry point)
from .dispatcher import UsageDispatcher, fetch_usage
from .monitor import MIN_REFRESH_SECONDS, UsageMonitor, debug_info
from .outcome import FailureKind, FetchOutcome
from .presenter import clamp_percent, format_reset_time, parse_usage, render
from .strategies import (
    AiohttpStrategy,
    CurlCffiStrategy,
    HttpxStrategy,
    StrategyResponse,
    TransportStrategy,
)
from .utils import classify_exception, classify_failure, format_session_cookie

__all__ = [
    # Dispatcher
    "UsageDispatcher",
    "fetch_usage",
    "FetchOutcome",
    "FailureKind",
    # Cookies
    "CookieCache",
    "CookieAcquirer",
    "MitigationCookie",
    "get_cookie_cache",
    # Strategies
    "TransportStrategy",
    "StrategyResponse",
    "HttpxStrategy",
    "CurlCffiStrategy",
    "AiohttpStrategy",
    # Classification
    "classify_failure",
    "classify_exception",
    "format_session_cookie",
    # Presentation
    "clamp_percent",
    "format_reset_time",
    "parse_usage",
    "render",
    "UsageMonitor",
    "MIN_REFRESH_SECONDS",
    "debug_info",
    # Exceptions
    "UsageFetchException",
    "BotChallengeException",
    "HttpStatusException",
    "TransportException",
    "FetchTimeoutException",
]
