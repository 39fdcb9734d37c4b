"""
Usage Dispatcher - Multi-Strategy Usage Fetch

The dispatcher coordinates cookie acquisition and the ordered list of
transport strategies, advancing to the next client whenever the bot
mitigation layer (or the network) rejects the current one.

Fallback Flow:
    httpx → curl_cffi → aiohttp

Decision per failure:
- Bot challenge (markers or 403): try next strategy
- Transport error (no "HTTP" in the failure): try next strategy
- Any other HTTP error (401, 404, 429, 5xx): return immediately

Attempts are strictly sequential: the first success short-circuits and no
more than one request is in flight against an already suspicious endpoint.
"""

import logging
import time
from typing import TYPE_CHECKING

from .cookie_acquirer import CookieAcquirer
from .cookie_cache import CookieCache, get_cookie_cache
from .outcome import FailureKind, FetchOutcome
from .strategies import AiohttpStrategy, CurlCffiStrategy, HttpxStrategy, TransportStrategy
from .utils import (
    BOT_CHALLENGE_REMEDIATION,
    build_standard_headers,
    build_usage_url,
    classify_exception,
    combine_cookies,
    error_message,
    format_session_cookie,
    should_try_next_strategy,
    truncate,
)

if TYPE_CHECKING:
    from ...core.config import Settings

logger = logging.getLogger(__name__)


class UsageDispatcher:
    """Entry point of the usage-fetch pipeline.

    Usage:
        dispatcher = UsageDispatcher(settings)
        outcome = await dispatcher.fetch_usage(org_id, session_key)

    The dispatcher handles:
    - Credential normalization
    - __cf_bm acquisition (cached, may be absent)
    - Strategy fallback ordering
    - Failure classification and the final diagnostic
    """

    def __init__(
        self,
        settings: "Settings",
        cache: CookieCache | None = None,
        acquirer: CookieAcquirer | None = None,
        strategies: list[TransportStrategy] | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            settings: Application settings
            cache: Cookie cache shared with the acquirer
            acquirer: Cookie acquirer override
            strategies: Ordered strategy list override
        """
        self.settings = settings
        self.cache = cache or get_cookie_cache(settings.USAGE_CF_BM_COOKIE_TTL)
        self.acquirer = acquirer or CookieAcquirer(settings, cache=self.cache)

        # Strategy order for fallback
        self.strategies: list[TransportStrategy] = (
            strategies
            if strategies is not None
            else [HttpxStrategy(settings), CurlCffiStrategy(settings), AiohttpStrategy(settings)]
        )

        # Metrics tracking
        self._metrics: dict[str, int] = {
            "invocations": 0,
            "successes": 0,
            "fallbacks": 0,
            "bot_challenges": 0,
            "http_errors": 0,
            "transport_errors": 0,
        }

    def build_url(self, organization_id: str) -> str:
        """Build the usage URL for an organization."""
        return build_usage_url(
            self.settings.USAGE_API_BASE_URL,
            self.settings.USAGE_API_PATH,
            organization_id,
        )

    async def fetch_usage(self, organization_id: str, credential: str) -> FetchOutcome:
        """Fetch the usage payload, falling back across strategies.

        Never raises: every failure is folded into a FetchOutcome.

        Args:
            organization_id: Claude organization id (URL-escaped internally)
            credential: sessionKey value or full Cookie header

        Returns:
            FetchOutcome with the JSON payload, or a single classified failure
        """
        total_start = time.time()
        self._increment_metric("invocations")

        try:
            return await self._fetch(organization_id, credential, total_start)
        except Exception as e:
            logger.exception(f"Unexpected error in usage fetch: {e}")
            return FetchOutcome.failed(
                FailureKind.TRANSPORT_ERROR,
                truncate(error_message(e), self.settings.USAGE_ERROR_MESSAGE_MAX_LENGTH),
                execution_time_ms=(time.time() - total_start) * 1000,
            )

    async def _fetch(self, organization_id: str, credential: str, total_start: float) -> FetchOutcome:
        url = self.build_url(organization_id)
        session_cookie = format_session_cookie(credential)

        mitigation_cookie = await self.acquirer.acquire(credential)
        cookie_value = combine_cookies(
            mitigation_cookie.header_fragment if mitigation_cookie else None,
            session_cookie,
        )
        headers = build_standard_headers(cookie_value, self.settings.USAGE_USER_AGENT)

        logger.info(
            f"Fetching usage for organization {organization_id[:4]}... "
            f"(cf_bm={'yes' if mitigation_cookie else 'no'}, strategies={len(self.strategies)})"
        )

        attempted: list[str] = []
        last_error: Exception | None = None

        for strategy in self.strategies:
            name = strategy.STRATEGY_NAME
            attempted.append(name)
            logger.debug(f"Attempting {name}")

            try:
                payload = await strategy.fetch_json(url, headers)
            except Exception as e:
                last_error = e
                kind = classify_exception(e)
                self._increment_metric(f"{kind.value}s")

                if should_try_next_strategy(kind):
                    logger.warning(f"{name} failed ({kind.value}): {error_message(e)[:80]} - trying next strategy")
                    self._increment_metric("fallbacks")
                    continue

                # Genuine HTTP rejection: switching client will not help
                logger.warning(f"{name} got non-recoverable {kind.value}: {error_message(e)[:80]}")
                return FetchOutcome.failed(
                    kind,
                    error_message(e),
                    status_code=getattr(e, "status_code", None),
                    strategy_used=name,
                    attempted_strategies=attempted,
                    cookie_acquired=mitigation_cookie is not None,
                    execution_time_ms=(time.time() - total_start) * 1000,
                )

            self._increment_metric("successes")
            execution_time_ms = (time.time() - total_start) * 1000
            logger.info(f"Usage fetched with {name} (time={execution_time_ms:.0f}ms)")
            return FetchOutcome.succeeded(
                payload,
                strategy_used=name,
                attempted_strategies=attempted,
                cookie_acquired=mitigation_cookie is not None,
                execution_time_ms=execution_time_ms,
            )

        logger.warning(f"All strategies failed. Attempted: {' -> '.join(attempted) or 'none'}")
        outcome = self._build_exhausted_failure(last_error)
        outcome.attempted_strategies = attempted
        outcome.cookie_acquired = mitigation_cookie is not None
        outcome.execution_time_ms = (time.time() - total_start) * 1000
        return outcome

    def _build_exhausted_failure(self, last_error: Exception | None) -> FetchOutcome:
        """Synthesize the single failure returned after every strategy failed.

        Bot challenges get the remediation block; anything else gets a
        bounded detail naming the failing strategy. The request URL is left
        out since it carries the full organization id.
        """
        message_max = self.settings.USAGE_ERROR_MESSAGE_MAX_LENGTH
        details_max = self.settings.USAGE_ERROR_DETAILS_MAX_LENGTH

        error_msg = truncate(error_message(last_error), message_max)
        kind = classify_exception(last_error) if last_error is not None else FailureKind.TRANSPORT_ERROR

        if kind == FailureKind.BOT_CHALLENGE:
            body = BOT_CHALLENGE_REMEDIATION
        else:
            body = f"\n\nDetails: {truncate(self._describe_error(last_error), details_max)}"

        return FetchOutcome.failed(
            kind,
            f"{error_msg}{body}",
            status_code=getattr(last_error, "status_code", None),
        )

    @staticmethod
    def _describe_error(error: Exception | None) -> str:
        detail = error_message(error)
        strategy = getattr(error, "strategy", None)
        if strategy:
            detail = f"{detail} (strategy={strategy})"
        return detail

    def _increment_metric(self, key: str) -> None:
        """Increment a metric counter."""
        if key in self._metrics:
            self._metrics[key] += 1

    def get_metrics(self) -> dict[str, int]:
        """Get current metrics snapshot."""
        return self._metrics.copy()


# ============================================
# Convenience Function for Direct Use
# ============================================


async def fetch_usage(
    organization_id: str,
    credential: str,
    settings: "Settings | None" = None,
) -> FetchOutcome:
    """Convenience function for one-off usage fetches.

    Shares the process-wide cookie cache, so repeated calls still reuse the
    __cf_bm cookie. For repeated use, create a UsageDispatcher instead.

    Args:
        organization_id: Claude organization id
        credential: sessionKey value or full Cookie header
        settings: Application settings (defaults to the global settings)

    Returns:
        FetchOutcome
    """
    if settings is None:
        from ...core.config import settings as default_settings

        settings = default_settings

    return await UsageDispatcher(settings).fetch_usage(organization_id, credential)
