"""Unit tests for __cf_bm cookie acquisition."""

import httpx
import pytest

from claude_usage.services.usage.cookie_acquirer import CookieAcquirer
from claude_usage.services.usage.cookie_cache import CookieCache
from claude_usage.services.usage.exceptions import FetchTimeoutException, TransportException
from claude_usage.services.usage.strategies import HttpxStrategy

CF_BM_SET_COOKIE = "__cf_bm=fresh-cookie.123; path=/; expires=Wed, 01 Jan 2025 00:30:00 GMT; domain=.claude.ai; HttpOnly"


@pytest.fixture
def cache(fake_clock) -> CookieCache:
    return CookieCache(ttl_seconds=300, clock=fake_clock)


def make_acquirer(settings, cache, primary, fallback) -> CookieAcquirer:
    return CookieAcquirer(settings, cache=cache, primary=primary, fallback=fallback)


# =============================================================================
# CACHE INTERACTION
# =============================================================================
class TestCacheInteraction:
    @pytest.mark.asyncio
    async def test_cache_hit_makes_no_requests(self, mock_settings, cache, strategy_factory, response_factory):
        cache.set("cached-value")
        primary = strategy_factory("curl_cffi", response_factory(set_cookies=[CF_BM_SET_COOKIE]))
        fallback = strategy_factory("httpx", response_factory())

        cookie = await make_acquirer(mock_settings, cache, primary, fallback).acquire("sk-test-token")

        assert cookie.value == "cached-value"
        assert primary.calls == []
        assert fallback.calls == []

    @pytest.mark.asyncio
    async def test_primed_cookie_is_cached(self, mock_settings, cache, strategy_factory, response_factory):
        primary = strategy_factory("curl_cffi", response_factory(text="<html>", set_cookies=[CF_BM_SET_COOKIE]))
        fallback = strategy_factory("httpx", response_factory())
        acquirer = make_acquirer(mock_settings, cache, primary, fallback)

        first = await acquirer.acquire("sk-test-token")
        second = await acquirer.acquire("sk-test-token")

        assert first.value == "fresh-cookie.123"
        assert second == first
        assert len(primary.calls) == 1
        assert fallback.calls == []

    @pytest.mark.asyncio
    async def test_expired_cookie_triggers_new_priming(
        self, mock_settings, cache, fake_clock, strategy_factory, response_factory
    ):
        primary = strategy_factory("curl_cffi", response_factory(set_cookies=[CF_BM_SET_COOKIE]))
        acquirer = make_acquirer(mock_settings, cache, primary, strategy_factory("httpx", response_factory()))

        await acquirer.acquire("sk-test-token")
        fake_clock.advance(300)
        await acquirer.acquire("sk-test-token")

        assert len(primary.calls) == 2


# =============================================================================
# PRIMING REQUEST
# =============================================================================
class TestPrimingRequest:
    @pytest.mark.asyncio
    async def test_priming_targets_origin_root_with_session_cookie(
        self, mock_settings, cache, strategy_factory, response_factory
    ):
        primary = strategy_factory("curl_cffi", response_factory(set_cookies=[CF_BM_SET_COOKIE]))
        acquirer = make_acquirer(mock_settings, cache, primary, strategy_factory("httpx", response_factory()))

        await acquirer.acquire("  sk-test-token  ")

        url, headers = primary.calls[0]
        assert url == "https://claude.ai/"
        assert headers["Cookie"] == "sessionKey=sk-test-token"
        assert headers["User-Agent"] == "Test-UA"

    @pytest.mark.asyncio
    async def test_non_2xx_priming_response_still_yields_cookie(
        self, mock_settings, cache, strategy_factory, response_factory, challenge_page
    ):
        """Cloudflare sets __cf_bm on the challenge page itself."""
        primary = strategy_factory(
            "curl_cffi",
            response_factory(status_code=403, text=challenge_page, set_cookies=[CF_BM_SET_COOKIE]),
        )
        acquirer = make_acquirer(mock_settings, cache, primary, strategy_factory("httpx", response_factory()))

        cookie = await acquirer.acquire("sk-test-token")

        assert cookie.value == "fresh-cookie.123"

    @pytest.mark.asyncio
    async def test_no_cf_bm_returns_none(self, mock_settings, cache, strategy_factory, response_factory):
        primary = strategy_factory("curl_cffi", response_factory(set_cookies=["other=1; path=/"]))
        fallback = strategy_factory("httpx", response_factory(set_cookies=[CF_BM_SET_COOKIE]))

        cookie = await make_acquirer(mock_settings, cache, primary, fallback).acquire("sk-test-token")

        assert cookie is None
        assert fallback.calls == []
        assert cache.get() is None


# =============================================================================
# FALLBACK BEHAVIOR
# =============================================================================
class TestFallback:
    @pytest.mark.asyncio
    async def test_primary_error_uses_fallback(self, mock_settings, cache, strategy_factory, response_factory):
        primary = strategy_factory("curl_cffi", TransportException("connection reset"))
        fallback = strategy_factory("httpx", response_factory(set_cookies=[CF_BM_SET_COOKIE]))

        cookie = await make_acquirer(mock_settings, cache, primary, fallback).acquire("sk-test-token")

        assert cookie.value == "fresh-cookie.123"
        assert len(fallback.calls) == 1

    @pytest.mark.asyncio
    async def test_primary_timeout_skips_fallback(self, mock_settings, cache, strategy_factory, response_factory):
        primary = strategy_factory("curl_cffi", FetchTimeoutException("Timeout after 10.0s"))
        fallback = strategy_factory("httpx", response_factory(set_cookies=[CF_BM_SET_COOKIE]))

        cookie = await make_acquirer(mock_settings, cache, primary, fallback).acquire("sk-test-token")

        assert cookie is None
        assert fallback.calls == []

    @pytest.mark.asyncio
    async def test_both_failing_returns_none(self, mock_settings, cache, strategy_factory):
        primary = strategy_factory("curl_cffi", TransportException("connection reset"))
        fallback = strategy_factory("httpx", RuntimeError("boom"))

        cookie = await make_acquirer(mock_settings, cache, primary, fallback).acquire("sk-test-token")

        assert cookie is None

    @pytest.mark.asyncio
    async def test_failure_log_does_not_contain_credential(self, mock_settings, cache, strategy_factory, caplog):
        primary = strategy_factory("curl_cffi", TransportException("connection reset"))
        fallback = strategy_factory("httpx", TransportException("connection refused"))

        with caplog.at_level("DEBUG"):
            await make_acquirer(mock_settings, cache, primary, fallback).acquire("sk-test-token")

        assert "sk-test-token" not in caplog.text
        assert "Failed to fetch __cf_bm cookie" in caplog.text


# =============================================================================
# REDIRECT HANDLING
# =============================================================================
class TestRedirects:
    """The cookie set on the root response must survive a redirecting origin."""

    @pytest.mark.asyncio
    async def test_priming_does_not_follow_redirects(self, mock_settings, cache, strategy_factory, response_factory):
        primary = strategy_factory("curl_cffi", TransportException("connection reset"))
        fallback = strategy_factory("httpx", response_factory(set_cookies=[CF_BM_SET_COOKIE]))

        await make_acquirer(mock_settings, cache, primary, fallback).acquire("sk-test-token")

        assert primary.redirect_flags == [False]
        assert fallback.redirect_flags == [False]

    @pytest.mark.asyncio
    async def test_cookie_on_redirect_response_is_harvested(self, mock_settings, cache):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request.url.path)
            if request.url.path == "/":
                return httpx.Response(
                    302,
                    headers=[("location", "https://claude.ai/login"), ("set-cookie", "__cf_bm=abc; path=/")],
                )
            return httpx.Response(200, text="<html>login</html>")

        strategy = HttpxStrategy(mock_settings, transport=httpx.MockTransport(handler))

        cookie = await make_acquirer(mock_settings, cache, strategy, strategy).acquire("sk-test-token")

        assert cookie is not None
        assert cookie.value == "abc"
        assert requested == ["/"]
