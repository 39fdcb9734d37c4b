from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from pydantic import SecretStr

from claude_usage.services.usage.strategies import StrategyResponse, TransportStrategy

CHALLENGE_PAGE = """
<!DOCTYPE html>
<html>
<head><title>Just a moment...</title></head>
<body>
    <div class="cf-browser-verification">Checking your browser before accessing claude.ai.</div>
    <script src="/cdn-cgi/challenge-platform/h/g/orchestrate/chl_page/v1"></script>
</body>
</html>
"""

USAGE_BODY = '{"five_hour": {"utilization": 42.4, "resets_at": "2025-01-01T00:00:00Z"}, "seven_day": null}'


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class ScriptedStrategy(TransportStrategy):
    """Strategy that replays a script of responses/exceptions.

    Each call consumes the next item; the last item repeats.
    """

    def __init__(self, settings: MagicMock, name: str, script: Iterable[StrategyResponse | BaseException]) -> None:
        super().__init__(settings)
        self.STRATEGY_NAME = name
        self.script = list(script)
        self.calls: list[tuple[str, dict[str, str]]] = []
        self.redirect_flags: list[bool] = []

    async def _send(self, url: str, headers: dict[str, str], allow_redirects: bool = True) -> StrategyResponse:
        self.calls.append((url, headers))
        self.redirect_flags.append(allow_redirects)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return item


def make_response(status_code: int = 200, text: str = USAGE_BODY, set_cookies: list[str] | None = None) -> StrategyResponse:
    return StrategyResponse(status_code=status_code, text=text, set_cookies=set_cookies or [])


@pytest.fixture
def mock_settings() -> MagicMock:
    """Create mock settings for testing."""
    settings = MagicMock()
    settings.USAGE_API_BASE_URL = "https://claude.ai"
    settings.USAGE_API_PATH = "/api/organizations"
    settings.USAGE_PRIMING_URL = "https://claude.ai/"
    settings.USAGE_REQUEST_TIMEOUT = 10.0
    settings.USAGE_USER_AGENT = "Test-UA"
    settings.USAGE_IMPERSONATE = "chrome120"
    settings.USAGE_ERROR_MESSAGE_MAX_LENGTH = 200
    settings.USAGE_ERROR_DETAILS_MAX_LENGTH = 500
    settings.USAGE_CF_BM_COOKIE_TTL = 300
    settings.USAGE_AUTO_REFRESH = True
    settings.USAGE_REFRESH_SECONDS = 60
    settings.USAGE_MODE = "left"
    settings.USAGE_ORGANIZATION_CODE = "abc123"
    settings.USAGE_SESSION_KEY = SecretStr("sk-test-token")
    return settings


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def challenge_page() -> str:
    """Sample Cloudflare interstitial page."""
    return CHALLENGE_PAGE


@pytest.fixture
def usage_body() -> str:
    """Sample usage endpoint body (42.4% used)."""
    return USAGE_BODY


@pytest.fixture
def response_factory():
    """Build StrategyResponse objects."""
    return make_response


@pytest.fixture
def strategy_factory(mock_settings: MagicMock):
    """Build ScriptedStrategy instances bound to mock settings."""

    def _factory(name: str, *script: StrategyResponse | BaseException) -> ScriptedStrategy:
        return ScriptedStrategy(mock_settings, name, script)

    return _factory
