import os
from enum import Enum

from pydantic import SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class UsageApiSettings(BaseSettings):
    """Remote endpoint layout.

    Usage URL: {USAGE_API_BASE_URL}{USAGE_API_PATH}/{organization}/usage
    Priming URL: {USAGE_API_BASE_URL}/
    """

    USAGE_API_BASE_URL: str = "https://claude.ai"
    USAGE_API_PATH: str = "/api/organizations"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def USAGE_PRIMING_URL(self) -> str:
        return f"{self.USAGE_API_BASE_URL}/"


class UsageRequestSettings(BaseSettings):
    """Configuration for the multi-strategy fetch pipeline.

    Strategy order (usage fetch):
    - httpx: standard async request API
    - curl_cffi: raw client with browser TLS impersonation
    - aiohttp: general-purpose async client

    Strategy order (__cf_bm priming):
    - curl_cffi first (raw Set-Cookie access), httpx as fallback
    """

    # ============================================
    # Timeout Settings (seconds)
    # ============================================
    # Deadline applied to every individual network attempt
    USAGE_REQUEST_TIMEOUT: float = 10.0

    # ============================================
    # Browser Impersonation
    # ============================================
    USAGE_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # curl_cffi impersonation profile
    USAGE_IMPERSONATE: str = "chrome120"

    # ============================================
    # Error Message Bounds
    # ============================================
    USAGE_ERROR_MESSAGE_MAX_LENGTH: int = 200
    USAGE_ERROR_DETAILS_MAX_LENGTH: int = 500


class CookieCacheSettings(BaseSettings):
    # __cf_bm is short-lived on Cloudflare's side (~30 minutes); keep ours shorter
    USAGE_CF_BM_COOKIE_TTL: int = 300  # 5 minutes


class DisplayModeOption(str, Enum):
    LEFT = "left"
    USED = "used"


class MonitorSettings(BaseSettings):
    USAGE_AUTO_REFRESH: bool = True
    USAGE_REFRESH_SECONDS: int = 60
    USAGE_MODE: DisplayModeOption = DisplayModeOption.LEFT


class CredentialSettings(BaseSettings):
    """Inputs normally supplied by the host application.

    Read from the environment only; nothing is ever written back.
    """

    USAGE_ORGANIZATION_CODE: str = ""
    USAGE_SESSION_KEY: SecretStr | None = None


class Settings(
    UsageApiSettings,
    UsageRequestSettings,
    CookieCacheSettings,
    MonitorSettings,
    CredentialSettings,
):
    model_config = SettingsConfigDict(
        env_file=os.path.join(os.path.dirname(os.path.realpath(__file__)), "..", "..", "..", ".env"),
        env_file_encoding="utf-8",
        env_prefix="CLAUDE_",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
