"""
Usage Fetch Outcome

Standardized result of one fetch_usage() invocation. Every code path of the
pipeline ends in exactly one FetchOutcome, so callers never need to catch.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    """Classification of a failed attempt.

    BOT_CHALLENGE and TRANSPORT_ERROR are recovered by trying the next
    strategy; HTTP_ERROR is surfaced immediately. UNEXPECTED_SHAPE is only
    produced by the presenter after a nominal success.
    """

    BOT_CHALLENGE = "bot_challenge"
    HTTP_ERROR = "http_error"
    TRANSPORT_ERROR = "transport_error"
    UNEXPECTED_SHAPE = "unexpected_shape"


@dataclass
class FetchOutcome:
    """Success(payload) | Failure(kind, message)."""

    success: bool
    payload: dict[str, Any] | None = None

    # Failure information (only populated on failure)
    kind: FailureKind | None = None
    message: str | None = None
    status_code: int | None = None

    # Metadata for debugging
    strategy_used: str | None = None
    attempted_strategies: list[str] = field(default_factory=list)
    cookie_acquired: bool = False
    execution_time_ms: float = 0.0

    @classmethod
    def succeeded(cls, payload: dict[str, Any], **kwargs: Any) -> "FetchOutcome":
        return cls(success=True, payload=payload, **kwargs)

    @classmethod
    def failed(
        cls,
        kind: FailureKind,
        message: str,
        status_code: int | None = None,
        **kwargs: Any,
    ) -> "FetchOutcome":
        return cls(success=False, kind=kind, message=message, status_code=status_code, **kwargs)

    @property
    def is_bot_challenge(self) -> bool:
        return self.kind == FailureKind.BOT_CHALLENGE
