"""
Usage Presenter - last-mile rendering of a FetchOutcome.

The pipeline only guarantees well-formed JSON or a Failure. Validating the
payload's semantic shape happens here: a nominal success whose five_hour
window is missing or invalid becomes the UNEXPECTED state rather than a
crash.
"""

import logging
import math
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from ...schemas.usage import DisplayMode, SnapshotState, UsagePayload, UsageSnapshot
from .outcome import FailureKind, FetchOutcome
from .utils import truncate

logger = logging.getLogger(__name__)

ERROR_MESSAGE_MAX_LENGTH = 200

TROUBLESHOOTING_403 = (
    "\n\nTroubleshooting HTTP 403:\n"
    "1. Verify sessionKey: get it from browser DevTools → Application → Cookies → claude.ai\n"
    "2. Check organization_code: it should match your Claude organization\n"
    "3. sessionKey may be expired: get a fresh one from an active browser session\n"
    "4. Try the full cookie string: copy the entire Cookie header from the Network tab\n"
    "5. Make sure you are logged into Claude.ai in your browser"
)


def clamp_percent(n: Any) -> int:
    """Round to the nearest integer percentage and clamp to [0, 100].

    Halves round up (42.5 -> 43). Non-numeric or non-finite input gives 0.
    """
    if isinstance(n, bool) or not isinstance(n, int | float):
        return 0
    if isinstance(n, int):
        return max(0, min(100, n))
    if not math.isfinite(n):
        return 0
    return max(0, min(100, math.floor(n + 0.5)))


def format_reset_time(value: datetime | str) -> str:
    """Render a reset timestamp in local time; unparseable input is returned as-is."""
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            return str(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def parse_usage(payload: dict[str, Any] | None) -> UsagePayload | None:
    """Validate a success payload.

    Returns:
        UsagePayload when five_hour has a finite utilization and a parseable
        resets_at, None otherwise
    """
    if not isinstance(payload, dict):
        return None
    try:
        return UsagePayload.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Unexpected usage payload shape: {e.error_count()} validation error(s)")
        return None


def safe_error_message(message: str | None, max_length: int = ERROR_MESSAGE_MAX_LENGTH) -> str:
    """Bound a failure message for display."""
    return truncate(message or "Unknown error", max_length)


def render_unconfigured() -> UsageSnapshot:
    return UsageSnapshot(
        state=SnapshotState.UNCONFIGURED,
        text="Claude --",
        tooltip="Claude Usage is not configured.\nSet organization_code and sessionKey.",
    )


def render_refreshing(mode: DisplayMode = DisplayMode.LEFT) -> UsageSnapshot:
    return UsageSnapshot(
        state=SnapshotState.REFRESHING,
        text="Claude ...",
        tooltip="Refreshing Claude usage...",
        mode=mode,
    )


def render(
    outcome: FetchOutcome,
    mode: DisplayMode = DisplayMode.LEFT,
    now: datetime | None = None,
) -> UsageSnapshot:
    """
    Turn a fetch outcome into a display snapshot.

    Args:
        outcome: Result of fetch_usage()
        mode: Show "% left" or "% used"
        now: Timestamp for "last updated" (defaults to now)

    Returns:
        UsageSnapshot in OK, UNEXPECTED or ERROR state
    """
    updated_at = now or datetime.now(UTC)

    if not outcome.success:
        error_msg = safe_error_message(outcome.message)
        tooltip = f"Failed to refresh Claude usage.\n\nError: {error_msg}"
        if "403" in error_msg:
            tooltip += TROUBLESHOOTING_403
        return UsageSnapshot(
            state=SnapshotState.ERROR,
            text="Claude ERR",
            tooltip=tooltip,
            mode=mode,
            error_kind=outcome.kind.value if outcome.kind else None,
            updated_at=updated_at,
        )

    usage = parse_usage(outcome.payload)
    if usage is None:
        return UsageSnapshot(
            state=SnapshotState.UNEXPECTED,
            text="Claude ?",
            tooltip="Unexpected response shape from Claude usage endpoint.",
            mode=mode,
            error_kind=FailureKind.UNEXPECTED_SHAPE.value,
            updated_at=updated_at,
        )

    used = clamp_percent(usage.five_hour.utilization)
    left = clamp_percent(100 - used)
    display_value = f"{left}% left" if mode == DisplayMode.LEFT else f"{used}% used"

    tooltip = (
        f"Resets at: {format_reset_time(usage.five_hour.resets_at)}\n"
        f"Last updated: {updated_at.astimezone().strftime('%H:%M:%S')}"
    )
    if outcome.strategy_used:
        tooltip += f"\nFetched via: {outcome.strategy_used}"

    return UsageSnapshot(
        state=SnapshotState.OK,
        text=f"Claude {display_value}",
        tooltip=tooltip,
        mode=mode,
        used=used,
        left=left,
        resets_at=usage.five_hour.resets_at,
        updated_at=updated_at,
    )
