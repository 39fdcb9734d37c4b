from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field


class DisplayMode(str, Enum):
    """Which side of the five-hour window to display."""

    LEFT = "left"  # 100 - used
    USED = "used"


class SnapshotState(str, Enum):
    """Display state derived from the latest fetch outcome."""

    OK = "ok"
    REFRESHING = "refreshing"
    UNEXPECTED = "unexpected"  # 2xx with an unusable payload
    ERROR = "error"
    UNCONFIGURED = "unconfigured"


class UsageWindow(BaseModel):
    """A single rolling usage window (validated)."""

    model_config = ConfigDict(extra="allow")

    utilization: Annotated[
        float,
        Field(
            strict=True,
            allow_inf_nan=False,
            description="Percentage of the window already used (0-100, may be fractional)",
            examples=[42.4],
        ),
    ]
    resets_at: Annotated[
        datetime,
        Field(
            description="When the window resets (ISO-8601)",
            examples=["2025-01-01T00:00:00Z"],
        ),
    ]


class UsagePayload(BaseModel):
    """Success body of the usage endpoint.

    Only five_hour is interpreted; seven_day and any other top-level field
    are carried through untouched.
    """

    model_config = ConfigDict(extra="allow")

    five_hour: UsageWindow
    seven_day: Annotated[
        Any,
        Field(default=None, description="Secondary window, passed through uninterpreted"),
    ]


class UsageSnapshot(BaseModel):
    """Display-ready state for a host status bar or terminal."""

    state: SnapshotState
    text: str
    tooltip: str
    mode: DisplayMode = DisplayMode.LEFT
    used: Annotated[int | None, Field(default=None, ge=0, le=100)]
    left: Annotated[int | None, Field(default=None, ge=0, le=100)]
    resets_at: datetime | None = None
    error_kind: str | None = None
    updated_at: datetime | None = None
