"""
Usage Monitor - periodic and on-demand refresh.

Runs the pipeline on a fixed timer (never faster than every 30 seconds) and
on explicit refresh() calls. Overlapping invocations are not serialized:
a manual refresh during a timer tick runs independently and whichever
completes last owns the stored snapshot.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from ...schemas.usage import DisplayMode, UsageSnapshot
from .dispatcher import UsageDispatcher
from .outcome import FetchOutcome
from .presenter import render, render_refreshing, render_unconfigured
from .utils import build_usage_url, mask_secret

if TYPE_CHECKING:
    from ...core.config import Settings

logger = logging.getLogger(__name__)

# Enforced floor for the refresh period (seconds)
MIN_REFRESH_SECONDS = 30


def debug_info(organization_id: str, credential: str, base_url: str, api_path: str) -> str:
    """
    Summarize the current configuration without exposing secrets.

    Args:
        organization_id: Configured organization id (may be empty)
        credential: Configured credential (may be empty)
        base_url: API origin
        api_path: Organizations API path

    Returns:
        Multi-line summary with bounded prefixes only
    """
    url = build_usage_url(base_url, api_path, organization_id) if organization_id else f"{base_url}{api_path}/ORG/usage"
    return "\n".join(
        [
            f"Organization Code: {organization_id[:4] + '...' if organization_id else 'NOT SET'}",
            f"Session Key: {mask_secret(credential)}",
            f"URL: {url}",
        ]
    )


class UsageMonitor:
    """Keeps a display snapshot fresh.

    Usage:
        monitor = UsageMonitor(settings, on_render=print_snapshot)
        await monitor.refresh()
        await monitor.start()
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        settings: "Settings",
        dispatcher: UsageDispatcher | None = None,
        on_render: Callable[[UsageSnapshot], None] | None = None,
    ) -> None:
        self.settings = settings
        self.dispatcher = dispatcher or UsageDispatcher(settings)
        self.on_render = on_render
        self.mode = DisplayMode(getattr(settings.USAGE_MODE, "value", settings.USAGE_MODE))
        self.snapshot: UsageSnapshot = render_unconfigured()
        self.last_outcome: FetchOutcome | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def refresh_interval(self) -> int:
        """Configured period, floored at MIN_REFRESH_SECONDS."""
        return max(MIN_REFRESH_SECONDS, int(self.settings.USAGE_REFRESH_SECONDS))

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _credentials(self) -> tuple[str, str]:
        organization_id = (self.settings.USAGE_ORGANIZATION_CODE or "").strip()
        secret = self.settings.USAGE_SESSION_KEY
        credential = secret.get_secret_value() if secret is not None else ""
        return organization_id, credential.strip()

    def _publish(self, snapshot: UsageSnapshot) -> UsageSnapshot:
        self.snapshot = snapshot
        if self.on_render is not None:
            self.on_render(snapshot)
        return snapshot

    async def refresh(self) -> UsageSnapshot:
        """
        Run one fetch and publish the resulting snapshot.

        Returns:
            The published snapshot (UNCONFIGURED without any network call when
            the organization id or credential is missing)
        """
        organization_id, credential = self._credentials()
        if not organization_id or not credential:
            logger.info("Usage monitor not configured; skipping fetch")
            return self._publish(render_unconfigured())

        self._publish(render_refreshing(self.mode))
        outcome = await self.dispatcher.fetch_usage(organization_id, credential)
        self.last_outcome = outcome

        if not outcome.success:
            logger.error(f"Claude usage error: {(outcome.message or '')[:200]}")

        return self._publish(render(outcome, self.mode))

    def toggle_mode(self) -> DisplayMode:
        """Switch between "left" and "used", re-rendering the last outcome."""
        self.mode = DisplayMode.USED if self.mode == DisplayMode.LEFT else DisplayMode.LEFT
        if self.last_outcome is not None:
            self._publish(render(self.last_outcome, self.mode))
        return self.mode

    async def start(self) -> asyncio.Task[None] | None:
        """
        Start (or restart) the periodic refresh loop.

        Returns:
            The loop task, or None when auto refresh is disabled
        """
        await self.stop()
        if not self.settings.USAGE_AUTO_REFRESH:
            logger.info("Auto refresh disabled")
            return None

        logger.info(f"Auto refresh every {self.refresh_interval}s")
        self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self) -> None:
        """Stop the periodic refresh loop."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            try:
                await self.refresh()
            except Exception as e:
                # Timer ticks must never kill the loop
                logger.exception(f"Scheduled refresh failed: {e}")

    def debug_info(self) -> str:
        organization_id, credential = self._credentials()
        return debug_info(
            organization_id,
            credential,
            self.settings.USAGE_API_BASE_URL,
            self.settings.USAGE_API_PATH,
        )
