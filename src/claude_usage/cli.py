"""
claude-usage - command-line front end for the usage pipeline.

Usage:
    claude-usage --org ORG --session-key KEY
    claude-usage --watch --interval 60
    claude-usage --debug-info

Inputs fall back to CLAUDE_USAGE_ORGANIZATION_CODE / CLAUDE_USAGE_SESSION_KEY
(environment or .env); nothing is persisted.
"""

import argparse
import asyncio
import logging
import sys
from typing import Any

from pydantic import SecretStr

from .core.config import Settings
from .schemas.usage import DisplayMode, SnapshotState, UsageSnapshot
from .services.usage import UsageMonitor

logger = logging.getLogger("claude_usage")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claude-usage",
        description="Fetch Claude five-hour usage through a Cloudflare-resilient pipeline",
    )
    parser.add_argument("--org", help="Claude organization code")
    parser.add_argument("--session-key", help="sessionKey value or full Cookie header")
    parser.add_argument("--mode", choices=[m.value for m in DisplayMode], help="Display left or used")
    parser.add_argument("--watch", action="store_true", help="Keep refreshing on a timer")
    parser.add_argument("--interval", type=int, help="Refresh period in seconds (minimum 30)")
    parser.add_argument("--debug-info", action="store_true", help="Show configuration summary and exit")
    parser.add_argument("--json", action="store_true", help="Print snapshots as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Build settings from the environment, overridden by CLI flags."""
    overrides: dict[str, Any] = {}
    if args.org:
        overrides["USAGE_ORGANIZATION_CODE"] = args.org.strip()
    if args.session_key:
        overrides["USAGE_SESSION_KEY"] = SecretStr(args.session_key.strip())
    if args.mode:
        overrides["USAGE_MODE"] = args.mode
    if args.interval is not None:
        overrides["USAGE_REFRESH_SECONDS"] = args.interval
    return Settings().model_copy(update=overrides)


def print_snapshot(snapshot: UsageSnapshot, as_json: bool = False) -> None:
    if snapshot.state == SnapshotState.REFRESHING:
        return
    if as_json:
        print(snapshot.model_dump_json())
        return
    print(snapshot.text)
    print(snapshot.tooltip)


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(args)
    monitor = UsageMonitor(
        settings,
        on_render=lambda snapshot: print_snapshot(snapshot, args.json),
    )

    if args.debug_info:
        print(monitor.debug_info())
        return 0

    try:
        snapshot = await monitor.refresh()
        if not args.watch:
            return 0 if snapshot.state == SnapshotState.OK else 1

        task = await monitor.start()
        if task is None:
            logger.warning("Auto refresh is disabled (CLAUDE_USAGE_AUTO_REFRESH=false)")
            return 0
        await task
        return 0
    finally:
        await monitor.stop()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
