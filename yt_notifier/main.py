"""
Main entry point for YT Notifier.

Runs the polling loop that checks every configured channel for a new
video and announces it on the channel's webhook.
"""

import argparse
import asyncio
import enum
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path

import coloredlogs
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from yt_notifier.config import AppConfig, ChannelConfig, load_config
from yt_notifier.detector import NoAction, detect_change
from yt_notifier.errors import (
    FetchError,
    NotificationDeliveryError,
    StoreInitError,
    StoreWriteError,
)
from yt_notifier.feed import FeedFetcher
from yt_notifier.notifier import Notifier
from yt_notifier.storage import KEY_PREFIX, StateStore, channel_key
from yt_notifier.webhook import WebhookNotifier, build_payload

logger = logging.getLogger(__name__)


class ChannelOutcome(enum.Enum):
    """Result of checking one channel during a pass."""

    NOTIFIED = "notified"
    UNCHANGED = "unchanged"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass
class CycleStats:
    """Counters for one polling pass."""

    checked: int = 0
    notified: int = 0
    unchanged: int = 0
    empty: int = 0
    failed: int = 0

    def record(self, outcome: ChannelOutcome) -> None:
        """Count the outcome of one channel."""
        self.checked += 1
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)


class YouTubeNotifier:
    """
    Main notifier application.

    Coordinates feed fetching, change detection, delivery and state
    persistence. Channels are processed one at a time and a new pass only
    starts once the previous one has finished.
    """

    def __init__(
        self,
        config: AppConfig,
        store: StateStore | None = None,
        fetcher: FeedFetcher | None = None,
        notifier: Notifier | None = None,
    ):
        """
        Initialize the notifier.

        Parameters
        ----------
        config : AppConfig
            Validated application configuration.
        store : StateStore | None
            State store; created from the config in ``start`` if omitted.
        fetcher : FeedFetcher | None
            Feed fetcher; created from the config in ``start`` if omitted.
        notifier : Notifier | None
            Delivery backend; a webhook notifier is created if omitted.
        """
        self.config = config
        self.store = store
        self.fetcher = fetcher
        self.notifier = notifier
        self._running = False
        self._task: asyncio.Task | None = None

    @classmethod
    def from_file(cls, config_path: str | Path) -> "YouTubeNotifier":
        """Create a notifier from a configuration file."""
        return cls(load_config(config_path))

    @property
    def channels(self) -> list[ChannelConfig]:
        """Enabled channels in configured order."""
        return [c for c in self.config.channels if c.enabled]

    async def initialize(self) -> None:
        """
        Create and initialize any component that was not injected.

        Raises
        ------
        StoreInitError
            If the state store cannot be created.
        """
        defaults = self.config.defaults

        if self.store is None:
            self.store = StateStore(self.config.storage.state_path)
        await self.store.initialize()

        if self.fetcher is None:
            self.fetcher = FeedFetcher(
                timeout=defaults.request_timeout,
                max_retries=defaults.max_retries,
                user_agent=defaults.user_agent,
                proxy_url=defaults.proxy,
                url_template=defaults.feed_url_template,
            )

        if self.notifier is None:
            self.notifier = WebhookNotifier(
                timeout=defaults.request_timeout,
                user_agent=defaults.user_agent,
                proxy_url=defaults.proxy,
            )

    async def start(self, once: bool = False) -> None:
        """
        Start the notifier.

        Parameters
        ----------
        once : bool
            Run a single pass and return instead of polling forever.
        """
        logger.info(
            "YT Notifier starting. Poll interval: %d ms, %d channel(s)",
            self.config.defaults.poll_interval_ms,
            len(self.channels),
        )

        await self.initialize()
        self._running = True

        for channel in self.channels:
            logger.debug("Watching channel %s (%s)", channel.label, channel.channel_id)

        if once:
            await self.run_cycle()
            return

        self._task = asyncio.create_task(self.run_forever())
        try:
            await self._task
        except asyncio.CancelledError:
            logger.info("Polling task cancelled")

    async def stop(self) -> None:
        """Stop the notifier and close all components."""
        logger.info("Stopping YT Notifier")
        self._running = False

        if self._task and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)

        if self.fetcher:
            await self.fetcher.close()
        if self.notifier:
            await self.notifier.close()
        if self.store:
            await self.store.close()

        logger.info("YT Notifier stopped")

    async def run_forever(self) -> None:
        """
        Run a pass immediately, then one pass per poll interval.

        The interval is measured from the start of a pass. A pass that
        overran the interval is followed immediately by the next one.
        """
        loop = asyncio.get_running_loop()
        interval = self.config.poll_interval

        while self._running:
            started = loop.time()
            await self.run_cycle()

            if not self._running:
                break

            delay = max(0.0, interval - (loop.time() - started))
            logger.debug("Next pass in %.1f seconds", delay)
            await asyncio.sleep(delay)

    async def run_cycle(self) -> CycleStats:
        """
        Check every enabled channel once.

        A failure on one channel is logged and never prevents the
        remaining channels from being checked.

        Returns
        -------
        CycleStats
            Outcome counters for this pass.
        """
        stats = CycleStats()

        for channel in self.channels:
            try:
                outcome = await self._check_channel(channel)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Unexpected error checking channel %s", channel.channel_id)
                outcome = ChannelOutcome.FAILED
            stats.record(outcome)

        logger.info(
            "Pass complete: %d checked, %d notified, %d unchanged, %d empty, %d failed",
            stats.checked,
            stats.notified,
            stats.unchanged,
            stats.empty,
            stats.failed,
        )
        return stats

    async def _check_channel(self, channel: ChannelConfig) -> ChannelOutcome:
        """
        Check a channel for a new video and announce it.

        Parameters
        ----------
        channel : ChannelConfig
            Channel to check.

        Returns
        -------
        ChannelOutcome
            What happened for this channel.
        """
        if not self.fetcher or not self.store or not self.notifier:
            raise RuntimeError("Components not initialized")

        channel_id = channel.channel_id

        try:
            items = await self.fetcher.fetch(channel_id)
        except FetchError as e:
            logger.warning("[%s] Error checking channel: %s", channel_id, e)
            return ChannelOutcome.FAILED

        if not items:
            logger.debug("[%s] Feed has no entries", channel_id)
            return ChannelOutcome.EMPTY

        latest = items[0]
        key = channel_key(channel_id)
        stored_id = await self.store.get(key)

        action = detect_change(latest, stored_id, self.config.defaults.ping)
        if isinstance(action, NoAction):
            logger.info("[%s] No new video. Last was %s", channel_id, stored_id)
            return ChannelOutcome.UNCHANGED

        payload = build_payload(action.message, self.config.defaults.username)
        try:
            await self.notifier.send(channel.webhook, payload)
        except NotificationDeliveryError as e:
            logger.error(
                "[%s] Failed to deliver notification for %s, will retry next pass: %s",
                channel_id,
                action.new_item_id,
                e,
            )
            return ChannelOutcome.FAILED

        try:
            await self.store.set(key, action.new_item_id)
        except StoreWriteError as e:
            logger.error("[%s] Notification sent but state not saved: %s", channel_id, e)
            return ChannelOutcome.FAILED

        logger.info(
            "[%s] Posted new video: %s (%s)",
            channel_id,
            latest.title,
            latest.live_status.value,
        )
        return ChannelOutcome.NOTIFIED

    async def prune_state(self) -> int:
        """
        Remove stored state for channels that are no longer configured.

        Returns
        -------
        int
            Number of records removed.
        """
        if not self.store:
            raise RuntimeError("Components not initialized")

        configured = {channel_key(c.channel_id) for c in self.config.channels}
        removed = 0
        for key in await self.store.keys():
            if key.startswith(KEY_PREFIX) and key not in configured:
                if await self.store.delete(key):
                    logger.info("Pruned state for %s", key[len(KEY_PREFIX):])
                    removed += 1
        return removed


def setup_logging(verbose: bool = False) -> None:
    """
    Configure application logging.

    Parameters
    ----------
    verbose : bool
        If True, set log level to DEBUG.
    """
    level = logging.DEBUG if verbose else logging.INFO

    coloredlogs.install(
        level=level,
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


async def _run(notifier: YouTubeNotifier, once: bool, prune: bool) -> None:
    """Initialize, optionally prune, then poll."""
    if prune:
        await notifier.initialize()
        removed = await notifier.prune_state()
        logger.info("Pruned %d stale state record(s)", removed)
    await notifier.start(once=once)


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="YouTube channel watcher with webhook notifications",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file (YAML, or a JSON channel list)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single pass over all channels and exit",
    )
    parser.add_argument(
        "--prune",
        action="store_true",
        help="Remove stored state for channels no longer configured",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    config_path = Path(args.config)
    if not config_path.exists():
        logger.error("Configuration file not found: %s", config_path)
        sys.exit(1)

    # Variables already set in the process environment take precedence
    load_dotenv(config_path.parent / ".env")
    load_dotenv(Path.cwd() / ".env")

    try:
        notifier = YouTubeNotifier.from_file(config_path)
    except (ValueError, ValidationError, yaml.YAMLError) as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(notifier.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    exit_code = 0
    try:
        loop.run_until_complete(_run(notifier, args.once, args.prune))
    except StoreInitError as e:
        logger.error("Cannot start: %s", e)
        exit_code = 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        loop.run_until_complete(notifier.stop())
        loop.close()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
