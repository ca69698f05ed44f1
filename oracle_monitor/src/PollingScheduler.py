"""PollingScheduler: Independently ticking feed tasks, one per (chain, pair).

Each FeedTask owns an asyncio task acting as a repeating timer. On every
tick the timer spawns a self-contained fetch that runs alongside it, so a
slow provider never delays the timer (or any other feed). Ticks may overlap
when a fetch outlives the interval.

A fetch that completes after its FeedTask was stopped or replaced is
discarded: nothing is published and nothing is journaled.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping, Sequence

from .adapters import AdapterError, BaseAdapter, UpstreamError
from .FeedKey import FeedKey
from .PriceReading import PriceReading, ProviderKind

if TYPE_CHECKING:
    from .Journal import Journal
    from .OracleConfig import OracleConfig
    from .SubscriptionRouter import SubscriptionRouter

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class FeedTask:
    """Scheduler-owned recurring work for one feed.

    :ivar key: Feed identity.
    :ivar provider_kind: Adapter polled on each tick.
    :ivar interval: Seconds between ticks.
    :ivar task: Timer task; cancelling it stops the feed.
    :ivar successes: Ticks that produced a reading.
    :ivar failures: Ticks that failed.
    :ivar last_reading: Most recent published reading.
    :ivar in_flight: Fetches still running.
    """

    key: FeedKey
    provider_kind: ProviderKind
    interval: float
    task: asyncio.Task | None = None
    successes: int = 0
    failures: int = 0
    last_reading: PriceReading | None = None
    in_flight: set[asyncio.Task] = field(default_factory=set)

    def cancel(self) -> None:
        """Cancel the timer; in-flight fetches are left to finish."""
        if self.task is not None:
            self.task.cancel()


class PollingScheduler:
    """Owns the FeedTasks and drives adapter → router/journal on every tick.

    :cvar DEFAULT_PAIRS: Working set of pairs polled per chain.
    :cvar DEFAULT_INTERVAL: Seconds between ticks.
    :ivar adapters: Adapter instance per provider kind.
    :ivar router: Router receiving successful readings.
    :ivar journal: Journal receiving tick outcomes.
    :ivar pairs: Pairs polled for every started chain.
    :ivar interval: Seconds between ticks.
    """

    DEFAULT_PAIRS: tuple[str, ...] = ("BTC/USD", "ETH/USD")
    DEFAULT_INTERVAL = 3.0

    def __init__(
        self,
        adapters: Mapping[ProviderKind, BaseAdapter],
        router: SubscriptionRouter,
        journal: Journal,
        pairs: Sequence[str] = DEFAULT_PAIRS,
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        """Initialize the scheduler.

        :param adapters: Adapter per provider kind.
        :param router: Router for successful readings.
        :param journal: Journal for tick outcomes.
        :param pairs: Pairs to poll (default: BTC/USD, ETH/USD).
        :param interval: Seconds between ticks (default: 3.0).
        :raises ValueError: If interval is not positive or pairs is empty.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        if not pairs:
            raise ValueError("At least one trading pair must be specified")

        self.adapters = dict(adapters)
        self.router = router
        self.journal = journal
        self.pairs = [FeedKey.normalize_pair(p) for p in pairs]
        self.interval = interval
        self._feeds: dict[FeedKey, FeedTask] = {}

    def start(self, config: OracleConfig) -> list[FeedKey]:
        """Install one FeedTask per pair for the config's source chain.

        Must be called from within a running event loop. A feed already
        running for a key is cancelled before its replacement is installed.

        :param config: Oracle configuration.
        :returns: Keys of the installed feeds.
        :raises ValueError: If the provider is unknown or has no adapter.
        """
        kind = config.provider
        if kind not in self.adapters:
            raise ValueError(f"No adapter configured for {kind.value}")

        keys = []
        for pair in self.pairs:
            key = FeedKey(config.source_chain, pair)
            self._install(FeedTask(key=key, provider_kind=kind, interval=self.interval))
            keys.append(key)

        logger.info(
            f"Started {len(keys)} feeds on {config.source_chain} via {kind.value} "
            f"every {self.interval}s"
        )
        return keys

    def _install(self, feed: FeedTask) -> None:
        # No await between cancel and store: the swap is atomic for the loop
        previous = self._feeds.pop(feed.key, None)
        if previous is not None:
            previous.cancel()
            logger.debug(f"Replaced running feed {feed.key}")

        loop = asyncio.get_running_loop()
        feed.task = loop.create_task(self._run_feed(feed), name=f"feed:{feed.key}")
        self._feeds[feed.key] = feed

    def stop(self) -> None:
        """Cancel every feed. Safe to call when nothing is running."""
        if not self._feeds:
            return
        for feed in self._feeds.values():
            feed.cancel()
        logger.info(f"Stopped {len(self._feeds)} feeds")
        self._feeds.clear()

    def stop_feed(self, key: FeedKey) -> bool:
        """Cancel a single feed.

        :returns: True if a feed was running for the key.
        """
        feed = self._feeds.pop(key, None)
        if feed is None:
            return False
        feed.cancel()
        return True

    def is_active(self, key: FeedKey) -> bool:
        return key in self._feeds

    def active_keys(self) -> list[FeedKey]:
        return list(self._feeds)

    def get_feed(self, key: FeedKey) -> FeedTask | None:
        return self._feeds.get(key)

    def _is_current(self, feed: FeedTask) -> bool:
        return self._feeds.get(feed.key) is feed

    async def _run_feed(self, feed: FeedTask) -> None:
        while True:
            tick = asyncio.create_task(self._tick(feed), name=f"tick:{feed.key}")
            feed.in_flight.add(tick)
            tick.add_done_callback(feed.in_flight.discard)
            await asyncio.sleep(feed.interval)

    async def _tick(self, feed: FeedTask) -> None:
        adapter = self.adapters[feed.provider_kind]
        provider = feed.provider_kind.value
        key = feed.key

        try:
            reading = await adapter.fetch(key.chain, key.pair)
        except AdapterError as e:
            error: AdapterError = e
        except Exception as e:
            logger.exception(f"[{provider}] Unexpected error fetching {key}")
            error = UpstreamError(f"Unexpected adapter failure: {e!r}")
        else:
            if not self._is_current(feed):
                logger.debug(f"Discarding stale reading for {key}")
                return
            feed.successes += 1
            feed.last_reading = reading
            self.router.publish(reading)
            self.journal.log_price_feed(reading)
            return

        if not self._is_current(feed):
            logger.debug(f"Discarding stale failure for {key}: {error}")
            return
        feed.failures += 1
        logger.warning(f"[{provider}] Fetch failed for {key}: {error.kind}: {error}")
        self.journal.log_fetch_failure(key, provider, error.kind, error)
