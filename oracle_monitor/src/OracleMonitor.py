"""OracleMonitor: Single entry point of the oracle aggregation engine.

The presentation layer talks only to this class. It composes:
    - Journal: bounded activity log, streamed to log subscribers
    - ConnectionRegistry: one async Web3 connection per chain
    - Provider adapters: one per ProviderKind
    - SubscriptionRouter: per-(chain, pair) reading fanout
    - PollingScheduler: one repeating task per (chain, pair)

Every instance is an isolated engine; nothing is shared between monitors
except the adapters' default HTTP client.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import httpx

from .adapters import BaseAdapter, create_adapters
from .ConnectionRegistry import ClientFactory, ConnectionRegistry
from .FeedKey import FeedKey
from .Journal import Category, Journal, JournalListener, LogEntry, LogStats, Severity
from .OracleConfig import OracleConfig
from .PollingScheduler import PollingScheduler
from .PriceReading import PriceReading, ProviderKind
from .SubscriptionRouter import ReadingListener, SubscriptionRouter

logger = logging.getLogger(__name__)


@dataclass
class DomainMetrics:
    """Headline market figures shown next to the feeds.

    :ivar market_cap: Total market cap (trillions USD).
    :ivar volume_24h: 24h volume (billions USD).
    :ivar btc_dominance: BTC dominance (percent).
    :ivar total_value_locked: DeFi TVL (billions USD).
    """

    market_cap: float = 0.0
    volume_24h: float = 0.0
    btc_dominance: float = 0.0
    total_value_locked: float = 0.0

    @classmethod
    def seeded(cls) -> DomainMetrics:
        """Starting values used when an oracle is activated."""
        return cls(
            market_cap=2.1,
            volume_24h=84.2,
            btc_dominance=42.1,
            total_value_locked=156.8,
        )


class OracleMonitor:
    """Facade over the polling, fanout and journaling components.

    :ivar journal: Activity journal.
    :ivar connections: Per-chain connection registry.
    :ivar router: Reading subscription router.
    :ivar adapters: Adapter per provider kind.
    :ivar scheduler: Feed scheduler.
    :ivar metrics: Domain metrics, seeded on start.
    :ivar config: Configuration of the running oracle, if any.
    """

    def __init__(
        self,
        endpoints: dict[str, str] | None = None,
        pairs: Sequence[str] = PollingScheduler.DEFAULT_PAIRS,
        interval: float = PollingScheduler.DEFAULT_INTERVAL,
        journal_capacity: int = Journal.DEFAULT_CAPACITY,
        client_factory: ClientFactory | None = None,
        http_client: httpx.AsyncClient | None = None,
        adapters: Mapping[ProviderKind, BaseAdapter] | None = None,
        connect: bool = True,
    ) -> None:
        """Build an engine and connect to the configured chains.

        :param endpoints: Chain to RPC URL mapping (default: public endpoints).
        :param pairs: Pairs polled per chain (default: BTC/USD, ETH/USD).
        :param interval: Seconds between ticks (default: 3.0).
        :param journal_capacity: Maximum journal entries (default: 100).
        :param client_factory: Builds a Web3 client per endpoint.
        :param http_client: HTTP client for REST adapters (default: shared client).
        :param adapters: Adapter overrides per provider kind.
        :param connect: Connect every chain during construction (default: True).
        """
        self.journal = Journal(capacity=journal_capacity)
        self.journal.log_system_event(
            "Cross-chain oracle monitor initialized", Severity.SUCCESS, "system"
        )

        self.connections = ConnectionRegistry(
            self.journal, endpoints=endpoints, client_factory=client_factory
        )
        if connect:
            self.connections.connect_all()

        self.router = SubscriptionRouter()
        self.adapters: dict[ProviderKind, BaseAdapter] = create_adapters(
            self.connections, client=http_client
        )
        if adapters:
            self.adapters.update(adapters)

        self.scheduler = PollingScheduler(
            self.adapters, self.router, self.journal, pairs=pairs, interval=interval
        )
        self.metrics = DomainMetrics()
        self.config: OracleConfig | None = None

        logger.info(
            f"OracleMonitor initialized: chains={list(self.connections.endpoints)}, "
            f"connected={self.connections.list_connected_chains()}, "
            f"pairs={self.scheduler.pairs}, interval={interval}s"
        )

    @property
    def is_running(self) -> bool:
        return bool(self.scheduler.active_keys())

    def start_oracle(self, config: OracleConfig | Mapping[str, Any]) -> bool:
        """Validate the configuration and start polling its source chain.

        Must be called from within a running event loop.

        :param config: OracleConfig or a mapping accepted by OracleConfig.from_mapping.
        :returns: True if feeds were started.
        """
        if not isinstance(config, OracleConfig):
            config = OracleConfig.from_mapping(config)
        if not config.is_complete:
            logger.debug(f"Ignoring incomplete oracle configuration: {config}")
            return False

        try:
            provider = config.provider
        except ValueError as e:
            self.journal.log_error("Failed to start oracle system", e, Category.ORACLE)
            return False

        self.journal.log_oracle_start(config)

        if not self.connections.is_connected(config.source_chain):
            self.journal.log_error(
                f"Cannot start oracle: {config.source_chain} network not connected",
                category=Category.ORACLE,
            )
            return False

        self.metrics = DomainMetrics.seeded()
        self.scheduler.start(config)
        self.config = config

        self.journal.log_oracle_event(
            f"Oracle system activated with {provider.value} provider",
            Severity.SUCCESS,
            provider.value,
        )
        return True

    def stop_all(self, reason: str | None = None) -> None:
        """Stop every feed and drop every reading subscription. Idempotent."""
        was_running = self.is_running
        self.scheduler.stop()
        self.router.clear()
        if was_running:
            self.journal.log_oracle_stop(reason)

    # Connection queries

    def is_chain_connected(self, chain: str) -> bool:
        return self.connections.is_connected(chain)

    def get_connected_chains(self) -> list[str]:
        return self.connections.list_connected_chains()

    # Reading stream

    def subscribe(self, chain: str, pair: str, listener: ReadingListener) -> None:
        self.router.subscribe(chain, pair, listener)

    def unsubscribe(self, chain: str, pair: str, listener: ReadingListener) -> None:
        self.router.unsubscribe(chain, pair, listener)

    def get_latest_reading(self, chain: str, pair: str) -> PriceReading | None:
        """Last reading published for a running feed, if any."""
        feed = self.scheduler.get_feed(FeedKey(chain, pair))
        return feed.last_reading if feed else None

    # Journal stream

    def subscribe_logs(self, listener: JournalListener) -> None:
        self.journal.subscribe(listener)

    def unsubscribe_logs(self, listener: JournalListener) -> None:
        self.journal.unsubscribe(listener)

    def get_logs(self) -> list[LogEntry]:
        return self.journal.get_logs()

    def get_log_stats(self) -> LogStats:
        return self.journal.get_log_stats()

    def clear_logs(self) -> None:
        self.journal.clear()

    async def run_benchmark(self, chains: Sequence[str] | None = None) -> None:
        """Measure latency, TPS and gas price for the selected chains.

        :param chains: Chains to benchmark (default: the running config's
            source and target chains).
        """
        self.journal.log_benchmark_start()

        if chains is None:
            chains = (
                [self.config.source_chain, self.config.target_chain] if self.config else []
            )
        chains = [c for c in chains if c]
        if not chains:
            self.journal.log_error(
                "No chains selected for benchmark", category=Category.PERFORMANCE
            )
            return

        for chain in chains:
            started = time.perf_counter()
            metrics = await self.connections.get_chain_metrics(chain)
            latency_ms = (time.perf_counter() - started) * 1000
            if metrics is None:
                self.journal.log_error(
                    f"Failed to get metrics for {chain}", category=Category.PERFORMANCE
                )
                continue
            self.journal.log_benchmark_result(
                chain, latency_ms, metrics.tps, metrics.gas_price_gwei
            )

        self.journal.log_performance_event(
            "Cross-chain benchmark analysis completed", Severity.SUCCESS, "benchmark"
        )

    async def run(self, config: OracleConfig | Mapping[str, Any]) -> None:
        """Start the oracle and keep it running until cancelled.

        :param config: Oracle configuration.
        :raises RuntimeError: If the oracle could not be started.
        """
        if not isinstance(config, OracleConfig):
            config = OracleConfig.from_mapping(config)

        await self.connections.refresh(config.source_chain)
        if not self.start_oracle(config):
            raise RuntimeError(f"Oracle could not be started for {config.source_chain}")

        try:
            await asyncio.Event().wait()
        finally:
            await self.close("shutdown")

    async def close(self, reason: str | None = None) -> None:
        """Stop all feeds and release the shared HTTP client."""
        self.stop_all(reason)
        await BaseAdapter.close_shared_client()
