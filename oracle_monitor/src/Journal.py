"""Journal: Bounded, categorized activity log with snapshot subscribers.

Every notable thing the engine does (connections, price updates, fetch
failures, oracle start/stop, benchmarks) is appended here. Entries are kept
newest-first and the oldest are evicted once the capacity is reached.
Subscribers receive the full snapshot on subscribe and after every change.

Each entry is also mirrored to Python logging so the console shows the same
activity stream.

.. code-block:: python

    >>> journal = Journal(capacity=2)
    >>> _ = journal.log_system_event("one")
    >>> _ = journal.log_system_event("two")
    >>> _ = journal.log_system_event("three")
    >>> [e.message for e in journal.get_logs()]
    ['three', 'two']
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping

if TYPE_CHECKING:
    from .FeedKey import FeedKey
    from .OracleConfig import OracleConfig
    from .PriceReading import PriceReading

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    """How an entry should be presented."""

    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    INFO = "info"


class Category(str, Enum):
    """Which part of the system an entry concerns."""

    ORACLE = "oracle"
    SECURITY = "security"
    PERFORMANCE = "performance"
    BLOCKCHAIN = "blockchain"
    SYSTEM = "system"


_LOG_LEVELS = {
    Severity.SUCCESS: logging.INFO,
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class LogEntry:
    """One immutable journal entry.

    :ivar id: Unique identifier.
    :ivar message: Human-readable message.
    :ivar severity: Entry severity.
    :ivar category: Entry category.
    :ivar created_at: Wall-clock time formatted as HH:MM:SS.
    :ivar source: Optional emitter tag (e.g., "RestAggregator-ethereum").
    :ivar details: Optional structured payload.
    """

    id: str
    message: str
    severity: Severity
    category: Category
    created_at: str
    source: str | None = None
    details: Mapping[str, Any] | None = None


@dataclass
class LogStats:
    """Counts over the current journal contents.

    :ivar total: Number of entries.
    :ivar by_severity: Count per severity value.
    :ivar by_category: Count per category value.
    :ivar error_rate: Percentage of error entries (one decimal).
    :ivar success_rate: Percentage of success entries (one decimal).
    """

    total: int
    by_severity: dict[str, int] = field(default_factory=dict)
    by_category: dict[str, int] = field(default_factory=dict)
    error_rate: float = 0.0
    success_rate: float = 0.0


JournalListener = Callable[[list[LogEntry]], None]


class Journal:
    """Append-only, capacity-bounded store of LogEntry objects.

    :cvar DEFAULT_CAPACITY: Entries kept when no capacity is given.
    :ivar capacity: Maximum number of entries retained.
    """

    DEFAULT_CAPACITY = 100

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        """Initialize an empty journal.

        :param capacity: Maximum entries retained (default: 100).
        :raises ValueError: If capacity is less than 1.
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        # appendleft on a bounded deque drops from the right, i.e. the oldest
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._listeners: list[JournalListener] = []

    def __len__(self) -> int:
        return len(self._entries)

    def subscribe(self, listener: JournalListener) -> None:
        """Register a snapshot listener and replay the current snapshot to it.

        :param listener: Callable receiving the newest-first entry list.
        """
        self._listeners.append(listener)
        self._deliver(listener, self.get_logs())

    def unsubscribe(self, listener: JournalListener) -> None:
        """Remove a snapshot listener (no-op if not registered)."""
        self._listeners = [cb for cb in self._listeners if cb is not listener]

    def append(
        self,
        message: str,
        severity: Severity | str = Severity.INFO,
        category: Category | str = Category.SYSTEM,
        source: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> LogEntry:
        """Create an entry, store it first and notify subscribers.

        :param message: Human-readable message.
        :param severity: Entry severity (default: info).
        :param category: Entry category (default: system).
        :param source: Optional emitter tag.
        :param details: Optional structured payload (copied).
        :returns: The stored LogEntry.
        :raises ValueError: If severity or category is not a known value.
        """
        severity = Severity(severity)
        category = Category(category)
        entry = LogEntry(
            id=f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}",
            message=message,
            severity=severity,
            category=category,
            created_at=datetime.now().strftime("%H:%M:%S"),
            source=source,
            details=dict(details) if details is not None else None,
        )
        self._entries.appendleft(entry)
        self._notify()

        if details:
            logger.log(_LOG_LEVELS[severity], f"[{category.name}] {message} {entry.details}")
        else:
            logger.log(_LOG_LEVELS[severity], f"[{category.name}] {message}")
        return entry

    def clear(self) -> None:
        """Remove every entry and notify subscribers with the empty snapshot."""
        self._entries.clear()
        self._notify()

    def _notify(self) -> None:
        snapshot = self.get_logs()
        for listener in list(self._listeners):
            self._deliver(listener, list(snapshot))

    @staticmethod
    def _deliver(listener: JournalListener, snapshot: list[LogEntry]) -> None:
        try:
            listener(snapshot)
        except Exception:
            logger.exception(f"Journal listener {listener!r} raised; continuing")

    # Category helpers

    def log_oracle_event(
        self,
        message: str,
        severity: Severity | str = Severity.SUCCESS,
        source: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> LogEntry:
        return self.append(message, severity, Category.ORACLE, source, details)

    def log_security_event(
        self,
        message: str,
        severity: Severity | str = Severity.WARNING,
        source: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> LogEntry:
        return self.append(message, severity, Category.SECURITY, source, details)

    def log_performance_event(
        self,
        message: str,
        severity: Severity | str = Severity.INFO,
        source: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> LogEntry:
        return self.append(message, severity, Category.PERFORMANCE, source, details)

    def log_blockchain_event(
        self,
        message: str,
        severity: Severity | str = Severity.INFO,
        source: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> LogEntry:
        return self.append(message, severity, Category.BLOCKCHAIN, source, details)

    def log_system_event(
        self,
        message: str,
        severity: Severity | str = Severity.INFO,
        source: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> LogEntry:
        return self.append(message, severity, Category.SYSTEM, source, details)

    # Domain helpers

    def log_price_feed(self, reading: PriceReading) -> LogEntry:
        """Record a successful price update."""
        provider = reading.provider.value
        message = (
            f"Price updated: {reading.pair} = ${reading.price:,.2f} "
            f"({provider} via {reading.chain})"
        )
        details = {
            "chain": reading.chain,
            "pair": reading.pair,
            "price": reading.price,
            "provider": provider,
            "latency": f"{reading.latency_ms}ms",
        }
        return self.log_oracle_event(
            message, Severity.SUCCESS, f"{provider}-{reading.chain}", details
        )

    def log_fetch_failure(
        self, key: FeedKey, provider: str, kind: str, error: BaseException
    ) -> LogEntry:
        """Record a failed fetch for one feed.

        :param key: Feed that was polled.
        :param provider: Provider name.
        :param kind: Failure kind (e.g., "UpstreamError").
        :param error: The exception raised by the adapter.
        """
        message = f"{provider} fetch failed for {key.pair} on {key.chain}: {kind}"
        details = {
            "chain": key.chain,
            "pair": key.pair,
            "provider": provider,
            "error": kind,
            "reason": str(error),
        }
        return self.log_oracle_event(
            message, Severity.ERROR, f"{provider}-{key.chain}", details
        )

    def log_connection_status(
        self,
        chain: str,
        connected: bool,
        details: Mapping[str, Any] | None = None,
    ) -> LogEntry:
        status = "connected" if connected else "disconnected"
        severity = Severity.SUCCESS if connected else Severity.ERROR
        return self.log_blockchain_event(
            f"{chain} network {status}", severity, chain, details
        )

    def log_oracle_start(self, config: OracleConfig) -> LogEntry:
        provider = config.provider_kind
        provider_name = getattr(provider, "value", provider)
        message = (
            f"Oracle started: {provider_name} monitoring {config.data_kind} "
            f"({config.source_chain} -> {config.target_chain})"
        )
        return self.log_oracle_event(
            message, Severity.SUCCESS, str(provider_name), config.as_dict()
        )

    def log_oracle_stop(self, reason: str | None = None) -> LogEntry:
        message = f"Oracle stopped: {reason}" if reason else "Oracle stopped by user"
        return self.log_oracle_event(message, Severity.WARNING, "system")

    def log_error(
        self,
        message: str,
        error: BaseException | str | None = None,
        category: Category | str = Category.SYSTEM,
    ) -> LogEntry:
        """Record an error with an optional exception payload."""
        details = None
        if error is not None:
            details = {"error": str(error)}
            if isinstance(error, BaseException):
                details["type"] = type(error).__name__
        return self.append(message, Severity.ERROR, category, "error-handler", details)

    def log_benchmark_start(self) -> LogEntry:
        return self.log_performance_event(
            "Starting cross-chain benchmark tests...", Severity.INFO, "benchmark"
        )

    def log_benchmark_result(
        self, chain: str, latency_ms: float, tps: float, gas_price: float
    ) -> LogEntry:
        message = (
            f"Benchmark result for {chain}: {latency_ms:.0f}ms latency, "
            f"{tps:.2f} TPS, {gas_price:.2f} gwei"
        )
        details = {"chain": chain, "latency": latency_ms, "tps": tps, "gasPrice": gas_price}
        return self.log_performance_event(message, Severity.SUCCESS, "benchmark", details)

    def log_security_scan(
        self,
        name: str,
        result: str,
        details: Mapping[str, Any] | None = None,
    ) -> LogEntry:
        """Record a security scan outcome ("passed", "failed" or "warning")."""
        severity = {
            "passed": Severity.SUCCESS,
            "failed": Severity.ERROR,
        }.get(result, Severity.WARNING)
        return self.log_security_event(
            f"Security scan: {name} - {result.upper()}",
            severity,
            "security-scanner",
            details,
        )

    # Queries

    def get_logs(self) -> list[LogEntry]:
        """Return a newest-first copy of all entries."""
        return list(self._entries)

    def get_logs_by_category(self, category: Category | str) -> list[LogEntry]:
        category = Category(category)
        return [e for e in self._entries if e.category is category]

    def get_logs_by_severity(self, severity: Severity | str) -> list[LogEntry]:
        severity = Severity(severity)
        return [e for e in self._entries if e.severity is severity]

    def get_recent_logs(self, count: int = 10) -> list[LogEntry]:
        return self.get_logs()[:count]

    def get_log_stats(self) -> LogStats:
        """Aggregate counts and rates over the current entries.

        .. code-block:: python

            >>> journal = Journal()
            >>> _ = journal.log_oracle_event("ok")
            >>> _ = journal.log_error("bad")
            >>> journal.get_log_stats().error_rate
            50.0
        """
        total = len(self._entries)
        by_severity = {s.value: 0 for s in Severity}
        by_category = {c.value: 0 for c in Category}
        for entry in self._entries:
            by_severity[entry.severity.value] += 1
            by_category[entry.category.value] += 1

        def rate(count: int) -> float:
            return round(count / total * 100, 1) if total else 0.0

        return LogStats(
            total=total,
            by_severity=by_severity,
            by_category=by_category,
            error_rate=rate(by_severity[Severity.ERROR.value]),
            success_rate=rate(by_severity[Severity.SUCCESS.value]),
        )
