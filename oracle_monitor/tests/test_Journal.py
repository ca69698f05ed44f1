"""Unit tests for Journal."""

import dataclasses
import logging

import pytest

from oracle_monitor.src.FeedKey import FeedKey
from oracle_monitor.src.Journal import Category, Journal, LogEntry, Severity
from oracle_monitor.src.OracleConfig import OracleConfig
from oracle_monitor.src.PriceReading import PriceReading, ProviderKind


class TestJournalAppend:
    """Test entry creation and ordering."""

    def test_append_returns_entry(self) -> None:
        """append should build a fully populated entry."""
        journal = Journal()
        entry = journal.append(
            "hello", Severity.WARNING, Category.SECURITY, "scanner", {"k": 1}
        )

        assert entry.message == "hello"
        assert entry.severity is Severity.WARNING
        assert entry.category is Category.SECURITY
        assert entry.source == "scanner"
        assert entry.details == {"k": 1}
        assert len(entry.created_at) == 8  # HH:MM:SS
        assert entry.id

    def test_defaults(self) -> None:
        """Default severity is info and default category is system."""
        entry = Journal().append("plain")
        assert entry.severity is Severity.INFO
        assert entry.category is Category.SYSTEM
        assert entry.source is None
        assert entry.details is None

    def test_string_enums_accepted(self) -> None:
        """Severity and category may be given as strings."""
        entry = Journal().append("x", "error", "oracle")
        assert entry.severity is Severity.ERROR
        assert entry.category is Category.ORACLE

    def test_invalid_category(self) -> None:
        """Unknown categories should raise ValueError."""
        with pytest.raises(ValueError):
            Journal().append("x", "info", "network")

    def test_newest_first(self) -> None:
        """Entries should be stored newest-first."""
        journal = Journal()
        for i in range(3):
            journal.append(f"m{i}")
        assert [e.message for e in journal.get_logs()] == ["m2", "m1", "m0"]

    def test_unique_ids(self) -> None:
        """Every entry should get a distinct id."""
        journal = Journal(capacity=500)
        ids = {journal.append("x").id for _ in range(500)}
        assert len(ids) == 500

    def test_entries_immutable(self) -> None:
        """Entries should be frozen."""
        entry = Journal().append("x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.message = "y"  # type: ignore[misc]

    def test_details_copied(self) -> None:
        """Mutating the caller's dict should not change the stored entry."""
        details = {"a": 1}
        entry = Journal().append("x", details=details)
        details["a"] = 2
        assert entry.details == {"a": 1}

    def test_mirrors_to_logging(self, caplog: pytest.LogCaptureFixture) -> None:
        """Entries should be mirrored to Python logging at a matching level."""
        journal = Journal()
        with caplog.at_level(logging.INFO, logger="oracle_monitor.src.Journal"):
            journal.log_error("boom")
        assert any(
            r.levelno == logging.ERROR and "[SYSTEM] boom" in r.getMessage()
            for r in caplog.records
        )

    def test_mirrored_message_includes_details(self, caplog: pytest.LogCaptureFixture) -> None:
        """The mirrored record carries the category, message and details as text."""
        journal = Journal()
        with caplog.at_level(logging.INFO, logger="oracle_monitor.src.Journal"):
            journal.log_oracle_event("ok", details={"pair": "ETH/USD"})
        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert record.getMessage() == "[ORACLE] ok {'pair': 'ETH/USD'}"
        assert not record.args


class TestJournalCapacity:
    """Test capacity bound and eviction."""

    def test_invalid_capacity(self) -> None:
        """Capacity below 1 should raise ValueError."""
        with pytest.raises(ValueError, match="capacity must be at least 1"):
            Journal(capacity=0)

    def test_default_capacity(self) -> None:
        """Default capacity is 100."""
        journal = Journal()
        for i in range(150):
            journal.append(f"m{i}")
        assert len(journal) == 100

    def test_eviction_keeps_newest(self) -> None:
        """After N appends beyond capacity, the oldest N are gone."""
        journal = Journal(capacity=5)
        for i in range(8):
            journal.append(f"m{i}")

        messages = [e.message for e in journal.get_logs()]
        assert messages == ["m7", "m6", "m5", "m4", "m3"]
        assert not {"m0", "m1", "m2"} & set(messages)

    def test_size_never_exceeds_capacity(self) -> None:
        """Size should stay bounded after every append."""
        journal = Journal(capacity=3)
        for i in range(10):
            journal.append(f"m{i}")
            assert len(journal) <= 3


class TestJournalSubscribers:
    """Test snapshot subscription."""

    def test_subscribe_replays_snapshot(self) -> None:
        """A new subscriber immediately receives the current snapshot."""
        journal = Journal()
        journal.append("a")
        journal.append("b")

        received: list[list[LogEntry]] = []
        journal.subscribe(received.append)

        assert len(received) == 1
        assert [e.message for e in received[0]] == ["b", "a"]

    def test_subscribe_empty_journal(self) -> None:
        """Subscribing to an empty journal yields an empty snapshot."""
        received: list[list[LogEntry]] = []
        Journal().subscribe(received.append)
        assert received == [[]]

    def test_push_on_append(self) -> None:
        """Every append pushes the full snapshot."""
        journal = Journal()
        received: list[list[LogEntry]] = []
        journal.subscribe(received.append)

        journal.append("a")
        journal.append("b")

        assert [len(s) for s in received] == [0, 1, 2]
        assert received[-1][0].message == "b"

    def test_snapshot_is_a_copy(self) -> None:
        """Mutating a delivered snapshot should not affect the journal."""
        journal = Journal()
        received: list[list[LogEntry]] = []
        journal.subscribe(received.append)
        journal.append("a")

        received[-1].clear()
        assert len(journal) == 1

    def test_unsubscribe(self) -> None:
        """Unsubscribed listeners receive nothing further."""
        journal = Journal()
        journal.append("a")
        calls: list[int] = []

        def listener(snapshot: list[LogEntry]) -> None:
            calls.append(len(snapshot))

        journal.subscribe(listener)
        journal.unsubscribe(listener)
        journal.append("b")
        assert calls == [1]

    def test_failing_listener_isolated(self) -> None:
        """A raising listener should not block the others."""
        journal = Journal()
        calls: list[int] = []

        def bad(snapshot: list[LogEntry]) -> None:
            raise RuntimeError("boom")

        journal.subscribe(bad)
        journal.subscribe(lambda s: calls.append(len(s)))
        journal.append("a")

        assert calls == [0, 1]
        assert len(journal) == 1

    def test_clear_notifies_empty(self) -> None:
        """clear empties the journal and pushes an empty snapshot."""
        journal = Journal()
        journal.append("a")
        received: list[list[LogEntry]] = []
        journal.subscribe(received.append)

        journal.clear()

        assert len(journal) == 0
        assert received[-1] == []


class TestJournalHelpers:
    """Test category and domain helpers."""

    def test_category_helpers(self) -> None:
        """Each helper should set its category and default severity."""
        journal = Journal()
        cases = [
            (journal.log_oracle_event, Category.ORACLE, Severity.SUCCESS),
            (journal.log_security_event, Category.SECURITY, Severity.WARNING),
            (journal.log_performance_event, Category.PERFORMANCE, Severity.INFO),
            (journal.log_blockchain_event, Category.BLOCKCHAIN, Severity.INFO),
            (journal.log_system_event, Category.SYSTEM, Severity.INFO),
        ]
        for helper, category, severity in cases:
            entry = helper("msg")
            assert entry.category is category
            assert entry.severity is severity

    def test_log_price_feed(self) -> None:
        """Price updates are success/oracle entries with provenance details."""
        reading = PriceReading(
            price=64250.5,
            observed_at_ms=0,
            decimals=8,
            round_id="1",
            chain="ethereum",
            pair="BTC/USD",
            provider=ProviderKind.ON_CHAIN_AGGREGATOR,
            latency_ms=87,
        )
        entry = Journal().log_price_feed(reading)

        assert entry.severity is Severity.SUCCESS
        assert entry.category is Category.ORACLE
        assert entry.source == "OnChainAggregator-ethereum"
        assert "BTC/USD = $64,250.50" in entry.message
        assert entry.details["latency"] == "87ms"
        assert entry.details["price"] == 64250.5

    def test_log_fetch_failure(self) -> None:
        """Fetch failures are error/oracle entries carrying the failure kind."""
        entry = Journal().log_fetch_failure(
            FeedKey("ethereum", "XRP/USD"),
            "OnChainAggregator",
            "NotConfigured",
            RuntimeError("no feed"),
        )
        assert entry.severity is Severity.ERROR
        assert entry.category is Category.ORACLE
        assert entry.details["error"] == "NotConfigured"
        assert entry.details["reason"] == "no feed"

    def test_log_connection_status(self) -> None:
        """Connection status maps to success/error blockchain entries."""
        journal = Journal()
        up = journal.log_connection_status("ethereum", True)
        down = journal.log_connection_status("bsc", False)

        assert up.message == "ethereum network connected"
        assert up.severity is Severity.SUCCESS
        assert down.message == "bsc network disconnected"
        assert down.severity is Severity.ERROR
        assert down.category is Category.BLOCKCHAIN

    def test_log_oracle_start_and_stop(self) -> None:
        """Oracle start/stop entries describe the configuration and reason."""
        journal = Journal()
        config = OracleConfig("Ethereum", "Polygon", "Chainlink", "Price Feed")
        start = journal.log_oracle_start(config)
        stop = journal.log_oracle_stop()
        stop_reason = journal.log_oracle_stop("shutdown")

        assert "Chainlink monitoring Price Feed (Ethereum -> Polygon)" in start.message
        assert start.details["source_chain"] == "Ethereum"
        assert stop.message == "Oracle stopped by user"
        assert stop.severity is Severity.WARNING
        assert stop_reason.message == "Oracle stopped: shutdown"

    def test_log_error(self) -> None:
        """log_error records the exception type and message."""
        entry = Journal().log_error("failed", ValueError("bad"), Category.ORACLE)
        assert entry.severity is Severity.ERROR
        assert entry.category is Category.ORACLE
        assert entry.details == {"error": "bad", "type": "ValueError"}

    def test_log_security_scan(self) -> None:
        """Scan results map passed/failed/other to success/error/warning."""
        journal = Journal()
        assert journal.log_security_scan("MEV", "passed").severity is Severity.SUCCESS
        assert journal.log_security_scan("MEV", "failed").severity is Severity.ERROR
        assert journal.log_security_scan("MEV", "warning").severity is Severity.WARNING
        assert journal.get_logs()[0].message == "Security scan: MEV - WARNING"

    def test_log_benchmark(self) -> None:
        """Benchmark helpers write performance entries."""
        journal = Journal()
        start = journal.log_benchmark_start()
        result = journal.log_benchmark_result("polygon", 512.4, 35.5, 30.0)

        assert start.category is Category.PERFORMANCE
        assert result.severity is Severity.SUCCESS
        assert result.message == "Benchmark result for polygon: 512ms latency, 35.50 TPS, 30.00 gwei"


class TestJournalQueries:
    """Test filters and statistics."""

    def test_filters(self) -> None:
        """Entries can be filtered by category and severity."""
        journal = Journal()
        journal.log_oracle_event("ok")
        journal.log_error("bad", category=Category.ORACLE)
        journal.log_system_event("info")

        assert len(journal.get_logs_by_category(Category.ORACLE)) == 2
        assert len(journal.get_logs_by_category("system")) == 1
        assert len(journal.get_logs_by_severity(Severity.ERROR)) == 1

    def test_recent_logs(self) -> None:
        """get_recent_logs returns the newest entries."""
        journal = Journal()
        for i in range(15):
            journal.append(f"m{i}")
        recent = journal.get_recent_logs()
        assert len(recent) == 10
        assert recent[0].message == "m14"
        assert [e.message for e in journal.get_recent_logs(2)] == ["m14", "m13"]

    def test_stats_empty(self) -> None:
        """An empty journal reports zero rates."""
        stats = Journal().get_log_stats()
        assert stats.total == 0
        assert stats.error_rate == 0.0
        assert stats.success_rate == 0.0
        assert stats.by_severity == {"success": 0, "warning": 0, "error": 0, "info": 0}

    def test_stats_counts_and_rates(self) -> None:
        """Stats should count per severity/category and compute rates."""
        journal = Journal()
        journal.log_oracle_event("ok")
        journal.log_oracle_event("ok")
        journal.log_error("bad", category=Category.ORACLE)

        stats = journal.get_log_stats()
        assert stats.total == 3
        assert stats.by_severity["success"] == 2
        assert stats.by_severity["error"] == 1
        assert stats.by_category["oracle"] == 3
        assert stats.by_category["security"] == 0
        assert stats.error_rate == 33.3
        assert stats.success_rate == 66.7
