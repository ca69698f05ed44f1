"""
Oracle Monitor - Aggregation & Event Distribution Engine

This module polls price-feed oracles across multiple chains and distributes
the results:
- FeedKey: (chain, pair) topic identity
- PriceReading: Normalized reading produced by every provider
- Journal: Bounded, categorized activity log with snapshot subscribers
- ConnectionRegistry: Per-chain async Web3 connections
- adapters: On-chain and REST provider adapters
- SubscriptionRouter: Per-topic reading fanout
- PollingScheduler: Independently ticking feed tasks
- OracleMonitor: Facade used by the presentation layer
"""

from .ConnectionRegistry import RPC_ENDPOINTS, ChainConnection, ChainMetrics, ConnectionRegistry
from .FeedKey import FeedKey
from .Journal import Category, Journal, LogEntry, LogStats, Severity
from .OracleConfig import OracleConfig
from .OracleMonitor import DomainMetrics, OracleMonitor
from .PollingScheduler import FeedTask, PollingScheduler
from .PriceReading import PriceReading, ProviderKind
from .SubscriptionRouter import SubscriptionRouter

__all__ = [
    "Category",
    "ChainConnection",
    "ChainMetrics",
    "ConnectionRegistry",
    "DomainMetrics",
    "FeedKey",
    "FeedTask",
    "Journal",
    "LogEntry",
    "LogStats",
    "OracleConfig",
    "OracleMonitor",
    "PollingScheduler",
    "PriceReading",
    "ProviderKind",
    "RPC_ENDPOINTS",
    "Severity",
    "SubscriptionRouter",
]
