"""
Provider adapters for oracle price feeds.

Each adapter knows how to obtain one normalized PriceReading from one kind
of external source. Adapters are selected by ProviderKind.

Usage:
    from oracle_monitor.src.adapters import create_adapters, get_adapter

    adapters = create_adapters(connections)
    reading = await adapters[ProviderKind.REST_AGGREGATOR].fetch("ethereum", "BTC/USD")
"""

# Import base classes and utilities
from .base import (
    ADAPTER_REGISTRY,
    AdapterError,
    BaseAdapter,
    ConnectionUnavailableError,
    NotConfiguredError,
    UnknownSymbolError,
    UpstreamError,
    create_adapters,
    get_adapter,
    register_adapter,
)

# Import all adapter implementations to trigger registration
from .onchain import AGGREGATOR_FEEDS, OnChainAggregatorAdapter
from .rest_aggregator import RestAggregatorAdapter
from .rest_fallback import RestFallbackAdapter

__all__ = [
    # Base classes
    "BaseAdapter",
    "AdapterError",
    "ConnectionUnavailableError",
    "NotConfiguredError",
    "UpstreamError",
    "UnknownSymbolError",
    # Registry functions
    "register_adapter",
    "get_adapter",
    "create_adapters",
    "ADAPTER_REGISTRY",
    # Adapter implementations
    "AGGREGATOR_FEEDS",
    "OnChainAggregatorAdapter",
    "RestAggregatorAdapter",
    "RestFallbackAdapter",
]
