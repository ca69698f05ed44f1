"""PriceReading: Normalized result of one successful price fetch."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


class ProviderKind(str, Enum):
    """Closed set of price providers an oracle feed can poll."""

    ON_CHAIN_AGGREGATOR = "OnChainAggregator"
    REST_AGGREGATOR = "RestAggregator"
    REST_FALLBACK = "RestFallback"

    @classmethod
    def parse(cls, value: str | ProviderKind) -> ProviderKind:
        """Resolve a provider kind from its value, member name or display name.

        :param value: e.g. "OnChainAggregator", "on_chain_aggregator", "Chainlink".
        :returns: Matching ProviderKind.
        :raises ValueError: If the value names no known provider.

        .. code-block:: python

            >>> ProviderKind.parse("Band Protocol")
            <ProviderKind.REST_AGGREGATOR: 'RestAggregator'>
        """
        if isinstance(value, ProviderKind):
            return value

        needle = value.strip().lower()
        for kind in cls:
            if needle in (kind.value.lower(), kind.name.lower()):
                return kind
        if needle in _DISPLAY_NAMES:
            return _DISPLAY_NAMES[needle]

        available = ", ".join(k.value for k in cls)
        raise ValueError(f"Unknown provider '{value}'. Available: {available}")


# Names the dashboard's oracle selector uses
_DISPLAY_NAMES: dict[str, ProviderKind] = {
    "chainlink": ProviderKind.ON_CHAIN_AGGREGATOR,
    "band protocol": ProviderKind.REST_AGGREGATOR,
    "band": ProviderKind.REST_AGGREGATOR,
    "tellor": ProviderKind.REST_FALLBACK,
}


@dataclass(frozen=True)
class PriceReading:
    """A single decimal-adjusted price observation.

    :ivar price: Price already scaled by ``decimals``.
    :ivar observed_at_ms: Upstream observation time (Unix ms).
    :ivar decimals: Scale the raw answer was reported with.
    :ivar round_id: Provider-specific round or request identifier.
    :ivar chain: Chain the feed was polled for.
    :ivar pair: Trading pair ("BASE/QUOTE").
    :ivar provider: Provider that produced the reading.
    :ivar latency_ms: End-to-end fetch latency.
    """

    price: float
    observed_at_ms: int
    decimals: int
    round_id: str
    chain: str
    pair: str
    provider: ProviderKind
    latency_ms: int

    def __post_init__(self) -> None:
        if not math.isfinite(self.price) or self.price < 0:
            raise ValueError(f"price must be non-negative and finite, got {self.price}")
        if self.latency_ms < 0:
            raise ValueError(f"latency_ms must be non-negative, got {self.latency_ms}")
