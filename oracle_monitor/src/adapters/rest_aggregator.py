"""REST aggregator adapter.

Endpoint: https://laozi1.bandchain.org/api/oracle/v1/request_prices
Quorum: min_count=3 of ask_count=4 validator reports
Scale: fixed 9 decimals
"""

import logging
import math
import time

from ..FeedKey import FeedKey
from ..PriceReading import PriceReading, ProviderKind
from .base import BaseAdapter, UpstreamError, elapsed_ms, now_ms, register_adapter

logger = logging.getLogger(__name__)


@register_adapter
class RestAggregatorAdapter(BaseAdapter):
    """Adapter for an aggregation service reporting quorum prices.

    The service answers with fixed-point integers (``px``) that are scaled
    by 10**9.
    """

    kind = ProviderKind.REST_AGGREGATOR
    BASE_URL = "https://laozi1.bandchain.org/api/oracle/v1"
    MIN_COUNT = 3
    ASK_COUNT = 4
    DECIMALS = 9

    async def fetch(self, chain: str, pair: str) -> PriceReading:
        """Request the aggregated price for a pair.

        :param chain: Feed chain the reading is attributed to.
        :param pair: Trading pair (e.g., "BTC/USD").
        :returns: PriceReading with 9-decimal provenance.
        :raises UpstreamError: On timeout, HTTP error, or empty/malformed result.
        """
        key = FeedKey(chain, pair)
        started = time.perf_counter()
        response = await self._get(
            f"{self.BASE_URL}/request_prices",
            params={
                "symbols": key.pair.replace("/", ""),
                "min_count": self.MIN_COUNT,
                "ask_count": self.ASK_COUNT,
            },
        )
        latency = elapsed_ms(started)
        data = self._json(response)

        results = data.get("price_results") or []
        if not results:
            raise UpstreamError(f"No price data for {key.pair}")

        result = results[0]
        try:
            price = float(result["px"]) / 10**self.DECIMALS
        except (KeyError, ValueError, TypeError) as e:
            raise UpstreamError(f"Malformed price result: {result!r}") from e
        if not math.isfinite(price) or price < 0:
            raise UpstreamError(f"Invalid price {price} for {key.pair}")

        resolve_time = result.get("resolve_time")
        try:
            observed_at = int(resolve_time) * 1000 if resolve_time else now_ms()
        except (ValueError, TypeError):
            logger.debug(f"[rest-aggregator] Ignoring bad resolve_time {resolve_time!r}")
            observed_at = now_ms()

        return PriceReading(
            price=price,
            observed_at_ms=observed_at,
            decimals=self.DECIMALS,
            round_id=str(result.get("request_id") or ""),
            chain=key.chain,
            pair=key.pair,
            provider=self.kind,
            latency_ms=latency,
        )
