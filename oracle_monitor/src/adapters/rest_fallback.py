"""REST fallback adapter.

Endpoint: https://api.coingecko.com/api/v3/simple/price?ids={id}&vs_currencies={quote}
Rate Limit: 30 calls/min (free)
Scale: normalized to 8 decimals
"""

import logging
import math
import time

from ..FeedKey import FeedKey
from ..PriceReading import PriceReading, ProviderKind
from .base import (
    BaseAdapter,
    UnknownSymbolError,
    UpstreamError,
    elapsed_ms,
    now_ms,
    register_adapter,
)

logger = logging.getLogger(__name__)


@register_adapter
class RestFallbackAdapter(BaseAdapter):
    """Adapter for a public spot-price API, used as an independent second source."""

    kind = ProviderKind.REST_FALLBACK
    BASE_URL = "https://api.coingecko.com/api/v3"
    DECIMALS = 8

    # Map base symbols to spot-price API ids
    COIN_IDS = {
        "btc": "bitcoin",
        "eth": "ethereum",
        "link": "chainlink",
        "bnb": "binancecoin",
        "matic": "matic-network",
        "avax": "avalanche-2",
        "sol": "solana",
        "usdt": "tether",
        "usdc": "usd-coin",
    }

    async def fetch(self, chain: str, pair: str) -> PriceReading:
        """Fetch the spot price for a pair's base asset.

        :param chain: Feed chain the reading is attributed to.
        :param pair: Trading pair (e.g., "ETH/USD").
        :returns: PriceReading rounded to 8 decimals.
        :raises UnknownSymbolError: If the base asset has no id mapping.
        :raises UpstreamError: On timeout, HTTP error, or missing data.
        """
        key = FeedKey(chain, pair)
        coin_id = self.COIN_IDS.get(key.base.lower())
        if not coin_id:
            raise UnknownSymbolError(f"Unknown coin: {key.base}")

        quote = key.quote.lower()
        started = time.perf_counter()
        response = await self._get(
            f"{self.BASE_URL}/simple/price",
            params={
                "ids": coin_id,
                "vs_currencies": quote,
                "include_last_updated_at": "true",
            },
        )
        latency = elapsed_ms(started)
        data = self._json(response)

        coin_data = data.get(coin_id)
        if not isinstance(coin_data, dict) or quote not in coin_data:
            raise UpstreamError(f"No {quote} price for {coin_id} in response")

        try:
            price = round(float(coin_data[quote]), self.DECIMALS)
        except (ValueError, TypeError) as e:
            raise UpstreamError(f"Malformed price for {coin_id}: {coin_data[quote]!r}") from e
        if not math.isfinite(price) or price < 0:
            raise UpstreamError(f"Invalid price {price} for {key.pair}")

        fetched_at = now_ms()
        updated_at = coin_data.get("last_updated_at")
        try:
            observed_at = int(updated_at) * 1000 if updated_at else fetched_at
        except (ValueError, TypeError):
            logger.debug(f"[rest-fallback] Ignoring bad last_updated_at {updated_at!r}")
            observed_at = fetched_at

        return PriceReading(
            price=price,
            observed_at_ms=observed_at,
            decimals=self.DECIMALS,
            round_id=str(fetched_at),
            chain=key.chain,
            pair=key.pair,
            provider=self.kind,
            latency_ms=latency,
        )
