"""On-chain aggregator adapter.

Reads AggregatorV3-style price feed contracts directly through the chain's
RPC connection: ``latestRoundData()`` for the round record and
``decimals()`` for the answer scale.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx
from web3 import Web3

from ..FeedKey import FeedKey
from ..PriceReading import PriceReading, ProviderKind
from .base import (
    BaseAdapter,
    ConnectionUnavailableError,
    NotConfiguredError,
    UpstreamError,
    elapsed_ms,
    register_adapter,
)

if TYPE_CHECKING:
    from ..ConnectionRegistry import ConnectionRegistry

logger = logging.getLogger(__name__)

# Known price feed contracts per chain and pair.
AGGREGATOR_FEEDS: dict[str, dict[str, str]] = {
    "ethereum": {
        "ETH/USD": "0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419",
        "BTC/USD": "0xF4030086522a5bEEa4988F8cA5B36dbC97BeE88c",
        "LINK/USD": "0x2c1d072e956AFFC0D435Cb7AC38EF18d24d9127c",
    },
    "bsc": {
        "BNB/USD": "0x0567F2323251f0Aab15c8dFb1967E4e8A7D42aeE",
        "ETH/USD": "0x9ef1B8c0E4F7dc8bF5719Ea496883DC6401d5b2e",
        "BTC/USD": "0x264990fbd0A4796A3E3d8E37C4d5F87a3aCa5Ebf",
    },
    "polygon": {
        "MATIC/USD": "0xAB594600376Ec9fD91F8e885dADF0CE036862dE0",
        "ETH/USD": "0xF9680D99D6C9589e2a93a78A04A279e509205945",
        "BTC/USD": "0xDE31F8bFBD8c84b5360CFACCa3539B938dd78ae6",
    },
    "avalanche": {
        "AVAX/USD": "0x0A77230d17318075983913bC2145DB16C7366156",
        "ETH/USD": "0x976B3D034E162d8bD72D6b9C989d545b839003b0",
        "BTC/USD": "0x2779D32d5166BAaa2B2b658333bA7e6Ec0C65743",
    },
}

AGGREGATOR_ABI: list[dict[str, Any]] = [
    {
        "inputs": [],
        "name": "latestRoundData",
        "outputs": [
            {"name": "roundId", "type": "uint80"},
            {"name": "answer", "type": "int256"},
            {"name": "startedAt", "type": "uint256"},
            {"name": "updatedAt", "type": "uint256"},
            {"name": "answeredInRound", "type": "uint80"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]


@register_adapter
class OnChainAggregatorAdapter(BaseAdapter):
    """Adapter reading price feed contracts over a live chain connection.

    :ivar feeds: Chain to {pair: contract address} table.
    """

    kind = ProviderKind.ON_CHAIN_AGGREGATOR
    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        connections: ConnectionRegistry | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        feeds: dict[str, dict[str, str]] | None = None,
    ):
        """Initialize with an optional feed table override.

        :param connections: Registry providing per-chain clients.
        :param client: Unused; accepted for a uniform constructor.
        :param timeout: Contract call timeout in seconds (default: 10).
        :param feeds: Chain to {pair: address} table (default: AGGREGATOR_FEEDS).
        """
        super().__init__(connections=connections, client=client, timeout=timeout)
        source = feeds if feeds is not None else AGGREGATOR_FEEDS
        self.feeds = {
            chain.lower(): {pair.upper(): addr for pair, addr in pairs.items()}
            for chain, pairs in source.items()
        }
        self._contracts: dict[FeedKey, tuple[Any, Any]] = {}

    def feed_address(self, chain: str, pair: str) -> str | None:
        """Return the configured contract address for a chain and pair."""
        key = FeedKey(chain, pair)
        return self.feeds.get(key.chain, {}).get(key.pair)

    def _contract(self, key: FeedKey, address: str) -> Any:
        w3 = self.connections.get_client(key.chain) if self.connections else None
        if w3 is None:
            raise ConnectionUnavailableError(f"No live connection for {key.chain}")

        # A handle is only valid for the client it was built on
        cached = self._contracts.get(key)
        if cached is not None and cached[0] is w3:
            return cached[1]

        try:
            checksum_address = Web3.to_checksum_address(address)
        except (ValueError, TypeError) as e:
            raise NotConfiguredError(
                f"Invalid feed address {address!r} for {key.pair} on {key.chain}"
            ) from e
        contract = w3.eth.contract(address=checksum_address, abi=AGGREGATOR_ABI)
        self._contracts[key] = (w3, contract)
        return contract

    async def fetch(self, chain: str, pair: str) -> PriceReading:
        """Read the latest round from the pair's feed contract.

        :param chain: Chain name (e.g., "ethereum").
        :param pair: Trading pair (e.g., "ETH/USD").
        :returns: PriceReading scaled by the contract's decimals.
        :raises NotConfiguredError: If no feed contract is known for the pair.
        :raises ConnectionUnavailableError: If the chain is not connected.
        :raises UpstreamError: If a contract call fails or returns a bad answer.
        """
        key = FeedKey(chain, pair)
        address = self.feed_address(key.chain, key.pair)
        if not address:
            raise NotConfiguredError(f"Feed not available for {key.pair} on {key.chain}")

        if self.connections is None or not self.connections.is_connected(key.chain):
            raise ConnectionUnavailableError(f"No live connection for {key.chain}")

        started = time.perf_counter()
        contract = self._contract(key, address)
        try:
            round_data, decimals = await asyncio.wait_for(
                asyncio.gather(
                    contract.functions.latestRoundData().call(),
                    contract.functions.decimals().call(),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamError(f"Contract call timed out after {self.timeout}s") from e
        except Exception as e:
            raise UpstreamError(f"Contract call failed: {e}") from e
        latency = elapsed_ms(started)

        try:
            round_id, answer, _started_at, updated_at, _answered_in = round_data
            decimals = int(decimals)
            answer = int(answer)
            observed_at = int(updated_at) * 1000
        except (TypeError, ValueError) as e:
            raise UpstreamError(f"Malformed round data: {round_data!r}") from e

        if answer < 0:
            raise UpstreamError(f"Negative answer {answer} for {key.pair}")

        return PriceReading(
            price=answer / 10**decimals,
            observed_at_ms=observed_at,
            decimals=decimals,
            round_id=str(round_id),
            chain=key.chain,
            pair=key.pair,
            provider=self.kind,
            latency_ms=latency,
        )
