"""ConnectionRegistry: One async Web3 connection per monitored chain.

Connections are established once at startup. A chain that fails to connect
is recorded as disconnected and never blocks the remaining chains. The
``connected`` flag can later be re-probed with :meth:`ConnectionRegistry.refresh`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from web3 import AsyncWeb3

if TYPE_CHECKING:
    from .Journal import Journal

logger = logging.getLogger(__name__)

# Public RPC endpoints per chain.
RPC_ENDPOINTS: dict[str, str] = {
    "ethereum": "https://eth.llamarpc.com",
    "bsc": "https://bsc-dataseed.binance.org",
    "polygon": "https://polygon-rpc.com",
    "avalanche": "https://api.avax.network/ext/bc/C/rpc",
}

# Nominal block times in seconds, used to approximate TPS.
BLOCK_TIMES: dict[str, int] = {
    "ethereum": 12,
    "bsc": 3,
    "polygon": 2,
    "avalanche": 2,
}
DEFAULT_BLOCK_TIME = 12

ClientFactory = Callable[[str], AsyncWeb3]


def default_client_factory(endpoint: str) -> AsyncWeb3:
    """Build an AsyncWeb3 client for an HTTP RPC endpoint.

    :param endpoint: RPC URL.
    :returns: Unconnected AsyncWeb3 instance.
    """
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(endpoint))


@dataclass
class ChainConnection:
    """Connection state of a single chain.

    :ivar chain_id: Chain name (lowercase).
    :ivar endpoint: RPC endpoint URL.
    :ivar connected: Whether the connection is considered live.
    """

    chain_id: str
    endpoint: str
    connected: bool = False


@dataclass
class ChainMetrics:
    """Snapshot of a chain's latest block.

    :ivar gas_price_gwei: Current gas price in gwei.
    :ivar block_number: Latest block number.
    :ivar block_time: Latest block timestamp (Unix seconds).
    :ivar timestamp_ms: When the snapshot was taken (Unix ms).
    :ivar tps: Approximate transactions per second.
    :ivar block_hash: Latest block hash (hex).
    """

    gas_price_gwei: float
    block_number: int
    block_time: int
    timestamp_ms: int
    tps: float
    block_hash: str


class ConnectionRegistry:
    """Holds one connection handle per supported chain.

    :ivar endpoints: Mapping of chain name to RPC endpoint.
    :ivar journal: Journal receiving blockchain events.
    """

    def __init__(
        self,
        journal: Journal,
        endpoints: dict[str, str] | None = None,
        client_factory: ClientFactory | None = None,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the registry without connecting.

        :param journal: Journal receiving connection events.
        :param endpoints: Chain to RPC URL mapping (default: RPC_ENDPOINTS).
        :param client_factory: Builds a client for an endpoint.
        :param timeout: Timeout for probe and metrics calls in seconds.
        """
        self.journal = journal
        self.endpoints = {
            chain.lower(): url for chain, url in (endpoints or RPC_ENDPOINTS).items()
        }
        self.client_factory = client_factory or default_client_factory
        self.timeout = timeout
        self._connections: dict[str, ChainConnection] = {}
        self._clients: dict[str, AsyncWeb3] = {}

    def connect(self, chain: str, endpoint: str | None = None) -> ChainConnection:
        """Establish (or reuse) the connection for a chain.

        Never raises: a failure is recorded as ``connected=False``.

        :param chain: Chain name.
        :param endpoint: Optional RPC URL overriding the configured one.
        :returns: The chain's ChainConnection.
        """
        chain = chain.lower()
        existing = self._connections.get(chain)
        if existing is not None and existing.connected and endpoint in (None, existing.endpoint):
            return existing

        endpoint = endpoint or self.endpoints.get(chain, "")
        connection = ChainConnection(chain_id=chain, endpoint=endpoint)

        if not endpoint:
            logger.error(f"No RPC endpoint configured for {chain}")
            self._connections[chain] = connection
            self.journal.log_connection_status(
                chain, False, {"error": "no endpoint configured"}
            )
            return connection

        try:
            self._clients[chain] = self.client_factory(endpoint)
            connection.connected = True
        except Exception as e:
            logger.error(f"Failed to connect to {chain} ({endpoint}): {e}")
            self._clients.pop(chain, None)

        self._connections[chain] = connection
        details = {"endpoint": endpoint}
        if not connection.connected:
            details["error"] = "client initialization failed"
        self.journal.log_connection_status(chain, connection.connected, details)
        return connection

    def connect_all(self) -> list[ChainConnection]:
        """Connect every configured chain; failures are isolated per chain."""
        return [self.connect(chain) for chain in self.endpoints]

    def is_connected(self, chain: str) -> bool:
        connection = self._connections.get(chain.lower())
        return connection is not None and connection.connected

    def list_connected_chains(self) -> list[str]:
        return [c for c, conn in self._connections.items() if conn.connected]

    def get_connection(self, chain: str) -> ChainConnection | None:
        return self._connections.get(chain.lower())

    def get_client(self, chain: str) -> AsyncWeb3 | None:
        """Return the chain's client if it is connected, else None."""
        if not self.is_connected(chain):
            return None
        return self._clients.get(chain.lower())

    async def refresh(self, chain: str) -> bool:
        """Re-probe a chain's node and update its ``connected`` flag.

        :param chain: Chain name.
        :returns: Current connection state.
        """
        chain = chain.lower()
        connection = self._connections.get(chain)
        client = self._clients.get(chain)
        if connection is None or client is None:
            return False

        try:
            alive = bool(await asyncio.wait_for(client.is_connected(), self.timeout))
        except Exception as e:
            logger.warning(f"Connection probe for {chain} failed: {e}")
            alive = False

        if alive != connection.connected:
            connection.connected = alive
            self.journal.log_connection_status(
                chain, alive, {"endpoint": connection.endpoint}
            )
        return alive

    async def get_chain_metrics(self, chain: str) -> ChainMetrics | None:
        """Fetch latest-block metrics for a chain.

        :param chain: Chain name.
        :returns: ChainMetrics, or None if the chain is unavailable or the call fails.
        """
        chain = chain.lower()
        client = self.get_client(chain)
        if client is None:
            logger.warning(f"No live connection for {chain}, skipping metrics")
            return None

        try:
            block, gas_price = await asyncio.wait_for(
                asyncio.gather(client.eth.get_block("latest"), client.eth.gas_price),
                self.timeout,
            )
        except Exception as e:
            logger.warning(f"Error fetching metrics for {chain}: {e}")
            return None

        if not block:
            return None

        tx_count = len(block.get("transactions") or [])
        block_hash = block.get("hash")
        return ChainMetrics(
            gas_price_gwei=float(AsyncWeb3.from_wei(gas_price or 0, "gwei")),
            block_number=int(block["number"]),
            block_time=int(block["timestamp"]),
            timestamp_ms=int(time.time() * 1000),
            tps=tx_count / BLOCK_TIMES.get(chain, DEFAULT_BLOCK_TIME),
            block_hash=block_hash.hex() if hasattr(block_hash, "hex") else str(block_hash or ""),
        )
