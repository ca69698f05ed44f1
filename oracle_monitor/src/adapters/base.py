"""Base adapter interface, failure taxonomy and shared HTTP client management.

Every provider adapter inherits from BaseAdapter and implements fetch(),
returning a normalized PriceReading or raising an AdapterError subclass.
A shared httpx.AsyncClient is used across REST adapters to avoid connection
overhead; tests and embedders may inject their own client instead.

.. code-block:: python

    @register_adapter
    class MyAdapter(BaseAdapter):
        kind = ProviderKind.REST_FALLBACK

        async def fetch(self, chain: str, pair: str) -> PriceReading:
            started = time.perf_counter()
            response = await self._get("https://api.example.com/price")
            ...
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

import httpx

from ..PriceReading import PriceReading, ProviderKind

if TYPE_CHECKING:
    from ..ConnectionRegistry import ConnectionRegistry

logger = logging.getLogger(__name__)


class AdapterError(Exception):
    """Base exception for a failed fetch.

    :cvar kind: Failure kind recorded in the journal.
    """

    kind: ClassVar[str] = "AdapterError"


class ConnectionUnavailableError(AdapterError):
    """Raised when the requested chain has no live connection."""

    kind = "ConnectionUnavailable"


class NotConfiguredError(AdapterError):
    """Raised when no source is known for the requested chain and pair."""

    kind = "NotConfigured"


class UpstreamError(AdapterError):
    """Raised when an external call fails, times out or returns unusable data.

    :ivar status_code: HTTP status code, if the failure was an HTTP response.
    """

    kind = "UpstreamError"

    def __init__(self, message: str, status_code: int | None = None):
        """Initialize the upstream error.

        :param message: Error message.
        :param status_code: Optional HTTP status code.
        """
        self.status_code = status_code
        if status_code is not None:
            message = f"HTTP {status_code}: {message}"
        super().__init__(message)


class UnknownSymbolError(AdapterError):
    """Raised when a base asset cannot be mapped to a provider identifier."""

    kind = "UnknownSymbol"


def elapsed_ms(started: float) -> int:
    """Milliseconds elapsed since a ``time.perf_counter()`` reading."""
    return max(0, int((time.perf_counter() - started) * 1000))


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


class BaseAdapter(ABC):
    """Abstract base class for price provider adapters.

    Subclasses must implement:
        - kind: Class variable naming the provider
        - fetch(): Async method returning a PriceReading for a chain and pair

    :cvar kind: ProviderKind this adapter serves.
    :cvar DEFAULT_TIMEOUT: Default request timeout in seconds.
    :ivar connections: Connection registry, for adapters reading on-chain.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    kind: ClassVar[ProviderKind]

    DEFAULT_TIMEOUT = 5.0

    def __init__(
        self,
        connections: ConnectionRegistry | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        """Initialize the adapter.

        :param connections: Connection registry (needed by on-chain adapters).
        :param client: Optional HTTP client; the shared client is used if omitted.
        :param timeout: Request timeout in seconds (default: DEFAULT_TIMEOUT).
        """
        self.connections = connections
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._client = client

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all adapter instances to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        if BaseAdapter._shared_client is None or BaseAdapter._shared_client.is_closed:
            BaseAdapter._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                follow_redirects=True,
            )
        return BaseAdapter._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = BaseAdapter._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        BaseAdapter._shared_client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client used by this adapter."""
        return self._client or self.get_shared_client()

    @abstractmethod
    async def fetch(self, chain: str, pair: str) -> PriceReading:
        """Fetch and normalize the current price for a pair.

        :param chain: Chain the feed is polled for (e.g., "ethereum").
        :param pair: Trading pair (e.g., "ETH/USD").
        :returns: Normalized PriceReading.
        :raises AdapterError: On any failure.
        """
        pass

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request with this adapter's timeout.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises UpstreamError: On non-2xx response, network error or timeout.
        """
        try:
            response = await self.client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise UpstreamError(f"Request failed: {e}") from e

        if not response.is_success:
            logger.debug(
                f"HTTP GET {url} failed with status {response.status_code}: "
                f"{response.text[:200]}"
            )
            raise UpstreamError(response.text[:200], status_code=response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        """Decode a JSON object body.

        :raises UpstreamError: If the body is not a JSON object.
        """
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(f"Malformed JSON response: {e}") from e
        if not isinstance(data, dict):
            raise UpstreamError(f"Unexpected response shape: {type(data).__name__}")
        return data


# Registry of available adapter classes (populated by subclass imports)
ADAPTER_REGISTRY: dict[ProviderKind, type[BaseAdapter]] = {}


def register_adapter(cls: type[BaseAdapter]) -> type[BaseAdapter]:
    """Decorator to register an adapter class for its ProviderKind.

    :param cls: Adapter class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If the adapter does not declare a kind.
    """
    if not isinstance(getattr(cls, "kind", None), ProviderKind):
        raise ValueError(f"Adapter {cls.__name__} must define a 'kind' class variable")
    ADAPTER_REGISTRY[cls.kind] = cls
    return cls


def get_adapter(
    kind: ProviderKind | str,
    connections: ConnectionRegistry | None = None,
    client: httpx.AsyncClient | None = None,
) -> BaseAdapter:
    """Get an adapter instance by provider kind.

    :param kind: ProviderKind or any name ProviderKind.parse accepts.
    :param connections: Connection registry passed to the adapter.
    :param client: Optional HTTP client passed to the adapter.
    :returns: Adapter instance.
    :raises ValueError: If no adapter is registered for the kind.
    """
    kind = ProviderKind.parse(kind)
    if kind not in ADAPTER_REGISTRY:
        available = ", ".join(sorted(k.value for k in ADAPTER_REGISTRY))
        raise ValueError(f"No adapter for '{kind.value}'. Available: {available}")
    return ADAPTER_REGISTRY[kind](connections=connections, client=client)


def create_adapters(
    connections: ConnectionRegistry | None = None,
    client: httpx.AsyncClient | None = None,
) -> dict[ProviderKind, BaseAdapter]:
    """Instantiate one adapter per registered provider kind.

    :param connections: Connection registry shared by all adapters.
    :param client: Optional HTTP client shared by all adapters.
    :returns: Dict mapping ProviderKind to adapter instance.
    """
    return {
        kind: get_adapter(kind, connections=connections, client=client)
        for kind in ADAPTER_REGISTRY
    }
