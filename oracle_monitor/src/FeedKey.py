"""FeedKey: Topic identity for a (chain, trading pair) price feed.

Every feed the scheduler runs and every topic the router fans out to is
identified by a FeedKey. Chains are normalized to lowercase and pairs to
uppercase so that "Ethereum" and "ethereum" address the same topic.

.. code-block:: python

    >>> key = FeedKey("Ethereum", "eth/usd")
    >>> str(key)
    'ethereum-ETH/USD'
    >>> key.base
    'ETH'
"""

from __future__ import annotations


class FeedKey:
    """A (chain, pair) combination identifying one price feed.

    :ivar chain: Chain name (lowercase).
    :ivar pair: Trading pair in "BASE/QUOTE" form (uppercase).
    """

    def __init__(self, chain: str, pair: str) -> None:
        """Initialize a feed key.

        :param chain: Chain name (e.g., "ethereum", "polygon").
        :param pair: Trading pair (e.g., "ETH/USD").
        :raises ValueError: If the pair is not in "BASE/QUOTE" form.
        """
        self.chain = chain.strip().lower()
        self.pair = self.normalize_pair(pair)

    @staticmethod
    def normalize_pair(pair: str) -> str:
        """Normalize a pair string to uppercase "BASE/QUOTE".

        :param pair: Pair string like "eth/usd".
        :returns: Normalized pair like "ETH/USD".
        :raises ValueError: If the pair is not in "BASE/QUOTE" form.
        """
        parts = pair.split("/")
        if len(parts) != 2 or not all(p.strip() for p in parts):
            raise ValueError(
                f"Invalid pair format '{pair}'. Expected 'BASE/QUOTE' (e.g., 'ETH/USD')"
            )
        return "/".join(p.strip().upper() for p in parts)

    @property
    def base(self) -> str:
        """Base asset symbol (e.g., "ETH")."""
        return self.pair.split("/")[0]

    @property
    def quote(self) -> str:
        """Quote asset symbol (e.g., "USD")."""
        return self.pair.split("/")[1]

    def __str__(self) -> str:
        """Return the topic string."""
        return f"{self.chain}-{self.pair}"

    def __repr__(self) -> str:
        """Return a developer-friendly string representation."""
        return f"FeedKey({self.chain!r}, {self.pair!r})"

    def __hash__(self) -> int:
        """Return hash for use in dicts and sets."""
        return hash(str(self))

    def __eq__(self, other: object) -> bool:
        """Check equality based on normalized chain and pair."""
        if not isinstance(other, FeedKey):
            return NotImplemented
        return str(self) == str(other)
