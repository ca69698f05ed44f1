"""SubscriptionRouter: Per-topic fanout of price readings to listeners."""

from __future__ import annotations

import logging
from typing import Callable

from .FeedKey import FeedKey
from .PriceReading import PriceReading

logger = logging.getLogger(__name__)

ReadingListener = Callable[[PriceReading], None]


class SubscriptionRouter:
    """Delivers each reading to the listeners of its (chain, pair) topic.

    Listeners are called synchronously in registration order. A listener
    that raises is logged and skipped; delivery to the rest continues.
    The router only holds references and never owns listener state.
    """

    def __init__(self) -> None:
        self._topics: dict[FeedKey, list[ReadingListener]] = {}

    def subscribe(self, chain: str, pair: str, listener: ReadingListener) -> None:
        """Append a listener to a topic.

        Registering the same listener twice delivers to it twice.
        """
        self._topics.setdefault(FeedKey(chain, pair), []).append(listener)

    def unsubscribe(self, chain: str, pair: str, listener: ReadingListener) -> None:
        """Remove a listener by identity; no-op if it is not subscribed."""
        key = FeedKey(chain, pair)
        listeners = self._topics.get(key)
        if not listeners:
            return
        remaining = [cb for cb in listeners if cb is not listener]
        if remaining:
            self._topics[key] = remaining
        else:
            del self._topics[key]

    def publish(self, reading: PriceReading) -> int:
        """Deliver a reading to every listener of its topic.

        :param reading: Reading to deliver.
        :returns: Number of listeners that accepted the reading without raising.
        """
        key = FeedKey(reading.chain, reading.pair)
        delivered = 0
        # Copy so listeners may (un)subscribe during delivery
        for listener in list(self._topics.get(key, ())):
            try:
                listener(reading)
                delivered += 1
            except Exception:
                logger.exception(f"Listener {listener!r} failed for {key}")
        return delivered

    def listeners(self, chain: str, pair: str) -> list[ReadingListener]:
        return list(self._topics.get(FeedKey(chain, pair), ()))

    def topics(self) -> list[FeedKey]:
        return list(self._topics)

    def clear(self) -> None:
        """Drop every subscription."""
        self._topics.clear()
