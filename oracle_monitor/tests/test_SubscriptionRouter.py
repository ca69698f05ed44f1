"""Unit tests for SubscriptionRouter."""

from oracle_monitor.src.PriceReading import PriceReading, ProviderKind
from oracle_monitor.src.SubscriptionRouter import SubscriptionRouter


def make_reading(chain: str = "ethereum", pair: str = "ETH/USD", price: float = 3000.0) -> PriceReading:
    return PriceReading(
        price=price,
        observed_at_ms=0,
        decimals=8,
        round_id="1",
        chain=chain,
        pair=pair,
        provider=ProviderKind.ON_CHAIN_AGGREGATOR,
        latency_ms=5,
    )


class TestRouterSubscribe:
    """Test listener registration."""

    def test_publish_reaches_subscriber(self) -> None:
        """A subscribed listener receives readings for its topic."""
        router = SubscriptionRouter()
        received: list[PriceReading] = []
        router.subscribe("ethereum", "ETH/USD", received.append)

        reading = make_reading()
        assert router.publish(reading) == 1
        assert received == [reading]

    def test_topic_isolation(self) -> None:
        """Readings for other topics are not delivered."""
        router = SubscriptionRouter()
        received: list[PriceReading] = []
        router.subscribe("ethereum", "ETH/USD", received.append)

        assert router.publish(make_reading(pair="BTC/USD")) == 0
        assert router.publish(make_reading(chain="polygon")) == 0
        assert received == []

    def test_topic_case_insensitive(self) -> None:
        """Topic matching normalizes chain and pair case."""
        router = SubscriptionRouter()
        received: list[PriceReading] = []
        router.subscribe("Ethereum", "eth/usd", received.append)

        router.publish(make_reading())
        assert len(received) == 1

    def test_registration_order(self) -> None:
        """Delivery follows registration order."""
        router = SubscriptionRouter()
        order: list[str] = []
        router.subscribe("ethereum", "ETH/USD", lambda r: order.append("first"))
        router.subscribe("ethereum", "ETH/USD", lambda r: order.append("second"))
        router.subscribe("ethereum", "ETH/USD", lambda r: order.append("third"))

        router.publish(make_reading())
        assert order == ["first", "second", "third"]

    def test_double_subscribe_delivers_twice(self) -> None:
        """Registration is not deduplicated."""
        router = SubscriptionRouter()
        calls: list[float] = []

        def listener(reading: PriceReading) -> None:
            calls.append(reading.price)

        router.subscribe("ethereum", "ETH/USD", listener)
        router.subscribe("ethereum", "ETH/USD", listener)
        router.publish(make_reading())
        assert calls == [3000.0, 3000.0]


class TestRouterUnsubscribe:
    """Test listener removal."""

    def test_unsubscribe_by_identity(self) -> None:
        """Only the given listener is removed."""
        router = SubscriptionRouter()
        calls: list[str] = []

        def keep(reading: PriceReading) -> None:
            calls.append("keep")

        def drop(reading: PriceReading) -> None:
            calls.append("drop")

        router.subscribe("ethereum", "ETH/USD", keep)
        router.subscribe("ethereum", "ETH/USD", drop)
        router.unsubscribe("ethereum", "ETH/USD", drop)

        router.publish(make_reading())
        assert calls == ["keep"]
        assert router.listeners("ethereum", "ETH/USD") == [keep]

    def test_unsubscribe_missing_is_noop(self) -> None:
        """Removing an unknown listener or topic should not raise."""
        router = SubscriptionRouter()
        router.unsubscribe("ethereum", "ETH/USD", lambda r: None)

        router.subscribe("ethereum", "ETH/USD", lambda r: None)
        router.unsubscribe("ethereum", "ETH/USD", lambda r: None)
        assert len(router.listeners("ethereum", "ETH/USD")) == 1

    def test_last_unsubscribe_drops_topic(self) -> None:
        """A topic with no listeners left is removed."""
        router = SubscriptionRouter()

        def listener(reading: PriceReading) -> None:
            pass

        router.subscribe("ethereum", "ETH/USD", listener)
        router.unsubscribe("ethereum", "ETH/USD", listener)
        assert router.topics() == []

    def test_clear(self) -> None:
        """clear drops every subscription."""
        router = SubscriptionRouter()
        received: list[PriceReading] = []
        router.subscribe("ethereum", "ETH/USD", received.append)
        router.subscribe("polygon", "BTC/USD", received.append)

        router.clear()
        router.publish(make_reading())
        assert received == []
        assert router.topics() == []


class TestRouterIsolation:
    """Test failure isolation during delivery."""

    def test_failing_listener_does_not_stop_delivery(self) -> None:
        """Listeners after a raising listener still receive the reading."""
        router = SubscriptionRouter()
        received: list[PriceReading] = []

        def bad(reading: PriceReading) -> None:
            raise RuntimeError("listener bug")

        router.subscribe("ethereum", "ETH/USD", bad)
        router.subscribe("ethereum", "ETH/USD", received.append)

        assert router.publish(make_reading()) == 1
        assert len(received) == 1

    def test_unsubscribe_during_delivery(self) -> None:
        """A listener removing itself mid-delivery does not skip others."""
        router = SubscriptionRouter()
        calls: list[str] = []

        def once(reading: PriceReading) -> None:
            calls.append("once")
            router.unsubscribe("ethereum", "ETH/USD", once)

        def always(reading: PriceReading) -> None:
            calls.append("always")

        router.subscribe("ethereum", "ETH/USD", once)
        router.subscribe("ethereum", "ETH/USD", always)

        router.publish(make_reading())
        router.publish(make_reading())
        assert calls == ["once", "always", "always"]
