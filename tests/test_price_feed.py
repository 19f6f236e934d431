"""Tests for the random-walk price feed: rounding, parameters, subscribers, scheduling."""

import asyncio
import random

import pytest

from simtrader.application.services.price_feed import PriceFeed
from simtrader.domain.exceptions.domain_errors import ConfigurationError
from simtrader.domain.value_objects.price_quote import PriceQuote


class TestTick:
    def test_initialize_seeds_quotes(self, feed: PriceFeed) -> None:
        quote = feed.get_price("EURUSD")
        assert isinstance(quote, PriceQuote)
        assert quote.price == 1.1
        assert quote.previous_price == 1.1
        assert quote.change == 0.0
        assert feed.current_price("GBPUSD") == 1.27
        assert feed.current_price("XAUUSD") is None

    def test_prices_rounded_to_five_decimals(self, feed: PriceFeed) -> None:
        for _ in range(50):
            for quote in feed.tick().values():
                assert quote.price == round(quote.price, 5)
                assert quote.change == round(quote.change, 5)

    def test_change_measured_against_previous_tick(self, feed: PriceFeed) -> None:
        first = feed.tick()["EURUSD"]
        second = feed.tick()["EURUSD"]
        assert second.previous_price == first.price
        expected_pct = round((second.price - first.price) / first.price * 100, 4)
        assert second.change_percent == pytest.approx(expected_pct, abs=1e-4)

    def test_movement_bounded_by_volatility(self, feed: PriceFeed) -> None:
        previous = feed.current_price("EURUSD")
        for _ in range(100):
            price = feed.tick()["EURUSD"].price
            # |uniform + bias| <= 1 con bias 0, más medio paso de redondeo
            assert abs(price - previous) <= 0.0001 + 1e-5
            previous = price

    def test_zero_volatility_keeps_price(self, feed: PriceFeed) -> None:
        feed.set_volatility(0)
        assert feed.tick()["EURUSD"].price == 1.1

    def test_full_positive_bias_never_drops(self, feed: PriceFeed) -> None:
        feed.set_volatility(0.001)
        feed.set_trend_bias(1.0)
        previous = feed.current_price("EURUSD")
        for _ in range(50):
            price = feed.tick()["EURUSD"].price
            assert price >= previous
            previous = price

    def test_seeded_feeds_are_deterministic(self) -> None:
        a = PriceFeed(rng=random.Random(7), clock=lambda: 0.0)
        b = PriceFeed(rng=random.Random(7), clock=lambda: 0.0)
        a.initialize({"EURUSD": 1.1})
        b.initialize({"EURUSD": 1.1})
        assert [a.tick()["EURUSD"].price for _ in range(10)] == [
            b.tick()["EURUSD"].price for _ in range(10)
        ]

    def test_tick_count(self, feed: PriceFeed) -> None:
        feed.tick()
        feed.tick()
        assert feed.tick_count == 2

    def test_get_prices_returns_detached_dict(self, feed: PriceFeed) -> None:
        snapshot = feed.get_prices()
        snapshot.pop("EURUSD")
        assert feed.get_price("EURUSD") is not None


class TestParameters:
    def test_trend_bias_is_clamped(self, feed: PriceFeed) -> None:
        feed.set_trend_bias(5)
        assert feed.trend_bias == 1.0
        feed.set_trend_bias(-3)
        assert feed.trend_bias == -1.0

    def test_negative_volatility_rejected(self, feed: PriceFeed) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            feed.set_volatility(-0.1)
        assert exc_info.value.field == "volatility"
        assert feed.volatility == 0.0001

    def test_non_positive_interval_rejected(self, feed: PriceFeed) -> None:
        with pytest.raises(ConfigurationError):
            feed.set_update_interval(0)

    def test_non_positive_initial_price_rejected(self) -> None:
        feed = PriceFeed()
        with pytest.raises(ConfigurationError):
            feed.initialize({"EURUSD": 0})


class TestSubscribers:
    def test_each_tick_delivers_full_snapshot(self, feed: PriceFeed) -> None:
        received = []
        feed.subscribe(received.append)
        feed.tick()
        assert len(received) == 1
        assert set(received[0]) == {"EURUSD", "GBPUSD"}

    def test_unsubscribe_stops_delivery(self, feed: PriceFeed) -> None:
        received = []
        unsubscribe = feed.subscribe(received.append)
        feed.tick()
        unsubscribe()
        unsubscribe()
        feed.tick()
        assert len(received) == 1

    def test_same_callback_registered_twice_is_independent(self, feed: PriceFeed) -> None:
        received = []
        first = feed.subscribe(received.append)
        feed.subscribe(received.append)
        first()
        feed.tick()
        assert len(received) == 1

    def test_unsubscribe_during_notification(self, feed: PriceFeed) -> None:
        calls = []
        handles = {}

        def first(_prices):
            calls.append("first")
            handles["second"]()

        def second(_prices):
            calls.append("second")

        feed.subscribe(first)
        handles["second"] = feed.subscribe(second)
        feed.tick()
        assert calls == ["first"]

    def test_failing_subscriber_does_not_block_others(self, feed: PriceFeed) -> None:
        received = []

        def broken(_prices):
            raise RuntimeError("boom")

        feed.subscribe(broken)
        feed.subscribe(received.append)
        feed.tick()
        assert len(received) == 1


class TestScheduling:
    def test_start_requires_running_loop(self, feed: PriceFeed) -> None:
        with pytest.raises(RuntimeError):
            feed.start()

    def test_start_ticks_and_stop_halts(self, feed: PriceFeed) -> None:
        async def scenario():
            feed.set_update_interval(0.01)
            feed.start()
            assert feed.is_running
            await asyncio.sleep(0.08)
            feed.stop()
            ticks_at_stop = feed.tick_count
            await asyncio.sleep(0.05)
            return ticks_at_stop

        ticks_at_stop = asyncio.run(scenario())
        assert ticks_at_stop >= 1
        assert feed.tick_count == ticks_at_stop
        assert not feed.is_running

    def test_double_start_and_double_stop(self, feed: PriceFeed) -> None:
        async def scenario():
            feed.set_update_interval(0.01)
            feed.start()
            feed.start()
            await asyncio.sleep(0.035)
            feed.stop()
            feed.stop()

        asyncio.run(scenario())
        # una sola task → como mucho un tick por intervalo
        assert feed.tick_count <= 4
        assert not feed.is_running

    def test_interval_change_restarts_timer(self, feed: PriceFeed) -> None:
        async def scenario():
            feed.set_update_interval(10)
            feed.start()
            feed.set_update_interval(0.01)
            await asyncio.sleep(0.05)
            running = feed.is_running
            feed.stop()
            return running

        assert asyncio.run(scenario())
        assert feed.tick_count >= 1
