from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from ticksim.errors import InvalidCandle
from ticksim.models import Candle
from ticksim.simulation.ticks import TickGenerator, ticks_for_speed


def _candle(open_: float, high: float, low: float, close: float, interval: str = "5m") -> Candle:
    return Candle(
        timestamp=datetime(2024, 1, 2, 14, 30, tzinfo=timezone.utc),
        open=open_,
        high=high,
        low=low,
        close=close,
        interval=interval,
    )


def _assert_monotonic(segment: list[float]) -> None:
    increasing = all(a <= b for a, b in zip(segment, segment[1:]))
    decreasing = all(a >= b for a, b in zip(segment, segment[1:]))
    assert increasing or decreasing


def test_generates_anchors_and_extremes_inside_candle() -> None:
    generator = TickGenerator(rng=random.Random(7))

    prices = generator.generate_prices(_candle(10, 15, 8, 12), 60)

    assert len(prices) == 60
    assert prices[0] == 10
    assert prices[-1] == 12
    interior = prices[1:59]
    assert interior.count(15) == 1
    assert interior.count(8) == 1
    assert all(8 <= price <= 15 for price in prices)


@pytest.mark.parametrize("seed", range(20))
def test_segments_between_anchors_are_monotonic(seed: int) -> None:
    generator = TickGenerator(rng=random.Random(seed))

    prices = generator.generate_prices(_candle(10, 15, 8, 12), 60)

    high_index = prices.index(15)
    low_index = prices.index(8)
    first, second = sorted((high_index, low_index))
    _assert_monotonic(prices[: first + 1])
    _assert_monotonic(prices[first : second + 1])
    _assert_monotonic(prices[second:])


def test_extremes_order_varies_between_candles() -> None:
    generator = TickGenerator(rng=random.Random(3))
    candle = _candle(10, 15, 8, 12)

    orders = set()
    for _ in range(50):
        prices = generator.generate_prices(candle, 60)
        orders.add(prices.index(15) < prices.index(8))

    assert orders == {True, False}


def test_same_seed_produces_same_sequence() -> None:
    candle = _candle(100, 104, 97, 101)

    first = TickGenerator(rng=random.Random(42)).generate_prices(candle, 30)
    second = TickGenerator(rng=random.Random(42)).generate_prices(candle, 30)

    assert first == second


def test_short_sequences_fall_back_to_straight_line() -> None:
    generator = TickGenerator(rng=random.Random(1))

    assert generator.generate_prices(_candle(10, 15, 8, 13), 3) == [10, 11.5, 13]
    assert generator.generate_prices(_candle(10, 15, 8, 13), 2) == [10, 13]
    assert generator.generate_prices(_candle(10, 15, 8, 13), 1) == [13]


def test_degenerate_candle_is_flat() -> None:
    rng = random.Random(1)
    generator = TickGenerator(rng=rng)
    state = rng.getstate()

    prices = generator.generate_prices(_candle(50, 50, 50, 50), 60)

    assert prices == [50] * 60
    assert rng.getstate() == state


def test_invalid_candle_is_interpolated_from_open_to_close() -> None:
    generator = TickGenerator(rng=random.Random(1))

    prices = generator.generate_prices(_candle(10, 9, 8, 12), 5)

    assert prices == [10, 10.5, 11, 11.5, 12]


def test_non_positive_tick_count_is_rejected() -> None:
    generator = TickGenerator(rng=random.Random(1))

    with pytest.raises(ValueError):
        generator.generate_prices(_candle(10, 15, 8, 12), 0)
    with pytest.raises(ValueError):
        TickGenerator(ticks_per_candle=0)


def test_generate_spreads_timestamps_over_candle_duration() -> None:
    candle = _candle(10, 15, 8, 12, interval="5m")

    ticks = TickGenerator(rng=random.Random(5)).generate(candle, 60)

    assert [tick.index for tick in ticks] == list(range(60))
    assert ticks[0].timestamp == candle.timestamp
    assert ticks[1].timestamp - ticks[0].timestamp == timedelta(seconds=5)
    assert ticks[-1].timestamp < candle.timestamp + timedelta(minutes=5)


def test_ticks_for_speed_maps_speed_to_ticks_per_candle() -> None:
    assert ticks_for_speed(5, 300) == 60
    assert ticks_for_speed(30, 300) == 10
    assert ticks_for_speed(30, 20) == 1


def test_strict_generator_rejects_invalid_candle() -> None:
    generator = TickGenerator(rng=random.Random(1), strict=True)

    with pytest.raises(InvalidCandle):
        generator.generate_prices(_candle(10, 9, 8, 12), 5)
