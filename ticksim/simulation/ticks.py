from __future__ import annotations

import logging
import random
from typing import List, Optional

from ticksim.errors import InvalidCandle
from ticksim.models import Candle, Tick

LOGGER = logging.getLogger(__name__)

DEFAULT_TICKS_PER_CANDLE = 60


def ticks_for_speed(speed: int, candle_seconds: int) -> int:
    """Ticks por vela: un tick por segundo de reloj real a la velocidad dada."""
    speed = max(1, int(speed))
    return max(1, int(candle_seconds) // speed)


class TickGenerator:
    """
    Expande una vela OHLC en una serie de precios sintéticos.

    Convención:
    - tick[0] = open y tick[N-1] = close.
    - high y low ocupan dos índices interiores distintos, en orden aleatorio.
    - El resto se interpola linealmente entre anclas.
    - Una vela incoherente (high/low fuera de open/close) se interpola en
      línea recta, o lanza InvalidCandle con ``strict=True``.
    """

    def __init__(
        self,
        ticks_per_candle: int = DEFAULT_TICKS_PER_CANDLE,
        rng: Optional[random.Random] = None,
        strict: bool = False,
    ) -> None:
        if int(ticks_per_candle) <= 0:
            raise ValueError("ticks_per_candle debe ser positivo")
        self.ticks_per_candle = int(ticks_per_candle)
        self.rng = rng or random.Random()
        self.strict = strict

    def generate(self, candle: Candle, ticks_per_candle: Optional[int] = None) -> List[Tick]:
        prices = self.generate_prices(candle, ticks_per_candle)
        step = candle.duration / len(prices)
        return [
            Tick(price=price, index=index, timestamp=candle.timestamp + step * index)
            for index, price in enumerate(prices)
        ]

    def generate_prices(self, candle: Candle, ticks_per_candle: Optional[int] = None) -> List[float]:
        points = int(ticks_per_candle) if ticks_per_candle is not None else self.ticks_per_candle
        if points <= 0:
            raise ValueError("ticks_per_candle debe ser positivo")
        if points == 1:
            return [candle.close]

        prices: List[float] = [0.0] * points
        prices[0] = candle.open
        prices[-1] = candle.close

        if not candle.is_valid():
            if self.strict:
                raise InvalidCandle(
                    f"Vela inválida en {candle.timestamp}: o={candle.open} h={candle.high} "
                    f"l={candle.low} c={candle.close}"
                )
            LOGGER.warning(
                "Vela inválida en %s (o=%s h=%s l=%s c=%s); se usa interpolación lineal",
                candle.timestamp,
                candle.open,
                candle.high,
                candle.low,
                candle.close,
            )
            _interpolate(prices, 0, points - 1)
            return prices
        if candle.is_degenerate():
            return [candle.close] * points
        if points < 4:
            _interpolate(prices, 0, points - 1)
            return prices

        first = self.rng.randint(1, points - 3)
        second = self.rng.randint(first + 1, points - 2)
        high_first = self.rng.random() < 0.5
        prices[first] = candle.high if high_first else candle.low
        prices[second] = candle.low if high_first else candle.high

        _interpolate(prices, 0, first)
        _interpolate(prices, first, second)
        _interpolate(prices, second, points - 1)
        return prices


def _interpolate(prices: List[float], start: int, end: int) -> None:
    steps = end - start
    if steps <= 1:
        return
    start_value = prices[start]
    end_value = prices[end]
    step_value = 0.0 if end_value == start_value else (end_value - start_value) / steps
    lower = min(start_value, end_value)
    upper = max(start_value, end_value)
    for offset in range(1, steps):
        # redondeo de coma flotante: nunca fuera del segmento
        prices[start + offset] = min(upper, max(lower, start_value + step_value * offset))


__all__ = ["DEFAULT_TICKS_PER_CANDLE", "TickGenerator", "ticks_for_speed"]
