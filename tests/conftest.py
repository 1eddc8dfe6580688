from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from ticksim.config import SimConfig
from ticksim.data_provider import InMemoryCandleSource
from ticksim.models import Candle

START = datetime(2024, 1, 2, 14, 30, tzinfo=timezone.utc)


def make_candles(closes: List[float], start: datetime = START) -> List[Candle]:
    candles = []
    previous = closes[0]
    for index, close in enumerate(closes):
        candles.append(
            Candle(
                timestamp=start + timedelta(minutes=5 * index),
                open=previous,
                high=max(previous, close) + 1,
                low=min(previous, close) - 1,
                close=close,
            )
        )
        previous = close
    return candles


@pytest.fixture(autouse=True)
def _no_webhook(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NOTIFICATION_WEBHOOK_URL", raising=False)


@pytest.fixture
def config() -> SimConfig:
    return SimConfig(instrument="AAPL", initial_balance=100000.0, speed=5, tick_period_s=0.01, seed=7)


@pytest.fixture
def candle_source() -> InMemoryCandleSource:
    return InMemoryCandleSource({("AAPL", "5m"): make_candles([50.0, 60.0, 55.0])})
