from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path

import pandas as pd
import pytest

from ticksim.data_provider import CsvCandleSource, InMemoryCandleSource, candles_from_frame
from ticksim.models import Candle


def _write_csv(path: Path, rows: list[dict]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(rows).to_csv(path, index=False)


def test_csv_source_reads_sorted_candles(tmp_path: Path) -> None:
    _write_csv(
        tmp_path / "AAPL_5m.csv",
        [
            {"timestamp": "2024-01-02T14:35:00Z", "open": 11, "high": 12, "low": 10, "close": 11.5, "volume": 3},
            {"timestamp": "2024-01-02T14:30:00Z", "open": 10, "high": 11, "low": 9, "close": 11, "volume": 5},
        ],
    )

    candles = CsvCandleSource(data_dir=tmp_path).fetch_candles("aapl", "5m")

    assert [candle.open for candle in candles] == [10, 11]
    assert candles[0].timestamp == datetime(2024, 1, 2, 14, 30, tzinfo=timezone.utc)
    assert candles[0].interval == "5m"
    assert candles[1].volume == 3


def test_csv_source_accepts_epoch_milliseconds(tmp_path: Path) -> None:
    epoch_ms = int(datetime(2024, 1, 2, 14, 30, tzinfo=timezone.utc).timestamp() * 1000)
    _write_csv(
        tmp_path / "AAPL_5m.csv",
        [{"timestamp": epoch_ms, "open": 10, "high": 11, "low": 9, "close": 10.5}],
    )

    candles = CsvCandleSource(data_dir=tmp_path).fetch_candles("AAPL", "5m")

    assert candles[0].timestamp == datetime(2024, 1, 2, 14, 30, tzinfo=timezone.utc)
    assert candles[0].volume == 0.0


def test_csv_source_filters_inclusive_date_range(tmp_path: Path) -> None:
    _write_csv(
        tmp_path / "AAPL_5m.csv",
        [
            {"timestamp": f"2024-01-0{day}T15:00:00Z", "open": 10, "high": 11, "low": 9, "close": 10}
            for day in (1, 2, 3, 4)
        ],
    )
    source = CsvCandleSource(data_dir=tmp_path, start_date=date(2024, 1, 2), end_date=date(2024, 1, 3))

    candles = source.fetch_candles("AAPL", "5m")

    assert [candle.timestamp.day for candle in candles] == [2, 3]


def test_missing_file_returns_empty_sequence(tmp_path: Path) -> None:
    assert CsvCandleSource(data_dir=tmp_path).fetch_candles("MSFT", "5m") == []


def test_frame_without_ohlc_columns_is_rejected() -> None:
    with pytest.raises(ValueError):
        candles_from_frame(pd.DataFrame([{"timestamp": "2024-01-02", "open": 1}]), "5m")


def test_in_memory_source_is_case_insensitive_and_sorted() -> None:
    candles = [
        Candle(datetime(2024, 1, 2, 14, 30 + 5 * index, tzinfo=timezone.utc), 10, 11, 9, 10.5)
        for index in range(3)
    ]
    source = InMemoryCandleSource()
    source.add("aapl", "5m", reversed(candles))

    assert source.fetch_candles("AAPL", "5m") == candles
    assert source.fetch_candles("AAPL", "1h") == []
