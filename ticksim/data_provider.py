from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from ticksim.models import Candle

LOGGER = logging.getLogger(__name__)

OHLCV_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]


class CandleSource(ABC):
    @abstractmethod
    def fetch_candles(self, instrument: str, interval: str) -> List[Candle]:
        raise NotImplementedError


class InMemoryCandleSource(CandleSource):
    def __init__(self, candles: Optional[Dict[Tuple[str, str], Iterable[Candle]]] = None) -> None:
        self._candles: Dict[Tuple[str, str], List[Candle]] = {}
        for (instrument, interval), items in (candles or {}).items():
            self.add(instrument, interval, items)

    def add(self, instrument: str, interval: str, candles: Iterable[Candle]) -> None:
        key = (instrument.upper(), interval)
        merged = self._candles.get(key, []) + list(candles)
        self._candles[key] = sorted(merged, key=lambda candle: candle.timestamp)

    def fetch_candles(self, instrument: str, interval: str) -> List[Candle]:
        return list(self._candles.get((instrument.upper(), interval), []))


def parse_timestamps(series: pd.Series) -> pd.Series:
    """Timestamps en milisegundos epoch o ISO-8601, siempre en UTC."""
    if pd.api.types.is_numeric_dtype(series):
        return pd.to_datetime(series, unit="ms", utc=True)
    return pd.to_datetime(series, utc=True)


def normalize_float_columns(df: pd.DataFrame, columns: Iterable[str]) -> pd.DataFrame:
    for column in columns:
        df[column] = pd.to_numeric(df[column], errors="coerce").astype(float)
    return df


def candles_from_frame(df: pd.DataFrame, interval: str) -> List[Candle]:
    if df.empty:
        return []
    missing = [column for column in OHLCV_COLUMNS[:5] if column not in df.columns]
    if missing:
        raise ValueError(f"Faltan columnas OHLC: {', '.join(missing)}")
    df = df.copy()
    if "volume" not in df.columns:
        df["volume"] = 0.0
    normalize_float_columns(df, ["open", "high", "low", "close", "volume"])
    df = df.dropna(subset=["timestamp", "open", "high", "low", "close"])
    df["timestamp"] = parse_timestamps(df["timestamp"])
    df = df.drop_duplicates(subset=["timestamp"]).sort_values("timestamp")
    return [
        Candle(
            timestamp=row.timestamp.to_pydatetime(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            interval=interval,
            volume=float(row.volume) if pd.notna(row.volume) else 0.0,
        )
        for row in df.itertuples(index=False)
    ]


@dataclass
class CsvCandleSource(CandleSource):
    data_dir: Path = field(default_factory=lambda: Path("./data"))
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def path_for(self, instrument: str, interval: str) -> Path:
        safe_instrument = instrument.upper().replace("/", "-")
        return Path(self.data_dir) / f"{safe_instrument}_{interval}.csv"

    def fetch_candles(self, instrument: str, interval: str) -> List[Candle]:
        path = self.path_for(instrument, interval)
        if not path.exists():
            LOGGER.warning("No existe el fichero de velas %s", path)
            return []
        df = pd.read_csv(path)
        candles = candles_from_frame(df, interval)
        start_dt, end_dt = self._resolve_range()
        return [
            candle
            for candle in candles
            if (start_dt is None or candle.timestamp >= start_dt)
            and (end_dt is None or candle.timestamp < end_dt)
        ]

    def _resolve_range(self) -> Tuple[Optional[datetime], Optional[datetime]]:
        start_dt = None
        end_dt = None
        if self.start_date is not None:
            start_dt = datetime.combine(self.start_date, datetime.min.time(), tzinfo=timezone.utc)
        if self.end_date is not None:
            end_dt = datetime.combine(
                self.end_date + timedelta(days=1), datetime.min.time(), tzinfo=timezone.utc
            )
        return start_dt, end_dt


__all__ = [
    "CandleSource",
    "CsvCandleSource",
    "InMemoryCandleSource",
    "OHLCV_COLUMNS",
    "candles_from_frame",
    "parse_timestamps",
]
