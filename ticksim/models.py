from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional

BUY = "BUY"
SELL = "SELL"
VALID_SIDES = {BUY, SELL}

_INTERVAL_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
    "M": 30 * 24 * 60 * 60,
}


def interval_to_seconds(interval: str) -> int:
    match = re.fullmatch(r"(\d+)([smhdwM])", interval)
    if not match:
        raise ValueError(f"Intervalo no soportado: {interval}")
    return int(match.group(1)) * _INTERVAL_SECONDS[match.group(2)]


def normalize_side(side: str) -> str:
    normalized = str(side).strip().upper()
    if normalized not in VALID_SIDES:
        raise ValueError(f"Lado inválido: {side}. Usa BUY o SELL.")
    return normalized


@dataclass(frozen=True)
class Candle:
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    interval: str = "5m"
    volume: float = 0.0

    def is_valid(self) -> bool:
        return self.low <= min(self.open, self.close) <= max(self.open, self.close) <= self.high

    def is_degenerate(self) -> bool:
        return self.high == self.low

    @property
    def duration(self) -> timedelta:
        return timedelta(seconds=interval_to_seconds(self.interval))


@dataclass(frozen=True)
class Tick:
    price: float
    index: int
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class Trade:
    instrument: str
    side: str
    quantity: int
    price: float
    fees: float
    timestamp: datetime
    realized_pnl: float = 0.0
    closed_quantity: int = 0
    entry_price: float = 0.0

    @property
    def is_closing(self) -> bool:
        return self.closed_quantity > 0

    @property
    def return_pct(self) -> float:
        basis = self.entry_price * self.closed_quantity
        if basis == 0:
            return 0.0
        return self.realized_pnl / basis

    def to_dict(self) -> Dict[str, object]:
        return {
            "instrument": self.instrument,
            "side": self.side,
            "quantity": self.quantity,
            "price": self.price,
            "fees": self.fees,
            "timestamp": self.timestamp.isoformat(),
            "realized_pnl": self.realized_pnl,
            "closed_quantity": self.closed_quantity,
            "entry_price": self.entry_price,
            "return_pct": self.return_pct,
        }


@dataclass
class Position:
    instrument: str
    quantity: int = 0
    average_cost: float = 0.0
    realized_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    last_price: Optional[float] = None
    last_updated: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.quantity != 0

    @property
    def market_value(self) -> float:
        if self.last_price is None:
            return 0.0
        return self.quantity * self.last_price

    def to_dict(self) -> Dict[str, object]:
        return {
            "instrument": self.instrument,
            "quantity": self.quantity,
            "average_cost": self.average_cost,
            "realized_pnl": self.realized_pnl,
            "unrealized_pnl": self.unrealized_pnl,
            "last_price": self.last_price,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }


@dataclass(frozen=True)
class EquitySample:
    timestamp: datetime
    equity: float


@dataclass(frozen=True)
class StatisticsSnapshot:
    equity: float = 0.0
    cash: float = 0.0
    total_profit: float = 0.0
    total_return_rate: float = 0.0
    max_drawdown: float = 0.0
    max_gain: float = 0.0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    realized_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "equity": self.equity,
            "cash": self.cash,
            "total_profit": self.total_profit,
            "total_return_rate": self.total_return_rate,
            "max_drawdown": self.max_drawdown,
            "max_gain": self.max_gain,
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": self.win_rate,
            "realized_pnl": self.realized_pnl,
            "unrealized_pnl": self.unrealized_pnl,
            "largest_win": self.largest_win,
            "largest_loss": self.largest_loss,
        }


@dataclass(frozen=True)
class SimulationUpdate:
    instrument: str
    current_price: Optional[float]
    state: str
    statistics: StatisticsSnapshot
    tick: Optional[Tick] = None
    equity_point: Optional[EquitySample] = None
    positions: Dict[str, Position] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "instrument": self.instrument,
            "current_price": self.current_price,
            "state": self.state,
            "statistics": self.statistics.to_dict(),
            "tick_index": self.tick.index if self.tick else None,
            "timestamp": (
                self.tick.timestamp.isoformat() if self.tick and self.tick.timestamp else None
            ),
            "equity_point": (
                {
                    "timestamp": self.equity_point.timestamp.isoformat(),
                    "equity": self.equity_point.equity,
                }
                if self.equity_point
                else None
            ),
            "positions": {key: value.to_dict() for key, value in self.positions.items()},
            "error": self.error,
        }
