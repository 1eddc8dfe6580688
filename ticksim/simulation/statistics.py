from __future__ import annotations

from typing import Iterable, Optional

from ticksim.models import StatisticsSnapshot
from ticksim.simulation.account import PortfolioAccount


def max_gain(values: Iterable[float]) -> float:
    """Mayor subida relativa desde un mínimo previo; un mínimo no positivo se reemplaza."""
    best = 0.0
    running_min: Optional[float] = None
    for value in values:
        if running_min is not None and running_min > 0:
            best = max(best, (value - running_min) / running_min)
        if running_min is None or running_min <= 0 or value < running_min:
            running_min = value
    return best


def max_drawdown(values: Iterable[float]) -> float:
    worst = 0.0
    peak: Optional[float] = None
    for value in values:
        if peak is not None and peak > 0:
            worst = max(worst, (peak - value) / peak)
        if peak is None or value > peak:
            peak = value
    return worst


class StatisticsAggregator:
    """Recalcula las estadísticas procesando solo las muestras y trades nuevos."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._equity_cursor = 0
        self._trade_cursor = 0
        self._running_min: Optional[float] = None
        self._running_peak: Optional[float] = None
        self._max_gain = 0.0
        self._max_drawdown = 0.0
        self._total_trades = 0
        self._winning_trades = 0
        self._losing_trades = 0
        self._largest_win = 0.0
        self._largest_loss = 0.0

    def update(self, account: PortfolioAccount) -> StatisticsSnapshot:
        with account.lock:
            new_samples = account.equity_curve[self._equity_cursor :]
            new_trades = account.trades[self._trade_cursor :]
            self._equity_cursor += len(new_samples)
            self._trade_cursor += len(new_trades)
            cash = account.cash
            realized = account.realized_pnl()
            unrealized = account.unrealized_pnl()
            latest_equity = account.latest_equity()
            initial_cash = account.initial_cash

        for sample in new_samples:
            self._consume_equity(sample.equity)
        for trade in new_trades:
            if not trade.is_closing:
                continue
            self._total_trades += 1
            if trade.realized_pnl > 0:
                self._winning_trades += 1
                self._largest_win = max(self._largest_win, trade.realized_pnl)
            elif trade.realized_pnl < 0:
                self._losing_trades += 1
                self._largest_loss = min(self._largest_loss, trade.realized_pnl)

        total_profit = latest_equity - initial_cash
        total_return_rate = total_profit / initial_cash if initial_cash else 0.0
        win_rate = self._winning_trades / self._total_trades if self._total_trades else 0.0
        return StatisticsSnapshot(
            equity=latest_equity,
            cash=cash,
            total_profit=total_profit,
            total_return_rate=total_return_rate,
            max_drawdown=self._max_drawdown,
            max_gain=self._max_gain,
            total_trades=self._total_trades,
            winning_trades=self._winning_trades,
            losing_trades=self._losing_trades,
            win_rate=win_rate,
            realized_pnl=realized,
            unrealized_pnl=unrealized,
            largest_win=self._largest_win,
            largest_loss=self._largest_loss,
        )

    def _consume_equity(self, equity: float) -> None:
        if self._running_min is not None and self._running_min > 0:
            gain = (equity - self._running_min) / self._running_min
            if gain > self._max_gain:
                self._max_gain = gain
        if self._running_peak is not None and self._running_peak > 0:
            drawdown = (self._running_peak - equity) / self._running_peak
            if drawdown > self._max_drawdown:
                self._max_drawdown = drawdown
        if self._running_min is None or self._running_min <= 0 or equity < self._running_min:
            self._running_min = equity
        if self._running_peak is None or equity > self._running_peak:
            self._running_peak = equity


__all__ = ["StatisticsAggregator", "max_drawdown", "max_gain"]
