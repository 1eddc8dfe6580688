from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ticksim.models import EquitySample
from ticksim.simulation.account import PortfolioAccount
from ticksim.simulation.executor import TradeExecutor
from ticksim.simulation.statistics import StatisticsAggregator, max_drawdown, max_gain

START = datetime(2024, 1, 2, 14, 30, tzinfo=timezone.utc)


def test_pure_ratios() -> None:
    assert max_gain([100, 80, 120, 90]) == pytest.approx(0.5)
    assert max_drawdown([100, 120, 90, 130]) == pytest.approx(0.25)
    assert max_gain([]) == 0.0
    assert max_drawdown([100]) == 0.0


def test_non_positive_base_is_skipped() -> None:
    assert max_gain([0, 10, 20]) == pytest.approx(1.0)
    assert max_drawdown([0, -5]) == 0.0


def test_max_gain_restarts_after_equity_recovers_from_zero() -> None:
    curve = [100.0, 0.0, 50.0, 100.0]
    account = PortfolioAccount(100.0)
    account.equity_curve.extend(
        EquitySample(START + timedelta(seconds=offset), equity) for offset, equity in enumerate(curve)
    )

    statistics = StatisticsAggregator().update(account)

    assert max_gain(curve) == pytest.approx(1.0)
    assert statistics.max_gain == pytest.approx(1.0)
    assert statistics.max_drawdown == pytest.approx(1.0)


def test_empty_account_has_neutral_statistics() -> None:
    statistics = StatisticsAggregator().update(PortfolioAccount(1000.0))

    assert statistics.equity == 1000.0
    assert statistics.total_profit == 0.0
    assert statistics.total_trades == 0
    assert statistics.win_rate == 0.0
    assert statistics.max_drawdown == 0.0


def test_zero_initial_cash_yields_zero_return_rate() -> None:
    statistics = StatisticsAggregator().update(PortfolioAccount(0.0))

    assert statistics.total_return_rate == 0.0


def test_incremental_extremes_match_full_recompute() -> None:
    account = PortfolioAccount(1000.0)
    executor = TradeExecutor(account)
    aggregator = StatisticsAggregator()
    executor.execute("AAPL", "BUY", 10, 50.0, timestamp=START)

    prices = [50, 55, 45, 60, 40, 52]
    for offset, price in enumerate(prices):
        account.mark_to_market("AAPL", price, START + timedelta(seconds=offset))
        statistics = aggregator.update(account)

    curve = [sample.equity for sample in account.equity_curve]
    assert statistics.max_gain == pytest.approx(max_gain(curve))
    assert statistics.max_drawdown == pytest.approx(max_drawdown(curve))
    assert statistics.equity == pytest.approx(curve[-1])


def test_win_rate_counts_only_closing_trades() -> None:
    account = PortfolioAccount(10000.0)
    executor = TradeExecutor(account)
    aggregator = StatisticsAggregator()

    executor.execute("AAPL", "BUY", 10, 100.0)
    executor.execute("AAPL", "SELL", 5, 110.0)
    executor.execute("AAPL", "SELL", 5, 90.0)
    executor.execute("AAPL", "BUY", 1, 100.0)
    executor.execute("AAPL", "SELL", 1, 100.0)

    statistics = aggregator.update(account)

    assert statistics.total_trades == 3
    assert statistics.winning_trades == 1
    assert statistics.losing_trades == 1
    assert 0.0 <= statistics.win_rate <= 1.0
    assert statistics.win_rate == pytest.approx(1 / 3)
    assert statistics.largest_win == pytest.approx(50.0)
    assert statistics.largest_loss == pytest.approx(-50.0)
    assert statistics.realized_pnl == pytest.approx(0.0)


def test_reset_starts_over() -> None:
    account = PortfolioAccount(1000.0)
    aggregator = StatisticsAggregator()
    account.record_equity(START)
    aggregator.update(account)

    aggregator.reset()
    statistics = aggregator.update(PortfolioAccount(500.0))

    assert statistics.equity == 500.0
    assert statistics.max_gain == 0.0
