from __future__ import annotations

from ticksim.simulation.account import PortfolioAccount
from ticksim.simulation.clock import ClockState, SimulationClock
from ticksim.simulation.executor import TradeExecutor
from ticksim.simulation.ledger import LedgerFill, PositionLedger
from ticksim.simulation.session import SimulationSession
from ticksim.simulation.statistics import StatisticsAggregator, max_drawdown, max_gain
from ticksim.simulation.ticks import TickGenerator, ticks_for_speed

__all__ = [
    "ClockState",
    "LedgerFill",
    "PortfolioAccount",
    "PositionLedger",
    "SimulationClock",
    "SimulationSession",
    "StatisticsAggregator",
    "TickGenerator",
    "TradeExecutor",
    "max_drawdown",
    "max_gain",
    "ticks_for_speed",
]
