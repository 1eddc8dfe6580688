from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ticksim.models import EquitySample, Position, Trade
from ticksim.simulation.ledger import PositionLedger


class PortfolioAccount:
    """Cash, posiciones, historial de trades y curva de equity de una simulación.

    ``lock`` es el único candado de escritura: el reloj (mark-to-market) y el
    ejecutor (trades) lo toman antes de mutar cualquier estado.
    """

    def __init__(self, initial_cash: float) -> None:
        self.initial_cash = float(initial_cash)
        self.cash = float(initial_cash)
        self.ledgers: Dict[str, PositionLedger] = {}
        self.trades: List[Trade] = []
        self.equity_curve: List[EquitySample] = []
        self.lock = threading.RLock()

    def ledger(self, instrument: str) -> PositionLedger:
        ledger = self.ledgers.get(instrument)
        if ledger is None:
            ledger = PositionLedger(instrument)
            self.ledgers[instrument] = ledger
        return ledger

    def held_quantity(self, instrument: str) -> int:
        ledger = self.ledgers.get(instrument)
        return ledger.quantity if ledger is not None else 0

    def open_positions(self) -> Dict[str, Position]:
        return {
            instrument: ledger.position
            for instrument, ledger in self.ledgers.items()
            if ledger.position.is_open
        }

    def all_positions(self) -> Dict[str, Position]:
        return {instrument: ledger.position for instrument, ledger in self.ledgers.items()}

    def equity(self) -> float:
        return self.cash + sum(ledger.position.market_value for ledger in self.ledgers.values())

    def realized_pnl(self) -> float:
        return sum(ledger.position.realized_pnl for ledger in self.ledgers.values())

    def unrealized_pnl(self) -> float:
        return sum(ledger.position.unrealized_pnl for ledger in self.ledgers.values())

    def mark_to_market(
        self,
        instrument: str,
        price: float,
        timestamp: Optional[datetime] = None,
    ) -> EquitySample:
        with self.lock:
            ledger = self.ledgers.get(instrument)
            if ledger is not None:
                ledger.mark_to_market(price, timestamp)
            return self.record_equity(timestamp)

    def record_equity(self, timestamp: Optional[datetime] = None) -> EquitySample:
        with self.lock:
            sample = EquitySample(
                timestamp=timestamp or datetime.now(timezone.utc),
                equity=self.equity(),
            )
            self.equity_curve.append(sample)
            return sample

    def record_trade(self, trade: Trade) -> None:
        with self.lock:
            self.trades.append(trade)

    def latest_equity(self) -> float:
        with self.lock:
            if self.equity_curve:
                return self.equity_curve[-1].equity
            return self.equity()


__all__ = ["PortfolioAccount"]
