from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ticksim.models import BUY, Position, normalize_side


@dataclass(frozen=True)
class LedgerFill:
    realized_pnl: float
    closed_quantity: int
    entry_price: float


class PositionLedger:
    """
    Estado de la posición de un instrumento.

    Las comisiones de apertura se suman al coste medio (en cortos se restan
    del precio de entrada); las de cierre se descuentan del PnL realizado.
    """

    def __init__(self, instrument: str) -> None:
        self.position = Position(instrument=instrument)

    @property
    def instrument(self) -> str:
        return self.position.instrument

    @property
    def quantity(self) -> int:
        return self.position.quantity

    @property
    def average_cost(self) -> float:
        return self.position.average_cost

    def apply_trade(
        self,
        side: str,
        quantity: int,
        price: float,
        fees: float = 0.0,
        timestamp: Optional[datetime] = None,
    ) -> float:
        return self.apply_fill(side, quantity, price, fees, timestamp).realized_pnl

    def apply_fill(
        self,
        side: str,
        quantity: int,
        price: float,
        fees: float = 0.0,
        timestamp: Optional[datetime] = None,
    ) -> LedgerFill:
        side = normalize_side(side)
        quantity = int(quantity)
        if quantity <= 0:
            raise ValueError("quantity debe ser positiva")

        position = self.position
        direction = 1 if side == BUY else -1
        entry_price = position.average_cost
        current = position.quantity
        realized = 0.0
        closed = 0

        if current == 0 or (current > 0) == (direction > 0):
            self._open(direction, quantity, price, fees)
        else:
            closed = min(quantity, abs(current))
            remainder = quantity - closed
            close_fees = fees * closed / quantity
            sign = 1 if current > 0 else -1
            realized = (price - entry_price) * closed * sign - close_fees
            position.quantity = current + direction * closed
            if position.quantity == 0:
                position.average_cost = 0.0
            if remainder > 0:
                self._open(direction, remainder, price, fees - close_fees)

        position.realized_pnl += realized
        position.last_updated = timestamp or position.last_updated
        if position.last_price is not None:
            self.mark_to_market(position.last_price)
        return LedgerFill(realized_pnl=realized, closed_quantity=closed, entry_price=entry_price)

    def mark_to_market(self, current_price: float, timestamp: Optional[datetime] = None) -> float:
        position = self.position
        position.last_price = current_price
        if timestamp is not None:
            position.last_updated = timestamp
        if position.quantity == 0:
            position.unrealized_pnl = 0.0
        else:
            position.unrealized_pnl = (current_price - position.average_cost) * position.quantity
        return position.unrealized_pnl

    def _open(self, direction: int, quantity: int, price: float, fees: float) -> None:
        position = self.position
        held = abs(position.quantity)
        # coste efectivo por unidad de la parte que abre
        unit_cost = price + direction * fees / quantity
        total = held + quantity
        position.average_cost = (position.average_cost * held + unit_cost * quantity) / total
        position.quantity += direction * quantity


__all__ = ["LedgerFill", "PositionLedger"]
