from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ticksim.errors import InsufficientFunds, InvalidQuantity
from ticksim.models import BUY, SELL, Trade, normalize_side
from ticksim.simulation.account import PortfolioAccount

LOGGER = logging.getLogger(__name__)

TradeListener = Callable[[Trade], None]


class TradeExecutor:
    def __init__(
        self,
        account: PortfolioAccount,
        *,
        allow_short: bool = False,
        fee_rate: float = 0.0,
    ) -> None:
        if fee_rate < 0:
            raise ValueError("fee_rate no puede ser negativa")
        self.account = account
        self.allow_short = allow_short
        self.fee_rate = float(fee_rate)
        self._closed_listeners: List[TradeListener] = []

    def add_trade_closed_listener(self, listener: TradeListener) -> None:
        self._closed_listeners.append(listener)

    def execute(
        self,
        instrument: str,
        side: str,
        quantity: int,
        current_price: float,
        fees: Optional[float] = None,
        timestamp: Optional[datetime] = None,
    ) -> Trade:
        trade = self.fill(instrument, side, quantity, current_price, fees, timestamp)
        self.notify_closed(trade)
        return trade

    def fill(
        self,
        instrument: str,
        side: str,
        quantity: int,
        current_price: float,
        fees: Optional[float] = None,
        timestamp: Optional[datetime] = None,
    ) -> Trade:
        side = normalize_side(side)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidQuantity(f"Cantidad inválida: {quantity}. Debe ser un entero positivo.")
        if current_price <= 0:
            raise ValueError(f"Precio inválido: {current_price}")
        notional = quantity * current_price
        if fees is None:
            fees = notional * self.fee_rate
        if fees < 0:
            raise ValueError("Las comisiones no pueden ser negativas")
        timestamp = timestamp or datetime.now(timezone.utc)

        account = self.account
        with account.lock:
            if side == BUY and notional + fees > account.cash:
                raise InsufficientFunds(
                    f"Fondos insuficientes: requiere {notional + fees:.2f}, "
                    f"disponible {account.cash:.2f}"
                )
            held = account.held_quantity(instrument)
            if side == SELL and not self.allow_short and quantity > max(held, 0):
                raise InvalidQuantity(
                    f"No se puede vender {quantity} de {instrument}: posición larga de {max(held, 0)} "
                    "y las ventas en corto están desactivadas."
                )

            if side == BUY:
                account.cash -= notional + fees
            else:
                account.cash += notional - fees

            ledger_fill = account.ledger(instrument).apply_fill(
                side, quantity, current_price, fees, timestamp
            )
            trade = Trade(
                instrument=instrument,
                side=side,
                quantity=quantity,
                price=current_price,
                fees=fees,
                timestamp=timestamp,
                realized_pnl=ledger_fill.realized_pnl,
                closed_quantity=ledger_fill.closed_quantity,
                entry_price=ledger_fill.entry_price,
            )
            account.record_trade(trade)
            account.mark_to_market(instrument, current_price, timestamp)

        LOGGER.info(
            "Trade ejecutado %s %s x%s @ %.4f fees=%.4f pnl=%.4f",
            side,
            instrument,
            quantity,
            current_price,
            fees,
            trade.realized_pnl,
        )
        return trade

    def notify_closed(self, trade: Trade) -> None:
        if trade.is_closing:
            for listener in list(self._closed_listeners):
                try:
                    listener(trade)
                except Exception as exc:  # noqa: BLE001 - listener failures don't undo the trade
                    LOGGER.warning("Listener de cierre falló: %s", exc)


__all__ = ["TradeExecutor", "TradeListener"]
