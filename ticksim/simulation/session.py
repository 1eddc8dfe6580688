from __future__ import annotations

import logging
import random
from dataclasses import replace
from typing import Callable, Iterator, List, Optional

from ticksim.config import SimConfig, VALID_SPEEDS, validate_setup
from ticksim.data_provider import CandleSource
from ticksim.errors import InvalidQuantity, NoDataAvailable, SimulationError
from ticksim.models import Candle, EquitySample, SimulationUpdate, Tick, Trade
from ticksim.notifications import notify_simulation_stopped, notify_trade_closed
from ticksim.observability import ObservabilityStore
from ticksim.simulation.account import PortfolioAccount
from ticksim.simulation.clock import ClockState, SimulationClock
from ticksim.simulation.executor import TradeExecutor, TradeListener
from ticksim.simulation.statistics import StatisticsAggregator
from ticksim.simulation.ticks import TickGenerator

LOGGER = logging.getLogger(__name__)

UpdateObserver = Callable[[SimulationUpdate], None]


class SimulationSession:
    def __init__(
        self,
        config: SimConfig,
        candle_source: CandleSource,
        *,
        rng: Optional[random.Random] = None,
        store: Optional[ObservabilityStore] = None,
        notify: bool = True,
        ticks_per_candle: Optional[int] = None,
    ) -> None:
        validate_setup(config)
        self.config = config
        self.instrument = config.instrument.upper()
        self.candle_source = candle_source
        self.store = store
        self.notify = notify
        self.account = PortfolioAccount(config.initial_balance)
        self.executor = TradeExecutor(
            self.account,
            allow_short=config.allow_short,
            fee_rate=config.fee_rate,
        )
        self.aggregator = StatisticsAggregator()
        self.tick_generator = TickGenerator(rng=rng or random.Random(config.seed))
        self.clock = SimulationClock(
            self._iter_candles(),
            self.tick_generator,
            on_tick=self._on_tick,
            on_stopped=self._on_stopped,
            period_s=config.tick_period_s,
            speed=config.speed,
            ticks_per_candle=ticks_per_candle,
        )
        self.current_price: Optional[float] = None
        self.current_tick: Optional[Tick] = None
        self._statistics = self.aggregator.update(self.account)
        self._observers: List[UpdateObserver] = []

        if store is not None:
            self.add_observer(store.record_update)
        if notify:
            self.executor.add_trade_closed_listener(notify_trade_closed)

    def add_observer(self, observer: UpdateObserver) -> None:
        self._observers.append(observer)

    def add_trade_closed_listener(self, listener: TradeListener) -> None:
        self.executor.add_trade_closed_listener(listener)

    def start(self, speed: Optional[int] = None, *, background: bool = True) -> None:
        if speed is not None:
            _validate_speed(speed)
        self.clock.start(speed, background=background)
        LOGGER.info("Simulación de %s iniciada", self.instrument)

    def pause(self) -> None:
        self.clock.pause()

    def resume(self) -> None:
        self.clock.resume()

    def stop(self) -> None:
        self.clock.stop()

    def set_speed(self, speed: int) -> None:
        _validate_speed(speed)
        self.clock.set_speed(speed)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self.clock.wait(timeout)

    def execute_trade(self, side: str, quantity: int, fees: Optional[float] = None) -> Trade:
        return self._trade(side, lambda _price: quantity, fees)

    def trade_amount(self, side: str, amount: float, fees: Optional[float] = None) -> Trade:
        if amount <= 0:
            raise InvalidQuantity("El importe debe ser positivo.")
        return self._trade(side, lambda price: _units_for_amount(amount, price), fees)

    def _trade(
        self,
        side: str,
        resolve_quantity: Callable[[float], int],
        fees: Optional[float],
    ) -> Trade:
        # precio, ejecución y recálculo bajo el mismo candado que el mark-to-market
        with self.account.lock:
            price, tick = self._require_price()
            quantity = resolve_quantity(price)
            trade = self.executor.fill(
                self.instrument,
                side,
                quantity,
                price,
                fees=fees,
                timestamp=tick.timestamp if tick else None,
            )
            self._statistics = self.aggregator.update(self.account)
            equity_point = self.account.equity_curve[-1]
            update = self._build_update(equity_point=equity_point)
        self.executor.notify_closed(trade)
        if self.store is not None:
            self.store.record_trade(trade)
        self._publish(update)
        return trade

    def snapshot(self) -> SimulationUpdate:
        with self.account.lock:
            equity_point = self.account.equity_curve[-1] if self.account.equity_curve else None
            return self._build_update(equity_point=equity_point)

    def status(self) -> dict:
        clock = self.clock
        return {
            "instrument": self.instrument,
            "state": clock.state.value,
            "speed": clock.speed,
            "tick_period_s": clock.period_s,
            "candles_loaded": clock.candles_loaded,
            "ticks_published": clock.ticks_published,
            "current_price": self.current_price,
            "allow_short": self.executor.allow_short,
            "error": str(clock.error) if clock.error else None,
        }

    def _require_price(self) -> tuple[float, Optional[Tick]]:
        if self.clock.state == ClockState.STOPPED:
            raise SimulationError("La simulación está detenida.")
        with self.account.lock:
            if self.current_price is None:
                raise NoDataAvailable("Aún no hay precio: inicia la simulación.")
            return self.current_price, self.current_tick

    def _iter_candles(self) -> Iterator[Candle]:
        candles = self.candle_source.fetch_candles(self.instrument, self.config.interval)
        LOGGER.info("Cargadas %s velas de %s (%s)", len(candles), self.instrument, self.config.interval)
        yield from candles

    def _on_tick(self, _candle: Candle, tick: Tick) -> None:
        with self.account.lock:
            self.current_price = tick.price
            self.current_tick = tick
            equity_point = self.account.mark_to_market(self.instrument, tick.price, tick.timestamp)
            self._statistics = self.aggregator.update(self.account)
            update = self._build_update(equity_point=equity_point)
        self._publish(update)

    def _on_stopped(self, error: Optional[Exception]) -> None:
        self._publish(self.snapshot())
        if self.notify:
            notify_simulation_stopped(self.instrument, error)

    def _build_update(self, *, equity_point: Optional[EquitySample]) -> SimulationUpdate:
        error = self.clock.error
        return SimulationUpdate(
            instrument=self.instrument,
            current_price=self.current_price,
            state=self.clock.state.value,
            statistics=self._statistics,
            tick=self.current_tick,
            equity_point=equity_point,
            positions={
                instrument: replace(position)
                for instrument, position in self.account.open_positions().items()
            },
            error=str(error) if error else None,
        )

    def _publish(self, update: SimulationUpdate) -> None:
        for observer in list(self._observers):
            try:
                observer(update)
            except Exception as exc:  # noqa: BLE001 - renderers must not break the simulation
                LOGGER.warning("Observador falló: %s", exc)


def _validate_speed(speed: int) -> None:
    if speed not in VALID_SPEEDS:
        raise ValueError("Velocidad inválida. Debe ser múltiplo de 5 entre 5x y 30x.")


def _units_for_amount(amount: float, price: float) -> int:
    quantity = int(amount // price)
    if quantity <= 0:
        raise InvalidQuantity("Importe insuficiente para operar 1 unidad.")
    return quantity


__all__ = ["SimulationSession", "UpdateObserver"]
