from __future__ import annotations

import logging
import threading
from collections import deque
from enum import Enum
from typing import Callable, Deque, Iterable, Iterator, Optional

from ticksim.errors import NoDataAvailable
from ticksim.models import Candle, Tick
from ticksim.simulation.ticks import TickGenerator, ticks_for_speed

LOGGER = logging.getLogger(__name__)

TickCallback = Callable[[Candle, Tick], None]
StopCallback = Callable[[Optional[Exception]], None]


class ClockState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    STOPPED = "STOPPED"


class SimulationClock:
    """
    Reloj de la simulación: cada ``period_s`` segundos de reloj real avanza
    exactamente un tick sintético y lo publica mediante ``on_tick``.

    La velocidad no cambia la frecuencia de despertares; cambia cuántos ticks
    se generan por vela (y por tanto cuánto tiempo simulado avanza cada uno).
    """

    def __init__(
        self,
        candle_feed: Iterable[Candle],
        tick_generator: TickGenerator,
        *,
        on_tick: TickCallback,
        on_stopped: Optional[StopCallback] = None,
        period_s: float = 1.0,
        speed: int = 5,
        ticks_per_candle: Optional[int] = None,
    ) -> None:
        if period_s <= 0:
            raise ValueError("period_s debe ser positivo")
        self.tick_generator = tick_generator
        self.on_tick = on_tick
        self.on_stopped = on_stopped
        self.period_s = float(period_s)
        self.speed = int(speed)
        self.ticks_per_candle = ticks_per_candle
        self.error: Optional[Exception] = None
        self.current_candle: Optional[Candle] = None
        self.candles_loaded = 0
        self.ticks_published = 0
        self._candle_feed = candle_feed
        self._feed: Optional[Iterator[Candle]] = None
        self._queue: Deque[Tick] = deque()
        self._state = ClockState.IDLE
        self._lock = threading.Lock()
        self._step_lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> ClockState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == ClockState.RUNNING

    def start(self, speed: Optional[int] = None, *, background: bool = True) -> None:
        with self._lock:
            if self._state == ClockState.STOPPED:
                raise RuntimeError("El reloj está detenido; crea una nueva simulación.")
            if self._state != ClockState.IDLE:
                return
            if speed is not None:
                self._set_speed_locked(speed)
            self._state = ClockState.RUNNING
            if background:
                self._thread = threading.Thread(
                    target=self._run, name="simulation-clock", daemon=True
                )
                self._thread.start()
        LOGGER.info("Reloj iniciado a %sx (periodo %.2fs)", self.speed, self.period_s)

    def pause(self) -> None:
        with self._lock:
            if self._state == ClockState.RUNNING:
                self._state = ClockState.PAUSED
                LOGGER.info("Reloj en pausa")

    def resume(self) -> None:
        with self._lock:
            if self._state == ClockState.PAUSED:
                self._state = ClockState.RUNNING
                LOGGER.info("Reloj reanudado")

    def set_speed(self, speed: int) -> None:
        with self._lock:
            self._set_speed_locked(speed)

    def stop(self, error: Optional[Exception] = None) -> None:
        with self._lock:
            if self._state == ClockState.STOPPED:
                return
            self._state = ClockState.STOPPED
            self.error = error
            self._stop_event.set()
            thread = self._thread
            self._thread = None

        # espera a que termine un despertar en curso
        with self._step_lock:
            self._queue.clear()
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=max(5.0, self.period_s * 2))

        if error is not None:
            LOGGER.warning("Reloj detenido: %s", error)
        else:
            LOGGER.info("Reloj detenido tras %s ticks", self.ticks_published)
        if self.on_stopped is not None:
            try:
                self.on_stopped(error)
            except Exception as exc:  # noqa: BLE001 - stop must always complete
                LOGGER.warning("Callback de parada falló: %s", exc)

    dispose = stop

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._stop_event.wait(timeout)

    def step(self) -> Optional[Tick]:
        if not self._step_lock.acquire(blocking=False):
            LOGGER.debug("Despertar omitido: el anterior sigue en curso")
            return None
        try:
            if self._state != ClockState.RUNNING:
                return None
            if not self._queue and not self._load_next_candle():
                return None
            tick = self._queue.popleft()
            candle = self.current_candle
            self.on_tick(candle, tick)
            self.ticks_published += 1
            return tick
        finally:
            self._step_lock.release()

    def _load_next_candle(self) -> bool:
        try:
            if self._feed is None:
                self._feed = iter(self._candle_feed)
            candle = next(self._feed)
        except StopIteration:
            if self.candles_loaded == 0:
                error = NoDataAvailable("No hay velas históricas para simular.")
            else:
                error = NoDataAvailable("Datos de simulación agotados.")
            self.stop(error)
            return False
        except Exception as exc:  # noqa: BLE001 - report terminal status on the clock
            error = NoDataAvailable(f"No se pudieron cargar velas: {exc}")
            error.__cause__ = exc
            self.stop(error)
            return False

        n_ticks = self.ticks_per_candle or ticks_for_speed(
            self.speed, int(candle.duration.total_seconds())
        )
        self._queue.extend(self.tick_generator.generate(candle, n_ticks))
        self.current_candle = candle
        self.candles_loaded += 1
        return True

    def _run(self) -> None:
        while not self._stop_event.wait(self.period_s):
            if self._state != ClockState.RUNNING:
                continue
            try:
                self.step()
            except Exception as exc:  # noqa: BLE001 - surface as terminal clock status
                LOGGER.exception("Error publicando tick")
                self.stop(exc)

    def _set_speed_locked(self, speed: int) -> None:
        speed = int(speed)
        if speed <= 0:
            raise ValueError("La velocidad debe ser positiva")
        self.speed = speed


__all__ = ["ClockState", "SimulationClock"]
