from __future__ import annotations

import threading
from datetime import date
from pathlib import Path
from typing import Callable, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from ticksim.config import SimConfig, get_config, load_env, load_sim_config, save_config
from ticksim.data_provider import CandleSource, CsvCandleSource
from ticksim.errors import InsufficientFunds, InvalidQuantity, SimulationError
from ticksim.observability import ObservabilityStore
from ticksim.simulation.session import SimulationSession

CandleSourceFactory = Callable[[SimConfig], CandleSource]

app = FastAPI(title="TickSim")
observability = ObservabilityStore()

load_env()


class SessionManager:
    def __init__(self, store: ObservabilityStore) -> None:
        self.store = store
        self._session: Optional[SimulationSession] = None
        self._lock = threading.Lock()

    def create(self, config: SimConfig, source: CandleSource) -> SimulationSession:
        session = SimulationSession(config, source, store=self.store)
        with self._lock:
            previous = self._session
            self._session = session
        if previous is not None:
            previous.stop()
        self.store.reset()
        return session

    def attach(self, session: SimulationSession) -> None:
        with self._lock:
            self._session = session
        if session.store is not None:
            self.store = session.store

    def current(self) -> Optional[SimulationSession]:
        with self._lock:
            return self._session

    def require(self) -> SimulationSession:
        session = self.current()
        if session is None:
            raise HTTPException(status_code=404, detail="No hay simulación configurada.")
        return session


manager = SessionManager(observability)


def get_manager() -> SessionManager:
    return manager


def get_candle_source_factory() -> CandleSourceFactory:
    def factory(config: SimConfig) -> CandleSource:
        return CsvCandleSource(
            data_dir=config.data_dir,
            start_date=config.start_date,
            end_date=config.end_date,
        )

    return factory


class ConfigPayload(BaseModel):
    values: dict[str, Optional[str]] = Field(default_factory=dict)
    persist: bool = True


class SetupPayload(BaseModel):
    instrument: Optional[str] = None
    interval: Optional[str] = None
    initial_balance: Optional[float] = None
    speed: Optional[int] = None
    tick_period_s: Optional[float] = None
    fee_rate: Optional[float] = None
    allow_short: Optional[bool] = None
    seed: Optional[int] = None
    data_dir: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class StartPayload(BaseModel):
    speed: Optional[int] = None
    background: bool = True


class SpeedPayload(BaseModel):
    speed: int


class TradePayload(BaseModel):
    side: Literal["BUY", "SELL"]
    quantity: Optional[int] = None
    amount: Optional[float] = None
    fees: Optional[float] = None


def _build_config(payload: SetupPayload) -> SimConfig:
    config = load_sim_config()
    values = payload.dict(exclude_none=True)
    if "instrument" in values:
        values["instrument"] = values["instrument"].strip().upper()
    if "data_dir" in values:
        values["data_dir"] = Path(values["data_dir"])
    for key, value in values.items():
        setattr(config, key, value)
    return config


@app.get("/config/status")
def config_status() -> dict:
    return get_config()


@app.post("/config/save")
def config_save(payload: ConfigPayload) -> dict:
    try:
        save_config(payload.values, persist=payload.persist)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return get_config()


@app.post("/session/setup")
def session_setup(
    payload: SetupPayload,
    sessions: SessionManager = Depends(get_manager),
    source_factory: CandleSourceFactory = Depends(get_candle_source_factory),
) -> dict:
    config = _build_config(payload)
    try:
        session = sessions.create(config, source_factory(config))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return session.status()


@app.get("/status")
def session_status(sessions: SessionManager = Depends(get_manager)) -> dict:
    session = sessions.current()
    if session is None:
        return {"state": None}
    return session.status()


@app.post("/control/start")
def control_start(
    payload: Optional[StartPayload] = None,
    sessions: SessionManager = Depends(get_manager),
) -> dict:
    payload = payload or StartPayload()
    session = sessions.require()
    try:
        session.start(payload.speed, background=payload.background)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return session.status()


@app.post("/control/step")
def control_step(sessions: SessionManager = Depends(get_manager)) -> dict:
    session = sessions.require()
    session.clock.step()
    return session.status()


@app.post("/control/pause")
def control_pause(sessions: SessionManager = Depends(get_manager)) -> dict:
    session = sessions.require()
    session.pause()
    return session.status()


@app.post("/control/resume")
def control_resume(sessions: SessionManager = Depends(get_manager)) -> dict:
    session = sessions.require()
    session.resume()
    return session.status()


@app.post("/control/stop")
def control_stop(sessions: SessionManager = Depends(get_manager)) -> dict:
    session = sessions.require()
    session.stop()
    return session.status()


@app.post("/control/speed")
def control_speed(payload: SpeedPayload, sessions: SessionManager = Depends(get_manager)) -> dict:
    session = sessions.require()
    try:
        session.set_speed(payload.speed)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return session.status()


@app.post("/trade")
def trade(payload: TradePayload, sessions: SessionManager = Depends(get_manager)) -> dict:
    session = sessions.require()
    if (payload.quantity is None) == (payload.amount is None):
        raise HTTPException(status_code=400, detail="Indica quantity o amount, no ambos.")
    try:
        if payload.quantity is not None:
            executed = session.execute_trade(payload.side, payload.quantity, fees=payload.fees)
        else:
            executed = session.trade_amount(payload.side, payload.amount, fees=payload.fees)
    except (InsufficientFunds, InvalidQuantity, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SimulationError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"trade": executed.to_dict(), "cash": session.account.cash}


@app.get("/metrics")
def metrics(sessions: SessionManager = Depends(get_manager)) -> dict:
    return sessions.store.get_metrics()


@app.get("/trades")
def trades(
    limit: int = Query(50, ge=1, le=1000),
    sessions: SessionManager = Depends(get_manager),
) -> dict:
    return {"trades": sessions.store.get_trades(limit)}


@app.get("/positions")
def positions(sessions: SessionManager = Depends(get_manager)) -> dict:
    return {"positions": sessions.store.get_positions()}


@app.get("/chart")
def chart(
    limit: int = Query(500, ge=1, le=10000),
    sessions: SessionManager = Depends(get_manager),
) -> dict:
    return sessions.store.get_chart(limit)
