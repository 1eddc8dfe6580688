from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv, set_key

ENV_PATH = Path(".env")
VALID_SPEEDS = (5, 10, 15, 20, 25, 30)
CHART_HISTORY_DEFAULT = int(os.getenv("SIM_CHART_HISTORY", "5000"))
PERSISTED_KEYS = {
    "SIM_INSTRUMENT",
    "SIM_INTERVAL",
    "SIM_INITIAL_BALANCE",
    "SIM_SPEED",
    "SIM_FEE_RATE",
    "SIM_ALLOW_SHORT",
    "SIM_DATA_DIR",
    "NOTIFICATION_WEBHOOK_URL",
}


@dataclass
class SimConfig:
    instrument: str = "AAPL"
    interval: str = "5m"
    initial_balance: float = 100000.0
    speed: int = 5
    tick_period_s: float = 1.0
    fee_rate: float = 0.0
    allow_short: bool = False
    seed: Optional[int] = None
    data_dir: Path = field(default_factory=lambda: Path("./data"))
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    chart_history: int = CHART_HISTORY_DEFAULT


def load_env(env_path: Path | str = ENV_PATH) -> None:
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(dotenv_path=env_file)


def get_config() -> Dict[str, Optional[str]]:
    return {key: os.environ.get(key) for key in sorted(PERSISTED_KEYS)}


def save_config(
    values: Dict[str, Optional[str]],
    env_path: Path | str = ENV_PATH,
    persist: bool = True,
) -> None:
    unknown = set(values) - PERSISTED_KEYS
    if unknown:
        raise ValueError(f"Claves de configuración desconocidas: {', '.join(sorted(unknown))}")

    if persist:
        env_file = Path(env_path)
        env_file.touch(exist_ok=True)
        for key, value in values.items():
            if value is not None:
                set_key(str(env_file), key, str(value))

    for key, value in values.items():
        if value is not None:
            os.environ[key] = str(value)


def load_sim_config() -> SimConfig:
    seed_raw = os.getenv("SIM_SEED")
    return SimConfig(
        instrument=os.getenv("SIM_INSTRUMENT", "AAPL").strip().upper(),
        interval=os.getenv("SIM_INTERVAL", "5m"),
        initial_balance=float(os.getenv("SIM_INITIAL_BALANCE", "100000")),
        speed=int(os.getenv("SIM_SPEED", "5")),
        tick_period_s=float(os.getenv("SIM_TICK_PERIOD_S", "1.0")),
        fee_rate=float(os.getenv("SIM_FEE_RATE", "0")),
        allow_short=_parse_bool(os.getenv("SIM_ALLOW_SHORT"), False),
        seed=int(seed_raw) if seed_raw else None,
        data_dir=Path(os.getenv("SIM_DATA_DIR", "./data")),
        start_date=_parse_date(os.getenv("SIM_START_DATE")),
        end_date=_parse_date(os.getenv("SIM_END_DATE")),
        chart_history=int(os.getenv("SIM_CHART_HISTORY", str(CHART_HISTORY_DEFAULT))),
    )


def validate_setup(config: SimConfig) -> None:
    if config.speed not in VALID_SPEEDS:
        raise ValueError("Velocidad inválida. Debe ser múltiplo de 5 entre 5x y 30x.")
    if config.initial_balance <= 0:
        raise ValueError("El balance inicial debe ser positivo.")
    if config.tick_period_s <= 0:
        raise ValueError("El periodo de tick debe ser positivo.")
    if config.fee_rate < 0:
        raise ValueError("La comisión no puede ser negativa.")
    if not config.instrument:
        raise ValueError("Debes indicar un instrumento.")
    if config.start_date and config.end_date and config.start_date > config.end_date:
        raise ValueError("start_date debe ser menor o igual que end_date")


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes"}


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(value.strip())


__all__ = [
    "CHART_HISTORY_DEFAULT",
    "ENV_PATH",
    "SimConfig",
    "VALID_SPEEDS",
    "get_config",
    "load_env",
    "load_sim_config",
    "save_config",
    "validate_setup",
]
