from .config import SimConfig, load_env, load_sim_config, validate_setup
from .data_provider import CandleSource, CsvCandleSource, InMemoryCandleSource
from .errors import InsufficientFunds, InvalidCandle, InvalidQuantity, NoDataAvailable, SimulationError
from .models import Candle, Position, SimulationUpdate, StatisticsSnapshot, Tick, Trade
from .simulation import SimulationSession

__all__ = [
    "Candle",
    "CandleSource",
    "CsvCandleSource",
    "InMemoryCandleSource",
    "InsufficientFunds",
    "InvalidCandle",
    "InvalidQuantity",
    "NoDataAvailable",
    "Position",
    "SimConfig",
    "SimulationError",
    "SimulationSession",
    "SimulationUpdate",
    "StatisticsSnapshot",
    "Tick",
    "Trade",
    "load_env",
    "load_sim_config",
    "validate_setup",
]
