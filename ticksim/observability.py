from __future__ import annotations

import json
import logging
import os
import threading
from collections import deque
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

from ticksim.models import EquitySample, SimulationUpdate, StatisticsSnapshot, Tick, Trade

_RESERVED_RECORD_FIELDS = set(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_FIELDS:
                payload[key] = value
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(
    log_path: str | Path | None = None,
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    log_path = Path(log_path or os.getenv("LOG_PATH", "logs/ticksim.log"))
    max_bytes = int(os.getenv("LOG_MAX_BYTES", max_bytes))
    backup_count = int(os.getenv("LOG_BACKUP_COUNT", backup_count))
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = JsonFormatter()

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(stream_handler)


class ObservabilityStore:
    """Último estado publicado por la simulación, para lecturas de renderizado."""

    def __init__(self, max_trades: int = 200, chart_history: int = 5000) -> None:
        self._lock = threading.Lock()
        self._max_trades = max_trades
        self._chart_history = chart_history
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._trades: Deque[Dict[str, Any]] = deque(maxlen=self._max_trades)
            self._prices: Deque[Dict[str, Any]] = deque(maxlen=self._chart_history)
            self._equity: Deque[Dict[str, Any]] = deque(maxlen=self._chart_history)
            self._latest: Optional[SimulationUpdate] = None
            self._last_tick: Optional[Tick] = None
            self._last_equity: Optional[EquitySample] = None

    def record_update(self, update: SimulationUpdate) -> None:
        payload = update.to_dict()
        with self._lock:
            self._latest = update
            if update.tick is not None and update.tick is not self._last_tick:
                self._last_tick = update.tick
                self._prices.append(
                    {"timestamp": payload["timestamp"], "price": update.current_price}
                )
            if update.equity_point is not None and update.equity_point is not self._last_equity:
                self._last_equity = update.equity_point
                self._equity.append(payload["equity_point"])

    def record_trade(self, trade: Trade) -> None:
        with self._lock:
            self._trades.appendleft(trade.to_dict())

    def get_trades(self, limit: int) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._trades)[:limit]

    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            statistics = self._latest.statistics if self._latest else StatisticsSnapshot()
            return statistics.to_dict()

    def get_positions(self) -> Dict[str, Any]:
        with self._lock:
            if self._latest is None:
                return {}
            return {key: value.to_dict() for key, value in self._latest.positions.items()}

    def get_chart(self, limit: int) -> Dict[str, List[Dict[str, Any]]]:
        with self._lock:
            prices = list(self._prices)[-limit:]
            equity = list(self._equity)[-limit:]
        return {"prices": prices, "equity": equity}


def start_api_server(app: Any) -> Optional[threading.Thread]:
    enabled = os.getenv("API_ENABLED", "false").lower() in {"1", "true", "yes"}
    if not enabled:
        return None

    host = os.getenv("API_HOST", "127.0.0.1")
    port = int(os.getenv("API_PORT", "8001"))

    def run_server() -> None:
        from uvicorn import Config, Server

        config = Config(app=app, host=host, port=port, log_config=None)
        server = Server(config)
        server.run()

    thread = threading.Thread(target=run_server, daemon=True)
    thread.start()
    return thread


__all__ = ["JsonFormatter", "ObservabilityStore", "configure_logging", "start_api_server"]
