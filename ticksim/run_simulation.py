from __future__ import annotations

import argparse
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from .api.app import app, manager
from .config import load_env, load_sim_config
from .data_provider import CsvCandleSource
from .observability import ObservabilityStore, configure_logging, start_api_server
from .simulation import SimulationSession
from .simulation.report import save_report

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simulador de trading tick a tick sobre velas históricas")
    parser.add_argument("--instrument", help="Instrumento a simular (p. ej. AAPL)")
    parser.add_argument("--speed", type=int, help="Velocidad 5x-30x, múltiplo de 5")
    parser.add_argument("--reports-dir", default="reports", help="Directorio de reportes")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    load_env()
    configure_logging()

    config = load_sim_config()
    if args.instrument:
        config.instrument = args.instrument.strip().upper()
    if args.speed:
        config.speed = args.speed

    source = CsvCandleSource(
        data_dir=config.data_dir,
        start_date=config.start_date,
        end_date=config.end_date,
    )
    store = ObservabilityStore(chart_history=config.chart_history)
    session = SimulationSession(config, source, store=store)

    manager.attach(session)
    start_api_server(app)

    session.start()
    try:
        while not session.wait(timeout=1.0):
            pass
    except KeyboardInterrupt:
        LOGGER.info("Interrupción recibida; deteniendo simulación")
    finally:
        session.stop()

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    paths = save_report(Path(args.reports_dir) / stamp, session)
    statistics = session.snapshot().statistics

    print("Resumen de la simulación")
    print(f"Instrumento: {session.instrument}")
    print(f"Equity final: {statistics.equity:.2f}")
    print(f"Beneficio total: {statistics.total_profit:.2f}")
    print(f"Rentabilidad: {statistics.total_return_rate:.2%}")
    print(f"Trades: {statistics.total_trades}")
    print(f"Winrate: {statistics.win_rate:.2%}")
    print(f"Max drawdown: {statistics.max_drawdown:.2%}")
    print(f"Reporte JSON: {paths.summary_path}")
    print(f"Trades CSV: {paths.trades_path}")


if __name__ == "__main__":
    main()
