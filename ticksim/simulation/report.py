from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import pandas as pd

from ticksim.simulation.session import SimulationSession

TRADE_COLUMNS = [
    "instrument",
    "side",
    "quantity",
    "price",
    "fees",
    "timestamp",
    "realized_pnl",
    "closed_quantity",
    "entry_price",
    "return_pct",
]


@dataclass
class ReportPaths:
    summary_path: Path
    equity_path: Path
    trades_path: Path


def build_summary(session: SimulationSession) -> Dict[str, Any]:
    with session.account.lock:
        statistics = session.aggregator.update(session.account)
        trades = list(session.account.trades)
    closing = [trade for trade in trades if trade.is_closing]
    return {
        "instrument": session.instrument,
        "initial_balance": session.account.initial_cash,
        "final_balance": statistics.equity,
        "status": session.status(),
        "metrics": statistics.to_dict(),
        "first_trade": trades[0].timestamp.isoformat() if trades else None,
        "last_trade": trades[-1].timestamp.isoformat() if trades else None,
        "closed_trades": len(closing),
    }


def save_report(report_dir: Path | str, session: SimulationSession) -> ReportPaths:
    report_dir = Path(report_dir)
    report_dir.mkdir(parents=True, exist_ok=True)
    paths = ReportPaths(
        summary_path=report_dir / "summary.json",
        equity_path=report_dir / "equity.csv",
        trades_path=report_dir / "trades.csv",
    )

    summary = build_summary(session)
    paths.summary_path.write_text(
        json.dumps(summary, ensure_ascii=False, indent=2, default=str),
        encoding="utf-8",
    )

    with session.account.lock:
        equity_rows = [
            {"timestamp": sample.timestamp.isoformat(), "equity": sample.equity}
            for sample in session.account.equity_curve
        ]
        trade_rows = [trade.to_dict() for trade in session.account.trades]

    pd.DataFrame(equity_rows, columns=["timestamp", "equity"]).to_csv(paths.equity_path, index=False)
    pd.DataFrame(trade_rows, columns=TRADE_COLUMNS).to_csv(paths.trades_path, index=False)
    return paths


__all__ = ["ReportPaths", "TRADE_COLUMNS", "build_summary", "save_report"]
