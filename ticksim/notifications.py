from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

import requests

from ticksim.models import Trade


def send_notification(
    event: str,
    payload: Optional[dict[str, Any]] = None,
    *,
    url: Optional[str] = None,
) -> None:
    url = url or os.getenv("NOTIFICATION_WEBHOOK_URL")
    if not url:
        return
    body: dict[str, Any] = {
        "event": event,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if payload:
        body["data"] = payload
    try:
        response = requests.post(url, json=body, timeout=5)
        response.raise_for_status()
    except requests.RequestException as exc:
        logging.warning("No se pudo enviar notificación %s: %s", event, exc)


def notify_trade_closed(trade: Trade) -> None:
    send_notification("trade_closed", trade.to_dict())


def notify_simulation_stopped(instrument: str, error: Optional[Exception]) -> None:
    send_notification(
        "simulation_stopped",
        {"instrument": instrument, "error": str(error) if error else None},
    )


__all__ = ["notify_simulation_stopped", "notify_trade_closed", "send_notification"]
