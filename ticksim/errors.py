from __future__ import annotations


class SimulationError(Exception):
    pass


class InvalidCandle(SimulationError):
    pass


class InsufficientFunds(SimulationError):
    pass


class InvalidQuantity(SimulationError):
    pass


class NoDataAvailable(SimulationError):
    pass


__all__ = [
    "InsufficientFunds",
    "InvalidCandle",
    "InvalidQuantity",
    "NoDataAvailable",
    "SimulationError",
]
