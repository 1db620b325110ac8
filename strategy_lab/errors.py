"""Exceptions raised by the strategy lab core."""

from __future__ import annotations


class StrategyLabError(Exception):
    """Base class for all strategy lab errors."""


class InsufficientHistoryError(StrategyLabError, ValueError):
    """Price history is shorter than the indicator warm-up window."""

    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient historical data for backtesting: {available} bars, need more than {required}"
        )


class InstrumentNotFoundError(StrategyLabError, KeyError):
    """Requested symbol is not known to the instrument store."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(symbol)

    def __str__(self) -> str:
        return f"Contract {self.symbol} not found"


class PriceSeriesError(StrategyLabError, ValueError):
    """Price series violates ordering or shape invariants."""
