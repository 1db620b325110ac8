"""Configuration for the futures backtest simulator."""

from __future__ import annotations

from dataclasses import dataclass

from strategy_lab.config import MIN_HISTORY_BARS


@dataclass
class BacktestConfig:
    """Capital, risk, and execution assumptions for a backtest run."""

    initial_capital: float = 100000.0

    # Risk / position sizing
    position_size: int = 1  # max lots per position
    max_positions: int = 3
    risk_per_trade: float = 2.0  # percent of capital risked to the stop
    margin_buffer: float = 1.2  # capital must exceed margin by 20%

    # Exits
    use_stop_loss: bool = True
    use_trailing_stop: bool = True
    trailing_stop_percent: float = 1.5

    # Execution costs
    commission: float = 20.0  # flat, per side
    slippage: float = 0.5  # price points against the trader

    # Entry filter
    min_confidence: float = 70.0

    # Bookkeeping
    warmup_bars: int = MIN_HISTORY_BARS
    equity_sample_every: int = 10

    def __post_init__(self) -> None:
        if self.equity_sample_every < 1:
            raise ValueError("equity_sample_every must be at least 1")
