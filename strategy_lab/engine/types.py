"""Dataclasses used by the backtest simulator."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import List, Optional

import pandas as pd

from strategy_lab.engine.config import BacktestConfig

EXIT_TARGET = "TARGET"
EXIT_STOP_LOSS = "STOP_LOSS"
EXIT_SIGNAL = "SIGNAL"
EXIT_END_OF_DATA = "END_OF_DATA"

MS_PER_DAY = 1000 * 60 * 60 * 24


@dataclass
class Position:
    symbol: str
    direction: str  # LONG | SHORT
    entry_date: pd.Timestamp
    entry_price: float
    quantity: float
    stop_loss: float
    target: float
    trailing_stop: float

    def unrealized_pnl(self, price: float) -> float:
        move = price - self.entry_price if self.direction == "LONG" else self.entry_price - price
        return move * self.quantity

    def ratchet_trailing_stop(self, price: float, percent: float) -> None:
        """Move the trailing stop toward price; never loosen it."""
        if self.direction == "LONG":
            self.trailing_stop = max(self.trailing_stop, price * (1 - percent / 100))
        else:
            self.trailing_stop = min(self.trailing_stop, price * (1 + percent / 100))


@dataclass(frozen=True)
class Trade:
    symbol: str
    direction: str
    entry_date: pd.Timestamp
    exit_date: pd.Timestamp
    entry_price: float
    exit_price: float
    quantity: float
    pnl: float
    pnl_pct: float
    commission: float
    exit_reason: str
    holding_period: float  # days


@dataclass(frozen=True)
class EquityPoint:
    date: pd.Timestamp
    equity: float
    drawdown: float  # percent below running peak


@dataclass(frozen=True)
class MonthlyReturn:
    month: str  # YYYY-MM
    return_pct: float


@dataclass(frozen=True)
class Metrics:
    """Summary statistics derived from a trade ledger and capital trajectory."""

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    total_pnl: float = 0.0
    total_pnl_pct: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    profit_factor: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_pct: float = 0.0
    sharpe_ratio: float = 0.0
    average_holding_period: float = 0.0
    expectancy: float = 0.0
    recovery_factor: float = 0.0
    calmar_ratio: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BacktestResult:
    config: BacktestConfig
    metrics: Metrics
    trades: List[Trade]
    equity_curve: List[EquityPoint]
    monthly_returns: List[MonthlyReturn]
    symbol: str
    start_date: Optional[pd.Timestamp]
    end_date: Optional[pd.Timestamp]
    final_capital: float = 0.0
    params: Optional[dict] = field(default=None)

    def trades_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(t) for t in self.trades])

    def equity_frame(self) -> pd.DataFrame:
        if not self.equity_curve:
            return pd.DataFrame(columns=["equity", "drawdown"])
        return pd.DataFrame([asdict(p) for p in self.equity_curve]).set_index("date")

