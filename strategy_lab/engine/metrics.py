"""Performance metrics, monthly returns, strategy comparison, and plots."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import List, Sequence

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from strategy_lab.engine.types import BacktestResult, EquityPoint, Metrics, MonthlyReturn, Trade

PROFIT_FACTOR_SENTINEL = 999.0
TRADING_DAYS = 252


def compute_sharpe(returns: Sequence[float], periods_per_year: int = TRADING_DAYS) -> float:
    """Mean over population std of per-trade returns, annualised; 0 if undefined."""
    arr = np.asarray(returns, dtype=float)
    if arr.size == 0:
        return 0.0
    std = arr.std()
    if std == 0 or math.isnan(std):
        return 0.0
    return float(arr.mean() / std * np.sqrt(periods_per_year))


def compute_profit_factor(gross_wins: float, gross_losses: float) -> float:
    if gross_losses > 0:
        return gross_wins / gross_losses
    return PROFIT_FACTOR_SENTINEL if gross_wins > 0 else 0.0


def compute_metrics(
    trades: Sequence[Trade],
    ending_capital: float,
    starting_capital: float,
    max_drawdown_pct: float,
    max_drawdown: float = 0.0,
) -> Metrics:
    """Derive summary metrics from a closed-trade ledger."""
    total = len(trades)
    wins = [t.pnl for t in trades if t.pnl > 0]
    losses = [t.pnl for t in trades if t.pnl < 0]

    win_rate = len(wins) / total * 100 if total else 0.0
    total_pnl = ending_capital - starting_capital
    total_pnl_pct = total_pnl / starting_capital * 100 if starting_capital else 0.0

    gross_wins = sum(wins)
    gross_losses = abs(sum(losses))
    average_win = gross_wins / len(wins) if wins else 0.0
    average_loss = gross_losses / len(losses) if losses else 0.0

    expectancy = 0.0
    if total:
        expectancy = (win_rate / 100) * average_win - ((100 - win_rate) / 100) * average_loss

    average_holding = sum(t.holding_period for t in trades) / total if total else 0.0

    # Recovery factor and Calmar ratio share one formula.
    return_over_dd = total_pnl_pct / max_drawdown_pct if max_drawdown_pct > 0 else 0.0

    return Metrics(
        total_trades=total,
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=win_rate,
        total_pnl=total_pnl,
        total_pnl_pct=total_pnl_pct,
        average_win=average_win,
        average_loss=average_loss,
        profit_factor=compute_profit_factor(gross_wins, gross_losses),
        max_drawdown=max_drawdown,
        max_drawdown_pct=max_drawdown_pct,
        sharpe_ratio=compute_sharpe([t.pnl_pct for t in trades]),
        average_holding_period=average_holding,
        expectancy=expectancy,
        recovery_factor=return_over_dd,
        calmar_ratio=return_over_dd,
    )


def compute_monthly_returns(equity_curve: Sequence[EquityPoint]) -> List[MonthlyReturn]:
    """Percent change from first to last equity sample of each calendar month."""
    if not equity_curve:
        return []

    frame = pd.DataFrame(
        {"equity": [p.equity for p in equity_curve]},
        index=pd.DatetimeIndex([p.date for p in equity_curve]),
    )
    months = frame.index.strftime("%Y-%m")
    grouped = frame.groupby(months, sort=False)["equity"]
    first = grouped.first()
    last = grouped.last()

    return [
        MonthlyReturn(month, float((last[month] - first[month]) / first[month] * 100) if first[month] else 0.0)
        for month in first.index
    ]


@dataclass(frozen=True)
class ComparisonRow:
    symbol: str
    total_return: float
    win_rate: float
    sharpe_ratio: float
    max_drawdown: float
    profit_factor: float


@dataclass(frozen=True)
class ComparisonReport:
    rows: List[ComparisonRow]
    best_by_return: str
    best_by_sharpe: str
    best_by_win_rate: str

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(row) for row in self.rows])


def _best(rows: List[ComparisonRow], attr: str) -> str:
    # First row wins ties.
    best = rows[0]
    for row in rows[1:]:
        if getattr(row, attr) > getattr(best, attr):
            best = row
    return best.symbol


def compare_results(results: Sequence[BacktestResult]) -> ComparisonReport:
    """Tabulate headline metrics and pick the best symbol per criterion."""
    if not results:
        raise ValueError("compare_results needs at least one backtest result")

    rows = [
        ComparisonRow(
            symbol=r.symbol,
            total_return=r.metrics.total_pnl_pct,
            win_rate=r.metrics.win_rate,
            sharpe_ratio=r.metrics.sharpe_ratio,
            max_drawdown=r.metrics.max_drawdown_pct,
            profit_factor=r.metrics.profit_factor,
        )
        for r in results
    ]
    return ComparisonReport(
        rows=rows,
        best_by_return=_best(rows, "total_return"),
        best_by_sharpe=_best(rows, "sharpe_ratio"),
        best_by_win_rate=_best(rows, "win_rate"),
    )


def plot_equity_curve(result: BacktestResult):
    """Plot sampled equity and drawdown for a backtest."""
    curve = result.equity_frame()
    fig, (ax_eq, ax_dd) = plt.subplots(2, 1, figsize=(10, 6), sharex=True)
    ax_eq.plot(curve.index, curve["equity"], label="Equity")
    ax_eq.axhline(result.config.initial_capital, color="grey", linestyle="--", linewidth=0.8)
    ax_eq.set_title(f"{result.symbol} equity curve")
    ax_eq.set_ylabel("Equity")
    ax_eq.legend()
    ax_dd.fill_between(curve.index, 0, -curve["drawdown"], color="tab:red", alpha=0.4)
    ax_dd.set_ylabel("Drawdown %")
    ax_dd.set_xlabel("Date")
    fig.tight_layout()
    return fig
