"""Bar-by-bar futures backtest engine."""

from strategy_lab.engine.backtest import run_backtest
from strategy_lab.engine.config import BacktestConfig
from strategy_lab.engine.metrics import compare_results, compute_metrics, compute_monthly_returns
from strategy_lab.engine.types import BacktestResult, Metrics, Position, Trade

__all__ = [
    "run_backtest",
    "BacktestConfig",
    "BacktestResult",
    "Metrics",
    "Position",
    "Trade",
    "compute_metrics",
    "compute_monthly_returns",
    "compare_results",
]
