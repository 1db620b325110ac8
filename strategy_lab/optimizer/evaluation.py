"""Backtests used as the optimizer's fitness source."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import pandas as pd

from strategy_lab.data.instruments import Instrument
from strategy_lab.engine.backtest import run_backtest
from strategy_lab.engine.config import BacktestConfig
from strategy_lab.errors import InsufficientHistoryError
from strategy_lab.features.signals import BUY, SELL, extract_features, generate_signal
from strategy_lab.strategy.params import DEFAULT_PARAMS, StrategyParams, longest_lookback

logger = logging.getLogger(__name__)

MIN_FEATURE_WINDOW = 100


@dataclass(frozen=True)
class EvaluationResult:
    profit: float  # percent
    accuracy: float  # percent of winning trades
    trades: int


Evaluator = Callable[[pd.DataFrame, StrategyParams], EvaluationResult]


def quick_backtest(series: pd.DataFrame, params: StrategyParams = DEFAULT_PARAMS) -> EvaluationResult:
    """Single-position stop-and-reverse backtest on the params' own signal.

    Flat: go long on BUY, short on SELL at the close. In a position: exit at
    the close on the opposite signal (which then opens the reverse side).
    Anything still open is closed on the last bar. Features are computed on
    a trailing window of ``max(2 * lookback, 100)`` bars.
    """
    lookback = longest_lookback(params)
    if len(series) <= lookback:
        return EvaluationResult(0.0, 0.0, 0)

    window_len = max(2 * lookback, MIN_FEATURE_WINDOW)
    closes = series["Close"].to_numpy(dtype=float)
    returns: List[float] = []
    direction: Optional[str] = None
    entry_price = 0.0

    for idx in range(lookback, len(series)):
        price = closes[idx]
        window = series.iloc[max(0, idx + 1 - window_len): idx + 1]
        action = generate_signal(extract_features(window, params), params).action

        if direction == BUY and action == SELL or direction == SELL and action == BUY:
            returns.append(_trade_return(direction, entry_price, price))
            direction = None

        if direction is None and action in (BUY, SELL) and price > 0:
            direction = action
            entry_price = price

    if direction is not None:
        returns.append(_trade_return(direction, entry_price, closes[-1]))

    if not returns:
        return EvaluationResult(0.0, 0.0, 0)
    wins = sum(1 for r in returns if r > 0)
    return EvaluationResult(float(sum(returns)), wins / len(returns) * 100, len(returns))


def _trade_return(direction: str, entry_price: float, exit_price: float) -> float:
    move = exit_price - entry_price if direction == BUY else entry_price - exit_price
    return move / entry_price * 100


def simulator_evaluator(instrument: Instrument, config: Optional[BacktestConfig] = None) -> Evaluator:
    """Evaluator that runs the full multi-position simulator per individual."""
    cfg = config or BacktestConfig()

    def _evaluate(series: pd.DataFrame, params: StrategyParams) -> EvaluationResult:
        try:
            result = run_backtest(series, instrument, cfg, params=params)
        except InsufficientHistoryError as exc:
            logger.warning("Skipping evaluation: %s", exc)
            return EvaluationResult(0.0, 0.0, 0)
        metrics = result.metrics
        return EvaluationResult(metrics.total_pnl_pct, metrics.win_rate, metrics.total_trades)

    return _evaluate
