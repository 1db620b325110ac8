"""Public Python API for running backtests, comparisons, and optimisation."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Optional, Sequence

import pandas as pd

from strategy_lab.config import DEFAULT_END_DATE, DEFAULT_INTERVAL, DEFAULT_START_DATE
from strategy_lab.data.instruments import InstrumentStore, default_store
from strategy_lab.data.loader import generate_history, load_csv
from strategy_lab.engine.backtest import run_backtest
from strategy_lab.engine.config import BacktestConfig
from strategy_lab.engine.metrics import ComparisonReport, compare_results
from strategy_lab.engine.types import BacktestResult
from strategy_lab.optimizer.config import OptimizerConfig
from strategy_lab.optimizer.evaluation import quick_backtest, simulator_evaluator
from strategy_lab.optimizer.genetic import GenerationSnapshot, OptimizationResult, run_optimizer
from strategy_lab.strategy.params import StrategyParams
from strategy_lab.strategy.rules import SignalFn, composite_signal, params_signal

logger = logging.getLogger(__name__)

SIGNAL_MODES = ("params", "composite")
EVALUATORS = ("quick", "simulator")


def load_prices(
    symbol: str,
    start_date: str = DEFAULT_START_DATE,
    end_date: Optional[str] = DEFAULT_END_DATE,
    csv_path: Optional[str] = None,
    interval: str = DEFAULT_INTERVAL,
    store: Optional[InstrumentStore] = None,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """Price history from a CSV file, or the synthetic provider when none is given."""
    if csv_path:
        prices = load_csv(csv_path)
        if start_date:
            prices = prices.loc[prices.index >= pd.Timestamp(start_date)]
        if end_date:
            prices = prices.loc[prices.index <= pd.Timestamp(end_date)]
        logger.info("Loaded %d bars for %s from %s", len(prices), symbol, csv_path)
        return prices

    end = end_date or pd.Timestamp.today().normalize()
    start = start_date or DEFAULT_START_DATE
    return generate_history(store or default_store(), symbol, start, end, interval=interval, seed=seed)


def build_signal(mode: str, params: Optional[StrategyParams] = None) -> SignalFn:
    if mode == "params":
        return params_signal(params) if params is not None else params_signal()
    if mode == "composite":
        return composite_signal
    raise ValueError(f"Unknown signal mode: {mode}")


def backtest(
    symbol: str,
    start_date: str = DEFAULT_START_DATE,
    end_date: Optional[str] = DEFAULT_END_DATE,
    csv_path: Optional[str] = None,
    config: Optional[BacktestConfig] = None,
    params: Optional[StrategyParams] = None,
    signal: str = "params",
    store: Optional[InstrumentStore] = None,
    seed: Optional[int] = None,
) -> BacktestResult:
    """Load history for ``symbol`` and run the simulator over it.

    Raises:
        InstrumentNotFoundError: ``symbol`` is not in the instrument store.
        InsufficientHistoryError: the history does not extend past the warm-up.
    """
    store = store or default_store()
    instrument = store.get(symbol)
    prices = load_prices(symbol, start_date, end_date, csv_path=csv_path, store=store, seed=seed)
    signal_fn = None if signal == "params" else build_signal(signal, params)
    return run_backtest(prices, instrument, config, signal_fn=signal_fn, params=params)


def compare(
    symbols: Sequence[str],
    start_date: str = DEFAULT_START_DATE,
    end_date: Optional[str] = DEFAULT_END_DATE,
    config: Optional[BacktestConfig] = None,
    params: Optional[StrategyParams] = None,
    store: Optional[InstrumentStore] = None,
    seed: Optional[int] = None,
) -> ComparisonReport:
    """Backtest several instruments with the same settings and rank them."""
    results = [
        backtest(symbol, start_date, end_date, config=config, params=params, store=store, seed=seed)
        for symbol in symbols
    ]
    return compare_results(results)


def optimize(
    symbol: str,
    start_date: str = DEFAULT_START_DATE,
    end_date: Optional[str] = DEFAULT_END_DATE,
    csv_path: Optional[str] = None,
    generations: int = 10,
    time_budget: Optional[float] = None,
    evaluator: str = "quick",
    config: Optional[OptimizerConfig] = None,
    backtest_config: Optional[BacktestConfig] = None,
    store: Optional[InstrumentStore] = None,
    seed: Optional[int] = None,
    stop_event: Optional[threading.Event] = None,
    on_generation: Optional[Callable[[GenerationSnapshot], None]] = None,
) -> OptimizationResult:
    """Search strategy parameters for ``symbol`` with the genetic optimizer."""
    store = store or default_store()
    instrument = store.get(symbol)
    prices = load_prices(symbol, start_date, end_date, csv_path=csv_path, store=store, seed=seed)

    if evaluator == "quick":
        evaluate = quick_backtest
    elif evaluator == "simulator":
        evaluate = simulator_evaluator(instrument, backtest_config)
    else:
        raise ValueError(f"Unknown evaluator: {evaluator}")

    return run_optimizer(
        prices,
        generations=generations,
        time_budget=time_budget,
        seed=seed,
        evaluator=evaluate,
        config=config,
        stop_event=stop_event,
        on_generation=on_generation,
    )


def summarize(result: BacktestResult) -> Dict[str, float]:
    """Headline metrics as a flat dict."""
    return result.metrics.to_dict()
