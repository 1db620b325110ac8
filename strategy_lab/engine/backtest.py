"""Bar-by-bar futures backtester with stop-loss, trailing stop, and targets."""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple

import pandas as pd

from strategy_lab.data.instruments import Instrument
from strategy_lab.data.types import validate_series
from strategy_lab.engine.config import BacktestConfig
from strategy_lab.engine.metrics import compute_metrics, compute_monthly_returns
from strategy_lab.engine.types import (
    EXIT_END_OF_DATA,
    EXIT_STOP_LOSS,
    EXIT_TARGET,
    MS_PER_DAY,
    BacktestResult,
    EquityPoint,
    Position,
    Trade,
)
from strategy_lab.errors import InsufficientHistoryError
from strategy_lab.strategy.params import DEFAULT_PARAMS, StrategyParams, longest_lookback
from strategy_lab.strategy.rules import LONG, SignalFn, TradeSignal, params_signal, should_enter

logger = logging.getLogger(__name__)


def holding_period_days(entry_date: pd.Timestamp, exit_date: pd.Timestamp) -> float:
    return (exit_date - entry_date).total_seconds() * 1000 / MS_PER_DAY


def check_exit(position: Position, price: float, config: BacktestConfig) -> Optional[Tuple[str, float]]:
    """Return (exit reason, fill price) for the first exit condition hit, if any.

    Precedence: fixed stop, trailing stop, target. Stop fills slip against
    the position; target fills are exact.
    """
    is_long = position.direction == LONG

    if config.use_stop_loss:
        if is_long and price <= position.stop_loss:
            return EXIT_STOP_LOSS, position.stop_loss - config.slippage
        if not is_long and price >= position.stop_loss:
            return EXIT_STOP_LOSS, position.stop_loss + config.slippage

    if config.use_trailing_stop:
        if is_long and price <= position.trailing_stop:
            return EXIT_STOP_LOSS, position.trailing_stop - config.slippage
        if not is_long and price >= position.trailing_stop:
            return EXIT_STOP_LOSS, position.trailing_stop + config.slippage

    if is_long and price >= position.target:
        return EXIT_TARGET, position.target
    if not is_long and price <= position.target:
        return EXIT_TARGET, position.target
    return None


def close_position(
    position: Position, exit_date: pd.Timestamp, exit_price: float, reason: str, config: BacktestConfig
) -> Trade:
    """Convert an open position into a closed trade net of round-trip commission."""
    round_trip = config.commission * 2
    pnl = position.unrealized_pnl(exit_price) - round_trip
    notional = position.entry_price * position.quantity
    return Trade(
        symbol=position.symbol,
        direction=position.direction,
        entry_date=position.entry_date,
        exit_date=exit_date,
        entry_price=position.entry_price,
        exit_price=exit_price,
        quantity=position.quantity,
        pnl=pnl,
        pnl_pct=pnl / notional * 100 if notional else 0.0,
        commission=round_trip,
        exit_reason=reason,
        holding_period=holding_period_days(position.entry_date, exit_date),
    )


def size_position(capital: float, price: float, stop_price: float, lot_size: int, config: BacktestConfig) -> int:
    """Risk-based quantity in whole lots, clamped to [1 lot, position_size lots]."""
    risk_amount = capital * (config.risk_per_trade / 100)
    stop_distance = abs(price - stop_price)
    max_quantity = config.position_size * lot_size
    if stop_distance <= 0:
        return max_quantity

    quantity = math.floor(risk_amount / (stop_distance * lot_size)) * lot_size
    quantity = max(quantity, lot_size)
    return min(quantity, max_quantity)


def open_position(
    instrument: Instrument,
    direction: str,
    signal: TradeSignal,
    date: pd.Timestamp,
    price: float,
    capital: float,
    config: BacktestConfig,
) -> Optional[Position]:
    """Build a position for the signal, or None when margin is insufficient."""
    lot_size = max(int(instrument.lot_size), 1)
    quantity = size_position(capital, price, signal.stop_loss, lot_size, config)
    required_margin = instrument.margin_required * (quantity / lot_size)
    if capital <= required_margin * config.margin_buffer:
        return None

    pct = config.trailing_stop_percent / 100
    if direction == LONG:
        entry_price = price + config.slippage
        trailing_stop = entry_price * (1 - pct)
    else:
        entry_price = price - config.slippage
        trailing_stop = entry_price * (1 + pct)

    return Position(
        symbol=instrument.symbol,
        direction=direction,
        entry_date=date,
        entry_price=entry_price,
        quantity=quantity,
        stop_loss=signal.stop_loss,
        target=signal.target_price,
        trailing_stop=trailing_stop,
    )


def run_backtest(
    series: pd.DataFrame,
    instrument: Instrument,
    config: Optional[BacktestConfig] = None,
    signal_fn: Optional[SignalFn] = None,
    params: Optional[StrategyParams] = None,
) -> BacktestResult:
    """Simulate the strategy over ``series`` one bar at a time.

    Args:
        series: Price series (ascending DatetimeIndex, OHLCV + OpenInterest).
        instrument: Contract metadata for lot size and margin.
        config: BacktestConfig overrides (optional).
        signal_fn: Callable mapping the series up to the current bar to a
            TradeSignal. Defaults to the params-driven signal.
        params: StrategyParams for the default signal and the warm-up length.

    Returns:
        BacktestResult with the trade ledger, sampled equity curve, monthly
        returns, and metrics.

    Raises:
        InsufficientHistoryError: the series does not extend past the warm-up.
    """
    cfg = config or BacktestConfig()
    strategy_params = params or DEFAULT_PARAMS
    signal = signal_fn or params_signal(strategy_params)
    series = validate_series(series)

    warmup = max(cfg.warmup_bars, longest_lookback(strategy_params))
    if len(series) <= warmup:
        raise InsufficientHistoryError(len(series), warmup)

    dates = series.index
    closes = series["Close"].to_numpy(dtype=float)
    last_idx = len(series) - 1

    capital = cfg.initial_capital
    peak_equity = cfg.initial_capital
    max_drawdown_pct = 0.0
    max_drawdown = 0.0
    open_positions: List[Position] = []
    trades: List[Trade] = []
    equity_curve: List[EquityPoint] = []

    for idx in range(warmup, len(series)):
        date = dates[idx]
        price = closes[idx]

        # Exits first, for every open position
        for position in list(open_positions):
            if cfg.use_trailing_stop and position.unrealized_pnl(price) > 0:
                position.ratchet_trailing_stop(price, cfg.trailing_stop_percent)

            exit_hit = check_exit(position, price, cfg)
            if exit_hit is None:
                continue
            reason, exit_price = exit_hit
            trade = close_position(position, date, exit_price, reason, cfg)
            trades.append(trade)
            capital += trade.pnl
            open_positions.remove(position)
            logger.debug("%s %s exit %s at %.2f pnl=%.2f", date, position.direction, reason, exit_price, trade.pnl)

        # Then at most one new entry, on information up to this bar's close
        if len(open_positions) < cfg.max_positions:
            trade_signal = signal(series.iloc[: idx + 1])
            direction = should_enter(trade_signal, cfg.min_confidence)
            if direction:
                position = open_position(instrument, direction, trade_signal, date, price, capital, cfg)
                if position is not None:
                    open_positions.append(position)
                    capital -= cfg.commission
                    logger.debug(
                        "%s %s entry at %.2f qty=%s stop=%.2f target=%.2f",
                        date,
                        direction,
                        position.entry_price,
                        position.quantity,
                        position.stop_loss,
                        position.target,
                    )

        # Mark-to-market
        equity = capital + sum(p.unrealized_pnl(price) for p in open_positions)
        peak_equity = max(peak_equity, equity)
        drawdown_pct = (peak_equity - equity) / peak_equity * 100 if peak_equity > 0 else 0.0
        max_drawdown_pct = max(max_drawdown_pct, drawdown_pct)
        max_drawdown = max(max_drawdown, peak_equity - equity)

        if idx % cfg.equity_sample_every == 0 or idx == last_idx:
            equity_curve.append(EquityPoint(date, equity, drawdown_pct))

    # Force-close any open trades on the final close
    final_date = dates[-1]
    final_price = closes[-1]
    for position in open_positions:
        trade = close_position(position, final_date, final_price, EXIT_END_OF_DATA, cfg)
        trades.append(trade)
        capital += trade.pnl
    open_positions.clear()

    metrics = compute_metrics(trades, capital, cfg.initial_capital, max_drawdown_pct, max_drawdown)
    logger.info(
        "Backtest %s: %d trades, return %.2f%%, max drawdown %.2f%%",
        instrument.symbol,
        metrics.total_trades,
        metrics.total_pnl_pct,
        metrics.max_drawdown_pct,
    )

    return BacktestResult(
        config=cfg,
        metrics=metrics,
        trades=trades,
        equity_curve=equity_curve,
        monthly_returns=compute_monthly_returns(equity_curve),
        symbol=instrument.symbol,
        start_date=dates[warmup],
        end_date=final_date,
        final_capital=capital,
        params=strategy_params.to_dict() if signal_fn is None else None,
    )
