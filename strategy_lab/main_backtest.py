"""CLI entrypoint for the futures strategy backtester."""

from __future__ import annotations

import argparse
from typing import Optional

import pandas as pd

from strategy_lab.api import SIGNAL_MODES, backtest, summarize
from strategy_lab.config import DEFAULT_END_DATE, DEFAULT_START_DATE, DEFAULT_SYMBOL, configure_logging
from strategy_lab.engine.config import BacktestConfig
from strategy_lab.engine.metrics import plot_equity_curve
from strategy_lab.engine.types import BacktestResult
from strategy_lab.errors import StrategyLabError


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Backtest the signal strategy on a futures contract.")
    parser.add_argument("--symbol", default=DEFAULT_SYMBOL, help="Contract symbol, e.g. NIFTY-FUT")
    parser.add_argument("--start-date", default=DEFAULT_START_DATE, help="Backtest start date (YYYY-MM-DD)")
    parser.add_argument("--end-date", default=DEFAULT_END_DATE, help="Backtest end date (YYYY-MM-DD or None)")
    parser.add_argument("--csv", default=None, help="OHLCV CSV file to use instead of synthetic history.")
    parser.add_argument("--signal", choices=SIGNAL_MODES, default="params", help="Signal generator.")
    parser.add_argument(
        "--initial-capital", type=float, default=500000.0, help="Starting capital (must cover lot margin + 20%%)."
    )
    parser.add_argument("--position-size", type=int, default=1, help="Maximum lots per position.")
    parser.add_argument("--max-positions", type=int, default=3, help="Maximum concurrent positions.")
    parser.add_argument("--risk-per-trade", type=float, default=2.0, help="Percent of capital risked per trade.")
    parser.add_argument("--commission", type=float, default=20.0, help="Commission per side.")
    parser.add_argument("--slippage", type=float, default=0.5, help="Slippage in price points.")
    parser.add_argument("--no-stop-loss", action="store_true", help="Disable the fixed stop-loss.")
    parser.add_argument("--no-trailing-stop", action="store_true", help="Disable the trailing stop.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for synthetic history.")
    parser.add_argument("--trades-csv", default=None, help="Write the trade ledger to this CSV path.")
    parser.add_argument("--plot", default=None, help="Save the equity curve PNG to this path.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level.")
    return parser.parse_args(argv)


def _parse_date_arg(label: Optional[str]) -> Optional[str]:
    """Convert CLI date arg to ISO string or None, raising on invalid input."""
    if label in (None, "", "None"):
        return None
    try:
        return pd.to_datetime(label).date().isoformat()
    except Exception as exc:  # noqa: BLE001 - provide user-friendly message
        raise SystemExit(f"Invalid date '{label}': {exc}") from exc


def print_report(result: BacktestResult) -> None:
    m = result.metrics
    print(f"Backtest {result.symbol} {result.start_date.date()} -> {result.end_date.date()}")
    print(f"Final capital: {result.final_capital:,.2f}")
    print(f"Total P&L: {m.total_pnl:,.2f} ({m.total_pnl_pct:.2f}%)")
    print(f"Trades: {m.total_trades} (won {m.winning_trades}, lost {m.losing_trades}, win rate {m.win_rate:.1f}%)")
    print(f"Profit factor: {m.profit_factor:.2f}")
    print(f"Sharpe: {m.sharpe_ratio:.2f}")
    print(f"Max drawdown: {m.max_drawdown:,.2f} ({m.max_drawdown_pct:.2f}%)")
    print(f"Expectancy: {m.expectancy:.2f}")
    print(f"Average holding period: {m.average_holding_period:.1f} days")
    if result.trades:
        last = result.trades[-1]
        print(
            f"Last trade: {last.direction} {last.entry_date.date()} -> {last.exit_date.date()}, "
            f"pnl={last.pnl:.2f}, reason={last.exit_reason}"
        )


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.log_level)
    start_date = _parse_date_arg(args.start_date)
    end_date = _parse_date_arg(args.end_date)
    cfg = BacktestConfig(
        initial_capital=args.initial_capital,
        position_size=args.position_size,
        max_positions=args.max_positions,
        risk_per_trade=args.risk_per_trade,
        commission=args.commission,
        slippage=args.slippage,
        use_stop_loss=not args.no_stop_loss,
        use_trailing_stop=not args.no_trailing_stop,
    )

    try:
        result = backtest(
            args.symbol,
            start_date,
            end_date,
            csv_path=args.csv,
            config=cfg,
            signal=args.signal,
            seed=args.seed,
        )
    except StrategyLabError as exc:
        raise SystemExit(str(exc)) from exc

    print_report(result)

    if args.trades_csv:
        result.trades_frame().to_csv(args.trades_csv, index=False)
        print(f"Trades written to {args.trades_csv}")
    if args.plot:
        fig = plot_equity_curve(result)
        fig.savefig(args.plot)
        print(f"Equity curve saved to {args.plot}")
    return summarize(result)


if __name__ == "__main__":
    main()
