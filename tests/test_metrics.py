import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402
import pytest  # noqa: E402

from strategy_lab.engine.config import BacktestConfig  # noqa: E402
from strategy_lab.engine.metrics import (  # noqa: E402
    PROFIT_FACTOR_SENTINEL,
    compare_results,
    compute_metrics,
    compute_monthly_returns,
    compute_profit_factor,
    compute_sharpe,
    plot_equity_curve,
)
from strategy_lab.engine.types import BacktestResult, EquityPoint, Metrics, Trade  # noqa: E402


def _trade(pnl: float, days: int = 2) -> Trade:
    entry = pd.Timestamp("2022-01-03")
    return Trade(
        symbol="TEST-FUT",
        direction="LONG",
        entry_date=entry,
        exit_date=entry + pd.Timedelta(days=days),
        entry_price=100.0,
        exit_price=100.0 + pnl / 50,
        quantity=50,
        pnl=pnl,
        pnl_pct=pnl / 5000 * 100,
        commission=40.0,
        exit_reason="TARGET",
        holding_period=float(days),
    )


def _result(symbol: str, **metrics) -> BacktestResult:
    return BacktestResult(
        config=BacktestConfig(),
        metrics=Metrics(**metrics),
        trades=[],
        equity_curve=[],
        monthly_returns=[],
        symbol=symbol,
        start_date=None,
        end_date=None,
    )


def test_profit_factor_sentinel():
    assert compute_profit_factor(100.0, 0.0) == PROFIT_FACTOR_SENTINEL
    assert compute_profit_factor(0.0, 0.0) == 0.0
    assert compute_profit_factor(100.0, 50.0) == 2.0


def test_sharpe_zero_when_undefined():
    assert compute_sharpe([]) == 0.0
    assert compute_sharpe([1.0, 1.0, 1.0]) == 0.0
    assert compute_sharpe([1.0, -1.0, 2.0]) != 0.0


def test_metrics_from_ledger():
    trades = [_trade(100.0, 2), _trade(-50.0, 4), _trade(200.0, 3)]
    m = compute_metrics(trades, ending_capital=100_250.0, starting_capital=100_000.0, max_drawdown_pct=2.0)
    assert m.total_trades == 3
    assert m.winning_trades == 2
    assert m.losing_trades == 1
    assert m.win_rate == pytest.approx(200 / 3)
    assert m.total_pnl == 250.0
    assert m.total_pnl_pct == pytest.approx(0.25)
    assert m.average_win == 150.0
    assert m.average_loss == 50.0
    assert m.profit_factor == pytest.approx(6.0)
    assert m.expectancy == pytest.approx(2 / 3 * 150 - 1 / 3 * 50)
    assert m.average_holding_period == pytest.approx(3.0)
    assert m.recovery_factor == m.calmar_ratio == pytest.approx(0.125)


def test_metrics_empty_ledger():
    m = compute_metrics([], 100_000.0, 100_000.0, 0.0)
    assert m == Metrics()


def test_monthly_returns_first_to_last_sample():
    curve = [
        EquityPoint(pd.Timestamp("2022-01-01"), 100.0, 0.0),
        EquityPoint(pd.Timestamp("2022-01-20"), 110.0, 0.0),
        EquityPoint(pd.Timestamp("2022-02-03"), 110.0, 0.0),
        EquityPoint(pd.Timestamp("2022-02-25"), 99.0, 10.0),
    ]
    months = compute_monthly_returns(curve)
    assert [m.month for m in months] == ["2022-01", "2022-02"]
    assert months[0].return_pct == pytest.approx(10.0)
    assert months[1].return_pct == pytest.approx(-10.0)
    assert compute_monthly_returns([]) == []


def test_compare_results_picks_best_per_criterion():
    report = compare_results(
        [
            _result("AAA-FUT", total_pnl_pct=5.0, sharpe_ratio=1.0, win_rate=60.0),
            _result("BBB-FUT", total_pnl_pct=8.0, sharpe_ratio=0.5, win_rate=60.0),
        ]
    )
    assert report.best_by_return == "BBB-FUT"
    assert report.best_by_sharpe == "AAA-FUT"
    assert report.best_by_win_rate == "AAA-FUT"  # ties keep the first
    frame = report.to_frame()
    assert list(frame["symbol"]) == ["AAA-FUT", "BBB-FUT"]


def test_compare_results_requires_input():
    with pytest.raises(ValueError):
        compare_results([])


def test_plot_equity_curve():
    result = _result("AAA-FUT")
    result.equity_curve = [
        EquityPoint(pd.Timestamp("2022-01-01"), 100_000.0, 0.0),
        EquityPoint(pd.Timestamp("2022-01-11"), 99_000.0, 1.0),
    ]
    fig = plot_equity_curve(result)
    assert len(fig.axes) == 2
    plt.close(fig)
