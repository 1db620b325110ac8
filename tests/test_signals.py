import pytest

from strategy_lab.features import predictions
from strategy_lab.features.signals import BUY, HOLD, SELL, SignalFeatures, extract_features, generate_signal
from strategy_lab.strategy.params import DEFAULT_PARAMS
from strategy_lab.strategy.rules import (
    LONG,
    SHORT,
    TradeSignal,
    composite_signal,
    compute_stops,
    params_signal,
    should_enter,
)
from strategy_lab.utils import round_half_up
from tests.test_core import make_falling_series, make_flat_series, make_rising_series, make_series


def _features(**overrides) -> SignalFeatures:
    values = dict(
        rsi=50.0,
        macd=0.0,
        macd_signal=0.0,
        macd_histogram=0.0,
        sma_fast=100.0,
        sma_slow=100.0,
        volatility=0.0,
        volume_ratio=1.0,
        price_change=0.0,
        close=100.0,
    )
    values.update(overrides)
    return SignalFeatures(**values)


def test_all_bullish_evidence_caps_confidence():
    feats = _features(rsi=25.0, macd=1.0, macd_signal=0.9, sma_fast=101.0, volume_ratio=2.0, price_change=1.0)
    signal = generate_signal(feats)
    assert signal.action == BUY
    assert signal.confidence == 95


def test_score_must_exceed_threshold():
    # Oversold RSI (2) plus volume (1) ties the threshold, which is not enough.
    feats = _features(rsi=25.0, volume_ratio=2.0, price_change=1.0)
    signal = generate_signal(feats)
    assert signal.action == HOLD
    assert signal.confidence == 50


def test_bearish_evidence_and_volatility_damping():
    feats = _features(rsi=80.0, macd=-1.0, macd_signal=-0.9, sma_fast=99.0, volatility=5.0)
    signal = generate_signal(feats)
    assert signal.action == SELL
    assert signal.confidence == 81  # 95 * (1 - 0.5 * 0.3)


def test_half_confidence_rounds_up():
    signal = generate_signal(_features(volatility=5.0))
    assert signal.action == HOLD
    assert signal.confidence == 43  # 50 * 0.85 = 42.5
    assert round_half_up(70.5) == 71
    assert round_half_up(2.5) == 3
    assert round_half_up(42.4) == 42


def test_extract_features_on_rising_series():
    feats = extract_features(make_rising_series(), DEFAULT_PARAMS)
    assert feats.rsi == 100.0
    assert feats.macd > feats.macd_signal
    assert feats.sma_fast > feats.sma_slow
    assert feats.volume_ratio == pytest.approx(1.0)
    assert feats.price_change == pytest.approx(299.0)
    assert feats.close == 399.0


def test_params_signal_rising_buys_with_atr_levels():
    signal = params_signal(DEFAULT_PARAMS)(make_rising_series())
    assert signal.action == BUY
    assert signal.confidence == 75
    assert signal.target_price == pytest.approx(404.0)
    assert signal.stop_loss == pytest.approx(397.0)


def test_params_signal_falling_sells():
    signal = params_signal(DEFAULT_PARAMS)(make_falling_series())
    assert signal.action == SELL
    assert signal.confidence == 75
    assert signal.target_price == pytest.approx(101.0 - 5.0)
    assert signal.stop_loss == pytest.approx(101.0 + 2.0)


def test_params_signal_flat_holds():
    assert params_signal(DEFAULT_PARAMS)(make_flat_series()).action == HOLD


def test_compute_stops_by_horizon():
    assert compute_stops(100.0, 2.0, predictions.STRONG_BUY) == (103.0, 98.0)
    assert compute_stops(100.0, 2.0, predictions.SELL) == (95.0, 102.0)
    assert compute_stops(100.0, 2.0, predictions.HOLD) == (93.0, 102.0)


@pytest.mark.parametrize(
    "action, confidence, expected",
    [
        (predictions.STRONG_BUY, 10, LONG),
        (predictions.BUY, 71, LONG),
        (predictions.BUY, 70, None),
        (predictions.STRONG_SELL, 10, SHORT),
        (predictions.SELL, 90, SHORT),
        (predictions.HOLD, 95, None),
    ],
)
def test_should_enter(action, confidence, expected):
    assert should_enter(TradeSignal(action, confidence, 0.0, 0.0)) == expected


def test_prediction_on_rising_series():
    pred = predictions.generate_prediction(make_rising_series(), "TEST-FUT")
    # technical 60, momentum 15, volume 65, trend 100
    assert pred.composite_score == pytest.approx(57.75)
    assert pred.prediction == predictions.HOLD
    assert pred.time_horizon == predictions.MEDIUM_TERM
    assert pred.signals == {"technical": 60, "momentum": 15, "volume": 65, "trend": 100}
    assert pred.entry_price == 399.0
    assert pred.risk_reward == 3.5
    assert any("uptrend" in reason for reason in pred.reasoning)


def test_composite_signal_does_not_enter_on_steady_rise():
    signal = composite_signal(make_rising_series())
    assert should_enter(signal) is None


def test_oi_build_up_lifts_volume_score():
    df = make_rising_series(60)
    df.loc[df.index[-1], "OpenInterest"] = 110.0
    df.loc[df.index[-2], "OpenInterest"] = 100.0
    feats = predictions.compute_prediction_features(df)
    assert feats.oi_change == pytest.approx(10.0)
    assert predictions.volume_score(feats) == 80.0


@pytest.mark.parametrize(
    "score, call, confidence",
    [
        (85, predictions.STRONG_BUY, 85),
        (99, predictions.STRONG_BUY, 95),
        (60, predictions.BUY, 60),
        (40, predictions.HOLD, 90),
        (39.5, predictions.SELL, 60.5),
        (5, predictions.STRONG_SELL, 95),
    ],
)
def test_classify_composite(score, call, confidence):
    result_call, result_confidence, _ = predictions.classify_composite(score)
    assert result_call == call
    assert result_confidence == pytest.approx(confidence)


def test_batch_predictions_skip_short_history_and_sort():
    histories = {
        "LONG-HIST": make_rising_series(),
        "SHORT-HIST": make_series(range(100, 130)),
        "NONE": None,
    }
    preds = predictions.generate_batch_predictions(histories)
    assert [p.symbol for p in preds] == ["LONG-HIST"]
