"""Entry rules and signal functions consumed by the backtest simulator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import pandas as pd

from strategy_lab.features import predictions
from strategy_lab.features.indicators import compute_atr
from strategy_lab.features.signals import extract_features, generate_signal
from strategy_lab.strategy.params import DEFAULT_PARAMS, StrategyParams
from strategy_lab.utils import round_price

LONG = "LONG"
SHORT = "SHORT"

BULLISH_ACTIONS = (predictions.BUY, predictions.STRONG_BUY)
BEARISH_ACTIONS = (predictions.SELL, predictions.STRONG_SELL)

# Time horizon implied by each call, used to pick the ATR target multiple.
ACTION_HORIZONS = {
    predictions.STRONG_BUY: predictions.INTRADAY,
    predictions.BUY: predictions.SHORT_TERM,
    predictions.HOLD: predictions.MEDIUM_TERM,
    predictions.SELL: predictions.SHORT_TERM,
    predictions.STRONG_SELL: predictions.INTRADAY,
}


@dataclass(frozen=True)
class TradeSignal:
    action: str
    confidence: float
    target_price: float
    stop_loss: float


SignalFn = Callable[[pd.DataFrame], TradeSignal]


def should_enter(signal: TradeSignal, min_confidence: float = 70.0) -> Optional[str]:
    """Return LONG/SHORT for a strong call or a confident plain call, else None."""
    if signal.action == predictions.STRONG_BUY or (signal.action == predictions.BUY and signal.confidence > min_confidence):
        return LONG
    if signal.action == predictions.STRONG_SELL or (
        signal.action == predictions.SELL and signal.confidence > min_confidence
    ):
        return SHORT
    return None


def compute_stops(price: float, atr: float, action: str) -> Tuple[float, float]:
    """Return target and stop-loss prices at ATR multiples around ``price``."""
    horizon = ACTION_HORIZONS.get(action, predictions.MEDIUM_TERM)
    target_distance = atr * predictions.ATR_TARGET_MULTIPLIERS[horizon]
    stop_distance = atr * predictions.ATR_STOP_MULTIPLIER
    if action in BULLISH_ACTIONS:
        return round_price(price + target_distance), round_price(price - stop_distance)
    return round_price(price - target_distance), round_price(price + stop_distance)


def params_signal(params: StrategyParams = DEFAULT_PARAMS) -> SignalFn:
    """Signal function scoring a window with ``params`` and ATR(14) stops."""

    def _signal(window: pd.DataFrame) -> TradeSignal:
        features = extract_features(window, params)
        signal = generate_signal(features, params)
        atr = compute_atr(
            window["High"].to_numpy(dtype=float),
            window["Low"].to_numpy(dtype=float),
            window["Close"].to_numpy(dtype=float),
            14,
        )
        target, stop = compute_stops(features.close, atr, signal.action)
        return TradeSignal(signal.action, signal.confidence, target, stop)

    return _signal


def composite_signal(window: pd.DataFrame) -> TradeSignal:
    """Signal function backed by the five-level composite prediction."""
    prediction = predictions.generate_prediction(window)
    return TradeSignal(prediction.prediction, prediction.confidence, prediction.target_price, prediction.stop_loss)
