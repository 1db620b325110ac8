"""Five-level composite prediction (STRONG_SELL .. STRONG_BUY) with ATR targets.

Technical, momentum, volume and trend sub-scores (each 0-100, neutral 50) are
blended 0.35/0.25/0.20/0.20 into a composite score, which is cut at 20/40/60/80
into a directional call. Target and stop distances are ATR multiples chosen by
the call's time horizon.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping

import pandas as pd

from strategy_lab.features.indicators import (
    classify_trend_strength,
    compute_adx,
    compute_atr,
    compute_bollinger,
    compute_ema,
    compute_macd,
    compute_obv,
    compute_roc,
    compute_rsi,
    compute_sma,
    compute_stochastic,
    compute_volatility,
    compute_williams_r,
)
from strategy_lab.utils import clamp, round_half_up, round_price

STRONG_BUY = "STRONG_BUY"
BUY = "BUY"
HOLD = "HOLD"
SELL = "SELL"
STRONG_SELL = "STRONG_SELL"

INTRADAY = "INTRADAY"
SHORT_TERM = "SHORT_TERM"
MEDIUM_TERM = "MEDIUM_TERM"
LONG_TERM = "LONG_TERM"

SCORE_WEIGHTS: Dict[str, float] = {"technical": 0.35, "momentum": 0.25, "volume": 0.20, "trend": 0.20}

ATR_TARGET_MULTIPLIERS: Dict[str, float] = {
    INTRADAY: 1.5,
    SHORT_TERM: 2.5,
    MEDIUM_TERM: 3.5,
    LONG_TERM: 4.5,
}
ATR_STOP_MULTIPLIER = 1.0
MIN_BATCH_BARS = 50


@dataclass(frozen=True)
class PredictionFeatures:
    rsi: float
    macd: float
    macd_signal: float
    macd_histogram: float
    sma20: float
    sma50: float
    sma200: float
    ema12: float
    ema26: float
    volatility: float
    atr: float
    bollinger_upper: float
    bollinger_lower: float
    bollinger_width: float
    volume_ma: float
    volume_ratio: float
    obv: float
    roc: float
    stochastic: float
    williams_r: float
    adx: float
    trend_strength: float
    oi_change: float
    oi_trend: float
    close: float
    price_change: float


@dataclass
class Prediction:
    symbol: str
    prediction: str
    confidence: int
    target_price: float
    stop_loss: float
    entry_price: float
    time_horizon: str
    risk_reward: float
    signals: Dict[str, int]
    reasoning: List[str] = field(default_factory=list)
    composite_score: float = 50.0


def compute_prediction_features(series: pd.DataFrame) -> PredictionFeatures:
    closes = series["Close"].to_numpy(dtype=float)
    highs = series["High"].to_numpy(dtype=float)
    lows = series["Low"].to_numpy(dtype=float)
    volumes = series["Volume"].to_numpy(dtype=float)
    if "OpenInterest" in series.columns:
        ois = series["OpenInterest"].to_numpy(dtype=float)
    else:
        ois = closes[:0]

    macd = compute_macd(closes, 12, 26, 9)
    sma20 = compute_sma(closes, 20)
    sma50 = compute_sma(closes, 50)
    sma200 = compute_sma(closes, 200)
    bands = compute_bollinger(closes, 20, 2)

    volume_ma = compute_sma(volumes, 20)
    current_volume = volumes[-1] if volumes.size else 0.0
    volume_ratio = current_volume / volume_ma if volume_ma > 0 else 1.0

    oi_change = 0.0
    if ois.size > 1 and ois[-2] != 0:
        oi_change = (ois[-1] - ois[-2]) / ois[-2] * 100

    price_change = 0.0
    if closes.size > 1 and closes[-2] != 0:
        price_change = closes[-1] - closes[-2]

    return PredictionFeatures(
        rsi=compute_rsi(closes, 14),
        macd=macd.macd,
        macd_signal=macd.signal,
        macd_histogram=macd.histogram,
        sma20=sma20,
        sma50=sma50,
        sma200=sma200,
        ema12=compute_ema(closes, 12),
        ema26=compute_ema(closes, 26),
        volatility=compute_volatility(closes, 20),
        atr=compute_atr(highs, lows, closes, 14),
        bollinger_upper=bands.upper,
        bollinger_lower=bands.lower,
        bollinger_width=bands.width,
        volume_ma=volume_ma,
        volume_ratio=float(volume_ratio),
        obv=compute_obv(closes, volumes),
        roc=compute_roc(closes, 12),
        stochastic=compute_stochastic(highs, lows, closes, 14),
        williams_r=compute_williams_r(highs, lows, closes, 14),
        adx=compute_adx(highs, lows, closes, 14),
        trend_strength=classify_trend_strength(closes, sma50, sma200),
        oi_change=float(oi_change),
        oi_trend=compute_sma(ois, 5),
        close=float(closes[-1]) if closes.size else 0.0,
        price_change=float(price_change),
    )


def technical_score(features: PredictionFeatures) -> float:
    score = 50.0
    price = features.close

    if features.rsi < 30:
        score += 20
    elif features.rsi < 40:
        score += 10
    elif features.rsi > 70:
        score -= 20
    elif features.rsi > 60:
        score -= 10

    if features.macd_histogram > 0 and features.macd > features.macd_signal:
        score += 15
    elif features.macd_histogram < 0 and features.macd < features.macd_signal:
        score -= 15

    if price > features.sma20 and features.sma20 > features.sma50:
        score += 15
    elif price < features.sma20 and features.sma20 < features.sma50:
        score -= 15

    if price <= features.bollinger_lower:
        score += 10
    elif price >= features.bollinger_upper:
        score -= 10

    return clamp(score, 0, 100)


def momentum_score(features: PredictionFeatures) -> float:
    score = 50.0

    if features.stochastic < 20:
        score += 20
    elif features.stochastic > 80:
        score -= 20

    if features.roc > 5:
        score += 15
    elif features.roc < -5:
        score -= 15

    if features.williams_r < -80:
        score += 15
    elif features.williams_r > -20:
        score -= 15

    return clamp(score, 0, 100)


def volume_score(features: PredictionFeatures) -> float:
    score = 50.0

    if features.volume_ratio > 1.5:
        score += 20
    elif features.volume_ratio < 0.7:
        score -= 10

    if features.obv > 0:
        score += 15
    elif features.obv < 0:
        score -= 15

    # Rising open interest confirms the direction of the last bar.
    if features.oi_change > 5 and features.price_change > 0:
        score += 15
    elif features.oi_change > 5 and features.price_change < 0:
        score -= 15

    return clamp(score, 0, 100)


def classify_composite(score: float):
    """Return (call, confidence, time horizon) for a composite score."""
    if score >= 80:
        return STRONG_BUY, min(score, 95), INTRADAY
    if score >= 60:
        return BUY, score, SHORT_TERM
    if score >= 40:
        return HOLD, 100 - abs(score - 50), MEDIUM_TERM
    if score >= 20:
        return SELL, 100 - score, SHORT_TERM
    return STRONG_SELL, min(100 - score, 95), INTRADAY


def describe_features(features: PredictionFeatures) -> List[str]:
    reasoning: List[str] = []

    if features.rsi < 30:
        reasoning.append("RSI indicates oversold conditions, potential reversal upward")
    elif features.rsi > 70:
        reasoning.append("RSI indicates overbought conditions, potential reversal downward")

    if features.macd_histogram > 0:
        reasoning.append("MACD showing bullish momentum with positive histogram")
    elif features.macd_histogram < 0:
        reasoning.append("MACD showing bearish momentum with negative histogram")

    if features.trend_strength > 70:
        reasoning.append("Strong uptrend confirmed by moving averages")
    elif features.trend_strength < 30:
        reasoning.append("Strong downtrend confirmed by moving averages")

    if features.volume_ratio > 1.5:
        reasoning.append("Above-average volume supporting the move")

    if features.oi_change > 5:
        reasoning.append("Increasing open interest indicates fresh positions being built")
    elif features.oi_change < -5:
        reasoning.append("Decreasing open interest indicates position unwinding")

    if features.adx > 40:
        reasoning.append("Strong directional movement (ADX > 40)")

    if features.bollinger_width > 5:
        reasoning.append("High volatility environment, expect larger moves")

    return reasoning


def generate_prediction(series: pd.DataFrame, symbol: str = "") -> Prediction:
    """Score the latest bar of ``series`` and derive target/stop levels."""
    features = compute_prediction_features(series)
    price = features.close

    scores = {
        "technical": technical_score(features),
        "momentum": momentum_score(features),
        "volume": volume_score(features),
        "trend": features.trend_strength,
    }
    composite = sum(scores[name] * weight for name, weight in SCORE_WEIGHTS.items())
    call, confidence, horizon = classify_composite(composite)

    target_distance = features.atr * ATR_TARGET_MULTIPLIERS[horizon]
    stop_distance = features.atr * ATR_STOP_MULTIPLIER
    if call in (BUY, STRONG_BUY):
        target, stop = price + target_distance, price - stop_distance
    else:
        target, stop = price - target_distance, price + stop_distance

    risk_reward = target_distance / stop_distance if stop_distance > 0 else 0.0

    return Prediction(
        symbol=symbol,
        prediction=call,
        confidence=round_half_up(confidence),
        target_price=round_price(target),
        stop_loss=round_price(stop),
        entry_price=price,
        time_horizon=horizon,
        risk_reward=round(risk_reward, 2),
        signals={name: round_half_up(value) for name, value in scores.items()},
        reasoning=describe_features(features),
        composite_score=composite,
    )


def generate_batch_predictions(histories: Mapping[str, pd.DataFrame]) -> List[Prediction]:
    """Predict every symbol with enough history, most confident first."""
    predictions = [
        generate_prediction(history, symbol)
        for symbol, history in histories.items()
        if history is not None and len(history) > MIN_BATCH_BARS
    ]
    return sorted(predictions, key=lambda p: p.confidence, reverse=True)
