"""Feature extraction and the BUY/SELL/HOLD scoring rule driven by StrategyParams."""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from strategy_lab.features.indicators import compute_macd, compute_rsi, compute_sma, compute_volatility
from strategy_lab.strategy.params import DEFAULT_PARAMS, StrategyParams
from strategy_lab.utils import round_half_up

BUY = "BUY"
SELL = "SELL"
HOLD = "HOLD"

RSI_WEIGHT = 2.0
MACD_WEIGHT = 2.0
MA_WEIGHT = 1.5
VOLUME_WEIGHT = 1.0
MIN_SCORE = 3.0
MAX_CONFIDENCE = 95.0


@dataclass(frozen=True)
class SignalFeatures:
    rsi: float
    macd: float
    macd_signal: float
    macd_histogram: float
    sma_fast: float
    sma_slow: float
    volatility: float
    volume_ratio: float
    price_change: float
    close: float


@dataclass(frozen=True)
class Signal:
    action: str
    confidence: int


def extract_features(series: pd.DataFrame, params: StrategyParams = DEFAULT_PARAMS) -> SignalFeatures:
    """Summarise a price window with the periods configured in ``params``."""
    closes = series["Close"].to_numpy(dtype=float)
    volumes = series["Volume"].to_numpy(dtype=float)

    macd = compute_macd(closes, params.macd_fast, params.macd_slow, params.macd_signal)

    avg_volume = volumes.mean() if volumes.size else 0.0
    current_volume = volumes[-1] if volumes.size else 0.0
    volume_ratio = current_volume / avg_volume if avg_volume > 0 else 1.0

    price_change = 0.0
    if closes.size > 1 and closes[0] != 0:
        price_change = (closes[-1] - closes[0]) / closes[0] * 100

    return SignalFeatures(
        rsi=compute_rsi(closes, params.rsi_period),
        macd=macd.macd,
        macd_signal=macd.signal,
        macd_histogram=macd.histogram,
        sma_fast=compute_sma(closes, params.sma_fast_period),
        sma_slow=compute_sma(closes, params.sma_slow_period),
        volatility=compute_volatility(closes, params.volatility_period),
        volume_ratio=float(volume_ratio),
        price_change=float(price_change),
        close=float(closes[-1]) if closes.size else 0.0,
    )


def generate_signal(features: SignalFeatures, params: StrategyParams = DEFAULT_PARAMS) -> Signal:
    """Score bullish vs. bearish evidence and damp confidence by volatility."""
    bullish = 0.0
    bearish = 0.0

    if features.rsi < params.rsi_oversold:
        bullish += RSI_WEIGHT
    if features.rsi > params.rsi_overbought:
        bearish += RSI_WEIGHT

    if features.macd > features.macd_signal:
        bullish += MACD_WEIGHT
    if features.macd < features.macd_signal:
        bearish += MACD_WEIGHT

    if features.sma_fast > features.sma_slow:
        bullish += MA_WEIGHT
    if features.sma_fast < features.sma_slow:
        bearish += MA_WEIGHT

    if features.volume_ratio > params.volume_threshold and features.price_change > 0:
        bullish += VOLUME_WEIGHT
    if features.volume_ratio > params.volume_threshold and features.price_change < 0:
        bearish += VOLUME_WEIGHT

    total = bullish + bearish
    action = HOLD
    confidence = 50.0
    if bullish > bearish and bullish > MIN_SCORE:
        action = BUY
        confidence = min(50 + bullish / total * 50, MAX_CONFIDENCE)
    elif bearish > bullish and bearish > MIN_SCORE:
        action = SELL
        confidence = min(50 + bearish / total * 50, MAX_CONFIDENCE)

    # Noisy windows pull confidence back toward uncertainty.
    volatility_factor = min(features.volatility / 10, 1.0)
    confidence *= 1 - volatility_factor * 0.3
    return Signal(action, round_half_up(confidence))
