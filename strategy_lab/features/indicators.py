"""Technical indicators over plain numeric sequences.

Every function returns a single float for the latest bar and falls back to a
neutral value (documented per function) when the history is too short.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

ArrayLike = Union[Sequence[float], np.ndarray]


@dataclass(frozen=True)
class MACDResult:
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float
    width: float


def _as_array(values: ArrayLike) -> np.ndarray:
    return np.asarray(values, dtype=float)


def _last(values: np.ndarray) -> float:
    return float(values[-1]) if values.size else 0.0


def compute_rsi(prices: ArrayLike, period: int = 14) -> float:
    """RSI from simple average gain/loss over the last ``period`` transitions.

    50 with fewer than ``period + 1`` prices, 100 when there is no loss.
    """
    arr = _as_array(prices)
    if arr.size < period + 1:
        return 50.0

    changes = np.diff(arr[-(period + 1):])
    avg_gain = changes[changes > 0].sum() / period
    avg_loss = -changes[changes < 0].sum() / period
    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return float(100 - 100 / (1 + rs))


def compute_ema(prices: ArrayLike, period: int) -> float:
    """EMA seeded with the SMA of the first ``period`` prices."""
    arr = _as_array(prices)
    if arr.size < period:
        return _last(arr)

    multiplier = 2 / (period + 1)
    ema = float(arr[:period].mean())
    for price in arr[period:]:
        ema = (price - ema) * multiplier + ema
    return float(ema)


def compute_sma(prices: ArrayLike, period: int) -> float:
    arr = _as_array(prices)
    if arr.size < period:
        return _last(arr)
    return float(arr[-period:].mean())


def compute_macd(prices: ArrayLike, fast: int = 12, slow: int = 26, signal: int = 9) -> MACDResult:
    """MACD line as EMA(fast) - EMA(slow).

    The signal line is approximated as ``0.9 * macd`` instead of an EMA of the
    MACD series; downstream scoring is calibrated against this shortcut.
    ``signal`` is accepted for interface compatibility and not used.
    """
    arr = _as_array(prices)
    if arr.size < slow:
        return MACDResult(0.0, 0.0, 0.0)

    macd = compute_ema(arr, fast) - compute_ema(arr, slow)
    signal_line = macd * 0.9
    return MACDResult(macd, signal_line, macd - signal_line)


def compute_volatility(prices: ArrayLike, period: int = 20) -> float:
    """Population standard deviation of the last ``period`` prices (0 if short)."""
    arr = _as_array(prices)
    if arr.size < period:
        return 0.0
    return float(arr[-period:].std())


def compute_atr(highs: ArrayLike, lows: ArrayLike, closes: ArrayLike, period: int = 14) -> float:
    h, l, c = _as_array(highs), _as_array(lows), _as_array(closes)
    if h.size < period + 1:
        return 0.0

    prev_close = c[:-1]
    true_range = np.maximum.reduce(
        [h[1:] - l[1:], np.abs(h[1:] - prev_close), np.abs(l[1:] - prev_close)]
    )
    return compute_sma(true_range, period)


def compute_bollinger(prices: ArrayLike, period: int = 20, k: float = 2.0) -> BollingerBands:
    middle = compute_sma(prices, period)
    vol = compute_volatility(prices, period)
    upper = middle + k * vol
    lower = middle - k * vol
    width = (upper - lower) / middle * 100 if middle else 0.0
    return BollingerBands(upper, middle, lower, width)


def compute_obv(closes: ArrayLike, volumes: ArrayLike) -> float:
    c, v = _as_array(closes), _as_array(volumes)
    if c.size < 2:
        return 0.0
    direction = np.sign(np.diff(c))
    return float((direction * v[1:]).sum())


def compute_roc(prices: ArrayLike, period: int = 12) -> float:
    arr = _as_array(prices)
    if arr.size < period + 1:
        return 0.0
    previous = arr[-period - 1]
    if previous == 0:
        return 0.0
    return float((arr[-1] - previous) / previous * 100)


def compute_stochastic(highs: ArrayLike, lows: ArrayLike, closes: ArrayLike, period: int = 14) -> float:
    """%K over the trailing window; 50 if the range is flat or data is short."""
    h, l, c = _as_array(highs), _as_array(lows), _as_array(closes)
    if c.size < period:
        return 50.0

    highest = h[-period:].max()
    lowest = l[-period:].min()
    if highest == lowest:
        return 50.0
    return float((c[-1] - lowest) / (highest - lowest) * 100)


def compute_williams_r(highs: ArrayLike, lows: ArrayLike, closes: ArrayLike, period: int = 14) -> float:
    return compute_stochastic(highs, lows, closes, period) - 100


def compute_adx(highs: ArrayLike, lows: ArrayLike, closes: ArrayLike, period: int = 14) -> float:
    """Simplified directional index from summed +DM/-DM over the trailing window.

    25 when there is not enough data, 0 when there is no directional movement.
    """
    h, l, c = _as_array(highs), _as_array(lows), _as_array(closes)
    if c.size < period + 1:
        return 25.0

    h_win = h[-(period + 1):]
    l_win = l[-(period + 1):]
    up_move = np.diff(h_win)
    down_move = -np.diff(l_win)

    dm_plus = up_move[(up_move > down_move) & (up_move > 0)].sum()
    dm_minus = down_move[(down_move > up_move) & (down_move > 0)].sum()

    di_plus = dm_plus / period * 100
    di_minus = dm_minus / period * 100
    if di_plus + di_minus == 0:
        return 0.0
    return float(abs(di_plus - di_minus) / (di_plus + di_minus) * 100)


def classify_trend_strength(closes: ArrayLike, sma_fast: float, sma_slow: float) -> float:
    """Map price / fast MA / slow MA ordering onto {100, 70, 50, 30, 0}."""
    price = _last(_as_array(closes))
    if price > sma_fast and sma_fast > sma_slow:
        return 100.0
    if price > sma_fast:
        return 70.0
    if price < sma_fast and sma_fast > sma_slow:
        return 30.0
    if price < sma_fast and sma_fast < sma_slow:
        return 0.0
    return 50.0
