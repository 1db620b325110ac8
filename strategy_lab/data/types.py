"""Price bar type and helpers for OHLCV(+OI) DataFrames."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List

import pandas as pd

from strategy_lab.errors import PriceSeriesError

PRICE_COLUMNS: List[str] = ["Open", "High", "Low", "Close", "Volume", "OpenInterest"]
REQUIRED_COLUMNS: List[str] = ["Open", "High", "Low", "Close", "Volume"]


@dataclass(frozen=True)
class PriceBar:
    timestamp: pd.Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float
    open_interest: float = 0.0


def bars_to_frame(bars: Iterable[PriceBar]) -> pd.DataFrame:
    """Build a price series DataFrame indexed by timestamp."""
    records = [
        {
            "timestamp": pd.Timestamp(bar.timestamp),
            "Open": bar.open,
            "High": bar.high,
            "Low": bar.low,
            "Close": bar.close,
            "Volume": bar.volume,
            "OpenInterest": bar.open_interest,
        }
        for bar in bars
    ]
    if not records:
        empty = pd.DataFrame(columns=PRICE_COLUMNS, dtype=float)
        empty.index = pd.DatetimeIndex([], name="timestamp")
        return empty
    return pd.DataFrame.from_records(records).set_index("timestamp")


def iter_bars(series: pd.DataFrame) -> Iterator[PriceBar]:
    """Yield immutable bars from a price series."""
    has_oi = "OpenInterest" in series.columns
    for ts, row in series.iterrows():
        yield PriceBar(
            timestamp=ts,
            open=float(row["Open"]),
            high=float(row["High"]),
            low=float(row["Low"]),
            close=float(row["Close"]),
            volume=float(row["Volume"]),
            open_interest=float(row["OpenInterest"]) if has_oi else 0.0,
        )


def validate_series(series: pd.DataFrame) -> pd.DataFrame:
    """Check column shape and strictly ascending timestamps.

    Returns the series (with an ``OpenInterest`` column of zeros added when
    the source does not provide one).
    """
    missing = [col for col in REQUIRED_COLUMNS if col not in series.columns]
    if missing:
        raise PriceSeriesError(f"Price series missing columns: {missing}")

    index = pd.DatetimeIndex(series.index)
    if index.has_duplicates:
        raise PriceSeriesError("Price series has duplicate timestamps")
    if not index.is_monotonic_increasing:
        raise PriceSeriesError("Price series timestamps are not in ascending order")

    if "OpenInterest" not in series.columns:
        series = series.copy()
        series["OpenInterest"] = 0.0
    return series
