"""Load price history from CSV, a synthetic provider, or yfinance; cache to disk."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
import pandas as pd

from strategy_lab.config import DEFAULT_INTERVAL, ensure_cache_dir
from strategy_lab.data.instruments import InstrumentStore
from strategy_lab.data.types import PRICE_COLUMNS, REQUIRED_COLUMNS

logger = logging.getLogger(__name__)

MAX_SYNTHETIC_BARS = 500

CSV_FIELDS = ["timestamp"] + PRICE_COLUMNS

INTERVAL_STEPS: Dict[str, pd.Timedelta] = {
    "1m": pd.Timedelta(minutes=1),
    "5m": pd.Timedelta(minutes=5),
    "15m": pd.Timedelta(minutes=15),
    "1h": pd.Timedelta(hours=1),
    "1d": pd.Timedelta(days=1),
}


def _empty_series() -> pd.DataFrame:
    df = pd.DataFrame(columns=PRICE_COLUMNS, dtype=float)
    df.index = pd.DatetimeIndex([], name="timestamp")
    return df


def parse_csv(text: str) -> pd.DataFrame:
    """Parse ``timestamp,open,high,low,close,volume[,open_interest]`` rows into a price series.

    The first line is treated as a header. Rows missing a required field, with
    unparseable values, or with more than seven fields are skipped; whatever
    parses is returned, de-duplicated (first row wins) and sorted.
    """
    rows = [line for line in text.strip().splitlines()[1:] if line.strip()]
    if not rows:
        return _empty_series()

    raw = pd.read_csv(
        io.StringIO("\n".join(rows)),
        header=None,
        names=CSV_FIELDS,
        dtype=str,
        skipinitialspace=True,
        on_bad_lines="skip",
    )
    df = pd.DataFrame({"timestamp": pd.to_datetime(raw["timestamp"], errors="coerce", format="mixed")})
    for column in PRICE_COLUMNS:
        df[column] = pd.to_numeric(raw[column], errors="coerce").astype(float)
    df = df.dropna(subset=["timestamp"] + REQUIRED_COLUMNS)

    skipped = len(rows) - len(df)
    if skipped:
        logger.warning("Skipped %d malformed CSV rows", skipped)
    if df.empty:
        return _empty_series()

    df["OpenInterest"] = df["OpenInterest"].fillna(0.0)
    df = df.set_index("timestamp")
    df = df[~df.index.duplicated(keep="first")]
    df.sort_index(inplace=True)
    return df


def load_csv(path: Union[str, Path]) -> pd.DataFrame:
    """Read a CSV file of OHLCV rows."""
    return parse_csv(Path(path).read_text())


def generate_history(
    store: InstrumentStore,
    symbol: str,
    start_date: Union[str, pd.Timestamp],
    end_date: Union[str, pd.Timestamp],
    interval: str = DEFAULT_INTERVAL,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """Synthetic OHLCV+OI history around the contract's last price.

    A slow sine trend plus uniform noise, capped at 500 bars. Raises
    ``InstrumentNotFoundError`` for unknown symbols.
    """
    instrument = store.get(symbol)
    if interval not in INTERVAL_STEPS:
        raise ValueError(f"Unsupported interval: {interval}")

    step = INTERVAL_STEPS[interval]
    start = pd.Timestamp(start_date)
    end = pd.Timestamp(end_date)
    n_bars = min(max(int((end - start) / step), 0), MAX_SYNTHETIC_BARS)
    if n_bars == 0:
        return _empty_series()

    rng = np.random.default_rng(seed)
    idx = np.arange(n_bars)
    base = instrument.last_price
    trend = np.sin(idx / 20) * 100
    noise = (rng.random(n_bars) - 0.5) * 50
    open_ = base + trend + noise
    close = open_ + (rng.random(n_bars) - 0.5) * 30
    high = np.maximum(open_, close) + rng.random(n_bars) * 20
    low = np.minimum(open_, close) - rng.random(n_bars) * 20
    volume = np.floor(rng.random(n_bars) * 1_000_000) + 500_000
    open_interest = np.floor(rng.random(n_bars) * 5_000_000) + 2_000_000

    index = pd.DatetimeIndex([start + i * step for i in idx], name="timestamp")
    return pd.DataFrame(
        {
            "Open": open_,
            "High": high,
            "Low": low,
            "Close": close,
            "Volume": volume,
            "OpenInterest": open_interest,
        },
        index=index,
    )


def get_price_history(ticker: str, start_date: str, end_date: Optional[str] = None) -> pd.DataFrame:
    """Download daily OHLCV for a single ticker using yfinance."""
    try:
        import yfinance as yf
    except ImportError as exc:  # pragma: no cover - import guard
        raise RuntimeError("yfinance is required to download data") from exc

    data = yf.download(
        tickers=ticker,
        start=start_date,
        end=end_date,
        auto_adjust=False,
        progress=False,
    )
    if isinstance(data.columns, pd.MultiIndex):
        data.columns = data.columns.get_level_values(0)

    data = data[["Open", "High", "Low", "Close", "Volume"]].dropna(subset=["Close"]).copy()
    data["OpenInterest"] = 0.0
    data.index = pd.DatetimeIndex(pd.to_datetime(data.index), name="timestamp")
    data.sort_index(inplace=True)
    return data


def save_to_cache(df: pd.DataFrame, path: Optional[Path] = None) -> Path:
    """Cache the price DataFrame to disk."""
    cache_dir = ensure_cache_dir()
    target = path or (cache_dir / "prices.pkl")
    target.parent.mkdir(parents=True, exist_ok=True)
    df.to_pickle(target)
    return target


def load_from_cache(path: Path) -> Optional[pd.DataFrame]:
    """Load cached prices if the file exists."""
    if path.exists():
        return pd.read_pickle(path)
    return None
