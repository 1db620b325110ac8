"""Global configuration for the strategy lab."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

ROOT = Path(__file__).resolve().parent
DATA_CACHE_DIR = ROOT / "cache"

DEFAULT_SYMBOL = "NIFTY-FUT"
DEFAULT_START_DATE = "2023-01-01"
DEFAULT_END_DATE: Optional[str] = "2024-06-30"  # synthetic provider caps history at 500 bars
DEFAULT_INTERVAL = "1d"

# Longest fixed lookback used by the prediction pipeline (SMA200).
MIN_HISTORY_BARS = 200

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def ensure_cache_dir() -> Path:
    DATA_CACHE_DIR.mkdir(parents=True, exist_ok=True)
    return DATA_CACHE_DIR


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Attach a basic stream handler to the root logger (CLI use)."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
