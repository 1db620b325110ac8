"""Price series types, instrument metadata, and history loaders."""

from strategy_lab.data.instruments import Instrument, InstrumentStore, default_store
from strategy_lab.data.loader import generate_history, load_csv, parse_csv
from strategy_lab.data.types import PRICE_COLUMNS, PriceBar, bars_to_frame, iter_bars, validate_series

__all__ = [
    "PRICE_COLUMNS",
    "PriceBar",
    "bars_to_frame",
    "iter_bars",
    "validate_series",
    "Instrument",
    "InstrumentStore",
    "default_store",
    "parse_csv",
    "load_csv",
    "generate_history",
]
