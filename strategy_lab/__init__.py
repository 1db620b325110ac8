"""Backtesting and genetic parameter search for rule-based futures strategies."""

__version__ = "0.1.0"
