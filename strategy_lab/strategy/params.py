"""Tunable strategy parameters and the ranges the optimizer samples from."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Tuple, Union

Number = Union[int, float]


@dataclass(frozen=True)
class StrategyParams:
    """Indicator periods and thresholds for the signal layer."""

    rsi_period: int = 14
    rsi_overbought: int = 70
    rsi_oversold: int = 30

    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9

    sma_fast_period: int = 20
    sma_slow_period: int = 50

    volatility_period: int = 10
    volume_threshold: float = 1.5

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_PARAMS = StrategyParams()

# Inclusive sampling range per gene; float bounds mark continuous genes.
GENE_RANGES: Dict[str, Tuple[Number, Number]] = {
    "rsi_period": (5, 30),
    "rsi_overbought": (60, 90),
    "rsi_oversold": (10, 40),
    "macd_fast": (5, 20),
    "macd_slow": (21, 50),
    "macd_signal": (5, 15),
    "sma_fast_period": (5, 50),
    "sma_slow_period": (51, 200),
    "volatility_period": (10, 50),
    "volume_threshold": (1.1, 3.0),
}

FLOAT_GENES = frozenset({"volume_threshold"})


def repair(params: StrategyParams) -> StrategyParams:
    """Restore fast < slow for the MA and MACD pairs by halving the fast period."""
    fixes: Dict[str, int] = {}
    if params.sma_fast_period >= params.sma_slow_period:
        fixes["sma_fast_period"] = params.sma_slow_period // 2
    if params.macd_fast >= params.macd_slow:
        fixes["macd_fast"] = params.macd_slow // 2
    return replace(params, **fixes) if fixes else params


def longest_lookback(params: StrategyParams) -> int:
    """Bars needed before every indicator has a full window."""
    return max(
        params.rsi_period + 1,
        params.macd_slow,
        params.sma_fast_period,
        params.sma_slow_period,
        params.volatility_period,
    )
