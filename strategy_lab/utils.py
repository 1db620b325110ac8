from __future__ import annotations

import math


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(value, high))


def round_price(value: float) -> float:
    """Round a price to cents."""
    return round(value, 2)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (70.5 -> 71)."""
    return int(math.floor(value + 0.5))
