"""Configuration for the genetic parameter search."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class OptimizerConfig:
    """Population shape, reproduction rates, and fitness penalties."""

    population_size: int = 20
    mutation_rate: float = 0.1
    elite_count: int = 2
    tournament_size: int = 11  # parents drawn from the top N ranks

    # Fitness = profit %, minus penalties for weak or inactive strategies
    min_accuracy: float = 40.0
    accuracy_penalty: float = 50.0
    min_trades: int = 5
    trade_penalty: float = 20.0
