"""Genetic optimisation of strategy parameters."""

from strategy_lab.optimizer.config import OptimizerConfig
from strategy_lab.optimizer.evaluation import EvaluationResult, quick_backtest, simulator_evaluator
from strategy_lab.optimizer.genetic import (
    Individual,
    OptimizationResult,
    create_initial_population,
    evaluate_population,
    evolve_population,
    iter_generations,
    population_to_frame,
    run_optimizer,
)

__all__ = [
    "OptimizerConfig",
    "EvaluationResult",
    "quick_backtest",
    "simulator_evaluator",
    "Individual",
    "OptimizationResult",
    "create_initial_population",
    "evaluate_population",
    "evolve_population",
    "iter_generations",
    "population_to_frame",
    "run_optimizer",
]
