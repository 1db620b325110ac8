"""Genetic search over StrategyParams.

A population of parameter sets is scored by a backtest evaluator, ranked by
fitness, and bred into the next generation with elitism, uniform crossover,
and per-gene mutation. ``iter_generations`` is an unbounded generator; the
caller (``run_optimizer`` or a UI loop) owns termination.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, fields, replace
from typing import Callable, Iterator, List, Optional, Sequence

import numpy as np
import pandas as pd

from strategy_lab.optimizer.config import OptimizerConfig
from strategy_lab.optimizer.evaluation import EvaluationResult, Evaluator, quick_backtest
from strategy_lab.strategy.params import DEFAULT_PARAMS, FLOAT_GENES, GENE_RANGES, StrategyParams, repair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Individual:
    params: StrategyParams
    fitness: float = 0.0
    accuracy: float = 0.0
    profit: float = 0.0
    trades: int = 0
    evaluated: bool = False


@dataclass(frozen=True)
class GenerationSnapshot:
    generation: int
    population: List[Individual]

    @property
    def best(self) -> Individual:
        return self.population[0]


@dataclass(frozen=True)
class OptimizationResult:
    population: List[Individual]
    generation: int

    @property
    def best(self) -> Individual:
        return self.population[0]


def _random_gene(name: str, rng: np.random.Generator):
    low, high = GENE_RANGES[name]
    if name in FLOAT_GENES:
        return float(rng.uniform(low, high))
    return int(rng.integers(low, high + 1))


def random_params(rng: np.random.Generator) -> StrategyParams:
    """Draw every gene uniformly from its range (integers inclusive)."""
    genes = {name: _random_gene(name, rng) for name in GENE_RANGES}
    return repair(StrategyParams(**genes))


def create_initial_population(
    rng: np.random.Generator, config: Optional[OptimizerConfig] = None
) -> List[Individual]:
    """Default parameters in slot 0, random individuals after it."""
    cfg = config or OptimizerConfig()
    population = [Individual(DEFAULT_PARAMS)]
    while len(population) < cfg.population_size:
        population.append(Individual(random_params(rng)))
    return population


def score_fitness(result: EvaluationResult, config: Optional[OptimizerConfig] = None) -> float:
    cfg = config or OptimizerConfig()
    fitness = result.profit
    if result.accuracy < cfg.min_accuracy:
        fitness -= cfg.accuracy_penalty
    if result.trades < cfg.min_trades:
        fitness -= cfg.trade_penalty
    return fitness


def evaluate_population(
    population: Sequence[Individual],
    series: pd.DataFrame,
    evaluator: Optional[Evaluator] = None,
    config: Optional[OptimizerConfig] = None,
) -> List[Individual]:
    """Score unevaluated individuals and return the population ranked by fitness.

    Individuals already carrying an evaluation (elites) are not re-run. The
    sort is stable, so equal-fitness individuals keep their relative order.
    """
    cfg = config or OptimizerConfig()
    evaluate = evaluator or quick_backtest

    scored = []
    for individual in population:
        if individual.evaluated:
            scored.append(individual)
            continue
        result = evaluate(series, individual.params)
        scored.append(
            replace(
                individual,
                fitness=score_fitness(result, cfg),
                accuracy=result.accuracy,
                profit=result.profit,
                trades=result.trades,
                evaluated=True,
            )
        )
    return sorted(scored, key=lambda ind: ind.fitness, reverse=True)


def crossover(first: StrategyParams, second: StrategyParams, rng: np.random.Generator) -> StrategyParams:
    """Uniform crossover: each gene comes from either parent with equal odds."""
    genes = {}
    for field in fields(StrategyParams):
        source = first if rng.random() > 0.5 else second
        genes[field.name] = getattr(source, field.name)
    return StrategyParams(**genes)


def mutate(params: StrategyParams, rng: np.random.Generator, rate: float = 0.1) -> StrategyParams:
    """Re-draw each gene from its range with probability ``rate``, then repair."""
    changes = {name: _random_gene(name, rng) for name in GENE_RANGES if rng.random() < rate}
    return repair(replace(params, **changes))


def evolve_population(
    population: Sequence[Individual],
    rng: np.random.Generator,
    config: Optional[OptimizerConfig] = None,
) -> List[Individual]:
    """Breed the next generation from a fitness-ranked population.

    The top ``elite_count`` individuals carry over unchanged (with their
    evaluation). The rest are children of two parents drawn uniformly from
    the top ``tournament_size`` ranks.
    """
    cfg = config or OptimizerConfig()
    if len(population) < cfg.elite_count:
        raise ValueError(f"population of {len(population)} is smaller than elite count {cfg.elite_count}")

    next_gen = list(population[: cfg.elite_count])
    pool = min(cfg.tournament_size, len(population))
    while len(next_gen) < cfg.population_size:
        parent1 = population[int(rng.integers(0, pool))]
        parent2 = population[int(rng.integers(0, pool))]
        child = mutate(crossover(parent1.params, parent2.params, rng), rng, cfg.mutation_rate)
        next_gen.append(Individual(child))
    return next_gen


def step(
    population: Sequence[Individual],
    series: pd.DataFrame,
    rng: np.random.Generator,
    evaluator: Optional[Evaluator] = None,
    config: Optional[OptimizerConfig] = None,
) -> List[Individual]:
    """One generation: evolve, then evaluate and rank."""
    return evaluate_population(evolve_population(population, rng, config), series, evaluator, config)


def iter_generations(
    series: pd.DataFrame,
    rng: Optional[np.random.Generator] = None,
    evaluator: Optional[Evaluator] = None,
    config: Optional[OptimizerConfig] = None,
    initial_population: Optional[Sequence[Individual]] = None,
    stop_event: Optional[threading.Event] = None,
) -> Iterator[GenerationSnapshot]:
    """Yield the ranked population after every generation, generation 0 first.

    Runs until the consumer stops iterating or ``stop_event`` is set; the
    event is checked before each new generation starts.
    """
    rng = rng if rng is not None else np.random.default_rng()
    population = list(initial_population) if initial_population else create_initial_population(rng, config)
    population = evaluate_population(population, series, evaluator, config)
    generation = 0
    yield GenerationSnapshot(generation, population)

    while stop_event is None or not stop_event.is_set():
        population = step(population, series, rng, evaluator, config)
        generation += 1
        best = population[0]
        logger.info(
            "Generation %d: best fitness %.2f (profit %.2f%%, accuracy %.1f%%, %d trades)",
            generation,
            best.fitness,
            best.profit,
            best.accuracy,
            best.trades,
        )
        yield GenerationSnapshot(generation, population)


def run_optimizer(
    series: pd.DataFrame,
    generations: int = 10,
    time_budget: Optional[float] = None,
    seed: Optional[int] = None,
    evaluator: Optional[Evaluator] = None,
    config: Optional[OptimizerConfig] = None,
    stop_event: Optional[threading.Event] = None,
    on_generation: Optional[Callable[[GenerationSnapshot], None]] = None,
) -> OptimizationResult:
    """Drive the search until a generation limit, time budget, or stop event.

    Args:
        series: Price series every individual is evaluated on.
        generations: Number of generations to breed after the initial one.
        time_budget: Wall-clock seconds after which no new generation starts.
        seed: Seed for the random generator, for reproducible runs.
        evaluator: Backtest used for fitness. Defaults to ``quick_backtest``.
        config: OptimizerConfig overrides.
        stop_event: Cooperative cancellation flag.
        on_generation: Callback invoked with each snapshot (progress display).

    Returns:
        OptimizationResult with the final ranked population.
    """
    rng = np.random.default_rng(seed)
    started = time.monotonic()
    snapshot = None
    for snapshot in iter_generations(series, rng, evaluator, config, stop_event=stop_event):
        if on_generation is not None:
            on_generation(snapshot)
        if snapshot.generation >= generations:
            break
        if time_budget is not None and time.monotonic() - started >= time_budget:
            logger.info("Time budget of %.1fs reached after generation %d", time_budget, snapshot.generation)
            break

    return OptimizationResult(population=snapshot.population, generation=snapshot.generation)


def population_to_frame(population: Sequence[Individual]) -> pd.DataFrame:
    """Tabulate a ranked population, one row per individual."""
    rows = []
    for rank, individual in enumerate(population, start=1):
        row = {"rank": rank}
        row.update(individual.params.to_dict())
        row.update(
            {
                "fitness": individual.fitness,
                "profit": individual.profit,
                "accuracy": individual.accuracy,
                "trades": individual.trades,
                "evaluated": individual.evaluated,
            }
        )
        rows.append(row)
    return pd.DataFrame(rows).set_index("rank") if rows else pd.DataFrame()
