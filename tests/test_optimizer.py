import threading
from dataclasses import fields

import numpy as np
import pytest

from strategy_lab.optimizer.config import OptimizerConfig
from strategy_lab.optimizer.evaluation import EvaluationResult, quick_backtest, simulator_evaluator
from strategy_lab.optimizer.genetic import (
    Individual,
    create_initial_population,
    crossover,
    evaluate_population,
    evolve_population,
    mutate,
    population_to_frame,
    random_params,
    run_optimizer,
    score_fitness,
)
from strategy_lab.strategy.params import DEFAULT_PARAMS, GENE_RANGES, StrategyParams, longest_lookback, repair
from tests.test_core import make_falling_series, make_flat_series, make_instrument, make_rising_series


def rsi_period_evaluator(series, params):
    """Deterministic stand-in: fitness tracks the RSI period."""
    return EvaluationResult(profit=float(params.rsi_period), accuracy=50.0, trades=10)


class CountingEvaluator:
    def __init__(self):
        self.calls = 0

    def __call__(self, series, params):
        self.calls += 1
        return rsi_period_evaluator(series, params)


def _in_ranges(params: StrategyParams) -> bool:
    for name, (low, high) in GENE_RANGES.items():
        value = getattr(params, name)
        if not low <= value <= high:
            return False
    return True


def test_repair_restores_fast_below_slow_and_is_idempotent():
    broken = StrategyParams(sma_fast_period=60, sma_slow_period=55, macd_fast=30, macd_slow=25)
    fixed = repair(broken)
    assert fixed.sma_fast_period == 27
    assert fixed.macd_fast == 12
    assert repair(fixed) == fixed
    assert repair(DEFAULT_PARAMS) is DEFAULT_PARAMS


def test_longest_lookback():
    assert longest_lookback(DEFAULT_PARAMS) == 50


def test_random_params_respect_ranges():
    rng = np.random.default_rng(7)
    for _ in range(50):
        params = random_params(rng)
        assert _in_ranges(params)
        assert params.sma_fast_period < params.sma_slow_period
        assert params.macd_fast < params.macd_slow
        assert isinstance(params.rsi_period, int)
        assert isinstance(params.volume_threshold, float)


def test_initial_population_seeds_defaults_first():
    population = create_initial_population(np.random.default_rng(0))
    assert len(population) == 20
    assert population[0].params == DEFAULT_PARAMS
    assert not any(ind.evaluated for ind in population)


def test_score_fitness_penalties():
    assert score_fitness(EvaluationResult(12.5, 60.0, 3)) == pytest.approx(-7.5)
    assert score_fitness(EvaluationResult(10.0, 30.0, 10)) == pytest.approx(-40.0)
    assert score_fitness(EvaluationResult(10.0, 40.0, 5)) == pytest.approx(10.0)
    assert score_fitness(EvaluationResult(0.0, 0.0, 0)) == pytest.approx(-70.0)


def test_quick_backtest_flat_series_has_no_trades():
    result = quick_backtest(make_flat_series(), DEFAULT_PARAMS)
    assert result == EvaluationResult(0.0, 0.0, 0)
    assert score_fitness(result) == pytest.approx(-70.0)


def test_quick_backtest_rides_trend_to_the_end():
    long_result = quick_backtest(make_rising_series(), DEFAULT_PARAMS)
    assert long_result.trades == 1
    assert long_result.accuracy == 100.0
    assert long_result.profit == pytest.approx((399 - 150) / 150 * 100)

    short_result = quick_backtest(make_falling_series(), DEFAULT_PARAMS)
    assert short_result.trades == 1
    assert short_result.profit == pytest.approx((350 - 101) / 350 * 100)


def test_quick_backtest_short_series_never_raises():
    assert quick_backtest(make_rising_series(40), DEFAULT_PARAMS) == EvaluationResult(0.0, 0.0, 0)


def test_simulator_evaluator_wraps_run_backtest():
    evaluate = simulator_evaluator(make_instrument())
    result = evaluate(make_rising_series(), DEFAULT_PARAMS)
    assert result.trades > 0
    assert result.profit > 0
    assert evaluate(make_rising_series(100), DEFAULT_PARAMS) == EvaluationResult(0.0, 0.0, 0)


def test_flat_series_population_all_penalised():
    population = create_initial_population(np.random.default_rng(1), OptimizerConfig(population_size=5))
    ranked = evaluate_population(population, make_flat_series())
    assert all(ind.evaluated for ind in ranked)
    assert all(ind.fitness == pytest.approx(-70.0) for ind in ranked)
    # Stable sort keeps the default individual first on ties.
    assert ranked[0].params == DEFAULT_PARAMS


def test_evaluate_population_ranks_and_skips_evaluated():
    evaluator = CountingEvaluator()
    done = Individual(DEFAULT_PARAMS, fitness=500.0, evaluated=True)
    fresh = [Individual(StrategyParams(rsi_period=p)) for p in (5, 20, 10)]
    ranked = evaluate_population([done] + fresh, make_flat_series(), evaluator)
    assert evaluator.calls == 3
    assert [ind.fitness for ind in ranked] == [500.0, 20.0, 10.0, 5.0]
    assert ranked[0] is done


def test_evolve_keeps_elites_and_refills():
    rng = np.random.default_rng(3)
    cfg = OptimizerConfig(population_size=8)
    ranked = evaluate_population(
        create_initial_population(rng, cfg), make_flat_series(), rsi_period_evaluator, cfg
    )
    next_gen = evolve_population(ranked, rng, cfg)
    assert len(next_gen) == 8
    assert next_gen[0] is ranked[0]
    assert next_gen[1] is ranked[1]
    assert not any(ind.evaluated for ind in next_gen[2:])
    assert all(_in_ranges(ind.params) for ind in next_gen)


def test_evolve_rejects_population_smaller_than_elites():
    with pytest.raises(ValueError):
        evolve_population([Individual(DEFAULT_PARAMS)], np.random.default_rng(0))


def test_crossover_takes_each_gene_from_a_parent():
    rng = np.random.default_rng(11)
    first = random_params(rng)
    second = random_params(rng)
    child = crossover(first, second, rng)
    for field in fields(StrategyParams):
        assert getattr(child, field.name) in (getattr(first, field.name), getattr(second, field.name))


def test_mutate_rates():
    rng = np.random.default_rng(5)
    assert mutate(DEFAULT_PARAMS, rng, rate=0.0) == DEFAULT_PARAMS
    mutated = mutate(DEFAULT_PARAMS, rng, rate=1.0)
    assert _in_ranges(mutated)
    assert mutated.macd_fast < mutated.macd_slow


def test_run_optimizer_best_never_regresses():
    bests = []
    result = run_optimizer(
        make_flat_series(),
        generations=4,
        seed=42,
        evaluator=rsi_period_evaluator,
        config=OptimizerConfig(population_size=6),
        on_generation=lambda snap: bests.append(snap.best.fitness),
    )
    assert result.generation == 4
    assert len(result.population) == 6
    assert bests == sorted(bests)
    assert result.best.fitness == bests[-1]


def test_run_optimizer_honours_stop_event():
    stop = threading.Event()
    stop.set()
    result = run_optimizer(make_flat_series(), generations=5, evaluator=rsi_period_evaluator, stop_event=stop)
    assert result.generation == 0
    assert all(ind.evaluated for ind in result.population)


def test_stop_event_set_mid_run():
    stop = threading.Event()

    def _on_generation(snapshot):
        if snapshot.generation == 1:
            stop.set()

    result = run_optimizer(
        make_flat_series(),
        generations=10,
        seed=0,
        evaluator=rsi_period_evaluator,
        config=OptimizerConfig(population_size=4),
        stop_event=stop,
        on_generation=_on_generation,
    )
    assert result.generation == 1


def test_time_budget_stops_after_initial_generation():
    result = run_optimizer(
        make_flat_series(),
        generations=10,
        time_budget=0.0,
        evaluator=rsi_period_evaluator,
        config=OptimizerConfig(population_size=4),
    )
    assert result.generation == 0


def test_population_to_frame():
    ranked = evaluate_population(
        create_initial_population(np.random.default_rng(2), OptimizerConfig(population_size=3)),
        make_flat_series(),
        rsi_period_evaluator,
    )
    frame = population_to_frame(ranked)
    assert list(frame.index) == [1, 2, 3]
    assert {"rsi_period", "volume_threshold", "fitness", "trades"} <= set(frame.columns)
    assert frame["fitness"].is_monotonic_decreasing
