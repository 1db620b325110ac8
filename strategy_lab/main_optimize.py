"""CLI entrypoint for the genetic parameter optimizer."""

from __future__ import annotations

import argparse

from strategy_lab.api import EVALUATORS, optimize
from strategy_lab.config import DEFAULT_END_DATE, DEFAULT_START_DATE, DEFAULT_SYMBOL, configure_logging
from strategy_lab.errors import StrategyLabError
from strategy_lab.main_backtest import _parse_date_arg
from strategy_lab.optimizer.config import OptimizerConfig
from strategy_lab.optimizer.genetic import GenerationSnapshot, population_to_frame


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Evolve strategy parameters with a genetic algorithm.")
    parser.add_argument("--symbol", default=DEFAULT_SYMBOL, help="Contract symbol, e.g. NIFTY-FUT")
    parser.add_argument("--start-date", default=DEFAULT_START_DATE, help="History start date (YYYY-MM-DD)")
    parser.add_argument("--end-date", default=DEFAULT_END_DATE, help="History end date (YYYY-MM-DD or None)")
    parser.add_argument("--csv", default=None, help="OHLCV CSV file to use instead of synthetic history.")
    parser.add_argument("--generations", type=int, default=10, help="Generations to breed.")
    parser.add_argument("--time-budget", type=float, default=None, help="Stop after this many seconds.")
    parser.add_argument("--population", type=int, default=20, help="Population size.")
    parser.add_argument("--mutation-rate", type=float, default=0.1, help="Per-gene mutation probability.")
    parser.add_argument("--evaluator", choices=EVALUATORS, default="quick", help="Fitness backtest.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed.")
    parser.add_argument("--output", default=None, help="Write the final population to this CSV path.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level.")
    return parser.parse_args(argv)


def _print_generation(snapshot: GenerationSnapshot) -> None:
    best = snapshot.best
    print(
        f"Generation {snapshot.generation}: fitness={best.fitness:.2f} profit={best.profit:.2f}% "
        f"accuracy={best.accuracy:.1f}% trades={best.trades}"
    )


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.log_level)
    if args.population < 2:
        raise SystemExit("Population must hold at least 2 individuals")

    cfg = OptimizerConfig(population_size=args.population, mutation_rate=args.mutation_rate)
    try:
        result = optimize(
            args.symbol,
            _parse_date_arg(args.start_date),
            _parse_date_arg(args.end_date),
            csv_path=args.csv,
            generations=args.generations,
            time_budget=args.time_budget,
            evaluator=args.evaluator,
            config=cfg,
            seed=args.seed,
            on_generation=_print_generation,
        )
    except StrategyLabError as exc:
        raise SystemExit(str(exc)) from exc

    print(f"Best parameters after {result.generation} generations:")
    for name, value in result.best.params.to_dict().items():
        print(f"  {name}: {value}")

    if args.output:
        population_to_frame(result.population).to_csv(args.output)
        print(f"Population written to {args.output}")
    return result


if __name__ == "__main__":
    main()
