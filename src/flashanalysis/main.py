"""
Command-Line Demonstration
==========================
Fits synthetic laser-flash measurements in parallel.

Why is this file needed?
------------------------
It is the composition root of the package. It:
1. Configures logging for the main process (and the workers).
2. Simulates noisy measurements of a sample with known properties.
3. Builds one ``SearchTask`` per measurement, each starting from estimates
   derived from its own data, and runs them on a ``TaskPool``.
4. Logs a summary and optionally plots the first fit.

Usage:
    $ flashanalysis --problem classical --tasks 4 --noise 0.01
"""
from __future__ import annotations

import argparse
import logging
from typing import List, Optional, Sequence

from flashanalysis.logging_config import setup_logging
from flashanalysis.problem import ThermalProperties, create_problem
from flashanalysis.problem.synthetic import synthesise_data
from flashanalysis.schemes import DEFAULT_SCHEMES, ProblemKind, create_scheme
from flashanalysis.search import OptimiserKind, OptimiserSettings, SearchTask, TaskPool, TaskResult
from flashanalysis.search.settings import LinearSearchKind, StatisticKind
from flashanalysis.utils import celsius_to_kelvin, timer

logger = logging.getLogger("flashanalysis.main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flashanalysis", description="Fit synthetic laser-flash measurements")
    parser.add_argument("--problem", default=ProblemKind.CLASSICAL.value, choices=[k.value for k in ProblemKind])
    parser.add_argument("--optimiser", default=OptimiserKind.LEVENBERG_MARQUARDT.value,
                        choices=[k.value for k in OptimiserKind])
    parser.add_argument("--linear-search", default=LinearSearchKind.WOLFE.value,
                        choices=[k.value for k in LinearSearchKind])
    parser.add_argument("--statistic", default=StatisticKind.SUM_OF_SQUARES.value,
                        choices=[k.value for k in StatisticKind])
    parser.add_argument("--regularisation", type=float, default=None,
                        help="Penalty strength of the regularised statistics")
    parser.add_argument("--tasks", type=int, default=4, help="Number of independent measurements")
    parser.add_argument("--jobs", type=int, default=-1, help="Worker processes (-1 = all cores)")
    parser.add_argument("--backend", default="loky", help="joblib backend")
    parser.add_argument("--diffusivity", type=float, default=1e-5, help="True diffusivity (m²/s)")
    parser.add_argument("--thickness", type=float, default=1e-3, help="Sample thickness (m)")
    parser.add_argument("--biot", type=float, default=0.05, help="True heat loss (Biot number)")
    parser.add_argument("--temperature", type=float, default=25.0, help="Test temperature (°C)")
    parser.add_argument("--noise", type=float, default=0.01, help="Noise std as a fraction of the signal rise")
    parser.add_argument("--points", type=int, default=500, help="Points per measurement")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--plot", action="store_true", help="Plot the first fit")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=None)
    return parser


def make_tasks(args: argparse.Namespace) -> List[SearchTask]:
    kind = ProblemKind(args.problem)
    settings = OptimiserSettings(
        optimiser=args.optimiser,
        linear_search=args.linear_search,
        seed=args.seed,
        statistic=args.statistic,
        regularisation=args.regularisation,
    )
    tasks = []
    for i in range(args.tasks):
        truth = ThermalProperties(thickness=args.thickness, diffusivity=args.diffusivity, heat_loss=args.biot,
                                  test_temperature=celsius_to_kelvin(args.temperature))
        reference = create_problem(kind, properties=truth)
        data = synthesise_data(
            reference,
            create_scheme(DEFAULT_SCHEMES[kind]),
            num_points=args.points,
            noise=args.noise * truth.maximum_temperature,
            seed=None if args.seed is None else args.seed + i,
        )
        # The fit starts from the data alone, not from the true properties
        problem = create_problem(kind, properties=ThermalProperties(thickness=args.thickness,
                                                                    test_temperature=truth.test_temperature))
        tasks.append(SearchTask(problem, data, settings=settings, task_id=i))
    return tasks


def report(results: Sequence[TaskResult]) -> None:
    for r in results:
        values = ", ".join(f"{k} = {v:.5g}" for k, v in r.parameters.items())
        logger.info(f"Task {r.task_id}: {r.status:<10} iterations = {r.iterations:3d}  "
                    f"R² = {r.r_squared:.5f}  {values}")
        if r.details:
            logger.info(f"Task {r.task_id}: {r.details}")


@timer
def main(argv: Optional[Sequence[str]] = None) -> List[TaskResult]:
    args = build_parser().parse_args(argv)
    level = getattr(logging, args.log_level)
    setup_logging(level=level, log_file=args.log_file)

    tasks = make_tasks(args)
    with TaskPool(n_jobs=args.jobs, backend=args.backend, log_level=level) as pool:
        results = pool.execute(tasks)
    report(results)

    if args.plot and tasks:
        # Worker processes fit copies; replay the first result locally for plotting
        first = tasks[0]
        vector = first.search_vector()
        for i, keyword in enumerate(vector.keywords):
            vector.set_physical(i, results[0].parameters[str(keyword)])
        first.assign(vector)
        first.cost()
        first.problem.curve.plot(first.data, title=f"Task {first.task_id}: {results[0].status}")
    return results


if __name__ == "__main__":
    main()
