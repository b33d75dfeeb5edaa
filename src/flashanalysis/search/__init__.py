"""
Inverse Search
==============
Optimisers, line searches and the task/pool layer that drives them.
"""
from flashanalysis.search.linear import (
    GoldenSectionOptimiser,
    LinearOptimiser,
    WolfeOptimiser,
    create_linear_optimiser,
)
from flashanalysis.search.objective import Objective
from flashanalysis.search.optimisers import (
    OPTIMISERS,
    BFGSOptimiser,
    CompositePathOptimiser,
    LMOptimiser,
    PathOptimiser,
    SR1Optimiser,
    SteepestDescentOptimiser,
    create_optimiser,
)
from flashanalysis.search.pool import TaskPool
from flashanalysis.search.settings import LinearSearchKind, OptimiserKind, OptimiserSettings, StatisticKind
from flashanalysis.search.state import ComplexPath, IterativeState, LMPath, Path
from flashanalysis.search.statistics import (
    OptimiserStatistic,
    RangePenalisedLeastSquares,
    RegularisedLeastSquares,
    SumOfSquares,
    create_statistic,
    r_squared,
    residuals,
)
from flashanalysis.search.task import Buffer, SearchTask, TaskResult, TaskStatus

__all__ = [
    "BFGSOptimiser",
    "Buffer",
    "ComplexPath",
    "CompositePathOptimiser",
    "GoldenSectionOptimiser",
    "IterativeState",
    "LMOptimiser",
    "LMPath",
    "LinearOptimiser",
    "LinearSearchKind",
    "OPTIMISERS",
    "Objective",
    "OptimiserKind",
    "OptimiserSettings",
    "OptimiserStatistic",
    "Path",
    "RangePenalisedLeastSquares",
    "RegularisedLeastSquares",
    "PathOptimiser",
    "SR1Optimiser",
    "SearchTask",
    "StatisticKind",
    "SteepestDescentOptimiser",
    "SumOfSquares",
    "TaskPool",
    "TaskResult",
    "TaskStatus",
    "WolfeOptimiser",
    "create_linear_optimiser",
    "create_optimiser",
    "create_statistic",
    "r_squared",
    "residuals",
]
