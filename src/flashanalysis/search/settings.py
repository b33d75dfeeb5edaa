"""
Search Settings
===============
Per-run configuration of the inverse search.

Why is this file needed?
------------------------
1. Isolation: Every search task carries its own frozen ``OptimiserSettings``.
   Runs executing in parallel never read or write a shared "selected
   optimiser".
2. Validation: Inconsistent settings are rejected when the object is built,
   before any forward run is spent on them.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from enum import StrEnum
from typing import Any, Dict, Optional

from flashanalysis.config import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_DAMPING_RATIO,
    DEFAULT_ERROR_TOLERANCE,
    DEFAULT_GRADIENT_RESOLUTION,
    DEFAULT_ITERATION_LIMIT,
    DEFAULT_LINEAR_RESOLUTION,
    DISCRETE_GRADIENT_RESOLUTION,
    MAX_FAILED_ATTEMPTS,
)
from flashanalysis.exceptions import ConfigurationError


class OptimiserKind(StrEnum):
    STEEPEST_DESCENT = "steepest_descent"
    BFGS = "bfgs"
    SR1 = "sr1"
    LEVENBERG_MARQUARDT = "levenberg_marquardt"


class LinearSearchKind(StrEnum):
    GOLDEN_SECTION = "golden_section"
    WOLFE = "wolfe"


class StatisticKind(StrEnum):
    SUM_OF_SQUARES = "sum_of_squares"
    REGULARISED = "regularised"
    RANGE_PENALISED = "range_penalised"


@dataclass(frozen=True)
class OptimiserSettings:
    """
    Attributes:
        optimiser: Direction strategy.
        linear_search: Step-length strategy (ignored by Levenberg-Marquardt).
        iteration_limit: Accepted iterations before the run times out.
        error_tolerance: Relative spread of the buffered parameters that counts as converged.
        gradient_resolution: Relative finite-difference step.
        discrete_gradient_resolution: Relative step for discrete-valued parameters.
        linear_resolution: Relative length at which a line search stops.
        damping_ratio: Levenberg-Marquardt blend of identity (1) and Marquardt (0) damping.
        buffer_size: Number of iterations in the convergence buffer.
        max_failed_attempts: Consecutive rejected steps tolerated before failure.
        seed: Seed of the random generator used by the Wolfe search.
        statistic: Objective compared between iterations.
        regularisation: Penalty strength of the regularised statistics; their own default if omitted.
    """
    optimiser: OptimiserKind = OptimiserKind.LEVENBERG_MARQUARDT
    linear_search: LinearSearchKind = LinearSearchKind.WOLFE
    iteration_limit: int = DEFAULT_ITERATION_LIMIT
    error_tolerance: float = DEFAULT_ERROR_TOLERANCE
    gradient_resolution: float = DEFAULT_GRADIENT_RESOLUTION
    discrete_gradient_resolution: float = DISCRETE_GRADIENT_RESOLUTION
    linear_resolution: float = DEFAULT_LINEAR_RESOLUTION
    damping_ratio: float = DEFAULT_DAMPING_RATIO
    buffer_size: int = DEFAULT_BUFFER_SIZE
    max_failed_attempts: int = MAX_FAILED_ATTEMPTS
    seed: Optional[int] = None
    statistic: StatisticKind = StatisticKind.SUM_OF_SQUARES
    regularisation: Optional[float] = None

    def __post_init__(self) -> None:
        # Accept plain strings for the enums
        object.__setattr__(self, "optimiser", OptimiserKind(self.optimiser))
        object.__setattr__(self, "linear_search", LinearSearchKind(self.linear_search))
        object.__setattr__(self, "statistic", StatisticKind(self.statistic))

        if self.iteration_limit < 1:
            raise ConfigurationError(f"Iteration limit must be at least 1, got {self.iteration_limit}.")
        for name in ("error_tolerance", "gradient_resolution", "discrete_gradient_resolution", "linear_resolution"):
            value = getattr(self, name)
            if not 0.0 < value < 1.0:
                raise ConfigurationError(f"{name} must lie in (0, 1), got {value}.")
        if not 0.0 <= self.damping_ratio <= 1.0:
            raise ConfigurationError(f"Damping ratio must lie in [0, 1], got {self.damping_ratio}.")
        if self.buffer_size < 2:
            raise ConfigurationError(f"Buffer size must be at least 2, got {self.buffer_size}.")
        if self.regularisation is not None and not self.regularisation >= 0.0:
            raise ConfigurationError(f"Regularisation must be non-negative, got {self.regularisation}.")
        if self.max_failed_attempts < 0:
            raise ConfigurationError(f"Max failed attempts must be non-negative, got {self.max_failed_attempts}.")
        if self.buffer_size > self.max_failed_attempts:
            raise ConfigurationError(
                f"Buffer size ({self.buffer_size}) must not exceed max failed attempts "
                f"({self.max_failed_attempts}); a stalled run would fail before it could converge."
            )

    def with_options(self, **changes: Any) -> OptimiserSettings:
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["optimiser"] = self.optimiser.value
        d["linear_search"] = self.linear_search.value
        d["statistic"] = self.statistic.value
        return d

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> OptimiserSettings:
        known = OptimiserSettings.__dataclass_fields__
        return OptimiserSettings(**{k: v for k, v in data.items() if k in known})
