"""
Residual Statistics
===================
Compares a simulated heating curve with the measurement.

Why is this file needed?
------------------------
1. Objective: The optimisers minimise whatever ``OptimiserStatistic`` the
   task carries. Ordinary least squares is the default.
2. Penalties: The regularised variants add a term to the mean squared
   residual. One favours short search vectors, the other penalises fitting
   ranges that leave out part of the record.

Classes:
    SumOfSquares: Mean squared residual.
    RegularisedLeastSquares: Adds ``λ |x|²`` of the search vector.
    RangePenalisedLeastSquares: Adds ``λ`` times the excluded share of the record.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar, Dict, Optional, Type

import numpy as np

from flashanalysis.config import RANGE_PENALTY_STRENGTH, REGULARISATION_STRENGTH
from flashanalysis.exceptions import ConfigurationError
from flashanalysis.search.settings import StatisticKind

if TYPE_CHECKING:
    import numpy.typing as npt

    from flashanalysis.linalg.parameters import ParameterVector
    from flashanalysis.problem.curves import ExperimentalData, HeatingCurve


def residuals(curve: HeatingCurve, data: ExperimentalData) -> npt.NDArray[np.float64]:
    """Model minus measurement at every point of the fitting range."""
    return curve.interpolate(data.fitting_times()) - data.fitting_temperatures()


def r_squared(curve: HeatingCurve, data: ExperimentalData) -> float:
    """Coefficient of determination of the fit over the fitting range."""
    r = residuals(curve, data)
    y = data.fitting_temperatures()
    total = float(np.sum((y - np.mean(y)) ** 2))
    if total == 0.0:
        return 1.0 if not np.any(r) else 0.0
    return 1.0 - float(np.sum(r * r)) / total


class OptimiserStatistic(ABC):
    KIND: ClassVar[StatisticKind]

    def __init__(self) -> None:
        self.residuals: npt.NDArray[np.float64] = np.empty(0)
        self.value = float("nan")

    def evaluate(self, curve: HeatingCurve, data: ExperimentalData, vector: ParameterVector) -> float:
        """
        Recompute the residuals and the statistic.

        Args:
            curve: Simulated curve with its baseline applied.
            data: The measurement.
            vector: Search vector the curve was simulated at.

        Returns:
            The statistic, also kept in ``value``.
        """
        self.residuals = residuals(curve, data)
        self.value = self._statistic(self.residuals, data, vector)
        return self.value

    @abstractmethod
    def _statistic(self, r: npt.NDArray[np.float64], data: ExperimentalData, vector: ParameterVector) -> float:
        pass


class SumOfSquares(OptimiserStatistic):
    """Mean squared residual."""
    KIND = StatisticKind.SUM_OF_SQUARES

    def _statistic(self, r, data, vector):
        return float(np.mean(r * r))


class RegularisedLeastSquares(SumOfSquares):
    """Mean squared residual plus ``λ`` times the squared length of the search vector."""
    KIND = StatisticKind.REGULARISED
    DEFAULT_STRENGTH: ClassVar[float] = REGULARISATION_STRENGTH

    def __init__(self, strength: Optional[float] = None) -> None:
        super().__init__()
        self.strength = self.DEFAULT_STRENGTH if strength is None else float(strength)

    def _statistic(self, r, data, vector):
        return super()._statistic(r, data, vector) + self.strength * vector.length_sq()


class RangePenalisedLeastSquares(RegularisedLeastSquares):
    """
    Mean squared residual plus ``λ (full - fitted) / full``.

    ``full`` spans the record from the last point at or before the laser shot
    to its end; ``fitted`` is the length of the fitting range.
    """
    KIND = StatisticKind.RANGE_PENALISED
    DEFAULT_STRENGTH = RANGE_PENALTY_STRENGTH

    def _statistic(self, r, data, vector):
        times = data.times
        start = max(int(np.searchsorted(times, 0.0, side="right")) - 1, 0)
        full = float(times[-1] - times[start])
        fitted = data.fitting_range.length()
        return float(np.mean(r * r)) + self.strength * (full - fitted) / full


STATISTICS: Dict[StatisticKind, Type[OptimiserStatistic]] = {
    cls.KIND: cls for cls in (SumOfSquares, RegularisedLeastSquares, RangePenalisedLeastSquares)
}


def create_statistic(kind: StatisticKind | str, strength: Optional[float] = None) -> OptimiserStatistic:
    """
    Build the objective statistic for one run.

    Args:
        kind: Statistic to build.
        strength: Penalty strength of the regularised statistics.

    Raises:
        ConfigurationError: If a strength is given for ordinary least squares.
    """
    kind = StatisticKind(kind)
    if kind == StatisticKind.SUM_OF_SQUARES:
        if strength:
            raise ConfigurationError("Ordinary least squares takes no regularisation strength.")
        return SumOfSquares()
    return STATISTICS[kind](strength)  # type: ignore[call-arg]
