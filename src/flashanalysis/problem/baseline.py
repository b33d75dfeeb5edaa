"""
Baselines
=========
The detector signal before the laser shot is not zero: it drifts around the
ambient level. A baseline models that offset so that the simulated rise can be
compared with the raw measurement.

Both baselines are fitted by least squares to the pre-pulse points (t < 0)
and can then be refined by the optimiser through ``BASELINE_INTERCEPT`` and
``BASELINE_SLOPE``.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Tuple

import numpy as np

from flashanalysis.exceptions import ConfigurationError
from flashanalysis.keywords import Keyword

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


class Baseline(ABC):
    NAME: ClassVar[str]
    KEYWORDS: ClassVar[Tuple[Keyword, ...]] = ()
    # Fewer pre-pulse points than this leave the baseline untouched
    MIN_POINTS: ClassVar[int] = 15

    @abstractmethod
    def value_at(self, time: float | npt.NDArray[np.float64]) -> float | npt.NDArray[np.float64]:
        pass

    @abstractmethod
    def _fit(self, times: npt.NDArray[np.float64], values: npt.NDArray[np.float64]) -> None:
        pass

    @abstractmethod
    def copy(self) -> Baseline:
        pass

    def fit_to(self, times: npt.NDArray[np.float64], values: npt.NDArray[np.float64]) -> bool:
        """
        Fit the baseline to the points recorded before the pulse.

        Args:
            times: Measurement times (s); the pulse fires at t = 0.
            values: Detector signal at those times.

        Returns:
            True if enough pre-pulse points were available and the fit was applied.
        """
        times = np.asarray(times, dtype=np.float64)
        values = np.asarray(values, dtype=np.float64)
        mask = times < 0.0
        count = int(np.count_nonzero(mask))
        if count <= self.MIN_POINTS:
            logger.debug(f"{self.NAME} baseline not fitted: only {count} pre-pulse points.")
            return False
        self._fit(times[mask], values[mask])
        logger.debug(f"Fitted {self!r} to {count} pre-pulse points.")
        return True

    def get(self, keyword: Keyword) -> float:
        self._require(keyword)
        return float(getattr(self, keyword.value.removeprefix("baseline_")))

    def set(self, keyword: Keyword, value: float) -> None:
        self._require(keyword)
        setattr(self, keyword.value.removeprefix("baseline_"), float(value))

    def _require(self, keyword: Keyword) -> None:
        if keyword not in self.KEYWORDS:
            raise ConfigurationError(f"{type(self).__name__} has no parameter '{keyword}'.")

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"type": self.NAME}
        d.update({k.value: self.get(k) for k in self.KEYWORDS})
        return d

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Baseline:
        t = data.get("type", FlatBaseline.NAME)
        if t == FlatBaseline.NAME:
            return FlatBaseline(data.get(Keyword.BASELINE_INTERCEPT.value, 0.0))
        if t == LinearBaseline.NAME:
            return LinearBaseline(
                data.get(Keyword.BASELINE_INTERCEPT.value, 0.0),
                data.get(Keyword.BASELINE_SLOPE.value, 0.0),
            )
        raise ConfigurationError(f"Unknown baseline type '{t}'.")


class FlatBaseline(Baseline):
    NAME = "flat"
    KEYWORDS = (Keyword.BASELINE_INTERCEPT,)

    def __init__(self, intercept: float = 0.0) -> None:
        self.intercept = float(intercept)

    def value_at(self, time):
        if np.ndim(time) == 0:
            return self.intercept
        return np.full(np.shape(time), self.intercept)

    def _fit(self, times, values):
        self.intercept = float(np.mean(values))

    def copy(self) -> FlatBaseline:
        return FlatBaseline(self.intercept)

    def __repr__(self) -> str:
        return f"FlatBaseline({self.intercept:.4g})"


class LinearBaseline(FlatBaseline):
    NAME = "linear"
    KEYWORDS = (Keyword.BASELINE_INTERCEPT, Keyword.BASELINE_SLOPE)

    def __init__(self, intercept: float = 0.0, slope: float = 0.0) -> None:
        super().__init__(intercept)
        self.slope = float(slope)

    def value_at(self, time):
        value = self.intercept + self.slope * np.asarray(time, dtype=np.float64)
        return float(value) if np.ndim(value) == 0 else value

    def _fit(self, times, values):
        slope, intercept = np.polyfit(times, values, 1)
        self.slope = float(slope)
        self.intercept = float(intercept)

    def copy(self) -> LinearBaseline:
        return LinearBaseline(self.intercept, self.slope)

    def __repr__(self) -> str:
        return f"LinearBaseline({self.intercept:.4g} + t * {self.slope:.4g})"
