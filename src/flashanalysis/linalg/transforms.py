"""
Parameter Transforms
====================
Monotone maps between the physical value of a parameter and the apparent value
the optimiser manipulates.

Classes:
    Transformable: Abstract base (``transform`` physical -> apparent, ``inverse`` apparent -> physical).
    StickTransform: Clamps to the parameter bounds in both directions.
    AbsTransform: Absolute value, keeps a quantity non-negative.
    LogTransform: Natural logarithm, for quantities spanning decades.
    PeriodicTransform: Wraps into ``[min, max)``.
"""
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Dict, Optional, Type

from flashanalysis.exceptions import ConfigurationError
from flashanalysis.linalg.segment import Segment


class Transformable(ABC):
    NAME: str = "identity"

    def __init__(self, bounds: Optional[Segment] = None) -> None:
        self.bounds = bounds

    @abstractmethod
    def transform(self, value: float) -> float:
        """Physical value to apparent value."""

    @abstractmethod
    def inverse(self, value: float) -> float:
        """Apparent value to physical value."""

    def _require_bounds(self) -> Segment:
        if self.bounds is None:
            raise ConfigurationError(f"{type(self).__name__} needs bounds.")
        return self.bounds

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.bounds})"


class StickTransform(Transformable):
    NAME = "stick"

    def transform(self, value: float) -> float:
        bounds = self._require_bounds()
        if value > bounds.maximum:
            return bounds.maximum
        if value < bounds.minimum:
            return bounds.minimum
        return value

    def inverse(self, value: float) -> float:
        return self.transform(value)


class AbsTransform(Transformable):
    NAME = "abs"

    def transform(self, value: float) -> float:
        return abs(value)

    def inverse(self, value: float) -> float:
        return abs(value)


class LogTransform(Transformable):
    NAME = "log"

    def transform(self, value: float) -> float:
        if value <= 0.0:
            raise ConfigurationError(f"Logarithmic transform of non-positive value {value}.")
        return math.log(value)

    def inverse(self, value: float) -> float:
        return math.exp(value)


class PeriodicTransform(Transformable):
    NAME = "periodic"

    def transform(self, value: float) -> float:
        bounds = self._require_bounds()
        period = bounds.length()
        if period == 0.0:
            return bounds.minimum
        return bounds.minimum + math.fmod(math.fmod(value - bounds.minimum, period) + period, period)

    def inverse(self, value: float) -> float:
        return self.transform(value)


TRANSFORMS: Dict[str, Type[Transformable]] = {
    cls.NAME: cls for cls in (StickTransform, AbsTransform, LogTransform, PeriodicTransform)
}


def create_transform(name: str, bounds: Optional[Segment] = None) -> Transformable:
    try:
        return TRANSFORMS[name](bounds)
    except KeyError:
        raise ConfigurationError(f"Unknown transform '{name}'. Available: {sorted(TRANSFORMS)}") from None
