from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from flashanalysis.exceptions import ConfigurationError


@dataclass(frozen=True)
class Segment:
    """A closed interval ``[minimum, maximum]`` on the real line."""

    minimum: float
    maximum: float

    def __post_init__(self) -> None:
        if not (self.minimum <= self.maximum):
            raise ConfigurationError(f"Segment bounds out of order: [{self.minimum}, {self.maximum}].")

    @classmethod
    def bounding(cls, a: float, b: float) -> Segment:
        return cls(min(a, b), max(a, b))

    def contains(self, x: float) -> bool:
        return self.minimum <= x <= self.maximum

    def mid_point(self) -> float:
        return 0.5 * (self.minimum + self.maximum)

    def length(self) -> float:
        return self.maximum - self.minimum

    def random_value(self, rng: Optional[np.random.Generator] = None) -> float:
        rng = rng if rng is not None else np.random.default_rng()
        return float(self.minimum + rng.random() * self.length())

    def with_maximum(self, maximum: float) -> Segment:
        return Segment(self.minimum, maximum)
