"""
Parameter Vectors
=================
The vector the optimiser works on. Each component carries a keyword naming the
physical quantity, its physical bounds and an optional transform. The stored
values are the *apparent* (transformed) values; ``inverse_transform`` recovers
the physical value that is assigned to a problem statement.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from flashanalysis.exceptions import DimensionMismatchError
from flashanalysis.keywords import KEYWORD_METADATA, Keyword
from flashanalysis.linalg.segment import Segment
from flashanalysis.linalg.transforms import Transformable, create_transform
from flashanalysis.linalg.vector import Vector

if TYPE_CHECKING:
    import numpy.typing as npt


@dataclass(frozen=True)
class Parameter:
    keyword: Keyword
    bounds: Segment
    transform: Optional[Transformable] = None

    @classmethod
    def default(cls, keyword: Keyword, bounds: Optional[Segment] = None) -> Parameter:
        """Build a parameter with the keyword's default transform over the given (or default) bounds."""
        meta = KEYWORD_METADATA[keyword]
        bounds = bounds if bounds is not None else Segment(*meta.bounds)
        return cls(keyword=keyword, bounds=bounds, transform=create_transform(meta.transform, bounds))

    @property
    def discrete(self) -> bool:
        return KEYWORD_METADATA[self.keyword].discrete

    def with_bounds(self, bounds: Segment) -> Parameter:
        transform = None
        if self.transform is not None:
            transform = create_transform(self.transform.NAME, bounds)
        return replace(self, bounds=bounds, transform=transform)

    def apparent(self, physical: float) -> float:
        return self.transform.transform(physical) if self.transform is not None else physical

    def physical(self, apparent: float) -> float:
        return self.transform.inverse(apparent) if self.transform is not None else apparent

    def transformed_bounds(self) -> Segment:
        if self.transform is None:
            return self.bounds
        return Segment.bounding(
            self.transform.transform(self.bounds.minimum),
            self.transform.transform(self.bounds.maximum),
        )


class ParameterVector(Vector):
    __slots__ = ("_parameters",)

    def __init__(
        self,
        parameters: Sequence[Parameter],
        apparent: Optional[Iterable[float] | npt.NDArray[np.float64]] = None,
    ) -> None:
        """
        Args:
            parameters: Metadata of each component, in order.
            apparent: Apparent (already transformed) values; zeros if omitted.
        """
        super().__init__(len(parameters) if apparent is None else apparent)
        if self.dimension != len(parameters):
            raise DimensionMismatchError(len(parameters), self.dimension)
        self._parameters: Tuple[Parameter, ...] = tuple(parameters)

    @classmethod
    def from_physical(cls, parameters: Sequence[Parameter], physical: Iterable[float]) -> ParameterVector:
        """Create a vector from physical values, applying each component's transform."""
        values = [p.apparent(float(x)) for p, x in zip(parameters, physical, strict=True)]
        return cls(parameters, values)

    @property
    def parameters(self) -> Tuple[Parameter, ...]:
        return self._parameters

    @property
    def keywords(self) -> List[Keyword]:
        return [p.keyword for p in self._parameters]

    def index_of(self, keyword: Keyword) -> int:
        return self.keywords.index(keyword)

    def set_physical(self, index: int, value: float) -> None:
        self.set(index, self._parameters[index].apparent(value))

    def inverse_transform(self, index: int) -> float:
        return self._parameters[index].physical(self.get(index))

    def physical_values(self) -> Dict[Keyword, float]:
        return {p.keyword: self.inverse_transform(i) for i, p in enumerate(self._parameters)}

    def parameter_bounds(self, index: int) -> Segment:
        return self._parameters[index].bounds

    def transformed_bounds(self, index: int) -> Segment:
        return self._parameters[index].transformed_bounds()

    def is_discrete(self, index: int) -> bool:
        return self._parameters[index].discrete

    def find_malformed(self) -> List[Keyword]:
        """Keywords whose physical value is non-finite or outside its bounds."""
        malformed = []
        for i, p in enumerate(self._parameters):
            value = self.inverse_transform(i)
            if not math.isfinite(value) or not p.bounds.contains(value):
                malformed.append(p.keyword)
        return malformed

    def with_values(self, values: Vector) -> ParameterVector:
        """A vector with the same metadata and the given apparent values."""
        if values.dimension != self.dimension:
            raise DimensionMismatchError(self.dimension, values.dimension)
        return ParameterVector(self._parameters, values.to_numpy())

    def copy(self) -> ParameterVector:
        return ParameterVector(self._parameters, self.to_numpy())

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ParameterVector):
            return self.keywords == other.keywords and super().__eq__(other)
        return super().__eq__(other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        pairs = ", ".join(f"{k}={self.get(i):.6g}" for i, k in enumerate(self.keywords))
        return f"ParameterVector({pairs})"
