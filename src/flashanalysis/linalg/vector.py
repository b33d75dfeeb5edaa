"""
Vector
======
A fixed-dimension vector of doubles used by the optimisers. Arithmetic returns
new vectors; only ``set`` mutates in place.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Iterator, Union

import numpy as np

from flashanalysis.exceptions import DimensionMismatchError

if TYPE_CHECKING:
    import numpy.typing as npt


class Vector:
    __slots__ = ("_values",)

    def __init__(self, values: Union[int, Iterable[float], npt.NDArray[np.float64]]) -> None:
        """
        Args:
            values: Either the dimension of a zero vector or the components.
        """
        if isinstance(values, (int, np.integer)):
            self._values = np.zeros(int(values), dtype=np.float64)
        else:
            self._values = np.array(values, dtype=np.float64).reshape(-1)

    @property
    def values(self) -> npt.NDArray[np.float64]:
        """Read-only view of the components."""
        view = self._values.view()
        view.flags.writeable = False
        return view

    @property
    def dimension(self) -> int:
        return self._values.size

    def __len__(self) -> int:
        return self._values.size

    def __iter__(self) -> Iterator[float]:
        return iter(self._values.tolist())

    def __getitem__(self, index: int) -> float:
        return float(self._values[index])

    def get(self, index: int) -> float:
        return float(self._values[index])

    def set(self, index: int, value: float) -> None:
        self._values[index] = value

    def _check(self, other: Vector) -> None:
        if other.dimension != self.dimension:
            raise DimensionMismatchError(self.dimension, other.dimension)

    def sum(self, other: Vector) -> Vector:
        self._check(other)
        return Vector(self._values + other._values)

    def subtract(self, other: Vector) -> Vector:
        self._check(other)
        return Vector(self._values - other._values)

    def multiply(self, scalar: float) -> Vector:
        return Vector(self._values * scalar)

    def inverted(self) -> Vector:
        return Vector(-self._values)

    def dot(self, other: Vector) -> float:
        self._check(other)
        return float(np.dot(self._values, other._values))

    def length_sq(self) -> float:
        return float(np.dot(self._values, self._values))

    def length(self) -> float:
        return float(np.sqrt(self.length_sq()))

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self._values)))

    def copy(self) -> Vector:
        return Vector(self._values.copy())

    def to_numpy(self) -> npt.NDArray[np.float64]:
        return self._values.copy()

    __add__ = sum
    __sub__ = subtract

    def __mul__(self, scalar: float) -> Vector:
        return self.multiply(scalar)

    __rmul__ = __mul__

    def __neg__(self) -> Vector:
        return self.inverted()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vector):
            return NotImplemented
        return self.dimension == other.dimension and bool(np.array_equal(self._values, other._values))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({np.array2string(self._values, precision=6)})"
