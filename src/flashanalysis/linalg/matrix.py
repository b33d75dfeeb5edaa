"""
Dense Matrices
==============
Small dense matrices for the quasi-Newton and Levenberg-Marquardt updates.

Why is this file needed?
------------------------
The Hessian approximations are rebuilt every optimiser iteration and rarely
exceed 4x4. Closed-form inverses for those sizes run as compiled kernels; larger
systems fall back to an LU decomposition from ``scipy.linalg``. A zero
determinant (or zero LU pivot) is always raised as ``SingularMatrixError``,
never returned as a NaN matrix.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Tuple, Union

import numba as nb
import numpy as np
import scipy as sp

from flashanalysis.exceptions import DimensionMismatchError, SingularMatrixError
from flashanalysis.linalg.vector import Vector

if TYPE_CHECKING:
    import numpy.typing as npt


# ---- Closed-form inverses (adjugate / determinant) ----

@nb.njit(cache=True)
def _inv1(m: npt.NDArray[np.float64]) -> Tuple[npt.NDArray[np.float64], float]:
    """1x1 inverse."""
    det = m[0, 0]
    inv = np.empty((1, 1), dtype=np.float64)
    inv[0, 0] = 1.0 / det if det != 0.0 else 0.0
    return inv, det


@nb.njit(cache=True)
def _inv2(m: npt.NDArray[np.float64]) -> Tuple[npt.NDArray[np.float64], float]:
    """2x2 inverse."""
    a, b = m[0, 0], m[0, 1]
    c, d = m[1, 0], m[1, 1]
    det = a * d - b * c
    inv = np.empty((2, 2), dtype=np.float64)
    if det == 0.0:
        inv[:, :] = 0.0
        return inv, det
    f = 1.0 / det
    inv[0, 0] = d * f
    inv[0, 1] = -b * f
    inv[1, 0] = -c * f
    inv[1, 1] = a * f
    return inv, det


@nb.njit(cache=True)
def _inv3(m: npt.NDArray[np.float64]) -> Tuple[npt.NDArray[np.float64], float]:
    """3x3 inverse by cofactors."""
    a, b, c = m[0, 0], m[0, 1], m[0, 2]
    d, e, f = m[1, 0], m[1, 1], m[1, 2]
    g, h, i = m[2, 0], m[2, 1], m[2, 2]

    c00 = e * i - f * h
    c01 = -(d * i - f * g)
    c02 = d * h - e * g
    det = a * c00 + b * c01 + c * c02

    inv = np.empty((3, 3), dtype=np.float64)
    if det == 0.0:
        inv[:, :] = 0.0
        return inv, det
    k = 1.0 / det
    inv[0, 0] = c00 * k
    inv[0, 1] = -(b * i - c * h) * k
    inv[0, 2] = (b * f - c * e) * k
    inv[1, 0] = c01 * k
    inv[1, 1] = (a * i - c * g) * k
    inv[1, 2] = -(a * f - c * d) * k
    inv[2, 0] = c02 * k
    inv[2, 1] = -(a * h - b * g) * k
    inv[2, 2] = (a * e - b * d) * k
    return inv, det


@nb.njit(cache=True)
def _inv4(a: npt.NDArray[np.float64]) -> Tuple[npt.NDArray[np.float64], float]:
    """4x4 inverse by cofactors (row-major flat indexing)."""
    m = a.ravel()
    inv = np.empty(16, dtype=np.float64)

    inv[0] = (m[5] * m[10] * m[15] - m[5] * m[11] * m[14] - m[9] * m[6] * m[15]
              + m[9] * m[7] * m[14] + m[13] * m[6] * m[11] - m[13] * m[7] * m[10])
    inv[4] = (-m[4] * m[10] * m[15] + m[4] * m[11] * m[14] + m[8] * m[6] * m[15]
              - m[8] * m[7] * m[14] - m[12] * m[6] * m[11] + m[12] * m[7] * m[10])
    inv[8] = (m[4] * m[9] * m[15] - m[4] * m[11] * m[13] - m[8] * m[5] * m[15]
              + m[8] * m[7] * m[13] + m[12] * m[5] * m[11] - m[12] * m[7] * m[9])
    inv[12] = (-m[4] * m[9] * m[14] + m[4] * m[10] * m[13] + m[8] * m[5] * m[14]
               - m[8] * m[6] * m[13] - m[12] * m[5] * m[10] + m[12] * m[6] * m[9])
    inv[1] = (-m[1] * m[10] * m[15] + m[1] * m[11] * m[14] + m[9] * m[2] * m[15]
              - m[9] * m[3] * m[14] - m[13] * m[2] * m[11] + m[13] * m[3] * m[10])
    inv[5] = (m[0] * m[10] * m[15] - m[0] * m[11] * m[14] - m[8] * m[2] * m[15]
              + m[8] * m[3] * m[14] + m[12] * m[2] * m[11] - m[12] * m[3] * m[10])
    inv[9] = (-m[0] * m[9] * m[15] + m[0] * m[11] * m[13] + m[8] * m[1] * m[15]
              - m[8] * m[3] * m[13] - m[12] * m[1] * m[11] + m[12] * m[3] * m[9])
    inv[13] = (m[0] * m[9] * m[14] - m[0] * m[10] * m[13] - m[8] * m[1] * m[14]
               + m[8] * m[2] * m[13] + m[12] * m[1] * m[10] - m[12] * m[2] * m[9])
    inv[2] = (m[1] * m[6] * m[15] - m[1] * m[7] * m[14] - m[5] * m[2] * m[15]
              + m[5] * m[3] * m[14] + m[13] * m[2] * m[7] - m[13] * m[3] * m[6])
    inv[6] = (-m[0] * m[6] * m[15] + m[0] * m[7] * m[14] + m[4] * m[2] * m[15]
              - m[4] * m[3] * m[14] - m[12] * m[2] * m[7] + m[12] * m[3] * m[6])
    inv[10] = (m[0] * m[5] * m[15] - m[0] * m[7] * m[13] - m[4] * m[1] * m[15]
               + m[4] * m[3] * m[13] + m[12] * m[1] * m[7] - m[12] * m[3] * m[5])
    inv[14] = (-m[0] * m[5] * m[14] + m[0] * m[6] * m[13] + m[4] * m[1] * m[14]
               - m[4] * m[2] * m[13] - m[12] * m[1] * m[6] + m[12] * m[2] * m[5])
    inv[3] = (-m[1] * m[6] * m[11] + m[1] * m[7] * m[10] + m[5] * m[2] * m[11]
              - m[5] * m[3] * m[10] - m[9] * m[2] * m[7] + m[9] * m[3] * m[6])
    inv[7] = (m[0] * m[6] * m[11] - m[0] * m[7] * m[10] - m[4] * m[2] * m[11]
              + m[4] * m[3] * m[10] + m[8] * m[2] * m[7] - m[8] * m[3] * m[6])
    inv[11] = (-m[0] * m[5] * m[11] + m[0] * m[7] * m[9] + m[4] * m[1] * m[11]
               - m[4] * m[3] * m[9] - m[8] * m[1] * m[7] + m[8] * m[3] * m[5])
    inv[15] = (m[0] * m[5] * m[10] - m[0] * m[6] * m[9] - m[4] * m[1] * m[10]
               + m[4] * m[2] * m[9] + m[8] * m[1] * m[6] - m[8] * m[2] * m[5])

    det = m[0] * inv[0] + m[1] * inv[4] + m[2] * inv[8] + m[3] * inv[12]
    if det == 0.0:
        return np.zeros((4, 4), dtype=np.float64), det
    return (inv / det).reshape(4, 4), det


_CLOSED_FORM = {1: _inv1, 2: _inv2, 3: _inv3, 4: _inv4}


class Matrix:
    """A rectangular matrix of doubles."""

    __slots__ = ("_values",)

    def __init__(self, values: Union[Iterable[Iterable[float]], npt.NDArray[np.float64]]) -> None:
        self._values = np.array(values, dtype=np.float64, ndmin=2)

    @classmethod
    def zeros(cls, rows: int, columns: int) -> Matrix:
        return cls(np.zeros((rows, columns)))

    @property
    def values(self) -> npt.NDArray[np.float64]:
        view = self._values.view()
        view.flags.writeable = False
        return view

    @property
    def shape(self) -> Tuple[int, int]:
        return self._values.shape  # type: ignore[return-value]

    def get(self, i: int, j: int) -> float:
        return float(self._values[i, j])

    def set(self, i: int, j: int, value: float) -> None:
        self._values[i, j] = value

    def _check_same_shape(self, other: Matrix) -> None:
        if other.shape != self.shape:
            raise DimensionMismatchError(self.shape[0] * self.shape[1], other.shape[0] * other.shape[1])

    def sum(self, other: Matrix) -> Matrix:
        self._check_same_shape(other)
        return self._like(self._values + other._values)

    def subtract(self, other: Matrix) -> Matrix:
        self._check_same_shape(other)
        return self._like(self._values - other._values)

    def scale(self, factor: float) -> Matrix:
        return self._like(self._values * factor)

    def multiply(self, other: Union[Matrix, Vector]) -> Union[Matrix, Vector]:
        """
        Matrix-matrix or matrix-vector product.

        Args:
            other: Right operand; its leading dimension must equal this matrix's column count.

        Returns:
            A ``Vector`` for a vector operand, otherwise a ``Matrix``.
        """
        if isinstance(other, Vector):
            if other.dimension != self.shape[1]:
                raise DimensionMismatchError(self.shape[1], other.dimension)
            return Vector(self._values @ other.to_numpy())
        if other.shape[0] != self.shape[1]:
            raise DimensionMismatchError(self.shape[1], other.shape[0])
        product = self._values @ other._values
        if product.shape[0] == product.shape[1]:
            return SquareMatrix(product)
        return Matrix(product)

    def transpose(self) -> Matrix:
        return self._like(self._values.T.copy())

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self._values)))

    def to_numpy(self) -> npt.NDArray[np.float64]:
        return self._values.copy()

    def _like(self, values: npt.NDArray[np.float64]) -> Matrix:
        if values.shape[0] == values.shape[1]:
            return SquareMatrix(values)
        return Matrix(values)

    __add__ = sum
    __sub__ = subtract

    def __matmul__(self, other: Union[Matrix, Vector]) -> Union[Matrix, Vector]:
        return self.multiply(other)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return bool(np.array_equal(self._values, other._values))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({np.array2string(self._values, precision=6)})"


class SquareMatrix(Matrix):
    """An n-by-n matrix with determinant, inverse and linear solve."""

    def __init__(self, values: Union[Iterable[Iterable[float]], npt.NDArray[np.float64]]) -> None:
        super().__init__(values)
        rows, columns = self._values.shape
        if rows != columns:
            raise DimensionMismatchError(rows, columns)

    @classmethod
    def identity(cls, n: int) -> SquareMatrix:
        return cls(np.eye(n))

    @classmethod
    def diagonal(cls, entries: Vector) -> SquareMatrix:
        return cls(np.diag(entries.to_numpy()))

    @property
    def dimension(self) -> int:
        return self._values.shape[0]

    def diagonal_part(self) -> SquareMatrix:
        return SquareMatrix(np.diag(np.diag(self._values)))

    def _lu(self) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.int32]]:
        if not self.is_finite():
            raise SingularMatrixError("Matrix contains non-finite entries.", stage="lu_factor")
        lu, piv = sp.linalg.lu_factor(self._values, check_finite=False)
        if np.any(np.diag(lu) == 0.0):
            raise SingularMatrixError(f"Singular {self.dimension}x{self.dimension} matrix.", stage="lu_factor")
        return lu, piv

    def determinant(self) -> float:
        n = self.dimension
        if n in _CLOSED_FORM:
            return float(_CLOSED_FORM[n](self._values)[1])
        lu, piv = sp.linalg.lu_factor(self._values, check_finite=False)
        sign = -1.0 if np.count_nonzero(piv != np.arange(n)) % 2 else 1.0
        return float(sign * np.prod(np.diag(lu)))

    def inverse(self) -> SquareMatrix:
        """
        Invert the matrix.

        Sizes up to 4x4 use closed-form cofactor expressions, larger ones an LU
        decomposition.

        Returns:
            The inverse matrix.

        Raises:
            SingularMatrixError: If the determinant (or an LU pivot) is zero.
        """
        n = self.dimension
        if n in _CLOSED_FORM:
            inv, det = _CLOSED_FORM[n](np.ascontiguousarray(self._values))
            if det == 0.0 or not np.isfinite(det):
                raise SingularMatrixError(f"Singular {n}x{n} matrix (det = {det}).", stage="inverse")
            return SquareMatrix(inv)
        lu, piv = self._lu()
        return SquareMatrix(sp.linalg.lu_solve((lu, piv), np.eye(n), check_finite=False))

    def solve(self, rhs: Vector) -> Vector:
        """Solve ``self @ x = rhs`` for x."""
        if rhs.dimension != self.dimension:
            raise DimensionMismatchError(self.dimension, rhs.dimension)
        if self.dimension in _CLOSED_FORM:
            return self.inverse().multiply(rhs)  # type: ignore[return-value]
        lu, piv = self._lu()
        return Vector(sp.linalg.lu_solve((lu, piv), rhs.to_numpy(), check_finite=False))


def outer_product(a: Vector, b: Vector) -> SquareMatrix:
    """The outer product ``a b^T`` of two vectors of equal dimension."""
    if a.dimension != b.dimension:
        raise DimensionMismatchError(a.dimension, b.dimension)
    return SquareMatrix(np.outer(a.to_numpy(), b.to_numpy()))
