"""
Tridiagonal Solvers
===================
Thomas algorithm for the systems

    a V[i-1] - b V[i] + c V[i+1] = -F[i],   i = 1 .. N-1

with constant diagonals. The boundary rows are supplied by the schemes through
``alpha[1]``, ``beta[1]`` and an explicit expression for ``V[N]``; the interior
recurrences and the backward sweep run as compiled kernels.

The block variant additionally carries a border column coupling every node to
``V[N]`` (Sherman-Morrison-Woodbury), which the diathermic scheme needs.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import numba as nb
import numpy as np

from flashanalysis.exceptions import SingularMatrixError

if TYPE_CHECKING:
    import numpy.typing as npt

    from flashanalysis.schemes.grid import Grid


@nb.njit(cache=True)
def _evaluate_alpha(alpha, a, b, c, n):
    """Forward recurrence for alpha; returns the index of a zero pivot or -1."""
    for i in range(1, n):
        denominator = b - a * alpha[i]
        if denominator == 0.0:
            return i
        alpha[i + 1] = c / denominator
    return -1


@nb.njit(cache=True)
def _evaluate_beta(alpha, beta, rhs, a, b, n):
    """Forward recurrence for beta from the right-hand side F; returns a zero-pivot index or -1."""
    for i in range(2, n + 1):
        denominator = b - a * alpha[i - 1]
        if denominator == 0.0:
            return i
        beta[i] = (rhs[i - 1] + a * beta[i - 1]) / denominator
    return -1


@nb.njit(cache=True)
def _evaluate_gamma(alpha, gamma, a, b, n):
    for i in range(2, n + 1):
        gamma[i] = a * gamma[i - 1] / (b - a * alpha[i - 1])


@nb.njit(cache=True)
def _evaluate_pq(alpha, beta, gamma, p, q, n):
    p[n - 1] = beta[n]
    q[n - 1] = alpha[n] + gamma[n]
    for i in range(n - 2, -1, -1):
        p[i] = alpha[i + 1] * p[i + 1] + beta[i + 1]
        q[i] = alpha[i + 1] * q[i + 1] + gamma[i + 1]


@nb.njit(cache=True)
def _sweep(alpha, beta, V, n):
    """Backward substitution V[j] = alpha[j+1] V[j+1] + beta[j+1]."""
    for j in range(n - 1, -1, -1):
        V[j] = alpha[j + 1] * V[j + 1] + beta[j + 1]


@nb.njit(cache=True)
def _block_sweep(p, q, V, n):
    for j in range(n - 1, -1, -1):
        V[j] = p[j] + V[n] * q[j]


class TridiagonalMatrixAlgorithm:
    """
    Thomas algorithm with constant coefficients.

    Args:
        grid: Grid providing N, hx and tau.
        a: Sub-diagonal coefficient (defaults to 1/hx²).
        b: Diagonal coefficient (defaults to 1/tau + 2/hx²).
        c: Super-diagonal coefficient (defaults to 1/hx²).
    """

    def __init__(self, grid: Grid, a: Optional[float] = None, b: Optional[float] = None,
                 c: Optional[float] = None) -> None:
        self.n = grid.grid_density
        self.hx = grid.hx
        self.tau = grid.tau
        hx2 = self.hx ** 2
        self.a = 1.0 / hx2 if a is None else a
        self.b = 1.0 / self.tau + 2.0 / hx2 if b is None else b
        self.c = 1.0 / hx2 if c is None else c
        self.alpha: npt.NDArray[np.float64] = np.zeros(self.n + 2, dtype=np.float64)
        self.beta: npt.NDArray[np.float64] = np.zeros(self.n + 2, dtype=np.float64)

    def evaluate_alpha(self) -> None:
        """Fill alpha[2..N] from alpha[1] (set by the scheme)."""
        index = _evaluate_alpha(self.alpha, self.a, self.b, self.c, self.n)
        if index >= 0:
            raise SingularMatrixError(f"Zero pivot in alpha recurrence at node {index}.", stage="evaluate_alpha")

    def evaluate_beta(self, rhs: npt.NDArray[np.float64]) -> None:
        """
        Fill beta[2..N] from beta[1] (set by the scheme).

        Args:
            rhs: Right-hand side F of length N + 1; entries 1..N-1 are used.
        """
        index = _evaluate_beta(self.alpha, self.beta, rhs, self.a, self.b, self.n)
        if index >= 0:
            raise SingularMatrixError(f"Zero pivot in beta recurrence at node {index}.", stage="evaluate_beta")

    def sweep(self, V: npt.NDArray[np.float64]) -> None:
        """Back-substitute V[0..N-1] in place, given V[N]."""
        _sweep(self.alpha, self.beta, V, self.n)


class BlockMatrixAlgorithm(TridiagonalMatrixAlgorithm):
    """
    Tridiagonal system bordered by a column coupling each row to ``V[N]``.

    The scheme sets ``gamma[1]`` (the border coefficient of the first row)
    alongside ``alpha[1]`` and ``beta[1]``.
    """

    def __init__(self, grid: Grid, a: Optional[float] = None, b: Optional[float] = None,
                 c: Optional[float] = None) -> None:
        super().__init__(grid, a, b, c)
        self.gamma: npt.NDArray[np.float64] = np.zeros(self.n + 2, dtype=np.float64)
        self.p: npt.NDArray[np.float64] = np.zeros(self.n, dtype=np.float64)
        self.q: npt.NDArray[np.float64] = np.zeros(self.n, dtype=np.float64)

    def evaluate_beta(self, rhs: npt.NDArray[np.float64]) -> None:
        super().evaluate_beta(rhs)
        _evaluate_gamma(self.alpha, self.gamma, self.a, self.b, self.n)
        _evaluate_pq(self.alpha, self.beta, self.gamma, self.p, self.q, self.n)

    def sweep(self, V: npt.NDArray[np.float64]) -> None:
        """V[j] = p[j] + V[N] q[j] for j < N."""
        _block_sweep(self.p, self.q, V, self.n)
