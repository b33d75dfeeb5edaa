"""
Mixed Scheme
============
Weighted two-layer scheme for the linearised 1-D problem, solved with the
Thomas algorithm.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from flashanalysis.schemes.scheme import DifferenceScheme, ProblemKind, SchemeKind
from flashanalysis.schemes.tridiagonal import TridiagonalMatrixAlgorithm

if TYPE_CHECKING:
    from flashanalysis.problem.statements import Problem


class MixedScheme(DifferenceScheme):
    """
    Crank-Nicolson type scheme (equal weights on both time layers).

    Second-order accurate in time, which allows a time factor of 1. The pulse
    term is averaged over the two layers.
    """
    KIND = SchemeKind.MIXED
    PROBLEM_KINDS = frozenset({ProblemKind.CLASSICAL})
    DEFAULT_GRID_DENSITY = 30
    DEFAULT_TAU_FACTOR = 1.0

    def _prepare_coefficients(self, problem: Problem) -> None:
        hx, tau = self.grid.hx, self.grid.tau
        hx2 = hx ** 2
        bi = problem.properties.heat_loss
        bi_h_tau = bi * hx * tau

        self.tridiagonal = TridiagonalMatrixAlgorithm(self.grid, a=1.0 / hx2, b=2.0 / tau + 2.0 / hx2, c=1.0 / hx2)

        self._b1 = 1.0 / (bi_h_tau + hx2 + tau)
        self._b2 = -hx * (bi * tau - hx)
        self._b3 = hx * tau
        self._c1 = self._b2
        self._c2 = bi_h_tau + hx2

        self.tridiagonal.alpha[1] = tau * self._b1
        self.tridiagonal.evaluate_alpha()
        self._rhs = np.zeros_like(self.U)

    def time_step(self, m: int) -> None:
        tri = self.tridiagonal
        hx, tau = self.grid.hx, self.grid.tau
        U, V = self.U, self.V
        N = self.grid.grid_density
        pls = self.pulse(m) + self.pulse(m + 1)

        tri.beta[1] = self._b1 * (self._b2 * U[0] + self._b3 * pls - tau * (U[0] - U[1]))
        rhs = self._rhs
        rhs[1:-1] = 2.0 * U[1:-1] / tau + (U[2:] - 2.0 * U[1:-1] + U[:-2]) / hx ** 2
        tri.evaluate_beta(rhs)

        V[N] = ((self._c1 * U[N] + tau * tri.beta[N] - tau * (U[N] - U[N - 1]))
                / (self._c2 - tau * (tri.alpha[N] - 1.0)))
        tri.sweep(V)
