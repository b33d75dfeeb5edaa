"""
Implicit Schemes
================
Backward-time, central-space schemes solved with the Thomas algorithm.

Classes:
    ImplicitScheme: Linearised 1-D problem with Biot losses on both faces.
    DiathermicScheme: Diathermic medium, where radiation crossing the sample
        couples the two faces. The coupling adds a border column to the system,
        which ``BlockMatrixAlgorithm`` handles without densifying the matrix.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from flashanalysis.schemes.scheme import DifferenceScheme, ProblemKind, SchemeKind
from flashanalysis.schemes.tridiagonal import BlockMatrixAlgorithm, TridiagonalMatrixAlgorithm

if TYPE_CHECKING:
    from flashanalysis.problem.statements import Problem


class ImplicitScheme(DifferenceScheme):
    KIND = SchemeKind.IMPLICIT
    PROBLEM_KINDS = frozenset({ProblemKind.CLASSICAL})
    DEFAULT_GRID_DENSITY = 30
    DEFAULT_TAU_FACTOR = 0.25

    def _prepare_coefficients(self, problem: Problem) -> None:
        hx, tau = self.grid.hx, self.grid.tau
        bi = problem.properties.heat_loss

        self.tridiagonal = TridiagonalMatrixAlgorithm(self.grid)
        self._denominator = 2.0 * bi * hx * tau + 2.0 * tau + hx ** 2
        self._right = 2.0 * bi * hx * tau + hx ** 2
        self.tridiagonal.alpha[1] = 2.0 * tau / self._denominator
        self.tridiagonal.evaluate_alpha()
        self._rhs = np.zeros_like(self.U)

    def time_step(self, m: int) -> None:
        tri = self.tridiagonal
        hx, tau = self.grid.hx, self.grid.tau
        U, V = self.U, self.V
        N = self.grid.grid_density

        tri.beta[1] = (hx ** 2 * U[0] + 2.0 * hx * tau * self.pulse(m)) / self._denominator
        np.multiply(U, 1.0 / tau, out=self._rhs)
        tri.evaluate_beta(self._rhs)

        V[N] = (hx ** 2 * U[N] + 2.0 * tau * tri.beta[N]) / (self._right - 2.0 * tau * (tri.alpha[N] - 1.0))
        tri.sweep(V)


class DiathermicScheme(DifferenceScheme):
    """
    Implicit scheme for a diathermic sample.

    Uses the diathermic coefficient η (share of the front-face losses carried
    to the rear face) and the geometric factor ζ (share of the pulse absorbed
    at the front face).
    """
    KIND = SchemeKind.DIATHERMIC
    PROBLEM_KINDS = frozenset({ProblemKind.DIATHERMIC})
    DEFAULT_GRID_DENSITY = 30
    DEFAULT_TAU_FACTOR = 0.25

    def _prepare_coefficients(self, problem: Problem) -> None:
        hx, tau = self.grid.hx, self.grid.tau
        properties = problem.properties
        bi = properties.heat_loss
        eta = properties.diathermic_coefficient
        self._zeta = properties.geometric_factor

        self._hx2_2tau = hx ** 2 / (2.0 * tau)
        self._z0 = 1.0 + self._hx2_2tau + hx * bi * (1.0 + eta)
        self._zn_1 = -hx * eta * bi

        self.tridiagonal = BlockMatrixAlgorithm(self.grid, a=1.0, b=2.0 + hx ** 2 / tau, c=1.0)
        self.tridiagonal.alpha[1] = 1.0 / self._z0
        self.tridiagonal.gamma[1] = -self._zn_1 / self._z0
        self.tridiagonal.evaluate_alpha()
        self._rhs = np.zeros_like(self.U)

    def time_step(self, m: int) -> None:
        tri = self.tridiagonal
        hx = self.grid.hx
        U, V = self.U, self.V
        N = self.grid.grid_density
        pls = self.pulse(m)

        tri.beta[1] = (self._hx2_2tau * U[0] + hx * self._zeta * pls) / self._z0
        np.multiply(U, 2.0 * self._hx2_2tau, out=self._rhs)
        tri.evaluate_beta(self._rhs)

        p, q = tri.p, tri.q
        V[N] = ((self._hx2_2tau * U[N] + (1.0 - self._zeta) * hx * pls - self._zn_1 * p[0] + p[N - 1])
                / (self._z0 + self._zn_1 * q[0] - q[N - 1]))
        tri.sweep(V)
