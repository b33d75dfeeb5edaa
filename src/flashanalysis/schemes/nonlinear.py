"""
Nonlinear Implicit Scheme
=========================
1-D problem with radiative (T^4) losses on both faces.

The boundary conditions depend on the unknown face temperatures, so each
time step is solved as a fixed-point problem: the losses are evaluated with
the latest iterate, the linear system is swept, and the pass is repeated
until the face temperatures settle.

The field is expressed as a rise above the test temperature, in units of the
maximum heating, so ``V * dT / T + 1`` is the absolute temperature relative to
the test temperature.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from flashanalysis.schemes.scheme import FixedPointScheme, ProblemKind, SchemeKind
from flashanalysis.schemes.tridiagonal import TridiagonalMatrixAlgorithm

if TYPE_CHECKING:
    from flashanalysis.problem.statements import Problem


class NonlinearScheme(FixedPointScheme):
    KIND = SchemeKind.NONLINEAR
    PROBLEM_KINDS = frozenset({ProblemKind.NONLINEAR})
    DEFAULT_GRID_DENSITY = 30
    DEFAULT_TAU_FACTOR = 0.25

    def _prepare_coefficients(self, problem: Problem) -> None:
        hx, tau = self.grid.hx, self.grid.tau
        hx2 = hx ** 2
        properties = problem.properties
        bi = properties.heat_loss
        T = properties.test_temperature
        dT = problem.maximum_heating()

        self._dT = dT
        self._ratio = dT / T

        self.tridiagonal = TridiagonalMatrixAlgorithm(self.grid)
        a1 = 2.0 * tau / (hx2 + 2.0 * tau)
        self.tridiagonal.alpha[1] = a1
        self.tridiagonal.evaluate_alpha()

        N = self.grid.grid_density
        self._b1 = hx2 / (2.0 * tau + hx2)
        self._b2 = a1 * hx
        self._b3 = bi * T / (4.0 * dT)
        self._c1 = -0.5 * hx * tau * bi * T / dT
        self._c2 = 1.0 / (hx2 + 2.0 * tau - 2.0 * self.tridiagonal.alpha[N] * tau)
        self._rhs = np.zeros_like(self.U)

    def _radiative_excess(self, value: float) -> float:
        return (value * self._ratio + 1.0) ** 4 - 1.0

    def iteration(self, m: int) -> None:
        tri = self.tridiagonal
        hx, tau = self.grid.hx, self.grid.tau
        U, V = self.U, self.V
        N = self.grid.grid_density

        tri.beta[1] = self._b1 * U[0] + self._b2 * (self.pulse(m) - self._b3 * self._radiative_excess(V[0]))
        np.multiply(U, 1.0 / tau, out=self._rhs)
        tri.evaluate_beta(self._rhs)

        V[N] = self._c2 * (2.0 * tri.beta[N] * tau + hx ** 2 * U[N] + self._c1 * self._radiative_excess(V[N]))
        tri.sweep(V)

    def _scale_factor(self, problem: Problem, maximum: float) -> float:
        return self._dT
