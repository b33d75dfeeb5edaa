"""
Coupled Implicit Scheme
=======================
Conduction in a participating (semitransparent) medium.

The heat equation gains a source term equal to the divergence of the
radiative flux, which in turn depends on the temperature field. Each time
step is therefore iterated: sweep with the current fluxes, recompute the
fluxes from the new field, repeat until the face temperatures settle. The
fluxes of the converged pass carry over as the source of the next step.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from flashanalysis.exceptions import RadiativeTransferError
from flashanalysis.schemes.radiation import RadiativeTransfer, RTEStatus
from flashanalysis.schemes.scheme import FixedPointScheme, ProblemKind, SchemeKind, SchemeState
from flashanalysis.schemes.tridiagonal import TridiagonalMatrixAlgorithm

if TYPE_CHECKING:
    import numpy.typing as npt

    from flashanalysis.problem.statements import Problem


class CoupledImplicitScheme(FixedPointScheme):
    KIND = SchemeKind.COUPLED
    PROBLEM_KINDS = frozenset({ProblemKind.PARTICIPATING})
    DEFAULT_GRID_DENSITY = 20
    DEFAULT_TAU_FACTOR = 0.66667

    def _prepare_coefficients(self, problem: Problem) -> None:
        hx, tau = self.grid.hx, self.grid.tau
        properties = problem.properties
        bi = properties.heat_loss
        planck = properties.planck_number
        heating_ratio = problem.maximum_heating() / properties.test_temperature

        self.radiative_transfer = RadiativeTransfer(
            self.grid, properties.optical_thickness, properties.emissivity, heating_ratio
        )

        self.tridiagonal = TridiagonalMatrixAlgorithm(self.grid)
        self._hx2_2tau = hx ** 2 / (2.0 * tau)
        self._hx_2np = hx / (2.0 * planck)
        self._b11 = 1.0 / (2.0 * planck * hx)
        self._v1 = 1.0 + self._hx2_2tau + hx * bi
        self.tridiagonal.alpha[1] = 1.0 / self._v1
        self.tridiagonal.evaluate_alpha()
        self._rhs = np.zeros_like(self.U)

        self._solve_radiation(self.U)

    def _solve_radiation(self, field: npt.NDArray[np.float64]) -> None:
        status = self.radiative_transfer.compute(field)
        if status is not RTEStatus.NORMAL:
            self.state = SchemeState.INVALID
            raise RadiativeTransferError(f"Radiative transfer failed with status '{status}'.", stage="radiation")

    def iteration(self, m: int) -> None:
        tri = self.tridiagonal
        hx, tau = self.grid.hx, self.grid.tau
        U, V = self.U, self.V
        N = self.grid.grid_density
        F = self.radiative_transfer.fluxes

        tri.beta[1] = (self._hx2_2tau * U[0] + hx * self.pulse(m) - self._hx_2np * (F[0] + F[1])) * tri.alpha[1]
        rhs = self._rhs
        rhs[1:-1] = U[1:-1] / tau + self._b11 * (F[:-2] - F[2:])
        tri.evaluate_beta(rhs)

        V[N] = ((tri.beta[N] + self._hx2_2tau * U[N] + self._hx_2np * (F[N - 1] + F[N]))
                / (self._v1 - tri.alpha[N]))
        tri.sweep(V)

        self._solve_radiation(V)
