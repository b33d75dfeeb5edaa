"""
Alternating Direction Implicit Scheme
=====================================
Two-dimensional (radial x axial) linearised problem with face and side heat
losses and a finite laser spot.

Each time step is split into two half-steps: the first is implicit along the
radius and explicit along the thickness, the second the other way round. Both
half-steps sweep one tridiagonal system per grid line; the whole step runs in
a single compiled kernel.

Indexing: ``U1[i, j]`` with i the radial node and j the axial node
(j = 0 is the irradiated face, j = N the rear face).
"""
from __future__ import annotations

from typing import TYPE_CHECKING

import numba as nb
import numpy as np

from flashanalysis.exceptions import ConfigurationError, InstabilityError
from flashanalysis.schemes.grid import Grid2D
from flashanalysis.schemes.pulse import DiscretePulse2D, Pulse2D
from flashanalysis.schemes.scheme import DifferenceScheme, ProblemKind, SchemeKind, SchemeState

if TYPE_CHECKING:
    import numpy.typing as npt

    from flashanalysis.problem.statements import Problem


@nb.njit(cache=True)
def _diff2(U, i, j):
    """Second axial difference on the extended first-layer array."""
    return U[i, j + 1] - 2.0 * U[i, j] + U[i, j - 1]


@nb.njit(cache=True)
def _diff2r(U, i, j):
    """Second radial difference in cylindrical coordinates on an extended array."""
    C = 1.0 / (2.0 * (i - 1.0))
    return U[i + 1, j] * (1.0 + C) - 2.0 * U[i, j] + (1.0 - C) * U[i - 1, j]


@nb.njit(cache=True)
def _adi_step(U1, U2, U1_E, U2_E, alpha, beta, a1, b1, c1, consts, pulse_m, pulse_m1, spot, N):
    (a2, b2, c2, a11, b11, _a11, _b11, _b12, _c11, C1_U2, C2_U2, C3_U2, C1_U1,
     TAU_HY, OMEGA_SQ_HX2, E_C_U2, E_C_U1, hy, tau, HX2, HY2) = consts

    # extended first layer: ghost nodes along the thickness
    for i in range(N + 1):
        for j in range(N + 1):
            U1_E[i + 1, j + 1] = U1[i, j]
        U1_E[i + 1, 0] = U1[i, 1] + 2.0 * hy * pulse_m * spot[i] - E_C_U1 * U1[i, 0]
        U1_E[i + 1, N + 2] = U1[i, N - 1] - E_C_U1 * U1[i, N]

    # first half-step: implicit along the radius
    alpha[1] = a11
    for j in range(N + 1):
        beta[1] = b11 * (2.0 * U1_E[1, j + 1] / tau + _diff2(U1_E, 1, j + 1) / HY2)

        for i in range(1, N):
            F = -2.0 * U1_E[i + 1, j + 1] / tau - _diff2(U1_E, i + 1, j + 1) / HY2
            denominator = b1[i] - a1[i] * alpha[i]
            alpha[i + 1] = c1[i] / denominator
            beta[i + 1] = (a1[i] * beta[i] - F) / denominator

        U2[N, j] = ((C2_U2 * beta[N] + HX2 * U1_E[N + 1, j + 1] + C3_U2 * _diff2(U1_E, N + 1, j + 1))
                    / ((C1_U2 - alpha[N]) * C2_U2 + HX2))

        for i in range(N - 1, -1, -1):
            U2[i, j] = alpha[i + 1] * U2[i + 1, j] + beta[i + 1]

    # extended second layer: ghost nodes beyond the side surface
    for j in range(N + 1):
        for i in range(N + 1):
            U2_E[i + 1, j + 1] = U2[i, j]
        U2_E[N + 2, j + 1] = U2[N - 1, j] - E_C_U2 * U2[N, j]

    # second half-step: implicit along the thickness
    alpha[1] = _a11
    for i in range(1, N + 1):
        beta[1] = ((TAU_HY * pulse_m1 * spot[i] + HY2 * U2_E[i + 1, 1]) * _b11
                   + _b12 * _diff2r(U2_E, i + 1, 1))

        for j in range(1, N):
            F = -2.0 / tau * U2_E[i + 1, j + 1] - OMEGA_SQ_HX2 * _diff2r(U2_E, i + 1, j + 1)
            denominator = b2 - a2 * alpha[j]
            alpha[j + 1] = c2 / denominator
            beta[j + 1] = (a2 * beta[j] - F) / denominator

        U1[i, N] = ((tau * beta[N] + HY2 * U2_E[i + 1, N + 1] + _c11 * _diff2r(U2_E, i + 1, N + 1))
                    / ((C1_U1 - alpha[N]) * tau + HY2))

        for j in range(N - 1, -1, -1):
            U1[i, j] = alpha[j + 1] * U1[i, j + 1] + beta[j + 1]

    # axis (i = 0): symmetric radial difference
    beta[1] = ((TAU_HY * pulse_m1 * spot[0] + HY2 * U2_E[1, 1]) * _b11
               + 2.0 * _b12 * (U2_E[2, 1] - U2_E[1, 1]))
    for j in range(1, N):
        F = -2.0 / tau * U2_E[1, j + 1] - 2.0 * OMEGA_SQ_HX2 * (U2_E[2, j + 1] - U2_E[1, j + 1])
        beta[j + 1] = (F - a2 * beta[j]) / (a2 * alpha[j] - b2)

    U1[0, N] = ((tau * beta[N] + HY2 * U2_E[1, N + 1] + 2.0 * _c11 * (U2_E[2, N + 1] - U2_E[1, N + 1]))
                / ((C1_U1 - alpha[N]) * tau + HY2))
    for j in range(N - 1, -1, -1):
        U1[0, j] = alpha[j + 1] * U1[0, j + 1] + beta[j + 1]


class ADIScheme(DifferenceScheme):
    """
    ADI scheme for the two-dimensional linearised problem.

    The detector signal is the rear-face temperature averaged over the
    radial nodes inside the field of view.
    """
    KIND = SchemeKind.ADI
    PROBLEM_KINDS = frozenset({ProblemKind.CLASSICAL_2D})
    DEFAULT_GRID_DENSITY = 30
    DEFAULT_TAU_FACTOR = 0.25
    PULSE_EPS = 1e-8

    def _make_grid(self) -> Grid2D:
        return Grid2D(self.grid_density, self.tau_factor)

    def _make_pulse(self, problem: Problem) -> DiscretePulse2D:
        if not isinstance(problem.pulse, Pulse2D):
            raise ConfigurationError("ADI scheme requires a pulse with a spot diameter.")
        properties = problem.properties
        return DiscretePulse2D(
            problem.pulse, self.grid, properties.characteristic_time(), properties.diameter  # type: ignore[arg-type]
        )

    def _prepare_coefficients(self, problem: Problem) -> None:
        grid: Grid2D = self.grid  # type: ignore[assignment]
        N = grid.grid_density
        hx, hy, tau = grid.hx, grid.hy, grid.tau
        HX2, HY2 = hx ** 2, hy ** 2

        properties = problem.properties
        bi1 = properties.heat_loss
        bi3 = properties.heat_loss_side
        d = properties.diameter
        thickness = properties.thickness

        self.U1: npt.NDArray[np.float64] = np.zeros((N + 1, N + 1), dtype=np.float64)
        self.U2: npt.NDArray[np.float64] = np.zeros((N + 1, N + 1), dtype=np.float64)
        self._U1_E = np.zeros((N + 3, N + 3), dtype=np.float64)
        self._U2_E = np.zeros((N + 3, N + 3), dtype=np.float64)
        self._alpha = np.zeros(N + 2, dtype=np.float64)
        self._beta = np.zeros(N + 2, dtype=np.float64)

        self.last_index = min(int(properties.fov_outer / d / hx), N)
        self.first_index = max(int(properties.fov_inner / d / hx), 0)
        if self.first_index > self.last_index:
            raise ConfigurationError(
                f"Field of view [{properties.fov_inner}, {properties.fov_outer}] m covers no grid node."
            )

        omega = 2.0 * thickness / d
        omega_sq = omega * omega

        i = np.arange(N + 1, dtype=np.float64)
        i[0] = 1.0  # row 0 is not used by the radial recurrence
        self._a1 = omega_sq * (i - 0.5) / (HX2 * i)
        self._b1 = np.full(N + 1, 2.0 / tau + 2.0 * omega_sq / HX2)
        self._c1 = omega_sq * (i + 0.5) / (HX2 * i)

        _c11 = 0.5 * HY2 * tau * omega_sq / HX2
        _b11 = 1.0 / ((1.0 + hy * bi1) * tau + HY2)
        self._consts = (
            1.0 / HY2,                                   # a2
            2.0 / HY2 + 2.0 / tau,                       # b2
            1.0 / HY2,                                   # c2
            1.0 / (1.0 + HX2 / (omega_sq * tau)),        # a11
            0.5 * tau / (1.0 + omega_sq * tau / HX2),    # b11
            1.0 / (1.0 + bi1 * hy + HY2 / tau),          # _a11
            _b11,
            _c11 * _b11,                                 # _b12
            _c11,
            1.0 + hx * omega * bi3,                      # C1_U2
            omega_sq * tau,                              # C2_U2
            HX2 * tau / (2.0 * HY2),                     # C3_U2
            1.0 + hy * bi1,                              # C1_U1
            tau * hy,                                    # TAU_HY
            omega_sq / HX2,                              # OMEGA_SQ_HX2
            2.0 * hx * omega * bi3,                      # E_C_U2
            2.0 * hy * bi1,                              # E_C_U1
            hy, tau, HX2, HY2,
        )

        pulse: DiscretePulse2D = self.discrete_pulse  # type: ignore[assignment]
        self._spot = 0.5 + 0.5 * np.sign(pulse.discrete_spot - np.arange(N + 1) * hx)

    def time_step(self, m: int) -> None:
        _adi_step(
            self.U1, self.U2, self._U1_E, self._U2_E, self._alpha, self._beta,
            self._a1, self._b1, self._c1, self._consts,
            self.pulse(m), self.pulse(m + 1), self._spot, self.grid.grid_density,
        )

    def finalise_step(self) -> None:
        if not np.all(np.isfinite(self.U1)):
            self.state = SchemeState.INVALID
            raise InstabilityError("Non-finite temperature field.", stage="finalise_step")

    def signal(self) -> float:
        N = self.grid.grid_density
        return float(np.mean(self.U1[self.first_index:self.last_index + 1, N]))
