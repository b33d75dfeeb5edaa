"""
Radiative Transfer
==================
Exact solution of the radiative transfer equation in a gray, non-scattering
slab bounded by two diffuse surfaces.

Why is this file needed?
------------------------
1. Coupling: In a semitransparent sample part of the heat is carried by
   radiation. The coupled scheme needs the radiative flux at every grid node
   to add its divergence to the heat equation.
2. Accuracy: The emission term ``(1 + δU)^4`` is interpolated linearly
   between nodes and integrated against the exponential integral kernel in
   closed form, so the flux is exact for the interpolated profile and needs
   no quadrature grid of its own.
3. Status: A non-finite flux is reported as ``RTEStatus.INVALID_FLUXES``;
   the caller decides whether that is fatal.

Units:
    Optical coordinate ``x = τ0 * (node index) * hx``. Emission is
    ``f = 0.25 / δ * (1 + δU)^4`` with ``δ = ΔT / T0``.
"""
from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Tuple

import numba as nb
import numpy as np
import scipy as sp

from flashanalysis.exceptions import ConfigurationError

if TYPE_CHECKING:
    import numpy.typing as npt

    from flashanalysis.schemes.grid import Grid

logger = logging.getLogger(__name__)


class RTEStatus(StrEnum):
    NORMAL = "normal"
    INVALID_FLUXES = "invalid_fluxes"


def segment_weights(grid_density: int, step: float) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """
    Product-integration weights of a linear segment against the E2 kernel.

    For the segment starting ``k`` steps away from the observation node, the
    integral of a linear profile running from ``fA`` to ``fB`` equals
    ``wA[k] * fA + wB[k] * fB``.

    Args:
        grid_density: Number of segments.
        step: Optical length of one segment.

    Returns:
        Tuple ``(wA, wB)`` of arrays of length ``grid_density``.
    """
    z0 = np.arange(grid_density, dtype=np.float64) * step
    z1 = z0 + step
    e3_0, e3_1 = sp.special.expn(3, z0), sp.special.expn(3, z1)
    e4_0, e4_1 = sp.special.expn(4, z0), sp.special.expn(4, z1)

    j0 = e3_0 - e3_1
    j1 = z0 * e3_0 + e4_0 - z1 * e3_1 - e4_1
    w_b = (j1 - z0 * j0) / step
    w_a = j0 - w_b
    return w_a, w_b


@nb.njit(cache=True)
def _integration_matrices(w_a, w_b, n):
    right = np.zeros((n + 1, n + 1))
    left = np.zeros((n + 1, n + 1))
    for i in range(n + 1):
        # segments on the rear side of node i
        for j in range(i, n):
            k = j - i
            right[i, j] += w_a[k]
            right[i, j + 1] += w_b[k]
        # segments on the front side of node i
        for j in range(i):
            k = i - j - 1
            left[i, j + 1] += w_a[k]
            left[i, j] += w_b[k]
    return right, left


class RadiativeTransfer:
    """
    Radiative flux solver for a slab of optical thickness ``τ0``.

    Args:
        grid: Grid whose nodes carry the temperature field.
        optical_thickness: Optical thickness τ0 of the sample.
        emissivity: Emissivity of both boundary surfaces.
        heating_ratio: δ = maximum heating / test temperature.
    """

    def __init__(self, grid: Grid, optical_thickness: float, emissivity: float, heating_ratio: float) -> None:
        if optical_thickness <= 0.0:
            raise ConfigurationError(f"Optical thickness must be positive, got {optical_thickness}.")
        if not 0.0 < emissivity <= 1.0:
            raise ConfigurationError(f"Emissivity must lie in (0, 1], got {emissivity}.")
        if heating_ratio <= 0.0:
            raise ConfigurationError(f"Heating ratio must be positive, got {heating_ratio}.")

        n = grid.grid_density
        self.grid_density = n
        self.optical_thickness = optical_thickness
        self.emissivity = emissivity
        self.heating_ratio = heating_ratio

        step = grid.hx * optical_thickness
        x = np.arange(n + 1, dtype=np.float64) * step
        w_a, w_b = segment_weights(n, step)
        self._right, self._left = _integration_matrices(w_a, w_b, n)
        self._e3_front = sp.special.expn(3, x)
        self._e3_rear = sp.special.expn(3, np.maximum(optical_thickness - x, 0.0))
        self._reflection = 2.0 * (1.0 - emissivity) * float(sp.special.expn(3, optical_thickness))

        self.fluxes: npt.NDArray[np.float64] = np.zeros(n + 1, dtype=np.float64)
        self.radiosities = (0.0, 0.0)
        self.status = RTEStatus.NORMAL

    def emission(self, U: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        delta = self.heating_ratio
        return 0.25 / delta * (1.0 + delta * U) ** 4

    def compute(self, U: npt.NDArray[np.float64]) -> RTEStatus:
        """
        Evaluate the radiative flux for the temperature field U.

        Returns:
            ``RTEStatus.NORMAL`` if every flux is finite, otherwise
            ``RTEStatus.INVALID_FLUXES``. The result is also kept in ``status``.
        """
        f = self.emission(U)
        rear = self._right @ f
        front = self._left @ f

        eps = self.emissivity
        b = self._reflection
        a1 = eps * f[0] + 2.0 * (1.0 - eps) * rear[0]
        a2 = eps * f[-1] + 2.0 * (1.0 - eps) * front[-1]
        denominator = 1.0 - b * b
        r1 = (a1 + b * a2) / denominator
        r2 = (a2 + b * a1) / denominator
        self.radiosities = (float(r1), float(r2))

        np.multiply(2.0, r1 * self._e3_front - r2 * self._e3_rear + front - rear, out=self.fluxes)

        if np.all(np.isfinite(self.fluxes)):
            self.status = RTEStatus.NORMAL
        else:
            logger.debug("Radiative transfer produced non-finite fluxes.")
            self.status = RTEStatus.INVALID_FLUXES
        return self.status
