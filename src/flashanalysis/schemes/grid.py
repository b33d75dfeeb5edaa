"""
Computational Grids
===================
Partition of the dimensionless space and time domain used by the difference
schemes.

Why is this file needed?
------------------------
1. Discretisation: The spatial step follows from the grid density
   (``hx = 1/N``) and the time step from the time factor
   (``tau = tau_factor * hx**2``; ``hx**2 + hy**2`` in 2-D).
2. Resolution: ``adjust_to`` refines the grid until the discrete laser pulse is
   resolved in time (and, in 2-D, the laser spot is resolved in space).
   Both loops are bounded; exhausting the bound raises ``GridAdjustmentError``.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from flashanalysis.config import (
    GRID_DENSITY_INCREMENT,
    MAX_GRID_ADJUSTMENTS,
    TAU_FACTOR_REDUCTION,
    TIME_STEP_SAFETY_FACTOR,
)
from flashanalysis.exceptions import ConfigurationError, GridAdjustmentError

if TYPE_CHECKING:
    from flashanalysis.schemes.pulse import DiscretePulse, DiscretePulse2D

logger = logging.getLogger(__name__)


class Grid:
    """
    One-dimensional (axial) grid.

    Args:
        grid_density: Number of spatial intervals N (N + 1 nodes).
        tau_factor: Ratio of the time step to the squared space step.
    """

    def __init__(self, grid_density: int, tau_factor: float) -> None:
        self.set_grid_density(grid_density)
        self.set_tau_factor(tau_factor)

    @property
    def grid_density(self) -> int:
        return self._grid_density

    def set_grid_density(self, grid_density: int) -> None:
        if int(grid_density) != grid_density or grid_density < 2:
            raise ConfigurationError(f"Grid density must be an integer >= 2, got {grid_density}.")
        self._grid_density = int(grid_density)
        self.hx = 1.0 / self._grid_density
        if hasattr(self, "tau_factor"):
            self._update_time_step()

    def set_tau_factor(self, tau_factor: float) -> None:
        if not np.isfinite(tau_factor) or tau_factor <= 0.0:
            raise ConfigurationError(f"Time factor must be positive, got {tau_factor}.")
        self.tau_factor = float(tau_factor)
        self._update_time_step()

    def _update_time_step(self) -> None:
        self.tau = self.tau_factor * self.hx ** 2

    def grid_time(self, time: float, dimension_factor: float) -> float:
        """Dimensionless ``time / dimension_factor`` rounded to a multiple of tau."""
        return float(np.rint((time / dimension_factor) / self.tau) * self.tau)

    def adjust_to(self, pulse: DiscretePulse) -> None:
        """
        Shrink the time step until the discrete pulse spans more than one step.

        While ``0.95 * tau`` exceeds the discrete pulse width, the time factor
        is divided by 1.5 and the pulse is re-discretised.

        Args:
            pulse: The discrete pulse to resolve.

        Raises:
            GridAdjustmentError: If the width is not resolved after the maximum number of reductions.
        """
        adjustments = 0
        while TIME_STEP_SAFETY_FACTOR * self.tau > pulse.discrete_width:
            if adjustments >= MAX_GRID_ADJUSTMENTS:
                raise GridAdjustmentError(
                    f"Time step {self.tau:.3e} still exceeds pulse width {pulse.discrete_width:.3e} "
                    f"after {adjustments} reductions of the time factor."
                )
            self.tau_factor /= TAU_FACTOR_REDUCTION
            self._update_time_step()
            pulse.recalculate()
            adjustments += 1

        if adjustments:
            logger.debug(f"Time factor reduced {adjustments}x to {self.tau_factor:.4g} (tau = {self.tau:.3e}).")

    def copy(self) -> Grid:
        return Grid(self.grid_density, self.tau_factor)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(N={self.grid_density}, hx={self.hx:.3e}, tau={self.tau:.3e})"


class Grid2D(Grid):
    """Axial-radial grid with ``hy = hx`` and ``tau = tau_factor * (hx² + hy²)``."""

    def set_grid_density(self, grid_density: int) -> None:
        super().set_grid_density(grid_density)
        self.hy = self.hx
        if hasattr(self, "tau_factor"):
            self._update_time_step()

    def _update_time_step(self) -> None:
        self.tau = self.tau_factor * (self.hx ** 2 + self.hy ** 2)

    def grid_radial_distance(self, radial: float, length_factor: float) -> float:
        """Dimensionless ``radial / length_factor`` rounded to a multiple of hy."""
        return float(np.rint((radial / length_factor) / self.hy) * self.hy)

    def adjust_to(self, pulse: DiscretePulse2D) -> None:  # type: ignore[override]
        """
        Refine the radial step until the laser spot is resolved, then resolve the pulse width in time.

        Raises:
            GridAdjustmentError: If the spot is not resolved after the maximum number of refinements.
        """
        adjustments = 0
        while self.hy > pulse.discrete_spot:
            if adjustments >= MAX_GRID_ADJUSTMENTS:
                raise GridAdjustmentError(
                    f"Radial step {self.hy:.3e} still exceeds spot radius {pulse.discrete_spot:.3e} "
                    f"at N = {self.grid_density}."
                )
            self.set_grid_density(self.grid_density + GRID_DENSITY_INCREMENT)
            pulse.recalculate()
            adjustments += 1

        if adjustments:
            logger.debug(f"Grid density raised to {self.grid_density} to resolve the laser spot.")

        super().adjust_to(pulse)

    def copy(self) -> Grid2D:
        return Grid2D(self.grid_density, self.tau_factor)
