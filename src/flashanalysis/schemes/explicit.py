"""
Explicit Scheme
===============
Forward-time, central-space stepping of the linearised 1-D problem.

Cheap per step but only conditionally stable, so the time factor is checked
against the stability limit before the run starts.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from flashanalysis.exceptions import ConfigurationError
from flashanalysis.schemes.scheme import DifferenceScheme, ProblemKind, SchemeKind

if TYPE_CHECKING:
    from flashanalysis.problem.statements import Problem


class ExplicitScheme(DifferenceScheme):
    """
    Forward-time, central-space scheme for the linearised 1-D problem.

    Interior nodes are updated directly from the previous layer, so the time
    step is only stable while ``tau / hx² <= 0.5``.
    """
    KIND = SchemeKind.EXPLICIT
    PROBLEM_KINDS = frozenset({ProblemKind.CLASSICAL})
    DEFAULT_GRID_DENSITY = 80
    DEFAULT_TAU_FACTOR = 0.5
    STABILITY_LIMIT = 0.5

    def _prepare_coefficients(self, problem: Problem) -> None:
        hx = self.grid.hx
        self._courant = self.grid.tau / hx ** 2
        if self._courant > self.STABILITY_LIMIT:
            raise ConfigurationError(
                f"Explicit scheme unstable: tau/hx² = {self._courant:.4g} exceeds {self.STABILITY_LIMIT}."
            )
        self._a = 1.0 / (1.0 + problem.properties.heat_loss * hx)

    def time_step(self, m: int) -> None:
        U, V = self.U, self.V
        V[1:-1] = U[1:-1] + self._courant * (U[2:] - 2.0 * U[1:-1] + U[:-2])
        V[0] = (V[1] + self.grid.hx * self.pulse(m)) * self._a
        V[-1] = V[-2] * self._a
