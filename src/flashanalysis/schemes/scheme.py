"""
Difference Scheme Base
======================
Common lifecycle of every finite-difference forward model.

Why is this file needed?
------------------------
1. Lifecycle: ``prepare`` builds a fresh grid and discrete pulse, resolves the
   pulse on the grid and sizes the temperature arrays; ``run_time_sequence``
   advances the field step by step and records the rear-face signal into the
   problem's heating curve.
2. Safety: ``finalise_step`` refuses to promote a non-finite field, so a
   diverging run surfaces as ``InstabilityError`` instead of leaking NaNs into
   the signal.
3. Dispatch: Each concrete scheme declares which problem kinds it can solve;
   a mismatch is a configuration error, not a silent fallback.

State machine:
    UNINITIALIZED -> PREPARED -> STEPPING -> FINISHED
                                    \\-> INVALID
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar, FrozenSet, Optional

import numpy as np

from flashanalysis.config import DEFAULT_NONLINEAR_PRECISION, DIVERGENCE_THRESHOLD, MAX_FIXED_POINT_ITERATIONS
from flashanalysis.exceptions import ConfigurationError, InstabilityError
from flashanalysis.schemes.grid import Grid
from flashanalysis.schemes.pulse import DiscretePulse

if TYPE_CHECKING:
    import numpy.typing as npt

    from flashanalysis.problem.statements import Problem

logger = logging.getLogger(__name__)


class SchemeState(StrEnum):
    UNINITIALIZED = "uninitialized"
    PREPARED = "prepared"
    STEPPING = "stepping"
    FINISHED = "finished"
    INVALID = "invalid"


class SchemeKind(StrEnum):
    EXPLICIT = "explicit"
    IMPLICIT = "implicit"
    MIXED = "mixed"
    ADI = "adi"
    NONLINEAR = "nonlinear"
    COUPLED = "coupled"
    DIATHERMIC = "diathermic"


class ProblemKind(StrEnum):
    CLASSICAL = "classical"
    CLASSICAL_2D = "classical_2d"
    NONLINEAR = "nonlinear"
    PARTICIPATING = "participating_medium"
    DIATHERMIC = "diathermic"


class DifferenceScheme(ABC):
    """
    Abstract base class for difference schemes.

    Args:
        grid_density: Number of spatial intervals; the scheme default if omitted.
        tau_factor: Time factor; the scheme default if omitted.
        time_limit: Simulated time span (s). Must be set before ``prepare``.
    """
    KIND: ClassVar[SchemeKind]
    PROBLEM_KINDS: ClassVar[FrozenSet[ProblemKind]] = frozenset()
    DEFAULT_GRID_DENSITY: ClassVar[int] = 30
    DEFAULT_TAU_FACTOR: ClassVar[float] = 0.25
    PULSE_EPS: ClassVar[float] = 1e-7

    def __init__(
        self,
        grid_density: Optional[int] = None,
        tau_factor: Optional[float] = None,
        time_limit: Optional[float] = None,
    ) -> None:
        self.grid_density = self.DEFAULT_GRID_DENSITY if grid_density is None else grid_density
        self.tau_factor = self.DEFAULT_TAU_FACTOR if tau_factor is None else tau_factor
        # Validates both values up front
        self.grid: Grid = self._make_grid()
        self.time_limit: Optional[float] = None
        if time_limit is not None:
            self.set_time_limit(time_limit)

        self.state = SchemeState.UNINITIALIZED
        self.discrete_pulse: Optional[DiscretePulse] = None
        self.time_interval = 0
        self.U: npt.NDArray[np.float64] = np.empty(0)
        self.V: npt.NDArray[np.float64] = np.empty(0)
        self._pulse_values: npt.NDArray[np.float64] = np.empty(0)

    # ---- Configuration ----

    def set_time_limit(self, time_limit: float) -> None:
        if not np.isfinite(time_limit) or time_limit <= 0.0:
            raise ConfigurationError(f"Time limit must be positive, got {time_limit}.")
        self.time_limit = float(time_limit)

    def _make_grid(self) -> Grid:
        return Grid(self.grid_density, self.tau_factor)

    def _make_pulse(self, problem: Problem) -> DiscretePulse:
        return DiscretePulse(problem.pulse, self.grid, problem.properties.characteristic_time())

    def supports(self, problem: Problem) -> bool:
        return problem.kind in self.PROBLEM_KINDS

    def copy(self) -> DifferenceScheme:
        """A fresh, unprepared scheme with the same configuration."""
        return type(self)(self.grid_density, self.tau_factor, self.time_limit)

    # ---- Lifecycle ----

    def prepare(self, problem: Problem) -> None:
        """
        Discretise the problem on a fresh grid and allocate the field arrays.

        Args:
            problem: The problem statement to solve.

        Raises:
            ConfigurationError: If the problem kind is unsupported or the time limit is unset.
            GridAdjustmentError: If the pulse cannot be resolved on the grid.
        """
        if not self.supports(problem):
            raise ConfigurationError(
                f"{type(self).__name__} cannot solve a '{problem.kind}' problem "
                f"(supported: {sorted(self.PROBLEM_KINDS)})."
            )
        if self.time_limit is None:
            raise ConfigurationError(f"{type(self).__name__} has no time limit.")

        self.grid = self._make_grid()
        self.discrete_pulse = self._make_pulse(problem)
        self.grid.adjust_to(self.discrete_pulse)

        tau = self.grid.tau
        characteristic_time = problem.properties.characteristic_time()
        num_points = problem.curve.num_points
        self.time_interval = int(np.rint((self.time_limit / num_points) / (tau * characteristic_time))) + 1

        n = self.grid.grid_density
        self.U = np.zeros(n + 1, dtype=np.float64)
        self.V = np.zeros(n + 1, dtype=np.float64)

        total_steps = (num_points - 1) * self.time_interval
        steps = np.arange(total_steps + 2, dtype=np.float64)
        self._pulse_values = np.asarray(self.discrete_pulse.laser_power_at((steps - self.PULSE_EPS) * tau))

        problem.curve.clear()
        self._prepare_coefficients(problem)
        self.state = SchemeState.PREPARED

    @abstractmethod
    def _prepare_coefficients(self, problem: Problem) -> None:
        """Precompute scheme constants after the grid is final."""
        pass

    @abstractmethod
    def time_step(self, m: int) -> None:
        """Advance from U (layer m - 1) to V (layer m)."""
        pass

    def finalise_step(self) -> None:
        """
        Promote the current layer to the previous one.

        Raises:
            InstabilityError: If the current layer holds non-finite values.
        """
        if not np.all(np.isfinite(self.V)):
            self.state = SchemeState.INVALID
            raise InstabilityError("Non-finite temperature field.", stage="finalise_step")
        np.copyto(self.U, self.V)

    def pulse(self, m: int) -> float:
        """Normalised laser power at time step m."""
        return float(self._pulse_values[m])

    def signal(self) -> float:
        """Rear-face (detector-side) value of the current layer."""
        return float(self.V[-1])

    def run_time_sequence(self, problem: Problem) -> None:
        """
        Step to the time limit, sampling the signal every ``time_interval`` steps.

        Raises:
            InstabilityError: On a non-finite field or a non-positive curve maximum.
        """
        curve = problem.curve
        characteristic_time = problem.properties.characteristic_time()
        interval = self.time_interval
        step_time = self.grid.tau * characteristic_time

        self.state = SchemeState.STEPPING
        curve.add_point(0.0, 0.0)
        for w in range(1, curve.num_points):
            for m in range((w - 1) * interval + 1, w * interval + 1):
                self.time_step(m)
                self.finalise_step()
            curve.add_point(w * interval * step_time, self.signal())

        maximum = curve.apparent_maximum()
        if not np.isfinite(maximum) or maximum <= 0.0:
            self.state = SchemeState.INVALID
            raise InstabilityError(f"Simulated curve has non-positive maximum {maximum}.", stage="run_time_sequence")
        curve.scale(self._scale_factor(problem, maximum))
        self.state = SchemeState.FINISHED

    def _scale_factor(self, problem: Problem, maximum: float) -> float:
        return problem.properties.maximum_temperature / maximum

    def solve(self, problem: Problem) -> None:
        """Prepare and run the full time sequence."""
        self.prepare(problem)
        self.run_time_sequence(problem)

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(N={self.grid_density}, tau_factor={self.tau_factor}, "
                f"time_limit={self.time_limit})")


class FixedPointScheme(DifferenceScheme):
    """
    Base class for schemes whose time step is a fixed-point problem.

    Each step repeats ``iteration(m)`` until both boundary values change by no
    more than ``nonlinear_precision`` between passes.

    Args:
        nonlinear_precision: Convergence threshold on the boundary values.
    """

    def __init__(
        self,
        grid_density: Optional[int] = None,
        tau_factor: Optional[float] = None,
        time_limit: Optional[float] = None,
        nonlinear_precision: float = DEFAULT_NONLINEAR_PRECISION,
    ) -> None:
        super().__init__(grid_density, tau_factor, time_limit)
        if not np.isfinite(nonlinear_precision) or nonlinear_precision <= 0.0:
            raise ConfigurationError(f"Nonlinear precision must be positive, got {nonlinear_precision}.")
        self.nonlinear_precision = float(nonlinear_precision)

    def copy(self) -> FixedPointScheme:
        return type(self)(self.grid_density, self.tau_factor, self.time_limit, self.nonlinear_precision)

    @abstractmethod
    def iteration(self, m: int) -> None:
        """One pass of the fixed-point map for time step m, updating V in place."""
        pass

    def time_step(self, m: int) -> None:
        self.do_iterations(m)

    def do_iterations(self, m: int) -> None:
        """
        Iterate the current time step to convergence.

        Raises:
            InstabilityError: If the field becomes non-finite, its absolute sum
                exceeds the divergence threshold, or the pass limit is reached.
        """
        V = self.V
        precision = self.nonlinear_precision
        first, last = np.inf, np.inf

        for _ in range(MAX_FIXED_POINT_ITERATIONS):
            self.iteration(m)
            magnitude = float(np.sum(np.abs(V)))
            if not np.isfinite(magnitude) or magnitude > DIVERGENCE_THRESHOLD:
                self.state = SchemeState.INVALID
                raise InstabilityError(
                    f"Fixed-point iterations diverged at step {m} (sum |V| = {magnitude:.3e}).",
                    stage="do_iterations",
                )
            if abs(V[0] - first) <= precision and abs(V[-1] - last) <= precision:
                return
            first, last = V[0], V[-1]

        self.state = SchemeState.INVALID
        raise InstabilityError(
            f"Fixed-point iterations did not converge within {MAX_FIXED_POINT_ITERATIONS} passes at step {m}.",
            stage="do_iterations",
        )
