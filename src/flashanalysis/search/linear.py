"""
Line Searches
=============
One-dimensional minimisation along a search direction.

Why is this file needed?
------------------------
1. Step length: A direction alone does not say how far to go. A line search
   picks the step ``α`` that (approximately) minimises the cost along it.
2. Feasibility: The admissible range of ``α`` is cut where the first
   parameter would leave its (transformed) bounds, so probes never leave the
   box the problem statement defined.

Classes:
    LinearOptimiser: Abstract base with the admissible ``domain``.
    GoldenSectionOptimiser: Bracketing search, deterministic.
    WolfeOptimiser: Random probes until the Wolfe conditions hold.
"""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, ClassVar, Dict, Optional, Type

import numpy as np

from flashanalysis.config import DEFAULT_LINEAR_RESOLUTION
from flashanalysis.exceptions import ConfigurationError, InstabilityError
from flashanalysis.linalg.segment import Segment
from flashanalysis.search.settings import LinearSearchKind

if TYPE_CHECKING:
    from flashanalysis.linalg.parameters import ParameterVector
    from flashanalysis.linalg.vector import Vector
    from flashanalysis.search.objective import Objective
    from flashanalysis.search.state import Path

logger = logging.getLogger(__name__)

GradientFunction = Callable[["Objective"], "Vector"]


class LinearOptimiser(ABC):
    KIND: ClassVar[LinearSearchKind]
    # Direction components smaller than this do not limit the step
    EPS: ClassVar[float] = 1e-15
    MIN_STEP: ClassVar[float] = 1e-10

    def __init__(self, resolution: float = DEFAULT_LINEAR_RESOLUTION) -> None:
        if not 0.0 < resolution < 1.0:
            raise ConfigurationError(f"Linear resolution must lie in (0, 1), got {resolution}.")
        self.resolution = resolution

    @classmethod
    def domain(cls, x: ParameterVector, direction: Vector) -> Segment:
        """
        Range of step lengths keeping ``x + α * direction`` inside the bounds.

        Returns:
            ``[0, α_max]`` with ``α_max`` at least ``MIN_STEP``. A direction
            with no component above ``EPS`` gets ``[0, MIN_STEP]``.
        """
        alpha_max = math.inf
        for i in range(x.dimension):
            component = direction.get(i)
            if -cls.EPS < component < cls.EPS:
                continue
            bounds = x.transformed_bounds(i)
            edge = bounds.maximum if component > 0.0 else bounds.minimum
            alpha = abs((edge - x.get(i)) / component)
            if math.isfinite(alpha) and alpha < alpha_max:
                alpha_max = alpha
        if math.isinf(alpha_max):
            return Segment(0.0, cls.MIN_STEP)
        return Segment(0.0, max(alpha_max, cls.MIN_STEP))

    @abstractmethod
    def linear_step(self, objective: Objective, path: Path, gradient: GradientFunction) -> float:
        """
        Find the step length along ``path.direction``.

        The objective is left at the parameters it held on entry.
        """
        pass


class GoldenSectionOptimiser(LinearOptimiser):
    KIND = LinearSearchKind.GOLDEN_SECTION
    PHI: ClassVar[float] = 1.0 - (3.0 - math.sqrt(5.0)) / 2.0
    # Cost differences below this count as a tie
    TIE: ClassVar[float] = 1e-14

    def linear_step(self, objective, path, gradient):
        params = objective.search_vector()
        direction = path.direction
        segment = self.domain(params, direction)
        lower, upper = segment.minimum, segment.maximum
        absolute_error = self.resolution * self.PHI * segment.length()

        try:
            t = self.PHI * (upper - lower)
            while abs(t) > absolute_error:
                alpha = lower + t
                one_minus_alpha = upper - t
                cost_alpha = objective.trial_cost(params.with_values(params + direction * alpha))
                cost_one_minus = objective.trial_cost(params.with_values(params + direction * one_minus_alpha))
                if cost_alpha - cost_one_minus > self.TIE:
                    upper = alpha
                else:
                    lower = one_minus_alpha
                t = self.PHI * (upper - lower)
        finally:
            objective.assign(params)

        return 0.5 * (lower + upper)


class WolfeOptimiser(LinearOptimiser):
    """
    Random-probe search for a step satisfying the Wolfe conditions.

    A probe that does not decrease the cost enough shrinks the interval from
    above; one whose directional derivative is still steep raises the lower
    end, or lowers the upper end if the slope has already turned positive.
    The first probe meeting both conditions is returned.

    Args:
        resolution: Relative interval length at which the search stops.
        rng: Random generator for the probes.
    """
    KIND = LinearSearchKind.WOLFE
    C1: ClassVar[float] = 0.05
    C2: ClassVar[float] = 0.8
    MAX_PROBES: ClassVar[int] = 100

    def __init__(self, resolution: float = DEFAULT_LINEAR_RESOLUTION,
                 rng: Optional[np.random.Generator] = None) -> None:
        super().__init__(resolution)
        self.rng = rng if rng is not None else np.random.default_rng()

    def linear_step(self, objective, path, gradient):
        params = objective.search_vector()
        direction = path.direction
        g1 = path.gradient
        g1p = g1.dot(direction)
        g1p_abs = abs(g1p)

        segment = self.domain(params, direction)
        lower, upper = segment.minimum, segment.maximum
        initial_length = upper - lower
        cost_0 = path.cost
        alpha = 0.0

        try:
            for _ in range(self.MAX_PROBES):
                if (upper - lower) / initial_length <= self.resolution:
                    break
                alpha = Segment(lower, upper).random_value(self.rng)
                cost_alpha = objective.trial_cost(params.with_values(params + direction * alpha))

                # sufficient decrease
                if not cost_alpha - cost_0 <= self.C1 * alpha * g1p:
                    upper = alpha
                    continue

                # curvature
                try:
                    g2p = gradient(objective).dot(direction)
                except InstabilityError as e:
                    logger.debug(f"Gradient failed at probe {alpha:.4g}: {e.details()}")
                    upper = alpha
                    continue
                if abs(g2p) <= self.C2 * g1p_abs:
                    break
                # overshot the minimum when the slope has changed sign
                if g2p > 0.0:
                    upper = alpha
                else:
                    lower = alpha
        finally:
            objective.assign(params)

        return alpha


LINEAR_SEARCHES: Dict[LinearSearchKind, Type[LinearOptimiser]] = {
    cls.KIND: cls for cls in (GoldenSectionOptimiser, WolfeOptimiser)
}


def create_linear_optimiser(kind: LinearSearchKind | str, resolution: float = DEFAULT_LINEAR_RESOLUTION,
                            seed: Optional[int] = None) -> LinearOptimiser:
    kind = LinearSearchKind(kind)
    if kind == LinearSearchKind.WOLFE:
        return WolfeOptimiser(resolution, np.random.default_rng(seed))
    return LINEAR_SEARCHES[kind](resolution)
