"""
Path Optimisers
===============
Gradient-based minimisation of the objective.

Why is this file needed?
------------------------
1. Strategy: Each optimiser is a strategy selected by ``OptimiserKind`` and
   built for one run by ``create_optimiser``. There is no shared instance.
2. Accept/reject: A step is kept only if it lowers the cost by more than
   ``COST_EPSILON``. A rejected step restores the previous parameter vector
   exactly and resets the curvature model; too many consecutive rejections
   end the run with ``StepRejectedError``.
3. Timeout: Exceeding the iteration limit raises ``IterationLimitError``,
   which the task reports as a timeout rather than a failure.

Classes:
    PathOptimiser: Central-difference gradient and the iteration template.
    CompositePathOptimiser: Direction + line search + accept/reject.
    SteepestDescentOptimiser, BFGSOptimiser, SR1Optimiser: Direction strategies.
    LMOptimiser: Levenberg-Marquardt (no line search, damped Gauss-Newton step).
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar, Dict, Optional, Type

import numpy as np

from flashanalysis.config import COST_EPSILON
from flashanalysis.exceptions import (
    IllegalParametersError,
    IterationLimitError,
    SingularMatrixError,
    SolverError,
    StepRejectedError,
)
from flashanalysis.linalg.matrix import Matrix, SquareMatrix, outer_product
from flashanalysis.linalg.vector import Vector
from flashanalysis.search.linear import LinearOptimiser, create_linear_optimiser
from flashanalysis.search.settings import OptimiserKind, OptimiserSettings
from flashanalysis.search.state import ComplexPath, IterativeState, LMPath, Path

if TYPE_CHECKING:
    from flashanalysis.linalg.parameters import ParameterVector
    from flashanalysis.search.objective import Objective

logger = logging.getLogger(__name__)


class PathOptimiser(ABC):
    """
    Base class of the gradient-based optimisers.

    Args:
        settings: Per-run settings.
    """
    KIND: ClassVar[OptimiserKind]

    def __init__(self, settings: Optional[OptimiserSettings] = None) -> None:
        self.settings = settings if settings is not None else OptimiserSettings(optimiser=self.KIND)

    # ---- Finite differences ----

    def step_size(self, params: ParameterVector, index: int) -> float:
        """
        Finite-difference step for one component.

        Relative to the current value, with the coarser resolution for
        discrete-valued parameters; a zero component uses the resolution as
        an absolute step.
        """
        resolution = (self.settings.discrete_gradient_resolution if params.is_discrete(index)
                      else self.settings.gradient_resolution)
        value = abs(params.get(index))
        return resolution * value if value > 0.0 else resolution

    def gradient(self, objective: Objective) -> Vector:
        """
        Central-difference gradient of the cost at the current point.

        The current parameter vector is restored afterwards, also when a
        forward run fails.
        """
        params = objective.search_vector()
        n = params.dimension
        grad = Vector(n)
        try:
            for i in range(n):
                dx = self.step_size(params, i)
                shift = Vector(n)
                shift.set(i, 0.5 * dx)
                objective.assign(params.with_values(params + shift))
                cost_plus = objective.cost()
                objective.assign(params.with_values(params - shift))
                cost_minus = objective.cost()
                grad.set(i, (cost_plus - cost_minus) / dx)
        finally:
            objective.assign(params)
        return grad

    # ---- Iteration template ----

    @abstractmethod
    def init_state(self, objective: Objective) -> IterativeState:
        """Create the state of a fresh run at the current point."""
        pass

    def iteration(self, objective: Objective, state: IterativeState) -> bool:
        """
        Perform one iteration.

        Returns:
            True if the step was accepted, False if it was rejected and rolled back.

        Raises:
            IterationLimitError: If the iteration limit has been reached.
            StepRejectedError: After too many consecutive rejections.
        """
        if state.iteration >= self.settings.iteration_limit:
            raise IterationLimitError(state.iteration, self.settings.iteration_limit)
        return self._iterate(objective, state)

    @abstractmethod
    def _iterate(self, objective: Objective, state: IterativeState) -> bool:
        pass

    def _reject(self, objective: Objective, state: IterativeState, params: ParameterVector, new_cost: float) -> None:
        objective.assign(params)
        state.reset_hessian()
        if state.failed_attempts >= self.settings.max_failed_attempts:
            raise StepRejectedError(
                f"{state.failed_attempts + 1} consecutive steps failed to lower the cost "
                f"(last candidate {new_cost:.6g} vs {state.cost:.6g}).",
                stage="iteration",
            )
        state.increment_failed_attempts()
        logger.debug(f"Step rejected ({state.failed_attempts}/{self.settings.max_failed_attempts}): "
                     f"cost {new_cost:.6g} vs {state.cost:.6g}")

    def _accept(self, state: IterativeState, candidate: ParameterVector, new_cost: float) -> None:
        state.parameters = candidate
        state.cost = new_cost
        state.reset_failed_attempts()
        state.increment_step()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.settings.optimiser})"


class CompositePathOptimiser(PathOptimiser):
    """
    Direction strategy combined with a line search.

    Subclasses supply ``direction`` and ``prepare`` (the update of the
    gradient and curvature after an accepted step).
    """

    def __init__(self, settings: Optional[OptimiserSettings] = None) -> None:
        super().__init__(settings)
        self.linear_optimiser: LinearOptimiser = create_linear_optimiser(
            self.settings.linear_search, self.settings.linear_resolution, self.settings.seed
        )

    def init_state(self, objective: Objective) -> Path:
        path = self._new_path(objective.search_vector())
        path.cost = objective.cost()
        path.gradient = self.gradient(objective)
        return path

    def _new_path(self, params: ParameterVector) -> Path:
        return Path(params)

    @abstractmethod
    def direction(self, path: Path) -> Vector:
        pass

    @abstractmethod
    def prepare(self, objective: Objective, path: Path) -> None:
        """Update gradient (and curvature) at the newly accepted point."""
        pass

    def _iterate(self, objective: Objective, state: IterativeState) -> bool:
        path: Path = state  # type: ignore[assignment]
        params = objective.search_vector()

        path.direction = self.direction(path)
        step = self.linear_optimiser.linear_step(objective, path, self.gradient)
        path.minimum_point = step

        candidate = params.with_values(params + path.direction * step)
        new_cost = objective.trial_cost(candidate)

        if not new_cost < path.cost - COST_EPSILON:
            self._reject(objective, path, params, new_cost)
            return False

        self.prepare(objective, path)
        self._accept(path, candidate, new_cost)
        logger.debug(f"Iteration {path.iteration}: cost = {new_cost:.6g}, step = {step:.4g}")
        return True


class SteepestDescentOptimiser(CompositePathOptimiser):
    KIND = OptimiserKind.STEEPEST_DESCENT

    def direction(self, path):
        return -path.gradient

    def prepare(self, objective, path):
        path.gradient = self.gradient(objective)


class _HessianOptimiser(CompositePathOptimiser):

    def _new_path(self, params: ParameterVector) -> ComplexPath:
        return ComplexPath(params)

    def direction(self, path):
        try:
            return path.hessian.solve(-path.gradient)
        except SingularMatrixError:
            logger.warning("Singular Hessian approximation; resetting to identity.")
            path.reset_hessian()
            return -path.gradient


class BFGSOptimiser(_HessianOptimiser):
    """
    Quasi-Newton search with the BFGS update of the Hessian,
    ``B' = B + g gᵀ / (g·d) + y yᵀ / (α y·d)`` with ``y = g' - g``.
    """
    KIND = OptimiserKind.BFGS

    def prepare(self, objective, path):
        g0 = path.gradient
        g1 = self.gradient(objective)
        d = path.direction
        alpha = path.minimum_point
        y = g1 - g0

        gd = g0.dot(d)
        yd = alpha * y.dot(d)
        if gd == 0.0 or yd == 0.0:
            logger.warning("Degenerate BFGS update; resetting Hessian to identity.")
            path.reset_hessian()
        else:
            hessian = path.hessian.sum(outer_product(g0, g0).scale(1.0 / gd)).sum(outer_product(y, y).scale(1.0 / yd))
            if hessian.is_finite():
                path.hessian = hessian
            else:
                logger.warning("Non-finite BFGS update; resetting Hessian to identity.")
                path.reset_hessian()
        path.gradient = g1


class SR1Optimiser(_HessianOptimiser):
    """
    Symmetric rank-one quasi-Newton search.

    The update is skipped whenever its denominator is small relative to the
    vectors it is built from.
    """
    KIND = OptimiserKind.SR1
    R: ClassVar[float] = 1e-8

    def direction(self, path):
        return path.inverse_hessian.multiply(-path.gradient)

    def prepare(self, objective, path):
        g0 = path.gradient
        g1 = self.gradient(objective)
        y = g1 - g0
        dx = path.direction * path.minimum_point

        m1 = y - path.hessian.multiply(dx)
        if abs(dx.dot(m1)) > self.R * dx.length() * m1.length():
            path.hessian = path.hessian.sum(outer_product(m1, m1).scale(1.0 / m1.dot(dx)))

            m2 = dx - path.inverse_hessian.multiply(y)
            denominator = m2.dot(y)
            if abs(denominator) > self.R * y.length() * m2.length():
                path.inverse_hessian = path.inverse_hessian.sum(outer_product(m2, m2).scale(1.0 / denominator))
            else:
                path.inverse_hessian = path.hessian.inverse()
        else:
            logger.debug("SR1 update skipped: near-degenerate denominator.")
        path.gradient = g1


class LMOptimiser(PathOptimiser):
    """
    Levenberg-Marquardt search on the residual vector.

    Solves ``(JᵀJ + D)·d = -Jᵀr`` where the damping ``D`` blends the identity
    (Levenberg) and the diagonal of ``JᵀJ`` (Marquardt), scaled by λ. λ is
    divided by 3 after an accepted step and doubled after a rejected one; the
    Jacobian is recomputed only after a rejection.
    """
    KIND = OptimiserKind.LEVENBERG_MARQUARDT
    INCREASE: ClassVar[float] = 2.0
    DECREASE: ClassVar[float] = 3.0

    def init_state(self, objective: Objective) -> LMPath:
        path = LMPath(objective.search_vector())
        path.cost = objective.cost()
        return path

    def jacobian(self, objective: Objective, params: ParameterVector, num_points: int) -> Matrix:
        """Central-difference Jacobian of the residual vector; restores ``params`` afterwards."""
        n = params.dimension
        jacobian = np.zeros((num_points, n), dtype=np.float64)
        try:
            for i in range(n):
                dx = self.step_size(params, i)
                shift = Vector(n)
                shift.set(i, 0.5 * dx)
                objective.assign(params.with_values(params + shift))
                objective.cost()
                r_plus = objective.residuals()
                objective.assign(params.with_values(params - shift))
                objective.cost()
                r_minus = objective.residuals()
                jacobian[:, i] = (r_plus - r_minus) / dx
        finally:
            objective.assign(params)
        return Matrix(jacobian)

    def prepare(self, objective: Objective, path: LMPath) -> None:
        residuals = objective.residuals()
        path.residuals = Vector(residuals)

        if path.compute_jacobian or path.jacobian is None:
            path.jacobian = self.jacobian(objective, path.parameters, residuals.size)
            path.nonregularised_hessian = SquareMatrix(path.jacobian.transpose().multiply(path.jacobian).to_numpy())

        gradient = path.jacobian.transpose().multiply(path.residuals)
        if not gradient.is_finite():
            raise SolverError("Could not calculate the objective gradient.", stage="lm_prepare")
        path.gradient = gradient

        hessian = path.nonregularised_hessian
        ratio = self.settings.damping_ratio
        levenberg = SquareMatrix.identity(hessian.dimension)
        marquardt = hessian.diagonal_part()
        damping = levenberg.scale(ratio).sum(marquardt.scale(1.0 - ratio)).scale(path.lambda_)
        path.hessian = SquareMatrix(hessian.sum(damping).to_numpy())

    def _iterate(self, objective: Objective, state: IterativeState) -> bool:
        path: LMPath = state  # type: ignore[assignment]

        initial_cost = objective.cost()
        params = objective.search_vector()
        path.parameters = params
        path.cost = initial_cost

        self.prepare(objective, path)
        direction = path.hessian.solve(-path.gradient)
        path.direction = direction

        step = params + direction
        if not step.is_finite():
            raise IllegalParametersError(f"Non-finite candidate parameters at iteration {path.iteration}.",
                                         stage="lm_iteration")
        candidate = params.with_values(step)
        new_cost = objective.trial_cost(candidate)

        if not new_cost < initial_cost - COST_EPSILON:
            path.lambda_ *= self.INCREASE
            path.compute_jacobian = True
            self._reject(objective, path, params, new_cost)
            return False

        path.lambda_ /= self.DECREASE
        path.compute_jacobian = False
        self._accept(path, candidate, new_cost)
        logger.debug(f"Iteration {path.iteration}: cost = {new_cost:.6g}, lambda = {path.lambda_:.4g}")
        return True


OPTIMISERS: Dict[OptimiserKind, Type[PathOptimiser]] = {
    cls.KIND: cls for cls in (SteepestDescentOptimiser, BFGSOptimiser, SR1Optimiser, LMOptimiser)
}


def create_optimiser(settings: Optional[OptimiserSettings] = None) -> PathOptimiser:
    """Build the optimiser selected by ``settings.optimiser`` for a single run."""
    settings = settings if settings is not None else OptimiserSettings()
    return OPTIMISERS[settings.optimiser](settings)

