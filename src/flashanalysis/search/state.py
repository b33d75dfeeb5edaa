"""
Iterative State
===============
What an optimiser remembers between iterations of one run.

The states form a plain ownership tree: a ``ComplexPath`` owns its Hessian
approximations, an ``LMPath`` additionally owns the Jacobian and residuals it
was built from. A state is created when a run starts and dropped when it ends.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from flashanalysis.linalg.matrix import Matrix, SquareMatrix
from flashanalysis.linalg.vector import Vector

if TYPE_CHECKING:
    from flashanalysis.linalg.parameters import ParameterVector


@dataclass
class IterativeState:
    parameters: ParameterVector
    cost: float = math.inf
    iteration: int = 0
    failed_attempts: int = 0

    def increment_step(self) -> None:
        self.iteration += 1

    def increment_failed_attempts(self) -> None:
        self.failed_attempts += 1

    def reset_failed_attempts(self) -> None:
        self.failed_attempts = 0

    def reset_hessian(self) -> None:
        """Forget curvature information; a no-op for first-order states."""
        pass


@dataclass
class Path(IterativeState):
    """State of a gradient-guided search."""
    gradient: Optional[Vector] = None
    direction: Optional[Vector] = None
    # Step length found by the last line search
    minimum_point: float = 0.0


@dataclass
class ComplexPath(Path):
    """Path with a Hessian approximation (and its inverse) for quasi-Newton updates."""
    hessian: Optional[SquareMatrix] = None
    inverse_hessian: Optional[SquareMatrix] = None

    def __post_init__(self) -> None:
        if self.hessian is None or self.inverse_hessian is None:
            self.reset_hessian()

    def reset_hessian(self) -> None:
        n = self.parameters.dimension
        self.hessian = SquareMatrix.identity(n)
        self.inverse_hessian = SquareMatrix.identity(n)


@dataclass
class LMPath(ComplexPath):
    """Levenberg-Marquardt state: residuals, Jacobian and damping."""
    residuals: Optional[Vector] = None
    jacobian: Optional[Matrix] = None
    nonregularised_hessian: Optional[SquareMatrix] = None
    lambda_: float = 1.0
    compute_jacobian: bool = True
