"""
Error Taxonomy
==============
Every failure raised by the forward solver, the optimiser or the input layer
derives from ``FlashAnalysisError``.

Classes:
    ConfigurationError: Out-of-range or wrong-kind values given to a setter.
    DimensionMismatchError: Vector/matrix operands of incompatible size.
    GridAdjustmentError: Grid refinement did not settle within its bound.
    SolverError: Base class of forward-solver failures (carries the stage).
    InstabilityError: Non-finite or divergent temperature field.
    RadiativeTransferError: Radiative sub-solver reported a non-normal status.
    SingularMatrixError: Degenerate matrix or tridiagonal pivot.
    IllegalParametersError: Malformed parameter vector assigned to a problem.
    StepRejectedError: Too many consecutive rejected optimiser steps.
    IterationLimitError: Optimiser exceeded its iteration limit (timeout).
"""
from __future__ import annotations


class FlashAnalysisError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(FlashAnalysisError, ValueError):
    pass


class DimensionMismatchError(FlashAnalysisError, ValueError):
    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Dimension mismatch: expected {expected}, got {actual}.")
        self.expected = expected
        self.actual = actual


class GridAdjustmentError(FlashAnalysisError):
    pass


class SolverError(FlashAnalysisError):
    """
    A failure of the forward model or of an optimiser step.

    Args:
        message: Human-readable description of the failed check.
        stage: Name of the stage that failed (e.g. "finalise_step").
    """

    def __init__(self, message: str, stage: str = "") -> None:
        super().__init__(message)
        self.stage = stage

    def details(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self}"
        return str(self)


class InstabilityError(SolverError):
    pass


class RadiativeTransferError(InstabilityError):
    pass


class SingularMatrixError(SolverError):
    pass


class IllegalParametersError(SolverError):
    pass


class StepRejectedError(SolverError):
    pass


class IterationLimitError(FlashAnalysisError):
    def __init__(self, iteration: int, limit: int) -> None:
        super().__init__(f"Iteration limit exceeded: {iteration} > {limit}.")
        self.iteration = iteration
        self.limit = limit
