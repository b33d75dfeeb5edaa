from flashanalysis.schemes.factory import DEFAULT_SCHEMES, SCHEMES, create_scheme, default_scheme_for
from flashanalysis.schemes.grid import Grid, Grid2D
from flashanalysis.schemes.pulse import (
    DiscretePulse,
    DiscretePulse2D,
    ExponentiallyModifiedGaussianShape,
    GaussianShape,
    Pulse,
    Pulse2D,
    PulseShape,
    RectangularShape,
    TrapezoidalShape,
    TriangularShape,
)
from flashanalysis.schemes.radiation import RadiativeTransfer, RTEStatus
from flashanalysis.schemes.scheme import DifferenceScheme, FixedPointScheme, ProblemKind, SchemeKind, SchemeState
from flashanalysis.schemes.tridiagonal import BlockMatrixAlgorithm, TridiagonalMatrixAlgorithm

__all__ = [
    "BlockMatrixAlgorithm",
    "DEFAULT_SCHEMES",
    "DifferenceScheme",
    "DiscretePulse",
    "DiscretePulse2D",
    "ExponentiallyModifiedGaussianShape",
    "FixedPointScheme",
    "GaussianShape",
    "Grid",
    "Grid2D",
    "ProblemKind",
    "Pulse",
    "Pulse2D",
    "PulseShape",
    "RTEStatus",
    "RadiativeTransfer",
    "RectangularShape",
    "SCHEMES",
    "SchemeKind",
    "SchemeState",
    "TrapezoidalShape",
    "TriangularShape",
    "TridiagonalMatrixAlgorithm",
    "create_scheme",
    "default_scheme_for",
]
