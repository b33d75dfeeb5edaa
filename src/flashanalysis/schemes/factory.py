"""
Scheme Factory
==============
Maps a ``SchemeKind`` tag to its difference scheme class.

Callers select a forward model by tag, so no code outside this package
needs to know the concrete scheme classes.
"""
from __future__ import annotations

from typing import Dict, Optional, Type

from flashanalysis.exceptions import ConfigurationError
from flashanalysis.schemes.adi import ADIScheme
from flashanalysis.schemes.coupled import CoupledImplicitScheme
from flashanalysis.schemes.explicit import ExplicitScheme
from flashanalysis.schemes.implicit import DiathermicScheme, ImplicitScheme
from flashanalysis.schemes.mixed import MixedScheme
from flashanalysis.schemes.nonlinear import NonlinearScheme
from flashanalysis.schemes.scheme import DifferenceScheme, FixedPointScheme, ProblemKind, SchemeKind

SCHEMES: Dict[SchemeKind, Type[DifferenceScheme]] = {
    cls.KIND: cls
    for cls in (
        ExplicitScheme,
        ImplicitScheme,
        MixedScheme,
        ADIScheme,
        NonlinearScheme,
        CoupledImplicitScheme,
        DiathermicScheme,
    )
}

# Scheme used when only the problem kind is known
DEFAULT_SCHEMES: Dict[ProblemKind, SchemeKind] = {
    ProblemKind.CLASSICAL: SchemeKind.IMPLICIT,
    ProblemKind.CLASSICAL_2D: SchemeKind.ADI,
    ProblemKind.NONLINEAR: SchemeKind.NONLINEAR,
    ProblemKind.PARTICIPATING: SchemeKind.COUPLED,
    ProblemKind.DIATHERMIC: SchemeKind.DIATHERMIC,
}


def create_scheme(
    kind: SchemeKind | str,
    grid_density: Optional[int] = None,
    tau_factor: Optional[float] = None,
    time_limit: Optional[float] = None,
    nonlinear_precision: Optional[float] = None,
) -> DifferenceScheme:
    """
    Instantiate a difference scheme by its tag.

    Args:
        kind: Scheme tag (a ``SchemeKind`` or its string value).
        grid_density: Number of spatial intervals; the scheme default if omitted.
        tau_factor: Time factor; the scheme default if omitted.
        time_limit: Simulated time span (s).
        nonlinear_precision: Fixed-point tolerance; only accepted by iterative schemes.

    Returns:
        An unprepared scheme.

    Raises:
        ConfigurationError: For an unknown tag, or a precision given to a linear scheme.
    """
    try:
        cls = SCHEMES[SchemeKind(kind)]
    except ValueError:
        raise ConfigurationError(f"Unknown scheme '{kind}'. Available: {sorted(SCHEMES)}") from None

    if issubclass(cls, FixedPointScheme):
        if nonlinear_precision is None:
            return cls(grid_density, tau_factor, time_limit)
        return cls(grid_density, tau_factor, time_limit, nonlinear_precision)
    if nonlinear_precision is not None:
        raise ConfigurationError(f"{cls.__name__} does not iterate; nonlinear precision is not applicable.")
    return cls(grid_density, tau_factor, time_limit)


def default_scheme_for(problem_kind: ProblemKind | str, **kwargs) -> DifferenceScheme:
    """Create the default scheme for a problem kind."""
    return create_scheme(DEFAULT_SCHEMES[ProblemKind(problem_kind)], **kwargs)
