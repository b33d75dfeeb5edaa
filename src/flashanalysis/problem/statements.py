"""
Problem Statements
==================
The physical model a search fits to a measurement.

Why is this file needed?
------------------------
1. Ownership: A problem bundles everything a forward run reads (thermal
   properties, the laser pulse, the baseline) and the curve it writes.
2. Optimisation seam: ``optimisation_vector`` exports the quantities a search
   adjusts as a ``ParameterVector``; ``assign`` writes a candidate back. The
   optimisers never touch the physical model directly.
3. Initial guess: ``retrieve_data`` derives starting values (signal rise,
   Parker diffusivity, baseline) from the measurement, and the default search
   bounds are centred on them.

Classes:
    ClassicalProblem: Linearised 1-D problem with Biot losses.
    TwoDimensionalProblem: Finite laser spot, side losses, field of view.
    NonlinearProblem: Radiative (T^4) face losses.
    ParticipatingMediumProblem: Semitransparent sample with radiative transfer.
    DiathermicProblem: Diathermic sample with face-to-face radiative coupling.
"""
from __future__ import annotations

import logging
from abc import ABC
from typing import ClassVar, Dict, Iterable, Optional, Tuple

from flashanalysis.config import DEFAULT_NUM_POINTS
from flashanalysis.exceptions import ConfigurationError, IllegalParametersError
from flashanalysis.keywords import KEYWORD_METADATA, Keyword
from flashanalysis.linalg.parameters import Parameter, ParameterVector
from flashanalysis.linalg.segment import Segment
from flashanalysis.problem.baseline import Baseline, FlatBaseline
from flashanalysis.problem.curves import ExperimentalData, HeatingCurve
from flashanalysis.problem.properties import ThermalProperties
from flashanalysis.schemes.pulse import Pulse, Pulse2D
from flashanalysis.schemes.scheme import DifferenceScheme, ProblemKind

logger = logging.getLogger(__name__)

# Keywords whose value lives on ThermalProperties under the same name
_PROPERTY_KEYWORDS = frozenset({
    Keyword.DIFFUSIVITY,
    Keyword.HEAT_LOSS,
    Keyword.HEAT_LOSS_SIDE,
    Keyword.MAXTEMP,
    Keyword.OPTICAL_THICKNESS,
    Keyword.PLANCK_NUMBER,
    Keyword.EMISSIVITY,
    Keyword.DIATHERMIC_COEFFICIENT,
})

_BASELINE_KEYWORDS = frozenset({Keyword.BASELINE_INTERCEPT, Keyword.BASELINE_SLOPE})

# Search bounds relative to the starting estimate
DIFFUSIVITY_BOUNDS = (0.01, 20.0)
MAXTEMP_BOUNDS = (0.5, 1.5)
TIME_SHIFT_FRACTION = 0.25


class Problem(ABC):
    """
    Base class of the problem statements.

    Args:
        properties: Sample and experiment properties.
        pulse: Laser pulse; a plain ``Pulse`` unless the problem needs a spot.
        baseline: Signal offset model.
        num_points: Samples recorded by the forward run.
    """
    KIND: ClassVar[ProblemKind]
    KEYWORDS: ClassVar[Tuple[Keyword, ...]] = (
        Keyword.DIFFUSIVITY,
        Keyword.HEAT_LOSS,
        Keyword.MAXTEMP,
        Keyword.TIME_SHIFT,
        Keyword.BASELINE_INTERCEPT,
        Keyword.BASELINE_SLOPE,
    )
    # Keywords a search adjusts unless told otherwise
    DEFAULT_ACTIVE: ClassVar[Tuple[Keyword, ...]] = (
        Keyword.DIFFUSIVITY,
        Keyword.HEAT_LOSS,
        Keyword.MAXTEMP,
    )

    def __init__(
        self,
        properties: Optional[ThermalProperties] = None,
        pulse: Optional[Pulse] = None,
        baseline: Optional[Baseline] = None,
        num_points: int = DEFAULT_NUM_POINTS,
    ) -> None:
        self.properties = properties if properties is not None else ThermalProperties()
        self.pulse = pulse if pulse is not None else self._default_pulse()
        self.baseline = baseline if baseline is not None else FlatBaseline()
        self.curve = HeatingCurve(num_points)
        # Starting estimates the search bounds are centred on
        self._estimates: Dict[Keyword, float] = {}

    @property
    def kind(self) -> ProblemKind:
        return self.KIND

    def _default_pulse(self) -> Pulse:
        return Pulse()

    def maximum_heating(self) -> float:
        """Adiabatic temperature rise used to make the nonlinear terms dimensionless (K)."""
        if isinstance(self.pulse, Pulse2D):
            return self.properties.maximum_heating(self.pulse.laser_energy, self.pulse.spot_diameter)
        return self.properties.maximum_temperature

    # ---- Parameter access ----

    def value_of(self, keyword: Keyword) -> float:
        self._require(keyword)
        if keyword in _PROPERTY_KEYWORDS:
            return float(getattr(self.properties, keyword.value))
        if keyword == Keyword.TIME_SHIFT:
            return self.curve.time_shift
        return self.baseline.get(keyword)

    def set_value(self, keyword: Keyword, value: float) -> None:
        self._require(keyword)
        if keyword in _PROPERTY_KEYWORDS:
            setattr(self.properties, keyword.value, float(value))
        elif keyword == Keyword.TIME_SHIFT:
            self.curve.time_shift = float(value)
        else:
            self.baseline.set(keyword, value)

    def _require(self, keyword: Keyword) -> None:
        if keyword not in self.KEYWORDS:
            raise ConfigurationError(f"{type(self).__name__} has no parameter '{keyword}'.")
        if keyword in _BASELINE_KEYWORDS and keyword not in self.baseline.KEYWORDS:
            raise ConfigurationError(f"{type(self.baseline).__name__} has no parameter '{keyword}'.")

    def default_bounds(self, keyword: Keyword) -> Segment:
        """
        Search bounds for a keyword.

        Diffusivity and signal rise are bounded relative to their starting
        estimates, the time shift relative to the characteristic time; all
        other keywords use their metadata defaults.
        """
        if keyword == Keyword.DIFFUSIVITY:
            a = self._estimates.get(keyword, self.properties.diffusivity)
            return Segment(DIFFUSIVITY_BOUNDS[0] * a, DIFFUSIVITY_BOUNDS[1] * a)
        if keyword == Keyword.MAXTEMP:
            signal = self._estimates.get(keyword, self.properties.maximum_temperature)
            return Segment(MAXTEMP_BOUNDS[0] * signal, MAXTEMP_BOUNDS[1] * signal)
        if keyword == Keyword.TIME_SHIFT:
            limit = TIME_SHIFT_FRACTION * self.properties.characteristic_time()
            return Segment(-limit, limit)
        return Segment(*KEYWORD_METADATA[keyword].bounds)

    def optimisation_vector(self, keywords: Optional[Iterable[Keyword]] = None) -> ParameterVector:
        """
        Export the current values of the active keywords.

        Args:
            keywords: Keywords to optimise; ``DEFAULT_ACTIVE`` if omitted.

        Returns:
            A parameter vector holding the apparent (transformed) values.
        """
        keywords = tuple(self.DEFAULT_ACTIVE if keywords is None else keywords)
        if not keywords:
            raise ConfigurationError("At least one parameter must be active.")
        parameters = [Parameter.default(k, self.default_bounds(k)) for k in keywords]
        physical = []
        for p in parameters:
            value = self.value_of(p.keyword)
            if not p.bounds.contains(value):
                clamped = min(max(value, p.bounds.minimum), p.bounds.maximum)
                logger.warning(f"Starting value of {p.keyword} ({value:.4g}) outside its bounds; using {clamped:.4g}.")
                value = clamped
            physical.append(value)
        return ParameterVector.from_physical(parameters, physical)

    def assign(self, vector: ParameterVector) -> None:
        """
        Write a candidate parameter vector into the model.

        Raises:
            IllegalParametersError: If any physical value is non-finite or out of bounds.
        """
        malformed = vector.find_malformed()
        if malformed:
            raise IllegalParametersError(f"Malformed parameters: {', '.join(map(str, malformed))}.", stage="assign")
        for i, keyword in enumerate(vector.keywords):
            self.set_value(keyword, vector.inverse_transform(i))

    # ---- Data ----

    def retrieve_data(self, data: ExperimentalData) -> None:
        """
        Initialise the model from a measurement.

        Fits the baseline to the pre-pulse points, sets the signal rise from
        the filtered maximum and the diffusivity from the Parker formula.
        """
        half_rise = data.half_rise_time(self.baseline)
        signal = data.maximum_temperature() - float(self.baseline.value_at(0.0))
        if signal <= 0.0:
            raise ConfigurationError(f"Measured signal does not rise above the baseline (rise = {signal:.4g}).")
        self.properties.maximum_temperature = signal
        self.properties.diffusivity = self.properties.parker_diffusivity(half_rise)
        self._estimates = {Keyword.MAXTEMP: signal, Keyword.DIFFUSIVITY: self.properties.diffusivity}
        logger.info(
            f"Estimates from data: rise = {signal:.4g}, t1/2 = {half_rise:.4g} s, "
            f"a = {self.properties.diffusivity:.4g} m²/s"
        )

    def simulate(self, scheme: DifferenceScheme) -> HeatingCurve:
        """Run the forward model and apply the baseline to the result."""
        scheme.solve(self)
        self.curve.apply_baseline(self.baseline)
        return self.curve

    def copy(self) -> Problem:
        problem = type(self)(self.properties.copy(), self.pulse, self.baseline.copy(), self.curve.num_points)
        problem.curve.time_shift = self.curve.time_shift
        problem._estimates = dict(self._estimates)
        return problem

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.properties!r}, baseline={self.baseline!r})"


class ClassicalProblem(Problem):
    KIND = ProblemKind.CLASSICAL


class TwoDimensionalProblem(Problem):
    KIND = ProblemKind.CLASSICAL_2D
    KEYWORDS = Problem.KEYWORDS + (Keyword.HEAT_LOSS_SIDE,)

    def __init__(
        self,
        properties: Optional[ThermalProperties] = None,
        pulse: Optional[Pulse2D] = None,
        baseline: Optional[Baseline] = None,
        num_points: int = DEFAULT_NUM_POINTS,
    ) -> None:
        if pulse is not None and not isinstance(pulse, Pulse2D):
            raise ConfigurationError(f"{type(self).__name__} requires a pulse with a spot diameter.")
        super().__init__(properties, pulse, baseline, num_points)

    def _default_pulse(self) -> Pulse2D:
        return Pulse2D()


class NonlinearProblem(TwoDimensionalProblem):
    """
    Radiative face losses, ``Bi * ((T / T0)^4 - 1)``.

    The 2-D pulse is used only for its energy and spot, which set the
    maximum heating; the conduction itself stays one-dimensional.
    """
    KIND = ProblemKind.NONLINEAR
    KEYWORDS = Problem.KEYWORDS


class ParticipatingMediumProblem(NonlinearProblem):
    KIND = ProblemKind.PARTICIPATING
    KEYWORDS = Problem.KEYWORDS + (
        Keyword.OPTICAL_THICKNESS,
        Keyword.PLANCK_NUMBER,
        Keyword.EMISSIVITY,
    )
    DEFAULT_ACTIVE = Problem.DEFAULT_ACTIVE + (Keyword.OPTICAL_THICKNESS, Keyword.PLANCK_NUMBER)


class DiathermicProblem(Problem):
    KIND = ProblemKind.DIATHERMIC
    KEYWORDS = Problem.KEYWORDS + (Keyword.DIATHERMIC_COEFFICIENT,)
    DEFAULT_ACTIVE = Problem.DEFAULT_ACTIVE + (Keyword.DIATHERMIC_COEFFICIENT,)


PROBLEMS = {
    cls.KIND: cls
    for cls in (ClassicalProblem, TwoDimensionalProblem, NonlinearProblem, ParticipatingMediumProblem, DiathermicProblem)
}


def create_problem(kind: ProblemKind | str, **kwargs) -> Problem:
    try:
        cls = PROBLEMS[ProblemKind(kind)]
    except ValueError:
        raise ConfigurationError(f"Unknown problem '{kind}'. Available: {sorted(PROBLEMS)}") from None
    return cls(**kwargs)
