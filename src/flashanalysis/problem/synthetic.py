"""
Synthetic Measurements
======================
Builds ``ExperimentalData`` from a forward run.

Why is this file needed?
------------------------
Reading instrument files is left to the caller. For demonstrations and tests
a measurement is instead generated by simulating a problem with known
properties, sampling the curve (including a pre-trigger segment for the
baseline) and adding Gaussian noise.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import numpy as np

from flashanalysis.config import HALF_RISE_FAIL_SAFE_FACTOR, PARKERS_COEFFICIENT, RELATIVE_TIME_MARGIN
from flashanalysis.exceptions import ConfigurationError
from flashanalysis.problem.curves import ExperimentalData

if TYPE_CHECKING:
    from flashanalysis.problem.statements import Problem
    from flashanalysis.schemes.scheme import DifferenceScheme

logger = logging.getLogger(__name__)

# Acquisition time in units of the Parker half-rise time
DEFAULT_DURATION_FACTOR = 2.0 * HALF_RISE_FAIL_SAFE_FACTOR
# Share of the points recorded before the laser shot
PRE_TRIGGER_FRACTION = 0.1


def synthesise_data(
    problem: Problem,
    scheme: DifferenceScheme,
    num_points: int = 500,
    duration: Optional[float] = None,
    noise: float = 0.0,
    seed: Optional[int] = None,
) -> ExperimentalData:
    """
    Simulate a measurement of ``problem``.

    Args:
        problem: Problem with the "true" properties; its curve is overwritten.
        scheme: Scheme used for the forward run.
        num_points: Number of samples, pre-trigger points included.
        duration: Acquisition time after the shot (s); a multiple of the
            Parker half-rise time if omitted.
        noise: Standard deviation of the additive Gaussian noise.
        seed: Seed of the noise generator.

    Returns:
        The noisy series with the default fitting range.
    """
    if num_points < 20:
        raise ConfigurationError(f"At least 20 points are needed, got {num_points}.")
    if noise < 0.0:
        raise ConfigurationError(f"Noise level must be non-negative, got {noise}.")

    props = problem.properties
    if duration is None:
        duration = DEFAULT_DURATION_FACTOR * PARKERS_COEFFICIENT * props.thickness ** 2 / props.diffusivity

    scheme.set_time_limit(RELATIVE_TIME_MARGIN * duration)
    problem.simulate(scheme)

    pre_trigger = int(PRE_TRIGGER_FRACTION * num_points)
    dt = duration / (num_points - pre_trigger)
    times = dt * (np.arange(num_points) - pre_trigger)
    signal = problem.curve.interpolate(times)

    rng = np.random.default_rng(seed)
    if noise > 0.0:
        signal = signal + rng.normal(0.0, noise, size=num_points)

    logger.debug(f"Synthesised {num_points} points over {duration:.4g} s (noise {noise:.3g}).")
    return ExperimentalData(times, signal)
