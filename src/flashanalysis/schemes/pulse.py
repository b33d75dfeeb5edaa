"""
Laser Pulses
============
Temporal pulse shapes, the physical pulse description and its discrete
counterpart mapped onto a grid.

Why is this file needed?
------------------------
1. Physics: The heat source of a laser-flash experiment is a short pulse of
   finite duration and (in 2-D) finite spot size.
2. Discretisation: ``DiscretePulse`` expresses the pulse in dimensionless grid
   time, rounds its width to the time step and normalises it to unit energy,
   so every scheme sees the same absorbed energy regardless of the shape.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

import matplotlib.pyplot as plt
import numpy as np
import scipy as sp

from flashanalysis.config import PULSE_AREA_SEGMENTS, WIDTH_TOLERANCE_FACTOR
from flashanalysis.exceptions import ConfigurationError
from flashanalysis.utils import midpoint_integral

if TYPE_CHECKING:
    import numpy.typing as npt

    from flashanalysis.schemes.grid import Grid, Grid2D

logger = logging.getLogger(__name__)

_WIDTH_EPS = 1e-10


class PulseShape(ABC):
    """
    Abstract base class for temporal pulse shapes.
    """
    NAME: str = "Pulse Shape"

    @abstractmethod
    def evaluate(self, time: float | npt.NDArray[np.float64], width: float) -> npt.NDArray[np.float64]:
        """
        Relative laser power at the given time.

        Args:
            time: Dimensionless time (scalar or array).
            width: Dimensionless pulse width.

        Returns:
            Power values, zero outside ``[0, width]``.
        """
        pass

    def plot(self, width: float = 1.0) -> None:
        """
        Plot the shape over twice its width.
        """
        times = np.linspace(0.0, 2.0 * width, 500)
        power = self.evaluate(times, width)

        plt.rcParams["figure.constrained_layout.use"] = True
        plt.figure(figsize=(7, 5))
        plt.plot(times / width, power * width, 'r', lw=2)
        plt.grid(visible=True, which='major', axis='both', linestyle='-', color='gray', lw=0.5)
        plt.title(f"{self.NAME} pulse")
        plt.xlabel("Time / pulse width")
        plt.ylabel("Relative power")
        plt.show()


class RectangularShape(PulseShape):
    NAME = "Rectangular"

    def evaluate(self, time, width):
        return 0.5 / width * (1.0 + np.sign(width - np.asarray(time, dtype=np.float64)))


class TriangularShape(PulseShape):
    NAME = "Triangular"

    def evaluate(self, time, width):
        t = np.asarray(time, dtype=np.float64)
        return (1.0 / width) * (1.0 + np.sign(width - t)) * (1.0 - np.abs(2.0 * t - width) / width)


class GaussianShape(PulseShape):
    """Gaussian centred on the middle of the pulse, practically zero at its edges."""
    NAME = "Gaussian"

    def evaluate(self, time, width):
        t = np.asarray(time, dtype=np.float64)
        return (1.0 / width) * 5.0 / np.sqrt(np.pi) * np.exp(-25.0 * (t / width - 0.5) ** 2)


class TrapezoidalShape(PulseShape):
    """
    Linear rise, plateau and linear fall.

    Args:
        rise: Fraction of the width spent rising.
        fall: Fraction of the width spent falling.
    """
    NAME = "Trapezoidal"

    def __init__(self, rise: float = 0.15, fall: float = 0.25) -> None:
        if rise <= 0.0 or fall <= 0.0 or rise + fall > 1.0:
            raise ConfigurationError(f"Invalid trapezoid: rise={rise}, fall={fall}.")
        self.rise = rise
        self.fall = fall

    def height(self, width: float) -> float:
        return 2.0 / (width * (2.0 - self.rise - self.fall))

    def evaluate(self, time, width):
        r = np.asarray(time, dtype=np.float64) / width
        h = self.height(width)
        return np.select(
            [r < 0.0, r < self.rise, r < 1.0 - self.fall, r < 1.0],
            [0.0, r * h / self.rise, h, (1.0 - r) * h / self.fall],
            default=0.0,
        )


class ExponentiallyModifiedGaussianShape(PulseShape):
    """
    Skewed pulse: a gaussian convolved with an exponential decay.

    Args:
        mu: Centre of the gaussian component (fraction of the width).
        sigma: Spread of the gaussian component.
        lam: Rate of the exponential component.
    """
    NAME = "Exponentially Modified Gaussian"

    def __init__(self, mu: float = 0.1, sigma: float = 0.1, lam: float = 5.0) -> None:
        if sigma <= 0.0 or lam <= 0.0:
            raise ConfigurationError(f"EMG requires sigma > 0 and lambda > 0, got {sigma}, {lam}.")
        self.mu = mu
        self.sigma = sigma
        self.lam = lam

    def evaluate(self, time, width):
        r = np.asarray(time, dtype=np.float64) / width
        half = 0.5 * self.lam
        sigma_sq = self.sigma * self.sigma
        value = (half * np.exp(half * (2.0 * self.mu + self.lam * sigma_sq - 2.0 * r))
                 * sp.special.erfc((self.mu + self.lam * sigma_sq - r) / (np.sqrt(2.0) * self.sigma)))
        return np.where((r >= 0.0) & (r <= 1.0), value / width, 0.0)


@dataclass
class Pulse:
    """
    Physical laser pulse.

    Attributes:
        width: Pulse duration (s).
        shape: Temporal shape.
    """
    width: float = 1e-3
    shape: PulseShape = field(default_factory=RectangularShape)

    def __post_init__(self) -> None:
        if not np.isfinite(self.width) or self.width < 0.0:
            raise ConfigurationError(f"Pulse width must be non-negative, got {self.width}.")


@dataclass
class Pulse2D(Pulse):
    """
    Pulse with a finite circular spot.

    Attributes:
        spot_diameter: Laser spot diameter (m).
        laser_energy: Pulse energy (J), if known.
    """
    spot_diameter: float = 10e-3
    laser_energy: Optional[float] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if not np.isfinite(self.spot_diameter) or self.spot_diameter < 0.0:
            raise ConfigurationError(f"Spot diameter must be non-negative, got {self.spot_diameter}.")


class DiscretePulse:
    """
    A pulse expressed in dimensionless time on a specific grid.

    Args:
        pulse: The physical pulse.
        grid: Grid providing the time step.
        characteristic_time: Time scale l²/a used to make times dimensionless (s).
    """

    def __init__(self, pulse: Pulse, grid: Grid, characteristic_time: float) -> None:
        self.pulse = pulse
        self.grid = grid
        self.characteristic_time = characteristic_time

        resolved = self.resolved_width()
        self.width = max(pulse.width, resolved)
        self.shape = pulse.shape
        if pulse.width < resolved - _WIDTH_EPS:
            logger.debug(f"Pulse width {pulse.width:.3e} s is below resolution; using a rectangular pulse.")
            self.shape = RectangularShape()

        self.discrete_width = 0.0
        self.normalisation = 0.0
        self.recalculate()

    def resolved_width(self) -> float:
        """Smallest pulse width (s) the discrete representation keeps."""
        return self.characteristic_time / WIDTH_TOLERANCE_FACTOR

    def recalculate(self) -> None:
        """Round the width to the current time step and renormalise to unit energy."""
        self.discrete_width = self.grid.grid_time(self.width, self.characteristic_time)
        if self.discrete_width <= 0.0:
            self.normalisation = 0.0
            return
        area = midpoint_integral(
            lambda t: self.shape.evaluate(t, self.discrete_width), 0.0, self.discrete_width, PULSE_AREA_SEGMENTS
        )
        self.normalisation = 1.0 / area

    def laser_power_at(self, time: float | npt.NDArray[np.float64]) -> float | npt.NDArray[np.float64]:
        """Normalised power at dimensionless time(s)."""
        if self.discrete_width <= 0.0:
            return np.zeros_like(np.asarray(time, dtype=np.float64)) if np.ndim(time) else 0.0
        power = self.normalisation * self.shape.evaluate(time, self.discrete_width)
        if np.ndim(time) == 0:
            return float(power)
        return power


class DiscretePulse2D(DiscretePulse):
    """
    Discrete pulse that also knows the dimensionless spot radius.

    Args:
        pulse: The physical pulse with spot diameter.
        grid: Two-dimensional grid.
        characteristic_time: Time scale l²/a (s).
        sample_diameter: Sample diameter (m); radii are scaled by its half.
    """

    def __init__(self, pulse: Pulse2D, grid: Grid2D, characteristic_time: float, sample_diameter: float) -> None:
        self.coordinate_factor = sample_diameter / 2.0
        self.discrete_spot = 0.0
        super().__init__(pulse, grid, characteristic_time)

    def recalculate(self) -> None:
        super().recalculate()
        self.discrete_spot = self.grid.grid_radial_distance(  # type: ignore[attr-defined]
            self.pulse.spot_diameter / 2.0, self.coordinate_factor  # type: ignore[attr-defined]
        )
