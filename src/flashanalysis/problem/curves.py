"""
Heating Curves
==============
Time-temperature series on both sides of the fit.

Why is this file needed?
------------------------
1. Simulation output: A difference scheme writes its rear-face signal into a
   ``HeatingCurve``, which then rescales it, shifts its time origin and adds
   the baseline before it is compared with the measurement.
2. Measurement input: ``ExperimentalData`` holds the recorded series and the
   fitting range, and derives the starting estimates of a search (the filtered
   signal maximum and the half-rise time).
3. Comparison: The simulated curve is evaluated at the measurement times
   through a cubic spline, so the two series need not share a time axis.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
import scipy as sp

from flashanalysis.config import (
    CRUDE_AVERAGE_REDUCTION,
    DEFAULT_NUM_POINTS,
    HALF_RISE_FAIL_SAFE_FACTOR,
    TRUNCATION_CUTOFF_FACTOR,
)
from flashanalysis.exceptions import ConfigurationError
from flashanalysis.linalg.segment import Segment

if TYPE_CHECKING:
    import numpy.typing as npt

    from flashanalysis.problem.baseline import Baseline

logger = logging.getLogger(__name__)


class HeatingCurve:
    """
    Simulated detector signal.

    Times are stored relative to the laser shot; ``time_shift`` moves the
    whole curve along the measurement time axis.

    Args:
        num_points: Number of samples the scheme records (at least 2).
        time_shift: Offset of the time origin (s).
    """

    def __init__(self, num_points: int = DEFAULT_NUM_POINTS, time_shift: float = 0.0) -> None:
        if int(num_points) < 2:
            raise ConfigurationError(f"A heating curve needs at least 2 points, got {num_points}.")
        self.num_points = int(num_points)
        self.time_shift = float(time_shift)
        self._times: List[float] = []
        self._signal: List[float] = []
        self._adjusted: Optional[npt.NDArray[np.float64]] = None
        self._spline: Optional[sp.interpolate.CubicSpline] = None
        self._baseline: Optional[Baseline] = None

    def clear(self) -> None:
        self._times.clear()
        self._signal.clear()
        self._adjusted = None
        self._spline = None

    def add_point(self, time: float, signal: float) -> None:
        self._times.append(float(time))
        self._signal.append(float(signal))

    def __len__(self) -> int:
        return len(self._times)

    @property
    def times(self) -> npt.NDArray[np.float64]:
        """Sample times on the measurement axis (shift applied)."""
        return np.asarray(self._times, dtype=np.float64) + self.time_shift

    @property
    def signal(self) -> npt.NDArray[np.float64]:
        """Rescaled signal without the baseline."""
        return np.asarray(self._signal, dtype=np.float64)

    @property
    def adjusted_signal(self) -> npt.NDArray[np.float64]:
        """Signal with the baseline added; the plain signal before a baseline is applied."""
        return self.signal if self._adjusted is None else self._adjusted

    def apparent_maximum(self) -> float:
        if not self._signal:
            return float("nan")
        return max(self._signal)

    def scale(self, factor: float) -> None:
        self._signal = [s * factor for s in self._signal]
        self._adjusted = None
        self._spline = None

    def time_limit(self) -> float:
        return self._times[-1] + self.time_shift if self._times else 0.0

    def apply_baseline(self, baseline: Baseline) -> None:
        """
        Add the baseline to the signal and rebuild the interpolating spline.

        Raises:
            ConfigurationError: If the curve holds fewer than two points.
        """
        if len(self._times) < 2:
            raise ConfigurationError("Cannot interpolate a heating curve with fewer than 2 points.")
        times = self.times
        self._baseline = baseline
        self._adjusted = self.signal + np.asarray(baseline.value_at(times), dtype=np.float64)
        self._spline = sp.interpolate.CubicSpline(times, self._adjusted)

    def interpolate(self, time: float | npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """
        Evaluate the baseline-adjusted curve at arbitrary times.

        Before the (shifted) laser shot the value is the baseline alone; after
        the last sample it is held at the last value.
        """
        if self._spline is None or self._baseline is None:
            raise ConfigurationError("Heating curve has no interpolation; apply a baseline first.")
        t = np.atleast_1d(np.asarray(time, dtype=np.float64))
        times = self.times
        start, end = times[0], times[-1]
        inside = np.clip(t, start, end)
        result = self._spline(inside)
        result = np.where(t < start, self._baseline.value_at(t), result)
        result = np.where(t > end, self._adjusted[-1], result)
        return result

    def copy(self) -> HeatingCurve:
        curve = HeatingCurve(self.num_points, self.time_shift)
        curve._times = list(self._times)
        curve._signal = list(self._signal)
        if self._baseline is not None and len(curve) >= 2:
            curve.apply_baseline(self._baseline)
        return curve

    def plot(self, data: Optional[ExperimentalData] = None, title: str = "Heating curve") -> None:
        """Plot the simulated curve, optionally over the measurement."""
        plt.rcParams["figure.constrained_layout.use"] = True
        plt.figure(figsize=(8, 5))
        if data is not None:
            plt.plot(data.times, data.temperatures, 'o', color='gray', ms=2, alpha=0.5, label='Measurement')
        plt.plot(self.times, self.adjusted_signal, 'r', lw=2, label='Model')
        plt.grid(visible=True, which='major', axis='both', linestyle='-', color='gray', lw=0.5)
        plt.xlabel('Time [s]')
        plt.ylabel('Signal [K]')
        plt.title(title)
        plt.legend()
        plt.show()

    def __repr__(self) -> str:
        return f"HeatingCurve(points={len(self)}/{self.num_points}, shift={self.time_shift:.4g} s)"


class ExperimentalData:
    """
    Recorded detector signal of one laser shot.

    Args:
        times: Measurement times (s), increasing; the pulse fires at t = 0.
        temperatures: Detector signal (K or arbitrary units).
        fitting_range: Time segment used for the residuals; by default every
            point from the laser shot onwards.
    """

    def __init__(
        self,
        times: npt.ArrayLike,
        temperatures: npt.ArrayLike,
        fitting_range: Optional[Segment] = None,
    ) -> None:
        t = np.asarray(times, dtype=np.float64).reshape(-1)
        y = np.asarray(temperatures, dtype=np.float64).reshape(-1)
        if t.size != y.size:
            raise ConfigurationError(f"Got {t.size} times but {y.size} temperatures.")
        if t.size < 2:
            raise ConfigurationError("Experimental data needs at least 2 points.")
        if np.any(np.diff(t) <= 0.0):
            raise ConfigurationError("Measurement times must be strictly increasing.")
        if not (np.all(np.isfinite(t)) and np.all(np.isfinite(y))):
            raise ConfigurationError("Experimental data contains non-finite values.")
        t.flags.writeable = False
        y.flags.writeable = False
        self.times = t
        self.temperatures = y
        self.set_fitting_range(fitting_range or Segment(max(0.0, t[0]), t[-1]))

    def __len__(self) -> int:
        return self.times.size

    @property
    def fitting_range(self) -> Segment:
        return self._range

    @property
    def index_range(self) -> Tuple[int, int]:
        """First and last index (inclusive) inside the fitting range."""
        return self._start, self._end

    def set_fitting_range(self, segment: Segment) -> None:
        """
        Restrict the residuals to a time segment.

        Raises:
            ConfigurationError: If the segment contains fewer than two points.
        """
        start = int(np.searchsorted(self.times, segment.minimum, side='left'))
        end = int(np.searchsorted(self.times, segment.maximum, side='right')) - 1
        if end - start < 1:
            raise ConfigurationError(f"Fitting range [{segment.minimum}, {segment.maximum}] holds fewer than 2 points.")
        self._range = segment
        self._start, self._end = start, end

    def fitting_times(self) -> npt.NDArray[np.float64]:
        return self.times[self._start:self._end + 1]

    def fitting_temperatures(self) -> npt.NDArray[np.float64]:
        return self.temperatures[self._start:self._end + 1]

    def time_limit(self) -> float:
        """Last time inside the fitting range."""
        return float(self.times[self._end])

    def crude_average(self, reduction: int = CRUDE_AVERAGE_REDUCTION) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """
        Block-average the fitting range to suppress noise.

        Args:
            reduction: Ratio of the total number of points to the number of blocks.

        Returns:
            Tuple ``(times, values)`` with one entry per block, the time taken
            at the block centre. Falls back to the raw points when there are
            too few of them to average.
        """
        blocks = len(self) // reduction
        step = (self._end - self._start) // blocks if blocks > 0 else 0
        if blocks < 2 or step < 1:
            return self.fitting_times().copy(), self.fitting_temperatures().copy()

        count = blocks - 1
        stop = self._start + step * count
        values = self.temperatures[self._start:stop].reshape(count, step).mean(axis=1)
        centres = self._start + step * np.arange(count) + step // 2
        return self.times[centres], values

    def maximum_temperature(self) -> float:
        """Maximum of the block-averaged signal."""
        _, values = self.crude_average()
        return float(np.max(values))

    def half_rise_time(self, baseline: Baseline) -> float:
        """
        Time at which the filtered signal first crosses half its rise.

        The baseline is fitted to the pre-pulse points first. If no crossing
        is found, a fraction of the acquisition time is returned instead.
        """
        times, values = self.crude_average()
        baseline.fit_to(self.times, self.temperatures)
        half_maximum = 0.5 * (float(np.max(values)) + float(baseline.value_at(0.0)))

        crossings = np.nonzero((values[:-1] < half_maximum) & (values[1:] >= half_maximum))[0]
        if crossings.size == 0:
            fallback = float(self.times[-1]) / HALF_RISE_FAIL_SAFE_FACTOR
            logger.warning(f"Half-rise time not found; falling back to {fallback:.4g} s.")
            return fallback
        return float(times[crossings[-1]])

    def is_acquisition_time_sensible(self, baseline: Baseline) -> bool:
        """True if the record ends before the truncation cutoff."""
        return float(self.times[-1]) < TRUNCATION_CUTOFF_FACTOR * self.half_rise_time(baseline)

    def truncate(self, baseline: Baseline) -> None:
        """Cut the fitting range at a multiple of the half-rise time."""
        cutoff = TRUNCATION_CUTOFF_FACTOR * self.half_rise_time(baseline)
        logger.info(f"Truncating fitting range at {cutoff:.4g} s.")
        self.set_fitting_range(self._range.with_maximum(min(cutoff, self._range.maximum)))

    def plot(self, title: str = "Experimental data") -> None:
        plt.rcParams["figure.constrained_layout.use"] = True
        plt.figure(figsize=(8, 5))
        plt.plot(self.times, self.temperatures, 'o', color='gray', ms=2, label='Measurement')
        plt.axvspan(self._range.minimum, self._range.maximum, color='tab:blue', alpha=0.08, label='Fitting range')
        plt.grid(visible=True, which='major', axis='both', linestyle='-', color='gray', lw=0.5)
        plt.xlabel('Time [s]')
        plt.ylabel('Signal [K]')
        plt.title(title)
        plt.legend()
        plt.show()

    def __repr__(self) -> str:
        return (f"ExperimentalData(points={len(self)}, "
                f"range=[{self._range.minimum:.4g}, {self._range.maximum:.4g}] s)")
