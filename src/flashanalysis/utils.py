from __future__ import annotations

import functools
import logging
import time
from typing import TYPE_CHECKING, Callable

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

ABSOLUTE_ZERO_CELSIUS = -273.15

logger = logging.getLogger(__name__)


def celsius_to_kelvin(celsius: float) -> float:
    """Convert Celsius to Kelvin."""
    return celsius - ABSOLUTE_ZERO_CELSIUS


def midpoint_integral(
    func: Callable[[npt.NDArray[np.float64]], npt.NDArray[np.float64]],
    lower: float,
    upper: float,
    segments: int,
) -> float:
    """
    Integrate a vectorised function with the composite midpoint rule.

    Args:
        func: Function accepting an array of abscissas.
        lower: Lower integration limit.
        upper: Upper integration limit.
        segments: Number of equal sub-intervals.

    Returns:
        The approximate integral.
    """
    h = (upper - lower) / segments
    nodes = lower + h * (np.arange(segments) + 0.5)
    return float(np.sum(func(nodes)) * h)


def timer(func: Callable) -> Callable:
    """Log the wall-clock duration of a call at DEBUG level."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        logger.debug(f"{func.__qualname__} finished in {time.perf_counter() - start:.3f} s")
        return result

    return wrapper
