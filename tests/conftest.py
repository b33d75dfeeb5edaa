"""Shared fixtures: closed-form objectives and small forward problems."""
from __future__ import annotations

import math

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
import pytest

from flashanalysis.exceptions import InstabilityError
from flashanalysis.keywords import Keyword
from flashanalysis.linalg.parameters import Parameter, ParameterVector
from flashanalysis.linalg.segment import Segment
from flashanalysis.problem import ClassicalProblem, ThermalProperties
from flashanalysis.schemes import Pulse
from flashanalysis.search.objective import Objective

KEYWORDS = (Keyword.DIFFUSIVITY, Keyword.HEAT_LOSS, Keyword.MAXTEMP)


class QuadraticObjective(Objective):
    """
    cost(x) = sum w_i (x_i - c_i)^2 on untransformed parameters bounded by [-10, 10].

    Points farther than ``cliff`` from the origin make ``cost`` raise
    ``InstabilityError``; points farther than ``fence`` from the starting point
    get a large penalty. Both are disabled by default.
    """

    def __init__(self, start, centre, weights=None, cliff=math.inf, fence=math.inf):
        n = len(start)
        parameters = [Parameter(keyword=k, bounds=Segment(-10.0, 10.0)) for k in KEYWORDS[:n]]
        self._vector = ParameterVector(parameters, start)
        self._start = np.asarray(start, dtype=np.float64)
        self.centre = np.asarray(centre, dtype=np.float64)
        self.weights = np.ones(n) if weights is None else np.asarray(weights, dtype=np.float64)
        self.cliff = cliff
        self.fence = fence
        self.evaluations = 0
        self._residuals = np.zeros(n)

    def search_vector(self):
        return self._vector.copy()

    def assign(self, vector):
        self._vector = vector.copy()

    def cost(self):
        self.evaluations += 1
        x = self._vector.to_numpy()
        if np.linalg.norm(x) > self.cliff:
            raise InstabilityError("Beyond the cliff.", stage="test")
        self._residuals = np.sqrt(self.weights) * (x - self.centre)
        penalty = 1e6 if np.max(np.abs(x - self._start)) > self.fence else 0.0
        return float(np.sum(self._residuals ** 2)) + penalty

    def residuals(self):
        return self._residuals.copy()


@pytest.fixture
def quadratic():
    """Factory for quadratic objectives."""
    return QuadraticObjective


@pytest.fixture
def headless_plots(monkeypatch):
    """Draw figures on the Agg backend and count the calls to ``plt.show``."""
    matplotlib.use("Agg")
    shown = []
    monkeypatch.setattr(plt, "show", lambda: shown.append(plt.gcf()))
    yield shown
    plt.close("all")


@pytest.fixture
def sample_properties():
    return ThermalProperties(thickness=1e-3, diffusivity=1e-5, maximum_temperature=1.0, heat_loss=0.0)


@pytest.fixture
def short_pulse():
    return Pulse(width=1e-4)


@pytest.fixture
def classical_problem(sample_properties, short_pulse):
    return ClassicalProblem(sample_properties, short_pulse)
