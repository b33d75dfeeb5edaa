import math

import numpy as np
import numpy.testing as npt
import pytest

from flashanalysis.exceptions import ConfigurationError, InstabilityError, IterationLimitError, StepRejectedError
from flashanalysis.keywords import Keyword
from flashanalysis.linalg.matrix import SquareMatrix
from flashanalysis.linalg.parameters import Parameter, ParameterVector
from flashanalysis.linalg.segment import Segment
from flashanalysis.linalg.vector import Vector
from flashanalysis.problem import ExperimentalData, FlatBaseline, HeatingCurve
from flashanalysis.search import (
    BFGSOptimiser,
    Buffer,
    GoldenSectionOptimiser,
    LinearOptimiser,
    LinearSearchKind,
    LMOptimiser,
    OptimiserKind,
    OptimiserSettings,
    Path,
    RangePenalisedLeastSquares,
    RegularisedLeastSquares,
    SR1Optimiser,
    StatisticKind,
    SteepestDescentOptimiser,
    SumOfSquares,
    WolfeOptimiser,
    create_linear_optimiser,
    create_optimiser,
    create_statistic,
)
from flashanalysis.search.state import ComplexPath


def minimise(optimiser, objective, max_iterations=50, target=1e-8):
    """Iterate until the target cost, collecting the committed costs."""
    state = optimiser.init_state(objective)
    costs = [state.cost]
    for _ in range(max_iterations):
        if state.cost < target:
            break
        try:
            optimiser.iteration(objective, state)
        except StepRejectedError:
            break
        costs.append(state.cost)
    return state, costs


class TestGradient:

    def test_matches_analytic_gradient(self, quadratic):
        objective = quadratic(start=[1.0, 2.0], centre=[0.0, 0.0], weights=[1.0, 3.0])
        before = objective.search_vector()
        g = SteepestDescentOptimiser().gradient(objective)
        npt.assert_allclose(g.to_numpy(), [2.0, 12.0], rtol=1e-6)
        assert objective.search_vector() == before

    def test_restores_parameters_when_a_run_fails(self, quadratic):
        objective = quadratic(start=[4.9999, 0.0], centre=[0.0, 0.0], cliff=4.99995)
        before = objective.search_vector()
        with pytest.raises(InstabilityError):
            SteepestDescentOptimiser().gradient(objective)
        assert objective.search_vector() == before

    def test_step_size(self):
        optimiser = SteepestDescentOptimiser()
        params = ParameterVector(
            [Parameter.default(Keyword.HEAT_LOSS), Parameter.default(Keyword.HEAT_LOSS), Parameter.default(Keyword.TIME_SHIFT)],
            [0.5, 0.0, 0.5],
        )
        assert optimiser.step_size(params, 0) == pytest.approx(0.5 * optimiser.settings.gradient_resolution)
        # a zero component falls back to an absolute step
        assert optimiser.step_size(params, 1) == optimiser.settings.gradient_resolution
        assert optimiser.step_size(params, 2) == pytest.approx(0.5 * optimiser.settings.discrete_gradient_resolution)


class TestLinearSearch:

    def path_along(self, objective, direction):
        path = Path(objective.search_vector())
        path.cost = objective.cost()
        path.direction = Vector(direction)
        return path

    def test_domain(self, quadratic):
        x = quadratic(start=[0.0, 0.0], centre=[0.0, 0.0]).search_vector()
        segment = LinearOptimiser.domain(x, Vector([2.0, -1.0]))
        assert segment.minimum == 0.0
        assert segment.maximum == pytest.approx(5.0)

    def test_domain_ignores_zero_components(self, quadratic):
        x = quadratic(start=[9.0, 0.0], centre=[0.0, 0.0]).search_vector()
        assert LinearOptimiser.domain(x, Vector([0.0, 1.0])).maximum == pytest.approx(10.0)
        # at the bound the minimum step is kept
        assert LinearOptimiser.domain(x.with_values(Vector([10.0, 0.0])), Vector([1.0, 0.0])).maximum > 0.0

    def test_domain_of_a_vanishing_direction(self, quadratic):
        x = quadratic(start=[1.0, 2.0], centre=[0.0, 0.0]).search_vector()
        segment = LinearOptimiser.domain(x, Vector([1e-16, -5e-17]))
        assert segment.minimum == 0.0
        assert segment.maximum == LinearOptimiser.MIN_STEP

    def test_golden_section(self, quadratic):
        objective = quadratic(start=[0.0], centre=[6.0])
        path = self.path_along(objective, [2.0])
        before = objective.search_vector()
        alpha = GoldenSectionOptimiser(1e-5).linear_step(objective, path, None)
        assert alpha == pytest.approx(3.0, abs=1e-3)
        assert objective.search_vector() == before

    def test_wolfe_conditions(self, quadratic):
        objective = quadratic(start=[-1.0], centre=[0.0])
        optimiser = SteepestDescentOptimiser()
        path = self.path_along(objective, [2.0])
        path.gradient = optimiser.gradient(objective)
        before = objective.search_vector()

        wolfe = WolfeOptimiser(rng=np.random.default_rng(7))
        alpha = wolfe.linear_step(objective, path, optimiser.gradient)

        assert objective.search_vector() == before
        slope = path.gradient.dot(path.direction)
        candidate = before.with_values(before + path.direction * alpha)
        assert objective.trial_cost(candidate) - path.cost <= WolfeOptimiser.C1 * alpha * slope
        # |φ'(α)| = |4(2α - 1)| against |φ'(0)| = 4
        assert abs(2.0 * alpha - 1.0) <= WolfeOptimiser.C2

    def test_factory(self):
        assert isinstance(create_linear_optimiser("golden_section"), GoldenSectionOptimiser)
        assert isinstance(create_linear_optimiser(LinearSearchKind.WOLFE, seed=1), WolfeOptimiser)
        with pytest.raises(ConfigurationError):
            GoldenSectionOptimiser(resolution=0.0)


class TestOptimisers:

    @pytest.mark.parametrize("kind", [OptimiserKind.STEEPEST_DESCENT, OptimiserKind.BFGS, OptimiserKind.SR1])
    def test_composite_optimisers_converge(self, quadratic, kind):
        objective = quadratic(start=[3.0, -2.0], centre=[1.0, 0.5], weights=[1.0, 4.0])
        settings = OptimiserSettings(optimiser=kind, linear_search=LinearSearchKind.GOLDEN_SECTION)
        state, costs = minimise(create_optimiser(settings), objective)
        assert all(b <= a for a, b in zip(costs, costs[1:]))
        assert state.cost < 1e-3
        npt.assert_allclose(objective.search_vector().to_numpy(), [1.0, 0.5], atol=5e-2)

    def test_bfgs_with_wolfe(self, quadratic):
        objective = quadratic(start=[3.0, -2.0], centre=[1.0, 0.5], weights=[1.0, 4.0])
        settings = OptimiserSettings(optimiser=OptimiserKind.BFGS, seed=11)
        state, costs = minimise(create_optimiser(settings), objective)
        assert all(b <= a for a, b in zip(costs, costs[1:]))
        assert state.cost < costs[0]

    def test_levenberg_marquardt_converges(self, quadratic):
        objective = quadratic(start=[3.0, -2.0, 4.0], centre=[1.0, 0.5, -1.0], weights=[1.0, 4.0, 0.5])
        state, costs = minimise(LMOptimiser(), objective)
        assert all(b <= a for a, b in zip(costs, costs[1:]))
        assert state.cost < 1e-3
        assert state.lambda_ < 1.0

    def test_levenberg_marquardt_at_the_optimum(self, quadratic):
        objective = quadratic(start=[1.0, 0.5], centre=[1.0, 0.5])
        optimiser = LMOptimiser()
        state = optimiser.init_state(objective)
        before = objective.search_vector()

        for attempt in range(1, optimiser.settings.max_failed_attempts + 1):
            assert optimiser.iteration(objective, state) is False
            assert objective.search_vector() == before
            assert state.lambda_ == 2.0 ** attempt
            assert state.compute_jacobian
        assert state.iteration == 0

        with pytest.raises(StepRejectedError):
            optimiser.iteration(objective, state)

    def test_rejected_step_rolls_back_exactly(self, quadratic):
        # every undamped step leaves the fence and is penalised
        objective = quadratic(start=[1.0, 1.0], centre=[0.0, 0.0], fence=0.1)
        optimiser = LMOptimiser()
        state = optimiser.init_state(objective)
        before = objective.search_vector()

        assert optimiser.iteration(objective, state) is False
        assert objective.search_vector() == before
        assert state.failed_attempts == 1
        assert state.lambda_ == 2.0
        assert state.cost == pytest.approx(2.0)

    @pytest.mark.parametrize("linear_search", [LinearSearchKind.WOLFE, LinearSearchKind.GOLDEN_SECTION])
    def test_bfgs_started_at_the_optimum(self, quadratic, linear_search):
        objective = quadratic(start=[1.0, 0.5], centre=[1.0, 0.5])
        settings = OptimiserSettings(optimiser=OptimiserKind.BFGS, linear_search=linear_search, seed=1)
        optimiser = create_optimiser(settings)
        state = optimiser.init_state(objective)
        before = objective.search_vector()

        assert optimiser.iteration(objective, state) is False
        assert objective.search_vector() == before
        assert state.failed_attempts == 1
        assert math.isfinite(state.minimum_point)
        assert 0.0 <= state.minimum_point <= LinearOptimiser.MIN_STEP

    def test_iteration_limit(self, quadratic):
        objective = quadratic(start=[3.0, -2.0], centre=[0.0, 0.0])
        optimiser = LMOptimiser(OptimiserSettings(iteration_limit=1))
        state = optimiser.init_state(objective)
        assert optimiser.iteration(objective, state) is True
        with pytest.raises(IterationLimitError):
            optimiser.iteration(objective, state)

    def test_factory(self):
        assert isinstance(create_optimiser(), LMOptimiser)
        assert isinstance(create_optimiser(OptimiserSettings(optimiser="bfgs")), BFGSOptimiser)
        sr1 = create_optimiser(OptimiserSettings(optimiser=OptimiserKind.SR1, linear_search="golden_section"))
        assert isinstance(sr1, SR1Optimiser)
        assert isinstance(sr1.linear_optimiser, GoldenSectionOptimiser)


class TestHessianUpdates:

    def path_at(self, objective, g0, direction, alpha, hessian=None):
        path = ComplexPath(objective.search_vector())
        path.gradient = Vector(g0)
        path.direction = Vector(direction)
        path.minimum_point = alpha
        if hessian is not None:
            path.hessian = SquareMatrix(hessian)
        return path

    def test_bfgs_update(self, quadratic):
        objective = quadratic(start=[1.0, 2.0], centre=[0.0, 0.0], weights=[1.0, 3.0])
        optimiser = BFGSOptimiser()
        g1 = optimiser.gradient(objective).to_numpy()
        b = np.array([[2.0, 0.5], [0.5, 1.0]])
        g0 = np.array([-1.0, 4.0])
        d = np.array([1.0, -2.0])
        alpha = 0.5
        path = self.path_at(objective, g0, d, alpha, b)

        optimiser.prepare(objective, path)

        y = g1 - g0
        expected = b + np.outer(g0, g0) / g0.dot(d) + np.outer(y, y) / (alpha * y.dot(d))
        npt.assert_allclose(path.hessian.to_numpy(), expected, rtol=1e-10)
        npt.assert_allclose(path.gradient.to_numpy(), g1)

    def test_sr1_update(self, quadratic):
        objective = quadratic(start=[1.0, 2.0], centre=[0.0, 0.0], weights=[1.0, 3.0])
        optimiser = SR1Optimiser()
        g1 = optimiser.gradient(objective).to_numpy()
        # y = (2, 1) and dx = (1, 0) give m1 = (1, 1) against the identity
        path = self.path_at(objective, g1 - [2.0, 1.0], [1.0, 0.0], 1.0)

        optimiser.prepare(objective, path)

        npt.assert_allclose(path.hessian.to_numpy(), [[2.0, 1.0], [1.0, 2.0]], atol=1e-8)
        npt.assert_allclose(path.hessian.multiply(path.inverse_hessian).to_numpy(), np.eye(2), atol=1e-8)

    def test_sr1_skips_a_degenerate_update(self, quadratic):
        objective = quadratic(start=[1.0, 2.0], centre=[0.0, 0.0], weights=[1.0, 3.0])
        optimiser = SR1Optimiser()
        g1 = optimiser.gradient(objective).to_numpy()
        # m1 = y - dx = (0, 1) is orthogonal to dx = (1, 0)
        path = self.path_at(objective, g1 - [1.0, 1.0], [1.0, 0.0], 1.0)

        optimiser.prepare(objective, path)

        assert path.hessian == SquareMatrix.identity(2)
        assert path.inverse_hessian == SquareMatrix.identity(2)
        npt.assert_allclose(path.gradient.to_numpy(), g1)


class TestStatistics:

    @pytest.fixture
    def fit(self):
        times = np.arange(0.0, 11.0) / 10.0
        curve = HeatingCurve(num_points=11)
        for t in times:
            curve.add_point(t, t ** 2)
        curve.apply_baseline(FlatBaseline())
        record = np.arange(-5.0, 11.0) / 10.0
        data = ExperimentalData(record, np.where(record < 0.0, 0.0, record ** 2 + 0.1))
        vector = ParameterVector([Parameter(keyword=Keyword.HEAT_LOSS, bounds=Segment(0.0, 2.0))], [0.5])
        return curve, data, vector

    def test_sum_of_squares(self, fit):
        statistic = create_statistic(StatisticKind.SUM_OF_SQUARES)
        assert statistic.evaluate(*fit) == pytest.approx(0.01, rel=1e-6)
        npt.assert_allclose(statistic.residuals, -0.1, rtol=1e-6)
        assert statistic.value == statistic.evaluate(*fit)

    def test_regularised(self, fit):
        statistic = create_statistic("regularised", 0.2)
        assert isinstance(statistic, RegularisedLeastSquares)
        assert statistic.evaluate(*fit) == pytest.approx(0.01 + 0.2 * 0.25, rel=1e-6)
        assert create_statistic("regularised").strength == RegularisedLeastSquares.DEFAULT_STRENGTH

    def test_range_penalised(self, fit):
        curve, data, vector = fit
        statistic = create_statistic(StatisticKind.RANGE_PENALISED)
        assert isinstance(statistic, RangePenalisedLeastSquares)
        # the whole record after the shot is fitted
        assert statistic.evaluate(curve, data, vector) == pytest.approx(0.01, rel=1e-6)
        data.set_fitting_range(Segment(0.0, 0.5))
        expected = 0.01 + RangePenalisedLeastSquares.DEFAULT_STRENGTH * 0.5
        assert statistic.evaluate(curve, data, vector) == pytest.approx(expected, rel=1e-6)

    def test_strength_rejected_for_ordinary_least_squares(self):
        assert isinstance(create_statistic("sum_of_squares", 0.0), SumOfSquares)
        with pytest.raises(ConfigurationError):
            create_statistic(StatisticKind.SUM_OF_SQUARES, 0.5)


class TestObjective:

    def test_trial_cost_of_an_unstable_candidate(self, quadratic):
        objective = quadratic(start=[0.0, 0.0], centre=[1.0, 1.0], cliff=5.0)
        candidate = objective.search_vector().with_values(Vector([8.0, 0.0]))
        assert objective.trial_cost(candidate) == math.inf
        assert objective.trial_cost(objective.search_vector().with_values(Vector([1.0, 1.0]))) == 0.0


class TestSettings:

    @pytest.mark.parametrize("kwargs", [
        {"iteration_limit": 0},
        {"error_tolerance": 1.5},
        {"gradient_resolution": 0.0},
        {"damping_ratio": 2.0},
        {"buffer_size": 1},
        {"buffer_size": 5, "max_failed_attempts": 4},
        {"max_failed_attempts": -1},
        {"regularisation": -1.0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigurationError):
            OptimiserSettings(**kwargs)

    def test_unknown_optimiser(self):
        with pytest.raises(ValueError):
            OptimiserSettings(optimiser="newton")

    def test_with_options_and_dict(self):
        settings = OptimiserSettings(optimiser="bfgs", seed=3)
        changed = settings.with_options(error_tolerance=1e-4)
        assert settings.error_tolerance != changed.error_tolerance
        assert changed.optimiser == OptimiserKind.BFGS
        d = changed.to_dict()
        assert d["optimiser"] == "bfgs"
        assert d["statistic"] == "sum_of_squares"
        assert OptimiserSettings.from_dict({**d, "unknown": 1}) == changed


class TestBuffer:

    def vector(self, values):
        return ParameterVector([Parameter.default(Keyword.HEAT_LOSS)] * len(values), values)

    def test_converges_on_identical_entries(self):
        buffer = Buffer(3)
        for _ in range(2):
            buffer.fill(self.vector([0.5, 1.0]), 1.0)
            assert not buffer.is_converged(1e-3)
        buffer.fill(self.vector([0.5, 1.0]), 1.0)
        assert buffer.is_converged(1e-3)
        assert buffer.average_cost() == 1.0

    def test_spread_prevents_convergence(self):
        buffer = Buffer(2)
        buffer.fill(self.vector([0.5]), 2.0)
        buffer.fill(self.vector([0.6]), 1.0)
        assert not buffer.is_converged(1e-3)
        assert buffer.is_converged(0.2)
        npt.assert_allclose(buffer.average(), [0.55])

    def test_rolling_window(self):
        buffer = Buffer(2)
        for value in (0.1, 0.9, 0.9):
            buffer.fill(self.vector([value]), 0.0)
        assert len(buffer) == 2
        assert buffer.is_converged(1e-6)

    def test_size(self):
        with pytest.raises(ConfigurationError):
            Buffer(1)
        assert math.isnan(Buffer(2).average_cost())
