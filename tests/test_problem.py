import math

import numpy as np
import numpy.testing as npt
import pytest

from flashanalysis.config import HALF_RISE_FAIL_SAFE_FACTOR, TRUNCATION_CUTOFF_FACTOR
from flashanalysis.exceptions import ConfigurationError, IllegalParametersError
from flashanalysis.keywords import Keyword
from flashanalysis.linalg.parameters import Parameter, ParameterVector
from flashanalysis.linalg.segment import Segment
from flashanalysis.problem import (
    Baseline,
    ClassicalProblem,
    ExperimentalData,
    FlatBaseline,
    HeatingCurve,
    LinearBaseline,
    ThermalProperties,
    TwoDimensionalProblem,
    create_problem,
)
from flashanalysis.problem.synthetic import PRE_TRIGGER_FRACTION, synthesise_data
from flashanalysis.schemes import ProblemKind, Pulse
from flashanalysis.schemes.implicit import ImplicitScheme


def pre_pulse(n=40, intercept=0.0, slope=0.0, seed=0):
    rng = np.random.default_rng(seed)
    times = np.linspace(-1.0, -0.01, n)
    return times, intercept + slope * times + rng.normal(0.0, 1e-3, size=n)


class TestBaseline:

    def test_flat_fit_is_mean(self):
        times, values = pre_pulse(intercept=2.5)
        baseline = FlatBaseline()
        assert baseline.fit_to(times, values)
        assert baseline.intercept == pytest.approx(np.mean(values))
        assert baseline.value_at(10.0) == pytest.approx(baseline.intercept)

    def test_linear_fit(self):
        times, values = pre_pulse(intercept=1.0, slope=0.5)
        baseline = LinearBaseline()
        assert baseline.fit_to(times, values)
        assert baseline.intercept == pytest.approx(1.0, abs=5e-3)
        assert baseline.slope == pytest.approx(0.5, abs=1e-2)

    def test_too_few_points_leave_baseline_untouched(self):
        times, values = pre_pulse(n=Baseline.MIN_POINTS, intercept=3.0)
        baseline = FlatBaseline(0.7)
        assert not baseline.fit_to(times, values)
        assert baseline.intercept == 0.7

    def test_points_after_the_shot_are_ignored(self):
        times, values = pre_pulse(intercept=1.0)
        times = np.concatenate([times, [0.0, 0.5, 1.0]])
        values = np.concatenate([values, [50.0, 50.0, 50.0]])
        baseline = FlatBaseline()
        baseline.fit_to(times, values)
        assert baseline.intercept == pytest.approx(1.0, abs=5e-3)

    def test_get_and_set(self):
        baseline = LinearBaseline(1.0, 2.0)
        baseline.set(Keyword.BASELINE_SLOPE, -3.0)
        assert baseline.get(Keyword.BASELINE_SLOPE) == -3.0
        assert baseline.get(Keyword.BASELINE_INTERCEPT) == 1.0
        with pytest.raises(ConfigurationError):
            FlatBaseline().get(Keyword.BASELINE_SLOPE)
        with pytest.raises(ConfigurationError):
            baseline.set(Keyword.DIFFUSIVITY, 1.0)

    def test_dict_round_trip(self):
        baseline = Baseline.from_dict(LinearBaseline(0.25, -1.5).to_dict())
        assert isinstance(baseline, LinearBaseline)
        assert (baseline.intercept, baseline.slope) == (0.25, -1.5)
        assert isinstance(Baseline.from_dict({}), FlatBaseline)

    def test_unknown_type(self):
        with pytest.raises(ConfigurationError):
            Baseline.from_dict({"type": "parabolic"})


class TestHeatingCurve:

    def make(self, shift=0.0):
        curve = HeatingCurve(num_points=11, time_shift=shift)
        for t in np.linspace(0.0, 1.0, 11):
            curve.add_point(t, t ** 2)
        return curve

    def test_needs_two_points(self):
        with pytest.raises(ConfigurationError):
            HeatingCurve(num_points=1)

    def test_interpolation_needs_baseline(self):
        with pytest.raises(ConfigurationError):
            self.make().interpolate(0.5)

    def test_interpolate_outside_the_record(self):
        curve = self.make(shift=0.1)
        curve.apply_baseline(FlatBaseline(2.0))
        values = curve.interpolate(np.array([-1.0, 0.05, 0.6, 5.0]))
        assert values[0] == pytest.approx(2.0)
        assert values[1] == pytest.approx(2.0)
        assert values[2] == pytest.approx(2.0 + 0.25, abs=1e-6)
        assert values[3] == pytest.approx(3.0)

    def test_linear_baseline_follows_time(self):
        curve = self.make()
        curve.apply_baseline(LinearBaseline(0.0, 1.0))
        npt.assert_allclose(curve.adjusted_signal, curve.signal + curve.times)

    def test_scale_and_maximum(self):
        curve = self.make()
        curve.scale(2.0)
        assert curve.apparent_maximum() == pytest.approx(2.0)
        assert curve.time_limit() == pytest.approx(1.0)

    def test_copy_is_independent(self):
        curve = self.make()
        curve.apply_baseline(FlatBaseline())
        copy = curve.copy()
        curve.clear()
        assert len(copy) == 11
        assert copy.interpolate(1.0)[0] == pytest.approx(1.0)

    def test_plot_over_the_measurement(self, headless_plots):
        curve = self.make()
        curve.apply_baseline(FlatBaseline())
        data = ExperimentalData(np.linspace(0.0, 1.0, 21), np.linspace(0.0, 1.0, 21) ** 2)
        curve.plot(data, title="Fit")
        assert len(headless_plots) == 1
        axes = headless_plots[0].axes[0]
        assert axes.get_title() == "Fit"
        assert len(axes.lines) == 2


class TestExperimentalData:

    def test_plot(self, headless_plots):
        ExperimentalData(np.arange(-5.0, 6.0), np.zeros(11)).plot()
        assert len(headless_plots) == 1
        assert headless_plots[0].axes[0].get_title() == "Experimental data"

    def test_validation(self):
        with pytest.raises(ConfigurationError):
            ExperimentalData([0.0, 1.0], [1.0])
        with pytest.raises(ConfigurationError):
            ExperimentalData([0.0], [1.0])
        with pytest.raises(ConfigurationError):
            ExperimentalData([0.0, 1.0, 1.0], [1.0, 2.0, 3.0])
        with pytest.raises(ConfigurationError):
            ExperimentalData([0.0, 1.0], [1.0, math.nan])

    def test_default_range_starts_at_the_shot(self):
        data = ExperimentalData(np.arange(-5.0, 6.0), np.zeros(11))
        assert data.fitting_range == Segment(0.0, 5.0)
        assert data.index_range == (5, 10)
        npt.assert_allclose(data.fitting_times(), np.arange(0.0, 6.0))
        assert data.time_limit() == 5.0

    def test_fitting_range_needs_two_points(self):
        data = ExperimentalData(np.arange(10.0), np.zeros(10))
        data.set_fitting_range(Segment(2.0, 3.0))
        assert data.index_range == (2, 3)
        with pytest.raises(ConfigurationError):
            data.set_fitting_range(Segment(2.5, 3.5))

    def test_crude_average(self):
        times = np.arange(320.0)
        data = ExperimentalData(times, times)
        block_times, values = data.crude_average()
        assert len(values) == 9
        # A linear signal averages to its value at the block centre
        npt.assert_allclose(values, block_times)

    def test_crude_average_falls_back_to_raw_points(self):
        data = ExperimentalData(np.arange(10.0), np.arange(10.0))
        times, values = data.crude_average()
        npt.assert_allclose(times, data.fitting_times())
        npt.assert_allclose(values, data.fitting_temperatures())

    def test_half_rise_fallback(self, caplog):
        data = ExperimentalData(np.linspace(0.0, 3.0, 400), np.ones(400))
        with caplog.at_level("WARNING"):
            assert data.half_rise_time(FlatBaseline()) == pytest.approx(3.0 / HALF_RISE_FAIL_SAFE_FACTOR)
        assert "Half-rise time not found" in caplog.text

    def test_truncate(self, classical_problem):
        tc = classical_problem.properties.characteristic_time()
        data = synthesise_data(classical_problem, ImplicitScheme(), num_points=3200, duration=2.0 * tc)
        baseline = FlatBaseline()
        assert not data.is_acquisition_time_sensible(baseline)
        cutoff = TRUNCATION_CUTOFF_FACTOR * data.half_rise_time(baseline)
        data.truncate(baseline)
        assert data.fitting_range.maximum == pytest.approx(cutoff)
        assert data.time_limit() <= cutoff < data.times[-1]


class TestThermalProperties:

    @pytest.mark.parametrize("field, value", [
        ("thickness", 0.0),
        ("thickness", -1e-3),
        ("diffusivity", math.nan),
        ("heat_loss", 11.0),
        ("emissivity", 1.5),
        ("maximum_temperature", True),
        ("diffusivity", "1e-5"),
    ])
    def test_rejects_invalid_values(self, field, value):
        with pytest.raises(ConfigurationError):
            ThermalProperties(**{field: value})

    def test_optional_values(self):
        properties = ThermalProperties()
        assert properties.thermal_mass() is None
        assert properties.thermal_conductivity() is None
        assert properties.radiation_biot() is None
        assert properties.maximum_heating(1.0, 5e-3) == properties.maximum_temperature

    def test_derived_quantities(self):
        properties = ThermalProperties(thickness=2e-3, diffusivity=1e-5, density=2000.0, specific_heat=500.0)
        assert properties.characteristic_time() == pytest.approx(0.4)
        assert properties.thermal_conductivity() == pytest.approx(10.0)
        assert properties.parker_diffusivity(0.1388 * 0.4) == pytest.approx(1e-5)
        expected = 4.0 * properties.emissivity * 5.6703e-8 * properties.test_temperature ** 3 * 2e-3 / 10.0
        assert properties.radiation_biot() == pytest.approx(expected)

    def test_dict_round_trip(self):
        properties = ThermalProperties(thickness=2e-3, heat_loss=0.3, density=1000.0)
        copy = ThermalProperties.from_dict(properties.to_dict())
        assert copy.to_dict() == properties.to_dict()
        copy.heat_loss = 0.0
        assert properties.heat_loss == 0.3


class TestProblem:

    def test_value_access(self, classical_problem):
        problem = classical_problem
        assert problem.value_of(Keyword.DIFFUSIVITY) == 1e-5
        problem.set_value(Keyword.TIME_SHIFT, 1e-3)
        assert problem.curve.time_shift == 1e-3
        problem.set_value(Keyword.BASELINE_INTERCEPT, 0.2)
        assert problem.baseline.intercept == 0.2

    def test_unknown_keywords(self, classical_problem):
        with pytest.raises(ConfigurationError):
            classical_problem.value_of(Keyword.HEAT_LOSS_SIDE)
        with pytest.raises(ConfigurationError):
            classical_problem.set_value(Keyword.BASELINE_SLOPE, 1.0)
        problem = ClassicalProblem(classical_problem.properties, baseline=LinearBaseline())
        problem.set_value(Keyword.BASELINE_SLOPE, 1.0)
        assert problem.baseline.slope == 1.0

    def test_optimisation_vector_defaults(self, classical_problem):
        vector = classical_problem.optimisation_vector()
        assert vector.keywords == [Keyword.DIFFUSIVITY, Keyword.HEAT_LOSS, Keyword.MAXTEMP]
        physical = vector.physical_values()
        assert physical[Keyword.DIFFUSIVITY] == pytest.approx(1e-5)
        assert vector.transformed_bounds(0).contains(vector.get(0))

    def test_optimisation_vector_clamps_start(self, classical_problem, caplog):
        classical_problem.properties.heat_loss = 5.0
        with caplog.at_level("WARNING"):
            vector = classical_problem.optimisation_vector([Keyword.HEAT_LOSS])
        assert vector.inverse_transform(0) == pytest.approx(2.0)
        assert "outside its bounds" in caplog.text

    def test_needs_an_active_keyword(self, classical_problem):
        with pytest.raises(ConfigurationError):
            classical_problem.optimisation_vector([])

    def test_assign(self, classical_problem):
        vector = classical_problem.optimisation_vector([Keyword.DIFFUSIVITY, Keyword.HEAT_LOSS])
        vector.set(1, 0.25)
        classical_problem.assign(vector)
        assert classical_problem.properties.heat_loss == pytest.approx(0.25)

    def test_assign_clamps_through_the_stick_transform(self, classical_problem):
        vector = classical_problem.optimisation_vector([Keyword.DIFFUSIVITY, Keyword.HEAT_LOSS])
        vector.set(1, 3.0)
        classical_problem.assign(vector)
        assert classical_problem.properties.heat_loss == pytest.approx(2.0)

    def test_assign_rejects_malformed_values(self, classical_problem):
        vector = classical_problem.optimisation_vector([Keyword.DIFFUSIVITY, Keyword.HEAT_LOSS])
        vector.set(1, math.nan)
        with pytest.raises(IllegalParametersError):
            classical_problem.assign(vector)
        raw = ParameterVector([Parameter(keyword=Keyword.HEAT_LOSS, bounds=Segment(0.0, 2.0))], [3.0])
        with pytest.raises(IllegalParametersError):
            classical_problem.assign(raw)
        # Nothing was written
        assert classical_problem.properties.heat_loss == 0.0

    def test_retrieve_data(self, sample_properties, short_pulse):
        truth = ClassicalProblem(sample_properties.copy(), short_pulse)
        data = synthesise_data(truth, ImplicitScheme(), num_points=2000)
        fit = ClassicalProblem(ThermalProperties(thickness=sample_properties.thickness), short_pulse)
        fit.retrieve_data(data)
        assert fit.properties.maximum_temperature == pytest.approx(1.0, rel=0.05)
        assert 0.5e-5 < fit.properties.diffusivity < 2e-5
        bounds = fit.default_bounds(Keyword.DIFFUSIVITY)
        assert bounds.contains(1e-5)

    def test_retrieve_data_without_rise(self, classical_problem):
        data = ExperimentalData(np.linspace(-1.0, 1.0, 200), -np.ones(200))
        with pytest.raises(ConfigurationError):
            classical_problem.retrieve_data(data)

    def test_copy_is_independent(self, classical_problem):
        classical_problem.curve.time_shift = 0.01
        copy = classical_problem.copy()
        copy.set_value(Keyword.DIFFUSIVITY, 2e-5)
        assert classical_problem.properties.diffusivity == 1e-5
        assert copy.curve.time_shift == 0.01

    def test_factory(self):
        assert isinstance(create_problem("classical"), ClassicalProblem)
        assert create_problem(ProblemKind.CLASSICAL_2D).kind == ProblemKind.CLASSICAL_2D
        with pytest.raises(ConfigurationError):
            create_problem("quantum")

    def test_two_dimensional_needs_a_spot(self):
        with pytest.raises(ConfigurationError):
            TwoDimensionalProblem(pulse=Pulse())


class TestSyntheticData:

    def test_layout(self, classical_problem):
        data = synthesise_data(classical_problem, ImplicitScheme(), num_points=200)
        assert len(data) == 200
        assert np.count_nonzero(data.times < 0.0) == int(PRE_TRIGGER_FRACTION * 200)
        assert data.fitting_range.minimum == 0.0
        # Before the shot only the baseline is seen
        npt.assert_allclose(data.temperatures[data.times < 0.0], 0.0)
        assert data.temperatures[-1] == pytest.approx(1.0, abs=1e-2)

    def test_noise_is_seeded(self, classical_problem):
        a = synthesise_data(classical_problem, ImplicitScheme(), num_points=100, noise=0.01, seed=3)
        b = synthesise_data(classical_problem, ImplicitScheme(), num_points=100, noise=0.01, seed=3)
        c = synthesise_data(classical_problem, ImplicitScheme(), num_points=100, noise=0.01, seed=4)
        npt.assert_array_equal(a.temperatures, b.temperatures)
        assert not np.array_equal(a.temperatures, c.temperatures)

    @pytest.mark.parametrize("kwargs", [{"num_points": 10}, {"noise": -1.0}])
    def test_invalid_arguments(self, classical_problem, kwargs):
        with pytest.raises(ConfigurationError):
            synthesise_data(classical_problem, ImplicitScheme(), **kwargs)
