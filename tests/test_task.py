import logging
import threading

import numpy as np
import pytest

from flashanalysis.exceptions import ConfigurationError, InstabilityError
from flashanalysis.keywords import Keyword
from flashanalysis.main import main
from flashanalysis.problem import ClassicalProblem, ThermalProperties
from flashanalysis.problem.synthetic import synthesise_data
from flashanalysis.schemes import Pulse, SchemeKind, create_scheme
from flashanalysis.schemes.implicit import ImplicitScheme
from flashanalysis.search import (
    OptimiserSettings,
    RegularisedLeastSquares,
    SearchTask,
    TaskPool,
    TaskResult,
    TaskStatus,
)


@pytest.fixture(scope="module")
def measurement():
    """Noise-free measurement of a sample with a = 1e-5 m²/s."""
    truth = ClassicalProblem(
        ThermalProperties(thickness=1e-3, diffusivity=1e-5, maximum_temperature=1.0, heat_loss=0.0),
        Pulse(width=1e-4),
    )
    return synthesise_data(truth, ImplicitScheme(), num_points=300)


def make_task(measurement, task_id=0, **settings):
    problem = ClassicalProblem(
        ThermalProperties(thickness=1e-3, diffusivity=0.5e-5, maximum_temperature=1.0, heat_loss=0.0),
        Pulse(width=1e-4),
    )
    return SearchTask(
        problem,
        measurement,
        scheme=ImplicitScheme(),
        settings=OptimiserSettings(**settings),
        active=[Keyword.DIFFUSIVITY],
        task_id=task_id,
        retrieve=False,
    )


@pytest.fixture
def restore_logging():
    logger = logging.getLogger("flashanalysis")
    level, handlers = logger.level, list(logger.handlers)
    yield
    logger.setLevel(level)
    logger.handlers[:] = handlers


class TestSearchTask:

    def test_recovers_diffusivity(self, measurement):
        task = make_task(measurement)
        result = task.run()
        assert result.status == TaskStatus.DONE
        assert result.parameters[str(Keyword.DIFFUSIVITY)] == pytest.approx(1e-5, rel=1e-2)
        assert result.r_squared > 0.999
        assert result.history[-1] <= result.history[0]
        assert task.status == TaskStatus.DONE

    def test_timeout_keeps_the_best_point(self, measurement):
        task = make_task(measurement, iteration_limit=1)
        result = task.run()
        assert result.status == TaskStatus.TIMEOUT
        assert result.iterations == 1
        assert result.details
        assert result.cost == pytest.approx(min(result.history))

    def test_cancelled_before_the_first_iteration(self, measurement):
        event = threading.Event()
        event.set()
        task = make_task(measurement)
        result = task.run(event)
        assert result.status == TaskStatus.TERMINATED
        assert result.iterations == 0
        assert result.parameters[str(Keyword.DIFFUSIVITY)] == pytest.approx(0.5e-5)

    def test_failure_is_reported(self, measurement, monkeypatch, caplog):
        task = make_task(measurement)

        def unstable():
            raise InstabilityError("Forced failure.", stage="test")

        monkeypatch.setattr(task, "cost", unstable)
        with caplog.at_level("ERROR"):
            result = task.run()
        assert result.status == TaskStatus.FAILED
        assert "Forced failure" in result.details
        assert "failed" in caplog.text

    def test_cannot_run_twice(self, measurement):
        event = threading.Event()
        event.set()
        task = make_task(measurement)
        task.run(event)
        with pytest.raises(ConfigurationError):
            task.run()

    def test_rejects_unsupported_scheme(self, measurement):
        with pytest.raises(ConfigurationError):
            SearchTask(ClassicalProblem(), measurement, scheme=create_scheme(SchemeKind.ADI))

    def test_statistic_follows_the_settings(self, measurement):
        task = make_task(measurement, statistic="regularised", regularisation=1e9)
        assert isinstance(task.statistic, RegularisedLeastSquares)
        cost = task.cost()
        penalty = 1e9 * task.search_vector().length_sq()
        assert penalty > 0.0
        assert cost == pytest.approx(np.mean(task.residuals() ** 2) + penalty)

    def test_result_to_dict(self):
        d = TaskResult(task_id=3, status=TaskStatus.DONE, parameters={"diffusivity": 1e-5}).to_dict()
        assert d["status"] == "done"
        assert d["parameters"] == {"diffusivity": 1e-5}

    def test_final_statuses(self):
        assert not TaskStatus.READY.is_final
        assert not TaskStatus.IN_PROGRESS.is_final
        assert all(s.is_final for s in (TaskStatus.DONE, TaskStatus.FAILED, TaskStatus.TIMEOUT, TaskStatus.TERMINATED))


class TestTaskPool:

    @pytest.mark.parametrize("backend", ["sequential", "threading"])
    def test_results_in_order(self, measurement, backend):
        tasks = [make_task(measurement, task_id=i, iteration_limit=2) for i in range(3)]
        with TaskPool(n_jobs=2, backend=backend) as pool:
            results = pool.execute(tasks)
        assert [r.task_id for r in results] == [0, 1, 2]
        assert all(r.status.is_final for r in results)

    def test_cancel(self, measurement):
        tasks = [make_task(measurement, task_id=i) for i in range(2)]
        with TaskPool(n_jobs=1, backend="threading") as pool:
            pool.cancel()
            assert pool.cancelled
            results = pool.execute(tasks)
            pool.reset()
            assert not pool.cancelled
        assert [r.status for r in results] == [TaskStatus.TERMINATED] * 2

    def test_empty(self):
        assert TaskPool(backend="sequential").execute([]) == []

    @pytest.mark.parametrize("kwargs", [{"backend": "dask"}, {"n_jobs": 0, "backend": "threading"}])
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigurationError):
            TaskPool(**kwargs)


class TestCommandLine:

    def test_main(self, restore_logging):
        results = main([
            "--tasks", "2", "--jobs", "1", "--backend", "sequential",
            "--points", "300", "--noise", "0", "--biot", "0", "--seed", "1",
            "--log-level", "WARNING",
        ])
        assert [r.task_id for r in results] == [0, 1]
        assert all(r.status.is_final for r in results)
