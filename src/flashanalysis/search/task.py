"""
Search Task
===========
One inverse fit of a problem statement to one measurement.

Why is this file needed?
------------------------
1. Objective: ``SearchTask`` implements the optimiser's view of the problem.
   ``cost`` runs the forward scheme and compares the simulated curve with the
   data; the optimisers never see the physics.
2. Run loop: ``run`` drives the optimiser until the rolling buffer of recent
   parameter vectors stops moving (relative variance below ``tolerance²``),
   the iteration limit is hit, a solver error occurs or the run is cancelled.
3. Ownership: A task owns its problem, scheme, optimiser state and data. Two
   tasks never share mutable numeric state, so they can run in parallel.

Classes:
    TaskStatus: READY -> IN_PROGRESS -> DONE | FAILED | TIMEOUT | TERMINATED.
    Buffer: Rolling window used as the convergence criterion.
    TaskResult: Picklable summary returned to the caller (or the pool).
    SearchTask: The objective and the run loop.
"""
from __future__ import annotations

import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Deque, Dict, Iterable, List, Optional

import numpy as np

from flashanalysis.config import RELATIVE_TIME_MARGIN
from flashanalysis.exceptions import ConfigurationError, GridAdjustmentError, IterationLimitError, SolverError
from flashanalysis.schemes.factory import default_scheme_for
from flashanalysis.search.objective import Objective
from flashanalysis.search.optimisers import create_optimiser
from flashanalysis.search.settings import OptimiserSettings
from flashanalysis.search.statistics import create_statistic, r_squared

if TYPE_CHECKING:
    import numpy.typing as npt

    from flashanalysis.keywords import Keyword
    from flashanalysis.linalg.parameters import ParameterVector
    from flashanalysis.problem.curves import ExperimentalData
    from flashanalysis.problem.statements import Problem
    from flashanalysis.schemes.scheme import DifferenceScheme
    from flashanalysis.search.state import IterativeState

logger = logging.getLogger(__name__)


class TaskStatus(StrEnum):
    READY = "ready"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"
    TIMEOUT = "timeout"
    TERMINATED = "terminated"

    @property
    def is_final(self) -> bool:
        return self not in (TaskStatus.READY, TaskStatus.IN_PROGRESS)


class Buffer:
    """
    Rolling window of the last ``size`` parameter vectors and costs.

    The window is filled after every iteration, accepted or not. A run that
    keeps rejecting steps therefore fills it with identical vectors and
    converges, provided the window is shorter than the rejection limit.
    """

    def __init__(self, size: int) -> None:
        if size < 2:
            raise ConfigurationError(f"Buffer size must be at least 2, got {size}.")
        self.size = size
        self._values: Deque[npt.NDArray[np.float64]] = deque(maxlen=size)
        self._costs: Deque[float] = deque(maxlen=size)

    def __len__(self) -> int:
        return len(self._values)

    def clear(self) -> None:
        self._values.clear()
        self._costs.clear()

    def fill(self, vector: ParameterVector, cost: float) -> None:
        self._values.append(vector.to_numpy())
        self._costs.append(cost)

    def is_full(self) -> bool:
        return len(self._values) == self.size

    def average(self) -> npt.NDArray[np.float64]:
        return np.mean(np.asarray(self._values), axis=0)

    def variance(self) -> npt.NDArray[np.float64]:
        return np.var(np.asarray(self._values), axis=0)

    def average_cost(self) -> float:
        return float(np.mean(self._costs)) if self._costs else math.nan

    def is_converged(self, tolerance: float) -> bool:
        """True once the window is full and every component has ``var <= tolerance² * mean²``."""
        if not self.is_full():
            return False
        mean = self.average()
        return bool(np.all(self.variance() <= tolerance * tolerance * mean * mean))


@dataclass
class TaskResult:
    """
    Attributes:
        task_id: Identifier given to the task.
        status: Final status.
        parameters: Physical values of the optimised parameters.
        cost: Cost at ``parameters``.
        iterations: Accepted iterations.
        details: Human-readable reason for a non-DONE status.
        history: Cost after each iteration.
        elapsed: Wall-clock time of the run (s).
        r_squared: Coefficient of determination of the final fit.
    """
    task_id: int
    status: TaskStatus
    parameters: Dict[str, float] = field(default_factory=dict)
    cost: float = math.nan
    iterations: int = 0
    details: str = ""
    history: List[float] = field(default_factory=list)
    elapsed: float = 0.0
    r_squared: float = math.nan

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "status": self.status.value,
            "parameters": dict(self.parameters),
            "cost": self.cost,
            "iterations": self.iterations,
            "details": self.details,
            "elapsed": self.elapsed,
            "r_squared": self.r_squared,
        }


class SearchTask(Objective):
    """
    Fits ``problem`` to ``data``.

    Args:
        problem: Problem statement; the task takes ownership of it.
        data: Measurement to fit.
        scheme: Forward scheme; the default scheme for the problem kind if omitted.
        settings: Optimiser settings for this run.
        active: Keywords to optimise; the problem's default set if omitted.
        task_id: Identifier copied into the result.
        retrieve: Initialise the problem from the data (baseline, signal rise, Parker diffusivity).
    """

    def __init__(
        self,
        problem: Problem,
        data: ExperimentalData,
        scheme: Optional[DifferenceScheme] = None,
        settings: Optional[OptimiserSettings] = None,
        active: Optional[Iterable[Keyword]] = None,
        task_id: int = 0,
        retrieve: bool = True,
    ) -> None:
        self.problem = problem
        self.data = data
        self.scheme = scheme if scheme is not None else default_scheme_for(problem.kind)
        if not self.scheme.supports(problem):
            raise ConfigurationError(f"{type(self.scheme).__name__} cannot solve {type(problem).__name__}.")
        self.settings = settings if settings is not None else OptimiserSettings()
        self.task_id = task_id
        self.statistic = create_statistic(self.settings.statistic, self.settings.regularisation)
        self.status = TaskStatus.READY
        self.details = ""
        self.history: List[float] = []

        if retrieve:
            self.problem.retrieve_data(data)
        self._vector = self.problem.optimisation_vector(active)
        self.problem.assign(self._vector)

        self._best_vector = self._vector.copy()
        self._best_cost = math.inf
        self.buffer = Buffer(self.settings.buffer_size)

    # ---- Objective ----

    def search_vector(self) -> ParameterVector:
        return self._vector.copy()

    def assign(self, vector: ParameterVector) -> None:
        self.problem.assign(vector)
        self._vector = vector.copy()

    def cost(self) -> float:
        self.scheme.set_time_limit(RELATIVE_TIME_MARGIN * self.data.time_limit() - self.problem.curve.time_shift)
        self.problem.simulate(self.scheme)
        return self.statistic.evaluate(self.problem.curve, self.data, self._vector)

    def residuals(self):
        return self.statistic.residuals.copy()

    # ---- Run loop ----

    def _commit(self, state: IterativeState) -> None:
        self.history.append(state.cost)
        self.buffer.fill(self._vector, state.cost)
        if state.cost < self._best_cost:
            self._best_cost = state.cost
            self._best_vector = self._vector.copy()

    def run(self, cancel_event: Optional[Any] = None) -> TaskResult:
        """
        Run the search to completion.

        Args:
            cancel_event: Object with an ``is_set()`` method, checked between iterations.

        Returns:
            The result record; errors are reported through its status, not raised.
        """
        if self.status.is_final or self.status == TaskStatus.IN_PROGRESS:
            raise ConfigurationError(f"Task {self.task_id} has already been run (status {self.status}).")

        self.status = TaskStatus.IN_PROGRESS
        self.buffer.clear()
        self.history.clear()
        start = time.perf_counter()
        optimiser = create_optimiser(self.settings)
        logger.info(f"Task {self.task_id}: started ({type(self.problem).__name__}, "
                    f"{type(self.scheme).__name__}, {optimiser!r})")

        state = None
        try:
            state = optimiser.init_state(self)
            self._commit(state)
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    self.status = TaskStatus.TERMINATED
                    self.details = "Cancelled by request."
                    break
                optimiser.iteration(self, state)
                self._commit(state)
                if self.buffer.is_converged(self.settings.error_tolerance):
                    self.status = TaskStatus.DONE
                    break
        except IterationLimitError as e:
            self.status = TaskStatus.TIMEOUT
            self.details = str(e)
        except (SolverError, GridAdjustmentError) as e:
            self.status = TaskStatus.FAILED
            self.details = e.details() if isinstance(e, SolverError) else str(e)

        if self.status in (TaskStatus.FAILED, TaskStatus.TIMEOUT):
            self.problem.assign(self._best_vector)
            self._vector = self._best_vector.copy()

        result = self._result(state, time.perf_counter() - start)
        if self.status == TaskStatus.FAILED:
            logger.error(f"Task {self.task_id}: failed. {self.details}")
        else:
            logger.info(f"Task {self.task_id}: {self.status} after {result.iterations} iterations, "
                        f"cost = {result.cost:.6g}, R² = {result.r_squared:.5f}")
        return result

    def _result(self, state: Optional[IterativeState], elapsed: float) -> TaskResult:
        result = TaskResult(
            task_id=self.task_id,
            status=self.status,
            parameters={str(k): v for k, v in self._vector.physical_values().items()},
            iterations=state.iteration if state is not None else 0,
            details=self.details,
            history=list(self.history),
            elapsed=elapsed,
        )
        # Re-simulate so the curve matches the reported parameters
        try:
            result.cost = self.cost()
            result.r_squared = r_squared(self.problem.curve, self.data)
        except (SolverError, GridAdjustmentError) as e:
            logger.warning(f"Task {self.task_id}: final curve could not be computed: {e}")
        return result

    def __repr__(self) -> str:
        return f"SearchTask(id={self.task_id}, status={self.status}, problem={type(self.problem).__name__})"
