"""
Task Pool
=========
Runs independent search tasks in parallel, one per core.

Why is this file needed?
------------------------
1. Throughput: Fits of different measurements do not depend on each other.
   ``joblib`` distributes them over worker processes; each worker receives
   its own copy of the task, so no numeric state is shared.
2. Cancellation: A shared event is checked by every task between iterations.
   ``cancel`` sets it from another thread and the running tasks end with
   ``TaskStatus.TERMINATED`` and their last committed parameters.
"""
from __future__ import annotations

import logging
import multiprocessing
import threading
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

from joblib import Parallel, delayed

from flashanalysis.exceptions import ConfigurationError
from flashanalysis.logging_config import setup_logging

if TYPE_CHECKING:
    from flashanalysis.search.task import SearchTask, TaskResult

logger = logging.getLogger(__name__)

BACKENDS = ("loky", "threading", "multiprocessing", "sequential")


def _run_task(task: SearchTask, cancel_event: Any, log_level: Optional[int]) -> TaskResult:
    """Worker entry point; must stay at module level so it can be pickled."""
    if log_level is not None:
        setup_logging(log_level)
    return task.run(cancel_event)


class TaskPool:
    """
    Args:
        n_jobs: Number of workers (-1 = all cores).
        backend: joblib backend; ``"threading"`` and ``"sequential"`` keep the tasks in this process.
        log_level: Logging level configured in each worker process, if given.
    """

    def __init__(self, n_jobs: int = -1, backend: str = "loky", log_level: Optional[int] = None) -> None:
        if backend not in BACKENDS:
            raise ConfigurationError(f"Unknown backend '{backend}'. Available: {list(BACKENDS)}")
        if n_jobs == 0:
            raise ConfigurationError("n_jobs must not be zero.")
        self.n_jobs = n_jobs
        self.backend = backend
        self.log_level = log_level
        self._manager = None
        self._cancel_event = self._make_event()

    @property
    def in_process(self) -> bool:
        return self.backend in ("threading", "sequential")

    def _make_event(self):
        if self.in_process:
            return threading.Event()
        # Proxy events can be pickled and shared with worker processes
        if self._manager is None:
            self._manager = multiprocessing.Manager()
        return self._manager.Event()

    def cancel(self) -> None:
        """Ask all running tasks to stop after their current iteration."""
        logger.info("Cancellation requested.")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def reset(self) -> None:
        self._cancel_event.clear()

    def execute(self, tasks: Sequence[SearchTask]) -> List[TaskResult]:
        """
        Run every task and collect the results in input order.

        With a process backend the tasks are copied into the workers and the
        objects passed in stay unmodified; read the results instead.
        """
        if not tasks:
            return []
        logger.info(f"Scheduling {len(tasks)} task(s) on {self.n_jobs} worker(s) ({self.backend}).")
        log_level = None if self.in_process else self.log_level
        results = Parallel(n_jobs=self.n_jobs, backend=self.backend, verbose=0)(
            delayed(_run_task)(task, self._cancel_event, log_level) for task in tasks
        )
        counts = {}
        for r in results:
            counts[r.status.value] = counts.get(r.status.value, 0) + 1
        logger.info(f"Pool finished: {counts}")
        return list(results)

    def shutdown(self) -> None:
        if self._manager is not None:
            self._manager.shutdown()
            self._manager = None

    def __enter__(self) -> TaskPool:
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
