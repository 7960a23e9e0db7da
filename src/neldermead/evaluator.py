# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements the evaluator class that calls the objective function.
#
# ===--------------------------------------------------------------------------------------===#

from typing import Callable, List, Optional

import concurrent.futures
import logging
import threading

import numpy as np
import psutil

from neldermead.simplex import Point, Simplex

Objective = Callable[[np.ndarray], float]


class ObjectiveEvaluator:
    """Evaluates the objective at simplex vertices and counts the calls.

    With more than one worker, the vertices of a round are evaluated on a thread
    pool. The evaluations of a round are independent of each other and every
    result is collected, in vertex order, before the caller sorts the simplex,
    so the sequence of simplex states is the same as with serial evaluation.

    The evaluator owns its thread pool; use it as a context manager so that the
    pool is shut down when the run ends.
    """

    def __init__(
        self,
        objective: Objective,
        max_workers: Optional[int] = 1,
        batch_size: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initializes the evaluator.

        Args:
            objective: Function from a coordinate vector to a scalar value.
            max_workers: Number of evaluation threads. 1 evaluates serially in
                the calling thread; None uses the number of logical CPUs.
            batch_size: Largest number of points evaluated at once, normally
                the number of simplex vertices. Caps the thread count.
            logger: Logger instance for evaluation activities.
        """
        self.objective: Objective = objective
        self.logger: logging.Logger = logger if logger is not None else logging.getLogger(__name__)
        self.nfev: int = 0
        self._nfev_lock: threading.Lock = threading.Lock()

        logical_cpus: int = psutil.cpu_count(logical=True) or 1
        worker_count: int = max_workers if max_workers is not None else logical_cpus
        if batch_size is not None:
            worker_count = min(worker_count, batch_size)
        self.worker_count: int = max(1, worker_count)
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None

    def __repr__(self):
        return (
            f"{self.__class__.__name__}"
            "("
            f"objective={getattr(self.objective, '__name__', self.objective)},"
            f"worker_count={self.worker_count},"
            f"nfev={self.nfev}"
            ")"
        )

    def __enter__(self) -> "ObjectiveEvaluator":
        if self.worker_count > 1:
            self.logger.info(f"Evaluating vertices in parallel with {self.worker_count} workers.")
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=self.worker_count, thread_name_prefix="neldermead"
            )
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def evaluate(self, x: np.ndarray) -> float:
        """Calls the objective on a copy of ``x`` and returns its value as a float."""
        with self._nfev_lock:
            self.nfev += 1
        return float(self.objective(x.copy()))

    def evaluate_point(self, point: Point) -> Point:
        point.f = self.evaluate(point.x)
        return point

    def evaluate_batch(self, points: List[Point]) -> List[Point]:
        """Evaluates every point, in parallel when a thread pool is available.

        Args:
            points: Points updated in place with their objective values.

        Returns:
            The list of input points after evaluation.
        """
        if self._executor is None or len(points) < 2:
            for point in points:
                self.evaluate_point(point)
            return points

        values: List[float] = list(self._executor.map(self.evaluate, [p.x for p in points]))
        for point, value in zip(points, values):
            point.f = value
        return points

    def evaluate_simplex(self, simplex: Simplex) -> Simplex:
        self.evaluate_batch(simplex.points)
        return simplex
