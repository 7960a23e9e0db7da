# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements the Nelder-Mead iteration loop and its entry point.
#
# ===--------------------------------------------------------------------------------------===#

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from dataclasses import dataclass
from enum import Enum
import logging
import time

import numpy as np

from neldermead.collapse import CollapseDetector
from neldermead.constraints import ConstraintSet
from neldermead.errors import SimplexCollapseError, ValidationError
from neldermead.evaluator import Objective, ObjectiveEvaluator
from neldermead.geometry import compute_centroid, shrink, transform
from neldermead.options import Options, new_options, validate_options
from neldermead.simplex import Point, Simplex, create_simplex
from neldermead.stopping import StopCondition


class RunStatus(str, Enum):
    """Terminal state of a run."""

    RUNNING = "running"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"
    COLLAPSED = "collapsed"
    STOPPED = "stopped"


class Step(str, Enum):
    """Move applied to the simplex during one iteration."""

    REFLECT = "reflect"
    EXPAND = "expand"
    CONTRACT = "contract"
    SHRINK = "shrink"


@dataclass
class OptimizationResult:
    """Outcome of a run.

    Attributes:
        point: Best point found, with the objective value at its coordinates.
        status: Terminal state reached by the run.
        iterations: Number of completed iterations (simplex moves).
        nfev: Number of objective evaluations.
        runtime_s: Wall-clock duration of the run in seconds.
    """

    point: Point
    status: RunStatus
    iterations: int
    nfev: int
    runtime_s: float = 0.0

    @property
    def x(self) -> np.ndarray:
        return self.point.x

    @property
    def f(self) -> float:
        return self.point.f

    @property
    def success(self) -> bool:
        """True unless the simplex collapsed; exhaustion is a normal outcome."""
        return self.status != RunStatus.COLLAPSED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.point.x.tolist(),
            "f": self.point.f,
            "status": self.status.value,
            "iterations": self.iterations,
            "nfev": self.nfev,
            "runtime_s": self.runtime_s,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}"
            "("
            f"point={self.point},"
            f"status={self.status.value},"
            f"iterations={self.iterations},"
            f"nfev={self.nfev}"
            ")"
        )


@dataclass
class IterationInfo:
    """Snapshot handed to callbacks and stop conditions after each iteration.

    Attributes:
        iteration: 1-based index of the iteration that just completed.
        step: Move applied during the iteration.
        best: Copy of the best vertex after sorting and clamping.
        value_spread: ``|best.f - worst.f|`` after the iteration.
        nfev: Objective evaluations so far.
    """

    iteration: int
    step: Step
    best: Point
    value_spread: float
    nfev: int


@dataclass
class Workspace:
    """Scratch buffers owned by a single run.

    The candidate points and the centroid are views into one preallocated
    array, reused by every iteration of the run and never shared between runs.
    """

    reflected: Point
    expanded: Point
    contracted: Point
    centroid: np.ndarray

    @classmethod
    def allocate(cls, dim: int) -> "Workspace":
        buf: np.ndarray = np.zeros((4, dim), dtype=np.float64)
        return cls(
            reflected=Point(x=buf[0]),
            expanded=Point(x=buf[1]),
            contracted=Point(x=buf[2]),
            centroid=buf[3],
        )


Callback = Callable[[IterationInfo], Optional[bool]]


class NelderMeadDriver:
    """Runs the Nelder-Mead state machine for one optimization call.

    The driver owns the simplex, the workspace and the evaluator of the run.
    Starting in ``RunStatus.RUNNING`` it iterates until the value spread of the
    simplex drops below the tolerance (``CONVERGED``), the simplex collapses
    (``COLLAPSED``, raised as ``SimplexCollapseError``), a callback or stop
    condition asks to stop (``STOPPED``) or the iteration budget is spent
    (``EXHAUSTED``).
    """

    def __init__(
        self,
        objective: Objective,
        x0: np.ndarray,
        options: Options,
        logger: Optional[logging.Logger] = None,
        callback: Optional[Callback] = None,
        stop_conditions: Optional[Iterable[StopCondition]] = None,
    ):
        """Initializes the driver. The options are expected to be validated.

        Args:
            objective: Function to minimize.
            x0: Initial guess, inside the constraints if there are any.
            options: Validated run options.
            logger: Logger instance for the run.
            callback: Called with an ``IterationInfo`` after every iteration; a
                truthy return value stops the run.
            stop_conditions: Callables checked after every iteration; the first
                that returns True stops the run.
        """
        self.objective: Objective = objective
        self.x0: np.ndarray = x0
        self.options: Options = options
        self.constraints: ConstraintSet = options.constraints
        self.logger: logging.Logger = logger if logger is not None else logging.getLogger(__name__)
        self.callback: Optional[Callback] = callback
        self.stop_conditions: List[StopCondition] = list(stop_conditions or [])

        self.collapse_detector: CollapseDetector = CollapseDetector(options.collapse_threshold)
        self.workspace: Workspace = Workspace.allocate(x0.shape[0])
        self.status: RunStatus = RunStatus.RUNNING
        self.simplex: Optional[Simplex] = None
        self.evaluator: Optional[ObjectiveEvaluator] = None
        self._start_time: float = 0.0

    def run(self) -> OptimizationResult:
        """Executes the run and returns its result.

        Raises:
            SimplexCollapseError: If the collapse detector fires. The error keeps
                the result with the best point found so far.
        """
        self._start_time = time.perf_counter()
        dim: int = self.x0.shape[0]

        with ObjectiveEvaluator(
            self.objective,
            max_workers=self.options.max_workers,
            batch_size=dim + 1,
            logger=self.logger,
        ) as evaluator:
            self.evaluator = evaluator
            self.simplex = create_simplex(
                self.x0, self.constraints, step=self.options.initial_step, logger=self.logger
            )
            evaluator.evaluate_simplex(self.simplex)
            self.simplex.sort()

            self.logger.info("============ STARTING NELDER-MEAD ============")
            self.logger.info(f"dim = {dim} | options = {self.options}")
            self.logger.info(f"Initial simplex: {self.simplex}")

            for iteration in range(self.options.max_iterations):
                if self.simplex.value_spread() < self.options.tolerance:
                    return self._finish(RunStatus.CONVERGED, iteration)

                step: Step = self._iterate()
                evaluator.evaluate_simplex(self.simplex)
                self._sort_and_clamp()

                self.logger.debug(
                    f"Iteration {iteration + 1}: {step.value} | best f = {self.simplex.best.f:.10g}"
                    f" | spread = {self.simplex.value_spread():.3g}"
                )

                if self.collapse_detector.is_collapsed(self.simplex):
                    result: OptimizationResult = self._finish(RunStatus.COLLAPSED, iteration + 1)
                    raise SimplexCollapseError(
                        result, self.collapse_detector.last_mean_edge_length
                    )

                if self._should_stop(iteration + 1, step):
                    return self._finish(RunStatus.STOPPED, iteration + 1)

            return self._finish(RunStatus.EXHAUSTED, self.options.max_iterations)

    def _move(self, base: np.ndarray, coef: float, candidate: Point) -> Point:
        transform(base, self.workspace.centroid, coef, out=candidate.x)
        candidate.f = self.evaluator.evaluate(candidate.x)
        return candidate

    def _iterate(self) -> Step:
        """Applies one reflect / expand / contract / shrink decision to the simplex."""
        simplex: Simplex = self.simplex
        ws: Workspace = self.workspace
        last: int = len(simplex) - 1

        compute_centroid(simplex, last, out=ws.centroid)
        reflected: Point = self._move(simplex.worst.x, self.options.alpha, ws.reflected)

        if reflected.f < simplex.second_worst.f:
            expanded: Point = self._move(reflected.x, self.options.gamma, ws.expanded)
            if expanded.f < reflected.f:
                simplex.replace_vertex(last, expanded)
                return Step.EXPAND
            simplex.replace_vertex(last, reflected)
            return Step.REFLECT

        if reflected.f < simplex.worst.f:
            simplex.replace_vertex(last, reflected)
        contracted: Point = self._move(simplex.worst.x, self.options.beta, ws.contracted)
        if contracted.f < simplex.worst.f:
            simplex.replace_vertex(last, contracted)
            return Step.CONTRACT

        shrink(simplex, self.options.delta)
        return Step.SHRINK

    def _sort_and_clamp(self) -> None:
        """Sorts the simplex and pulls the best vertex into the box.

        A clamped vertex is evaluated again so that its value matches its new
        coordinates, and the simplex is re-sorted; this repeats until the best
        vertex lies inside the box. Other vertices may stay outside until they
        become the best.
        """
        self.simplex.sort()
        if not self.constraints:
            return
        for _ in range(len(self.simplex)):
            if not self.constraints.clamp(self.simplex.best.x):
                return
            self.evaluator.evaluate_point(self.simplex.best)
            self.simplex.sort()

    def _should_stop(self, iteration: int, step: Step) -> bool:
        if self.callback is None and not self.stop_conditions:
            return False

        info: IterationInfo = IterationInfo(
            iteration=iteration,
            step=step,
            best=self.simplex.best.copy(),
            value_spread=self.simplex.value_spread(),
            nfev=self.evaluator.nfev,
        )
        if self.callback is not None and self.callback(info):
            self.logger.info(f"Callback requested a stop after iteration {iteration}.")
            return True
        for condition in self.stop_conditions:
            if condition(info):
                self.logger.info(f"Stop condition {condition!r} met after iteration {iteration}.")
                return True
        return False

    def _finish(self, status: RunStatus, iterations: int) -> OptimizationResult:
        self.status = status
        result: OptimizationResult = OptimizationResult(
            point=self.simplex.best.copy(),
            status=status,
            iterations=iterations,
            nfev=self.evaluator.nfev,
            runtime_s=time.perf_counter() - self._start_time,
        )
        if status == RunStatus.COLLAPSED:
            self.logger.warning(
                "Simplex collapsed: mean edge length"
                f" {self.collapse_detector.last_mean_edge_length:.3g} is below"
                f" {self.collapse_detector.threshold}."
            )
        self.logger.info(
            f"Finished with status {status.value} after {iterations} iterations"
            f" and {result.nfev} evaluations: {result.point}"
        )
        return result


def run(
    objective: Objective,
    x0: Sequence[float] | np.ndarray,
    options: Optional[Options] = None,
    *,
    logger: Optional[logging.Logger] = None,
    callback: Optional[Callback] = None,
    stop_conditions: Optional[Iterable[StopCondition]] = None,
) -> OptimizationResult:
    """Minimizes ``objective`` with the Nelder-Mead simplex algorithm.

    The algorithm keeps a simplex of n+1 vertices in n-dimensional space and
    moves it by reflecting, expanding, contracting or shrinking it according to
    the objective values at its vertices. It is derivative free and suited to
    continuous, possibly non-convex or noisy objectives of low to moderate
    dimension. It converges to a local stationary point; there is no guarantee
    of a global minimum.

    Args:
        objective: Function from an n-length float vector to a scalar. It should
            be a repeatable function of its input; bounded noise is tolerated.
        x0: Initial guess.
        options: Run options; ``new_options()`` when omitted.
        logger: Logger instance for the run.
        callback: Called with an ``IterationInfo`` after every iteration; a
            truthy return value stops the run with ``RunStatus.STOPPED``.
        stop_conditions: Callables checked after every iteration, see
            ``neldermead.stopping``.

    Returns:
        The best point found with the terminal status, iteration and
        evaluation counts. Reaching ``max_iterations`` is not an error and is
        reported as ``RunStatus.EXHAUSTED``.

    Raises:
        ValidationError: If the options, constraints or ``x0`` are invalid. The
            objective is not called in that case.
        OutOfBoundsInitialGuessError: If ``x0`` lies outside the constraints.
        SimplexCollapseError: If the simplex collapses; the best point found so
            far is available on ``err.result``.
    """
    options = options if options is not None else new_options()
    try:
        x0_arr: np.ndarray = np.array(x0, dtype=np.float64)
    except (TypeError, ValueError) as err:
        raise ValidationError(f"invalid initial guess: {err}") from err

    validate_options(options, x0_arr)

    driver: NelderMeadDriver = NelderMeadDriver(
        objective,
        x0_arr,
        options,
        logger=logger,
        callback=callback,
        stop_conditions=stop_conditions,
    )
    return driver.run()
