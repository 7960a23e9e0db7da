# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements end-to-end tests of the optimization loop.
#
# ===--------------------------------------------------------------------------------------===#

from typing import List

import numpy as np
import pytest

from neldermead.driver import IterationInfo, RunStatus, Step, Workspace, run
from neldermead.errors import SimplexCollapseError
from neldermead.options import Options, new_options, new_options_with_constraints
from neldermead.stopping import (
    MaxEvaluationsStopCondition,
    TargetValueStopCondition,
    TimeoutStopCondition,
)


def difference(x):
    return x[0] - x[1]


def offset_squares(x):
    return (x[0] - 2) ** 2 + (x[1] - 3) ** 2 - 6


def shifted_bowl(x):
    return float((x[0] - 1) ** 2 + 2 * (x[1] + 2) ** 2)


def assert_within_bounds(x, options: Options):
    for value, constraint in zip(x, options.constraints):
        assert constraint.min <= value <= constraint.max


class TestScenarios:
    """Known minima, with and without active box constraints."""

    def test_difference_objective(self):
        options = new_options_with_constraints([(0, 10), (0, 10)])

        result = run(difference, [0, 0.5], options)

        assert result.status == RunStatus.CONVERGED
        assert_within_bounds(result.x, options)
        assert result.f == pytest.approx(-10, abs=1e-4)
        np.testing.assert_allclose(result.x, [0, 10], atol=1e-4)

    def test_sum_of_squares_with_offset(self):
        options = new_options_with_constraints([(0, 10), (0, 10)])

        result = run(offset_squares, [0, 0.5], options)

        assert result.status == RunStatus.CONVERGED
        assert_within_bounds(result.x, options)
        assert result.f == pytest.approx(-6, abs=1e-2)
        np.testing.assert_allclose(result.x, [2, 3], atol=1e-2)

    def test_cubic_minus_linear_in_tight_box(self):
        options = new_options_with_constraints([(3, 5), (0, 10)])

        result = run(lambda x: x[0] ** 3 - x[1], [4, 5], options)

        assert_within_bounds(result.x, options)
        assert result.f == pytest.approx(17.0, abs=1e-2)
        np.testing.assert_allclose(result.x, [3, 10], atol=1e-2)

    def test_one_dimensional_cube(self):
        result = run(lambda x: x[0] ** 3, [4], new_options_with_constraints([(3, 5)]))

        assert f"{result.f:.2f}" == "27.00"
        assert f"{result.x[0]:.2f}" == "3.00"

    def test_unconstrained_bowl(self):
        result = run(shifted_bowl, [5.0, 5.0])

        assert result.success
        np.testing.assert_allclose(result.x, [1, -2], atol=1e-2)
        assert result.f == pytest.approx(0.0, abs=1e-4)


def test_every_intermediate_best_is_inside_the_box_and_fresh():
    options = new_options_with_constraints([(3, 5), (0, 10)])
    objective = lambda x: x[0] ** 3 - x[1]
    seen: List[IterationInfo] = []

    result = run(objective, [4, 5], options, callback=seen.append)

    assert seen
    for info in seen:
        assert options.constraints.contains(info.best.x)
        assert info.best.f == objective(info.best.x)
    assert result.f == objective(result.x)


def test_best_value_never_increases():
    best_values: List[float] = []

    run(shifted_bowl, [5.0, -7.0], callback=lambda info: best_values.append(info.best.f))

    assert len(best_values) > 1
    assert all(b <= a for a, b in zip(best_values, best_values[1:]))


def test_already_converged_guess_returns_immediately():
    calls = []

    def objective(x):
        calls.append(x)
        return 5.0

    result = run(objective, [1.0, 2.0])

    assert result.status == RunStatus.CONVERGED
    assert result.iterations == 0
    assert result.nfev == len(calls) == 3
    np.testing.assert_array_equal(result.x, [1.0, 2.0])
    assert abs(result.f - objective(np.array([1.0, 2.0]))) < new_options().tolerance


def test_loose_tolerance_converges_on_first_check():
    options = Options(tolerance=10.0)

    result = run(shifted_bowl, [1.0, -2.0], options)

    assert result.iterations == 0
    assert abs(result.f - shifted_bowl(np.array([1.0, -2.0]))) < options.tolerance


def test_iteration_budget_exhausted_is_not_an_error():
    result = run(shifted_bowl, [50.0, 50.0], Options(max_iterations=3))

    assert result.status == RunStatus.EXHAUSTED
    assert result.success
    assert result.iterations == 3
    assert result.nfev > 3


def test_simplex_collapse():
    rng = np.random.default_rng(101)

    def flat_region_with_noise(x):
        noise = rng.random(len(x)) * 1e-10
        return float(np.sum((x - 5) ** 4 + noise))

    options = Options(tolerance=1e-16, max_iterations=1000, collapse_threshold=1e-5)

    with pytest.raises(SimplexCollapseError, match="simplex has collapsed") as exc_info:
        run(flat_region_with_noise, [5.0, 5.0], options)

    err = exc_info.value
    assert err.result is not None
    assert err.result.status == RunStatus.COLLAPSED
    assert not err.result.success
    assert err.mean_edge_length < 1e-5
    np.testing.assert_allclose(err.result.x, [5.0, 5.0], atol=0.1)


def test_parallel_evaluation_matches_serial():
    serial = run(offset_squares, [0, 0.5], new_options_with_constraints([(0, 10), (0, 10)]))
    parallel_options = new_options_with_constraints([(0, 10), (0, 10)])
    parallel_options.max_workers = 4
    parallel = run(offset_squares, [0, 0.5], parallel_options)

    np.testing.assert_array_equal(serial.x, parallel.x)
    assert serial.f == parallel.f
    assert serial.iterations == parallel.iterations
    assert serial.nfev == parallel.nfev


def test_objective_errors_propagate():
    def broken(x):
        raise RuntimeError("solver crashed")

    with pytest.raises(RuntimeError, match="solver crashed"):
        run(broken, [0.0])


def test_objective_receives_a_copy():
    def mutating(x):
        value = float(np.sum(x**2))
        x[:] = 1e6
        return value

    result = run(mutating, [3.0, -1.0])
    np.testing.assert_allclose(result.x, [0.0, 0.0], atol=1e-2)


class TestStopping:
    """Callbacks and stop conditions checked at the iteration boundary."""

    def test_callback_stops_run(self):
        result = run(shifted_bowl, [5.0, 5.0], callback=lambda info: info.iteration >= 2)

        assert result.status == RunStatus.STOPPED
        assert result.iterations == 2

    def test_callback_receives_steps(self):
        steps: List[Step] = []
        run(shifted_bowl, [5.0, 5.0], callback=lambda info: steps.append(info.step))

        assert set(steps) <= set(Step)
        assert Step.REFLECT in steps

    def test_max_evaluations(self):
        result = run(
            shifted_bowl, [5.0, 5.0], stop_conditions=[MaxEvaluationsStopCondition(20)]
        )

        assert result.status == RunStatus.STOPPED
        assert result.nfev >= 20

    def test_target_value(self):
        result = run(shifted_bowl, [5.0, 5.0], stop_conditions=[TargetValueStopCondition(1.0)])

        assert result.status == RunStatus.STOPPED
        assert result.f <= 1.0

    def test_timeout(self):
        assert TimeoutStopCondition(-1.0)(None) is True
        assert TimeoutStopCondition(3600.0)(None) is False

        result = run(shifted_bowl, [5.0, 5.0], stop_conditions=[TimeoutStopCondition(-1.0)])
        assert result.status == RunStatus.STOPPED
        assert result.iterations == 1


def test_workspace_buffers_share_one_allocation():
    ws = Workspace.allocate(3)

    assert ws.reflected.x.shape == ws.centroid.shape == (3,)
    assert np.shares_memory(ws.reflected.x, ws.contracted.x) is False
    assert ws.reflected.x.base is ws.centroid.base


def test_result_to_dict():
    result = run(shifted_bowl, [1.0, -2.0], Options(tolerance=10.0))
    data = result.to_dict()

    assert data["status"] == "converged"
    assert data["x"] == [1.0, -2.0]
    assert data["nfev"] == 3
