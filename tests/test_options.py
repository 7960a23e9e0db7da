# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements tests for option defaults, validation and YAML loading.
#
# ===--------------------------------------------------------------------------------------===#

from dataclasses import replace
import math

import numpy as np
import pytest

from neldermead.constraints import ConstraintSet
from neldermead.driver import run
from neldermead.errors import OutOfBoundsInitialGuessError, ValidationError
from neldermead.options import (
    DEFAULT_ALPHA,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TOLERANCE,
    Options,
    load_options,
    new_options,
    new_options_with_constraints,
    options_from_dict,
    validate_options,
)


class CountingObjective:
    """Wraps an objective and counts how often it is called."""

    def __init__(self, fn=lambda x: float(np.sum(x**2))):
        self.fn = fn
        self.calls = 0

    def __call__(self, x):
        self.calls += 1
        return self.fn(x)


def test_defaults():
    options = new_options()

    assert options.alpha == DEFAULT_ALPHA == 1.0
    assert options.beta == 0.5
    assert options.gamma == 2.0
    assert options.delta == 0.5
    assert options.tolerance == DEFAULT_TOLERANCE == 1e-6
    assert options.max_iterations == DEFAULT_MAX_ITERATIONS == 1000
    assert options.collapse_threshold == 0.0
    assert options.max_workers == 1
    assert len(options.constraints) == 0


def test_new_options_with_constraints():
    options = new_options_with_constraints([(3, 5)])
    assert isinstance(options.constraints, ConstraintSet)
    assert options.constraints.to_list() == [[3.0, 5.0]]


def test_options_converts_plain_constraint_lists():
    options = Options(constraints=[(0, 1), (2, 3)])
    assert isinstance(options.constraints, ConstraintSet)
    assert len(options.constraints) == 2


def test_valid_options():
    options = Options(collapse_threshold=1e-6, constraints=[(-1, 1)])
    validate_options(options, np.array([0.0]))


@pytest.mark.parametrize(
    "changes",
    [
        {"alpha": -1.0},
        {"alpha": 0.0},
        {"beta": -1.0},
        {"beta": 0.0},
        {"beta": 1.0},
        {"beta": 1.00001},
        {"gamma": 0.999},
        {"gamma": 1.0},
        {"delta": -1.0},
        {"delta": 1.1},
        {"tolerance": -1.0},
        {"tolerance": 0.0},
        {"collapse_threshold": -1e-3},
        {"max_iterations": 0},
        {"max_iterations": -1},
        {"max_iterations": 10.0},
        {"max_iterations": True},
        {"max_workers": 2.5},
        {"initial_step": 0.0},
        {"max_workers": 0},
        {"alpha": math.nan},
        {"constraints": ConstraintSet([(1, 1), (0, 1)])},
        {"constraints": ConstraintSet([(-math.inf, math.inf), (0, 1)])},
        {"constraints": ConstraintSet([(math.nan, 2), (0, 1)])},
        {"constraints": ConstraintSet([(2, math.nan), (0, 1)])},
        {"constraints": ConstraintSet([(10, 5), (0, 1)])},
        {"constraints": ConstraintSet([(0, 1)])},
    ],
)
def test_invalid_options_fail_before_any_evaluation(changes):
    objective = CountingObjective()
    options = replace(new_options(), **changes)

    with pytest.raises(ValidationError):
        run(objective, [0.5, 0.5], options)
    assert objective.calls == 0


def test_out_of_bounds_initial_guess_fails_before_any_evaluation():
    objective = CountingObjective(lambda x: x[0] - x[1])
    options = new_options_with_constraints([(-1, 1), (-1, 1)])

    with pytest.raises(OutOfBoundsInitialGuessError):
        run(objective, [10.0, 10.0], options)
    assert objective.calls == 0


@pytest.mark.parametrize("x0", [[], [[1.0, 2.0]], [math.nan, 1.0], [math.inf], ["a", 1.0]])
def test_malformed_initial_guess_fails_before_any_evaluation(x0):
    objective = CountingObjective()

    with pytest.raises(ValidationError):
        run(objective, x0)
    assert objective.calls == 0


def test_initial_guess_on_bounds_is_accepted():
    options = new_options_with_constraints([(-2, 2), (-2, 2)])
    validate_options(options, np.array([-2.0, 2.0]))


class TestConfigLoading:
    """Options read from the NELDER_MEAD_CONFIG block of a YAML file."""

    def test_load_options(self, tmp_path):
        cfg_path = tmp_path / "config.yaml"
        cfg_path.write_text(
            "NELDER_MEAD_CONFIG:\n"
            "  alpha: 1.5\n"
            "  tolerance: 1e-8\n"
            "  collapse_threshold: 1.0e-5\n"
            "  max_iterations: 50\n"
            "  max_workers: null\n"
            "  constraints:\n"
            "    - [0, 10]\n"
            "    - [-1, 1]\n"
        )

        options = load_options(cfg_path)

        assert options.alpha == 1.5
        assert options.tolerance == pytest.approx(1e-8)
        assert options.collapse_threshold == pytest.approx(1e-5)
        assert options.max_iterations == 50
        assert options.max_workers is None
        assert options.beta == 0.5
        assert options.constraints.to_list() == [[0.0, 10.0], [-1.0, 1.0]]

    def test_missing_section(self, tmp_path):
        cfg_path = tmp_path / "config.yaml"
        cfg_path.write_text("OTHER: {}\n")
        with pytest.raises(ValidationError):
            load_options(cfg_path)

    def test_unknown_key(self):
        with pytest.raises(ValidationError, match="unknown options: alhpa"):
            options_from_dict({"alhpa": 1.0})

    def test_bad_value(self):
        with pytest.raises(ValidationError):
            options_from_dict({"tolerance": "small"})

    def test_round_trip(self):
        options = Options(gamma=3.0, constraints=[(0, 1)], max_workers=2)
        assert options_from_dict(options.to_dict()) == options
