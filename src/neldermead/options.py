# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements the optimizer options, their defaults and their validation.
#
# ===--------------------------------------------------------------------------------------===#

from typing import Any, Dict, Iterable, Mapping, Optional

from dataclasses import dataclass, field, fields
import math
import numbers
import pathlib

import numpy as np
import yaml

from neldermead.constraints import ConstraintLike, ConstraintSet
from neldermead.errors import ValidationError

DEFAULT_ALPHA: float = 1.0
DEFAULT_BETA: float = 0.5
DEFAULT_GAMMA: float = 2.0
DEFAULT_DELTA: float = 0.5
DEFAULT_TOLERANCE: float = 1e-6
DEFAULT_MAX_ITERATIONS: int = 1000
DEFAULT_INITIAL_STEP: float = 1.0

CONFIG_SECTION: str = "NELDER_MEAD_CONFIG"

_FLOAT_FIELDS: set[str] = {
    "alpha",
    "beta",
    "gamma",
    "delta",
    "tolerance",
    "collapse_threshold",
    "initial_step",
}


@dataclass
class Options:
    """Configuration of a Nelder-Mead run.

    The defaults are a starting point and are rarely well suited to a given
    problem; tune them to the objective at hand.

    Attributes:
        alpha: Reflection coefficient, the size of the reflection step. Must be
            greater than 0; 1.0 is the usual choice. Large values speed up the
            search but may cause oscillations.
        beta: Contraction coefficient, used when the reflected point does not
            improve on the second-worst vertex. Must lie in (0, 1); 0.5 places the
            contracted point halfway from the centroid.
        gamma: Expansion coefficient, used when the reflected point improves on
            the second-worst vertex. Must be greater than 1.
        delta: Shrink coefficient, the factor by which every vertex moves toward
            the best one when contraction fails. Must lie in (0, 1).
        tolerance: The run converges once the value gap between the best and the
            worst vertex drops below this threshold. Must be greater than 0.
        collapse_threshold: Minimum mean edge length of the simplex. Below it the
            simplex is considered collapsed and the run fails. 0 disables the check.
        max_iterations: Upper bound on the number of iterations. Must be greater than 0.
        constraints: Optional box constraints, either empty (unconstrained) or one
            ``(min, max)`` pair per dimension.
        initial_step: Length of the axis-aligned perturbation used to build the
            initial simplex. Narrow boxes should use a step below their width.
        max_workers: Number of threads used to evaluate the vertices of a round.
            1 evaluates serially in the calling thread, None uses one thread per
            logical CPU.
    """

    alpha: float = DEFAULT_ALPHA
    beta: float = DEFAULT_BETA
    gamma: float = DEFAULT_GAMMA
    delta: float = DEFAULT_DELTA
    tolerance: float = DEFAULT_TOLERANCE
    collapse_threshold: float = 0.0
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    constraints: ConstraintSet = field(default_factory=ConstraintSet)
    initial_step: float = DEFAULT_INITIAL_STEP
    max_workers: Optional[int] = 1

    def __post_init__(self):
        if not isinstance(self.constraints, ConstraintSet):
            self.constraints = ConstraintSet(self.constraints or ())

    def to_dict(self) -> Dict[str, Any]:
        """Returns the options as plain python values, the inverse of ``options_from_dict``."""
        data: Dict[str, Any] = {f.name: getattr(self, f.name) for f in fields(self)}
        data["constraints"] = self.constraints.to_list()
        return data


def new_options() -> Options:
    """Returns options populated with the default coefficients."""
    return Options()


def new_options_with_constraints(constraints: Iterable[ConstraintLike]) -> Options:
    """Returns the default options restricted to the given box."""
    return Options(constraints=ConstraintSet(constraints))


def _is_integer(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def validate_options(options: Options, x0: Optional[np.ndarray] = None) -> None:
    """Checks coefficient ranges and constraint consistency before a run.

    Args:
        options: Options to validate.
        x0: Initial guess. When given, its dimension is checked against the
            constraints and every coordinate must lie inside its bound.

    Raises:
        ValidationError: If a coefficient is out of range, a constraint is
            malformed, or the constraints do not match the dimension of ``x0``.
        OutOfBoundsInitialGuessError: If ``x0`` lies outside the box.
    """
    if not options.alpha > 0:
        raise ValidationError("invalid options parameter: alpha must be greater than 0")
    if not 0 < options.beta < 1:
        raise ValidationError("invalid options parameter: beta must be in the range (0, 1)")
    if not options.gamma > 1:
        raise ValidationError("invalid options parameter: gamma must be greater than 1")
    if not 0 < options.delta < 1:
        raise ValidationError("invalid options parameter: delta must be in the range (0, 1)")
    if not options.tolerance > 0:
        raise ValidationError("invalid options parameter: tolerance must be greater than 0")
    if not options.collapse_threshold >= 0:
        raise ValidationError(
            "invalid options parameter: collapse_threshold must be greater than or equal to 0"
        )
    if not _is_integer(options.max_iterations) or not options.max_iterations > 0:
        raise ValidationError(
            "invalid options parameter: max_iterations must be an integer greater than 0"
        )
    if not (options.initial_step > 0 and math.isfinite(options.initial_step)):
        raise ValidationError("invalid options parameter: initial_step must be a positive number")
    if options.max_workers is not None and (
        not _is_integer(options.max_workers) or options.max_workers < 1
    ):
        raise ValidationError("invalid options parameter: max_workers must be None or at least 1")

    options.constraints.validate()

    if x0 is None:
        return
    if x0.ndim != 1 or x0.shape[0] == 0:
        raise ValidationError(f"invalid initial guess: expected a non-empty vector, got shape {x0.shape}")
    if not np.all(np.isfinite(x0)):
        raise ValidationError("invalid initial guess: x0 must only contain finite numbers")
    options.constraints.validate_dimension(x0)


def options_from_dict(config: Mapping[str, Any]) -> Options:
    """Builds ``Options`` from a mapping of field names to values.

    Args:
        config: Mapping using the ``Options`` field names. ``constraints`` is a
            list of ``[min, max]`` pairs.

    Raises:
        ValidationError: If the mapping holds a key that is not an option.
    """
    known: set[str] = {f.name for f in fields(Options)}
    unknown: list[str] = sorted(set(config) - known)
    if unknown:
        raise ValidationError(f"unknown options: {', '.join(unknown)}")

    kwargs: Dict[str, Any] = dict(config)
    # PyYAML reads exponent floats without a dot, such as 1e-6, as strings
    try:
        for name in _FLOAT_FIELDS & set(kwargs):
            kwargs[name] = float(kwargs[name])
        if "max_iterations" in kwargs:
            kwargs["max_iterations"] = int(kwargs["max_iterations"])
        if kwargs.get("max_workers") is not None:
            kwargs["max_workers"] = int(kwargs["max_workers"])
    except (TypeError, ValueError) as err:
        raise ValidationError(f"invalid option value: {err}") from err

    if kwargs.get("constraints") is not None:
        kwargs["constraints"] = ConstraintSet(kwargs["constraints"])
    else:
        kwargs.pop("constraints", None)
    return Options(**kwargs)


def load_options(path: str | pathlib.Path) -> Options:
    """Loads options from the ``NELDER_MEAD_CONFIG`` block of a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The options described by the file; missing fields keep their defaults.
    """
    with open(path, "r") as f:
        config: Dict[str, Any] = yaml.safe_load(f) or {}

    if CONFIG_SECTION not in config:
        raise ValidationError(f"config file '{path}' has no {CONFIG_SECTION} section")
    return options_from_dict(config[CONFIG_SECTION] or {})
