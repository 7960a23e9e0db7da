# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements box constraints and the routines that enforce them.
#
# ===--------------------------------------------------------------------------------------===#

from typing import Iterable, Iterator, List, Sequence, Tuple, Union

from dataclasses import dataclass
import math

import numpy as np

from neldermead.errors import OutOfBoundsInitialGuessError, ValidationError


@dataclass(frozen=True)
class Constraint:
    """Inclusive lower and upper bound of a single dimension.

    Attributes:
        min: Lower bound, must be finite.
        max: Upper bound, must be finite and strictly greater than ``min``.
    """

    min: float
    max: float

    def validate(self) -> None:
        """Checks that the bounds describe a non-empty, finite interval.

        Raises:
            ValidationError: If a bound is NaN or infinite, or if ``min >= max``.
        """
        if math.isnan(self.min) or math.isnan(self.max):
            raise ValidationError("constraint value for min and max must be valid numbers")
        if math.isinf(self.min) or math.isinf(self.max):
            raise ValidationError("constraint value for min and max must not be infinite")
        if self.max < self.min:
            raise ValidationError(
                f"constraint min must be less than max, got min={self.min} max={self.max}"
            )
        if self.min == self.max:
            raise ValidationError(f"constraint min must not be equal to max (both {self.min})")

    def width(self) -> float:
        return self.max - self.min


ConstraintLike = Union[Constraint, Tuple[float, float], Sequence[float]]


def _as_constraint(item: ConstraintLike) -> Constraint:
    if isinstance(item, Constraint):
        return item
    try:
        lower, upper = item
        return Constraint(min=float(lower), max=float(upper))
    except (TypeError, ValueError) as err:
        raise ValidationError(f"constraint must be a (min, max) pair, got {item!r}") from err


class ConstraintSet:
    """Ordered per-dimension box constraints.

    An empty set means the problem is unconstrained; clamping is then a no-op
    and every point is inside. Otherwise there is exactly one ``Constraint``
    per problem dimension, which ``validate_dimension`` checks against the
    initial guess.
    """

    def __init__(self, constraints: Iterable[ConstraintLike] = ()):
        self.constraints: List[Constraint] = [_as_constraint(c) for c in constraints]
        self.lower: np.ndarray = np.array([c.min for c in self.constraints], dtype=np.float64)
        self.upper: np.ndarray = np.array([c.max for c in self.constraints], dtype=np.float64)

    @classmethod
    def from_bounds(cls, lower: Sequence[float], upper: Sequence[float]) -> "ConstraintSet":
        """Builds a constraint set from separate lower and upper bound vectors."""
        if len(lower) != len(upper):
            raise ValidationError(
                f"lower and upper bounds differ in length ({len(lower)} != {len(upper)})"
            )
        return cls(zip(lower, upper))

    def __len__(self) -> int:
        return len(self.constraints)

    def __iter__(self) -> Iterator[Constraint]:
        return iter(self.constraints)

    def __getitem__(self, idx: int) -> Constraint:
        return self.constraints[idx]

    def __bool__(self) -> bool:
        return bool(self.constraints)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConstraintSet):
            return NotImplemented
        return self.constraints == other.constraints

    def __repr__(self) -> str:
        pairs: str = ", ".join(f"[{c.min}, {c.max}]" for c in self.constraints)
        return f"{self.__class__.__name__}({pairs})"

    def validate(self) -> None:
        """Validates every constraint in order, raising on the first bad one."""
        for idx, constraint in enumerate(self.constraints):
            try:
                constraint.validate()
            except ValidationError as err:
                raise ValidationError(f"invalid constraint {idx}: {err}") from err

    def validate_dimension(self, x0: np.ndarray) -> None:
        """Checks that the set is empty or matches ``x0`` and contains it.

        Args:
            x0: Initial guess of the optimization.

        Raises:
            ValidationError: If the number of constraints differs from ``len(x0)``.
            OutOfBoundsInitialGuessError: If a coordinate of ``x0`` is out of bounds.
        """
        if not self.constraints:
            return
        if len(self.constraints) != len(x0):
            raise ValidationError(
                "invalid options: the number of constraints must match the length of x0"
                f" ({len(self.constraints)} != {len(x0)})"
            )
        for idx, (value, constraint) in enumerate(zip(x0, self.constraints)):
            if value < constraint.min or value > constraint.max:
                raise OutOfBoundsInitialGuessError(
                    idx, float(value), (constraint.min, constraint.max)
                )

    def contains(self, x: np.ndarray) -> bool:
        """Returns whether every coordinate of ``x`` lies inside its bound (inclusive)."""
        if not self.constraints:
            return True
        return bool(np.all(x >= self.lower) and np.all(x <= self.upper))

    def clamp(self, x: np.ndarray) -> bool:
        """Clamps ``x`` into the box in place.

        Args:
            x: Coordinate vector, modified in place.

        Returns:
            True if at least one coordinate was moved.
        """
        if not self.constraints or self.contains(x):
            return False
        np.clip(x, self.lower, self.upper, out=x)
        return True

    def narrow_dimensions(self, step: float) -> List[int]:
        """Returns the dimensions whose feasible range is narrower than ``step``."""
        return [idx for idx, c in enumerate(self.constraints) if c.width() < step]

    def to_list(self) -> List[List[float]]:
        return [[c.min, c.max] for c in self.constraints]
