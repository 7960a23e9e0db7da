# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements the exception hierarchy raised by the optimizer.
#
# ===--------------------------------------------------------------------------------------===#

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from neldermead.driver import OptimizationResult


class NelderMeadError(Exception):
    """Base class for every error raised by the optimizer."""


class ValidationError(NelderMeadError, ValueError):
    """Raised when options, constraints or the initial guess are malformed.

    Validation always happens before the objective is evaluated, so a run that
    raises this error has not called the objective a single time.
    """


class OutOfBoundsInitialGuessError(ValidationError):
    """Raised when a coordinate of the initial guess lies outside its bounds.

    Attributes:
        index: Dimension of the first offending coordinate.
        value: The offending coordinate.
        bounds: The ``(min, max)`` pair it violates.
    """

    def __init__(self, index: int, value: float, bounds: tuple[float, float]):
        self.index: int = index
        self.value: float = value
        self.bounds: tuple[float, float] = bounds
        super().__init__(
            f"invalid initial guess: x0[{index}]={value} is outside of"
            f" [{bounds[0]}, {bounds[1]}]"
        )


class SimplexCollapseError(NelderMeadError):
    """Raised when the mean vertex distance drops below the collapse threshold.

    The best point found before the collapse is not discarded: it is kept on
    ``result`` together with the iteration and evaluation counts.

    Attributes:
        result: The run's result with status ``RunStatus.COLLAPSED``.
        mean_edge_length: Mean pairwise vertex distance that triggered the error.
    """

    def __init__(
        self,
        result: Optional["OptimizationResult"] = None,
        mean_edge_length: Optional[float] = None,
    ):
        self.result: Optional["OptimizationResult"] = result
        self.mean_edge_length: Optional[float] = mean_edge_length
        super().__init__("simplex has collapsed")
