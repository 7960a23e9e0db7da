# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements stop conditions checked between iterations.
#
# ===--------------------------------------------------------------------------------------===#

"""Caller-side stop conditions.

The optimizer has no built-in cancellation; the iteration boundary is the only
place where a run can be suspended. Stop conditions are callables checked
there with the current ``IterationInfo``; the first one that returns True ends
the run with status ``RunStatus.STOPPED`` and the best point found so far.
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

import time

if TYPE_CHECKING:
    from neldermead.driver import IterationInfo


@runtime_checkable
class StopCondition(Protocol):
    """Protocol for stop condition objects."""

    def __call__(self, info: "IterationInfo") -> bool:
        """Returns True when the run should stop after the current iteration."""
        ...


class TimeoutStopCondition(StopCondition):
    # stops once the wall-clock budget, counted from construction, is spent

    def __init__(self, timeout_s: float):
        self.timeout_s: float = timeout_s
        self.start_time: float = time.monotonic()

    def __call__(self, info: "IterationInfo") -> bool:
        return time.monotonic() - self.start_time > self.timeout_s


class MaxEvaluationsStopCondition(StopCondition):
    # stops once the objective has been called at least max_nfev times

    def __init__(self, max_nfev: int):
        self.max_nfev: int = max_nfev

    def __call__(self, info: "IterationInfo") -> bool:
        return info.nfev >= self.max_nfev


class TargetValueStopCondition(StopCondition):
    # stops once the best value reaches the target

    def __init__(self, target: float):
        self.target: float = target

    def __call__(self, info: "IterationInfo") -> bool:
        return info.best.f <= self.target
