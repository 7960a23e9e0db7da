# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements detection of degenerate (collapsed) simplices.
#
# ===--------------------------------------------------------------------------------------===#

import itertools

from neldermead.geometry import distance
from neldermead.simplex import Simplex


def mean_edge_length(simplex: Simplex) -> float:
    """Mean Euclidean distance over all ``C(n+1, 2)`` vertex pairs."""
    total: float = 0.0
    count: int = 0
    for a, b in itertools.combinations(simplex.points, 2):
        total += distance(a.x, b.x)
        count += 1
    return total / count if count else 0.0


class CollapseDetector:
    """Flags simplices whose vertices have drawn too close together.

    A mean edge length below ``threshold`` means the search region is
    numerically exhausted. A threshold of 0 disables the check.
    """

    def __init__(self, threshold: float = 0.0):
        self.threshold: float = threshold
        self.last_mean_edge_length: float | None = None

    @property
    def enabled(self) -> bool:
        return self.threshold != 0

    def is_collapsed(self, simplex: Simplex) -> bool:
        if not self.enabled:
            return False
        self.last_mean_edge_length = mean_edge_length(simplex)
        return self.last_mean_edge_length < self.threshold

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(threshold={self.threshold})"
