# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements the point and simplex data model.
#
# ===--------------------------------------------------------------------------------------===#

from typing import Iterator, List, Optional

from dataclasses import dataclass
import logging
import math

import numpy as np

from neldermead.constraints import ConstraintSet


@dataclass
class Point:
    """A coordinate vector paired with the objective value at that vector.

    Attributes:
        x: Coordinates of the point, a 1D float array of the problem dimension.
        f: Objective value evaluated at ``x``.
    """

    x: np.ndarray
    f: float = math.inf

    def copy(self) -> "Point":
        return Point(x=self.x.copy(), f=self.f)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(x={self.x.tolist()}, f={self.f:.8g})"


def _sort_key(point: Point) -> float:
    # NaN never compares, push it behind every real value
    return math.inf if math.isnan(point.f) else point.f


class Simplex:
    """The n+1 vertices of an n-dimensional Nelder-Mead search.

    Vertices are kept in a list that is mutated in place: a single vertex is
    overwritten by ``replace_vertex`` and all of them are moved by a shrink.
    After ``sort`` the list is ascending by value, so ``points[0]`` is the best
    vertex and ``points[-1]`` the worst.
    """

    def __init__(self, points: List[Point]):
        self.points: List[Point] = points

    @property
    def dim(self) -> int:
        return len(self.points) - 1

    @property
    def best(self) -> Point:
        return self.points[0]

    @property
    def worst(self) -> Point:
        return self.points[-1]

    @property
    def second_worst(self) -> Point:
        return self.points[-2]

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[Point]:
        return iter(self.points)

    def __getitem__(self, idx: int) -> Point:
        return self.points[idx]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(points={self.points})"

    def replace_vertex(self, idx: int, candidate: Point) -> None:
        """Copies the coordinates and value of ``candidate`` into vertex ``idx``.

        The vertex keeps its own array, so ``candidate`` may be a scratch buffer
        that is overwritten afterwards.
        """
        self.points[idx].x[:] = candidate.x
        self.points[idx].f = candidate.f

    def sort(self) -> None:
        """Sorts vertices ascending by value; equal values keep their order."""
        self.points.sort(key=_sort_key)

    def coordinates(self) -> np.ndarray:
        """Returns an ``(n+1, n)`` array with a copy of every vertex."""
        return np.stack([p.x for p in self.points])

    def value_spread(self) -> float:
        """Returns ``|best.f - worst.f|``, the convergence criterion."""
        return abs(self.points[0].f - self.points[-1].f)


def create_simplex(
    x0: np.ndarray,
    constraints: Optional[ConstraintSet] = None,
    step: float = 1.0,
    logger: Optional[logging.Logger] = None,
) -> Simplex:
    """Builds the initial simplex around ``x0``.

    Vertex 0 is ``x0`` itself and vertex ``i`` is ``x0`` moved by ``step``
    along dimension ``i-1``. With constraints every vertex is clamped into the
    box afterwards, which flattens the simplex along any dimension narrower
    than ``step``; that case is reported as a warning and is best avoided by
    scaling ``step`` to the box width.

    Args:
        x0: Initial guess.
        constraints: Optional box constraints.
        step: Length of the perturbation along each axis.
        logger: Logger used to report narrow dimensions.

    Returns:
        A simplex of ``len(x0) + 1`` points whose values are not evaluated yet.
    """
    logger = logger if logger is not None else logging.getLogger(__name__)
    x0 = np.asarray(x0, dtype=np.float64)
    n: int = x0.shape[0]

    vertices: np.ndarray = np.tile(x0, (n + 1, 1))
    vertices[1:] += step * np.eye(n)

    if constraints:
        narrow: List[int] = constraints.narrow_dimensions(step)
        if narrow:
            logger.warning(
                f"Dimensions {narrow} are narrower than the initial step {step};"
                " the initial simplex is flattened against their bounds."
            )
        for vertex in vertices:
            constraints.clamp(vertex)

    return Simplex([Point(x=vertex.copy()) for vertex in vertices])
