# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements the vector arithmetic of the simplex moves.
#
# ===--------------------------------------------------------------------------------------===#

from typing import Optional

import numpy as np

from neldermead.simplex import Simplex


def compute_centroid(
    simplex: Simplex, exclude_idx: int, out: Optional[np.ndarray] = None
) -> np.ndarray:
    """Computes the mean position of every vertex except ``exclude_idx``.

    Args:
        simplex: The current simplex.
        exclude_idx: Index of the vertex left out, normally the worst one.
        out: Optional buffer of the problem dimension that receives the result.

    Returns:
        The centroid, written into ``out`` when it is given.
    """
    if out is None:
        out = np.zeros(simplex.dim, dtype=np.float64)
    else:
        out.fill(0.0)

    for idx, point in enumerate(simplex.points):
        if idx != exclude_idx:
            out += point.x
    out /= len(simplex.points) - 1
    return out


def transform(
    base: np.ndarray, centroid: np.ndarray, coef: float, out: Optional[np.ndarray] = None
) -> np.ndarray:
    """Applies the affine step ``centroid + coef * (centroid - base)``.

    Reflection, expansion and contraction are all this step with a different
    base point and coefficient.

    Args:
        base: Point moved through the centroid.
        centroid: Centroid of the remaining vertices.
        coef: Step coefficient (alpha, gamma or beta).
        out: Optional buffer that receives the result; must not alias ``centroid``.

    Returns:
        The transformed coordinates.
    """
    out = np.subtract(centroid, base, out=out)
    out *= coef
    out += centroid
    return out


def shrink(simplex: Simplex, delta: float) -> None:
    """Moves every vertex except the best toward the best by factor ``delta``.

    Only coordinates change; the values of the moved vertices are stale until
    the simplex is evaluated again.
    """
    best: np.ndarray = simplex.points[0].x
    for point in simplex.points[1:]:
        point.x -= best
        point.x *= delta
        point.x += best


def distance(a: np.ndarray, b: np.ndarray) -> float:
    """Euclidean distance between two coordinate vectors."""
    return float(np.linalg.norm(a - b))
