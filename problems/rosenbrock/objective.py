# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements the Rosenbrock valley as a benchmark objective.
#
# ===--------------------------------------------------------------------------------------===#

import numpy as np


def objective(x: np.ndarray) -> float:
    """Rosenbrock function, minimum 0 at (1, ..., 1)."""
    return float(np.sum(100.0 * (x[1:] - x[:-1] ** 2) ** 2 + (1.0 - x[:-1]) ** 2))
