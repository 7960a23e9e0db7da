# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements an example of an objective function.
#
# ===--------------------------------------------------------------------------------------===#

import numpy as np


def objective(x: np.ndarray) -> float:
    """
    Objective function.
    Receives the coordinates of a simplex vertex and returns the value to minimize.
    """
    return float((x[0] - 2) ** 2 + (x[1] - 3) ** 2 - 6)
