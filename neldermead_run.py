# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements the entry point script for NelderMead.
#
# ===--------------------------------------------------------------------------------------===#

import sys
from neldermead.cli import main

if __name__ == "__main__":
    sys.exit(main())
