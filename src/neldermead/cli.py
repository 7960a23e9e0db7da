# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements the command-line interface of NelderMead.
#
# ===--------------------------------------------------------------------------------------===#

from typing import Any, Dict, List, Optional, Tuple

import argparse
import importlib.util
import json
import logging
import os
from pathlib import Path
import shutil
import sys

import yaml

from neldermead.driver import OptimizationResult, run
from neldermead.errors import SimplexCollapseError, ValidationError
from neldermead.evaluator import Objective
from neldermead.options import Options, load_options
from neldermead.stopping import StopCondition, TimeoutStopCondition
from neldermead.utils.logging_utils import get_logger

DEFAULT_OBJECTIVE_NAME: str = "objective"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parses command-line arguments for a NelderMead run.

    Args:
        argv: Argument list, ``sys.argv[1:]`` if None.

    Returns:
        Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Minimize an objective function with the Nelder-Mead simplex algorithm."
    )
    parser.add_argument(
        "--objective",
        type=str,
        required=True,
        help=(
            "path to a python file defining the objective, optionally followed by"
            f" ':<function name>' (default function name: '{DEFAULT_OBJECTIVE_NAME}')."
        ),
    )
    parser.add_argument(
        "--x0", type=float, nargs="+", required=True, help="initial guess, one value per dimension."
    )
    parser.add_argument(
        "--cfg_path", type=str, help="path to .yaml config file with a NELDER_MEAD_CONFIG block."
    )
    parser.add_argument(
        "--out_dir",
        type=str,
        help="directory that will receive result.json, results.log and a copy of the config.",
    )
    parser.add_argument(
        "--max_workers",
        type=int,
        default=None,
        help="number of threads evaluating the simplex vertices, overrides the config.",
    )
    parser.add_argument(
        "--timeout_s",
        type=float,
        default=None,
        help="stop after this many seconds and report the best point found so far.",
    )
    parser.add_argument("--verbose", action="store_true", help="log every iteration.")

    return parser.parse_args(argv)


def split_objective_spec(spec: str) -> Tuple[Path, str]:
    """Splits ``path/to/file.py:func`` into the file path and the function name."""
    path_part, sep, name = spec.rpartition(":")
    if sep and name.isidentifier():
        return Path(path_part), name
    return Path(spec), DEFAULT_OBJECTIVE_NAME


def load_objective(spec: str) -> Objective:
    """Imports the objective function described by ``spec``.

    Args:
        spec: ``path/to/file.py`` or ``path/to/file.py:function_name``.

    Returns:
        The callable found in the module.

    Raises:
        FileNotFoundError: If the file does not exist.
        ImportError: If the file cannot be loaded as a module.
        AttributeError: If the module does not define a callable with that name.
    """
    path, name = split_objective_spec(spec)
    if not path.is_file():
        raise FileNotFoundError(f"Objective file '{path}' not found.")

    module_spec = importlib.util.spec_from_file_location(path.stem, str(path))
    if module_spec is None or module_spec.loader is None:
        raise ImportError(f"Unable to load module spec from '{path}'")
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)  # type: ignore[arg-type]

    objective = getattr(module, name, None)
    if not callable(objective):
        raise AttributeError(f"'{path}' does not define a callable named '{name}'")
    return objective


def write_result(out_dir: Path, result: OptimizationResult, error: Optional[str] = None) -> Path:
    """Writes the result of a run as ``result.json`` into ``out_dir``."""
    data: Dict[str, Any] = result.to_dict()
    data["error"] = error
    result_path: Path = out_dir.joinpath("result.json")
    with open(result_path, "w") as f:
        json.dump(data, f, indent=4)
    return result_path


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point of the NelderMead command-line interface.

    Loads the options and the objective, runs the optimizer and reports the
    best point. Converged, exhausted and stopped runs exit with 0; invalid
    input and simplex collapse exit with 1.
    """
    args: argparse.Namespace = parse_args(argv)
    out_dir: Optional[Path] = Path(args.out_dir) if args.out_dir else None
    if out_dir is not None:
        os.makedirs(out_dir, exist_ok=True)

    logger: logging.Logger = get_logger(
        run_name="neldermead",
        results_dir=out_dir,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    try:
        options: Options = load_options(args.cfg_path) if args.cfg_path else Options()
        objective: Objective = load_objective(args.objective)
    except (OSError, ImportError, AttributeError, yaml.YAMLError, ValidationError) as err:
        print(str(err), file=sys.stderr)
        return 1

    if args.max_workers is not None:
        options.max_workers = args.max_workers
    if out_dir is not None and args.cfg_path:
        shutil.copy2(args.cfg_path, out_dir.joinpath(Path(args.cfg_path).name))

    stop_conditions: List[StopCondition] = []
    if args.timeout_s is not None:
        stop_conditions.append(TimeoutStopCondition(args.timeout_s))

    try:
        result: OptimizationResult = run(
            objective, args.x0, options, logger=logger, stop_conditions=stop_conditions
        )
    except ValidationError as err:
        print(str(err), file=sys.stderr)
        return 1
    except SimplexCollapseError as err:
        print(f"{err}: best point so far {err.result.point}", file=sys.stderr)
        if out_dir is not None:
            write_result(out_dir, err.result, error=str(err))
        return 1

    print(f"status = {result.status.value}")
    print(f"best_x = {result.x.tolist()}")
    print(f"best_f = {result.f:.10g}")
    print(f"iterations = {result.iterations} | nfev = {result.nfev}")
    if out_dir is not None:
        result_path: Path = write_result(out_dir, result)
        logger.info(f"Saved result at '{result_path}'.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
