# ===--------------------------------------------------------------------------------------===#
#
# Part of the NelderMead Project, under the Apache License v2.0.
# SPDX-License-Identifier: Apache-2.0
#
# ===--------------------------------------------------------------------------------------===#
#
# This file implements logging helpers for optimization runs.
#
# ===--------------------------------------------------------------------------------------===#

from typing import Optional

import logging
import pathlib

TRUNCATION_MARK: str = "... [TRUNCATED]"


class SizeLimitedFormatter(logging.Formatter):
    """Logging formatter that caps the length of the message content.

    Simplex dumps of high-dimensional problems quickly become unreadable, so
    messages longer than ``max_msg_sz`` characters are cut and marked with
    ``TRUNCATION_MARK``. The limit applies to the message itself, before the
    timestamp and level are added, and the record is left untouched for any
    other handler.

    Attributes:
        max_msg_sz: Maximum length of the message content in characters.
    """

    def __init__(
        self, fmt: Optional[str] = None, datefmt: Optional[str] = None, max_msg_sz: int = 512
    ) -> None:
        """Initializes the formatter.

        Args:
            fmt: Format string for log records, the logging default if None.
            datefmt: Format string for timestamps, the logging default if None.
            max_msg_sz: Maximum length of the message content. Must leave room
                for the truncation mark.

        Raises:
            ValueError: If ``max_msg_sz`` is shorter than the truncation mark.
        """
        if max_msg_sz < len(TRUNCATION_MARK):
            raise ValueError(
                f"max_msg_sz must be at least {len(TRUNCATION_MARK)} characters"
                " to accommodate the truncation mark"
            )

        super().__init__(fmt, datefmt)
        self.max_msg_sz: int = max_msg_sz

    def format(self, record: logging.LogRecord) -> str:
        message: str = record.getMessage()
        if len(message) <= self.max_msg_sz:
            return super().format(record)

        original_msg, original_args = record.msg, record.args
        record.msg = message[: self.max_msg_sz - len(TRUNCATION_MARK)] + TRUNCATION_MARK
        record.args = None
        try:
            return super().format(record)
        finally:
            record.msg, record.args = original_msg, original_args


def get_logger(
    run_name: str = "run",
    results_dir: Optional[pathlib.Path] = None,
    append_mode: bool = False,
    level: int = logging.INFO,
    max_msg_sz: int = 512,
) -> logging.Logger:
    """Creates a logger for an optimization run.

    The logger writes to stderr and, when ``results_dir`` is given, to
    ``results_dir/results.log``. Every message is prefixed with the run name.
    Calling the function again with the same arguments returns the already
    configured logger.

    Args:
        run_name: Name identifying the run in the log lines.
        results_dir: Directory where the log file is created. If None, logs only
            to the stream handler.
        append_mode: If True, append to an existing log file; if False, overwrite.
        level: Logging level of the logger and its handlers.
        max_msg_sz: Maximum size of log messages in characters.

    Returns:
        The configured logger.
    """
    logger_name: str = f"neldermead.{run_name}"
    if results_dir:
        sanitized_dir: str = str(results_dir).replace("/", "_").replace("\\", "_")
        logger_name = f"{logger_name}.{sanitized_dir}"

    logger: logging.Logger = logging.getLogger(logger_name)
    if not logger.handlers:
        logger.setLevel(level)
        log_formatter = SizeLimitedFormatter(
            f"[{run_name}] %(asctime)s | %(levelname)s | %(message)s",
            max_msg_sz=max_msg_sz,
        )
        logger.propagate = False

        stream_handler: logging.StreamHandler = logging.StreamHandler()
        stream_handler.setFormatter(log_formatter)
        logger.addHandler(stream_handler)

        if results_dir:
            file_handler: logging.FileHandler = logging.FileHandler(
                pathlib.Path(results_dir).joinpath("results.log"), mode="a" if append_mode else "w"
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(log_formatter)
            logger.addHandler(file_handler)

    return logger
