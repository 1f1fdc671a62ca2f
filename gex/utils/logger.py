"""
Logger utility for GEX.

Diagnostics go to stderr so that a report printed to stdout can be piped
into a file or another tool untouched.
"""

import logging
import sys
from pathlib import Path

LOGGER_NAME = "gex"


def setup_logger(log_file=None, verbose=False, stream=None):
    """
    Set up and configure the GEX logger.

    Args:
        log_file (str, optional): Path to the log file. If None, logs to the console only.
        verbose (bool, optional): Whether to enable debug output. Defaults to False.
        stream (IO, optional): Console stream. Defaults to sys.stderr.

    Returns:
        logging.Logger: Configured logger instance.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Repeated setup (tests, gex-bun delegating to gex) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter('%(message)s')

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # The file always gets the full trace, with timestamps
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)

    return logger
