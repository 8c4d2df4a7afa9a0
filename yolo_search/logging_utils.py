"""Logging setup for the `yolo-search` command."""

from __future__ import annotations

import logging
import sys

# -qq .. -v, INFO being the default.
VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG)
DEFAULT_VERBOSITY = 2

# Third-party loggers that are noisy at DEBUG.
QUIET_LOGGERS = ("PIL", "matplotlib")


def add_logging_args(parser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("-v", "--verbose", action="count", default=0, help="Log decode/NMS details.")
    group.add_argument("-q", "--quiet", action="count", default=0, help="-q warnings only, -qq errors only.")


def verbosity_to_level(verbose: int = 0, quiet: int = 0) -> int:
    index = DEFAULT_VERBOSITY + verbose - quiet
    index = min(max(index, 0), len(VERBOSITY_LEVELS) - 1)
    return VERBOSITY_LEVELS[index]


def configure_logging(verbose: int = 0, quiet: int = 0) -> int:
    """
    Send log records to stderr (stdout carries detections and matched paths)
    and return the chosen level. Safe to call more than once.
    """

    level = verbosity_to_level(verbose, quiet)
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))
    return level
