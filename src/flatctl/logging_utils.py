"""Logging setup for flatctl.

Three debug channels exist, each enabled by its own flag:

    flatctl          -v
    flatctl.detail   -vv
    flatctl.repo     --ostree-verbose

Everything is written to the diagnostic stream as ``F: <message>``.
"""

import logging
import sys
from typing import TextIO

from flatctl.constants import APP_NAME, LOG_PREFIX

MAX_VERBOSITY = 2
DETAIL_LOGGER_NAME = f"{APP_NAME}.detail"
REPO_LOGGER_NAME = f"{APP_NAME}.repo"


class PrefixedFormatter(logging.Formatter):
    """Format records as a single ``F: message`` line."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{LOG_PREFIX} {message}"


def setup_logging(
    verbosity: int = 0,
    repo_verbose: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure the flatctl logging channels and return the app logger.

    Must not be called under the completion protocol; any text on the
    diagnostic stream would leak into the shell.
    """
    verbosity = max(0, min(verbosity, MAX_VERBOSITY))

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(PrefixedFormatter())

    app_logger = logging.getLogger(APP_NAME)
    for existing in list(app_logger.handlers):
        if not isinstance(existing, logging.NullHandler):
            app_logger.removeHandler(existing)
    app_logger.addHandler(handler)
    app_logger.propagate = False
    app_logger.setLevel(logging.DEBUG if verbosity >= 1 else logging.INFO)

    # Child channels get explicit levels so -v does not leak into them.
    logging.getLogger(DETAIL_LOGGER_NAME).setLevel(
        logging.DEBUG if verbosity >= 2 else logging.INFO
    )
    logging.getLogger(REPO_LOGGER_NAME).setLevel(
        logging.DEBUG if repo_verbose else logging.INFO
    )

    return app_logger
