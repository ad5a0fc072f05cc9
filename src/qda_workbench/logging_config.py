"""Logging configuration for the QDA workbench."""

import sys

from loguru import logger

from qda_workbench.config import LOG_LEVEL

LOG_FORMAT = "{level.icon} {message}"


def configure_logging(*, verbose: bool = False, level: str | None = None) -> None:
    """Send workbench logs to stderr.

    stdout stays reserved for command output and the MCP stdio transport.
    An explicit ``level``, then ``$QDA_LOG_LEVEL``, take precedence over
    ``verbose``.
    """
    logger.remove()
    chosen = level or LOG_LEVEL or ("DEBUG" if verbose else "INFO")
    logger.add(sys.stderr, level=chosen.upper(), format=LOG_FORMAT)
