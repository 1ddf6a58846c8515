"""
Logging setup for command-line use.

Library modules only ever call logging.getLogger(__name__); nothing is
configured until an application (like our CLI) calls configure_logging().
"""

import logging
import sys

logger = logging.getLogger("dropbox_client")


def configure_logging(level=logging.INFO) -> None:
    """Send package log messages to stdout, unadorned and unbuffered."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        stream=sys.stdout,
    )
    logger.setLevel(level)
    # Ensure output is not buffered
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(line_buffering=True)
