"""Configuration for easy-sauce.

Runtime settings are read once from the environment. Per-run options
(platforms, port, credentials, ...) live in easy_sauce.options instead.
"""

import logging
import os
import sys

# Sauce Labs REST API
SAUCE_API_URL = os.environ.get("SAUCE_API_URL", "https://saucelabs.com/rest/v1").rstrip("/")

# Sauce Connect binary used to open the tunnel
SAUCE_CONNECT_BIN = os.environ.get("SAUCE_CONNECT_BIN", "sc")

# Seconds between js-tests status polls
POLL_INTERVAL = float(os.environ.get("EASY_SAUCE_POLL_INTERVAL", "2.0"))

# Upper bound for a whole run, in seconds
RUN_TIMEOUT = float(os.environ.get("EASY_SAUCE_RUN_TIMEOUT", "900"))

# Timeout for a single REST request, in seconds
REQUEST_TIMEOUT = float(os.environ.get("EASY_SAUCE_REQUEST_TIMEOUT", "30"))

# Startup timeouts for the local server and the tunnel
SERVER_START_TIMEOUT = 10.0
TUNNEL_TIMEOUT = 120.0

# How long an interrupted run may take to release the tunnel and server
STOP_TIMEOUT = 30.0

# EASY_SAUCE_LOG_LEVEL takes a logging level name; unknown names fall back to WARNING
LOG_LEVEL_STR = os.environ.get("EASY_SAUCE_LOG_LEVEL", "WARNING").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_STR, logging.WARNING)
LOG_FILE = os.environ.get("EASY_SAUCE_LOG_FILE")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging() -> logging.Logger:
    """Configure diagnostic logging for the easy_sauce package.

    Logs go to stderr, and additionally to EASY_SAUCE_LOG_FILE when set.
    Test output is written with click.echo and never passes through here.

    Returns:
        The easy_sauce package logger.
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    logger = logging.getLogger("easy_sauce")
    logger.setLevel(LOG_LEVEL)

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(LOG_LEVEL)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if LOG_FILE:
        try:
            file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
            file_handler.setLevel(LOG_LEVEL)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning("Could not set up file logging to %s: %s", LOG_FILE, e)

    logger.propagate = False

    return logger
