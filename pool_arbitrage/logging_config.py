"""
Logging configuration for CLI runs.

Usage:
    from pool_arbitrage import logging_config
    logging_config.setup()
"""

import logging
import sys

from pool_arbitrage.utils import PROJECT_HANDLER_NAME

APP_LOGGER_PREFIXES = ("pool_arbitrage", "dex")


def setup(level=logging.INFO):
    """
    Configure root logging for readable console output.

    - Short timestamps (HH:MM:SS)
    - Drops the per-module fallback handlers added by get_logger()
    - Quiets HTTP client and aiohttp access chatter
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root.addHandler(console)

    for name, logger in list(logging.Logger.manager.loggerDict.items()):
        if not isinstance(logger, logging.Logger):
            continue
        if not name.startswith(APP_LOGGER_PREFIXES):
            continue
        logger.handlers = [
            h for h in logger.handlers if h.get_name() != PROJECT_HANDLER_NAME
        ]
        logger.setLevel(level)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


def setup_debug():
    """Verbose logging, including HTTP client connection logs."""
    setup(level=logging.DEBUG)
    logging.getLogger("urllib3").setLevel(logging.DEBUG)
