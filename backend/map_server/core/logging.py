"""Console logging setup for the map server."""

import logging
import sys

from map_server.core import config


def configure_logging(settings: config.Settings) -> None:
    """Send application logs to stdout at the configured level.

    Calling this more than once replaces the previous handler instead of
    stacking duplicates.

    Args:
        settings: Application settings providing level and format.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(settings.log_format))

    logger = logging.getLogger("map_server")
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(settings.log_level.upper())
