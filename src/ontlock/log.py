"""Logging setup for the ontlock command line.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed here, by the application.
"""

import logging
import sys
from typing import Optional, TextIO, Union

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_HANDLER_NAME = "ontlock-console"


def configure_logging(level: Union[int, str] = logging.INFO, stream: Optional[TextIO] = None) -> logging.Logger:
    """Attach a single console handler to the ``ontlock`` logger.

    Calling it again replaces the previous handler instead of stacking another.
    An unknown level name falls back to INFO.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger("ontlock")
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger
