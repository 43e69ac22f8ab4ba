"""Logging setup shared by the service and its entry points."""

import logging
import sys
from typing import Union

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO, fmt: str = DEFAULT_FORMAT, stream=sys.stdout) -> None:
    """Install one stream handler on the root logger.

    Safe to call more than once; a second call only changes the level.
    """
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(fmt))
        root.addHandler(handler)

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    root.setLevel(level)
