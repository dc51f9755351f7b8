"""Logging setup shared by the gateway and the studio core."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s"

logger = logging.getLogger("portrait_studio")


def setup_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to the studio logger.

    Repeated calls only adjust the level so that reloading the app under
    uvicorn does not duplicate log lines.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric_level)
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(numeric_level)
        return

    handler = logging.StreamHandler()
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
