"""Logging setup for the gateway process."""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_handler: Optional[logging.Handler] = None


def configure_logging(level: str = "INFO") -> logging.Handler:
    """Configure the root logger once; later calls only adjust the level."""
    global _handler

    root = logging.getLogger()
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    if _handler is None:
        _handler = logging.StreamHandler()
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    if _handler not in root.handlers:
        root.addHandler(_handler)

    root.setLevel(resolved)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(resolved, logging.WARNING))
    return _handler
