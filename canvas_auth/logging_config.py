"""
Logging setup shared by the web app and canvas_tool.py.

Usage:
    from canvas_auth.logging_config import configure_logging

    configure_logging("DEBUG")
    logger = logging.getLogger(__name__)
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level)

    # configure once; uvicorn reloads and tests call this repeatedly
    if any(getattr(h, "_canvas_auth", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler._canvas_auth = True
    root.addHandler(handler)
