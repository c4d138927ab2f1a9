"""
admission_pipeline.logging_config

Central logging configuration. The server's own loggers and uvicorn's share
one handler and format.
"""

from __future__ import annotations

import logging


def _make_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)

    formatter = logging.Formatter(fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    handler.setFormatter(formatter)
    return handler


def _configure_logger(logger_name: str, handler: logging.Handler, level: int) -> None:
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False


def configure_logging(level: str | int = logging.INFO) -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = _make_handler(level)

    # Don't clear root handlers to avoid surprising other libs.
    root = logging.getLogger()
    root.setLevel(level)
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        root.addHandler(handler)

    # Uvicorn installs its own handlers; replace them so our format wins.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        _configure_logger(name, handler, level)
