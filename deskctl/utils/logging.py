"""
Project-wide logging setup for deskctl.

Provides a simple, consistent console logger with optional JSON output.
Controlled via environment variables:
- DESKCTL_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: INFO)
- DESKCTL_LOG_FORMAT: text|json (default: text)
"""
from __future__ import annotations

import logging
import os
from typing import Optional


def _get_level() -> int:
    level = os.getenv("DESKCTL_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level, logging.INFO)


def setup_logging(
    force: bool = False,
    *,
    logger: Optional[logging.Logger] = None,
    level: Optional[int] = None,
) -> None:
    """Configure root logging for console output.

    If a handler is already present and force is False, this is a no-op.
    An explicit level wins over DESKCTL_LOG_LEVEL.
    If DESKCTL_LOG_FORMAT=json and python-json-logger is available, emits JSON.
    """
    target_logger = logger or logging.getLogger()
    if target_logger.handlers and not force:
        return

    if force:
        for h in list(target_logger.handlers):
            target_logger.removeHandler(h)

    target_logger.setLevel(level if level is not None else _get_level())

    handler = logging.StreamHandler()

    fmt = os.getenv("DESKCTL_LOG_FORMAT", "text").lower()
    if fmt == "json":
        try:
            from pythonjsonlogger import jsonlogger  # type: ignore

            formatter = jsonlogger.JsonFormatter(
                fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
                rename_fields={"levelname": "level", "name": "logger"},
            )
        except ImportError:
            formatter = logging.Formatter(
                fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S%z",
            )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    handler.setFormatter(formatter)
    target_logger.addHandler(handler)
