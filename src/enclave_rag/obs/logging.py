"""Structured logging for the answer pipeline."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any


class StructuredFormatter(logging.Formatter):
    """Formats records as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)
        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info).splitlines()[-1]
        return " ".join(f"{key}={value}" for key, value in log_data.items())


def get_logger(name: str) -> logging.Logger:
    """Return a logger with the structured handler attached once.

    Level is DEBUG when ``ENCLAVE_ENV`` is ``dev``, INFO otherwise.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        env = os.getenv("ENCLAVE_ENV", "prod")
        logger.setLevel(logging.DEBUG if env == "dev" else logging.INFO)
    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """Log ``msg`` with extra context fields (e.g. signal, scope)."""
    logger.log(level, msg, extra={"extra_data": kwargs}, stacklevel=2)
