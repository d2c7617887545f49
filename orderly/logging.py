"""Logging configuration for Orderly."""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict


def setup_logging(level: str = "INFO") -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )

    # BackendClient logs its own failures; per-request httpx lines are noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class ServiceLogger:
    """Logger that appends ``key=value`` context to every message.

    Context given to the constructor or to ``bind`` is repeated on every line,
    which keeps an order GID attached to all messages about one edit.
    """

    def __init__(self, service_name: str, **context: Any) -> None:
        self._name = service_name
        self._logger = logging.getLogger(f"orderly.{service_name}")
        self._context: Dict[str, Any] = context

    def bind(self, **context: Any) -> "ServiceLogger":
        return ServiceLogger(self._name, **{**self._context, **context})

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, context)

    def error(self, message: str, **context: Any) -> None:
        self._log(logging.ERROR, message, context)

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, context)

    def _log(self, level: int, message: str, context: Dict[str, Any]) -> None:
        merged = {**self._context, **context}
        if merged:
            message = f"{message} | " + " | ".join(f"{k}={v}" for k, v in merged.items())
        self._logger.log(level, message)
