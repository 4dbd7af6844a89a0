"""Logging setup for the MAX! Cube controller.

Every module logs through ``get_logger(__name__)``; records propagate to the
``max_cube`` package logger, which ``configure_logging()`` equips with a JSON
file handler, a human-readable handler, or both. Structured context passed as
``extra={...}`` lands in the JSON ``context`` object or is appended to the
human-readable line.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping, MutableMapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast, override

from max_cube.const import (
    MAX_CUBE_DEBUG,
    MAX_CUBE_LOG_FORMAT,
    MAX_CUBE_LOG_HUMAN_OUTPUT,
    MAX_CUBE_LOG_JSON_FILE,
)
from max_cube.correlation import get_correlation_id

__all__ = [
    "PACKAGE_LOGGER_NAME",
    "CubeLogAdapter",
    "HumanReadableFormatter",
    "JSONFormatter",
    "configure_logging",
    "get_logger",
]

PACKAGE_LOGGER_NAME = "max_cube"


def _context_of(record: logging.LogRecord) -> Mapping[str, object]:
    extra_data = getattr(record, "extra_data", None)
    if isinstance(extra_data, Mapping) and extra_data:
        return cast("Mapping[str, object]", extra_data)
    return {}


class JSONFormatter(logging.Formatter):
    """Formatter that outputs structured JSON logs."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "line": record.lineno,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }

        context = _context_of(record)
        if context:
            log_data["context"] = dict(context)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Formatter that outputs human-readable logs with correlation IDs."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] %(correlation_id)s > %(message)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        correlation_id = get_correlation_id()
        record.correlation_id = f"[{correlation_id[-8:]}]" if correlation_id else "[--------]"

        formatted = super().format(record)

        context = _context_of(record)
        if context:
            context_str = " | ".join(f"{k}={v}" for k, v in context.items())
            formatted = f"{formatted} | {context_str}"

        return formatted


class CubeLogAdapter(logging.LoggerAdapter[logging.Logger]):
    """Moves a call's ``extra`` mapping under ``extra_data`` for the formatters."""

    @override
    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = kwargs.pop("extra", None)
        if extra:
            kwargs["extra"] = {"extra_data": dict(extra)}
        return msg, kwargs


def get_logger(name: str) -> CubeLogAdapter:
    """Logger for ``name``; output is decided by configure_logging()."""
    return CubeLogAdapter(logging.getLogger(name), {})


def _human_handler(human_output: str) -> logging.Handler:
    if human_output == "stdout":
        return logging.StreamHandler(sys.stdout)
    if human_output == "stderr":
        return logging.StreamHandler(sys.stderr)
    try:
        human_path = Path(human_output)
        human_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(human_path, mode="a")
    except OSError as e:
        print(f"Warning: Failed to create human log file {human_output}: {e}", file=sys.stderr)
        return logging.StreamHandler(sys.stdout)


def configure_logging(
    log_format: str = MAX_CUBE_LOG_FORMAT,
    json_file: str | Path | None = MAX_CUBE_LOG_JSON_FILE,
    human_output: str | None = MAX_CUBE_LOG_HUMAN_OUTPUT,
    debug: bool = MAX_CUBE_DEBUG,
) -> logging.Logger:
    """(Re)configure the package logger's handlers and level.

    Args:
        log_format: "json", "human", or "both"
        json_file: Path for JSON output (None disables it)
        human_output: "stdout", "stderr", or a file path
        debug: Log at DEBUG instead of INFO

    Calling it again replaces the previous handlers.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    level = logging.DEBUG if debug else logging.INFO
    package_logger.setLevel(level)

    if log_format in ("json", "both") and json_file:
        try:
            json_path = Path(json_file)
            json_path.parent.mkdir(parents=True, exist_ok=True)
            json_handler = logging.FileHandler(json_path, mode="a")
            json_handler.setFormatter(JSONFormatter())
            json_handler.setLevel(level)
            package_logger.addHandler(json_handler)
        except OSError as e:
            print(f"Warning: Failed to create JSON log file {json_file}: {e}", file=sys.stderr)

    if log_format in ("human", "both"):
        human_handler = _human_handler(human_output or "stdout")
        human_handler.setFormatter(HumanReadableFormatter())
        human_handler.setLevel(level)
        package_logger.addHandler(human_handler)

    return package_logger
