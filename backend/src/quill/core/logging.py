"""Logging configuration for Quill.

Console output is a single readable line per record, with the task and
provider context of streaming code pulled to the front. ``QUILL_LOG_FORMAT=json``
switches every handler to one JSON object per line for log shippers.

Context is attached the standard way, through ``extra``::

    logger.info("Task started", extra={"task_id": task_id, "provider": "ollama"})
"""

import json
import logging
import sys
import traceback
from datetime import UTC, datetime
from typing import Any, ClassVar

from .config import Settings, get_settings_instance

# Attributes present on every LogRecord; anything else arrived through ``extra``
_STANDARD_ATTRS = frozenset(logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}

# Context keys shown ahead of the other extras, in this order
_CONTEXT_KEYS = ("task_id", "provider", "model")

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "httpx_sse")
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")

_LOGGING_CONFIGURED = False


def extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the ``extra`` values of ``record``, context keys first."""
    extras = {key: value for key, value in record.__dict__.items() if key not in _STANDARD_ATTRS}
    ordered = {key: extras.pop(key) for key in _CONTEXT_KEYS if key in extras}
    ordered.update(extras)
    return ordered


class ColoredFormatter(logging.Formatter):
    """``12:00:01.234 INFO  quill.services.task_manager: Task started [task=1a2b3c4d provider=ollama]``"""

    LEVEL_COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[2m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors

    def _level(self, levelname: str) -> str:
        padded = f"{levelname:<5}"
        if not self.use_colors:
            return padded
        return f"{self.LEVEL_COLORS.get(levelname, '')}{padded}{self.RESET}"

    @staticmethod
    def _render_value(key: str, value: Any) -> str:
        text = str(value)
        if key == "task_id" and len(text) > 8:
            # Short form of the uuid4
            text = text[:8]
        if len(text) > 120:
            text = text[:117] + "..."
        return text

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        line = f"{stamp} {self._level(record.levelname)} {record.name}: {record.getMessage()}"

        extras = extra_fields(record)
        context = [
            f"{key.removesuffix('_id')}={self._render_value(key, extras.pop(key))}"
            for key in _CONTEXT_KEYS
            if extras.get(key) is not None
        ]
        if context:
            line += f" [{' '.join(context)}]"
        rest = [f"{key}={self._render_value(key, value)}" for key, value in extras.items() if value is not None]
        if rest:
            line += " " + " ".join(rest)

        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return line


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "src": f"{record.module}:{record.lineno}",
        }
        payload.update(extra_fields(record))

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_type"] = record.exc_info[0].__name__
            payload["exc"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str)


def build_formatter(settings: Settings) -> logging.Formatter:
    if settings.log_format == "json":
        return JSONFormatter()
    return ColoredFormatter(use_colors=settings.environment == "development" and sys.stdout.isatty())


def setup_logging(settings: Settings | None = None, force: bool = False) -> None:
    """Install handlers on the root logger. Later calls are no-ops unless ``force``."""
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if _LOGGING_CONFIGURED and not force:
        return

    settings = settings or get_settings_instance()
    level = getattr(logging, settings.log_level)
    formatter = build_formatter(settings)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = list(handlers)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    # uvicorn installs its own handlers; send its records through ours instead
    for name in _UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = list(handlers)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False

    _LOGGING_CONFIGURED = True
    logging.getLogger("quill").debug(
        "Logging configured",
        extra={"log_level": settings.log_level, "log_format": settings.log_format, "log_file": settings.log_file},
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ``quill`` namespace."""
    if name == "quill" or name.startswith("quill."):
        return logging.getLogger(name)
    return logging.getLogger(f"quill.{name}")
