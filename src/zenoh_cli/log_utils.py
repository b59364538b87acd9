"""Logging setup for the CLI and the structured fields the actor attaches.

Settings come from ``ZENOH_CLI_LOG_*`` environment variables:

``ZENOH_CLI_LOG_DIR``        directory for ``zenoh-cli.log`` (default: user log dir)
``ZENOH_CLI_LOG_LEVEL``      level name or number (default: INFO)
``ZENOH_CLI_LOG_STDERR``     also log to stderr
``ZENOH_CLI_LOG_JSON``       write JSON lines instead of text
``ZENOH_CLI_LOG_MAX_BYTES``  rotate after this many bytes
``ZENOH_CLI_LOG_BACKUPS``    rotated files to keep
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator

from zenoh_cli.paths import log_dir

LOG_FILE_NAME = "zenoh-cli.log"
DEFAULT_LOG_MAX_BYTES = 5_000_000
DEFAULT_LOG_BACKUPS = 3

_TRUE_VALUES = {"1", "true", "yes", "on"}

_fields_var: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar("zenoh_cli_log_fields", default={})


@dataclass(frozen=True)
class LogConfig:
    """Where and how to log.

    The REPL owns the terminal, so records go to a rotating file unless
    ``stderr`` is set.
    """

    log_file: Path
    level: int = logging.INFO
    stderr: bool = False
    json: bool = False
    max_bytes: int = DEFAULT_LOG_MAX_BYTES
    backup_count: int = DEFAULT_LOG_BACKUPS


def _env_level(name: str) -> int:
    value = os.getenv(name, "").strip()
    if value.isdigit():
        return int(value)
    return logging._nameToLevel.get(value.upper(), logging.INFO)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ[name])
    except (KeyError, ValueError):
        return default


def build_log_config() -> LogConfig:
    env_dir = os.getenv("ZENOH_CLI_LOG_DIR")
    directory = Path(env_dir) if env_dir else log_dir()
    directory.mkdir(parents=True, exist_ok=True)
    return LogConfig(
        log_file=directory / LOG_FILE_NAME,
        level=_env_level("ZENOH_CLI_LOG_LEVEL"),
        stderr=_env_flag("ZENOH_CLI_LOG_STDERR"),
        json=_env_flag("ZENOH_CLI_LOG_JSON"),
        max_bytes=_env_int("ZENOH_CLI_LOG_MAX_BYTES", DEFAULT_LOG_MAX_BYTES),
        backup_count=_env_int("ZENOH_CLI_LOG_BACKUPS", DEFAULT_LOG_BACKUPS),
    )


def configure_logging(config: LogConfig) -> None:
    """Replace the root handlers with ones built from ``config``."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(config.level)

    formatter: logging.Formatter = JsonFormatter() if config.json else TextFormatter()
    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            config.log_file, maxBytes=config.max_bytes, backupCount=config.backup_count, encoding="utf-8"
        )
    ]
    if config.stderr:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(FieldsFilter())
        root.addHandler(handler)


@contextlib.contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Tag every record logged inside the block with ``fields``.

    The actor wraps each request in one of these with the request kind and
    its key or selector.
    """
    token = _fields_var.set({**_fields_var.get(), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _fields_var.reset(token)


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Log a short, stable event name (``actor.request.done``) with fields."""
    logger.log(level, event, extra={"event_fields": fields})


class FieldsFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 - logging API name
        record.context_fields = dict(_fields_var.get())
        record.event_fields = getattr(record, "event_fields", {})
        return True


def _render_field(key: str, value: Any) -> str:
    if isinstance(value, str) and (not value or any(ch.isspace() or ch in '="' for ch in value)):
        return f"{key}={json.dumps(value)}"
    return f"{key}={value}"


class TextFormatter(logging.Formatter):
    """``time LEVEL logger message`` followed by sorted ``key=value`` fields."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        fields = {**getattr(record, "context_fields", {}), **getattr(record, "event_fields", {})}
        rendered = " ".join(_render_field(k, fields[k]) for k in sorted(fields) if fields[k] is not None)
        base = super().format(record)
        return f"{base} {rendered}" if rendered else base


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context_fields", {})
        fields = getattr(record, "event_fields", {})
        if context:
            payload["context"] = context
        if fields:
            payload["fields"] = fields
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)
