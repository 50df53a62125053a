"""
Structured logging for the progression engine.

Purpose
-------
One logging stack for every component:

- JSON records for aggregation, colored text on a developer console
- Player/operation context carried through async code with ContextVars
- A correlation id per command so its lock wait, retries, commit and
  published events can be joined in the logs
- Emission through a bounded QueueHandler so file I/O never blocks the
  event loop; a full queue drops records rather than stalling commands

Usage
-----
>>> logger = get_logger(__name__)
>>> with LogContext(player_id="p-1", operation="cards.upgrade"):
...     logger.info("Card upgraded", extra={"card_id": "blaze"})

Fields passed through `extra={...}` land under ``"extra"`` in JSON output.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.core.config.config import Config

_log_context: ContextVar[Dict[str, Any]] = ContextVar("progression_log_context", default={})

_CONTEXT_FIELDS = ("player_id", "season_id", "operation", "component", "correlation_id")


# ============================================================================
# Settings
# ============================================================================


@dataclass(frozen=True)
class LoggerConfig:
    """Logging knobs derived from `Config` at setup time."""

    CONSOLE_FORMAT: str = (
        "%(asctime)s | %(levelname)-8s | %(name)-28s | %(correlation_id)s | %(message)s"
    )
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    FILE_NAME: str = "progression.json.log"
    QUEUE_MAX_SIZE: int = 10_000

    @property
    def level(self) -> int:
        return getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO)

    @property
    def logs_dir(self) -> Path:
        return Path(Config.LOGS_DIR).resolve()

    @property
    def use_json(self) -> bool:
        return bool(Config.LOG_JSON)

    @property
    def use_colors(self) -> bool:
        return not self.use_json and bool(Config.LOG_COLORS) and sys.stdout.isatty()

    @property
    def file_logging(self) -> bool:
        # Test runs log to the console only
        return not Config.is_testing()


LOGGER_CONFIG = LoggerConfig()


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the bound context onto each record; explicit `extra` wins."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get({})
        for field in _CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, context.get(field, "-"))
        for key, value in context.items():
            if key not in _CONTEXT_FIELDS and not hasattr(record, key):
                setattr(record, key, value)
        return True


class ColoredFormatter(logging.Formatter):
    COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[1;91m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        original = record.levelname
        color = self.COLORS.get(original)
        if color:
            record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JSONFormatter(logging.Formatter):
    """One JSON object per record; non-standard attributes go under ``extra``."""

    _RESERVED = frozenset(
        logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
        | {"message", "asctime", "taskName"}
    )

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, "-")
            if value != "-":
                payload[field] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._RESERVED and key not in _CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Queue plumbing
# ============================================================================


class _DroppingQueueHandler(QueueHandler):
    dropped: int = 0

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _DroppingQueueHandler.dropped += 1
            sys.stderr.write("Logging queue full; dropping log record.\n")


_listener: Optional[QueueListener] = None


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if LOGGER_CONFIG.use_json:
        handler.setFormatter(JSONFormatter())
    elif LOGGER_CONFIG.use_colors:
        handler.setFormatter(ColoredFormatter(LOGGER_CONFIG.CONSOLE_FORMAT, LOGGER_CONFIG.DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(LOGGER_CONFIG.CONSOLE_FORMAT, LOGGER_CONFIG.DATE_FORMAT))
    return handler


def _file_handler() -> logging.Handler:
    LOGGER_CONFIG.logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(LOGGER_CONFIG.logs_dir / LOGGER_CONFIG.FILE_NAME),
        when="midnight",
        backupCount=max(1, int(Config.LOG_RETENTION_DAYS)),
        encoding="utf-8",
        utc=True,
    )
    handler.setFormatter(JSONFormatter())
    return handler


# ============================================================================
# Setup / Teardown
# ============================================================================


def setup_logging() -> None:
    """Install the queue handler on the root logger. Safe to call twice."""
    global _listener

    root = logging.getLogger()
    if _listener is not None:
        return

    handlers: List[logging.Handler] = [_console_handler()]
    if LOGGER_CONFIG.file_logging:
        handlers.append(_file_handler())
    for handler in handlers:
        handler.setLevel(LOGGER_CONFIG.level)

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    _listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    _listener.start()

    # Context is read on the emitting task, before the record is queued
    queue_handler = _DroppingQueueHandler(log_queue)
    queue_handler.addFilter(ContextFilter())

    root.handlers.clear()
    root.setLevel(LOGGER_CONFIG.level)
    root.addHandler(queue_handler)

    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if Config.DATABASE_ECHO else logging.WARNING
    )

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": Config.ENVIRONMENT,
            "log_level": logging.getLevelName(LOGGER_CONFIG.level),
            "json": LOGGER_CONFIG.use_json,
            "file_logging": LOGGER_CONFIG.file_logging,
        },
    )


def shutdown_logging() -> None:
    """Flush queued records and detach every root handler."""
    global _listener

    if _listener is None:
        return

    _listener.stop()
    _listener = None

    root = logging.getLogger()
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind context fields to every record logged inside the block.

    Nested contexts inherit the outer fields; a new correlation id is
    generated only when the outer context has none.
    """

    def __init__(
        self,
        player_id: Optional[str] = None,
        season_id: Optional[str] = None,
        operation: Optional[str] = None,
        component: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        inherited = _log_context.get({})
        self.context: Dict[str, Any] = {**inherited, **extra}
        for key, value in (
            ("player_id", player_id),
            ("season_id", season_id),
            ("operation", operation),
            ("component", component),
        ):
            if value is not None:
                self.context[key] = str(value)
        self.context["correlation_id"] = (
            correlation_id or inherited.get("correlation_id") or uuid.uuid4().hex[:8]
        )
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> LogContext:
        self._token = _log_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    """Add fields to the current task's context without a block."""
    _log_context.set({**_log_context.get({}), **fields})


def get_log_context() -> Dict[str, Any]:
    return dict(_log_context.get({}))


setup_logging()
