"""
Logging infrastructure: JSON/console formatting behind a queue handler and
ContextVar-based `LogContext` for per-command player and correlation ids.
"""

from src.core.logging.logger import (
    JSONFormatter,
    LogContext,
    LoggerConfig,
    get_log_context,
    get_logger,
    set_log_context,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "LogContext",
    "set_log_context",
    "get_log_context",
    "JSONFormatter",
    "LoggerConfig",
]
