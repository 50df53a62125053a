"""
Core infrastructure layer.

Purpose
-------
Provide a single, well-structured import surface for the infrastructure
subsystems of the progression engine:

- Configuration management (Config, ConfigManager)
- Database subsystem (DatabaseService, retry policy, circuit breaker)
- Event bus (EventBus, ListenerPriority)
- Per-player locking (PlayerLockService)
- Logging (structured logging, logger factory)
- Infrastructure exceptions

Design Decisions
----------------
- This module is intentionally thin: no logic, no configuration, no I/O.
- Public API is explicit via __all__ to avoid leaking internal symbols.
- Feature modules import from the concrete submodules; this surface is for
  entrypoints and tests.
"""

from __future__ import annotations

from src.core.config import Config, ConfigManager
from src.core.database import DatabaseRetryPolicy, DatabaseService
from src.core.event import EventBus, ListenerPriority
from src.core.exceptions import (
    CircuitBreakerOpenError,
    ConfigurationError,
    ErrorSeverity,
    LockBackendError,
    LockTimeoutError,
    ProgressionInfrastructureException,
)
from src.core.locking import PlayerLockService
from src.core.logging import get_logger, setup_logging

__all__ = [
    # Config
    "Config",
    "ConfigManager",
    # Database
    "DatabaseService",
    "DatabaseRetryPolicy",
    # Events
    "EventBus",
    "ListenerPriority",
    # Locking
    "PlayerLockService",
    # Logging
    "get_logger",
    "setup_logging",
    # Exceptions
    "ProgressionInfrastructureException",
    "ConfigurationError",
    "CircuitBreakerOpenError",
    "LockBackendError",
    "LockTimeoutError",
    "ErrorSeverity",
]
