"""
Infrastructure exceptions for the progression engine.

Game rule violations live in ``src.modules.shared.exceptions``; this module
covers what can go wrong underneath them: balance tables that do not load,
an open database circuit breaker, and player lock failures.

Every exception carries ``message``, structured ``details``, an
``ErrorSeverity`` for log routing, ``is_retryable`` and a stable
``error_code``. The unit of work maps the retryable ones to
``PersistenceUnavailableError`` before they reach a caller.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    DEBUG = "debug"
    INFO = "info"  # expected rejections
    WARNING = "warning"  # handled, usually retryable
    ERROR = "error"
    CRITICAL = "critical"  # corrupted state, bad deployment


class ProgressionInfrastructureException(Exception):
    """
    Base for infrastructure failures.

    Args:
        message: Human-readable error message
        details: Structured context for logs
        severity: Overrides the class default severity
        is_retryable: Overrides the class default
        error_code: Stable code; defaults to the class name
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.details: Dict[str, Any] = details or {}
        self.severity = severity or self.DEFAULT_SEVERITY
        self.is_retryable = self.DEFAULT_RETRYABLE if is_retryable is None else is_retryable
        self.error_code = error_code or type(self).__name__
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class ConfigurationError(ProgressionInfrastructureException):
    """
    A balance table key is missing or inconsistent.

    Raised while building rules at startup; the process should not serve
    commands with a half-loaded economy.
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            message,
            details={"config_key": config_key},
            error_code="CONFIGURATION_ERROR",
        )


class CircuitBreakerOpenError(ProgressionInfrastructureException):
    """The database breaker is open; calls fail fast until `retry_after` passes."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        service: str = "database",
        consecutive_failures: int = 0,
        retry_after: float = 0.0,
    ) -> None:
        self.service = service
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker open for {service} (retry after {retry_after:.1f}s)",
            details={
                "service": service,
                "consecutive_failures": consecutive_failures,
                "retry_after": round(retry_after, 3),
            },
            error_code="CIRCUIT_BREAKER_OPEN",
        )


class LockBackendError(ProgressionInfrastructureException):
    """The Redis lock backend failed while acquiring or releasing `lock_key`."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, lock_key: str, original_error: Exception) -> None:
        self.lock_key = lock_key
        self.original_error = original_error
        super().__init__(
            f"Lock backend error for '{lock_key}': {original_error}",
            details={
                "lock_key": lock_key,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="LOCK_BACKEND_ERROR",
        )


class LockTimeoutError(ProgressionInfrastructureException):
    """Another command held the player's lock for longer than the wait budget."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, lock_key: str, waited_seconds: float) -> None:
        self.lock_key = lock_key
        self.waited_seconds = waited_seconds
        super().__init__(
            f"Timed out after {waited_seconds:.2f}s waiting for lock '{lock_key}'",
            details={"lock_key": lock_key, "waited_seconds": round(waited_seconds, 3)},
            error_code="LOCK_TIMEOUT",
        )
