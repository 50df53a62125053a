"""
Game rule rejections.

Domain models and feature services raise these; the progression facade
catches them and returns an `OperationResult` whose reason names the exact
shortfall, deck capacity or missing card. Only `PersistenceUnavailableError`
is retryable. A repeated season claim or grant is not an error at all: it
comes back as a successful, idempotent result.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from src.core.exceptions import ErrorSeverity


class ProgressionDomainException(Exception):
    """
    Base for rule violations.

    ``error_code`` is the stable value clients switch on; it defaults to the
    class name and every subclass below sets its own.
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
        self.details: Dict[str, Any] = dict(details or {})
        self.severity = severity or self.DEFAULT_SEVERITY
        self.is_retryable = self.DEFAULT_RETRYABLE if is_retryable is None else is_retryable
        self.error_code = error_code or type(self).__name__
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class NotFoundError(ProgressionDomainException):
    """
    Raised when a card, season or player record does not exist.

    Args:
        resource_type: Type of resource (e.g., "Card", "Season")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class InsufficientFundsError(ProgressionDomainException):
    """
    Raised when a ledger balance is below the amount to debit.

    Args:
        currency: Currency name ("coins" or "gems")
        required: Amount the operation needs
        current: Balance at the time of the check
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, currency: str, required: int, current: int) -> None:
        self.currency = currency
        self.required = required
        self.current = current
        self.shortfall = required - current
        super().__init__(
            f"Insufficient {currency}: need {required:,}, have {current:,}",
            details={
                "currency": currency,
                "required": required,
                "current": current,
                "shortfall": self.shortfall,
            },
            error_code="INSUFFICIENT_FUNDS",
        )


class InsufficientCopiesError(ProgressionDomainException):
    """
    Raised when a card has fewer copies than its next upgrade consumes.

    Args:
        card_id: Card being upgraded
        required: Copies needed for the upgrade
        current: Copies owned
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, card_id: str, required: int, current: int) -> None:
        self.card_id = card_id
        self.required = required
        self.current = current
        self.shortfall = required - current
        super().__init__(
            f"Not enough copies of {card_id}: need {required}, have {current}",
            details={
                "card_id": card_id,
                "required": required,
                "current": current,
                "shortfall": self.shortfall,
            },
            error_code="INSUFFICIENT_COPIES",
        )


class DeckFullError(ProgressionDomainException):
    """Raised when adding a skill to a deck with no free slot."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        super().__init__(
            f"Active deck is full ({capacity} slots)",
            details={"capacity": capacity},
            error_code="DECK_FULL",
        )


class OutOfRangeError(ProgressionDomainException):
    """
    Raised when a value would leave its representable range.

    Credits that would overflow an unsigned 64-bit balance are rejected with
    this error rather than wrapped or saturated.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, field: str, value: int, limit: int) -> None:
        self.field = field
        self.value = value
        self.limit = limit
        super().__init__(
            f"{field} would exceed {limit:,} (got {value:,})",
            details={"field": field, "value": value, "limit": limit},
            error_code="OUT_OF_RANGE",
        )


class ValidationError(ProgressionDomainException):
    """
    Raised when input fails domain validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code="VALIDATION_ERROR",
        )


class InvalidOperationError(ProgressionDomainException):
    """
    Raised when an action is not allowed in the current state.

    Example:
        >>> raise InvalidOperationError(
        ...     "claim_season_reward",
        ...     "season_2 is still open",
        ... )
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Invalid operation '{action}': {reason}",
            details={"action": action, "reason": reason},
            error_code="INVALID_OPERATION",
        )


class PersistenceUnavailableError(ProgressionDomainException):
    """
    Raised when durable storage could not be reached after retries.

    Transient: the caller may retry with the same idempotency key.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, attempts: int, cause: Optional[str] = None) -> None:
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Persistence unavailable during {operation} after {attempts} attempt(s)",
            details={"operation": operation, "attempts": attempts, "cause": cause},
            error_code="PERSISTENCE_UNAVAILABLE",
        )


class InvariantViolationError(ProgressionDomainException):
    """
    Raised when stored or computed state breaks a domain invariant.

    Indicates a bug or corrupted data; the operation is halted and nothing is
    clamped or defaulted.
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, invariant: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.invariant = invariant
        super().__init__(
            f"Invariant violated: {invariant}",
            details={"invariant": invariant, **(details or {})},
            error_code="INVARIANT_VIOLATION",
        )


__all__ = [
    "ErrorSeverity",
    "ProgressionDomainException",
    "NotFoundError",
    "InsufficientFundsError",
    "InsufficientCopiesError",
    "DeckFullError",
    "OutOfRangeError",
    "ValidationError",
    "InvalidOperationError",
    "PersistenceUnavailableError",
    "InvariantViolationError",
]
