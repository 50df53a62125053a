"""
Player-facing rejection messages.

Commands never raise at the caller; they return an `OperationResult` whose
``reason`` is shown verbatim in the client. Each template interpolates the
exception's ``details`` so the text names the exact shortfall, capacity or
missing card.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from src.core.exceptions import ConfigurationError, ProgressionInfrastructureException
from src.modules.shared.exceptions import (
    DeckFullError,
    ErrorSeverity,
    InsufficientCopiesError,
    InsufficientFundsError,
    InvalidOperationError,
    NotFoundError,
    OutOfRangeError,
    PersistenceUnavailableError,
    ProgressionDomainException,
    ValidationError,
)


@dataclass(frozen=True)
class ExceptionTemplate:
    title: str
    template: str
    help_text: Optional[str] = None
    severity: ErrorSeverity = ErrorSeverity.INFO

    def format(self, exception: Exception) -> Dict[str, Any]:
        """
        Returns:
            ``title``, ``description``, ``help_text`` and ``severity``
        """
        details: Dict[str, Any] = {}
        if isinstance(exception, (ProgressionDomainException, ProgressionInfrastructureException)):
            details = dict(exception.details)

        try:
            description = self.template.format(**details)
        except (KeyError, ValueError):
            # A placeholder the exception did not supply
            description = getattr(exception, "message", str(exception))

        return {
            "title": self.title,
            "description": description,
            "help_text": self.help_text,
            "severity": self.severity,
        }


# ============================================================================
# TEMPLATES
# ============================================================================

EXCEPTION_TEMPLATES: Dict[type, ExceptionTemplate] = {
    InsufficientFundsError: ExceptionTemplate(
        "Not Enough Currency",
        "You need {shortfall:,} more {currency} ({required:,} required, you have {current:,}).",
        help_text="Win matches or open chests to earn more.",
    ),
    InsufficientCopiesError: ExceptionTemplate(
        "Not Enough Copies",
        "{card_id} needs {shortfall} more copies ({required} required, you have {current}).",
        help_text="Collect duplicates from chests.",
    ),
    DeckFullError: ExceptionTemplate(
        "Deck Full",
        "Your active deck already holds {capacity} skills. Remove one first.",
    ),
    NotFoundError: ExceptionTemplate("Not Found", "{resource_type} not found: {identifier}"),
    ValidationError: ExceptionTemplate("Invalid Input", "{field}: {validation_message}"),
    InvalidOperationError: ExceptionTemplate("Not Available", "{reason}"),
    OutOfRangeError: ExceptionTemplate(
        "Limit Reached",
        "{field} cannot exceed {limit:,}.",
        severity=ErrorSeverity.WARNING,
    ),
    PersistenceUnavailableError: ExceptionTemplate(
        "Try Again",
        "Your progress may not have been saved. Retrying is safe.",
        help_text="Please retry in a moment.",
        severity=ErrorSeverity.WARNING,
    ),
    ConfigurationError: ExceptionTemplate(
        "Configuration Error",
        "A game configuration error occurred. Please contact support.",
        help_text="Error code: CONFIGURATION_ERROR",
        severity=ErrorSeverity.CRITICAL,
    ),
}


def get_exception_template(exception: Exception) -> Optional[ExceptionTemplate]:
    """Nearest template along the exception's MRO."""
    for klass in type(exception).__mro__:
        if klass in EXCEPTION_TEMPLATES:
            return EXCEPTION_TEMPLATES[klass]
    return None


def describe_rejection(exception: Exception) -> str:
    template = get_exception_template(exception)
    if template is None:
        return getattr(exception, "message", str(exception))
    return template.format(exception)["description"]
