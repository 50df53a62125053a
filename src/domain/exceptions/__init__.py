"""
Domain exceptions package.

Purpose
-------
Re-exports the domain exception hierarchy (defined in
``src.modules.shared.exceptions``) together with the rejection message
templates used to build player-facing reasons.
"""

from src.modules.shared.exceptions import (
    DeckFullError,
    ErrorSeverity,
    InsufficientCopiesError,
    InsufficientFundsError,
    InvalidOperationError,
    InvariantViolationError,
    NotFoundError,
    OutOfRangeError,
    PersistenceUnavailableError,
    ProgressionDomainException,
    ValidationError,
)

from .registry import EXCEPTION_TEMPLATES, describe_rejection, get_exception_template

__all__ = [
    # Exception classes
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
    "ErrorSeverity",
    # Registry
    "EXCEPTION_TEMPLATES",
    "get_exception_template",
    "describe_rejection",
]
