"""
Shared Module

Purpose
-------
Provides domain-level foundations for all feature modules:
- Domain exceptions and error handling
- Base service and repository patterns
- Command result envelope
- The per-player unit of work every command runs in

Usage
-----
    from src.modules.shared import (
        BaseService,
        BaseRepository,
        InsufficientFundsError,
        OperationResult,
    )
"""

from __future__ import annotations

# Base patterns
from .base_repository import BaseRepository
from .base_service import BaseService

# Domain exceptions
from .exceptions import (
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
from .result import OperationResult

__all__ = [
    # Base patterns
    "BaseRepository",
    "BaseService",
    # Results
    "OperationResult",
    # Exceptions
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
]
