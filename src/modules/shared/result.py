"""
Command result envelope returned to the presentation layer.

Commands never throw for rule violations; they return an `OperationResult`
whose `reason` is specific enough to show the player (exact shortfall,
deck capacity, missing card id).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .exceptions import ProgressionDomainException


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a mutating command."""

    success: bool
    reason: str = ""
    value: Any = None
    error_code: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, value: Any = None, reason: str = "", **details: Any) -> OperationResult:
        return cls(success=True, reason=reason, value=value, details=details)

    @classmethod
    def rejected(
        cls, exc: ProgressionDomainException, reason: Optional[str] = None
    ) -> OperationResult:
        """Build a failed result from a domain exception."""
        return cls(
            success=False,
            reason=reason or exc.message,
            error_code=exc.error_code,
            details=dict(exc.details),
        )

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "reason": self.reason,
            "value": self.value,
            "error_code": self.error_code,
            "details": self.details,
        }
