"""
Currency ledger domain model.

Two independent non-negative balances: soft currency (coins) earned in play
and premium currency (gems) bought in the store or granted by seasons.

Rules
-----
- Balances are unsigned 64-bit integers; a credit that would pass
  ``MAX_BALANCE`` is rejected with `OutOfRangeError` (never wrapped or
  saturated).
- A debit larger than the balance is rejected with `InsufficientFundsError`
  and leaves the ledger untouched.
- Amounts must be positive integers.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Union

from src.domain.models.base import validate_positive
from src.modules.shared.exceptions import (
    InsufficientFundsError,
    InvariantViolationError,
    OutOfRangeError,
    ValidationError,
)

MAX_BALANCE = 2**64 - 1


class CurrencyKind(str, Enum):
    """Ledger currencies. Values are the persisted/display names."""

    SOFT = "coins"
    PREMIUM = "gems"

    @classmethod
    def parse(cls, value: Union[CurrencyKind, str]) -> CurrencyKind:
        """
        Resolve a currency from its enum, value ("coins"/"gems") or name.

        Raises
        ------
        ValidationError
            If the value names no currency
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            for kind in cls:
                if lowered in (kind.value, kind.name.lower()):
                    return kind
        raise ValidationError("kind", f"unknown currency {value!r}")


class CurrencyLedger:
    """
    Mutable pair of balances owned by one player profile.

    Parameters
    ----------
    soft : int
        Coin balance
    premium : int
        Gem balance

    Raises
    ------
    InvariantViolationError
        If a stored balance is negative, non-integer or above ``MAX_BALANCE``
    """

    __slots__ = ("_balances",)

    def __init__(self, soft: int = 0, premium: int = 0) -> None:
        self._balances: Dict[CurrencyKind, int] = {}
        for kind, value in ((CurrencyKind.SOFT, soft), (CurrencyKind.PREMIUM, premium)):
            if isinstance(value, bool) or not isinstance(value, int) or not (
                0 <= value <= MAX_BALANCE
            ):
                raise InvariantViolationError(
                    "ledger balance within [0, 2**64-1]",
                    {"currency": kind.value, "balance": value},
                )
            self._balances[kind] = value

    @property
    def soft(self) -> int:
        return self._balances[CurrencyKind.SOFT]

    @property
    def premium(self) -> int:
        return self._balances[CurrencyKind.PREMIUM]

    def balance(self, kind: Union[CurrencyKind, str]) -> int:
        return self._balances[CurrencyKind.parse(kind)]

    def can_afford(self, kind: Union[CurrencyKind, str], amount: int) -> bool:
        return self.balance(kind) >= amount

    def credit(self, kind: Union[CurrencyKind, str], amount: int) -> int:
        """
        Increase a balance and return the new value.

        Raises
        ------
        ValidationError
            If amount is not a positive integer
        OutOfRangeError
            If the new balance would exceed ``MAX_BALANCE``
        """
        currency = CurrencyKind.parse(kind)
        validate_positive(amount, "amount")

        new_balance = self._balances[currency] + amount
        if new_balance > MAX_BALANCE:
            raise OutOfRangeError(f"{currency.value} balance", new_balance, MAX_BALANCE)

        self._balances[currency] = new_balance
        return new_balance

    def debit(self, kind: Union[CurrencyKind, str], amount: int) -> int:
        """
        Decrease a balance and return the new value.

        Raises
        ------
        ValidationError
            If amount is not a positive integer
        InsufficientFundsError
            If the balance is below amount; nothing is debited
        """
        currency = CurrencyKind.parse(kind)
        validate_positive(amount, "amount")

        current = self._balances[currency]
        if current < amount:
            raise InsufficientFundsError(currency.value, amount, current)

        self._balances[currency] = current - amount
        return self._balances[currency]

    def to_dict(self) -> Dict[str, Any]:
        return {kind.value: value for kind, value in self._balances.items()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CurrencyLedger):
            return NotImplemented
        return self._balances == other._balances

    def __repr__(self) -> str:
        return f"CurrencyLedger(soft={self.soft}, premium={self.premium})"
