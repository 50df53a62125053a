"""
Base domain model classes.

The progression models (ledger, collection, deck, rank, seasons) are plain
Python objects that enforce their own rules. `PlayerProfile` is the one
aggregate root: every mutation goes through it, it records domain events
while mutating, and the unit of work persists it and hands the events to
the event bus after commit.

>>> class Counter(AggregateRoot):
...     def bump(self) -> None:
...         self.add_domain_event("counter.bumped", {"player_id": self.id})
>>> c = Counter("p-1"); c.bump()
>>> [e.event_name for e in c.clear_domain_events()]
['counter.bumped']
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from src.modules.shared.exceptions import ValidationError


# ============================================================================
# DOMAIN EVENTS
# ============================================================================


@dataclass
class DomainEvent:
    """
    A state change recorded on an aggregate, published once committed.

    Attributes
    ----------
    event_name : str
        Dotted name, e.g. ``"card.upgraded"``
    payload : Dict[str, Any]
        Listener-facing data; always includes ``player_id``
    occurred_at : datetime
        UTC time the change was made in memory
    """

    event_name: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================================
# AGGREGATE ROOT
# ============================================================================


class AggregateRoot:
    """
    Identity plus a pending-event buffer.

    Player ids are opaque strings from the platform account layer; two
    aggregates are equal when their ids are.
    """

    def __init__(self, entity_id: str) -> None:
        self._id = entity_id
        self._domain_events: List[DomainEvent] = []

    @property
    def id(self) -> str:
        return self._id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AggregateRoot):
            return NotImplemented
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))

    def add_domain_event(self, event_name: str, payload: Dict[str, Any]) -> None:
        self._domain_events.append(DomainEvent(event_name=event_name, payload=payload))

    def clear_domain_events(self) -> List[DomainEvent]:
        """Return and forget pending events; called by the unit of work."""
        events = self._domain_events
        self._domain_events = []
        return events

    def get_pending_events(self) -> List[DomainEvent]:
        return list(self._domain_events)


# ============================================================================
# VALIDATION
# ============================================================================


def validate_positive(value: int, field_name: str) -> None:
    """
    Raises
    ------
    ValidationError
        If value is not an int (bools excluded) or is not positive
    """
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(field_name, f"must be a positive integer, got {value!r}")


def validate_not_empty(value: str, field_name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field_name, "cannot be empty")
