"""
Listener types for the progression event bus.

Payloads are plain dicts (always carrying ``player_id``) so they log as JSON
and can be forwarded to an out-of-process sink unchanged.

Priority tiers
--------------
- CRITICAL, HIGH: run one after another, each under a timeout
- NORMAL: run together, awaited by the publisher
- LOW: background tasks; audit and analytics sinks
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

EventPayload = dict[str, Any]

# Sync or async; async callbacks return an awaitable
CallbackType = Callable[[EventPayload], Any]


class ListenerPriority(Enum):
    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


@dataclass(slots=True, frozen=True)
class EventListener:
    """
    A subscription: one callback under one pattern.

    ``identifier`` deduplicates subscriptions and names the listener in
    logs; ``once`` listeners are removed the moment they are picked for a
    publish.
    """

    pattern: str
    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.priority.value, self.identifier)

    @classmethod
    def create(
        cls,
        pattern: str,
        callback: CallbackType,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> EventListener:
        """Default identifier is ``module.qualname@pattern``."""
        if identifier is None:
            owner = getattr(callback, "__module__", None) or "unknown"
            name = getattr(callback, "__qualname__", None) or type(callback).__name__
            identifier = f"{owner}.{name}@{pattern}"
        return cls(pattern, callback, priority, identifier, once)
