"""
Event system.

Async pub/sub used by the progression services to announce committed state
changes.
"""

from .bus import EventBus
from .router import EventRouter
from .types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventRouter",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
]
