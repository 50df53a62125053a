"""
Event bus counters.

`EventCounters` is mutated on the event loop; `snapshot()` returns a frozen
`EventMetrics` for health output and tests.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class EventMetrics:
    events_published: dict[str, int] = field(default_factory=dict)
    listener_errors: dict[str, int] = field(default_factory=dict)
    total_listeners: int = 0

    def get_summary(self) -> dict[str, Any]:
        published = sum(self.events_published.values())
        errors = sum(self.listener_errors.values())
        return {
            "total_events_published": published,
            "total_errors": errors,
            "error_rate": round(100.0 * errors / max(1, published), 2),
            "errors_by_event": dict(self.listener_errors),
            "total_listeners": self.total_listeners,
        }


class EventCounters:
    def __init__(self) -> None:
        self.published: Counter[str] = Counter()
        self.errors: Counter[str] = Counter()

    def record_publish(self, event_name: str) -> None:
        self.published[event_name] += 1

    def record_error(self, event_name: str) -> None:
        self.errors[event_name] += 1

    def snapshot(self, total_listeners: int) -> EventMetrics:
        return EventMetrics(
            events_published=dict(self.published),
            listener_errors=dict(self.errors),
            total_listeners=total_listeners,
        )
