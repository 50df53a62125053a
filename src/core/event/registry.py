"""
Listener registry.

Every subscription is stored under the pattern it was made with; exact
names are just patterns without ``*``. Lookups walk the patterns through
`EventRouter`, which is cheap at the handful of listeners a progression
process carries. Mutations happen on the owning event loop only.
"""

from __future__ import annotations

from src.core.event.router import EventRouter
from src.core.event.types import EventListener


class ListenerRegistry:
    """Subscriptions keyed by pattern, each list kept in dispatch order."""

    def __init__(self, router: EventRouter | None = None) -> None:
        self._by_pattern: dict[str, list[EventListener]] = {}
        self._router = router or EventRouter()

    def add(self, listener: EventListener, *, allow_duplicates: bool = False) -> bool:
        """False when the identifier is already subscribed to the same pattern."""
        listeners = self._by_pattern.setdefault(listener.pattern, [])
        if not allow_duplicates and any(
            existing.identifier == listener.identifier for existing in listeners
        ):
            return False
        listeners.append(listener)
        listeners.sort(key=lambda lst: lst.sort_key)
        return True

    def remove(self, pattern: str, identifier: str) -> int:
        """Remove every subscription of `identifier` under `pattern`; returns the count."""
        listeners = self._by_pattern.get(pattern, [])
        kept = [lst for lst in listeners if lst.identifier != identifier]
        self._store(pattern, kept)
        return len(listeners) - len(kept)

    def clear(self) -> int:
        total = self.count()
        self._by_pattern.clear()
        return total

    def take_for_event(self, event_name: str) -> list[EventListener]:
        """
        Listeners matching `event_name`, in dispatch order.

        One-shot listeners are dropped from the registry in the same pass so
        two overlapping publishes cannot both deliver to them.
        """
        matched: list[EventListener] = []
        for pattern in list(self._by_pattern):
            if not self._router.matches(event_name, pattern):
                continue
            listeners = self._by_pattern[pattern]
            matched.extend(listeners)
            self._store(pattern, [lst for lst in listeners if not lst.once])
        matched.sort(key=lambda lst: lst.sort_key)
        return matched

    def count(self, event_name: str | None = None) -> int:
        if event_name is None:
            return sum(len(listeners) for listeners in self._by_pattern.values())
        return sum(
            len(listeners)
            for pattern, listeners in self._by_pattern.items()
            if self._router.matches(event_name, pattern)
        )

    def patterns(self) -> list[str]:
        return sorted(self._by_pattern)

    def _store(self, pattern: str, listeners: list[EventListener]) -> None:
        if listeners:
            self._by_pattern[pattern] = listeners
        else:
            self._by_pattern.pop(pattern, None)
