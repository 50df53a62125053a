"""
EventBus: async pub/sub for committed progression changes.

Services publish the domain events of a unit of work only after it has
committed and the player lock is released, so listeners always see durable
state and can call back into the engine without deadlocking.

Listener timeouts for the sequential tiers come from
``event.listener_timeout.critical_seconds`` and
``event.listener_timeout.high_seconds`` unless passed explicitly.
"""

from __future__ import annotations

import inspect
from typing import Any, Optional

from src.core.config.manager import ConfigManager
from src.core.event.metrics import EventCounters, EventMetrics
from src.core.event.registry import ListenerRegistry
from src.core.event.scheduler import EventScheduler
from src.core.event.types import CallbackType, EventListener, EventPayload, ListenerPriority
from src.core.logging.logger import get_logger, set_log_context

logger = get_logger(__name__)


class EventBus:
    """
    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("rank.tier_changed", on_tier_changed)
    >>> await bus.publish("rank.tier_changed", {"player_id": "p-1", "new_tier": "Gold"})
    """

    def __init__(
        self,
        *,
        enable_metrics: bool = True,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._registry = ListenerRegistry()
        self._scheduler = EventScheduler()
        self._counters: Optional[EventCounters] = EventCounters() if enable_metrics else None
        self._critical_timeout = self._timeout(
            "event.listener_timeout.critical_seconds", critical_timeout_seconds
        )
        self._high_timeout = self._timeout(
            "event.listener_timeout.high_seconds", high_timeout_seconds
        )

    @staticmethod
    def _timeout(key: str, override: Optional[float], default: float = 5.0) -> float:
        if override is not None:
            return float(override)
        value = ConfigManager.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(
                "Invalid listener timeout in config, using default",
                extra={"config_key": key, "value": value, "default_value": default},
            )
            return default

    @staticmethod
    def _check_signature(callback: CallbackType) -> None:
        try:
            params = inspect.signature(callback).parameters
        except (TypeError, ValueError):
            # Builtins may not expose a signature
            return
        if len(params) != 1:
            name = getattr(callback, "__qualname__", None) or repr(callback)
            raise ValueError(
                f"Event listener '{name}' must accept exactly 1 parameter (the payload), "
                f"got {len(params)}"
            )

    # ------------------------------------------------------------------ #
    # Subscriptions
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
        allow_duplicates: bool = False,
    ) -> str:
        """
        Subscribe `callback` to an event name or wildcard pattern.

        Returns the listener identifier for `unsubscribe`. A second
        subscription with the same identifier and pattern is ignored unless
        `allow_duplicates` is set.

        Raises
        ------
        ValueError
            The callback does not take exactly one parameter
        """
        self._check_signature(callback)
        listener = EventListener.create(event_name, callback, priority, identifier, once)

        if self._registry.add(listener, allow_duplicates=allow_duplicates):
            logger.debug(
                "EventBus: subscribed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": priority.name,
                },
            )
        else:
            logger.warning(
                "EventBus: duplicate listener ignored",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        return self._registry.remove(event_name, identifier) > 0

    def clear(self) -> None:
        removed = self._registry.clear()
        logger.debug("EventBus: cleared", extra={"removed_listeners": removed})

    # ------------------------------------------------------------------ #
    # Publishing
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Deliver `data` to every matching listener.

        Returns results of the CRITICAL, HIGH and NORMAL listeners (``None``
        for a listener that failed). Listener failures never reach the
        publisher.
        """
        if self._counters is not None:
            self._counters.record_publish(event_name)
        set_log_context(event_name=event_name)

        listeners = self._registry.take_for_event(event_name)
        if not listeners:
            logger.debug("EventBus: no listeners", extra={"event_name": event_name})
            return []

        return await self._scheduler.execute(
            event_name=event_name,
            payload=data,
            listeners=listeners,
            metrics=self._counters,
            logger=logger,
            critical_timeout=self._critical_timeout,
            high_timeout=self._high_timeout,
        )

    async def drain(self) -> None:
        """Wait for background (LOW) listeners; used at shutdown and in tests."""
        await self._scheduler.drain()

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_metrics(self) -> Optional[EventMetrics]:
        if self._counters is None:
            return None
        return self._counters.snapshot(self._registry.count())

    def get_metrics_summary(self) -> dict[str, Any]:
        metrics = self.get_metrics()
        return metrics.get_summary() if metrics is not None else {}

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        return self._registry.count(event_name)

    def get_all_events(self) -> list[str]:
        return self._registry.patterns()
