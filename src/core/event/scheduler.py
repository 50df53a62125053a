"""
Runs the listeners picked for one publish, tier by tier.

CRITICAL then HIGH listeners run one at a time under their tier timeout,
NORMAL listeners run together, and LOW listeners become background tasks the
publisher does not wait for. A listener that raises or times out is logged
and counted; the publisher only sees ``None`` in its slot.
"""

from __future__ import annotations

import asyncio
import inspect
from logging import Logger
from typing import Any, Optional

from src.core.event.metrics import EventCounters
from src.core.event.types import EventListener, EventPayload, ListenerPriority


class EventScheduler:
    def __init__(self) -> None:
        self._background: set[asyncio.Task[Any]] = set()

    async def execute(
        self,
        *,
        event_name: str,
        payload: EventPayload,
        listeners: list[EventListener],
        metrics: Optional[EventCounters],
        logger: Logger,
        critical_timeout: Optional[float],
        high_timeout: Optional[float],
    ) -> list[Any]:
        """Results of every awaited listener, in dispatch order."""

        async def invoke(listener: EventListener) -> Any:
            try:
                if inspect.iscoroutinefunction(listener.callback):
                    return await listener.callback(payload)
                # Sync listeners run off the loop
                result = await asyncio.get_running_loop().run_in_executor(
                    None, listener.callback, payload
                )
                return await result if inspect.isawaitable(result) else result
            except Exception as exc:
                if metrics is not None:
                    metrics.record_error(event_name)
                logger.error(
                    "Event listener failed",
                    extra={
                        "event_name": event_name,
                        "listener_id": listener.identifier,
                        "priority": listener.priority.name,
                        "error_type": type(exc).__name__,
                    },
                    exc_info=exc,
                )
                return None

        async def invoke_bounded(listener: EventListener, timeout: Optional[float]) -> Any:
            if not timeout or timeout <= 0:
                return await invoke(listener)
            try:
                return await asyncio.wait_for(invoke(listener), timeout=timeout)
            except asyncio.TimeoutError:
                if metrics is not None:
                    metrics.record_error(event_name)
                logger.error(
                    "Event listener timed out",
                    extra={
                        "event_name": event_name,
                        "listener_id": listener.identifier,
                        "timeout_seconds": timeout,
                    },
                )
                return None

        def tier(priority: ListenerPriority) -> list[EventListener]:
            return [lst for lst in listeners if lst.priority is priority]

        results: list[Any] = []
        for listener in tier(ListenerPriority.CRITICAL):
            results.append(await invoke_bounded(listener, critical_timeout))
        for listener in tier(ListenerPriority.HIGH):
            results.append(await invoke_bounded(listener, high_timeout))

        normal = tier(ListenerPriority.NORMAL)
        if normal:
            results.extend(await asyncio.gather(*(invoke(lst) for lst in normal)))

        for listener in tier(ListenerPriority.LOW):
            task = asyncio.get_running_loop().create_task(
                invoke(listener), name=f"event-low:{event_name}:{listener.identifier}"
            )
            self._background.add(task)
            task.add_done_callback(self._background.discard)

        return results

    async def drain(self) -> None:
        """Wait for outstanding LOW-tier tasks."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
