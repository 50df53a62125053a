"""
Shared base for the feature services (ledger, cards, deck, rank, seasons,
purchases).

A feature service validates its inputs, runs the change inside a
`PlayerUnitOfWork`, and publishes whatever domain events the profile
recorded once the unit of work has committed. Transactions, sessions and
locking belong to the unit of work; nothing here touches them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

from .exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.domain.models.base import DomainEvent


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class BaseService:
    """
    Args:
        config_manager: Balance table accessor
        event_bus: Receives committed domain events
        logger: Module logger of the concrete service
    """

    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(self, key: str, default: Optional[Any] = None, required: bool = False) -> Any:
        """
        Raises:
            ConfigurationError: `required` is set and the key is absent
        """
        from src.core.exceptions import ConfigurationError

        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(key, f"Balance table key '{key}' is missing")
        return value

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    async def emit_event(self, event_type: str, data: Dict[str, Any]) -> None:
        """Publish an event that no aggregate recorded, such as a fulfilled store order."""
        await self._events.publish(event_type, data)

    async def publish_domain_events(self, events: Iterable[DomainEvent]) -> int:
        """
        Publish committed events in the order the profile recorded them.

        Returns how many were published.
        """
        count = 0
        for event in events:
            payload = dict(event.payload)
            payload["occurred_at"] = event.occurred_at.isoformat()
            await self._events.publish(event.event_name, payload)
            count += 1
        return count

    # ------------------------------------------------------------------ #
    # Input checks
    # ------------------------------------------------------------------ #

    def validate_player_id(self, player_id: str) -> None:
        if not isinstance(player_id, str) or not player_id.strip():
            raise ValidationError("player_id", f"must be a non-empty string, got {player_id!r}")

    def validate_positive_int(self, value: int, name: str) -> None:
        if not _is_int(value) or value <= 0:
            raise ValidationError(name, f"{name} must be a positive integer, got {value!r}")

    def validate_non_negative_int(self, value: int, name: str) -> None:
        if not _is_int(value) or value < 0:
            raise ValidationError(name, f"{name} must be a non-negative integer, got {value!r}")
