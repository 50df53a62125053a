"""
ProgressionService - Public surface of the progression engine
=============================================================

Purpose
-------
Single entry point used by the game client and by external systems
(match results, storefront grants). Wires the feature services around one
shared unit of work and turns domain rejections into `OperationResult`s.

Responsibilities
----------------
- External intake: match results, idempotent currency grants, gem packs
- Queries: rank, collection, deck, season record, balances, calendar
- Commands: upgrade, deck toggle, season claim/close, copies, prestige

Non-Responsibilities
--------------------
- Rendering, matchmaking, receipt verification
- Game state caching between calls (every call reads committed state)

Error Contract
--------------
- Commands return `OperationResult(success=False, reason=...)` for rule
  violations and for `PersistenceUnavailableError` (retryable).
- `InvariantViolationError` is never converted: corrupted state halts the
  operation and propagates.
- Queries raise domain exceptions directly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from src.core.config.manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event.bus import EventBus
from src.core.locking.player_lock import PlayerLockService
from src.core.logging.logger import get_logger
from src.domain.exceptions.registry import describe_rejection
from src.domain.models.cards import CardRecord, CardStats
from src.domain.models.ledger import CurrencyKind
from src.domain.models.profile import ProgressionRules
from src.domain.models.rank import RankSnapshot
from src.domain.models.season import SeasonInfo, SeasonRecord
from src.modules.cards.service import CardService
from src.modules.deck.service import DeckService
from src.modules.ledger.service import GrantOutcome, LedgerService
from src.modules.profile.unit_of_work import PlayerUnitOfWork
from src.modules.purchase.service import PurchaseService
from src.modules.rank.service import RankService
from src.modules.season.service import Clock, SeasonService
from src.modules.shared.exceptions import (
    InvariantViolationError,
    PersistenceUnavailableError,
    ProgressionDomainException,
)
from src.modules.shared.result import OperationResult

if TYPE_CHECKING:
    from logging import Logger

    from src.core.database.retry_policy import DatabaseRetryPolicy

T = TypeVar("T")

logger = get_logger(__name__)


def _grant_details(outcome: GrantOutcome) -> Dict[str, Any]:
    return {
        "duplicate": outcome.duplicate,
        "currency": outcome.currency.value,
        "balance": outcome.balance,
    }


class ProgressionService:
    """
    Facade over the ledger, cards, deck, rank, season and purchase services.

    Usage:
        service = await ProgressionService.create()
        snapshot = await service.report_match_result("p-1", 550)
        result = await service.upgrade_card("p-1", "blaze")
        if not result:
            show(result.reason)
    """

    def __init__(
        self,
        rules: ProgressionRules,
        locks: PlayerLockService,
        event_bus: EventBus,
        *,
        config_manager: type[ConfigManager] = ConfigManager,
        clock: Optional[Clock] = None,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.log = logger or get_logger(__name__)
        self.event_bus = event_bus
        self.locks = locks
        self.unit_of_work = PlayerUnitOfWork(rules, locks, retry_policy)

        self.ledger = LedgerService(
            self.unit_of_work, config_manager, event_bus, get_logger("src.modules.ledger")
        )
        self.cards = CardService(
            self.unit_of_work, config_manager, event_bus, get_logger("src.modules.cards")
        )
        self.deck = DeckService(
            self.unit_of_work, config_manager, event_bus, get_logger("src.modules.deck")
        )
        self.seasons = SeasonService(
            self.unit_of_work,
            config_manager,
            event_bus,
            get_logger("src.modules.season"),
            clock=clock,
        )
        self.rank = RankService(
            self.unit_of_work,
            self.seasons,
            config_manager,
            event_bus,
            get_logger("src.modules.rank"),
        )
        self.purchases = PurchaseService(
            self.ledger, config_manager, event_bus, get_logger("src.modules.purchase")
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    async def create(
        cls,
        *,
        database_url: Optional[str] = None,
        event_bus: Optional[EventBus] = None,
        locks: Optional[PlayerLockService] = None,
        clock: Optional[Clock] = None,
    ) -> ProgressionService:
        """
        Load balance tables, bring up the database and build the facade.

        Raises:
            ConfigurationError: Balance tables are missing or inconsistent
            DatabaseInitializationError: The database could not be reached
        """
        await ConfigManager.initialize()
        await DatabaseService.initialize(database_url)
        await DatabaseService.create_tables()

        service = cls(
            ProgressionRules.from_config(),
            locks or PlayerLockService.from_config(),
            event_bus or EventBus(),
            clock=clock,
        )
        logger.info(
            "ProgressionService ready",
            extra={"lock_backend": service.locks.backend},
        )
        return service

    async def close(self) -> None:
        await self.event_bus.drain()
        await self.locks.close()

    # =========================================================================
    # COMMAND WRAPPER
    # =========================================================================

    async def _command(
        self,
        operation: str,
        player_id: str,
        run: Callable[[], Awaitable[T]],
        describe: Callable[[T], str],
        to_value: Optional[Callable[[T], Any]] = None,
        details: Optional[Callable[[T], Dict[str, Any]]] = None,
    ) -> OperationResult:
        try:
            outcome = await run()
        except InvariantViolationError:
            raise
        except PersistenceUnavailableError as exc:
            self.log.warning(
                "Command deferred; persistence unavailable",
                extra={"operation": operation, "player_id": player_id, **exc.details},
            )
            return OperationResult.rejected(exc, describe_rejection(exc))
        except ProgressionDomainException as exc:
            self.log.info(
                "Command rejected",
                extra={
                    "operation": operation,
                    "player_id": player_id,
                    "error_code": exc.error_code,
                },
            )
            return OperationResult.rejected(exc, describe_rejection(exc))

        value = to_value(outcome) if to_value is not None else outcome
        extra = details(outcome) if details is not None else {}
        return OperationResult.ok(value, describe(outcome), **extra)

    # =========================================================================
    # EXTERNAL INTAKE
    # =========================================================================

    async def report_match_result(self, player_id: str, trophy_delta: int) -> RankSnapshot:
        """
        Apply a completed match's trophy delta and return the new rank.

        Raises:
            ValidationError: Bad player id or non-integer delta
            PersistenceUnavailableError: Storage unreachable; retry
        """
        return await self.rank.report_match_result(player_id, trophy_delta)

    async def grant_currency(
        self,
        player_id: str,
        kind: Union[CurrencyKind, str],
        amount: int,
        source_transaction_id: str,
    ) -> OperationResult:
        """Idempotent on `source_transaction_id`; a repeat reports `duplicate`."""

        def describe(outcome: GrantOutcome) -> str:
            if outcome.duplicate:
                return f"Grant {source_transaction_id} was already applied"
            return f"Granted {outcome.amount:,} {outcome.currency.value}"

        return await self._command(
            "grant_currency",
            player_id,
            lambda: self.ledger.grant_currency(player_id, kind, amount, source_transaction_id),
            describe,
            to_value=lambda outcome: outcome.amount,
            details=_grant_details,
        )

    async def grant_purchase(
        self, player_id: str, product_id: str, source_transaction_id: str
    ) -> OperationResult:
        """Credit a gem pack once per store transaction."""

        def describe(outcome: GrantOutcome) -> str:
            if outcome.duplicate:
                return f"Purchase {source_transaction_id} was already fulfilled"
            return f"Added {outcome.amount:,} gems"

        return await self._command(
            "grant_purchase",
            player_id,
            lambda: self.purchases.grant_purchase(player_id, product_id, source_transaction_id),
            describe,
            to_value=lambda outcome: outcome.amount,
            details=_grant_details,
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_rank_state(self, player_id: str) -> RankSnapshot:
        return await self.rank.get_rank(player_id)

    async def get_card_collection(self, player_id: str) -> List[CardRecord]:
        return await self.cards.get_collection(player_id)

    async def get_card_stats(self, player_id: str, card_id: str) -> CardStats:
        """
        Raises:
            NotFoundError: The player does not own the card
        """
        return await self.cards.card_stats(player_id, card_id)

    async def get_active_deck(self, player_id: str) -> List[Optional[str]]:
        return await self.deck.get_deck(player_id)

    async def get_season_record(self, player_id: str, season_id: str) -> SeasonRecord:
        """
        Raises:
            NotFoundError: No record for the season
        """
        return await self.seasons.get_record(player_id, season_id)

    async def get_balances(self, player_id: str) -> Dict[str, int]:
        return await self.ledger.get_balances(player_id)

    def get_current_season(self) -> SeasonInfo:
        return self.seasons.current_season()

    async def get_transaction_history(
        self, player_id: str, limit: int = 50
    ) -> List[Dict[str, Any]]:
        """Newest audit entries first."""
        async with DatabaseService.get_session() as session:
            entries = await self.unit_of_work.audit.for_player(session, player_id, limit=limit)
        return [
            {
                "transaction_type": entry.transaction_type,
                "details": entry.details,
                "context": entry.context,
                "timestamp": entry.timestamp,
            }
            for entry in entries
        ]

    # =========================================================================
    # COMMANDS
    # =========================================================================

    async def upgrade_card(self, player_id: str, card_id: str) -> OperationResult:
        return await self._command(
            "upgrade_card",
            player_id,
            lambda: self.cards.upgrade(player_id, card_id),
            lambda up: (
                f"{card_id} upgraded to Prestige {up.prestige}"
                if up.from_rarity is up.to_rarity
                else f"{card_id} upgraded to {up.to_rarity.display_name}"
            ),
        )

    async def toggle_deck_slot(self, player_id: str, card_id: str) -> OperationResult:
        return await self._command(
            "toggle_deck_slot",
            player_id,
            lambda: self.deck.toggle(player_id, card_id),
            lambda outcome: (
                f"{card_id} added to slot {outcome[1] + 1}"
                if outcome[0]
                else f"{card_id} removed from slot {outcome[1] + 1}"
            ),
            to_value=lambda outcome: {"added": outcome[0], "slot": outcome[1]},
        )

    async def claim_season_reward(self, player_id: str, season_id: str) -> OperationResult:
        return await self._command(
            "claim_season_reward",
            player_id,
            lambda: self.seasons.claim_reward(player_id, season_id),
            lambda claim: (
                f"Reward for {season_id} already claimed ({claim.granted} gems)"
                if claim.already_claimed
                else f"Claimed {claim.granted} gems for {season_id}"
            ),
        )

    async def close_season(self, player_id: str, season_id: str) -> OperationResult:
        return await self._command(
            "close_season",
            player_id,
            lambda: self.seasons.close_season(player_id, season_id),
            lambda record: f"{season_id} closed with {record.peak_trophies:,} peak trophies",
        )

    async def add_card_copies(self, player_id: str, card_id: str, count: int) -> OperationResult:
        return await self._command(
            "add_card_copies",
            player_id,
            lambda: self.cards.add_copies(player_id, card_id, count),
            lambda record: f"{card_id} now has {record.copies} copies",
        )

    async def execute_prestige(self, player_id: str) -> OperationResult:
        return await self._command(
            "execute_prestige",
            player_id,
            lambda: self.rank.execute_prestige(player_id),
            lambda reset: f"Reached Prestige {reset.new_prestige}",
        )
