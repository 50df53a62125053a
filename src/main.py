"""
Vault Dash Progression - smoke entrypoint
=========================================

Game servers embed `ProgressionService` directly. Deployments run
``python -m src.main`` once after a release to prove the process can load
its balance tables, reach the profile store and resolve the current season,
then shut everything down again.

Exit code 0 means the engine came up healthy.
"""

import asyncio
import signal
import sys
from typing import Optional

from src.core.config.config import Config
from src.core.database.metrics import DatabaseMetrics
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger, setup_logging, shutdown_logging
from src.modules.progression import ProgressionService

logger = get_logger(__name__)


# ============================================================================
# Startup
# ============================================================================

async def _start() -> ProgressionService:
    Config.validate()
    logger.info("Configuration validated", extra=Config.get_config_summary())

    service = await ProgressionService.create()

    season = service.get_current_season()
    logger.info(
        "Progression engine ready",
        extra={
            "season_id": season.season_id,
            "season_active": season.is_active(),
            "time_remaining": season.format_time_remaining(),
        },
    )
    return service


# ============================================================================
# Shutdown
# ============================================================================

async def _stop(service: Optional[ProgressionService]) -> None:
    if service is not None:
        await service.close()

    logger.info(
        "Profile store statistics",
        extra={
            "circuit_breaker": DatabaseService.get_circuit_breaker_metrics(),
            "transactions": DatabaseMetrics.snapshot(),
        },
    )
    await DatabaseService.shutdown()
    logger.info("Progression engine stopped")


async def main() -> int:
    service: Optional[ProgressionService] = None
    try:
        service = await _start()
        if not await DatabaseService.health_check():
            logger.error("Profile store did not answer the health check")
            return 1
        return 0
    finally:
        await _stop(service)


# ============================================================================
# Process entry
# ============================================================================

def _install_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    try:
        loop.add_signal_handler(signal.SIGTERM, loop.stop)
    except NotImplementedError:
        # Windows event loops have no signal handlers
        logger.debug("SIGTERM handler unavailable on this platform")


if __name__ == "__main__":
    setup_logging()
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _install_signal_handlers(loop)

    exit_code = 1
    try:
        exit_code = loop.run_until_complete(main())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception as exc:
        logger.critical("Startup failed: %s", exc, exc_info=True)
    finally:
        loop.close()
        shutdown_logging()
    sys.exit(exit_code)
