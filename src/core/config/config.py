"""
Process-level settings for the Vault Dash progression engine.

Purpose
-------
Holds the settings fixed at process start: where the database and Redis
live, how loudly to log, how hard to retry storage, and where the balance
tables are. Values come from environment variables (with `.env` support)
and fall back to defaults suitable for a local SQLite run.

Non-Responsibilities
--------------------
- Balance tables (ConfigManager, sourced from config/*.yaml)
- Secrets storage

Environment Variables
---------------------
- DATABASE_URL: async SQLAlchemy URL (default: local aiosqlite file)
- DATABASE_POOL_SIZE / DATABASE_MAX_OVERFLOW / DATABASE_POOL_TIMEOUT
- REDIS_URL: enables distributed player locks when set
- ENVIRONMENT: development | testing | staging | production
- LOG_LEVEL, LOG_JSON, LOG_COLORS, LOG_RETENTION_DAYS
- DATABASE_RETRY_*: storage retry tuning
- CONFIG_DIR / LOGS_DIR: directory overrides
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()

# ============================================================================
# Environment
# ============================================================================


class Environment(Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse an environment name; unknown names mean development.

        >>> Environment.from_string("PRODUCTION") is Environment.PRODUCTION
        True
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            # Structured logging is not configured yet at import time
            logging.warning("Unknown environment '%s', defaulting to development", value)
            return cls.DEVELOPMENT


# ============================================================================
# Settings
# ============================================================================


class Config:
    """
    Static settings read once per process.

    Usage
    -----
    >>> Config.DATABASE_URL
    'sqlite+aiosqlite:///./data/progression.db'
    >>> Config.is_testing()
    False
    """

    _validated: bool = False
    _rejected: Dict[str, str] = {}

    # =========================================================================
    # Database
    # =========================================================================

    DATABASE_URL: str = "sqlite+aiosqlite:///./data/progression.db"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 5
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_POOL_RECYCLE: int = 3600
    DATABASE_ECHO: bool = False

    # =========================================================================
    # Redis (player locks)
    # =========================================================================

    # Empty URL keeps player locks in-process
    REDIS_URL: str = ""
    REDIS_SOCKET_TIMEOUT: int = 5

    # =========================================================================
    # Environment & Logging
    # =========================================================================

    ENVIRONMENT: str = Environment.DEVELOPMENT.value
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_COLORS: bool = True
    LOG_RETENTION_DAYS: int = 14

    # =========================================================================
    # Directories
    # =========================================================================

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"
    CONFIG_DIR = PROJECT_ROOT / "config"

    # =========================================================================
    # Storage resilience
    # =========================================================================

    DATABASE_RETRY_MAX_ATTEMPTS: int = 3
    DATABASE_RETRY_INITIAL_BACKOFF_MS: int = 50
    DATABASE_RETRY_MAX_BACKOFF_MS: int = 1000
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = 5
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT: int = 60

    # =========================================================================
    # Parsing helpers
    # =========================================================================

    @classmethod
    def _reject(cls, key: str, raw: str, default: Any, problem: str) -> None:
        message = f"{key}='{raw}' {problem}, using default {default}"
        cls._rejected[key] = message
        logging.warning(message)

    @classmethod
    def _int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """Integer setting; out-of-bounds or malformed values keep the default."""
        raw = os.getenv(key)
        if raw is None:
            return default
        try:
            value = int(raw)
        except ValueError:
            cls._reject(key, raw, default, "is not an integer")
            return default
        if min_val is not None and value < min_val:
            cls._reject(key, raw, default, f"is below {min_val}")
            return default
        if max_val is not None and value > max_val:
            cls._reject(key, raw, default, f"is above {max_val}")
            return default
        return value

    @classmethod
    def _bool(cls, key: str, default: bool) -> bool:
        raw = os.getenv(key)
        if raw is None:
            return default
        normalized = raw.strip().lower()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False
        cls._reject(key, raw, default, "is not a boolean")
        return default

    @classmethod
    def _path(cls, key: str, default: Path) -> Path:
        raw = os.getenv(key, "")
        return Path(raw).expanduser() if raw else default

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """Re-read every setting from the environment."""
        cls._rejected = {}

        cls.DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/progression.db")
        cls.DATABASE_POOL_SIZE = cls._int("DATABASE_POOL_SIZE", 10, min_val=1, max_val=200)
        cls.DATABASE_MAX_OVERFLOW = cls._int("DATABASE_MAX_OVERFLOW", 5, min_val=0, max_val=200)
        cls.DATABASE_POOL_TIMEOUT = cls._int("DATABASE_POOL_TIMEOUT", 30, min_val=1, max_val=600)
        cls.DATABASE_POOL_RECYCLE = cls._int("DATABASE_POOL_RECYCLE", 3600, min_val=60)
        cls.DATABASE_ECHO = cls._bool("DATABASE_ECHO", False)

        cls.REDIS_URL = os.getenv("REDIS_URL", "")
        cls.REDIS_SOCKET_TIMEOUT = cls._int("REDIS_SOCKET_TIMEOUT", 5, min_val=1, max_val=60)

        cls.ENVIRONMENT = Environment.from_string(os.getenv("ENVIRONMENT", "development")).value
        cls.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        cls.LOG_JSON = cls._bool("LOG_JSON", cls.is_production())
        cls.LOG_COLORS = cls._bool("LOG_COLORS", not cls.is_production())
        cls.LOG_RETENTION_DAYS = cls._int("LOG_RETENTION_DAYS", 14, min_val=1, max_val=365)

        cls.LOGS_DIR = cls._path("LOGS_DIR", cls.PROJECT_ROOT / "logs")
        cls.CONFIG_DIR = cls._path("CONFIG_DIR", cls.PROJECT_ROOT / "config")

        cls.DATABASE_RETRY_MAX_ATTEMPTS = cls._int(
            "DATABASE_RETRY_MAX_ATTEMPTS", 3, min_val=1, max_val=20
        )
        cls.DATABASE_RETRY_INITIAL_BACKOFF_MS = cls._int(
            "DATABASE_RETRY_INITIAL_BACKOFF_MS", 50, min_val=0
        )
        cls.DATABASE_RETRY_MAX_BACKOFF_MS = cls._int(
            "DATABASE_RETRY_MAX_BACKOFF_MS", 1000, min_val=0
        )
        cls.CIRCUIT_BREAKER_FAILURE_THRESHOLD = cls._int(
            "CIRCUIT_BREAKER_FAILURE_THRESHOLD", 5, min_val=1, max_val=100
        )
        cls.CIRCUIT_BREAKER_RECOVERY_TIMEOUT = cls._int(
            "CIRCUIT_BREAKER_RECOVERY_TIMEOUT", 60, min_val=1
        )

    @classmethod
    def validate(cls) -> None:
        """
        Load and sanity-check settings once.

        Raises
        ------
        ValueError
            DATABASE_URL does not name an async driver (production only;
            elsewhere the problem is logged)
        """
        if cls._validated:
            return

        logger = logging.getLogger(__name__)
        cls.load()

        try:
            if "+" not in cls.DATABASE_URL.split("://", 1)[0]:
                raise ValueError(
                    "DATABASE_URL must name an async driver (e.g. sqlite+aiosqlite://)"
                )
        except ValueError as e:
            logger.warning("Config validation warning: %s", e)
            if cls.is_production():
                raise

        if cls.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            logger.warning("Invalid LOG_LEVEL '%s', using INFO", cls.LOG_LEVEL)
            cls.LOG_LEVEL = "INFO"

        if cls.DATABASE_RETRY_MAX_BACKOFF_MS < cls.DATABASE_RETRY_INITIAL_BACKOFF_MS:
            cls.DATABASE_RETRY_MAX_BACKOFF_MS = cls.DATABASE_RETRY_INITIAL_BACKOFF_MS

        if cls.is_production() and cls.DATABASE_URL.startswith("sqlite"):
            logger.warning("Production environment is using a local SQLite database")

        cls._validated = True

    # =========================================================================
    # Environment checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT == Environment.PRODUCTION.value

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT == Environment.TESTING.value

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Non-secret settings for the startup log line."""
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "database_driver": cls.DATABASE_URL.split("://", 1)[0],
            "redis_locks": bool(cls.REDIS_URL),
            "config_dir": str(cls.CONFIG_DIR),
            "rejected_settings": sorted(cls._rejected),
        }


Config.validate()
