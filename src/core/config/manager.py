"""
ConfigManager: balance tables for the progression engine.

Upgrade costs, tier thresholds, season reward bonuses, deck capacity and gem
packs all live in ``config/*.yaml`` and are read through one dot-notation
lookup. The domain builds its rule objects from these values at startup, so
no balance number is hardcoded in Python.

Files are deep-merged in sorted path order. Overrides set in memory win over
YAML and exist for tests and live balance fixes.
"""

from __future__ import annotations

import asyncio
import copy
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

import yaml

from src.core.config.config import Config
from src.core.config.errors import ConfigInitializationError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


def _deep_merge(target: MutableMapping[str, Any], source: MutableMapping[str, Any]) -> None:
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


class ConfigManager:
    """Classmethod singleton; ``get()`` loads lazily if `initialize()` never ran."""

    _values: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _initialized: bool = False
    _init_lock: asyncio.Lock = asyncio.Lock()
    _config_dir: Optional[Path] = None
    _loaded_files: List[str] = []

    # =========================================================================
    # LOADING
    # =========================================================================

    @classmethod
    def _load(cls, config_dir: Path) -> Dict[str, Any]:
        """
        Raises
        ------
        ConfigInitializationError
            A file could not be read or parsed; half-applied balance tables
            are worse than none
        """
        merged: Dict[str, Any] = {}
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; balance lookups use code defaults",
                extra={"config_dir": str(config_dir)},
            )
            return merged

        loaded: List[str] = []
        for path in sorted([*config_dir.rglob("*.yaml"), *config_dir.rglob("*.yml")]):
            name = str(path.relative_to(config_dir))
            try:
                data = yaml.safe_load(path.read_text(encoding="utf-8"))
            except (OSError, yaml.YAMLError) as exc:
                logger.error(
                    "Balance table failed to load",
                    extra={"file": name, "error_type": type(exc).__name__},
                )
                raise ConfigInitializationError(f"Could not load config file {path}: {exc}") from exc

            if isinstance(data, dict):
                _deep_merge(merged, data)
                loaded.append(name)
            elif data is not None:
                logger.warning(
                    "Ignoring YAML file whose root is not a mapping",
                    extra={"file": name, "root_type": type(data).__name__},
                )

        cls._loaded_files = loaded
        return merged

    @classmethod
    def _bootstrap(cls, config_dir: Optional[Path] = None) -> None:
        cls._config_dir = config_dir or cls._config_dir or Config.CONFIG_DIR
        cls._values = cls._load(cls._config_dir)
        cls._initialized = True

    @classmethod
    async def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """Load the YAML tables; repeated calls without `config_dir` are no-ops."""
        async with cls._init_lock:
            if cls._initialized and config_dir is None:
                return
            cls._bootstrap(config_dir)
            logger.info(
                "Balance tables loaded",
                extra={"config_dir": str(cls._config_dir), "files": cls._loaded_files},
            )

    @classmethod
    def clear_cache(cls) -> None:
        """Forget loaded tables and overrides (tests)."""
        cls._values = {}
        cls._overrides = {}
        cls._loaded_files = []
        cls._initialized = False

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Resolve a dot-notation key; containers come back as deep copies.

        >>> ConfigManager.get("deck.capacity")
        4
        >>> ConfigManager.get("card_upgrade.copies_needed.common")
        5
        """
        if not cls._initialized:
            cls._bootstrap()

        if key in cls._overrides:
            value = cls._overrides[key]
        else:
            value = cls._values
            for part in key.split("."):
                if not isinstance(value, dict) or part not in value:
                    return default
                value = value[part]

        return copy.deepcopy(value) if isinstance(value, (dict, list)) else value

    @classmethod
    def set_override(cls, key: str, value: Any) -> None:
        """Pin an exact key in memory; lookups of parent keys ignore it."""
        cls._overrides[key] = value
        logger.info("Balance override applied", extra={"config_key": key})
