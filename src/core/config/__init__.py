"""
Configuration subsystem.

- **config.py**: static settings from environment variables (.env support)
- **manager.py**: balance tables from ``config/*.yaml`` with dot-notation access
- **errors.py**: balance table loading errors

Static vs Balance Configuration
-------------------------------
**Static (Config):** database URL, Redis URL, logging, retry tuning. Loaded
at import and validated once.

**Balance (ConfigManager):** upgrade costs, tier thresholds, season rewards,
deck capacity, gem packs. YAML is the source of truth.

Usage
-----
```python
from src.core.config import Config, ConfigManager

db_url = Config.DATABASE_URL
await ConfigManager.initialize()
capacity = ConfigManager.get("deck.capacity", 4)
```
"""

from src.core.config.config import Config, Environment
from src.core.config.errors import ConfigError, ConfigInitializationError
from src.core.config.manager import ConfigManager

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "ConfigError",
    "ConfigInitializationError",
]
