"""Errors raised while loading balance tables."""


class ConfigError(Exception):
    """Base for configuration loading failures."""


class ConfigInitializationError(ConfigError):
    """
    A balance table file could not be read or parsed.

    Startup aborts rather than serving commands with a partial economy.
    """
