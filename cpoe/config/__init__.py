"""
Configuration Module
====================

Centralized configuration management using Pydantic Settings.
Loads from environment variables with type validation and defaults.

Usage:
    from cpoe.config import settings

    print(settings.environment)
    print(settings.zk.merkle_depth)
"""

from cpoe.config.settings import (
    ChainMode,
    Environment,
    LogLevel,
    NullifierBackend,
    Settings,
    get_settings,
)


# Global settings instance (singleton)
settings = get_settings()

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "Environment",
    "LogLevel",
    "ChainMode",
    "NullifierBackend",
]
