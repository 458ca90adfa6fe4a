"""
Configuration Module
====================

Centralized configuration management using Pydantic Settings.
Loads from environment variables with type validation and defaults.

Usage:
    from educhain.config import settings

    print(settings.environment)
    print(settings.mongodb.uri)
"""

from educhain.config.settings import (
    BlockchainMode,
    Environment,
    LogLevel,
    PinningMode,
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
    "BlockchainMode",
    "PinningMode",
]
