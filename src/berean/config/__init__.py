"""Configuration management for the Berean client."""

from .loader import get_settings, load_config, reset_settings
from .settings import (
    GenerationSettings,
    GenkitSettings,
    LoggingSettings,
    Settings,
    UsageSettings,
)

__all__ = [
    "Settings",
    "GenkitSettings",
    "GenerationSettings",
    "UsageSettings",
    "LoggingSettings",
    "load_config",
    "get_settings",
    "reset_settings",
]
