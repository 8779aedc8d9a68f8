"""Settings and logging configuration."""

from lmconductor.config.logging import get_logger, setup_logging
from lmconductor.config.settings import LLMSettings, Settings, TurnSettings, get_settings, load_settings

__all__ = [
    "LLMSettings",
    "Settings",
    "TurnSettings",
    "get_logger",
    "get_settings",
    "load_settings",
    "setup_logging",
]
