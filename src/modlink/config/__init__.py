"""Config module exports."""

from modlink.config.loader import ModlinkSettings, get_db_path, load_config
from modlink.config.models import (
    DatabaseConfig,
    InteractionsConfig,
    LLMConfig,
    LoggingConfig,
    ModlinkConfig,
)

__all__ = [
    "load_config",
    "get_db_path",
    "ModlinkConfig",
    "ModlinkSettings",
    "DatabaseConfig",
    "InteractionsConfig",
    "LLMConfig",
    "LoggingConfig",
]
