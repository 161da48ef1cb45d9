"""Core module exports."""

from modlink.core.errors import (
    ConfigError,
    ErrorCode,
    InternalError,
    LLMError,
    ModlinkError,
    StoreError,
)
from modlink.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)

__all__ = [
    # Errors
    "ErrorCode",
    "ModlinkError",
    "ConfigError",
    "StoreError",
    "LLMError",
    "InternalError",
    # Logging
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
]
