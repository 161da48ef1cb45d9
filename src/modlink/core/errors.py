"""Modlink error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Store
- 4xxx: LLM
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_MISSING_REQUIRED = 2003
    CONFIG_FILE_NOT_FOUND = 2004

    # Store (3xxx)
    STORE_NOT_FOUND = 3001
    STORE_NOT_EMPTY = 3002
    STORE_UNKNOWN_RECORD = 3003

    # LLM (4xxx)
    LLM_NOT_CONFIGURED = 4001
    LLM_REQUEST_FAILED = 4002
    LLM_BAD_RESPONSE = 4003

    # Internal (9xxx)
    INTERNAL_ERROR = 9001
    INTERNAL_TIMEOUT = 9002


@dataclass(frozen=True, slots=True)
class ModlinkError(Exception):
    """Base error with structured context for CLI and JSON output."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CONFIG_PARSE_ERROR')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(ModlinkError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def missing_required(cls, field: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_MISSING_REQUIRED,
            message=f"Missing required config field: {field}",
            details={"field": field},
        )


class StoreError(ModlinkError):
    """Index database errors surfaced to the CLI."""

    @classmethod
    def not_found(cls, path: str) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_NOT_FOUND,
            message=f"Index database not found: {path}",
            details={"path": path},
        )

    @classmethod
    def not_empty(cls, table: str, count: int) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_NOT_EMPTY,
            message=f"{count} rows already present in '{table}'. Use --force to regenerate.",
            details={"table": table, "count": count},
        )

    @classmethod
    def unknown_record(cls, table: str, record_id: int) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_UNKNOWN_RECORD,
            message=f"No row with id {record_id} in '{table}'",
            details={"table": table, "id": record_id},
        )


class LLMError(ModlinkError):
    """Completion client errors. Engine code treats these as transient."""

    @classmethod
    def not_configured(cls, field: str) -> "LLMError":
        return cls(
            code=ErrorCode.LLM_NOT_CONFIGURED,
            message=f"LLM client is not configured: missing '{field}'",
            details={"field": field},
        )

    @classmethod
    def request_failed(cls, reason: str, *, status_code: int | None = None) -> "LLMError":
        return cls(
            code=ErrorCode.LLM_REQUEST_FAILED,
            message=f"LLM request failed: {reason}",
            retryable=True,
            details={"reason": reason, "status_code": status_code},
        )

    @classmethod
    def bad_response(cls, reason: str) -> "LLMError":
        return cls(
            code=ErrorCode.LLM_BAD_RESPONSE,
            message=f"Unexpected LLM response: {reason}",
            details={"reason": reason},
        )


class InternalError(ModlinkError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
