"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (MODLINK__SECTION__KEY)
3. Repo YAML (.modlink/config.yaml)
4. Global YAML (~/.config/modlink/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    MODLINK__<SECTION>__<KEY>=<VALUE>

Examples:
    MODLINK__LOGGING__LEVEL=DEBUG
    MODLINK__LLM__MODEL=gpt-4o-mini
    MODLINK__INTERACTIONS__BATCH_SIZE=20
    MODLINK__INTERACTIONS__MIN_RELATIONSHIP_COVERAGE=85
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        MODLINK__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG prints every gate rejection.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class DatabaseConfig(BaseModel):
    """Index database configuration.

    Env vars:
        MODLINK__DATABASE__PATH: Index database location
        MODLINK__DATABASE__BUSY_TIMEOUT_MS: SQLite busy timeout
        MODLINK__DATABASE__MAX_RETRIES: Max retry attempts for locked DB
    """

    path: str = Field(
        default=".modlink/index.db",
        description="Index database path. Relative paths resolve against the repo root.",
    )
    busy_timeout_ms: int = Field(
        default=30000,
        description="SQLite busy timeout (ms). How long to wait for locks.",
    )
    max_retries: int = Field(
        default=3,
        description="Max retry attempts for locked database errors.",
    )
    retry_base_delay_sec: float = Field(
        default=0.1,
        description="Base delay between retries (exponential backoff).",
    )


class LLMConfig(BaseModel):
    """Completion client configuration.

    Targets any OpenAI-compatible ``/chat/completions`` endpoint.

    Env vars:
        MODLINK__LLM__BASE_URL: API base URL
        MODLINK__LLM__API_KEY: Bearer token
        MODLINK__LLM__MODEL: Model name sent with every request
        MODLINK__LLM__TIMEOUT_SEC: Per-request timeout
        MODLINK__LLM__SHOW_REQUESTS: Log full prompts
        MODLINK__LLM__SHOW_RESPONSES: Log full responses
    """

    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of an OpenAI-compatible API.",
    )
    api_key: str | None = Field(
        default=None,
        description="API key. Prefer the env var over committing it to YAML.",
    )
    model: str = Field(
        default="gpt-4o-mini",
        description="Model used for every prompt type.",
    )
    timeout_sec: float = Field(
        default=120.0,
        description="Per-request timeout. Cross-process prompts can be slow.",
    )
    semantic_max_tokens: int = Field(
        default=4096,
        description="Token cap for batch semantic descriptions.",
    )
    inference_max_tokens: int = Field(
        default=8192,
        description="Token cap for cross-process and targeted inference.",
    )
    show_requests: bool = Field(
        default=False,
        description="Log system and user prompts at INFO.",
    )
    show_responses: bool = Field(
        default=False,
        description="Log raw completions at INFO.",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class InteractionsConfig(BaseModel):
    """Interaction generation configuration.

    Env vars:
        MODLINK__INTERACTIONS__BATCH_SIZE: Edges per semantic prompt
        MODLINK__INTERACTIONS__MIN_RELATIONSHIP_COVERAGE: Coverage target (percent)
        MODLINK__INTERACTIONS__MAX_GATE_RETRIES: Targeted inference passes
        MODLINK__INTERACTIONS__FAN_IN_IQR_MULTIPLIER: Tukey fence multiplier
        MODLINK__INTERACTIONS__FAN_IN_MIN: Minimum inferred fan-in to flag
        MODLINK__INTERACTIONS__FAN_IN_MAX_AST: Max AST fan-in for a flagged target
    """

    batch_size: int = Field(
        default=10,
        description="Call-graph edges described per LLM request. "
        "TRADEOFF: Larger batches are cheaper but more rows get dropped.",
    )
    min_relationship_coverage: float = Field(
        default=90.0,
        description="Target percent of cross-module relationships backed by an interaction.",
    )
    max_gate_retries: int = Field(
        default=2,
        description="Upper bound on targeted inference passes.",
    )
    fan_in_iqr_multiplier: float = Field(
        default=3.0,
        description="Tukey fence multiplier (Q3 + k*IQR) for inferred fan-in outliers.",
    )
    fan_in_min: int = Field(
        default=8,
        description="Inferred fan-in below this is never treated as anomalous.",
    )
    fan_in_max_ast: int = Field(
        default=0,
        description="Targets with more AST callers than this are never treated as anomalous.",
    )

    @field_validator("batch_size", "max_gate_retries")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Must be >= 1, got {v}")
        return v

    @field_validator("min_relationship_coverage")
    @classmethod
    def validate_percent(cls, v: float) -> float:
        if not (0.0 <= v <= 100.0):
            raise ValueError(f"Coverage must be 0-100, got {v}")
        return v


class ModlinkConfig(BaseModel):
    """Root configuration for modlink.

    All settings can be configured via:
    1. Environment variables: MODLINK__SECTION__KEY
    2. YAML config files (repo or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    interactions: InteractionsConfig = Field(default_factory=InteractionsConfig)
