# Configuration module
from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Settings loaded from SERVICELINK_* environment variables."""

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: str | None = Field(
        default=None, description="Directory for rotating log files (console only if unset)"
    )
    log_json: bool = Field(default=False, description="Emit JSON log records")
    log_sensitive_patterns: list[str] = Field(
        default_factory=list,
        description="Strings masked in log output (tokens, API keys passed as metadata)",
    )

    # Server transport defaults
    server_bind_host: str = Field(default="[::]", description="Host the acceptor binds to")
    server_max_workers: int = Field(
        default=10, ge=1, description="Worker threads handling RPCs on the server"
    )
    server_max_concurrent_rpcs: int | None = Field(
        default=None, description="Reject RPCs above this many in flight (unlimited if unset)"
    )
    shutdown_grace_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long a graceful server shutdown lets in-flight RPCs finish",
    )

    # Shared transport options
    max_message_bytes: int = Field(
        default=4 * 1024 * 1024, ge=1, description="Max send/receive message size (4 MB)"
    )
    keepalive_time_ms: int | None = Field(
        default=None, description="HTTP/2 keepalive ping interval (disabled if unset)"
    )

    # Client invocation
    cancel_on_timeout: bool = Field(
        default=False,
        description="Cancel calls whose bounded wait expired instead of abandoning them",
    )

    # CLI / health check defaults
    default_host: str = Field(default="localhost", description="Host used by the CLI")
    default_port: int = Field(default=9001, ge=1, lt=65536, description="Port used by the CLI")
    health_check_timeout_ms: int = Field(
        default=3000, ge=0, description="Ping timeout for the health check (0 waits forever)"
    )
    advertised_endpoints: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Descriptors served by the static discovery service",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        """Normalize log level to upper case and reject unknown names."""
        level = str(v).upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator(
        "log_dir", "server_max_concurrent_rpcs", "keepalive_time_ms", mode="before"
    )
    @classmethod
    def empty_string_to_none(cls, v: Any) -> Any:
        """Treat empty environment values as unset."""
        if v == "":
            return None
        return v

    model_config = SettingsConfigDict(
        env_prefix="SERVICELINK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance for convenience
# Use get_settings() in tests to allow mocking
settings = get_settings()
