"""Configuration management for MCP Hub."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # MCP client identity sent during the initialize handshake
    mcp_client_name: str = Field(default="mcp-hub", alias="MCP_CLIENT_NAME")
    mcp_client_version: str = Field(default="0.1.0", alias="MCP_CLIENT_VERSION")
    mcp_protocol_version: str = Field(default="2024-11-05", alias="MCP_PROTOCOL_VERSION")

    # Connection lifecycle (seconds)
    mcp_client_creation_timeout: float = Field(default=30.0, alias="MCP_CLIENT_CREATION_TIMEOUT")
    mcp_shutdown_grace_period: float = Field(default=1.0, alias="MCP_SHUTDOWN_GRACE_PERIOD")
    mcp_process_kill_timeout: float = Field(default=5.0, alias="MCP_PROCESS_KILL_TIMEOUT")

    # Only bounds the TCP connect phase; tool invocations are not time limited
    mcp_http_connect_timeout: float = Field(default=10.0, alias="MCP_HTTP_CONNECT_TIMEOUT")

    # Login shell used to wrap process servers (POSIX only, e.g. "fish")
    mcp_login_shell: str | None = Field(default=None, alias="MCP_LOGIN_SHELL")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str | None) -> str:
        """Normalize log level value from environment."""
        if value is None:
            return "INFO"
        normalized = str(value).strip().upper()
        if normalized in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            return normalized
        raise ValueError("LOG_LEVEL must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    @field_validator(
        "mcp_client_creation_timeout",
        "mcp_shutdown_grace_period",
        "mcp_process_kill_timeout",
        "mcp_http_connect_timeout",
    )
    @classmethod
    def non_negative(cls, value: float) -> float:
        """Reject negative durations."""
        if value < 0:
            raise ValueError("Durations must not be negative")
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
