"""Configuration management for the SQLite access layer."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MEMORY_PATH = ":memory:"
"""Sentinel path selecting a private in-memory store."""


class StoreConfig(BaseModel):
    """Backing store configuration."""

    db_path: str = Field(
        default="data/store.db",
        description=f"Path to the SQLite file, or '{MEMORY_PATH}' for an in-memory store",
    )
    busy_timeout_ms: int = Field(
        default=5000, ge=0, description="How long SQLite retries a locked file before failing"
    )
    foreign_keys: bool = Field(default=True, description="Enforce foreign key constraints")
    journal_mode: Literal["DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"] | None = Field(
        default=None, description="Journal mode pragma (engine default when unset)"
    )

    @property
    def is_memory(self) -> bool:
        """Check if this configuration selects an in-memory store."""
        return self.db_path == MEMORY_PATH


class BinderConfig(BaseModel):
    """Parameter binding configuration."""

    date_storage: Literal["epoch", "iso"] = Field(
        default="epoch",
        description="Store dates as REAL seconds since the Unix epoch or as ISO-8601 TEXT",
    )


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="json", description="Log format")
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(default="sqlite_access", description="Service name for tracing")
    metrics_port: int | None = Field(
        default=None, ge=1, le=65535, description="Prometheus metrics port (disabled when unset)"
    )


class Config(BaseSettings):
    """Main configuration for the access layer."""

    model_config = SettingsConfigDict(
        env_prefix="SQLITE_ACCESS_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    store: StoreConfig = Field(default_factory=StoreConfig)
    binder: BinderConfig = Field(default_factory=BinderConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    def ensure_directories(self) -> None:
        """Ensure the directory holding a file-backed store exists."""
        if not self.store.is_memory:
            Path(self.store.db_path).parent.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_config() -> Config:
    """Get the global configuration instance."""
    return Config()
