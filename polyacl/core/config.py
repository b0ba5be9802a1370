"""
Library configuration using Pydantic Settings.
"""

from typing import Any
from functools import lru_cache
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    url: str = Field(
        default="sqlite+aiosqlite:///./polyacl.db",
        description="SQLAlchemy async connection URL",
    )
    pool_size: int = Field(default=5, ge=1, le=100)
    pool_overflow: int = Field(default=10, ge=0, le=100)
    pool_timeout: int = Field(default=30, ge=1)
    echo: bool = Field(default=False, description="Echo SQL queries")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def engine_options(self) -> dict[str, Any]:
        """Keyword arguments for create_async_engine."""
        options: dict[str, Any] = {"echo": self.echo}
        # SQLite uses a single-connection pool, pool sizing does not apply
        if not self.is_sqlite:
            options.update(
                pool_size=self.pool_size,
                max_overflow=self.pool_overflow,
                pool_timeout=self.pool_timeout,
            )
        return options


class AclSettings(BaseSettings):
    """Authorization engine configuration."""

    model_config = SettingsConfigDict(env_prefix="ACL_")

    policy_engine: str = Field(
        default="resource",
        description="Registered policy engine used by the HTTP gate",
    )
    any_suffix: str = Field(
        default="Any",
        description="Suffix of type-scoped actions (view -> viewAny)",
    )
    separator: str = Field(
        default=".",
        description="Separator between resource prefix and action",
    )
    strict_permission_grants: bool = Field(
        default=False,
        description="Raise NotFoundError when granting unknown permission names",
    )
    ignore_duplicate_grants: bool = Field(
        default=False,
        description="Skip permissions/roles a holder already has instead of failing",
    )


class Settings(BaseSettings):
    """Main library settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="development")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or text")

    # Nested settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    acl: AclSettings = Field(default_factory=AclSettings)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production", "testing"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v not in {"json", "text"}:
            raise ValueError("log_format must be 'json' or 'text'")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Shorthand
settings = get_settings()
